"""Structured payment event log for the VNPay integration.

Every create / return / refund call is appended to a JSONL file and folded
into a small aggregate stats file that administrators can read through
the API.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock


_WRITE_LOCK = Lock()
_LOGGER = logging.getLogger("coffee_shop.payment")

_EMPTY_STATS = {
    "total_events": 0,
    "failed_events": 0,
    "created_payments": 0,
    "successful_returns": 0,
    "failed_returns": 0,
    "refunds": 0,
    "failed_refunds": 0,
    "last_error": "",
}


def _events_root() -> Path:
    raw = os.getenv("PAYMENT_EVENTS_DIR", "").strip()
    if raw:
        return Path(raw).expanduser().resolve()
    return Path(__file__).resolve().parents[2] / "data" / "payment_events"


def _events_path() -> Path:
    root = _events_root()
    root.mkdir(parents=True, exist_ok=True)
    return root / "payment_events.jsonl"


def _stats_path() -> Path:
    root = _events_root()
    root.mkdir(parents=True, exist_ok=True)
    return root / "payment_stats.json"


def _load_stats() -> dict:
    stats_file = _stats_path()
    if not stats_file.exists():
        return dict(_EMPTY_STATS)
    try:
        return json.loads(stats_file.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        _LOGGER.warning("payment stats file unreadable, starting from zero: %s", stats_file)
        return dict(_EMPTY_STATS)


def get_payment_stats() -> dict:
    """Return the current payment aggregate stats snapshot."""
    stats = dict(_EMPTY_STATS)
    stats.update(_load_stats())
    return stats


def record_payment_event(event: dict) -> None:
    """Write `event` to the jsonl log and update the aggregate stats.

    Expected keys: `kind` (`create`, `return` or `refund`), `failed` and
    optionally `error`, `order_id`, `txn_ref`, `amount`.
    """
    payload = dict(event)
    payload.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    with _WRITE_LOCK:
        with _events_path().open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(payload, ensure_ascii=True, default=str) + "\n")
        _update_stats(payload)
    _LOGGER.info("payment_event %s", json.dumps(payload, ensure_ascii=True, default=str))


def _update_stats(event: dict) -> None:
    stats = get_payment_stats()
    kind = event.get("kind")
    failed = bool(event.get("failed", False))

    stats["total_events"] += 1
    if failed:
        stats["failed_events"] += 1
        stats["last_error"] = str(event.get("error", ""))
    if kind == "create" and not failed:
        stats["created_payments"] += 1
    elif kind == "return":
        stats["failed_returns" if failed else "successful_returns"] += 1
    elif kind == "refund":
        stats["failed_refunds" if failed else "refunds"] += 1
    stats["updated_at"] = datetime.now(timezone.utc).isoformat()
    _stats_path().write_text(json.dumps(stats, ensure_ascii=True, indent=2), encoding="utf-8")
