"""VNPay helpers: HMAC signing, request signing and client IP lookup."""

import hashlib
import hmac
import random
import urllib.parse
from datetime import datetime, timedelta, timezone

VNPAY_VERSION = "2.1.0"
VNPAY_COMMAND_PAY = "pay"
VNPAY_COMMAND_REFUND = "refund"
VNPAY_ORDER_TYPE = "other"
VNPAY_TRANSACTION_TYPE_FULL_REFUND = "02"
VNPAY_SUCCESS_CODE = "00"
VNPAY_DATE_FORMAT = "%Y%m%d%H%M%S"
VNPAY_TZ = timezone(timedelta(hours=7))


def hmac_sha512(key: str, data: str) -> str:
    """Hex encoded HMAC-SHA512 of `data` keyed with `key`."""
    if key is None or data is None:
        raise ValueError("key and data are required")
    return hmac.new(key.encode("utf-8"), data.encode("utf-8"), hashlib.sha512).hexdigest()


def vnpay_now() -> datetime:
    """Current time in the gateway's timezone (GMT+7)."""
    return datetime.now(VNPAY_TZ)


def format_vnpay_date(value: datetime) -> str:
    return value.strftime(VNPAY_DATE_FORMAT)


def get_ip_address(request) -> str:
    """Client IP: `X-Forwarded-For` when present, otherwise the socket peer."""
    try:
        ip = request.headers.get("X-FORWARDED-FOR")
        if ip is None:
            if request.client is None:
                raise ValueError("no client address")
            ip = request.client.host
    except Exception as exc:
        ip = f"Invalid IP:{exc}"
    return ip


def get_random_number(length: int) -> str:
    return "".join(random.choice("0123456789") for _ in range(length))


def _hash_data(params: dict) -> str:
    return "&".join(
        f"{name}={urllib.parse.quote_plus(str(value))}"
        for name, value in sorted(params.items())
        if value is not None and str(value) != ""
    )


def sign_params(params: dict, secret: str) -> str:
    """Signature over the sorted, URL-encoded `name=value` pairs."""
    return hmac_sha512(secret, _hash_data(params))


def build_payment_url(pay_url: str, params: dict, secret: str) -> str:
    """Return `pay_url?<sorted query>&vnp_SecureHash=<signature>`."""
    query = "&".join(
        f"{urllib.parse.quote_plus(name)}={urllib.parse.quote_plus(str(value))}"
        for name, value in sorted(params.items())
        if value is not None and str(value) != ""
    )
    return f"{pay_url}?{query}&vnp_SecureHash={sign_params(params, secret)}"


def verify_return_params(params: dict, secret: str) -> bool:
    """Check `vnp_SecureHash` on the parameters VNPay redirects back with."""
    received = params.get("vnp_SecureHash")
    if not received:
        return False
    signed = {
        k: v for k, v in params.items()
        if k.startswith("vnp_") and k not in ("vnp_SecureHash", "vnp_SecureHashType")
    }
    return hmac.compare_digest(sign_params(signed, secret).lower(), str(received).lower())


def refund_signature(fields: dict, secret: str) -> str:
    """Signature for the merchant refund API: pipe-joined values in fixed order."""
    order = (
        "vnp_RequestId", "vnp_Version", "vnp_Command", "vnp_TmnCode", "vnp_TransactionType",
        "vnp_TxnRef", "vnp_Amount", "vnp_TransactionNo", "vnp_TransactionDate", "vnp_CreateBy",
        "vnp_CreateDate", "vnp_IpAddr", "vnp_OrderInfo",
    )
    return hmac_sha512(secret, "|".join(str(fields.get(name, "")) for name in order))
