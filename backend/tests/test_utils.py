import importlib.util
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest
import resend
from fastapi import HTTPException

from conftest import make_png
from coffee_shop import models
from coffee_shop.config import settings
from coffee_shop.constants import RespCode, http_status_for
from coffee_shop.messages import get_message, message_builder, parse_accept_language
from coffee_shop.utils import vnpay
from coffee_shop.utils.image_storage import ImageStorage, ImageStorageError
from coffee_shop.utils.mailer import MailBody, MailDeliveryError, send_simple_mail
from coffee_shop.utils.rate_limit import InMemoryRateLimiter
from coffee_shop.utils.scheduler import PeriodicJob

SCRIPTS = Path(__file__).resolve().parents[1] / "scripts"


def test_message_catalog():
    assert get_message(RespCode.FIELD_NOT_NULL, ["email"], "en") == "Required field is missing email"
    assert get_message(RespCode.FIELD_NOT_NULL, None, "en") == "Required field is missing"
    assert get_message(RespCode.SUCCESS, None, "vi") == "Thành công"
    assert get_message("123", None, "en") == "undefined"
    assert parse_accept_language("de-DE, vi;q=0.8") == "vi"
    assert parse_accept_language(None) == "en"

    body = message_builder.failure(RespCode.FIELD_EXISTED, ["name"], "Category name is duplicate")
    assert body == {"resp_code": "004", "resp_desc": "Field already exists name", "data": "Category name is duplicate"}


def test_http_status_mapping():
    assert http_status_for(RespCode.FIELD_NOT_NULL) == 400
    assert http_status_for(RespCode.FIELD_NOT_FOUND) == 404
    assert http_status_for(RespCode.NOT_FOUND) == 404
    assert http_status_for(RespCode.FIELD_EXISTED) == 409
    assert http_status_for(RespCode.UNDEFINED) == 500


def test_rate_limiter_window():
    limiter = InMemoryRateLimiter()
    assert limiter.allow("k", 2, 60) == (True, 0)
    assert limiter.allow("k", 2, 60) == (True, 0)
    allowed, retry_after = limiter.allow("k", 2, 60)
    assert not allowed and retry_after >= 1
    assert limiter.allow("other", 2, 60)[0]

    request = SimpleNamespace(client=SimpleNamespace(host="1.2.3.4"), url=SimpleNamespace(path="/auth/login"))
    limiter.enforce(request, 1)
    with pytest.raises(HTTPException) as exc:
        limiter.enforce(request, 1)
    assert exc.value.status_code == 429
    limiter.reset()
    limiter.enforce(request, 1)


def test_vnpay_signing():
    assert vnpay.hmac_sha512("key", "data") == vnpay.hmac_sha512("key", "data")
    assert len(vnpay.hmac_sha512("key", "data")) == 128
    with pytest.raises(ValueError):
        vnpay.hmac_sha512(None, "data")

    params = {"vnp_B": "two words", "vnp_A": "1", "vnp_Empty": ""}
    url = vnpay.build_payment_url("https://pay.example/vpc", params, "s3cret")
    assert url.startswith("https://pay.example/vpc?vnp_A=1&vnp_B=two+words&vnp_SecureHash=")
    signed = dict(params, vnp_SecureHash=vnpay.sign_params(params, "s3cret"))
    assert vnpay.verify_return_params(signed, "s3cret")
    assert not vnpay.verify_return_params(signed, "other")
    assert not vnpay.verify_return_params(params, "s3cret")

    assert len(vnpay.get_random_number(8)) == 8
    assert vnpay.get_random_number(8).isdigit()
    assert vnpay.vnpay_now().utcoffset().total_seconds() == 7 * 3600


def test_client_ip_lookup():
    forwarded = SimpleNamespace(headers={"X-FORWARDED-FOR": "10.0.0.9"}, client=None)
    assert vnpay.get_ip_address(forwarded) == "10.0.0.9"
    direct = SimpleNamespace(headers={}, client=SimpleNamespace(host="127.0.0.5"))
    assert vnpay.get_ip_address(direct) == "127.0.0.5"
    detached = SimpleNamespace(headers={}, client=None)
    assert vnpay.get_ip_address(detached) == "Invalid IP:no client address"


def test_mailer_without_key_skips(monkeypatch):
    monkeypatch.setattr(settings, "RESEND_API_KEY", "")
    assert send_simple_mail(MailBody(to="a@b.c", subject="s", text="t")) is False
    with pytest.raises(ValueError):
        send_simple_mail(None)
    with pytest.raises(ValueError):
        send_simple_mail(MailBody(to="", subject="s", text="t"))


def test_mailer_sends_through_resend(monkeypatch):
    sent = []

    def fake_send(params):
        sent.append((resend.api_key, params))
        return {"id": "mail-1"}

    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test")
    monkeypatch.setattr(resend.Emails, "send", staticmethod(fake_send))
    assert send_simple_mail(MailBody(to="a@b.c", subject="Hi", text="Body")) is True
    api_key, params = sent[0]
    assert api_key == "re_test"
    assert params["to"] == ["a@b.c"]
    assert params["from"] == settings.MAIL_FROM

    def broken_send(params):
        raise RuntimeError("boom")

    monkeypatch.setattr(resend.Emails, "send", staticmethod(broken_send))
    with pytest.raises(MailDeliveryError):
        send_simple_mail(MailBody(to="a@b.c", subject="Hi", text="Body"))


def test_image_storage_round_trip(tmp_path):
    storage = ImageStorage(root=tmp_path, base_url="http://cdn.test/media")
    uploaded = storage.upload(make_png(), "x.png", "Product")
    assert uploaded["url"] == uploaded["secure_url"]
    assert uploaded["public_id"].startswith("Product/")
    assert storage.delete(uploaded["url"]) == {"result": "ok"}
    assert storage.delete(uploaded["url"]) == {"result": "not found"}

    with pytest.raises(ValueError):
        storage.delete("http://elsewhere/picture")
    with pytest.raises(ValueError):
        storage.delete("http://cdn.test/media/upload/v1/../../secret.png")
    with pytest.raises(ImageStorageError):
        storage.upload(b"not an image", "x.png", "Product")
    with pytest.raises(ImageStorageError):
        ImageStorage(root=tmp_path, max_bytes=10).upload(make_png(), "x.png", "Product")


def test_periodic_job_runs_and_survives_errors():
    calls = []
    done = threading.Event()

    def job():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("first run fails")
        done.set()
        return len(calls)

    periodic = PeriodicJob("test-job", 0.01, job)
    assert periodic.run_once() is None
    periodic.start()
    try:
        assert done.wait(2)
    finally:
        periodic.stop()
    assert len(calls) >= 2


def _load_seed_script():
    spec = importlib.util.spec_from_file_location("seed_catalog", SCRIPTS / "seed_catalog.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_seed_catalog_is_idempotent(db_session):
    seed_catalog = _load_seed_script()
    catalog = {
        "categories": [{"name": "Coffee", "description": "Hot"}],
        "brands": ["House"],
        "types": ["Small", "Large"],
        "products": [
            {"name": "Latte", "category": "Coffee", "brand": "House",
             "items": [{"type": "Small", "price": 30000, "stock": 5}, {"type": "Large", "price": 40000, "stock": 5}]},
            {"name": "Broken", "category": "Coffee", "items": [{"type": "Missing", "price": 1}]},
        ],
    }
    first = seed_catalog.seed(db_session, catalog)
    assert (first["categories"], first["brands"], first["types"], first["products"], first["items"]) == (1, 1, 2, 2, 2)
    assert first["errors"] == [{"product": "Broken", "error": "Type id must be greater than 0"}]

    second = seed_catalog.seed(db_session, catalog)
    assert second["products"] == 0
    assert second["skipped"] == 6


def test_utc_helpers():
    now = models.utcnow()
    assert now.utcoffset() == timedelta(0)
    naive = datetime(2024, 5, 1, 8, 30)
    assert models.as_utc(naive) == datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)
    assert models.as_utc(now) is now
    assert models.as_utc(None) is None
