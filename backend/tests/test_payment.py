import urllib.parse

import pytest
import requests

from coffee_shop.config import settings
from coffee_shop.utils import vnpay


def query_of(url):
    return dict(urllib.parse.parse_qsl(urllib.parse.urlsplit(url).query))


@pytest.fixture
def paid_order(client, user_headers, catalog, address):
    order = client.post("/orders", json={
        "shipping_address_id": address["id"], "payment_method": "VNPAY",
        "items": [{"product_item_id": catalog["item"]["id"], "amount": 2}],
    }, headers=user_headers).json()["data"]
    r = client.post("/transactions", json={
        "order_id": order["id"], "amount": 90000, "transaction_no": "14000001",
        "pay_date": "20260101120000", "txn_ref": "87654321",
    }, headers=user_headers)
    assert r.status_code == 200, r.text
    return order


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


def test_create_payment_url_is_signed(client, user_headers):
    r = client.get("/payment/vnpay/create", params={"amount": 90000}, headers=user_headers)
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["status"] == "OK"
    assert data["message"] == "Successfully created payment"
    assert data["url"].startswith(settings.VNPAY_PAY_URL + "?")

    params = query_of(data["url"])
    assert params["vnp_Amount"] == "9000000"
    assert params["vnp_TxnRef"] == data["txn_ref"]
    assert params["vnp_ReturnUrl"] == f"{settings.BACKEND_URL}/payment/vnpay-return"
    assert vnpay.verify_return_params(params, settings.VNPAY_HASH_SECRET)


def test_create_payment_rejects_bad_amount_and_foreign_order(client, user_headers):
    assert client.get("/payment/vnpay/create", params={"amount": 0}, headers=user_headers).json()["resp_code"] == "002"
    assert client.get("/payment/vnpay/create", params={"amount": 10}).status_code == 401
    missing = client.get("/payment/vnpay/create", params={"amount": 10, "order_id": 999}, headers=user_headers)
    assert missing.status_code == 404


def _signed_return(**overrides):
    params = {
        "vnp_Amount": "9000000",
        "vnp_TxnRef": "87654321",
        "vnp_TransactionNo": "14000001",
        "vnp_ResponseCode": "00",
        "vnp_PayDate": "20260101120000",
        "vnp_OrderInfo": "Thanh toan don hang:87654321",
    }
    params.update(overrides)
    params["vnp_SecureHash"] = vnpay.sign_params(params, settings.VNPAY_HASH_SECRET)
    return params


def test_return_success_redirects_to_frontend(client):
    r = client.get("/payment/vnpay-return", params=_signed_return(), follow_redirects=False)
    assert r.status_code == 302
    location = r.headers["location"]
    assert location.startswith(f"{settings.FRONTEND_URL}/order-status?")
    query = query_of(location)
    assert query == {
        "status": "success", "txnRef": "87654321", "transactionNo": "14000001",
        "amount": "90000", "payDate": "20260101120000",
    }


def test_return_failure_cases(client):
    declined = client.get("/payment/vnpay-return", params=_signed_return(vnp_ResponseCode="24"), follow_redirects=False)
    assert declined.headers["location"] == f"{settings.FRONTEND_URL}/order-status?status=fail"

    tampered = _signed_return()
    tampered["vnp_Amount"] = "100"
    r = client.get("/payment/vnpay-return", params=tampered, follow_redirects=False)
    assert r.headers["location"] == f"{settings.FRONTEND_URL}/order-status?status=fail"


def test_refund_success_cancels_order(client, admin_headers, user_headers, catalog, paid_order, monkeypatch):
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append(json)
        return FakeResponse({"vnp_ResponseCode": "00", "vnp_Message": "Refund success", "vnp_TransactionNo": "14000002"})

    monkeypatch.setattr("coffee_shop.services.payment.requests.post", fake_post)
    r = client.post(f"/payment/vnpay/refund/{paid_order['id']}", headers=admin_headers)
    assert r.status_code == 200, r.text
    assert r.json()["data"] == {
        "order_id": paid_order["id"], "status": "Cancelled", "response_code": "00", "message": "Refund success",
    }

    sent = calls[0]
    assert sent["vnp_Command"] == "refund"
    assert sent["vnp_Amount"] == "9000000"
    assert sent["vnp_TxnRef"] == "87654321"
    assert sent["vnp_SecureHash"] == vnpay.refund_signature(sent, settings.VNPAY_HASH_SECRET)

    stock = client.get(f"/product-items/product/{catalog['product']['id']}").json()["data"][0]["stock"]
    assert stock == 10
    again = client.post(f"/payment/vnpay/refund/{paid_order['id']}", headers=admin_headers)
    assert again.json()["data"] == "Order already cancelled"


def test_refund_gateway_rejection(client, admin_headers, paid_order, monkeypatch):
    monkeypatch.setattr("coffee_shop.services.payment.requests.post",
                        lambda url, json=None, timeout=None: FakeResponse({"vnp_ResponseCode": "94"}))
    r = client.post(f"/payment/vnpay/refund/{paid_order['id']}", headers=admin_headers)
    assert r.status_code == 500
    assert r.json()["data"] == "Refund failed with response code 94"
    order = client.get(f"/orders/{paid_order['id']}", headers=admin_headers).json()["data"]
    assert order["status"] == "Processing"


def test_refund_http_error(client, admin_headers, paid_order, monkeypatch):
    monkeypatch.setattr("coffee_shop.services.payment.requests.post",
                        lambda url, json=None, timeout=None: FakeResponse({}, status_code=502))
    r = client.post(f"/payment/vnpay/refund/{paid_order['id']}", headers=admin_headers)
    assert r.json()["data"] == "Refund request failed"


def test_refund_requires_transaction_and_admin(client, admin_headers, user_headers, catalog, address):
    order = client.post("/orders", json={
        "shipping_address_id": address["id"], "items": [{"product_item_id": catalog["item"]["id"], "amount": 1}],
    }, headers=user_headers).json()["data"]
    r = client.post(f"/payment/vnpay/refund/{order['id']}", headers=admin_headers)
    assert r.json()["data"] == "Transaction not found"
    assert client.post(f"/payment/vnpay/refund/{order['id']}", headers=user_headers).status_code == 403


def test_payment_stats_count_events(client, admin_headers, user_headers):
    before = client.get("/payment/stats", headers=admin_headers).json()["data"]
    client.get("/payment/vnpay/create", params={"amount": 1000}, headers=user_headers)
    client.get("/payment/vnpay-return", params=_signed_return(vnp_ResponseCode="24"), follow_redirects=False)
    after = client.get("/payment/stats", headers=admin_headers).json()["data"]
    assert after["created_payments"] == before["created_payments"] + 1
    assert after["failed_returns"] == before["failed_returns"] + 1
    assert after["last_error"] == "response code 24"


def test_refund_with_non_object_body(client, admin_headers, paid_order, monkeypatch):
    monkeypatch.setattr("coffee_shop.services.payment.requests.post",
                        lambda url, json=None, timeout=None: FakeResponse(["00"]))
    r = client.post(f"/payment/vnpay/refund/{paid_order['id']}", headers=admin_headers)
    assert r.status_code == 500
    assert r.json()["data"] == "Refund request failed"
