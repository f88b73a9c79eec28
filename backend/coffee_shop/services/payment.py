"""VNPay online payment: signed payment URLs, return handling and refunds.

The gateway flow is:

1. `create_vnpay_payment` builds a signed redirect URL for the customer.
2. VNPay redirects the browser to `/payment/vnpay-return`; the signature
   is checked and the customer is sent on to the frontend's
   `/order-status` page with the outcome in the query string.
3. The frontend records the payment through `/transactions`.
4. Admins may refund a paid order; on success the order is cancelled,
   stock restored and a `refund` transaction stored.
"""

import logging
import time
import urllib.parse
from datetime import timedelta
from typing import Optional

import requests
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from .. import models, repositories
from ..config import settings
from ..constants import RespCode
from ..exceptions import CoffeeShopException
from ..utils import vnpay
from ..utils.payment_events import record_payment_event
from .orders import restore_stock

logger = logging.getLogger("coffee_shop.payment")


class OnlinePaymentService:
    def __init__(self, session: Session):
        self.session = session
        self.tx_repo = repositories.TransactionRepository(session)
        self.order_repo = repositories.OrderRepository(session)

    def create_vnpay_payment(self, amount: int, ip_address: str, order_id: Optional[int] = None) -> dict:
        """Return `{status, message, url}` where `url` is the signed VNPay link."""
        if amount is None or amount <= 0:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "amount must be greater than 0", ["amount"])
        txn_ref = vnpay.get_random_number(8)
        created = vnpay.vnpay_now()
        order_info = f"Thanh toan don hang:{txn_ref}"
        if order_id is not None:
            order_info = f"{order_info} order:{order_id}"
        params = {
            "vnp_Version": vnpay.VNPAY_VERSION,
            "vnp_Command": vnpay.VNPAY_COMMAND_PAY,
            "vnp_TmnCode": settings.VNPAY_TMN_CODE,
            "vnp_Amount": str(int(amount) * 100),
            "vnp_CurrCode": "VND",
            "vnp_TxnRef": txn_ref,
            "vnp_OrderInfo": order_info,
            "vnp_OrderType": vnpay.VNPAY_ORDER_TYPE,
            "vnp_Locale": "vn",
            "vnp_ReturnUrl": f"{settings.BACKEND_URL}/payment/vnpay-return",
            "vnp_IpAddr": ip_address,
            "vnp_CreateDate": vnpay.format_vnpay_date(created),
            "vnp_ExpireDate": vnpay.format_vnpay_date(created + timedelta(minutes=15)),
        }
        try:
            url = vnpay.build_payment_url(settings.VNPAY_PAY_URL, params, settings.VNPAY_HASH_SECRET)
        except (TypeError, ValueError) as exc:
            record_payment_event({"kind": "create", "failed": True, "error": str(exc), "txn_ref": txn_ref})
            raise CoffeeShopException(RespCode.SYSTEM_ERROR, "Error in generating secure hash") from exc
        record_payment_event({"kind": "create", "failed": False, "txn_ref": txn_ref, "amount": amount, "order_id": order_id})
        return {"status": "OK", "message": "Successfully created payment", "url": url, "txn_ref": txn_ref}

    def handle_vnpay_return(self, params: dict) -> str:
        """Translate VNPay's return parameters into a frontend redirect URL."""
        base = f"{settings.FRONTEND_URL}/order-status"
        txn_ref = params.get("vnp_TxnRef")
        if settings.VNPAY_VERIFY_RETURN and not vnpay.verify_return_params(params, settings.VNPAY_HASH_SECRET):
            logger.warning("vnpay return with invalid signature txn_ref=%s", txn_ref)
            record_payment_event({"kind": "return", "failed": True, "error": "invalid signature", "txn_ref": txn_ref})
            return f"{base}?status=fail"
        code = params.get("vnp_ResponseCode")
        if code != vnpay.VNPAY_SUCCESS_CODE:
            record_payment_event({"kind": "return", "failed": True, "error": f"response code {code}", "txn_ref": txn_ref})
            return f"{base}?status=fail"
        try:
            amount = int(params.get("vnp_Amount", "0")) // 100
        except ValueError:
            amount = 0
        query = urllib.parse.urlencode({
            "status": "success",
            "txnRef": txn_ref or "",
            "transactionNo": params.get("vnp_TransactionNo", ""),
            "amount": amount,
            "payDate": params.get("vnp_PayDate", ""),
        })
        record_payment_event({"kind": "return", "failed": False, "txn_ref": txn_ref, "amount": amount})
        return f"{base}?{query}"

    def handle_vnpay_refund(self, order_id: int, ip_address: str, created_by: str) -> dict:
        """Refund the full amount of a paid order through the merchant API."""
        tx = self.tx_repo.get_by_order(order_id)
        if not tx:
            raise CoffeeShopException(RespCode.NOT_FOUND, "Transaction not found", ["order_id"])
        order = self.order_repo.get(order_id)
        if not order:
            raise CoffeeShopException(RespCode.NOT_FOUND, "No order found", ["order_id"])
        if order.status == models.OrderStatus.CANCELLED:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Order already cancelled", ["order_id"])

        fields = {
            "vnp_RequestId": vnpay.get_random_number(8),
            "vnp_Version": vnpay.VNPAY_VERSION,
            "vnp_Command": vnpay.VNPAY_COMMAND_REFUND,
            "vnp_TmnCode": settings.VNPAY_TMN_CODE,
            "vnp_TransactionType": vnpay.VNPAY_TRANSACTION_TYPE_FULL_REFUND,
            "vnp_TxnRef": tx.txn_ref or "",
            "vnp_Amount": str(int(round(tx.amount * 100))),
            "vnp_OrderInfo": f"Hoan tien don hang {order_id}",
            "vnp_TransactionNo": tx.transaction_no or "",
            "vnp_TransactionDate": tx.pay_date or "",
            "vnp_CreateBy": created_by,
            "vnp_CreateDate": vnpay.format_vnpay_date(vnpay.vnpay_now()),
            "vnp_IpAddr": ip_address,
        }
        fields["vnp_SecureHash"] = vnpay.refund_signature(fields, settings.VNPAY_HASH_SECRET)

        started = time.perf_counter()
        try:
            response = requests.post(settings.VNPAY_API_URL, json=fields, timeout=settings.VNPAY_TIMEOUT_SECONDS)
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError("refund response is not a JSON object")
        except (requests.RequestException, ValueError) as exc:
            logger.exception("vnpay refund call failed for order %s", order_id)
            record_payment_event({"kind": "refund", "failed": True, "error": str(exc), "order_id": order_id})
            raise CoffeeShopException(RespCode.SYSTEM_ERROR, "Refund request failed") from exc
        duration_ms = round((time.perf_counter() - started) * 1000.0, 2)

        code = data.get("vnp_ResponseCode")
        if code != vnpay.VNPAY_SUCCESS_CODE:
            record_payment_event({"kind": "refund", "failed": True, "error": f"response code {code}",
                                  "order_id": order_id, "duration_ms": duration_ms})
            raise CoffeeShopException(RespCode.SYSTEM_ERROR, f"Refund failed with response code {code}")

        try:
            restore_stock(self.session, order)
            order.status = models.OrderStatus.CANCELLED
            self.session.add(order)
            self.session.add(models.Transaction(
                order_id=order.id,
                amount=tx.amount,
                transaction_no=data.get("vnp_TransactionNo") or tx.transaction_no,
                txn_ref=tx.txn_ref,
                command=models.TransactionCommand.REFUND,
                pay_date=data.get("vnp_PayDate") or fields["vnp_CreateDate"],
            ))
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise CoffeeShopException(RespCode.SYSTEM_ERROR, "Cannot save transaction") from exc

        record_payment_event({"kind": "refund", "failed": False, "order_id": order_id,
                              "amount": tx.amount, "duration_ms": duration_ms})
        return {
            "order_id": order.id,
            "status": order.status.value,
            "response_code": code,
            "message": data.get("vnp_Message"),
        }
