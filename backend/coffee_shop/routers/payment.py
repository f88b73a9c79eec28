"""VNPay payment endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlmodel import Session

from .. import models
from ..auth import get_current_user, require_admin
from ..database import get_session
from ..services.orders import OrderService
from ..services.payment import OnlinePaymentService
from ..utils.payment_events import get_payment_stats
from ..utils.vnpay import get_ip_address
from . import ok

router = APIRouter(prefix="/payment", tags=["payment"])


@router.get("/vnpay/create")
def create_payment(request: Request, amount: int, order_id: Optional[int] = None,
                   db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Return a signed VNPay URL the client should redirect the customer to."""
    if order_id is not None:
        OrderService(db).get_order_by_id(order_id, user)
    return ok(OnlinePaymentService(db).create_vnpay_payment(amount, get_ip_address(request), order_id))


@router.get("/vnpay-return")
def vnpay_return(request: Request, db: Session = Depends(get_session)):
    """VNPay redirects the browser here; forward to the frontend status page."""
    url = OnlinePaymentService(db).handle_vnpay_return(dict(request.query_params))
    return RedirectResponse(url=url, status_code=302)


@router.post("/vnpay/refund/{order_id}")
def refund(order_id: int, request: Request, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    svc = OnlinePaymentService(db)
    return ok(svc.handle_vnpay_refund(order_id, get_ip_address(request), admin.email))


@router.get("/stats")
def payment_stats(admin: models.User = Depends(require_admin)):
    """Aggregate counters from the payment event log."""
    return ok(get_payment_stats())
