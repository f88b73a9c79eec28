"""Order, review, transaction and statistics endpoints."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session

from .. import models
from ..auth import get_current_user, require_admin
from ..database import get_session
from ..schemas import OrderIn, ReviewIn, TransactionIn
from ..services.orders import OrderService, ReviewService, StatisticService, TransactionService
from . import ok

router = APIRouter(tags=["orders"])


@router.get("/orders")
def list_orders(db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(OrderService(db).get_all_orders())


@router.get("/orders/me")
def my_orders(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return ok(OrderService(db).get_orders_by_user(user.id))


@router.get("/orders/user/{user_id}")
def orders_by_user(user_id: int, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(OrderService(db).get_orders_by_user(user_id))


@router.get("/orders/status/{status}")
def orders_by_status(status: models.OrderStatus, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(OrderService(db).get_orders_by_status(status))


@router.get("/orders/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return ok(OrderService(db).get_order_by_id(order_id, user))


@router.post("/orders")
def place_order(payload: OrderIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Place an order from the given items; stock is reserved immediately."""
    items = [item.model_dump() for item in payload.items]
    return ok(OrderService(db).add_order(user, payload.shipping_address_id, payload.payment_method, items))


@router.put("/orders/{order_id}/status")
def advance_order(order_id: int, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    """Move the order to the next status (Processing -> ... -> Completed)."""
    return ok(OrderService(db).update_order_status(order_id))


@router.put("/orders/{order_id}/cancel")
def cancel_order(order_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return ok(OrderService(db).cancel_order(order_id, user))


@router.get("/order-items")
def list_order_items(db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(OrderService(db).get_all_order_items())


@router.get("/reviews")
def list_reviews(db: Session = Depends(get_session)):
    return ok(ReviewService(db).get_all_reviews())


@router.get("/reviews/product/{product_id}")
def reviews_by_product(product_id: int, db: Session = Depends(get_session)):
    return ok(ReviewService(db).get_reviews_by_product_id(product_id))


@router.post("/reviews")
def add_review(payload: ReviewIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return ok(ReviewService(db).add_review(user, payload.order_item_id, payload.rating, payload.comment))


@router.delete("/reviews/{review_id}")
def delete_review(review_id: int, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    ReviewService(db).delete_review(review_id)
    return ok()


@router.post("/transactions")
def add_transaction(payload: TransactionIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Record a completed VNPay payment for an order."""
    OrderService(db).get_order_by_id(payload.order_id, user)
    svc = TransactionService(db)
    return ok(svc.add_transaction(payload.order_id, payload.amount, payload.transaction_no, payload.pay_date, payload.txn_ref))


@router.get("/transactions/{order_id}")
def get_transaction(order_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    OrderService(db).get_order_by_id(order_id, user)
    return ok(TransactionService(db).get_transaction(order_id))


@router.get("/statistics/top5-monthly-products")
def top5_monthly_products(start: Optional[date] = None, end: Optional[date] = None,
                          db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(StatisticService(db).top5_monthly_selling_products(start, end))


@router.get("/statistics/top5-products")
def top5_products(db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(StatisticService(db).top5_best_selling_products())


@router.get("/statistics/top5-customers")
def top5_customers(db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(StatisticService(db).top5_best_customers())


@router.get("/statistics/top5-monthly-customers")
def top5_monthly_customers(month: Optional[int] = None, year: Optional[int] = None,
                           db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(StatisticService(db).top5_monthly_customers(month, year))
