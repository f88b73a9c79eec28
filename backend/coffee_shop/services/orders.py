"""Order lifecycle, reviews, payment transactions and sales statistics."""

import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from .. import auth, models, repositories
from ..constants import RespCode
from ..exceptions import CoffeeShopException
from . import isoformat
from .shopping import address_to_dict

logger = logging.getLogger("coffee_shop.orders")


def restore_stock(session: Session, order: models.Order) -> None:
    """Put every line of `order` back into its product item's stock (no commit)."""
    for line in repositories.OrderItemRepository(session).list_for_order(order.id):
        item = session.get(models.ProductItem, line.product_item_id)
        if item:
            item.stock += line.amount
            session.add(item)


def order_total(lines: List[models.OrderItem]) -> float:
    return float(sum((line.price - line.discount) * line.amount for line in lines))


class OrderService:
    """Checkout and the Processing -> Processed -> Shipping -> Completed flow."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.OrderRepository(session)
        self.line_repo = repositories.OrderItemRepository(session)
        self.item_repo = repositories.ProductItemRepository(session)
        self.address_repo = repositories.ShippingAddressRepository(session)
        self.cart_repo = repositories.CartItemRepository(session)
        self.image_repo = repositories.ImageRepository(session)

    def order_item_to_dict(self, line: models.OrderItem) -> dict:
        item = self.item_repo.get(line.product_item_id)
        product = self.session.get(models.Product, item.product_id) if item else None
        type_product = self.session.get(models.TypeProduct, item.type_id) if item else None
        images = self.image_repo.list_for_product(product.id) if product else []
        return {
            "id": line.id,
            "order_id": line.order_id,
            "product_item_id": line.product_item_id,
            "product_id": product.id if product else None,
            "product_name": product.name if product else None,
            "product_image": images[0].url if images else None,
            "type_name": type_product.name if type_product else None,
            "amount": line.amount,
            "price": line.price,
            "discount": line.discount,
            "is_reviewed": line.is_reviewed,
        }

    def to_dict(self, order: models.Order) -> dict:
        lines = self.line_repo.list_for_order(order.id)
        address = self.address_repo.get(order.shipping_address_id)
        return {
            "id": order.id,
            "order_date": isoformat(order.order_date),
            "status": order.status.value,
            "payment_method": order.payment_method.value,
            "user_id": address.user_id if address else None,
            "shipping_address": address_to_dict(address) if address else None,
            "items": [self.order_item_to_dict(line) for line in lines],
            "total": order_total(lines),
        }

    def add_order(self, user: models.User, shipping_address_id: int, payment_method: models.PaymentMethod, items: list) -> dict:
        """Place an order for `items` (`[{product_item_id, amount}]`).

        Prices are snapshotted from the product items, stock is reserved and
        the purchased lines are removed from the user's cart.
        """
        if not items:
            raise CoffeeShopException(RespCode.FIELD_NOT_NULL, "Order items must be not null", ["items"])
        address = self.address_repo.get(shipping_address_id)
        if not address or address.user_id != user.id or address.status != models.Status.ACTIVE:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "Shipping address not found", ["shipping_address_id"])

        wanted = OrderedDict()
        for entry in items:
            amount = entry["amount"]
            if amount is None or amount <= 0:
                raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Amount must be greater than 0", ["amount"])
            wanted[entry["product_item_id"]] = wanted.get(entry["product_item_id"], 0) + amount

        reserved = []
        for product_item_id, amount in wanted.items():
            item = self.item_repo.get(product_item_id)
            if not item or item.status != models.Status.ACTIVE:
                raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "Product item not found", ["product_item_id"])
            if item.stock < amount:
                raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Not enough stock for product item", [product_item_id])
            reserved.append((item, amount))

        order = models.Order(shipping_address_id=address.id, payment_method=payment_method)
        self.session.add(order)
        self.session.flush()
        for item, amount in reserved:
            item.stock -= amount
            self.session.add(item)
            self.session.add(models.OrderItem(
                order_id=order.id, product_item_id=item.id, amount=amount,
                price=item.price, discount=item.discount,
            ))
            line = self.cart_repo.get_by_user_and_product_item(user.id, item.id)
            if line:
                self.session.delete(line)
        self.session.commit()
        self.session.refresh(order)
        logger.info("order placed id=%s user=%s lines=%s", order.id, user.id, len(reserved))
        return self.to_dict(order)

    def _load(self, order_id: int) -> models.Order:
        order = self.repo.get(order_id)
        if not order:
            raise CoffeeShopException(RespCode.NOT_FOUND, "Order not found", ["order_id"])
        return order

    def _check_access(self, order: models.Order, user: models.User) -> None:
        if not auth.is_admin(user) and self.repo.owner_id(order) != user.id:
            raise CoffeeShopException(RespCode.FORBIDDEN, "Order does not belong to user")

    def get_order_by_id(self, order_id: int, user: models.User) -> dict:
        order = self._load(order_id)
        self._check_access(order, user)
        return self.to_dict(order)

    def get_all_orders(self) -> list:
        return [self.to_dict(o) for o in self.repo.list_all_orders()]

    def get_orders_by_user(self, user_id: int) -> list:
        return [self.to_dict(o) for o in self.repo.list_for_user(user_id)]

    def get_orders_by_status(self, status: models.OrderStatus) -> list:
        return [self.to_dict(o) for o in self.repo.list_by_status(status)]

    def update_order_status(self, order_id: int) -> dict:
        """Advance the order one step along the status flow."""
        order = self._load(order_id)
        next_status = models.ORDER_STATUS_FLOW.get(order.status)
        if next_status is None:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, f"Order status {order.status.value} can not be updated", ["status"])
        order.status = next_status
        self.repo.save(order)
        logger.info("order id=%s moved to %s", order.id, next_status.value)
        return self.to_dict(order)

    def cancel_order(self, order_id: int, user: models.User) -> dict:
        order = self._load(order_id)
        self._check_access(order, user)
        if order.status != models.OrderStatus.PROCESSING:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Only processing orders can be cancelled", ["status"])
        paid = repositories.TransactionRepository(self.session).get_by_order(order.id)
        if order.payment_method == models.PaymentMethod.VNPAY and paid:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Paid orders must be refunded", ["payment_method"])
        restore_stock(self.session, order)
        order.status = models.OrderStatus.CANCELLED
        self.repo.save(order)
        return self.to_dict(order)

    def get_all_order_items(self) -> list:
        return [self.order_item_to_dict(line) for line in self.line_repo.list_all()]


class ReviewService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.ReviewRepository(session)
        self.line_repo = repositories.OrderItemRepository(session)
        self.order_repo = repositories.OrderRepository(session)

    def to_dict(self, review: models.Review) -> dict:
        line = self.line_repo.get(review.order_item_id)
        order = self.order_repo.get(line.order_id) if line else None
        user_id = self.order_repo.owner_id(order) if order else None
        user = self.session.get(models.User, user_id) if user_id else None
        item = self.session.get(models.ProductItem, line.product_item_id) if line else None
        return {
            "id": review.id,
            "order_item_id": review.order_item_id,
            "product_id": item.product_id if item else None,
            "rating": review.rating,
            "comment": review.comment,
            "status": review.status.value,
            "create_at": isoformat(review.create_at),
            "user_id": user.id if user else None,
            "user_email": user.email if user else None,
            "name": user.name if user else None,
            "user_avatar": user.profile_img if user else None,
        }

    def add_review(self, user: models.User, order_item_id: int, rating: int, comment: Optional[str] = None) -> dict:
        """Review a line of one of the user's completed orders (once)."""
        line = self.line_repo.get(order_item_id)
        if not line:
            raise CoffeeShopException(RespCode.NOT_FOUND, "OrderItem could not be found", ["order_item_id"])
        if rating is None or not 1 <= rating <= 5:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Rating must be between 1 and 5", ["rating"])
        order = self.order_repo.get(line.order_id)
        if self.order_repo.owner_id(order) != user.id:
            raise CoffeeShopException(RespCode.FORBIDDEN, "Order item does not belong to user")
        if order.status != models.OrderStatus.COMPLETED:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Only completed orders can be reviewed", ["order_item_id"])
        if line.is_reviewed or self.repo.get_by_order_item(line.id):
            raise CoffeeShopException(RespCode.FIELD_EXISTED, "Order item already reviewed", ["order_item_id"])
        review = models.Review(order_item_id=line.id, rating=rating, comment=comment)
        line.is_reviewed = True
        self.session.add(line)
        return self.to_dict(self.repo.save(review))

    def get_all_reviews(self) -> list:
        return [self.to_dict(r) for r in self.repo.list_all()]

    def get_reviews_by_product_id(self, product_id: int) -> list:
        try:
            reviews = self.repo.list_for_product(product_id)
        except SQLAlchemyError as exc:
            raise CoffeeShopException(RespCode.SYSTEM_ERROR, "Review not found") from exc
        return [self.to_dict(r) for r in reviews]

    def delete_review(self, review_id: int) -> None:
        review = self.repo.get(review_id)
        if not review:
            raise CoffeeShopException(RespCode.NOT_FOUND, "Review could not be found", ["review_id"])
        review.status = models.Status.INACTIVE
        self.repo.save(review)


def transaction_to_dict(tx: models.Transaction) -> dict:
    return {
        "id": tx.id,
        "order_id": tx.order_id,
        "amount": tx.amount,
        "transaction_no": tx.transaction_no,
        "txn_ref": tx.txn_ref,
        "command": tx.command.value,
        "pay_date": tx.pay_date,
        "created_at": isoformat(tx.created_at),
    }


class TransactionService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.TransactionRepository(session)
        self.order_repo = repositories.OrderRepository(session)

    def add_transaction(self, order_id: int, amount: float, transaction_no: Optional[str] = None,
                        pay_date: Optional[str] = None, txn_ref: Optional[str] = None,
                        command: models.TransactionCommand = models.TransactionCommand.PAY) -> dict:
        if not self.order_repo.get(order_id):
            raise CoffeeShopException(RespCode.NOT_FOUND, "Order not found", ["order_id"])
        tx = models.Transaction(
            order_id=order_id, amount=amount, transaction_no=transaction_no,
            pay_date=pay_date, txn_ref=txn_ref, command=command,
        )
        try:
            tx = self.repo.save(tx)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise CoffeeShopException(RespCode.UNDEFINED, "Could not save transaction") from exc
        return transaction_to_dict(tx)

    def get_transaction(self, order_id: int) -> dict:
        tx = self.repo.get_by_order(order_id)
        if not tx:
            raise CoffeeShopException(RespCode.NOT_FOUND, "Transaction not found", ["order_id"])
        return transaction_to_dict(tx)


class StatisticService:
    """Top-5 rankings computed over Completed orders only."""
    LIMIT = 5

    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.StatisticRepository(session)

    @staticmethod
    def _products(rows) -> list:
        return [
            {"product_id": r[0], "product_name": r[1], "quantity": int(r[2] or 0), "revenue": float(r[3] or 0)}
            for r in rows
        ]

    @staticmethod
    def _customers(rows) -> list:
        return [
            {"user_id": r[0], "email": r[1], "name": r[2], "order_count": int(r[3] or 0), "total_spent": float(r[4] or 0)}
            for r in rows
        ]

    def top5_monthly_selling_products(self, start: Optional[date], end: Optional[date]) -> list:
        """Best sellers for orders placed between `start` and `end` (inclusive)."""
        if start is None or end is None or start > end:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Invalid date range", ["start", "end"])
        since = datetime.combine(start, datetime.min.time(), tzinfo=timezone.utc)
        until = datetime.combine(end + timedelta(days=1), datetime.min.time(), tzinfo=timezone.utc)
        try:
            return self._products(self.repo.top_selling_products(self.LIMIT, since, until))
        except SQLAlchemyError as exc:
            raise CoffeeShopException(RespCode.SYSTEM_ERROR, "Error getting top 5 monthly selling products") from exc

    def top5_best_selling_products(self) -> list:
        try:
            return self._products(self.repo.top_selling_products(self.LIMIT))
        except SQLAlchemyError as exc:
            raise CoffeeShopException(RespCode.SYSTEM_ERROR, "Error getting top 5 best selling products") from exc

    def top5_best_customers(self) -> list:
        try:
            return self._customers(self.repo.top_customers(self.LIMIT))
        except SQLAlchemyError as exc:
            raise CoffeeShopException(RespCode.SYSTEM_ERROR, "Error getting top 5 customers") from exc

    def top5_monthly_customers(self, month: int, year: int) -> list:
        if month is None or year is None or not 1 <= month <= 12 or year < 1:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Invalid month or year", ["month", "year"])
        since = datetime(year, month, 1, tzinfo=timezone.utc)
        until = datetime(year + 1, 1, 1, tzinfo=timezone.utc) if month == 12 else datetime(year, month + 1, 1, tzinfo=timezone.utc)
        try:
            return self._customers(self.repo.top_customers(self.LIMIT, since, until))
        except SQLAlchemyError as exc:
            raise CoffeeShopException(RespCode.SYSTEM_ERROR, "Error getting top 5 monthly customers") from exc
