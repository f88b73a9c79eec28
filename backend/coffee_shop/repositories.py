"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
catalog, carts, orders, chat, ...). Repositories return SQLModel objects
and perform commits/refreshes where appropriate; they never raise domain
errors, that is the job of the services.
"""

from datetime import datetime
from typing import List, Optional
from sqlmodel import Session, select
from sqlalchemy import func, or_, desc
from . import models


class _BaseRepository:
    model = None

    def __init__(self, session: Session):
        self.session = session

    def get(self, obj_id: int):
        """Fetch a row by primary key or `None`."""
        return self.session.get(self.model, obj_id)

    def save(self, obj):
        """Insert or update `obj` and return the refreshed instance."""
        self.session.add(obj)
        self.session.commit()
        self.session.refresh(obj)
        return obj

    def delete(self, obj) -> None:
        self.session.delete(obj)
        self.session.commit()

    def list_all(self) -> list:
        return self.session.exec(select(self.model)).all()


class RoleRepository(_BaseRepository):
    model = models.Role

    def get_by_name(self, name: models.RoleName) -> Optional[models.Role]:
        stmt = select(models.Role).where(models.Role.name == name)
        return self.session.exec(stmt).first()


class UserRepository(_BaseRepository):
    """CRUD operations for `User` objects."""
    model = models.User

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email or `None` if not found."""
        stmt = select(models.User).where(models.User.email == email)
        return self.session.exec(stmt).first()

    def exists_by_email(self, email: str) -> bool:
        stmt = select(models.User.id).where(models.User.email == email)
        return self.session.exec(stmt).first() is not None


class CategoryRepository(_BaseRepository):
    model = models.Category

    def list_by_status(self, status: models.Status) -> List[models.Category]:
        stmt = select(models.Category).where(models.Category.status == status)
        return self.session.exec(stmt).all()

    def get_by_name(self, name: str) -> Optional[models.Category]:
        stmt = select(models.Category).where(models.Category.name == name)
        return self.session.exec(stmt).first()


class BrandRepository(_BaseRepository):
    model = models.Brand

    def list_by_status(self, status: models.Status) -> List[models.Brand]:
        stmt = select(models.Brand).where(models.Brand.status == status)
        return self.session.exec(stmt).all()

    def get_by_name(self, name: str) -> Optional[models.Brand]:
        stmt = select(models.Brand).where(models.Brand.name == name)
        return self.session.exec(stmt).first()


class TypeProductRepository(_BaseRepository):
    model = models.TypeProduct

    def list_by_status(self, status: models.Status) -> List[models.TypeProduct]:
        stmt = select(models.TypeProduct).where(models.TypeProduct.status == status)
        return self.session.exec(stmt).all()

    def get_by_name(self, name: str) -> Optional[models.TypeProduct]:
        stmt = select(models.TypeProduct).where(models.TypeProduct.name == name)
        return self.session.exec(stmt).first()


class ProductRepository(_BaseRepository):
    """Queries for `Product` rows and their aggregated statistics."""
    model = models.Product

    def list_by_status(self, status: models.Status) -> List[models.Product]:
        stmt = select(models.Product).where(models.Product.status == status)
        return self.session.exec(stmt).all()

    def list_by_category(self, category_id: int, status: models.Status) -> List[models.Product]:
        stmt = select(models.Product).where(
            models.Product.category_id == category_id,
            models.Product.status == status,
        )
        return self.session.exec(stmt).all()

    def search(self, keyword: str, status: models.Status) -> List[models.Product]:
        """Case-insensitive match on name or description."""
        pattern = f"%{keyword.lower()}%"
        stmt = select(models.Product).where(
            models.Product.status == status,
            or_(
                func.lower(models.Product.name).like(pattern),
                func.lower(func.coalesce(models.Product.description, "")).like(pattern),
            ),
        )
        return self.session.exec(stmt).all()

    def average_rating(self, product_id: int) -> Optional[float]:
        stmt = (
            select(func.avg(models.Review.rating))
            .join(models.OrderItem, models.Review.order_item_id == models.OrderItem.id)
            .join(models.ProductItem, models.OrderItem.product_item_id == models.ProductItem.id)
            .where(models.ProductItem.product_id == product_id, models.Review.status == models.Status.ACTIVE)
        )
        return self.session.exec(stmt).one()

    def count_reviews(self, product_id: int) -> int:
        stmt = (
            select(func.count(models.Review.id))
            .join(models.OrderItem, models.Review.order_item_id == models.OrderItem.id)
            .join(models.ProductItem, models.OrderItem.product_item_id == models.ProductItem.id)
            .where(models.ProductItem.product_id == product_id, models.Review.status == models.Status.ACTIVE)
        )
        return self.session.exec(stmt).one() or 0

    def total_sold(self, product_id: int) -> int:
        stmt = (
            select(func.sum(models.OrderItem.amount))
            .join(models.ProductItem, models.OrderItem.product_item_id == models.ProductItem.id)
            .join(models.Order, models.OrderItem.order_id == models.Order.id)
            .where(models.ProductItem.product_id == product_id, models.Order.status != models.OrderStatus.CANCELLED)
        )
        return self.session.exec(stmt).one() or 0

    def price_range(self, product_id: int):
        """Return `(min_price, max_price)` over the product's active items."""
        stmt = select(func.min(models.ProductItem.price), func.max(models.ProductItem.price)).where(
            models.ProductItem.product_id == product_id,
            models.ProductItem.status == models.Status.ACTIVE,
        )
        return self.session.exec(stmt).one()


class ImageRepository(_BaseRepository):
    model = models.Image

    def list_for_product(self, product_id: int) -> List[models.Image]:
        stmt = select(models.Image).where(models.Image.product_id == product_id).order_by(models.Image.id)
        return self.session.exec(stmt).all()


class ProductItemRepository(_BaseRepository):
    model = models.ProductItem

    def list_for_product(self, product_id: int, status: models.Status) -> List[models.ProductItem]:
        stmt = select(models.ProductItem).where(
            models.ProductItem.product_id == product_id,
            models.ProductItem.status == status,
        )
        return self.session.exec(stmt).all()

    def exists_by_product_id_and_type_id(self, product_id: int, type_id: int, exclude_id: Optional[int] = None) -> bool:
        """Return True if an active item already covers product/type."""
        stmt = select(models.ProductItem.id).where(
            models.ProductItem.product_id == product_id,
            models.ProductItem.type_id == type_id,
            models.ProductItem.status == models.Status.ACTIVE,
        )
        if exclude_id is not None:
            stmt = stmt.where(models.ProductItem.id != exclude_id)
        return self.session.exec(stmt).first() is not None


class CartItemRepository(_BaseRepository):
    model = models.CartItem

    def list_for_user(self, user_id: int) -> List[models.CartItem]:
        stmt = select(models.CartItem).where(models.CartItem.user_id == user_id).order_by(models.CartItem.id)
        return self.session.exec(stmt).all()

    def get_by_user_and_product_item(self, user_id: int, product_item_id: int) -> Optional[models.CartItem]:
        stmt = select(models.CartItem).where(
            models.CartItem.user_id == user_id,
            models.CartItem.product_item_id == product_item_id,
        )
        return self.session.exec(stmt).first()


class ShippingAddressRepository(_BaseRepository):
    model = models.ShippingAddress

    def list_for_user(self, user_id: int, status: models.Status) -> List[models.ShippingAddress]:
        stmt = select(models.ShippingAddress).where(
            models.ShippingAddress.user_id == user_id,
            models.ShippingAddress.status == status,
        )
        return self.session.exec(stmt).all()


class OrderRepository(_BaseRepository):
    """Order queries; ownership is resolved through the shipping address."""
    model = models.Order

    def list_all_orders(self) -> List[models.Order]:
        stmt = select(models.Order).order_by(desc(models.Order.order_date), desc(models.Order.id))
        return self.session.exec(stmt).all()

    def list_for_user(self, user_id: int) -> List[models.Order]:
        stmt = (
            select(models.Order)
            .join(models.ShippingAddress, models.Order.shipping_address_id == models.ShippingAddress.id)
            .where(models.ShippingAddress.user_id == user_id)
            .order_by(desc(models.Order.order_date), desc(models.Order.id))
        )
        return self.session.exec(stmt).all()

    def list_by_status(self, status: models.OrderStatus) -> List[models.Order]:
        stmt = select(models.Order).where(models.Order.status == status).order_by(desc(models.Order.order_date))
        return self.session.exec(stmt).all()

    def owner_id(self, order: models.Order) -> Optional[int]:
        address = self.session.get(models.ShippingAddress, order.shipping_address_id)
        return address.user_id if address else None


class OrderItemRepository(_BaseRepository):
    model = models.OrderItem

    def list_for_order(self, order_id: int) -> List[models.OrderItem]:
        stmt = select(models.OrderItem).where(models.OrderItem.order_id == order_id).order_by(models.OrderItem.id)
        return self.session.exec(stmt).all()


class ReviewRepository(_BaseRepository):
    model = models.Review

    def get_by_order_item(self, order_item_id: int) -> Optional[models.Review]:
        stmt = select(models.Review).where(models.Review.order_item_id == order_item_id)
        return self.session.exec(stmt).first()

    def list_for_product(self, product_id: int) -> List[models.Review]:
        stmt = (
            select(models.Review)
            .join(models.OrderItem, models.Review.order_item_id == models.OrderItem.id)
            .join(models.ProductItem, models.OrderItem.product_item_id == models.ProductItem.id)
            .where(models.ProductItem.product_id == product_id, models.Review.status == models.Status.ACTIVE)
            .order_by(desc(models.Review.create_at))
        )
        return self.session.exec(stmt).all()


class FavoriteProductRepository(_BaseRepository):
    model = models.FavoriteProduct

    def list_for_user(self, user_id: int) -> List[models.FavoriteProduct]:
        stmt = select(models.FavoriteProduct).where(models.FavoriteProduct.user_id == user_id)
        return self.session.exec(stmt).all()

    def get_by_user_and_product(self, user_id: int, product_id: int) -> Optional[models.FavoriteProduct]:
        stmt = select(models.FavoriteProduct).where(
            models.FavoriteProduct.user_id == user_id,
            models.FavoriteProduct.product_id == product_id,
        )
        return self.session.exec(stmt).first()


class TransactionRepository(_BaseRepository):
    model = models.Transaction

    def get_by_order(self, order_id: int, command: models.TransactionCommand = models.TransactionCommand.PAY) -> Optional[models.Transaction]:
        stmt = (
            select(models.Transaction)
            .where(models.Transaction.order_id == order_id, models.Transaction.command == command)
            .order_by(desc(models.Transaction.id))
        )
        return self.session.exec(stmt).first()


class ConversationRepository(_BaseRepository):
    model = models.Conversation

    def get_by_host(self, host_id: int) -> Optional[models.Conversation]:
        stmt = select(models.Conversation).where(models.Conversation.host_id == host_id)
        return self.session.exec(stmt).first()

    def list_for_active_hosts(self) -> List[models.Conversation]:
        stmt = (
            select(models.Conversation)
            .join(models.User, models.Conversation.host_id == models.User.id)
            .where(models.User.status == models.Status.ACTIVE)
            .order_by(desc(models.Conversation.updated_at))
        )
        return self.session.exec(stmt).all()


class ChatMessageRepository(_BaseRepository):
    model = models.ChatMessage

    def list_for_conversation(self, conversation_id: int) -> List[models.ChatMessage]:
        stmt = (
            select(models.ChatMessage)
            .where(models.ChatMessage.conversation_id == conversation_id)
            .order_by(models.ChatMessage.timestamp, models.ChatMessage.id)
        )
        return self.session.exec(stmt).all()


class ForgotPasswordRepository(_BaseRepository):
    model = models.ForgotPassword

    def get_by_user(self, user_id: int) -> Optional[models.ForgotPassword]:
        stmt = select(models.ForgotPassword).where(models.ForgotPassword.user_id == user_id).order_by(desc(models.ForgotPassword.id))
        return self.session.exec(stmt).first()

    def get_by_otp_and_user(self, otp: int, user_id: int) -> Optional[models.ForgotPassword]:
        stmt = select(models.ForgotPassword).where(
            models.ForgotPassword.otp == otp,
            models.ForgotPassword.user_id == user_id,
        )
        return self.session.exec(stmt).first()

    def delete_for_user(self, user_id: int) -> int:
        rows = self.session.exec(select(models.ForgotPassword).where(models.ForgotPassword.user_id == user_id)).all()
        for row in rows:
            self.session.delete(row)
        self.session.commit()
        return len(rows)

    def delete_expired(self, now: datetime) -> int:
        rows = self.session.exec(select(models.ForgotPassword).where(models.ForgotPassword.expiration_time < now)).all()
        for row in rows:
            self.session.delete(row)
        self.session.commit()
        return len(rows)


class StatisticRepository:
    """Aggregate queries over completed orders."""
    def __init__(self, session: Session):
        self.session = session

    def top_selling_products(self, limit: int, start: Optional[datetime] = None, end: Optional[datetime] = None):
        """Return rows of `(product_id, product_name, quantity, revenue)`."""
        quantity = func.sum(models.OrderItem.amount).label("quantity")
        revenue = func.sum((models.OrderItem.price - models.OrderItem.discount) * models.OrderItem.amount).label("revenue")
        stmt = (
            select(models.Product.id, models.Product.name, quantity, revenue)
            .join(models.ProductItem, models.ProductItem.product_id == models.Product.id)
            .join(models.OrderItem, models.OrderItem.product_item_id == models.ProductItem.id)
            .join(models.Order, models.OrderItem.order_id == models.Order.id)
            .where(models.Order.status == models.OrderStatus.COMPLETED)
        )
        if start is not None:
            stmt = stmt.where(models.Order.order_date >= start)
        if end is not None:
            stmt = stmt.where(models.Order.order_date < end)
        stmt = stmt.group_by(models.Product.id, models.Product.name).order_by(desc(quantity), models.Product.id).limit(limit)
        return self.session.exec(stmt).all()

    def top_customers(self, limit: int, start: Optional[datetime] = None, end: Optional[datetime] = None):
        """Return rows of `(user_id, email, name, order_count, total_spent)`."""
        order_count = func.count(func.distinct(models.Order.id)).label("order_count")
        total_spent = func.sum((models.OrderItem.price - models.OrderItem.discount) * models.OrderItem.amount).label("total_spent")
        stmt = (
            select(models.User.id, models.User.email, models.User.name, order_count, total_spent)
            .join(models.ShippingAddress, models.ShippingAddress.user_id == models.User.id)
            .join(models.Order, models.Order.shipping_address_id == models.ShippingAddress.id)
            .join(models.OrderItem, models.OrderItem.order_id == models.Order.id)
            .where(models.Order.status == models.OrderStatus.COMPLETED)
        )
        if start is not None:
            stmt = stmt.where(models.Order.order_date >= start)
        if end is not None:
            stmt = stmt.where(models.Order.order_date < end)
        stmt = stmt.group_by(models.User.id, models.User.email, models.User.name).order_by(desc(total_spent), models.User.id).limit(limit)
        return self.session.exec(stmt).all()
