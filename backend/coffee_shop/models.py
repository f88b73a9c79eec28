"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Each class maps to a table and uses relationships where appropriate.
Most catalog and account records are never hard-deleted: they carry a
`status` flag that is flipped to `INACTIVE` instead.
"""

from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field, Relationship
from datetime import datetime, timezone
from typing import List


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp for every stored date column."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to values SQLite hands back without tzinfo."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Status(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class RoleName(str, Enum):
    ROLE_ADMIN = "ROLE_ADMIN"
    ROLE_USER = "ROLE_USER"


class OrderStatus(str, Enum):
    PROCESSING = "Processing"
    PROCESSED = "Processed"
    SHIPPING = "Shipping"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


# Linear lifecycle; Cancelled is only reachable through cancel/refund.
ORDER_STATUS_FLOW = {
    OrderStatus.PROCESSING: OrderStatus.PROCESSED,
    OrderStatus.PROCESSED: OrderStatus.SHIPPING,
    OrderStatus.SHIPPING: OrderStatus.COMPLETED,
}


class PaymentMethod(str, Enum):
    COD = "COD"
    VNPAY = "VNPAY"


class TransactionCommand(str, Enum):
    PAY = "pay"
    REFUND = "refund"


class Role(SQLModel, table=True):
    """An authorization role (`ROLE_ADMIN` or `ROLE_USER`)."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: RoleName = Field(index=True, unique=True)


class User(SQLModel, table=True):
    """A registered customer or administrator.

    Fields:
    - `email`: unique login name, also the JWT subject
    - `password_hash`: hashed password string (never store plaintext)
    - `status`: `INACTIVE` means the account is banned
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    name: Optional[str] = None
    phone: Optional[str] = None
    profile_img: Optional[str] = None
    status: Status = Field(default=Status.ACTIVE)
    role_id: int = Field(foreign_key='role.id')
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    role: Optional[Role] = Relationship()


class Category(SQLModel, table=True):
    """A product category with an optional cover image."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    description: Optional[str] = None
    default_image_url: Optional[str] = None
    status: Status = Field(default=Status.ACTIVE)


class Brand(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    status: Status = Field(default=Status.ACTIVE)


class TypeProduct(SQLModel, table=True):
    """A sellable variant kind, e.g. a cup size or a bag weight."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    status: Status = Field(default=Status.ACTIVE)


class Product(SQLModel, table=True):
    """A catalog product. Prices live on its `ProductItem` rows."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: Optional[str] = None
    category_id: int = Field(foreign_key='category.id')
    brand_id: Optional[int] = Field(default=None, foreign_key='brand.id')
    status: Status = Field(default=Status.ACTIVE)
    created_at: datetime = Field(default_factory=utcnow)
    images: List['Image'] = Relationship(back_populates='product')


class Image(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    url: str
    product_id: int = Field(foreign_key='product.id')
    product: Optional[Product] = Relationship(back_populates='images')


class ProductItem(SQLModel, table=True):
    """A priced, stocked variant of a `Product` for one `TypeProduct`.

    `discount` is an absolute amount subtracted from `price`.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key='product.id', index=True)
    type_id: int = Field(foreign_key='typeproduct.id')
    price: float = 0.0
    stock: int = 0
    discount: float = 0.0
    status: Status = Field(default=Status.ACTIVE)


class CartItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    product_item_id: int = Field(foreign_key='productitem.id')
    quantity: int = 1


class ShippingAddress(SQLModel, table=True):
    """A delivery address owned by a user."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    receiver_name: str
    receiver_phone: str
    location: str
    status: Status = Field(default=Status.ACTIVE)


class Order(SQLModel, table=True):
    """A placed order. The owner is reached through its shipping address."""
    __tablename__ = "orders"
    id: Optional[int] = Field(default=None, primary_key=True)
    order_date: datetime = Field(default_factory=utcnow)
    status: OrderStatus = Field(default=OrderStatus.PROCESSING, index=True)
    payment_method: PaymentMethod = Field(default=PaymentMethod.COD)
    shipping_address_id: int = Field(foreign_key='shippingaddress.id')
    items: List['OrderItem'] = Relationship(back_populates='order')


class OrderItem(SQLModel, table=True):
    """A single line of an `Order`; price and discount are snapshots."""
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key='orders.id', index=True)
    product_item_id: int = Field(foreign_key='productitem.id')
    amount: int
    price: float
    discount: float = 0.0
    is_reviewed: bool = False
    order: Optional[Order] = Relationship(back_populates='items')


class Review(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    order_item_id: int = Field(foreign_key='orderitem.id', unique=True)
    rating: int
    comment: Optional[str] = None
    status: Status = Field(default=Status.ACTIVE)
    create_at: datetime = Field(default_factory=utcnow)


class Transaction(SQLModel, table=True):
    """A VNPay payment or refund recorded against an order.

    `amount` is stored in VND (not the x100 gateway unit).
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key='orders.id', index=True)
    amount: float
    transaction_no: Optional[str] = None
    txn_ref: Optional[str] = None
    command: TransactionCommand = Field(default=TransactionCommand.PAY)
    pay_date: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Conversation(SQLModel, table=True):
    """A support chat thread owned by one customer (the host)."""
    id: Optional[int] = Field(default=None, primary_key=True)
    host_id: int = Field(foreign_key='user.id', unique=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ChatMessage(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    conversation_id: int = Field(foreign_key='conversation.id', index=True)
    sender_id: int = Field(foreign_key='user.id')
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class FavoriteProduct(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key='user.id', index=True)
    product_id: int = Field(foreign_key='product.id')


class ForgotPassword(SQLModel, table=True):
    """A one-time password issued for the password reset flow."""
    id: Optional[int] = Field(default=None, primary_key=True)
    otp: int
    expiration_time: datetime
    user_id: int = Field(foreign_key='user.id', index=True)
    verified: bool = False
