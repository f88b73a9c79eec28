"""Pydantic request schemas used by the API.

Schemas keep API input shapes stable. Most fields are optional on
purpose: presence and range checks are done by the services so that a
missing value produces the same coded error whether it comes over HTTP
or from a script.
"""

from pydantic import BaseModel, Field
from typing import List, Optional

from .models import PaymentMethod, Status


class LoginIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RegisterIn(BaseModel):
    """Payload for user registration."""
    email: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None


class RefreshIn(BaseModel):
    refresh_token: str


class ChangePasswordIn(BaseModel):
    old_password: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None


class NameIn(BaseModel):
    """Body for resources identified only by a name (brands, product types)."""
    name: Optional[str] = None


class ProductIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[int] = None
    brand_id: Optional[int] = None


class ProductItemIn(BaseModel):
    product_id: int = 0
    type_id: int = 0
    price: float = 0.0
    stock: int = 0
    discount: float = 0.0


class CartItemIn(BaseModel):
    product_item_id: int
    quantity: int = 1


class ShippingAddressIn(BaseModel):
    receiver_name: Optional[str] = None
    receiver_phone: Optional[str] = None
    location: Optional[str] = None
    status: Optional[Status] = None


class OrderItemIn(BaseModel):
    product_item_id: int
    amount: int


class OrderIn(BaseModel):
    """Checkout request: where to ship, how to pay and what to buy."""
    shipping_address_id: int
    payment_method: PaymentMethod = PaymentMethod.COD
    items: List[OrderItemIn] = Field(default_factory=list)


class ReviewIn(BaseModel):
    order_item_id: int
    rating: int
    comment: Optional[str] = None


class FavoriteIn(BaseModel):
    product_id: int


class ChatMessageIn(BaseModel):
    content: Optional[str] = None


class UserInfoIn(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    profile_img: Optional[str] = None


class ProfileUpdateIn(BaseModel):
    """Partial profile update; the password changes only when both match."""
    name: Optional[str] = None
    phone: Optional[str] = None
    profile_img: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None


class TransactionIn(BaseModel):
    order_id: int
    amount: float
    transaction_no: Optional[str] = None
    pay_date: Optional[str] = None
    txn_ref: Optional[str] = None


class VerifyEmailIn(BaseModel):
    email: Optional[str] = None


class VerifyOtpIn(BaseModel):
    email: Optional[str] = None
    otp: Optional[int] = None


class ResetPasswordIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    repeat_password: Optional[str] = None
