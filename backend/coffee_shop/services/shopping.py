"""Per-customer shopping state: cart, shipping addresses and favorites."""

from typing import Optional

from sqlmodel import Session

from .. import models, repositories
from ..constants import RespCode
from ..exceptions import CoffeeShopException
from . import is_blank, require_text
from .catalog import ProductService


class CartService:
    """Cart lines are unique per (user, product item); quantity never exceeds stock."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.CartItemRepository(session)
        self.item_repo = repositories.ProductItemRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def _to_dict(self, cart_item: models.CartItem) -> dict:
        item = self.item_repo.get(cart_item.product_item_id)
        product = self.session.get(models.Product, item.product_id) if item else None
        type_product = self.session.get(models.TypeProduct, item.type_id) if item else None
        images = repositories.ImageRepository(self.session).list_for_product(product.id) if product else []
        return {
            "id": cart_item.id,
            "user_id": cart_item.user_id,
            "product_item_id": cart_item.product_item_id,
            "quantity": cart_item.quantity,
            "product_id": product.id if product else None,
            "product_name": product.name if product else None,
            "product_image": images[0].url if images else None,
            "type_name": type_product.name if type_product else None,
            "price": item.price if item else None,
            "discount": item.discount if item else None,
            "stock": item.stock if item else None,
        }

    def _load_item(self, product_item_id: int) -> models.ProductItem:
        item = self.item_repo.get(product_item_id)
        if not item or item.status != models.Status.ACTIVE:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "Product item not found", ["product_item_id"])
        return item

    def add_cart_item(self, user_id: int, product_item_id: int, quantity: int) -> dict:
        """Add `quantity` of a product item, merging with an existing line."""
        if quantity is None or quantity <= 0:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Quantity must be greater than 0", ["quantity"])
        if user_id is None or user_id <= 0:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "User id must be greater than 0", ["user_id"])
        if product_item_id is None or product_item_id <= 0:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Product item id must be greater than 0", ["product_item_id"])
        item = self._load_item(product_item_id)
        if not self.user_repo.get(user_id):
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "User not found", ["user_id"])
        line = self.repo.get_by_user_and_product_item(user_id, product_item_id)
        new_quantity = quantity + (line.quantity if line else 0)
        if new_quantity > item.stock:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Quantity exceeds stock", ["quantity"])
        if line:
            line.quantity = new_quantity
        else:
            line = models.CartItem(user_id=user_id, product_item_id=product_item_id, quantity=quantity)
        return self._to_dict(self.repo.save(line))

    def get_cart_items(self, user_id: int) -> list:
        if user_id is None or user_id <= 0:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "User id must be greater than 0", ["user_id"])
        return [self._to_dict(c) for c in self.repo.list_for_user(user_id)]

    def update_cart_item(self, user_id: int, product_item_id: int, quantity: int) -> dict:
        """Set the quantity of an existing line."""
        if quantity is None or quantity <= 0:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Quantity must be greater than 0", ["quantity"])
        line = self.repo.get_by_user_and_product_item(user_id, product_item_id)
        if not line:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "Cart item not found", ["product_item_id"])
        item = self._load_item(product_item_id)
        if quantity > item.stock:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Quantity exceeds stock", ["quantity"])
        line.quantity = quantity
        return self._to_dict(self.repo.save(line))

    def delete_cart_item(self, user_id: int, cart_item_id: int) -> None:
        line = self.repo.get(cart_item_id)
        if not line or line.user_id != user_id:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "Cart item not found", ["cart_item_id"])
        self.repo.delete(line)


def address_to_dict(address: models.ShippingAddress) -> dict:
    return {
        "id": address.id,
        "user_id": address.user_id,
        "receiver_name": address.receiver_name,
        "receiver_phone": address.receiver_phone,
        "location": address.location,
        "status": address.status.value,
    }


class ShippingAddressService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.ShippingAddressRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def add_shipping_address(self, user_id: int, receiver_name, receiver_phone, location) -> dict:
        if not self.user_repo.get(user_id):
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "User not found", ["user_id"])
        address = models.ShippingAddress(
            user_id=user_id,
            receiver_name=require_text(receiver_name, "receiver_name", "Receiver name must be not null"),
            receiver_phone=require_text(receiver_phone, "receiver_phone", "Receiver phone must be not null"),
            location=require_text(location, "location", "Location must be not null"),
        )
        return address_to_dict(self.repo.save(address))

    def _load_owned(self, user_id: int, address_id: int) -> models.ShippingAddress:
        address = self.repo.get(address_id)
        if not address or address.user_id != user_id:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "Shipping address not found", ["shipping_address_id"])
        return address

    def update_shipping_address(self, user_id: int, address_id: int, receiver_name=None, receiver_phone=None,
                                location=None, status: Optional[models.Status] = None) -> dict:
        address = self._load_owned(user_id, address_id)
        if not is_blank(receiver_name):
            address.receiver_name = receiver_name.strip()
        if not is_blank(receiver_phone):
            address.receiver_phone = receiver_phone.strip()
        if not is_blank(location):
            address.location = location.strip()
        if status is not None:
            address.status = status
        return address_to_dict(self.repo.save(address))

    def delete_shipping_address(self, user_id: int, address_id: int) -> None:
        address = self._load_owned(user_id, address_id)
        address.status = models.Status.INACTIVE
        self.repo.save(address)

    def get_shipping_addresses(self, user_id: int) -> list:
        return [address_to_dict(a) for a in self.repo.list_for_user(user_id, models.Status.ACTIVE)]


class FavoriteProductService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.FavoriteProductRepository(session)
        self.product_repo = repositories.ProductRepository(session)

    def get_favorite_products(self, user_id: int) -> list:
        if user_id is None or user_id <= 0:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "User id must be greater than 0", ["user_id"])
        products = ProductService(self.session)
        out = []
        for favorite in self.repo.list_for_user(user_id):
            product = self.product_repo.get(favorite.product_id)
            if product and product.status == models.Status.ACTIVE:
                out.append(products.to_response(product))
        return out

    def add_favorite_product(self, user_id: int, product_id: int) -> dict:
        product = self.product_repo.get(product_id)
        if not product or product.status != models.Status.ACTIVE:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "Product not found", ["product_id"])
        if self.repo.get_by_user_and_product(user_id, product_id):
            raise CoffeeShopException(RespCode.FIELD_EXISTED, "Product already in favorites", ["product_id"])
        favorite = self.repo.save(models.FavoriteProduct(user_id=user_id, product_id=product_id))
        return {"id": favorite.id, "user_id": favorite.user_id, "product_id": favorite.product_id}

    def remove_favorite_product(self, user_id: int, product_id: int) -> None:
        favorite = self.repo.get_by_user_and_product(user_id, product_id)
        if not favorite:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "Favorite product not found", ["product_id"])
        self.repo.delete(favorite)
