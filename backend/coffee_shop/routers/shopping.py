"""Cart, shipping address and favorite product endpoints for the current user."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from .. import models
from ..auth import get_current_user
from ..database import get_session
from ..schemas import CartItemIn, FavoriteIn, ShippingAddressIn
from ..services.shopping import CartService, FavoriteProductService, ShippingAddressService
from . import ok

router = APIRouter(tags=["shopping"])


@router.get("/cart")
def get_cart(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return ok(CartService(db).get_cart_items(user.id))


@router.post("/cart")
def add_to_cart(payload: CartItemIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Add a product item to the cart, merging with an existing line."""
    return ok(CartService(db).add_cart_item(user.id, payload.product_item_id, payload.quantity))


@router.put("/cart")
def update_cart(payload: CartItemIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return ok(CartService(db).update_cart_item(user.id, payload.product_item_id, payload.quantity))


@router.delete("/cart/{cart_item_id}")
def delete_cart_item(cart_item_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    CartService(db).delete_cart_item(user.id, cart_item_id)
    return ok()


@router.get("/shipping-addresses")
def list_addresses(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return ok(ShippingAddressService(db).get_shipping_addresses(user.id))


@router.post("/shipping-addresses")
def add_address(payload: ShippingAddressIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    svc = ShippingAddressService(db)
    return ok(svc.add_shipping_address(user.id, payload.receiver_name, payload.receiver_phone, payload.location))


@router.put("/shipping-addresses/{address_id}")
def update_address(address_id: int, payload: ShippingAddressIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    svc = ShippingAddressService(db)
    return ok(svc.update_shipping_address(user.id, address_id, payload.receiver_name, payload.receiver_phone,
                                          payload.location, payload.status))


@router.delete("/shipping-addresses/{address_id}")
def delete_address(address_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    ShippingAddressService(db).delete_shipping_address(user.id, address_id)
    return ok()


@router.get("/favorites")
def list_favorites(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return ok(FavoriteProductService(db).get_favorite_products(user.id))


@router.post("/favorites")
def add_favorite(payload: FavoriteIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    return ok(FavoriteProductService(db).add_favorite_product(user.id, payload.product_id))


@router.delete("/favorites/{product_id}")
def remove_favorite(product_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    FavoriteProductService(db).remove_favorite_product(user.id, product_id)
    return ok()
