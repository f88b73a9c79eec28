"""Catalog endpoints: categories, brands, product types, products and
product items. Reads are public; writes require an administrator."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlmodel import Session

from .. import models
from ..auth import require_admin
from ..database import get_session
from ..schemas import NameIn, ProductIn, ProductItemIn
from ..services.catalog import (BrandService, CategoryService, ProductItemService, ProductService,
                                TypeProductService)
from ..utils.image_storage import ImageStorage, get_image_storage
from . import ok, read_upload

router = APIRouter(tags=["catalog"])


@router.get("/categories")
def list_categories(db: Session = Depends(get_session)):
    return ok(CategoryService(db).get_all_categories())


@router.get("/categories/{category_id}")
def get_category(category_id: int, db: Session = Depends(get_session)):
    return ok(CategoryService(db).get_category_by_id(category_id))


@router.post("/categories")
def add_category(
    name: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    image: Optional[UploadFile] = File(default=None),
    db: Session = Depends(get_session),
    storage: ImageStorage = Depends(get_image_storage),
    admin: models.User = Depends(require_admin),
):
    """Create a category from a multipart form with an optional cover image."""
    upload = read_upload(image) if image is not None and image.filename else None
    return ok(CategoryService(db, storage).add_category(name, description, upload))


@router.put("/categories/{category_id}")
def update_category(
    category_id: int,
    name: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    image: Optional[UploadFile] = File(default=None),
    db: Session = Depends(get_session),
    storage: ImageStorage = Depends(get_image_storage),
    admin: models.User = Depends(require_admin),
):
    upload = read_upload(image) if image is not None and image.filename else None
    return ok(CategoryService(db, storage).update_category(category_id, name, description, upload))


@router.delete("/categories/{category_id}")
def delete_category(category_id: int, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    CategoryService(db).delete_category(category_id)
    return ok()


@router.get("/brands")
def list_brands(db: Session = Depends(get_session)):
    return ok(BrandService(db).get_all_brands())


@router.post("/brands")
def add_brand(payload: NameIn, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(BrandService(db).add_brand(payload.name))


@router.put("/brands/{brand_id}")
def update_brand(brand_id: int, payload: NameIn, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(BrandService(db).update_brand(brand_id, payload.name))


@router.delete("/brands/{brand_id}")
def delete_brand(brand_id: int, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    BrandService(db).delete_brand(brand_id)
    return ok()


@router.get("/type-products")
def list_type_products(db: Session = Depends(get_session)):
    return ok(TypeProductService(db).get_all_type_products())


@router.post("/type-products")
def add_type_product(payload: NameIn, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(TypeProductService(db).add_type_product(payload.name))


@router.get("/products")
def list_products(db: Session = Depends(get_session)):
    """Active products with images, rating, sales and price range."""
    return ok(ProductService(db).get_all_products())


@router.get("/products/search")
def search_products(keyword: Optional[str] = None, db: Session = Depends(get_session)):
    return ok(ProductService(db).search_products_by_keyword(keyword))


@router.get("/products/category/{category_id}")
def products_by_category(category_id: int, db: Session = Depends(get_session)):
    return ok(ProductService(db).get_products_by_category_id(category_id))


@router.get("/products/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_session)):
    return ok(ProductService(db).get_product_by_id(product_id))


@router.post("/products")
def add_product(payload: ProductIn, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    svc = ProductService(db)
    return ok(svc.add_product(payload.name, payload.description, payload.category_id, payload.brand_id))


@router.put("/products/{product_id}")
def update_product(product_id: int, payload: ProductIn, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    svc = ProductService(db)
    return ok(svc.update_product(product_id, payload.name, payload.description, payload.category_id, payload.brand_id))


@router.delete("/products/{product_id}")
def delete_product(product_id: int, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    ProductService(db).delete_product(product_id)
    return ok()


@router.post("/products/{product_id}/images")
def upload_product_image(
    product_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_session),
    storage: ImageStorage = Depends(get_image_storage),
    admin: models.User = Depends(require_admin),
):
    payload, filename = read_upload(file)
    return ok(ProductService(db, storage).upload_image(product_id, payload, filename))


@router.delete("/products/images/{image_id}")
def delete_product_image(
    image_id: int,
    db: Session = Depends(get_session),
    storage: ImageStorage = Depends(get_image_storage),
    admin: models.User = Depends(require_admin),
):
    ProductService(db, storage).delete_image(image_id)
    return ok()


@router.get("/product-items/product/{product_id}")
def list_product_items(product_id: int, db: Session = Depends(get_session)):
    return ok(ProductItemService(db).get_product_items(product_id))


@router.post("/product-items")
def add_product_item(payload: ProductItemIn, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    svc = ProductItemService(db)
    return ok(svc.add_product_item(payload.product_id, payload.type_id, payload.price, payload.stock, payload.discount))


@router.put("/product-items/{item_id}")
def update_product_item(item_id: int, payload: ProductItemIn, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    svc = ProductItemService(db)
    return ok(svc.update_product_item(item_id, payload.product_id, payload.type_id, payload.price, payload.stock, payload.discount))


@router.delete("/product-items/{item_id}")
def delete_product_item(item_id: int, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    ProductItemService(db).delete_product_item(item_id)
    return ok()
