"""Catalog services: categories, brands, product types, products and
their priced items."""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from .. import models, repositories
from ..constants import RespCode
from ..exceptions import CoffeeShopException
from ..utils.image_storage import ImageStorage, ImageStorageError
from . import is_blank, isoformat, require_text

logger = logging.getLogger("coffee_shop.catalog")


def save_or_fail(session: Session, repo, obj, message: str):
    """Persist `obj`; database failures become SYSTEM_ERROR with `message`."""
    try:
        return repo.save(obj)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("%s", message)
        raise CoffeeShopException(RespCode.SYSTEM_ERROR, message) from exc


def category_to_dict(category: models.Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "default_image_url": category.default_image_url,
        "status": category.status.value,
    }


def named_to_dict(obj) -> dict:
    return {"id": obj.id, "name": obj.name, "status": obj.status.value}


def product_item_to_dict(item: models.ProductItem, type_name: Optional[str] = None) -> dict:
    return {
        "id": item.id,
        "product_id": item.product_id,
        "type_id": item.type_id,
        "type_name": type_name,
        "price": item.price,
        "stock": item.stock,
        "discount": item.discount,
        "status": item.status.value,
    }


class CategoryService:
    def __init__(self, session: Session, storage: Optional[ImageStorage] = None):
        self.session = session
        self.repo = repositories.CategoryRepository(session)
        self.storage = storage or ImageStorage()

    def get_all_categories(self) -> list:
        return [category_to_dict(c) for c in self.repo.list_by_status(models.Status.ACTIVE)]

    def _load(self, category_id: int) -> models.Category:
        category = self.repo.get(category_id)
        if not category:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "Category not found", ["category_id"])
        return category

    def get_category_by_id(self, category_id: int) -> dict:
        category = self._load(category_id)
        if category.status != models.Status.ACTIVE:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Category not active", ["category_id"])
        return category_to_dict(category)

    def _upload(self, image: Optional[tuple]) -> Optional[str]:
        if not image:
            return None
        payload, filename = image
        try:
            return self.storage.upload(payload, filename, "Category")["secure_url"]
        except ImageStorageError as exc:
            raise CoffeeShopException(RespCode.SYSTEM_ERROR, "Error when upload image") from exc

    def add_category(self, name, description=None, image: Optional[tuple] = None) -> dict:
        """Create a category; `image` is an optional `(bytes, filename)` pair."""
        name = require_text(name, "name", "Category name must be not null")
        if self.repo.get_by_name(name):
            raise CoffeeShopException(RespCode.FIELD_EXISTED, "Category name is duplicate", ["name"])
        category = models.Category(name=name, description=description, default_image_url=self._upload(image))
        return category_to_dict(save_or_fail(self.session, self.repo, category, "Error when add category"))

    def update_category(self, category_id: int, name=None, description=None, image: Optional[tuple] = None) -> dict:
        category = self._load(category_id)
        if not is_blank(name):
            name = name.strip()
            existing = self.repo.get_by_name(name)
            if existing and existing.id != category.id:
                raise CoffeeShopException(RespCode.FIELD_EXISTED, "Category name is duplicate", ["name"])
            category.name = name
        if description is not None:
            category.description = description
        uploaded = self._upload(image)
        if uploaded:
            category.default_image_url = uploaded
        return category_to_dict(save_or_fail(self.session, self.repo, category, "Could not update category"))

    def delete_category(self, category_id: int) -> None:
        category = self._load(category_id)
        category.status = models.Status.INACTIVE
        save_or_fail(self.session, self.repo, category, "Could not delete category")


class BrandService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.BrandRepository(session)

    def get_all_brands(self) -> list:
        return [named_to_dict(b) for b in self.repo.list_by_status(models.Status.ACTIVE)]

    def add_brand(self, name) -> dict:
        name = require_text(name, "name", "Brand name must be not null")
        if self.repo.get_by_name(name):
            raise CoffeeShopException(RespCode.FIELD_EXISTED, "Brand name is duplicate", ["name"])
        return named_to_dict(save_or_fail(self.session, self.repo, models.Brand(name=name), "Error when add brand"))

    def _load(self, brand_id: int) -> models.Brand:
        brand = self.repo.get(brand_id)
        if not brand:
            raise CoffeeShopException(RespCode.NOT_FOUND, "Brand not found", ["brand_id"])
        return brand

    def update_brand(self, brand_id: int, name) -> dict:
        brand = self._load(brand_id)
        name = require_text(name, "name", "Brand name must be not null")
        existing = self.repo.get_by_name(name)
        if existing and existing.id != brand.id:
            raise CoffeeShopException(RespCode.FIELD_EXISTED, "Brand name is duplicate", ["name"])
        brand.name = name
        return named_to_dict(save_or_fail(self.session, self.repo, brand, "Could not update brand"))

    def delete_brand(self, brand_id: int) -> None:
        brand = self._load(brand_id)
        brand.status = models.Status.INACTIVE
        save_or_fail(self.session, self.repo, brand, "Could not delete brand")


class TypeProductService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.TypeProductRepository(session)

    def get_all_type_products(self) -> list:
        return [named_to_dict(t) for t in self.repo.list_by_status(models.Status.ACTIVE)]

    def add_type_product(self, name) -> dict:
        name = require_text(name, "name", "Type product name must be not null")
        if self.repo.get_by_name(name):
            raise CoffeeShopException(RespCode.FIELD_EXISTED, "Type product name is duplicate", ["name"])
        return named_to_dict(save_or_fail(self.session, self.repo, models.TypeProduct(name=name), "Error when add type product"))


class ProductService:
    """Product CRUD, search, images and the aggregated product view."""
    def __init__(self, session: Session, storage: Optional[ImageStorage] = None):
        self.session = session
        self.repo = repositories.ProductRepository(session)
        self.image_repo = repositories.ImageRepository(session)
        self.category_repo = repositories.CategoryRepository(session)
        self.brand_repo = repositories.BrandRepository(session)
        self.storage = storage or ImageStorage()

    def to_response(self, product: models.Product) -> dict:
        """Product with images, rating, review count, units sold and price range."""
        try:
            rating = self.repo.average_rating(product.id)
            min_price, max_price = self.repo.price_range(product.id)
            return {
                "id": product.id,
                "name": product.name,
                "description": product.description,
                "category_id": product.category_id,
                "brand_id": product.brand_id,
                "status": product.status.value,
                "created_at": isoformat(product.created_at),
                "images": [{"id": i.id, "url": i.url} for i in self.image_repo.list_for_product(product.id)],
                "rating": round(float(rating), 2) if rating is not None else 0.0,
                "total_review": int(self.repo.count_reviews(product.id)),
                "total_sold": int(self.repo.total_sold(product.id)),
                "min_price": float(min_price) if min_price is not None else 0.0,
                "max_price": float(max_price) if max_price is not None else 0.0,
            }
        except SQLAlchemyError as exc:
            raise CoffeeShopException(RespCode.SYSTEM_ERROR, "Error when get product response") from exc

    def get_all_products(self) -> list:
        return [self.to_response(p) for p in self.repo.list_by_status(models.Status.ACTIVE)]

    def _load(self, product_id: int) -> models.Product:
        product = self.repo.get(product_id)
        if not product:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "Product not found", ["product_id"])
        return product

    def get_product_by_id(self, product_id: int) -> dict:
        product = self._load(product_id)
        if product.status != models.Status.ACTIVE:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Product not active", ["product_id"])
        return self.to_response(product)

    def get_products_by_category_id(self, category_id: int) -> list:
        try:
            products = self.repo.list_by_category(category_id, models.Status.ACTIVE)
        except SQLAlchemyError as exc:
            raise CoffeeShopException(RespCode.SYSTEM_ERROR, "Error when get products by category") from exc
        return [self.to_response(p) for p in products]

    def search_products_by_keyword(self, keyword) -> list:
        keyword = require_text(keyword, "keyword", "Keyword must be not null")
        products = self.repo.search(keyword, models.Status.ACTIVE)
        if not products:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "No product matches the keyword", ["keyword"])
        return [self.to_response(p) for p in products]

    def _check_refs(self, category_id, brand_id, not_found_suffix: str = " id not found") -> None:
        category = self.category_repo.get(category_id) if category_id else None
        if not category:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, f"Category{not_found_suffix}", ["category_id"])
        if brand_id is not None and not self.brand_repo.get(brand_id):
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, f"Brand{not_found_suffix}", ["brand_id"])

    def add_product(self, name, description=None, category_id=None, brand_id=None) -> dict:
        name = require_text(name, "name", "Product name must be not null")
        self._check_refs(category_id, brand_id)
        product = models.Product(name=name, description=description, category_id=category_id, brand_id=brand_id)
        product = save_or_fail(self.session, self.repo, product, "Error when add product")
        logger.info("product created id=%s", product.id)
        return self.to_response(product)

    def update_product(self, product_id: int, name=None, description=None, category_id=None, brand_id=None) -> dict:
        product = self._load(product_id)
        if category_id is not None or brand_id is not None:
            self._check_refs(category_id or product.category_id, brand_id, " not found")
        if not is_blank(name):
            product.name = name.strip()
        if description is not None:
            product.description = description
        if category_id is not None:
            product.category_id = category_id
        if brand_id is not None:
            product.brand_id = brand_id
        return self.to_response(save_or_fail(self.session, self.repo, product, "Could not update product"))

    def delete_product(self, product_id: int) -> None:
        product = self._load(product_id)
        product.status = models.Status.INACTIVE
        save_or_fail(self.session, self.repo, product, "Could not delete product")

    def upload_image(self, product_id: int, payload: bytes, filename: str) -> dict:
        product = self._load(product_id)
        try:
            uploaded = self.storage.upload(payload, filename, "Product")
        except ImageStorageError as exc:
            raise CoffeeShopException(RespCode.SYSTEM_ERROR, "Error when upload image") from exc
        image = self.image_repo.save(models.Image(url=uploaded["secure_url"], product_id=product.id))
        return {"id": image.id, "url": image.url, "product_id": image.product_id}

    def delete_image(self, image_id: int) -> None:
        image = self.image_repo.get(image_id)
        if not image:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "Image not found", ["image_id"])
        try:
            self.storage.delete(image.url)
        except (ValueError, ImageStorageError):
            # rows pointing at foreign or already-removed files are still deleted
            logger.warning("could not remove stored file for image id=%s url=%s", image.id, image.url)
        self.image_repo.delete(image)


class ProductItemService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.ProductItemRepository(session)
        self.product_repo = repositories.ProductRepository(session)
        self.type_repo = repositories.TypeProductRepository(session)

    def _to_dict(self, item: models.ProductItem) -> dict:
        type_product = self.type_repo.get(item.type_id)
        return product_item_to_dict(item, type_product.name if type_product else None)

    def _validate(self, product_id: int, type_id: int, price: float, stock: int, discount: float) -> None:
        if product_id is None or product_id <= 0:
            raise CoffeeShopException(RespCode.FIELD_NOT_NULL, "Product id must be greater than 0", ["product_id"])
        if type_id is None or type_id <= 0:
            raise CoffeeShopException(RespCode.FIELD_NOT_NULL, "Type id must be greater than 0", ["type_id"])
        if price < 0:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Price can not be negative", ["price"])
        if stock < 0:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Stock can not be negative", ["stock"])
        if discount < 0:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Discount can not be negative", ["discount"])
        if discount > price:
            raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Discount can not be greater than price", ["discount"])
        if not self.product_repo.get(product_id):
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "Product id not found", ["product_id"])
        if not self.type_repo.get(type_id):
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "Type id not found", ["type_id"])

    def add_product_item(self, product_id: int, type_id: int, price: float, stock: int, discount: float = 0.0) -> dict:
        self._validate(product_id, type_id, price, stock, discount)
        if self.repo.exists_by_product_id_and_type_id(product_id, type_id):
            raise CoffeeShopException(RespCode.FIELD_EXISTED, "Product item already exists for this type", ["type_id"])
        item = models.ProductItem(product_id=product_id, type_id=type_id, price=price, stock=stock, discount=discount)
        return self._to_dict(save_or_fail(self.session, self.repo, item, "Error when add product item"))

    def _load(self, item_id: int) -> models.ProductItem:
        item = self.repo.get(item_id)
        if not item:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "ProductItem not found", ["product_item_id"])
        return item

    def update_product_item(self, item_id: int, product_id: int, type_id: int, price: float, stock: int, discount: float = 0.0) -> dict:
        item = self._load(item_id)
        self._validate(product_id, type_id, price, stock, discount)
        if self.repo.exists_by_product_id_and_type_id(product_id, type_id, exclude_id=item.id):
            raise CoffeeShopException(RespCode.FIELD_EXISTED, "Product item already exists for this type", ["type_id"])
        item.product_id = product_id
        item.type_id = type_id
        item.price = price
        item.stock = stock
        item.discount = discount
        return self._to_dict(save_or_fail(self.session, self.repo, item, "Could not update product item"))

    def delete_product_item(self, item_id: int) -> None:
        item = self._load(item_id)
        item.status = models.Status.INACTIVE
        save_or_fail(self.session, self.repo, item, "Could not delete product item")

    def get_product_items(self, product_id: int) -> list:
        return [self._to_dict(i) for i in self.repo.list_for_product(product_id, models.Status.ACTIVE)]
