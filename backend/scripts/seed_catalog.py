"""CLI script to load a catalog JSON file into the backend DB.

Usage: python scripts/seed_catalog.py catalog.json [--dry-run]

The file holds `categories`, `brands`, `types` and `products` lists.
Each product names its category, brand and items by name, e.g.::

    {"name": "Espresso", "category": "Coffee", "brand": "House",
     "items": [{"type": "Small", "price": 30000, "stock": 50}]}

Existing rows (matched by name) are reused, so running the script twice
does not duplicate the catalog.
"""
import sys
import json
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `coffee_shop` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from coffee_shop import repositories
from coffee_shop.database import engine, create_db_and_tables
from coffee_shop.exceptions import CoffeeShopException
from coffee_shop.services.account import initialize_data
from coffee_shop.services.catalog import (BrandService, CategoryService, ProductItemService, ProductService,
                                          TypeProductService)


def _ensure(lookup, create, name, counters, key):
    existing = lookup(name)
    if existing:
        counters["skipped"] += 1
        return existing.id
    counters[key] += 1
    return create(name)["id"]


def seed(session: Session, catalog: dict) -> dict:
    """Insert the catalog through the services and return per-kind counters."""
    counters = {"categories": 0, "brands": 0, "types": 0, "products": 0, "items": 0, "skipped": 0, "errors": []}
    category_repo = repositories.CategoryRepository(session)
    brand_repo = repositories.BrandRepository(session)
    type_repo = repositories.TypeProductRepository(session)
    categories, brands, types = CategoryService(session), BrandService(session), TypeProductService(session)
    products, items = ProductService(session), ProductItemService(session)

    category_ids = {}
    for entry in catalog.get("categories", []):
        category_ids[entry["name"]] = _ensure(
            category_repo.get_by_name,
            lambda n, e=entry: categories.add_category(n, e.get("description")),
            entry["name"], counters, "categories",
        )
    brand_ids = {n: _ensure(brand_repo.get_by_name, brands.add_brand, n, counters, "brands") for n in catalog.get("brands", [])}
    type_ids = {n: _ensure(type_repo.get_by_name, types.add_type_product, n, counters, "types") for n in catalog.get("types", [])}

    existing_products = {p.name: p.id for p in repositories.ProductRepository(session).list_all()}
    for entry in catalog.get("products", []):
        if entry["name"] in existing_products:
            counters["skipped"] += 1
            continue
        try:
            product = products.add_product(entry["name"], entry.get("description"),
                                           category_ids.get(entry.get("category")), brand_ids.get(entry.get("brand")))
            counters["products"] += 1
            for item in entry.get("items", []):
                items.add_product_item(product["id"], type_ids.get(item.get("type"), 0),
                                       item.get("price", 0), item.get("stock", 0), item.get("discount", 0))
                counters["items"] += 1
        except CoffeeShopException as e:
            counters["errors"].append({"product": entry["name"], "error": e.message})
    return counters


def main(path: pathlib.Path, dry_run: bool = False):
    """Load `path` and seed it; `dry_run` only reports what the file contains."""
    catalog = json.loads(path.read_text(encoding="utf-8"))
    create_db_and_tables()
    with Session(engine) as session:
        initialize_data(session)
        if dry_run:
            print(f"Would import {len(catalog.get('products', []))} products from {path}")
            return
        result = seed(session, catalog)
    print(f"Created {result['categories']} categories, {result['brands']} brands, {result['types']} types, "
          f"{result['products']} products, {result['items']} items; skipped {result['skipped']}")
    for err in result["errors"]:
        print(f"Error importing {err['product']}: {err['error']}")


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('path', type=pathlib.Path, help='Catalog JSON file')
    parser.add_argument('--dry-run', action='store_true', help='Only report what would be imported')
    args = parser.parse_args()
    main(args.path, dry_run=args.dry_run)
