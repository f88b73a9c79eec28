from conftest import make_png
from coffee_shop.config import settings


def test_category_crud_and_soft_delete(client, admin_headers):
    r = client.post("/categories", data={"name": "Tea", "description": "Leaves"}, headers=admin_headers)
    assert r.status_code == 200
    category = r.json()["data"]
    assert category["status"] == "ACTIVE"
    assert category["default_image_url"] is None

    dup = client.post("/categories", data={"name": "Tea"}, headers=admin_headers)
    assert dup.status_code == 409
    assert dup.json()["data"] == "Category name is duplicate"

    upd = client.put(f"/categories/{category['id']}", data={"description": "Green and black"}, headers=admin_headers)
    assert upd.json()["data"]["description"] == "Green and black"
    assert upd.json()["data"]["name"] == "Tea"

    assert client.delete(f"/categories/{category['id']}", headers=admin_headers).status_code == 200
    assert client.get("/categories").json()["data"] == []
    inactive = client.get(f"/categories/{category['id']}")
    assert inactive.status_code == 400
    assert inactive.json()["data"] == "Category not active"

    missing = client.get("/categories/999")
    assert missing.status_code == 404
    assert missing.json()["resp_code"] == "003"


def test_category_with_image_is_stored(client, admin_headers):
    files = {"image": ("cover.png", make_png(), "image/png")}
    r = client.post("/categories", data={"name": "Cakes"}, files=files, headers=admin_headers)
    assert r.status_code == 200, r.text
    url = r.json()["data"]["default_image_url"]
    assert url.startswith(settings.MEDIA_BASE_URL + "/upload/v")
    assert "/Category/" in url
    assert url.endswith(".png")


def test_category_requires_name_and_admin(client, admin_headers, user_headers):
    assert client.post("/categories", data={"description": "x"}, headers=admin_headers).json()["resp_code"] == "001"
    assert client.post("/categories", data={"name": "x"}, headers=user_headers).status_code == 403
    assert client.post("/categories", data={"name": "x"}).status_code == 401


def test_brand_and_type_product(client, admin_headers):
    brand = client.post("/brands", json={"name": "Roastery"}, headers=admin_headers).json()["data"]
    assert client.post("/brands", json={"name": "Roastery"}, headers=admin_headers).status_code == 409
    assert client.post("/brands", json={}, headers=admin_headers).json()["resp_code"] == "001"

    renamed = client.put(f"/brands/{brand['id']}", json={"name": "Roastery Co"}, headers=admin_headers)
    assert renamed.json()["data"]["name"] == "Roastery Co"
    missing = client.put("/brands/999", json={"name": "x"}, headers=admin_headers)
    assert missing.status_code == 404
    assert missing.json()["resp_code"] == "005"

    assert client.delete(f"/brands/{brand['id']}", headers=admin_headers).status_code == 200
    assert client.get("/brands").json()["data"] == []

    client.post("/type-products", json={"name": "Small"}, headers=admin_headers)
    assert [t["name"] for t in client.get("/type-products").json()["data"]] == ["Small"]
    assert client.post("/type-products", json={"name": "Small"}, headers=admin_headers).status_code == 409


def test_product_response_aggregates(client, catalog):
    product = client.get(f"/products/{catalog['product']['id']}").json()["data"]
    assert product["name"] == "Espresso"
    assert product["images"] == []
    assert product["rating"] == 0.0
    assert product["total_review"] == 0
    assert product["total_sold"] == 0
    assert product["min_price"] == 50000
    assert product["max_price"] == 50000


def test_price_range_spans_items(client, admin_headers, catalog):
    small = client.post("/type-products", json={"name": "Small"}, headers=admin_headers).json()["data"]
    client.post("/product-items", json={
        "product_id": catalog["product"]["id"], "type_id": small["id"], "price": 30000, "stock": 5,
    }, headers=admin_headers)
    product = client.get(f"/products/{catalog['product']['id']}").json()["data"]
    assert (product["min_price"], product["max_price"]) == (30000, 50000)


def test_product_validation(client, admin_headers, catalog):
    no_name = client.post("/products", json={"category_id": catalog["category"]["id"]}, headers=admin_headers)
    assert no_name.json()["resp_code"] == "001"

    bad_category = client.post("/products", json={"name": "Latte", "category_id": 999}, headers=admin_headers)
    assert bad_category.status_code == 404
    assert bad_category.json()["data"] == "Category id not found"

    bad_brand = client.post("/products", json={
        "name": "Latte", "category_id": catalog["category"]["id"], "brand_id": 999,
    }, headers=admin_headers)
    assert bad_brand.json()["data"] == "Brand id not found"

    upd = client.put(f"/products/{catalog['product']['id']}", json={"category_id": 999}, headers=admin_headers)
    assert upd.json()["data"] == "Category not found"


def test_product_update_delete_and_category_listing(client, admin_headers, catalog):
    pid = catalog["product"]["id"]
    r = client.put(f"/products/{pid}", json={"name": "Double Espresso"}, headers=admin_headers)
    assert r.json()["data"]["name"] == "Double Espresso"

    listed = client.get(f"/products/category/{catalog['category']['id']}").json()["data"]
    assert [p["id"] for p in listed] == [pid]

    client.delete(f"/products/{pid}", headers=admin_headers)
    assert client.get("/products").json()["data"] == []
    gone = client.get(f"/products/{pid}")
    assert gone.json()["data"] == "Product not active"
    assert client.get("/products/999").json()["data"] == "Product not found"


def test_search_products(client, catalog):
    hits = client.get("/products/search", params={"keyword": "ESPR"}).json()["data"]
    assert [p["name"] for p in hits] == ["Espresso"]
    by_description = client.get("/products/search", params={"keyword": "short"}).json()["data"]
    assert len(by_description) == 1

    none = client.get("/products/search", params={"keyword": "matcha"})
    assert none.status_code == 404
    assert none.json()["resp_code"] == "003"
    assert client.get("/products/search").json()["resp_code"] == "001"


def test_product_image_upload_and_delete(client, admin_headers, catalog):
    pid = catalog["product"]["id"]
    r = client.post(f"/products/{pid}/images", files={"file": ("shot.png", make_png(), "image/png")}, headers=admin_headers)
    assert r.status_code == 200, r.text
    image = r.json()["data"]
    relative = image["url"][len(settings.MEDIA_BASE_URL) + 1:]
    stored = settings.MEDIA_ROOT / relative
    assert stored.exists()

    product = client.get(f"/products/{pid}").json()["data"]
    assert product["images"] == [{"id": image["id"], "url": image["url"]}]

    assert client.delete(f"/products/images/{image['id']}", headers=admin_headers).status_code == 200
    assert not stored.exists()
    again = client.delete(f"/products/images/{image['id']}", headers=admin_headers)
    assert again.json()["data"] == "Image not found"


def test_product_image_rejects_non_images(client, admin_headers, catalog):
    pid = catalog["product"]["id"]
    r = client.post(f"/products/{pid}/images", files={"file": ("notes.png", b"plain text", "image/png")}, headers=admin_headers)
    assert r.status_code == 500
    assert r.json()["data"] == "Error when upload image"

    empty = client.post(f"/products/{pid}/images", files={"file": ("empty.png", b"", "image/png")}, headers=admin_headers)
    assert empty.json()["resp_code"] == "001"


def test_product_item_validation_order(client, admin_headers, catalog):
    pid, tid = catalog["product"]["id"], catalog["type"]["id"]

    def post(**body):
        return client.post("/product-items", json=body, headers=admin_headers).json()

    assert post(type_id=tid, price=1)["resp_code"] == "001"
    assert post(product_id=pid, price=1)["resp_code"] == "001"
    assert post(product_id=pid, type_id=tid, price=-1)["data"] == "Price can not be negative"
    assert post(product_id=pid, type_id=tid, price=1, stock=-1)["data"] == "Stock can not be negative"
    assert post(product_id=pid, type_id=tid, price=1, discount=-1)["data"] == "Discount can not be negative"
    assert post(product_id=pid, type_id=tid, price=1, discount=2)["data"] == "Discount can not be greater than price"
    assert post(product_id=999, type_id=tid, price=1)["data"] == "Product id not found"
    assert post(product_id=pid, type_id=999, price=1)["data"] == "Type id not found"
    assert post(product_id=pid, type_id=tid, price=1)["resp_code"] == "004"


def test_product_item_update_and_delete(client, admin_headers, catalog):
    item = catalog["item"]
    assert item["type_name"] == "Large"
    r = client.put(f"/product-items/{item['id']}", json={
        "product_id": item["product_id"], "type_id": item["type_id"], "price": 60000, "stock": 3, "discount": 0,
    }, headers=admin_headers)
    assert r.json()["data"]["price"] == 60000
    assert r.json()["data"]["stock"] == 3

    missing = client.put("/product-items/999", json={"product_id": item["product_id"], "type_id": item["type_id"]},
                         headers=admin_headers)
    assert missing.json()["data"] == "ProductItem not found"

    client.delete(f"/product-items/{item['id']}", headers=admin_headers)
    assert client.get(f"/product-items/product/{item['product_id']}").json()["data"] == []
