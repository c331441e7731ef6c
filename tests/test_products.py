import json

from bson import ObjectId

from cache import FEATURED_PRODUCTS_KEY
from tests.conftest import add_product

NEW_PRODUCT = {
    "name": "Walnut Desk",
    "description": "Solid walnut standing desk",
    "price": 499.0,
    "category": "furniture",
}


def test_admin_routes_reject_customers_and_anonymous(client, customer):
    assert client.get("/api/products").status_code == 401
    res = customer.get("/api/products")
    assert res.status_code == 403
    assert res.json()["detail"] == "Access denied - Admin only"
    assert customer.post("/api/products", json=NEW_PRODUCT).status_code == 403


def test_create_product_uploads_image(admin, images):
    res = admin.post("/api/products", json={**NEW_PRODUCT, "image": "data:image/png;base64,AAAA"})
    assert res.status_code == 201
    body = res.json()
    assert body["image"].startswith("https://res.cloudinary.com/")
    assert body["is_featured"] is False
    assert images.uploads == ["data:image/png;base64,AAAA"]


def test_create_product_without_image_stores_empty_reference(admin, images):
    res = admin.post("/api/products", json=NEW_PRODUCT)
    assert res.status_code == 201
    assert res.json()["image"] == ""
    assert images.uploads == []


def test_create_product_rejects_negative_price(admin):
    assert admin.post("/api/products", json={**NEW_PRODUCT, "price": -1}).status_code == 422


def test_list_all_and_by_category(admin, client, db):
    add_product(db, "Lamp", category="lighting")
    add_product(db, "Chair", category="furniture")

    assert len(admin.get("/api/products").json()["products"]) == 2
    res = client.get("/api/products/category/furniture")
    assert [p["name"] for p in res.json()["products"]] == ["Chair"]


def test_recommendations_return_display_fields_only(client, db):
    for i in range(6):
        add_product(db, f"Item {i}")
    res = client.get("/api/products/recommendations")
    assert res.status_code == 200
    items = res.json()
    assert len(items) == 4
    assert len({p["_id"] for p in items}) == 4
    for p in items:
        assert set(p) == {"_id", "name", "description", "price", "image"}


def test_featured_is_served_from_cache_on_second_call(client, db, cache):
    p1 = add_product(db, "Lamp", is_featured=True)
    add_product(db, "Chair")

    first = client.get("/api/products/featured")
    assert first.status_code == 200
    assert [p["_id"] for p in first.json()] == [str(p1)]
    assert cache.get(FEATURED_PRODUCTS_KEY) is not None

    # Bypass the service: a cache hit must not see this change.
    db["product"].update_one({"_id": p1}, {"$set": {"name": "Renamed"}})
    second = client.get("/api/products/featured")
    assert second.json() == first.json()


def test_featured_empty_catalog_is_an_empty_list(client, cache):
    res = client.get("/api/products/featured")
    assert res.status_code == 200
    assert res.json() == []
    assert json.loads(cache.get(FEATURED_PRODUCTS_KEY)) == []


def test_toggle_featured_updates_cache_immediately(admin, client, db):
    p1 = add_product(db, "Lamp")
    assert client.get("/api/products/featured").json() == []

    res = admin.patch(f"/api/products/{p1}")
    assert res.status_code == 200
    assert res.json()["is_featured"] is True
    assert [p["_id"] for p in client.get("/api/products/featured").json()] == [str(p1)]

    admin.patch(f"/api/products/{p1}")
    assert db["product"].find_one({"_id": p1})["is_featured"] is False
    assert client.get("/api/products/featured").json() == []


def test_toggle_missing_product_is_not_found(admin):
    assert admin.patch(f"/api/products/{ObjectId()}").status_code == 404


def test_update_product_changes_supplied_fields_only(admin, db, images):
    p1 = add_product(db, "Lamp", price=20, image="https://res.cloudinary.com/demo/image/upload/v1/products/old.jpg")
    res = admin.put(f"/api/products/{p1}", json={"price": 30})
    assert res.status_code == 200
    body = res.json()
    assert body["price"] == 30
    assert body["name"] == "Lamp"
    assert body["image"].endswith("old.jpg")

    res = admin.put(f"/api/products/{p1}", json={"image": "data:image/png;base64,BBBB"})
    assert res.json()["image"] != body["image"]
    assert images.deleted == []


def test_update_featured_product_refreshes_snapshot(admin, client, db):
    p1 = add_product(db, "Lamp", is_featured=True)
    client.get("/api/products/featured")
    admin.put(f"/api/products/{p1}", json={"name": "Floor Lamp"})
    assert client.get("/api/products/featured").json()[0]["name"] == "Floor Lamp"


def test_update_missing_product_is_not_found(admin):
    assert admin.put(f"/api/products/{ObjectId()}", json={"price": 1}).status_code == 404


def test_delete_product_removes_hosted_image(admin, db, images):
    url = "https://res.cloudinary.com/demo/image/upload/v1/products/lamp.jpg"
    p1 = add_product(db, "Lamp", image=url)
    res = admin.delete(f"/api/products/{p1}")
    assert res.status_code == 200
    assert res.json()["message"] == "Product deleted successfully"
    assert db["product"].find_one({"_id": p1}) is None
    assert images.deleted == [url]


def test_delete_product_survives_image_host_failure(admin, db, images):
    images.fail_delete = True
    p1 = add_product(db, "Lamp", image="https://res.cloudinary.com/demo/image/upload/v1/products/lamp.jpg")
    assert admin.delete(f"/api/products/{p1}").status_code == 200
    assert db["product"].count_documents({}) == 0


def test_delete_missing_product_is_not_found(admin):
    assert admin.delete(f"/api/products/{ObjectId()}").status_code == 404


def test_malformed_id_is_rejected(admin):
    assert admin.delete("/api/products/xyz").status_code == 400
