"""
Catalog API tests: payload policy and soft delete.
"""

import pytest


def test_create_product_normalizes_payload(client, db_session, category, staff_headers):
    resp = client.post(
        "/api/products",
        json={"name": "  Cold brew ", "price": "42000", "category_id": category.id, "status": "inactive"},
        headers=staff_headers,
    )

    assert resp.status_code == 201
    product = resp.get_json()
    assert product["name"] == "Cold brew"
    assert product["price"] == 42000.0
    assert product["status"] == "INACTIVE"
    assert product["sales_count"] == 0
    assert product["category"]["name"] == "Coffee"


@pytest.mark.parametrize(
    "body,message",
    [
        ({"name": "Mocha", "price": 10}, "Missing required fields: category_id"),
        ({"name": "Mocha", "price": -1, "category_id": 1}, "price must be >= 0"),
        ({"name": "Mocha", "price": 10, "category_id": 1, "sales_count": 9}, "Field not allowed: sales_count"),
        ({"name": "Mocha", "price": 10, "category_id": 1, "status": "GONE"}, "status must be one of"),
        ({"name": " ", "price": 10, "category_id": 1}, "name cannot be blank"),
    ],
)
def test_create_product_rejects(client, db_session, staff_headers, body, message):
    resp = client.post("/api/products", json=body, headers=staff_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"].startswith(message)


def test_unknown_category(client, db_session, staff_headers):
    resp = client.post(
        "/api/products",
        json={"name": "Mocha", "price": 10, "category_id": 999},
        headers=staff_headers,
    )
    assert resp.status_code == 404


def test_patch_product_and_filter(client, db_session, latte, staff_headers):
    resp = client.patch(f"/api/products/{latte.id}", json={"price": 39000}, headers=staff_headers)
    assert resp.status_code == 200
    assert resp.get_json()["price"] == 39000.0

    listed = client.get(f"/api/products?category_id={latte.category_id}").get_json()["products"]
    assert [p["id"] for p in listed] == [latte.id]
    assert client.get("/api/products?category_id=999").get_json()["products"] == []


def test_deleted_product_disappears(client, db_session, latte, staff_headers):
    assert client.delete(f"/api/products/{latte.id}", headers=staff_headers).status_code == 200
    assert client.get(f"/api/products/{latte.id}").status_code == 404
    assert client.get("/api/products").get_json()["products"] == []


def test_category_with_products_cannot_be_deleted(client, db_session, latte, staff_headers):
    resp = client.delete(f"/api/categories/{latte.category_id}", headers=staff_headers)
    assert resp.status_code == 400

    client.delete(f"/api/products/{latte.id}", headers=staff_headers)
    resp = client.delete(f"/api/categories/{latte.category_id}", headers=staff_headers)
    assert resp.status_code == 200
