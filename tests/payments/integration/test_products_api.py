"""Integration tests for the product catalogue endpoints."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from payments.api import product_router
from payments.product.product import Product
from protean.integrations.fastapi import register_exception_handlers
from protean.utils.globals import current_domain


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(product_router)
    register_exception_handlers(app)
    return TestClient(app)


class TestProductsAPI:
    def test_add_product(self, client):
        response = client.post(
            "/products",
            json={"name": "Monitor LG UltraWide", "price": 899000, "stock": 10},
        )

        assert response.status_code == 201
        product = current_domain.repository_for(Product).get(response.json()["product_id"])
        assert product.name == "Monitor LG UltraWide"
        assert product.stock == 10

    def test_add_product_negative_price_returns_422(self, client):
        response = client.post("/products", json={"name": "Broken", "price": -1})
        assert response.status_code == 422

    def test_list_products(self, client, make_product):
        make_product(name="Webcam", price=299000.0, stock=3)

        response = client.get("/products")

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["name"] == "Webcam"
        assert data[0]["price"] == 299000.0
        assert data[0]["currency"] == "COP"
        assert data[0]["stock"] == 3

    def test_restock(self, client, make_product):
        product = make_product(stock=1)

        response = client.post(f"/products/{product.id}/restock", json={"quantity": 4})

        assert response.status_code == 200
        assert response.json()["stock"] == 5

    def test_restock_unknown_product_returns_404(self, client):
        response = client.post("/products/missing-product/restock", json={"quantity": 4})
        assert response.status_code == 404

    def test_stock_level_tracks_restocks(self, client, make_product):
        product = make_product(name="Webcam", stock=3)
        client.post(f"/products/{product.id}/restock", json={"quantity": 4})

        response = client.get(f"/products/{product.id}/stock")

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Webcam"
        assert data["stock"] == 7
        assert data["units_sold"] == 0
        assert data["units_restocked"] == 4

    def test_stock_level_unknown_product_returns_404(self, client):
        response = client.get("/products/missing-product/stock")
        assert response.status_code == 404
