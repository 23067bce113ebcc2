"""Tests for the product catalogue services."""

import pytest
from payments.product.catalog import (
    DEMO_PRODUCTS,
    AddProduct,
    RestockProduct,
    list_products,
    restock_product,
    seed_products,
)
from payments.product.product import Product
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain


class TestAddProduct:
    def test_add_product_command(self):
        product_id = current_domain.process(
            AddProduct(name="Audífonos Sony WH-1000XM5", price=1299000, stock=4),
            asynchronous=False,
        )

        product = current_domain.repository_for(Product).get(product_id)
        assert product.name == "Audífonos Sony WH-1000XM5"
        assert product.price.amount == 1299000
        assert product.price.currency == "COP"
        assert product.stock == 4


class TestRestockProduct:
    def test_restock(self, make_product):
        product = make_product(stock=1)
        restocked = restock_product(str(product.id), 9)

        assert restocked.stock == 10
        assert current_domain.repository_for(Product).get(product.id).stock == 10

    def test_restock_product_command(self, make_product):
        product = make_product(stock=2)

        restocked = current_domain.process(RestockProduct(product_id=str(product.id), quantity=3), asynchronous=False)

        assert restocked.stock == 5
        assert current_domain.repository_for(Product).get(product.id).stock == 5

    def test_restock_unknown_product(self):
        with pytest.raises(ObjectNotFoundError):
            restock_product("missing-product", 1)

    def test_restock_non_positive_rejected(self, make_product):
        product = make_product(stock=1)
        with pytest.raises(ValidationError):
            restock_product(str(product.id), 0)


class TestListAndSeed:
    def test_list_products_sorted_by_name(self, make_product):
        make_product(name="Webcam")
        make_product(name="Audífonos")
        make_product(name="Mouse")

        assert [p.name for p in list_products()] == ["Audífonos", "Mouse", "Webcam"]

    def test_seed_products(self):
        created = seed_products()
        assert len(created) == len(DEMO_PRODUCTS)
        assert len(list_products()) == len(DEMO_PRODUCTS)

    def test_seed_is_repeatable(self):
        seed_products()
        assert seed_products() == []
        assert len(list_products()) == len(DEMO_PRODUCTS)
