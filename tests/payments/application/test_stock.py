"""Tests for the stock check and decrement service."""

import threading

import pytest
from payments.domain import payments
from payments.product.product import Product
from payments.product.stock import StockOutcome, check_stock, reduce_stock
from payments.shared.exceptions import InsufficientStockError
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain


def _stock(product_id):
    return current_domain.repository_for(Product).get(product_id).stock


class TestCheckStock:
    def test_available(self, make_product):
        product = make_product(stock=5)
        result = check_stock(str(product.id), 5)

        assert result.outcome == StockOutcome.AVAILABLE
        assert result.success
        assert result.available == 5
        assert _stock(product.id) == 5

    def test_insufficient(self, make_product):
        product = make_product(stock=1)
        result = check_stock(str(product.id), 2)

        assert result.outcome == StockOutcome.INSUFFICIENT_STOCK
        assert not result.success
        with pytest.raises(InsufficientStockError):
            result.raise_for_outcome()

    def test_unknown_product(self):
        result = check_stock("missing-product", 1)

        assert result.outcome == StockOutcome.PRODUCT_NOT_FOUND
        with pytest.raises(ObjectNotFoundError):
            result.raise_for_outcome()


class TestReduceStock:
    def test_reduce(self, make_product):
        product = make_product(stock=10)
        result = reduce_stock(str(product.id), 3)

        assert result.outcome == StockOutcome.REDUCED
        assert result.available == 10
        assert result.remaining == 7
        assert _stock(product.id) == 7

    def test_quantity_above_stock_fails_and_leaves_stock_unchanged(self, make_product):
        product = make_product(stock=2)
        result = reduce_stock(str(product.id), 3)

        assert result.outcome == StockOutcome.INSUFFICIENT_STOCK
        assert result.available == 2
        assert result.remaining is None
        assert "Insufficient stock" in result.message
        assert _stock(product.id) == 2

    def test_unknown_product_does_not_raise(self):
        result = reduce_stock("missing-product", 1)
        assert result.outcome == StockOutcome.PRODUCT_NOT_FOUND

    def test_non_positive_quantity_fails(self, make_product):
        product = make_product(stock=2)
        result = reduce_stock(str(product.id), 0)

        assert result.outcome == StockOutcome.FAILED
        assert _stock(product.id) == 2

    def test_concurrent_decrements_never_oversell(self, make_product):
        product = make_product(stock=5)
        results = []

        def worker():
            with payments.domain_context():
                results.append(reduce_stock(str(product.id), 1))

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        reduced = [r for r in results if r.outcome == StockOutcome.REDUCED]
        insufficient = [r for r in results if r.outcome == StockOutcome.INSUFFICIENT_STOCK]
        assert len(reduced) == 5
        assert len(insufficient) == 3
        assert _stock(product.id) == 0
