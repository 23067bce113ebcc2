"""Stock movements per product: current level plus units sold and restocked."""

from protean.core.projector import on
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from payments.domain import payments
from payments.product.events import ProductAdded, ProductRestocked, StockReduced
from payments.product.product import Product


@payments.projection
class ProductStockView:
    product_id = Identifier(identifier=True, required=True)
    name = String(required=True, max_length=255)
    stock = Integer(default=0)
    units_sold = Integer(default=0)
    units_restocked = Integer(default=0)
    updated_at = DateTime()


@payments.projector(projector_for=ProductStockView, aggregates=[Product])
class ProductStockProjector:
    @on(ProductAdded)
    def on_product_added(self, event):
        current_domain.repository_for(ProductStockView).add(
            ProductStockView(
                product_id=event.product_id,
                name=event.name,
                stock=event.stock,
                updated_at=event.added_at,
            )
        )

    @on(StockReduced)
    def on_stock_reduced(self, event):
        repo = current_domain.repository_for(ProductStockView)
        view = repo.get(event.product_id)
        view.stock = event.new_stock
        view.units_sold = (view.units_sold or 0) + event.quantity
        view.updated_at = event.reduced_at
        repo.add(view)

    @on(ProductRestocked)
    def on_product_restocked(self, event):
        repo = current_domain.repository_for(ProductStockView)
        view = repo.get(event.product_id)
        view.stock = event.new_stock
        view.units_restocked = (view.units_restocked or 0) + event.quantity
        view.updated_at = event.restocked_at
        repo.add(view)
