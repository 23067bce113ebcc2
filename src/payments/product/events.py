"""Domain events for the Product aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from payments.domain import payments


@payments.event(part_of="Product")
class ProductAdded:
    """A product was added to the catalogue."""

    __version__ = 1

    product_id: Identifier(required=True)
    name: String(required=True)
    price: Float(required=True)
    currency: String(required=True)
    stock: Integer(required=True)
    added_at: DateTime(required=True)


@payments.event(part_of="Product")
class StockReduced:
    """Units were taken out of stock for an approved transaction."""

    __version__ = 1

    product_id: Identifier(required=True)
    quantity: Integer(required=True)
    previous_stock: Integer(required=True)
    new_stock: Integer(required=True)
    reduced_at: DateTime(required=True)


@payments.event(part_of="Product")
class ProductRestocked:
    """Units were added back to stock."""

    __version__ = 1

    product_id: Identifier(required=True)
    quantity: Integer(required=True)
    previous_stock: Integer(required=True)
    new_stock: Integer(required=True)
    restocked_at: DateTime(required=True)
