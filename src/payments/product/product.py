"""Product aggregate: the sellable items priced at checkout.

Stock is a plain non-negative counter. It is checked (never reserved) when a
cart is priced, and decremented only once the gateway approves the payment.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Integer, String, Text, ValueObject

from payments.domain import payments
from payments.product.events import ProductAdded, ProductRestocked, StockReduced
from payments.shared.exceptions import InsufficientStockError
from payments.shared.money import Money


@payments.aggregate
class Product:
    name: String(required=True, max_length=255)
    description: Text()
    price: ValueObject(Money, required=True)
    stock: Integer(default=0, min_value=0)
    image_url: String(max_length=500)
    created_at: DateTime()
    updated_at: DateTime()

    @classmethod
    def add(cls, name, price, stock=0, currency="COP", description=None, image_url=None):
        """Create a new catalogue product."""
        if stock < 0:
            raise ValidationError({"stock": ["Stock cannot be negative"]})

        now = datetime.now(UTC)
        product = cls(
            name=name,
            description=description,
            price=Money(amount=price, currency=currency),
            stock=stock,
            image_url=image_url,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductAdded(
                product_id=str(product.id),
                name=name,
                price=product.price.amount,
                currency=product.price.currency,
                stock=stock,
                added_at=now,
            )
        )
        return product

    def has_stock(self, quantity: int) -> bool:
        return self.stock >= quantity

    def reduce_stock(self, quantity: int) -> None:
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if not self.has_stock(quantity):
            raise InsufficientStockError(
                product_id=str(self.id),
                available=self.stock,
                requested=quantity,
                product_name=self.name,
            )

        previous = self.stock
        now = datetime.now(UTC)
        self.stock = previous - quantity
        self.updated_at = now
        self.raise_(
            StockReduced(
                product_id=str(self.id),
                quantity=quantity,
                previous_stock=previous,
                new_stock=self.stock,
                reduced_at=now,
            )
        )

    def increase_stock(self, quantity: int) -> None:
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        previous = self.stock
        now = datetime.now(UTC)
        self.stock = previous + quantity
        self.updated_at = now
        self.raise_(
            ProductRestocked(
                product_id=str(self.id),
                quantity=quantity,
                previous_stock=previous,
                new_stock=self.stock,
                restocked_at=now,
            )
        )
