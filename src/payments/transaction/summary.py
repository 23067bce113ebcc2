"""Order pricing: subtotal, fees and total for a cart."""

from collections import defaultdict
from dataclasses import dataclass, field

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from payments.product.product import Product
from payments.product.stock import check_stock
from payments.shared.fees import DeliveryTier, delivery_tier, get_base_fee, get_delivery_fee
from payments.shared.money import Money


@dataclass(frozen=True)
class CartItem:
    product_id: str
    quantity: int


@dataclass(frozen=True)
class OrderLine:
    product_id: str
    product_name: str
    quantity: int
    unit_price: Money
    line_subtotal: Money


@dataclass(frozen=True)
class OrderSummary:
    lines: list[OrderLine]
    subtotal: Money
    base_fee: Money
    delivery_fee: Money
    total: Money
    delivery_city: str
    delivery_tier: DeliveryTier
    stock: dict[str, int] = field(default_factory=dict)

    @property
    def currency(self) -> str:
        return self.total.currency


def calculate_summary(items: list[CartItem], delivery_city: str) -> OrderSummary:
    """Price ``items`` for delivery to ``delivery_city``.

    Validates every quantity and checks (without reserving) that each product
    has enough stock for the combined quantity requested across lines.

    Raises ValidationError for an empty cart or a non-positive quantity,
    ObjectNotFoundError for an unknown product and InsufficientStockError
    when stock is short.
    """
    if not items:
        raise ValidationError({"items": ["Cart must contain at least one item"]})

    requested: dict[str, int] = defaultdict(int)
    for item in items:
        if item.quantity is None or item.quantity <= 0:
            raise ValidationError({"quantity": [f"Quantity for product {item.product_id} must be greater than zero"]})
        requested[str(item.product_id)] += item.quantity

    available: dict[str, int] = {}
    for product_id, quantity in requested.items():
        adjustment = check_stock(product_id, quantity)
        adjustment.raise_for_outcome()
        available[product_id] = adjustment.available

    repo = current_domain.repository_for(Product)
    base_fee = get_base_fee()
    subtotal = Money.zero(base_fee.currency)
    lines = []
    for item in items:
        try:
            product = repo.get(item.product_id)
        except ObjectNotFoundError:
            raise ObjectNotFoundError(f"Product {item.product_id} not found") from None

        line_subtotal = product.price.multiply(item.quantity)
        subtotal = subtotal.add(line_subtotal)
        lines.append(
            OrderLine(
                product_id=str(product.id),
                product_name=product.name,
                quantity=item.quantity,
                unit_price=product.price,
                line_subtotal=line_subtotal,
            )
        )

    delivery_fee = get_delivery_fee(delivery_city)
    total = subtotal.add(base_fee).add(delivery_fee)

    return OrderSummary(
        lines=lines,
        subtotal=subtotal,
        base_fee=base_fee,
        delivery_fee=delivery_fee,
        total=total,
        delivery_city=delivery_city,
        delivery_tier=delivery_tier(delivery_city),
        stock=available,
    )
