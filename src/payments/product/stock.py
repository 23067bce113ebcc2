"""Stock adjustment service.

Both call sites get the same result contract: checkout turns an
INSUFFICIENT_STOCK result into a hard error before the gateway is touched,
while the approved-payment effects record it as a discrepancy that needs
manual reconciliation.
"""

from dataclasses import dataclass
from enum import Enum

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from payments.product.product import Product
from payments.reconciliation.guards import product_guard
from payments.shared.exceptions import InsufficientStockError
from payments.utils.logging import get_logger

logger = get_logger(__name__)


class StockOutcome(Enum):
    REDUCED = "Reduced"
    AVAILABLE = "Available"
    INSUFFICIENT_STOCK = "Insufficient_Stock"
    PRODUCT_NOT_FOUND = "Product_Not_Found"
    FAILED = "Failed"


@dataclass(frozen=True)
class StockAdjustment:
    """Result of a stock check or decrement."""

    outcome: StockOutcome
    product_id: str
    requested: int
    available: int | None = None
    remaining: int | None = None
    product_name: str | None = None
    message: str | None = None

    @property
    def success(self) -> bool:
        return self.outcome in (StockOutcome.REDUCED, StockOutcome.AVAILABLE)

    def raise_for_outcome(self) -> None:
        """Turn a failed check into the matching exception."""
        if self.outcome == StockOutcome.INSUFFICIENT_STOCK:
            raise InsufficientStockError(
                product_id=self.product_id,
                available=self.available or 0,
                requested=self.requested,
                product_name=self.product_name,
            )
        if self.outcome == StockOutcome.PRODUCT_NOT_FOUND:
            raise ObjectNotFoundError(f"Product {self.product_id} not found")


def check_stock(product_id: str, quantity: int) -> StockAdjustment:
    """Read-only availability check. Nothing is reserved."""
    try:
        product = current_domain.repository_for(Product).get(product_id)
    except ObjectNotFoundError:
        return StockAdjustment(
            outcome=StockOutcome.PRODUCT_NOT_FOUND,
            product_id=str(product_id),
            requested=quantity,
            message=f"Product {product_id} not found",
        )

    if not product.has_stock(quantity):
        return StockAdjustment(
            outcome=StockOutcome.INSUFFICIENT_STOCK,
            product_id=str(product_id),
            requested=quantity,
            available=product.stock,
            product_name=product.name,
            message=f"Insufficient stock for {product.name}",
        )

    return StockAdjustment(
        outcome=StockOutcome.AVAILABLE,
        product_id=str(product_id),
        requested=quantity,
        available=product.stock,
        product_name=product.name,
    )


def reduce_stock(product_id: str, quantity: int) -> StockAdjustment:
    """Decrement stock by ``quantity`` with a floor check.

    The read, check and write run under the product guard so two concurrent
    decrements cannot both pass the check against the same stock level.
    Never raises: every failure comes back as a StockAdjustment.
    """
    repo = current_domain.repository_for(Product)

    with product_guard(product_id):
        try:
            product = repo.get(product_id)
        except ObjectNotFoundError:
            logger.warning("stock_product_not_found", product_id=str(product_id), quantity=quantity)
            return StockAdjustment(
                outcome=StockOutcome.PRODUCT_NOT_FOUND,
                product_id=str(product_id),
                requested=quantity,
                message=f"Product {product_id} not found",
            )

        available = product.stock
        try:
            product.reduce_stock(quantity)
        except InsufficientStockError as exc:
            logger.warning(
                "stock_insufficient",
                product_id=str(product_id),
                available=available,
                requested=quantity,
            )
            return StockAdjustment(
                outcome=StockOutcome.INSUFFICIENT_STOCK,
                product_id=str(product_id),
                requested=quantity,
                available=available,
                product_name=product.name,
                message=exc.messages["stock"][0],
            )
        except ValidationError as exc:
            return StockAdjustment(
                outcome=StockOutcome.FAILED,
                product_id=str(product_id),
                requested=quantity,
                available=available,
                product_name=product.name,
                message=str(exc.messages),
            )

        try:
            repo.add(product)
        except Exception as exc:
            logger.error(
                "stock_persist_failed",
                product_id=str(product_id),
                quantity=quantity,
                error=str(exc),
                exc_info=True,
            )
            return StockAdjustment(
                outcome=StockOutcome.FAILED,
                product_id=str(product_id),
                requested=quantity,
                available=available,
                product_name=product.name,
                message=str(exc),
            )

    logger.info(
        "stock_reduced",
        product_id=str(product_id),
        quantity=quantity,
        remaining=product.stock,
    )
    return StockAdjustment(
        outcome=StockOutcome.REDUCED,
        product_id=str(product_id),
        requested=quantity,
        available=available,
        remaining=product.stock,
        product_name=product.name,
    )
