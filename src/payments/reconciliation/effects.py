"""Approved-payment effects: stock decrement and delivery scheduling.

Shared by the webhook and the polling job. Runs under the transaction guard
and is fenced twice, so calling it again for the same transaction is a no-op:

- stock is decremented line by line, skipping lines whose
  ``TransactionItem.stock_committed_at`` is set, and not at all once
  ``Transaction.stock_committed_at`` is set
- a delivery is scheduled only if none exists for the transaction

A stock shortfall after approval never undoes the payment. It is written to
the transaction's reconciliation notes for manual follow-up. Once both
effects are in place the transaction is marked settled.
"""

from dataclasses import dataclass, field

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from payments.delivery.delivery import Delivery
from payments.product.stock import StockAdjustment, reduce_stock
from payments.reconciliation.guards import transaction_guard
from payments.transaction.transaction import ShippingDetails, Transaction
from payments.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class EffectsReport:
    transaction_id: str
    transaction_number: str | None = None
    stock_adjustments: list[StockAdjustment] = field(default_factory=list)
    stock_already_committed: bool = False
    delivery: Delivery | None = None
    delivery_created: bool = False
    discrepancies: list[str] = field(default_factory=list)
    skipped_reason: str | None = None

    @property
    def settled(self) -> bool:
        return self.skipped_reason is None and self.delivery is not None


def _pick(attr: str, *sources) -> str | None:
    for source in sources:
        value = getattr(source, attr, None) if source is not None else None
        if value and str(value).strip():
            return str(value).strip()
    return None


def _commit_stock(transaction: Transaction, repo, report: EffectsReport) -> None:
    """Take each line's quantity out of stock, saving progress line by line.

    A line already marked is skipped, so a run interrupted between lines
    resumes without decrementing the finished ones again.
    """
    for item in list(transaction.items):
        if item.stock_committed_at is not None:
            continue

        adjustment = reduce_stock(str(item.product_id), item.quantity)
        report.stock_adjustments.append(adjustment)
        if not adjustment.success:
            note = (
                f"Stock not reduced for {item.product_name} ({item.product_id}) x{item.quantity}: "
                f"{adjustment.outcome.value}; requires manual reconciliation"
            )
            transaction.add_reconciliation_note(note)
            report.discrepancies.append(note)
            logger.error(
                "stock_discrepancy_recorded",
                transaction_number=transaction.transaction_number,
                product_id=str(item.product_id),
                quantity=item.quantity,
                outcome=adjustment.outcome.value,
            )
        transaction.mark_item_stock_committed(item)
        repo.add(transaction)

    transaction.mark_stock_committed()
    repo.add(transaction)


def _schedule_delivery(transaction: Transaction, shipping: ShippingDetails | None, report: EffectsReport) -> None:
    repo = current_domain.repository_for(Delivery)
    existing = repo.find_by_transaction_id(str(transaction.id))
    if existing is not None:
        report.delivery = existing
        return

    delivery = Delivery.schedule(
        transaction_id=str(transaction.id),
        address=_pick("address", shipping, transaction.shipping),
        city=_pick("city", shipping, transaction.shipping),
        department=_pick("department", shipping, transaction.shipping),
    )
    try:
        repo.add(delivery)
    except ValidationError:
        # Unique transaction_id: someone else stored it first
        existing = repo.find_by_transaction_id(str(transaction.id))
        if existing is None:
            raise
        report.delivery = existing
        return

    report.delivery = delivery
    report.delivery_created = True
    logger.info(
        "delivery_scheduled",
        transaction_number=transaction.transaction_number,
        tracking_number=delivery.tracking_number,
        city=delivery.city,
        estimated_delivery_date=str(delivery.estimated_delivery_date),
        placeholder_address=delivery.has_placeholder_address,
    )


def apply_approved_effects(transaction_id: str, shipping: ShippingDetails | None = None) -> EffectsReport:
    """Decrement stock and schedule the delivery for an APPROVED transaction, at most once.

    ``shipping`` is an address reported alongside the approval (e.g. in a
    webhook payload); it wins over the address stored at checkout, and
    placeholders are used when neither has a value.
    """
    report = EffectsReport(transaction_id=str(transaction_id))
    repo = current_domain.repository_for(Transaction)

    with transaction_guard(transaction_id):
        transaction = repo.get(transaction_id)
        report.transaction_number = transaction.transaction_number

        if not transaction.is_approved:
            report.skipped_reason = f"Transaction is {transaction.status}, not APPROVED"
            logger.warning(
                "approved_effects_skipped",
                transaction_number=transaction.transaction_number,
                status=transaction.status,
            )
            return report

        if transaction.stock_committed_at is None:
            _commit_stock(transaction, repo, report)
        else:
            report.stock_already_committed = True

        _schedule_delivery(transaction, shipping, report)

        if transaction.settled_at is None:
            transaction.mark_settled()
            repo.add(transaction)

    logger.info(
        "approved_effects_applied",
        transaction_number=report.transaction_number,
        stock_already_committed=report.stock_already_committed,
        delivery_created=report.delivery_created,
        discrepancies=len(report.discrepancies),
    )
    return report
