"""Transaction aggregate, the state machine at the core of the payments domain.

A Transaction is created PENDING once a cart has been priced, then driven to
its final status by the gateway's answer: the immediate acknowledgment after
submission, an inbound webhook, or the polling job.

State Machine:
    PENDING → {APPROVED, DECLINED, ERROR}
    PROCESSING and CANCELLED are reserved for future gateway statuses.
    APPROVED, DECLINED, ERROR and CANCELLED are terminal.

Every gateway status string goes through map_gateway_status(), so webhook
payloads and polled statuses share one vocabulary.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from payments.domain import payments
from payments.shared.money import Money
from payments.shared.references import generate_reference
from payments.transaction.events import (
    TransactionApproved,
    TransactionCreated,
    TransactionDeclined,
    TransactionFailed,
)
from payments.utils.logging import get_logger

logger = get_logger(__name__)

TOTAL_TOLERANCE = 0.01


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class TransactionStatus(Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    APPROVED = "APPROVED"
    DECLINED = "DECLINED"
    ERROR = "ERROR"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset(
    {
        TransactionStatus.APPROVED,
        TransactionStatus.DECLINED,
        TransactionStatus.ERROR,
        TransactionStatus.CANCELLED,
    }
)

_VALID_TRANSITIONS = {
    TransactionStatus.PENDING: {TransactionStatus.PROCESSING} | TERMINAL_STATUSES,
    TransactionStatus.PROCESSING: set(TERMINAL_STATUSES),
    TransactionStatus.APPROVED: set(),  # Terminal
    TransactionStatus.DECLINED: set(),  # Terminal
    TransactionStatus.ERROR: set(),  # Terminal
    TransactionStatus.CANCELLED: set(),  # Terminal
}

_GATEWAY_STATUS_MAP = {
    "APPROVED": TransactionStatus.APPROVED,
    "DECLINED": TransactionStatus.DECLINED,
    "VOIDED": TransactionStatus.DECLINED,
    "ERROR": TransactionStatus.ERROR,
}


def map_gateway_status(raw_status: str | None) -> TransactionStatus:
    """Map a gateway status string to a TransactionStatus.

    Case-insensitive; anything unrecognised (including "PENDING") maps to PENDING.
    """
    return _GATEWAY_STATUS_MAP.get((raw_status or "").strip().upper(), TransactionStatus.PENDING)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@payments.value_object(part_of="Transaction")
class ShippingDetails:
    """Where the order ships to, captured at checkout."""

    address: String(max_length=500)
    city: String(max_length=100)
    department: String(max_length=100)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@payments.entity(part_of="Transaction")
class TransactionItem:
    """One priced cart line.

    Only ``stock_committed_at`` changes after creation, once the line's stock
    has been taken out for an approved payment.
    """

    product_id: Identifier(required=True)
    product_name: String(required=True, max_length=255)
    quantity: Integer(required=True, min_value=1)
    unit_price: ValueObject(Money, required=True)
    line_subtotal: ValueObject(Money, required=True)
    created_at: DateTime()
    stock_committed_at: DateTime()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@payments.aggregate
class Transaction:
    transaction_number: String(required=True, max_length=50, unique=True)
    status: String(
        choices=TransactionStatus,
        default=TransactionStatus.PENDING.value,
    )
    customer_id: Identifier(required=True)
    subtotal: ValueObject(Money, required=True)
    base_fee: ValueObject(Money, required=True)
    delivery_fee: ValueObject(Money, required=True)
    total: ValueObject(Money, required=True)
    items: HasMany(TransactionItem)
    shipping: ValueObject(ShippingDetails)
    gateway_transaction_id: String(max_length=255)
    gateway_status: String(max_length=50)
    error_message: String(max_length=1000)
    created_at: DateTime()
    updated_at: DateTime()
    processed_at: DateTime()
    stock_committed_at: DateTime()
    settled_at: DateTime()
    reconciliation_notes: Text()

    @invariant.post
    def total_must_equal_subtotal_plus_fees(self):
        if not (self.subtotal and self.base_fee and self.delivery_fee and self.total):
            return
        expected = self.subtotal.amount + self.base_fee.amount + self.delivery_fee.amount
        if abs(self.total.amount - expected) > TOTAL_TOLERANCE:
            raise ValidationError(
                {"total": [f"Total {self.total.amount} does not equal subtotal plus fees {expected}"]},
            )

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @staticmethod
    def generate_transaction_number() -> str:
        return generate_reference("TRX")

    @classmethod
    def create(cls, customer_id, summary, shipping=None, transaction_number=None):
        """Record a priced order as a new PENDING transaction.

        ``summary`` is an OrderSummary produced by calculate_summary().
        """
        now = datetime.now(UTC)
        items = [
            TransactionItem(
                product_id=line.product_id,
                product_name=line.product_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_subtotal=line.line_subtotal,
                created_at=now,
            )
            for line in summary.lines
        ]
        transaction = cls(
            transaction_number=transaction_number or cls.generate_transaction_number(),
            status=TransactionStatus.PENDING.value,
            customer_id=customer_id,
            subtotal=summary.subtotal,
            base_fee=summary.base_fee,
            delivery_fee=summary.delivery_fee,
            total=summary.total,
            items=items,
            shipping=shipping,
            created_at=now,
            updated_at=now,
        )
        transaction.raise_(
            TransactionCreated(
                transaction_id=str(transaction.id),
                transaction_number=transaction.transaction_number,
                customer_id=str(customer_id),
                total=transaction.total.amount,
                currency=transaction.total.currency,
                item_count=len(items),
                created_at=now,
            )
        )
        return transaction

    # -------------------------------------------------------------------
    # State helpers
    # -------------------------------------------------------------------
    @property
    def current_status(self) -> TransactionStatus:
        return TransactionStatus(self.status)

    @property
    def is_pending(self) -> bool:
        return self.current_status == TransactionStatus.PENDING

    @property
    def is_approved(self) -> bool:
        return self.current_status == TransactionStatus.APPROVED

    @property
    def is_terminal(self) -> bool:
        return self.current_status in TERMINAL_STATUSES

    def _assert_can_transition(self, target_status: TransactionStatus) -> None:
        current = self.current_status
        if target_status == current and current not in TERMINAL_STATUSES:
            return
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def _record_gateway_fields(self, gateway_transaction_id, gateway_status) -> None:
        if gateway_transaction_id:
            if not self.gateway_transaction_id:
                self.gateway_transaction_id = gateway_transaction_id
            elif self.gateway_transaction_id != gateway_transaction_id:
                logger.warning(
                    "gateway_transaction_id_conflict",
                    transaction_number=self.transaction_number,
                    kept=self.gateway_transaction_id,
                    ignored=gateway_transaction_id,
                )
        if gateway_status:
            self.gateway_status = gateway_status.strip().upper()

    def _move_to(self, target_status: TransactionStatus, now: datetime) -> None:
        self.status = target_status.value
        self.updated_at = now
        if target_status != TransactionStatus.PENDING and self.processed_at is None:
            self.processed_at = now

    def _raise_outcome_event(self, now: datetime) -> None:
        status = self.current_status
        if status == TransactionStatus.APPROVED:
            self.raise_(
                TransactionApproved(
                    transaction_id=str(self.id),
                    transaction_number=self.transaction_number,
                    gateway_transaction_id=self.gateway_transaction_id,
                    gateway_status=self.gateway_status,
                    approved_at=now,
                )
            )
        elif status == TransactionStatus.DECLINED:
            self.raise_(
                TransactionDeclined(
                    transaction_id=str(self.id),
                    transaction_number=self.transaction_number,
                    gateway_transaction_id=self.gateway_transaction_id,
                    gateway_status=self.gateway_status,
                    reason=self.error_message,
                    declined_at=now,
                )
            )
        elif status == TransactionStatus.ERROR:
            self.raise_(
                TransactionFailed(
                    transaction_id=str(self.id),
                    transaction_number=self.transaction_number,
                    gateway_transaction_id=self.gateway_transaction_id,
                    gateway_status=self.gateway_status,
                    reason=self.error_message,
                    failed_at=now,
                )
            )

    # -------------------------------------------------------------------
    # Gateway-driven updates
    # -------------------------------------------------------------------
    def update_from_service(self, gateway_transaction_id, gateway_status, status_message=None) -> TransactionStatus:
        """Apply a status reported by the gateway and return the mapped status.

        An unrecognised status keeps the transaction PENDING but still records
        the gateway fields. A terminal transaction rejects every update.
        """
        target = map_gateway_status(gateway_status)
        self._assert_can_transition(target)

        now = datetime.now(UTC)
        changed = target != self.current_status
        with atomic_change(self):
            self._record_gateway_fields(gateway_transaction_id, gateway_status)
            if status_message and target in (TransactionStatus.DECLINED, TransactionStatus.ERROR):
                self.error_message = status_message
            self._move_to(target, now)

        if changed:
            self._raise_outcome_event(now)
        return target

    def approve(self, gateway_transaction_id, gateway_status="APPROVED") -> None:
        self._assert_can_transition(TransactionStatus.APPROVED)
        now = datetime.now(UTC)
        with atomic_change(self):
            self._record_gateway_fields(gateway_transaction_id, gateway_status)
            self._move_to(TransactionStatus.APPROVED, now)
        self._raise_outcome_event(now)

    def decline(self, gateway_transaction_id, gateway_status="DECLINED", error_message=None) -> None:
        self._assert_can_transition(TransactionStatus.DECLINED)
        now = datetime.now(UTC)
        with atomic_change(self):
            self._record_gateway_fields(gateway_transaction_id, gateway_status)
            self.error_message = error_message or "Payment declined"
            self._move_to(TransactionStatus.DECLINED, now)
        self._raise_outcome_event(now)

    def set_error(self, message, gateway_transaction_id=None, gateway_status=None) -> None:
        """Move to ERROR, for gateway errors and hard local failures."""
        self._assert_can_transition(TransactionStatus.ERROR)
        now = datetime.now(UTC)
        with atomic_change(self):
            self._record_gateway_fields(gateway_transaction_id, gateway_status)
            self.error_message = message
            self._move_to(TransactionStatus.ERROR, now)
        self._raise_outcome_event(now)

    # -------------------------------------------------------------------
    # Settlement bookkeeping (approved transactions only)
    # -------------------------------------------------------------------
    def mark_item_stock_committed(self, item: TransactionItem) -> None:
        if not self.is_approved:
            raise ValidationError({"status": ["Stock can only be committed for approved transactions"]})
        if item.stock_committed_at is None:
            item.stock_committed_at = datetime.now(UTC)
            self.updated_at = item.stock_committed_at

    def mark_stock_committed(self) -> None:
        if not self.is_approved:
            raise ValidationError({"status": ["Stock can only be committed for approved transactions"]})
        if self.stock_committed_at is None:
            self.stock_committed_at = datetime.now(UTC)
            self.updated_at = self.stock_committed_at

    def mark_settled(self) -> None:
        if not self.is_approved:
            raise ValidationError({"status": ["Only approved transactions can be settled"]})
        if self.settled_at is None:
            self.settled_at = datetime.now(UTC)
            self.updated_at = self.settled_at

    def add_reconciliation_note(self, note: str) -> None:
        stamp = datetime.now(UTC).isoformat()
        entry = f"[{stamp}] {note}"
        self.reconciliation_notes = f"{self.reconciliation_notes}\n{entry}" if self.reconciliation_notes else entry
        self.updated_at = datetime.now(UTC)
