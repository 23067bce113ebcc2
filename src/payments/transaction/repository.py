"""Repository for the Transaction aggregate.

``transition_from_pending`` is the only way reconciliation code changes a
transaction's status. Under the transaction guard it re-reads the stored
transaction and applies the mutation only while it is still non-terminal, so
when a webhook and a poll race on the same transaction exactly one of them
observes the move into APPROVED.
"""

from collections.abc import Callable
from dataclasses import dataclass

from protean.exceptions import ObjectNotFoundError

from payments.domain import payments
from payments.reconciliation.guards import transaction_guard
from payments.transaction.transaction import Transaction, TransactionStatus


@dataclass(frozen=True)
class TransitionOutcome:
    """What a conditional transition did."""

    transaction: Transaction
    previous_status: TransactionStatus
    applied: bool

    @property
    def status(self) -> TransactionStatus:
        return TransactionStatus(self.transaction.status)

    def entered(self, status: TransactionStatus) -> bool:
        """True when this call moved the transaction into ``status``."""
        return self.applied and self.previous_status != status and self.status == status


@payments.repository(part_of=Transaction)
class TransactionRepository:
    def find_by_number(self, transaction_number: str) -> Transaction:
        transaction = self._dao.query.filter(transaction_number=transaction_number).all().first
        if transaction is None:
            raise ObjectNotFoundError(f"Transaction {transaction_number} not found")
        return transaction

    def find_pollable(self, batch_size: int = 100) -> list[Transaction]:
        """PENDING transactions the gateway has acknowledged, oldest first.

        Transactions without a gateway id have nothing to poll and are left out.
        """
        return (
            self._dao.query.filter(
                status=TransactionStatus.PENDING.value,
                gateway_transaction_id__isnull=False,
            )
            .order_by("created_at")
            .limit(batch_size)
            .all()
            .items
        )

    def find_unsettled_approved(self, batch_size: int = 100) -> list[Transaction]:
        """APPROVED transactions whose stock or delivery effects never completed."""
        return (
            self._dao.query.filter(
                status=TransactionStatus.APPROVED.value,
                settled_at__isnull=True,
            )
            .order_by("created_at")
            .limit(batch_size)
            .all()
            .items
        )

    def transition_from_pending(
        self,
        transaction_id: str,
        mutate: Callable[[Transaction], object],
    ) -> TransitionOutcome:
        """Apply ``mutate`` and persist, but only if the stored transaction is not yet final.

        Raises ObjectNotFoundError for an unknown id. Exceptions from ``mutate``
        propagate and nothing is persisted.
        """
        with transaction_guard(transaction_id):
            transaction = self.get(transaction_id)
            previous = TransactionStatus(transaction.status)
            if transaction.is_terminal:
                return TransitionOutcome(transaction=transaction, previous_status=previous, applied=False)

            mutate(transaction)
            self.add(transaction)
            return TransitionOutcome(transaction=transaction, previous_status=previous, applied=True)
