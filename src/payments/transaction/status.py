"""Transaction status query.

Read-only: the gateway is asked for its latest view, but nothing is
persisted here. Reconciliation stays with the webhook and the sync job.
"""

from dataclasses import dataclass
from datetime import date, datetime

from protean.utils.globals import current_domain

from payments.delivery.delivery import Delivery
from payments.gateway import get_gateway
from payments.transaction.transaction import Transaction, map_gateway_status
from payments.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TransactionStatusView:
    transaction_number: str
    status: str
    gateway_transaction_id: str | None
    gateway_status: str | None
    gateway_reported_status: str | None
    status_message: str | None
    total: float
    currency: str
    created_at: datetime | None
    updated_at: datetime | None
    processed_at: datetime | None
    tracking_number: str | None = None
    estimated_delivery_date: date | None = None


def get_transaction_status(transaction_number: str) -> TransactionStatusView:
    """Local state of ``transaction_number`` plus the gateway's freshest status.

    Raises ObjectNotFoundError for an unknown transaction number. A gateway
    failure falls back to the stored gateway status.
    """
    transaction = current_domain.repository_for(Transaction).find_by_number(transaction_number)

    gateway_status = transaction.gateway_status
    status_message = transaction.error_message
    if transaction.gateway_transaction_id:
        result = get_gateway().fetch_transaction(transaction.gateway_transaction_id)
        if result.success:
            gateway_status = (result.status or "").upper() or gateway_status
            status_message = result.status_message or status_message
        else:
            logger.warning(
                "transaction_status_refresh_failed",
                transaction_number=transaction_number,
                error=result.error_message,
            )

    delivery = current_domain.repository_for(Delivery).find_by_transaction_id(str(transaction.id))

    return TransactionStatusView(
        transaction_number=transaction.transaction_number,
        status=transaction.status,
        gateway_transaction_id=transaction.gateway_transaction_id,
        gateway_status=gateway_status,
        gateway_reported_status=map_gateway_status(gateway_status).value if gateway_status else None,
        status_message=status_message,
        total=transaction.total.amount,
        currency=transaction.total.currency,
        created_at=transaction.created_at,
        updated_at=transaction.updated_at,
        processed_at=transaction.processed_at,
        tracking_number=delivery.tracking_number if delivery else None,
        estimated_delivery_date=delivery.estimated_delivery_date if delivery else None,
    )
