"""Payment status: one row per transaction, kept current from domain events."""

from protean.core.projector import on
from protean.fields import Date, DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from payments.delivery.delivery import Delivery
from payments.delivery.events import DeliveryScheduled
from payments.domain import payments
from payments.transaction.events import (
    TransactionApproved,
    TransactionCreated,
    TransactionDeclined,
    TransactionFailed,
)
from payments.transaction.transaction import Transaction, TransactionStatus


@payments.projection
class PaymentStatusView:
    transaction_id = Identifier(identifier=True, required=True)
    transaction_number = String(required=True, max_length=50)
    customer_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    total = Float()
    currency = String(max_length=3)
    item_count = Integer(default=0)
    gateway_transaction_id = String(max_length=255)
    failure_reason = String(max_length=1000)
    tracking_number = String(max_length=50)
    estimated_delivery_date = Date()
    created_at = DateTime()
    updated_at = DateTime()


@payments.projector(projector_for=PaymentStatusView, aggregates=[Transaction, Delivery])
class PaymentStatusProjector:
    @on(TransactionCreated)
    def on_transaction_created(self, event):
        current_domain.repository_for(PaymentStatusView).add(
            PaymentStatusView(
                transaction_id=event.transaction_id,
                transaction_number=event.transaction_number,
                customer_id=event.customer_id,
                status=TransactionStatus.PENDING.value,
                total=event.total,
                currency=event.currency,
                item_count=event.item_count,
                created_at=event.created_at,
                updated_at=event.created_at,
            )
        )

    @on(TransactionApproved)
    def on_transaction_approved(self, event):
        repo = current_domain.repository_for(PaymentStatusView)
        view = repo.get(event.transaction_id)
        view.status = TransactionStatus.APPROVED.value
        view.gateway_transaction_id = event.gateway_transaction_id
        view.updated_at = event.approved_at
        repo.add(view)

    @on(TransactionDeclined)
    def on_transaction_declined(self, event):
        repo = current_domain.repository_for(PaymentStatusView)
        view = repo.get(event.transaction_id)
        view.status = TransactionStatus.DECLINED.value
        view.gateway_transaction_id = event.gateway_transaction_id
        view.failure_reason = event.reason
        view.updated_at = event.declined_at
        repo.add(view)

    @on(TransactionFailed)
    def on_transaction_failed(self, event):
        repo = current_domain.repository_for(PaymentStatusView)
        view = repo.get(event.transaction_id)
        view.status = TransactionStatus.ERROR.value
        view.gateway_transaction_id = event.gateway_transaction_id
        view.failure_reason = event.reason
        view.updated_at = event.failed_at
        repo.add(view)

    @on(DeliveryScheduled)
    def on_delivery_scheduled(self, event):
        repo = current_domain.repository_for(PaymentStatusView)
        view = repo.get(event.transaction_id)
        view.tracking_number = event.tracking_number
        view.estimated_delivery_date = event.estimated_delivery_date
        view.updated_at = event.scheduled_at
        repo.add(view)
