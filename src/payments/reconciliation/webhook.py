"""Webhook reconciliation path.

The gateway posts an event whenever a transaction changes. The event's
``reference`` is our transaction number. Unknown references raise
ObjectNotFoundError so the gateway retries later; a transaction that is
already final is acknowledged without reprocessing. Signature verification
happens at the HTTP edge before this module is reached.

The work itself is the ProcessGatewayWebhook command. Its handler runs in a
unit of work that commits when the handler returns, so the command is
dispatched while the transaction guard is held.
"""

from dataclasses import dataclass

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from payments.domain import payments
from payments.reconciliation.effects import EffectsReport, apply_approved_effects
from payments.reconciliation.guards import transaction_guard
from payments.transaction.transaction import (
    ShippingDetails,
    Transaction,
    TransactionStatus,
    map_gateway_status,
)
from payments.utils.logging import get_logger

logger = get_logger(__name__)

ALREADY_PROCESSED = "Webhook received (already processed)"


@dataclass(frozen=True)
class WebhookTransaction:
    """The parts of a gateway event that reconciliation needs."""

    gateway_transaction_id: str | None
    reference: str
    status: str
    status_message: str | None = None
    shipping: ShippingDetails | None = None

    @classmethod
    def from_event(cls, event: dict) -> "WebhookTransaction":
        transaction = ((event or {}).get("data") or {}).get("transaction") or {}
        reference = transaction.get("reference")
        if not reference:
            raise ValidationError({"reference": ["Webhook event carries no transaction reference"]})

        shipping = None
        address = transaction.get("shipping_address")
        if isinstance(address, dict) and any(address.get(k) for k in ("address_line_1", "city", "region")):
            shipping = ShippingDetails(
                address=address.get("address_line_1"),
                city=address.get("city"),
                department=address.get("region"),
            )

        return cls(
            gateway_transaction_id=transaction.get("id"),
            reference=reference,
            status=str(transaction.get("status") or ""),
            status_message=transaction.get("status_message"),
            shipping=shipping,
        )

    def to_command(self, transaction_id: str, event_type: str | None = None) -> "ProcessGatewayWebhook":
        shipping = self.shipping
        return ProcessGatewayWebhook(
            transaction_id=transaction_id,
            reference=self.reference,
            event_type=event_type,
            gateway_transaction_id=self.gateway_transaction_id,
            gateway_status=self.status or None,
            status_message=self.status_message,
            shipping_address=shipping.address if shipping else None,
            shipping_city=shipping.city if shipping else None,
            shipping_department=shipping.department if shipping else None,
        )


@dataclass(frozen=True)
class WebhookOutcome:
    transaction_number: str
    status: str
    processed: bool
    message: str
    effects: EffectsReport | None = None


@payments.command(part_of="Transaction")
class ProcessGatewayWebhook:
    """Reconcile one gateway event into its transaction."""

    transaction_id: Identifier(required=True)
    reference: String(required=True, max_length=50)
    event_type: String(max_length=100)
    gateway_transaction_id: String(max_length=255)
    gateway_status: String(max_length=50)
    status_message: String(max_length=1000)
    shipping_address: String(max_length=500)
    shipping_city: String(max_length=100)
    shipping_department: String(max_length=100)


def _mutation_for(command):
    target = map_gateway_status(command.gateway_status)
    gateway_id = command.gateway_transaction_id
    raw_status = command.gateway_status

    if target == TransactionStatus.APPROVED:
        return lambda t: t.approve(gateway_id, raw_status)
    if target == TransactionStatus.DECLINED:
        return lambda t: t.decline(gateway_id, raw_status, command.status_message)
    if target == TransactionStatus.ERROR:
        return lambda t: t.set_error(
            command.status_message or "Payment error reported by gateway", gateway_id, raw_status
        )
    return lambda t: t.update_from_service(gateway_id, raw_status, command.status_message)


def _shipping_from(command) -> ShippingDetails | None:
    if not any((command.shipping_address, command.shipping_city, command.shipping_department)):
        return None
    return ShippingDetails(
        address=command.shipping_address,
        city=command.shipping_city,
        department=command.shipping_department,
    )


@payments.command_handler(part_of=Transaction)
class ProcessGatewayWebhookHandler:
    @handle(ProcessGatewayWebhook)
    def process_webhook(self, command):
        repo = current_domain.repository_for(Transaction)
        transaction = repo.get(command.transaction_id)

        if transaction.is_terminal:
            logger.info("webhook_already_processed", transaction_number=command.reference, status=transaction.status)
            return WebhookOutcome(
                transaction_number=command.reference,
                status=transaction.status,
                processed=False,
                message=ALREADY_PROCESSED,
            )

        outcome = repo.transition_from_pending(str(transaction.id), _mutation_for(command))
        if not outcome.applied:
            logger.info("webhook_lost_race", transaction_number=command.reference, status=outcome.status.value)
            return WebhookOutcome(
                transaction_number=command.reference,
                status=outcome.status.value,
                processed=False,
                message=ALREADY_PROCESSED,
            )

        effects = None
        if outcome.entered(TransactionStatus.APPROVED):
            effects = apply_approved_effects(str(transaction.id), shipping=_shipping_from(command))

        logger.info(
            "webhook_processed",
            transaction_number=command.reference,
            previous_status=outcome.previous_status.value,
            status=outcome.status.value,
        )
        return WebhookOutcome(
            transaction_number=command.reference,
            status=outcome.status.value,
            processed=True,
            message="Webhook processed successfully",
            effects=effects,
        )


def process_gateway_webhook(event: dict) -> WebhookOutcome:
    """Reconcile one gateway event into the matching transaction.

    Raises ValidationError for an event without a reference and
    ObjectNotFoundError for an unknown transaction number.
    """
    incoming = WebhookTransaction.from_event(event)
    transaction = current_domain.repository_for(Transaction).find_by_number(incoming.reference)
    event_type = (event or {}).get("event")

    logger.info(
        "webhook_received",
        event_type=event_type,
        transaction_number=incoming.reference,
        gateway_transaction_id=incoming.gateway_transaction_id,
        gateway_status=incoming.status,
    )

    with transaction_guard(transaction.id):
        return current_domain.process(
            incoming.to_command(str(transaction.id), event_type),
            asynchronous=False,
        )
