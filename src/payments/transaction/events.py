"""Domain events for the Transaction aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from payments.domain import payments


@payments.event(part_of="Transaction")
class TransactionCreated:
    """A priced order was recorded as PENDING."""

    __version__ = 1

    transaction_id: Identifier(required=True)
    transaction_number: String(required=True)
    customer_id: Identifier(required=True)
    total: Float(required=True)
    currency: String(required=True)
    item_count: Integer(required=True)
    created_at: DateTime(required=True)


@payments.event(part_of="Transaction")
class TransactionApproved:
    """The gateway approved the payment."""

    __version__ = 1

    transaction_id: Identifier(required=True)
    transaction_number: String(required=True)
    gateway_transaction_id: String()
    gateway_status: String()
    approved_at: DateTime(required=True)


@payments.event(part_of="Transaction")
class TransactionDeclined:
    """The gateway declined or voided the payment."""

    __version__ = 1

    transaction_id: Identifier(required=True)
    transaction_number: String(required=True)
    gateway_transaction_id: String()
    gateway_status: String()
    reason: String()
    declined_at: DateTime(required=True)


@payments.event(part_of="Transaction")
class TransactionFailed:
    """The payment ended in ERROR, at the gateway or locally."""

    __version__ = 1

    transaction_id: Identifier(required=True)
    transaction_number: String(required=True)
    gateway_transaction_id: String()
    gateway_status: String()
    reason: String()
    failed_at: DateTime(required=True)
