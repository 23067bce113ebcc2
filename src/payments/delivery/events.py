"""Domain events for the Delivery aggregate."""

from protean.fields import Date, DateTime, Identifier, String

from payments.domain import payments


@payments.event(part_of="Delivery")
class DeliveryScheduled:
    """A delivery was created for an approved transaction."""

    __version__ = 1

    delivery_id: Identifier(required=True)
    transaction_id: Identifier(required=True)
    tracking_number: String(required=True)
    city: String()
    estimated_delivery_date: Date()
    scheduled_at: DateTime(required=True)
