"""Delivery aggregate: one per approved transaction.

The existence of a Delivery for a transaction id is the fence that stops
either reconciliation path from scheduling the same shipment twice;
``transaction_id`` is also unique at the storage level.
"""

from datetime import UTC, datetime, timedelta

from protean.fields import Date, DateTime, Identifier, String

from payments.delivery.events import DeliveryScheduled
from payments.domain import payments
from payments.shared.fees import estimated_delivery_days
from payments.shared.references import generate_reference

ADDRESS_PLACEHOLDER = "Address not provided"
CITY_PLACEHOLDER = "City not provided"
DEPARTMENT_PLACEHOLDER = "Region not provided"


@payments.aggregate
class Delivery:
    transaction_id: Identifier(required=True, unique=True)
    address: String(required=True, max_length=500)
    city: String(required=True, max_length=100)
    department: String(required=True, max_length=100)
    tracking_number: String(required=True, max_length=50, unique=True)
    estimated_delivery_date: Date()
    created_at: DateTime()
    updated_at: DateTime()

    @staticmethod
    def generate_tracking_number() -> str:
        return generate_reference("TRACK")

    @classmethod
    def schedule(cls, transaction_id, address=None, city=None, department=None):
        """Create the delivery for an approved transaction.

        Missing address parts get placeholders pending manual resolution. The
        estimated date depends on the destination's delivery tier.
        """
        now = datetime.now(UTC)
        eta = (now + timedelta(days=estimated_delivery_days(city))).date()
        delivery = cls(
            transaction_id=transaction_id,
            address=address or ADDRESS_PLACEHOLDER,
            city=city or CITY_PLACEHOLDER,
            department=department or DEPARTMENT_PLACEHOLDER,
            tracking_number=cls.generate_tracking_number(),
            estimated_delivery_date=eta,
            created_at=now,
            updated_at=now,
        )
        delivery.raise_(
            DeliveryScheduled(
                delivery_id=str(delivery.id),
                transaction_id=str(transaction_id),
                tracking_number=delivery.tracking_number,
                city=delivery.city,
                estimated_delivery_date=eta,
                scheduled_at=now,
            )
        )
        return delivery

    @property
    def has_placeholder_address(self) -> bool:
        return (
            self.address == ADDRESS_PLACEHOLDER
            or self.city == CITY_PLACEHOLDER
            or self.department == DEPARTMENT_PLACEHOLDER
        )


@payments.repository(part_of=Delivery)
class DeliveryRepository:
    def find_by_transaction_id(self, transaction_id: str) -> Delivery | None:
        return self._dao.query.filter(transaction_id=str(transaction_id)).all().first
