"""Customer aggregate and upsert-by-email."""

import re
from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, String
from protean.utils.globals import current_domain

from payments.domain import payments
from payments.reconciliation.guards import customer_guard
from payments.utils.logging import get_logger

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@payments.aggregate
class Customer:
    email: String(required=True, max_length=254, unique=True)
    full_name: String(required=True, max_length=255)
    phone: String(required=True, max_length=20)
    created_at: DateTime()
    updated_at: DateTime()

    @invariant.post
    def email_must_be_valid(self):
        if not EMAIL_PATTERN.match(self.email or ""):
            raise ValidationError({"email": ["Invalid email format"]})

    @invariant.post
    def phone_must_have_at_least_seven_characters(self):
        if len((self.phone or "").strip()) < 7:
            raise ValidationError({"phone": ["Phone must be at least 7 characters"]})

    @invariant.post
    def full_name_must_have_at_least_three_characters(self):
        if len((self.full_name or "").strip()) < 3:
            raise ValidationError({"full_name": ["Full name must be at least 3 characters"]})

    @classmethod
    def register(cls, email, full_name, phone):
        now = datetime.now(UTC)
        return cls(
            email=email.strip().lower(),
            full_name=full_name.strip(),
            phone=phone.strip(),
            created_at=now,
            updated_at=now,
        )


@payments.repository(part_of=Customer)
class CustomerRepository:
    def find_by_email(self, email: str) -> Customer | None:
        return self._dao.query.filter(email=email.strip().lower()).all().first


def get_or_create_customer(email: str, full_name: str, phone: str) -> Customer:
    """Return the customer registered under ``email``, creating it on first use.

    An existing customer is returned as is; details sent with later orders do
    not overwrite it.
    """
    repo = current_domain.repository_for(Customer)
    with customer_guard(email.strip().lower()):
        customer = repo.find_by_email(email)
        if customer is not None:
            return customer

        customer = Customer.register(email=email, full_name=full_name, phone=phone)
        repo.add(customer)

    logger.info("customer_created", customer_id=str(customer.id), email=customer.email)
    return customer
