"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement. This
enables swapping between FakeGateway (dev/test) and HttpGateway (a real card
gateway) without changing any domain or application code.

Adapters raise GatewayError internally. The public methods convert it into a
failed GatewayResult, so callers never see gateway exceptions.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from payments.shared.exceptions import GatewayError
from payments.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class GatewayResult:
    """A gateway transaction as seen by us, or the reason it could not be obtained."""

    success: bool
    gateway_transaction_id: str | None = None
    status: str | None = None
    status_message: str | None = None
    reference: str | None = None
    amount: float | None = None
    currency: str | None = None
    payment_method: str | None = None
    created_at: str | None = None
    error_message: str | None = None
    retryable: bool = False

    @classmethod
    def failure(cls, error: GatewayError) -> "GatewayResult":
        return cls(success=False, error_message=error.message, retryable=error.retryable)


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name = "gateway"

    def submit_payment(
        self,
        amount: float,
        currency: str,
        reference: str,
        customer_email: str,
        card_token: str,
    ) -> GatewayResult:
        """Create a card payment at the gateway for ``reference``."""
        try:
            return self._submit_payment(amount, currency, reference, customer_email, card_token)
        except GatewayError as exc:
            logger.warning(
                "gateway_submit_failed",
                gateway=self.name,
                reference=reference,
                error=exc.message,
                retryable=exc.retryable,
            )
            return GatewayResult.failure(exc)

    def fetch_transaction(self, gateway_transaction_id: str) -> GatewayResult:
        """Fetch the gateway's current view of a transaction."""
        try:
            return self._fetch_transaction(gateway_transaction_id)
        except GatewayError as exc:
            logger.warning(
                "gateway_fetch_failed",
                gateway=self.name,
                gateway_transaction_id=gateway_transaction_id,
                error=exc.message,
                retryable=exc.retryable,
            )
            return GatewayResult.failure(exc)

    @abstractmethod
    def _submit_payment(
        self,
        amount: float,
        currency: str,
        reference: str,
        customer_email: str,
        card_token: str,
    ) -> GatewayResult: ...

    @abstractmethod
    def _fetch_transaction(self, gateway_transaction_id: str) -> GatewayResult: ...

    @abstractmethod
    def verify_event_signature(self, event: dict) -> bool:
        """Verify that a webhook event is authentically from the gateway."""
        ...
