"""Configurable fake payment gateway for development and testing.

This adapter simulates the card gateway without any external calls. It can be
configured at runtime, making it useful for:
- Manual API testing via /payments/gateway/configure
- Automated tests with predictable outcomes
- Development without real gateway credentials

Submitted transactions start in ``initial_status``. A PENDING transaction
moves to ``settle_to`` the first time it is fetched, which is how the
sandbox gateway behaves for test cards.
"""

from datetime import UTC, datetime
from uuid import uuid4

from payments.gateway.port import GatewayResult, PaymentGateway
from payments.shared.exceptions import GatewayError


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    name = "fake"

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.failure_retryable: bool = True
        self.initial_status: str = "PENDING"
        self.settle_to: str | None = "APPROVED"
        self.status_message: str | None = None
        self.fail_fetch: bool = False
        self.transactions: dict[str, dict] = {}
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool = True,
        initial_status: str = "PENDING",
        settle_to: str | None = "APPROVED",
        failure_reason: str = "Gateway unavailable",
        failure_retryable: bool = True,
        status_message: str | None = None,
        fail_fetch: bool = False,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.initial_status = initial_status.upper()
        self.settle_to = settle_to.upper() if settle_to else None
        self.failure_reason = failure_reason
        self.failure_retryable = failure_retryable
        self.status_message = status_message
        self.fail_fetch = fail_fetch

    def set_status(self, gateway_transaction_id: str, status: str, status_message: str | None = None) -> None:
        """Change what the gateway reports for an existing transaction."""
        record = self.transactions[gateway_transaction_id]
        record["status"] = status.upper()
        record["status_message"] = status_message

    def _result(self, record: dict) -> GatewayResult:
        return GatewayResult(
            success=True,
            gateway_transaction_id=record["id"],
            status=record["status"],
            status_message=record["status_message"],
            reference=record["reference"],
            amount=record["amount"],
            currency=record["currency"],
            payment_method="CARD",
            created_at=record["created_at"],
        )

    def _submit_payment(
        self,
        amount: float,
        currency: str,
        reference: str,
        customer_email: str,
        card_token: str,
    ) -> GatewayResult:
        call = {
            "method": "submit_payment",
            "amount": amount,
            "currency": currency,
            "reference": reference,
            "customer_email": customer_email,
            "card_token": card_token,
        }
        self.calls.append(call)

        if not self.should_succeed:
            raise GatewayError(self.failure_reason, retryable=self.failure_retryable)

        record = {
            "id": f"fake_txn_{uuid4().hex[:12]}",
            "status": self.initial_status,
            "status_message": self.status_message,
            "reference": reference,
            "amount": amount,
            "currency": currency,
            "created_at": datetime.now(UTC).isoformat(),
        }
        self.transactions[record["id"]] = record
        return self._result(record)

    def _fetch_transaction(self, gateway_transaction_id: str) -> GatewayResult:
        self.calls.append({"method": "fetch_transaction", "gateway_transaction_id": gateway_transaction_id})

        if self.fail_fetch:
            raise GatewayError(self.failure_reason, retryable=True)

        record = self.transactions.get(gateway_transaction_id)
        if record is None:
            raise GatewayError(f"Transaction {gateway_transaction_id} not found", retryable=False, status_code=404)

        if record["status"] == "PENDING" and self.settle_to:
            record["status"] = self.settle_to
        return self._result(record)

    def verify_event_signature(self, event: dict) -> bool:
        signature = event.get("signature") or {}
        return signature.get("checksum") == "test-signature"
