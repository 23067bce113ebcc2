"""HTTP adapter for the card payment gateway.

Submitting a payment takes two calls: the merchant endpoint hands out the
presigned acceptance token, then the transaction is created with an
integrity signature over reference, amount in cents and currency. Every
request carries a fresh X-Request-ID header. Amounts travel in cents.
"""

import hashlib
import hmac
import time
import uuid

import httpx

from payments.gateway.port import GatewayResult, PaymentGateway
from payments.shared.exceptions import GatewayError
from payments.utils.logging import get_logger

logger = get_logger(__name__)


def integrity_signature(reference: str, amount_in_cents: int, currency: str, secret: str) -> str:
    payload = f"{reference}{amount_in_cents}{currency}{secret}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def event_checksum(event: dict, secret: str) -> str:
    """Checksum the gateway puts in ``signature.checksum`` of a webhook event.

    Each entry of ``signature.properties`` is a dotted path into ``data``
    (e.g. ``transaction.status``); the resolved values are concatenated,
    followed by the event timestamp and the events secret.
    """
    data = event.get("data") or {}
    signature = event.get("signature") or {}
    values = []
    for prop in signature.get("properties") or []:
        value = data
        for key in prop.split("."):
            value = value.get(key) if isinstance(value, dict) else None
        values.append("" if value is None else str(value))
    payload = "".join(values) + str(event.get("timestamp", "")) + secret
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def format_gateway_error(body: dict) -> str | None:
    """Render ``{"error": {"type", "messages"}}`` as ``"<type> - field: msg, msg; ..."``."""
    error = body.get("error") if isinstance(body, dict) else None
    if not isinstance(error, dict):
        return None

    message = str(error.get("type") or "UNKNOWN_ERROR")
    messages = error.get("messages")
    if isinstance(messages, dict) and messages:
        parts = []
        for field, msgs in messages.items():
            text = ", ".join(str(m) for m in msgs) if isinstance(msgs, list) else str(msgs)
            parts.append(f"{field}: {text}")
        message = f"{message} - {'; '.join(parts)}"
    elif messages:
        message = f"{message} - {messages}"
    return message


class HttpGateway(PaymentGateway):
    """Card gateway reached over HTTP with httpx."""

    name = "http"

    def __init__(
        self,
        base_url: str,
        public_key: str,
        private_key: str,
        integrity_secret: str,
        events_secret: str = "",
        timeout: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.public_key = public_key
        self.private_key = private_key
        self.integrity_secret = integrity_secret
        self.events_secret = events_secret
        self.client = client or httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    @staticmethod
    def _request_id() -> str:
        return f"REQ-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"

    def _request(self, method: str, path: str, authenticated: bool = False, **kwargs) -> dict:
        headers = {"X-Request-ID": self._request_id()}
        if authenticated:
            headers["Authorization"] = f"Bearer {self.private_key}"

        try:
            response = self.client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise GatewayError(f"Gateway timed out: {exc}", retryable=True) from exc
        except httpx.TransportError as exc:
            raise GatewayError(f"Gateway unreachable: {exc}", retryable=True) from exc

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            detail = format_gateway_error(body) or response.text or response.reason_phrase
            raise GatewayError(
                f"Gateway error {response.status_code}: {detail}",
                retryable=response.status_code >= 500,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError("Gateway returned a non-JSON response", retryable=True) from exc

    def _acceptance_token(self) -> str:
        body = self._request("GET", f"/merchants/{self.public_key}")
        presigned = (body.get("data") or {}).get("presigned_acceptance") or {}
        token = presigned.get("acceptance_token")
        if not token:
            raise GatewayError("Failed to get acceptance token", retryable=True)
        return token

    @staticmethod
    def _to_result(transaction: dict) -> GatewayResult:
        amount_in_cents = transaction.get("amount_in_cents")
        return GatewayResult(
            success=True,
            gateway_transaction_id=transaction.get("id"),
            status=transaction.get("status"),
            status_message=transaction.get("status_message") or "",
            reference=transaction.get("reference"),
            amount=amount_in_cents / 100 if amount_in_cents is not None else None,
            currency=transaction.get("currency"),
            payment_method=transaction.get("payment_method_type"),
            created_at=transaction.get("created_at"),
        )

    def _submit_payment(
        self,
        amount: float,
        currency: str,
        reference: str,
        customer_email: str,
        card_token: str,
    ) -> GatewayResult:
        acceptance_token = self._acceptance_token()
        amount_in_cents = round(amount * 100)
        payload = {
            "acceptance_token": acceptance_token,
            "amount_in_cents": amount_in_cents,
            "currency": currency,
            "customer_email": customer_email,
            "reference": reference,
            "signature": integrity_signature(reference, amount_in_cents, currency, self.integrity_secret),
            "payment_method": {
                "type": "CARD",
                "token": card_token,
                "installments": 1,
            },
        }
        body = self._request("POST", "/transactions", authenticated=True, json=payload)
        result = self._to_result(body.get("data") or {})
        logger.info(
            "gateway_payment_submitted",
            reference=reference,
            gateway_transaction_id=result.gateway_transaction_id,
            status=result.status,
        )
        return result

    def _fetch_transaction(self, gateway_transaction_id: str) -> GatewayResult:
        body = self._request("GET", f"/transactions/{gateway_transaction_id}", authenticated=True)
        return self._to_result(body.get("data") or {})

    def verify_event_signature(self, event: dict) -> bool:
        if not self.events_secret:
            logger.warning("gateway_events_secret_missing")
            return False
        checksum = str((event.get("signature") or {}).get("checksum") or "")
        expected = event_checksum(event, self.events_secret)
        return hmac.compare_digest(checksum.lower(), expected)

    def close(self) -> None:
        self.client.close()
