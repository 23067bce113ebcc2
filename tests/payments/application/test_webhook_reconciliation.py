"""Tests for reconciling gateway webhook events."""

import pytest
from payments.delivery.delivery import Delivery
from payments.product.product import Product
from payments.reconciliation.webhook import WebhookTransaction, process_gateway_webhook
from payments.transaction.transaction import Transaction, TransactionStatus
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain


def _reload(transaction):
    return current_domain.repository_for(Transaction).get(transaction.id)


def _stock(product):
    return current_domain.repository_for(Product).get(product.id).stock


def _deliveries():
    return current_domain.repository_for(Delivery)._dao.query.all().items


class TestWebhookTransaction:
    def test_from_event(self, webhook_event):
        event = webhook_event(
            "TRX-1",
            status="DECLINED",
            status_message="Insufficient funds",
            shipping_address={"address_line_1": "Calle 10", "city": "Cali", "region": "Valle"},
        )
        incoming = WebhookTransaction.from_event(event)

        assert incoming.reference == "TRX-1"
        assert incoming.status == "DECLINED"
        assert incoming.gateway_transaction_id == "gw-txn-001"
        assert incoming.status_message == "Insufficient funds"
        assert incoming.shipping.city == "Cali"

    def test_without_shipping_address(self, webhook_event):
        assert WebhookTransaction.from_event(webhook_event("TRX-1")).shipping is None

    def test_missing_reference_rejected(self):
        with pytest.raises(ValidationError):
            WebhookTransaction.from_event({"event": "transaction.updated", "data": {"transaction": {"id": "x"}}})


class TestWebhookApproval:
    def test_lowercase_approved(self, make_product, make_transaction, webhook_event):
        product = make_product(stock=10)
        transaction = make_transaction([(product, 2)])

        outcome = process_gateway_webhook(webhook_event(transaction.transaction_number, status="approved"))

        assert outcome.processed
        assert outcome.status == TransactionStatus.APPROVED.value
        assert outcome.message == "Webhook processed successfully"
        assert outcome.effects.settled

        stored = _reload(transaction)
        assert stored.is_approved
        assert stored.gateway_transaction_id == "gw-txn-001"
        assert stored.gateway_status == "APPROVED"
        assert stored.processed_at is not None
        assert _stock(product) == 8
        assert len(_deliveries()) == 1

    def test_duplicate_approval_is_a_no_op(self, make_product, make_transaction, webhook_event):
        product = make_product(stock=10)
        transaction = make_transaction([(product, 2)])
        event = webhook_event(transaction.transaction_number, status="APPROVED")

        process_gateway_webhook(event)
        processed_at = _reload(transaction).processed_at
        second = process_gateway_webhook(event)

        assert not second.processed
        assert second.message == "Webhook received (already processed)"
        assert second.status == TransactionStatus.APPROVED.value
        assert _reload(transaction).processed_at == processed_at
        assert _stock(product) == 8
        assert len(_deliveries()) == 1

    def test_shipping_address_from_event_is_used(self, make_product, make_transaction, webhook_event):
        product = make_product(stock=10)
        transaction = make_transaction([(product, 1)])
        event = webhook_event(
            transaction.transaction_number,
            shipping_address={"address_line_1": "Carrera 7 #12-34", "city": "Medellín", "region": "Antioquia"},
        )

        process_gateway_webhook(event)

        delivery = _deliveries()[0]
        assert delivery.address == "Carrera 7 #12-34"
        assert delivery.city == "Medellín"


class TestWebhookOtherOutcomes:
    def test_declined(self, make_product, make_transaction, webhook_event):
        product = make_product(stock=10)
        transaction = make_transaction([(product, 2)])

        outcome = process_gateway_webhook(
            webhook_event(transaction.transaction_number, status="DECLINED", status_message="Insufficient funds")
        )

        assert outcome.processed
        assert outcome.effects is None
        stored = _reload(transaction)
        assert stored.status == TransactionStatus.DECLINED.value
        assert stored.error_message == "Insufficient funds"
        assert _stock(product) == 10
        assert _deliveries() == []

    def test_voided_is_declined(self, make_product, make_transaction, webhook_event):
        product = make_product()
        transaction = make_transaction([(product, 1)])
        process_gateway_webhook(webhook_event(transaction.transaction_number, status="VOIDED"))
        assert _reload(transaction).status == TransactionStatus.DECLINED.value

    def test_error(self, make_product, make_transaction, webhook_event):
        product = make_product()
        transaction = make_transaction([(product, 1)])
        process_gateway_webhook(webhook_event(transaction.transaction_number, status="ERROR"))

        stored = _reload(transaction)
        assert stored.status == TransactionStatus.ERROR.value
        assert stored.error_message == "Payment error reported by gateway"

    def test_pending_records_gateway_id_only(self, make_product, make_transaction, webhook_event):
        product = make_product()
        transaction = make_transaction([(product, 1)])
        outcome = process_gateway_webhook(webhook_event(transaction.transaction_number, status="PENDING"))

        assert outcome.status == TransactionStatus.PENDING.value
        stored = _reload(transaction)
        assert stored.is_pending
        assert stored.gateway_transaction_id == "gw-txn-001"

    def test_approval_after_decline_is_ignored(self, make_product, make_transaction, webhook_event):
        product = make_product(stock=10)
        transaction = make_transaction([(product, 1)])
        process_gateway_webhook(webhook_event(transaction.transaction_number, status="DECLINED"))

        outcome = process_gateway_webhook(webhook_event(transaction.transaction_number, status="APPROVED"))

        assert not outcome.processed
        assert _reload(transaction).status == TransactionStatus.DECLINED.value
        assert _stock(product) == 10
        assert _deliveries() == []

    def test_unknown_reference(self, webhook_event):
        with pytest.raises(ObjectNotFoundError):
            process_gateway_webhook(webhook_event("TRX-DOES-NOT-EXIST"))
