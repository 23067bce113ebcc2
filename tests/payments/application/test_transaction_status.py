"""Tests for the transaction status query."""

import pytest
from payments.reconciliation.webhook import process_gateway_webhook
from payments.transaction.status import get_transaction_status
from payments.transaction.transaction import Transaction
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain


class TestTransactionStatus:
    def test_refreshes_from_gateway_without_persisting(self, gateway, make_product, make_transaction):
        product = make_product()
        submitted = gateway.submit_payment(1.0, "COP", "TRX-1", "ana@example.com", "tok_test_12345")
        transaction = make_transaction([(product, 1)], gateway_transaction_id=submitted.gateway_transaction_id)

        view = get_transaction_status(transaction.transaction_number)

        assert view.status == "PENDING"
        assert view.gateway_status == "APPROVED"
        assert view.gateway_reported_status == "APPROVED"
        assert view.total == transaction.total.amount
        assert view.tracking_number is None
        assert current_domain.repository_for(Transaction).get(transaction.id).is_pending

    def test_gateway_failure_falls_back_to_stored_status(self, gateway, make_product, make_transaction):
        product = make_product()
        transaction = make_transaction([(product, 1)], gateway_transaction_id="fake_txn_unknown")

        view = get_transaction_status(transaction.transaction_number)

        assert view.status == "PENDING"
        assert view.gateway_status == "PENDING"

    def test_no_gateway_call_without_gateway_id(self, gateway, make_product, make_transaction):
        product = make_product()
        transaction = make_transaction([(product, 1)])

        view = get_transaction_status(transaction.transaction_number)

        assert view.gateway_status is None
        assert view.gateway_reported_status is None
        assert gateway.calls == []

    def test_includes_delivery_once_approved(self, gateway, make_product, make_transaction, webhook_event):
        product = make_product()
        transaction = make_transaction([(product, 1)])
        process_gateway_webhook(webhook_event(transaction.transaction_number))
        gateway.configure(fail_fetch=True)

        view = get_transaction_status(transaction.transaction_number)

        assert view.status == "APPROVED"
        assert view.tracking_number.startswith("TRACK-")
        assert view.estimated_delivery_date is not None
        assert view.processed_at is not None

    def test_unknown_transaction(self, gateway):
        with pytest.raises(ObjectNotFoundError):
            get_transaction_status("TRX-DOES-NOT-EXIST")
