"""Tests for transaction state change and entitlement logging."""

from unittest.mock import patch

import pytest

from warehouse.models import PaymentTransaction, TransactionState
from warehouse.exceptions import PaymentError, PaymentErrorCode
from warehouse.state_logger import (
    log_entitlement_recorded,
    log_transaction_finished,
    log_transaction_received,
    log_transaction_state_change,
)


@pytest.fixture
def transaction():
    """Create a test transaction in PURCHASING state."""
    return PaymentTransaction(transaction_id="1000000000000001", product_id="com.app.pro")


@pytest.fixture
def mock_logger():
    with patch("warehouse.state_logger.logger") as logger:
        yield logger


class TestTransactionStateChanges:
    """Test logging of transaction transitions."""

    def test_set_state_logs_transition(self, transaction, mock_logger):
        """State change is logged with old and new state names."""
        transaction.set_state(TransactionState.PURCHASED, reason="payment approved")

        assert transaction.state is TransactionState.PURCHASED
        mock_logger.info.assert_called_once_with(
            "transaction_state_changed",
            transaction_id="1000000000000001",
            product_id="com.app.pro",
            old_state="PURCHASING",
            new_state="PURCHASED",
            reason="payment approved",
        )

    def test_same_state_is_not_logged(self, transaction, mock_logger):
        transaction.set_state(TransactionState.PURCHASING)

        mock_logger.info.assert_not_called()

    def test_failed_state_keeps_error(self, transaction, mock_logger):
        error = PaymentError(PaymentErrorCode.PAYMENT_CANCELLED)

        transaction.set_state(TransactionState.FAILED, reason="cancelled", error=error)

        assert transaction.error is error
        assert mock_logger.info.call_args.kwargs["new_state"] == "FAILED"

    def test_new_transaction_has_no_old_state(self, mock_logger):
        log_transaction_state_change(
            "1000000000000002", "com.app.pro", None, TransactionState.PURCHASING
        )

        assert mock_logger.info.call_args.kwargs["old_state"] is None

    def test_extra_context_is_passed_through(self, mock_logger):
        log_transaction_state_change(
            "1000000000000002",
            "com.app.pro",
            TransactionState.PURCHASING,
            TransactionState.DEFERRED,
            reason="ask to buy",
            environment="Sandbox",
        )

        assert mock_logger.info.call_args.kwargs["environment"] == "Sandbox"


class TestQueueLogging:
    """Test logging of queue deliveries and acknowledgements."""

    def test_transaction_received(self, mock_logger):
        log_transaction_received("1000000000000001", "com.app.pro", TransactionState.RESTORED)

        mock_logger.info.assert_called_once_with(
            "transaction_received",
            transaction_id="1000000000000001",
            product_id="com.app.pro",
            state="RESTORED",
        )

    def test_transaction_finished(self, mock_logger):
        log_transaction_finished("1000000000000001", "com.app.pro", TransactionState.FAILED)

        assert mock_logger.info.call_args.args == ("transaction_finished",)
        assert mock_logger.info.call_args.kwargs["state"] == "FAILED"


class TestEntitlementLogging:
    """Test entitlement write logging."""

    def test_newly_recorded(self, mock_logger):
        log_entitlement_recorded("com.app.pro", newly_recorded=True, total=1)

        mock_logger.info.assert_called_once_with(
            "entitlement_recorded", product_id="com.app.pro", total=1
        )

    def test_already_recorded(self, mock_logger):
        log_entitlement_recorded("com.app.pro", newly_recorded=False)

        mock_logger.info.assert_called_once_with(
            "entitlement_already_recorded", product_id="com.app.pro"
        )
