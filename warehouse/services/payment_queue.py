"""Payment queue interfaces and an in-memory simulated queue.

The payment queue is owned by the platform: it delivers batches of
transaction updates to its observers and redelivers any transaction that has
not been finished. SimulatedPaymentQueue plays that role for local
development and tests.
"""

import json
import threading
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from warehouse.exceptions import (
    PaymentError,
    PaymentErrorCode,
    RestoreError,
    TransactionAlreadyFinishedError,
)
from warehouse.logging_config import get_logger
from warehouse.models import Payment, PaymentTransaction, TransactionState
from warehouse.state_logger import log_transaction_finished
from warehouse.utils import generate_transaction_id, millis_now

logger = get_logger(__name__)


class PaymentQueueObserver(Protocol):
    """Receives transaction updates from a payment queue."""

    def updated_transactions(self, transactions: Sequence[PaymentTransaction]) -> None:
        ...

    def restore_completed_transactions_finished(self) -> None:
        ...

    def restore_completed_transactions_failed(self, error: Exception) -> None:
        ...


class PaymentQueue(Protocol):
    """Externally owned stream of transaction state changes."""

    def add_observer(self, observer: PaymentQueueObserver) -> None:
        ...

    def add_payment(self, payment: Payment) -> None:
        ...

    def restore_completed_transactions(self) -> None:
        ...

    def finish_transaction(self, transaction: PaymentTransaction) -> None:
        ...

    def can_make_payments(self) -> bool:
        ...


class TransactionNotFoundError(Exception):
    """Raised when a transaction is not known to the simulated queue."""

    pass


class SimulatedPaymentQueue:
    """In-memory payment queue.

    Delivers batches synchronously to observers. State changes are driven
    through control methods (approve, defer, fail, cancel, ...). Unfinished
    transactions can be redelivered with ``redeliver_unfinished``.

    Thread-safe.
    """

    def __init__(
        self,
        bundle_id: str = "com.example.app",
        environment: str = "Sandbox",
        auto_approve: bool = False,
        payments_allowed: bool = True,
    ):
        """Initialize simulated queue.

        Args:
            bundle_id: Bundle identifier written into generated receipts
            environment: Receipt environment ("Sandbox" or "Production")
            auto_approve: Move new payments straight from PURCHASING to PURCHASED
            payments_allowed: Value reported by can_make_payments
        """
        self._lock = threading.RLock()
        self._observers: List[PaymentQueueObserver] = []
        self._transactions: Dict[str, PaymentTransaction] = {}
        self._finished: Dict[str, PaymentTransaction] = {}
        self._purchase_times: Dict[str, int] = {}
        self._history: List[PaymentTransaction] = []
        self._restore_error: Optional[Exception] = None
        self.bundle_id = bundle_id
        self.environment = environment
        self.auto_approve = auto_approve
        self.payments_allowed = payments_allowed

    # PaymentQueue protocol

    def add_observer(self, observer: PaymentQueueObserver) -> None:
        with self._lock:
            if observer not in self._observers:
                self._observers.append(observer)

    def remove_observer(self, observer: PaymentQueueObserver) -> None:
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def can_make_payments(self) -> bool:
        return self.payments_allowed

    def add_payment(self, payment: Payment) -> None:
        """Create a PURCHASING transaction for the payment and deliver it."""
        transaction = PaymentTransaction(
            transaction_id=generate_transaction_id(),
            product_id=payment.product_id,
            quantity=payment.quantity,
        )
        with self._lock:
            self._transactions[transaction.transaction_id] = transaction

        logger.info(
            "payment_added",
            transaction_id=transaction.transaction_id,
            product_id=payment.product_id,
        )
        # Observers see PURCHASING before any approval
        self._deliver([transaction])

        if self.auto_approve:
            self.approve(transaction.transaction_id)

    def restore_completed_transactions(self) -> None:
        """Deliver RESTORED transactions for past purchases, then the outcome signal."""
        with self._lock:
            error = self._restore_error
            self._restore_error = None
            history = list(self._history)

        # An armed failure is consumed by this restore only
        if error is not None:
            logger.info("restore_failed", error=str(error))
            for observer in self._observers_snapshot():
                observer.restore_completed_transactions_failed(error)
            return

        # Fresh RESTORED transactions pointing at the original purchases
        restored = []
        for original in history:
            transaction = PaymentTransaction(
                transaction_id=generate_transaction_id(),
                product_id=original.product_id,
                state=TransactionState.RESTORED,
                original_transaction_id=original.transaction_id,
                quantity=original.quantity,
            )
            restored.append(transaction)

        with self._lock:
            for transaction in restored:
                self._transactions[transaction.transaction_id] = transaction

        logger.info("restore_started", restored=len(restored))
        if restored:
            self._deliver(restored)
        for observer in self._observers_snapshot():
            observer.restore_completed_transactions_finished()

    def finish_transaction(self, transaction: PaymentTransaction) -> None:
        """Acknowledge a transaction so it is never redelivered.

        Raises:
            TransactionAlreadyFinishedError: If finished before
            TransactionNotFoundError: If the transaction is unknown
        """
        with self._lock:
            transaction_id = transaction.transaction_id
            if transaction_id in self._finished:
                raise TransactionAlreadyFinishedError(transaction_id)
            current = self._transactions.pop(transaction_id, None)
            if current is None:
                raise TransactionNotFoundError(f"Transaction not found: {transaction_id}")
            self._finished[transaction_id] = current
            if current.state is TransactionState.PURCHASED:
                self._history.append(current)

        log_transaction_finished(transaction_id, current.product_id, current.state)

    # Control operations

    def approve(self, transaction_id: str) -> PaymentTransaction:
        """Complete payment: PURCHASING/DEFERRED -> PURCHASED."""
        transaction = self._transition(
            transaction_id, TransactionState.PURCHASED, reason="payment approved"
        )
        with self._lock:
            self._purchase_times[transaction_id] = millis_now()
        self._deliver([transaction])
        return transaction

    def defer(self, transaction_id: str) -> PaymentTransaction:
        """Await external approval: PURCHASING -> DEFERRED."""
        transaction = self._transition(
            transaction_id, TransactionState.DEFERRED, reason="awaiting approval"
        )
        self._deliver([transaction])
        return transaction

    def fail(
        self,
        transaction_id: str,
        code: PaymentErrorCode = PaymentErrorCode.UNKNOWN,
        description: Optional[str] = None,
    ) -> PaymentTransaction:
        """Fail the payment with the given error code."""
        transaction = self._transition(
            transaction_id,
            TransactionState.FAILED,
            reason=code.name.lower(),
            error=PaymentError(code, description),
        )
        self._deliver([transaction])
        return transaction

    def cancel(self, transaction_id: str) -> PaymentTransaction:
        """User cancelled the payment."""
        return self.fail(transaction_id, PaymentErrorCode.PAYMENT_CANCELLED)

    def add_purchase_history(self, product_ids: Iterable[str]) -> List[PaymentTransaction]:
        """Seed previously completed purchases available for restore."""
        seeded = []
        now = millis_now()
        with self._lock:
            for product_id in product_ids:
                transaction = PaymentTransaction(
                    transaction_id=generate_transaction_id(),
                    product_id=product_id,
                    state=TransactionState.PURCHASED,
                )
                self._history.append(transaction)
                self._purchase_times[transaction.transaction_id] = now
                seeded.append(transaction)
        return seeded

    def fail_restore(self, error: Optional[Exception] = None) -> None:
        """Make the next restore_completed_transactions fail."""
        with self._lock:
            self._restore_error = error or RestoreError()

    def redeliver_unfinished(self) -> List[PaymentTransaction]:
        """Redeliver every transaction that has not been finished."""
        pending = self.unfinished_transactions()
        if pending:
            logger.info("transactions_redelivered", count=len(pending))
            self._deliver(pending)
        return pending

    # Inspection

    def get_transaction(self, transaction_id: str) -> PaymentTransaction:
        with self._lock:
            transaction = self._transactions.get(transaction_id) or self._finished.get(transaction_id)
            if transaction is None:
                raise TransactionNotFoundError(f"Transaction not found: {transaction_id}")
            return transaction

    def unfinished_transactions(self) -> List[PaymentTransaction]:
        with self._lock:
            return list(self._transactions.values())

    def finished_transactions(self) -> List[PaymentTransaction]:
        with self._lock:
            return list(self._finished.values())

    def is_finished(self, transaction_id: str) -> bool:
        with self._lock:
            return transaction_id in self._finished

    def receipt_document(self) -> dict:
        """Render the local receipt listing paid and restored-from purchases."""
        with self._lock:
            paid = [
                t
                for t in list(self._transactions.values()) + self._history
                if t.state is TransactionState.PURCHASED
            ]
            purchase_times = dict(self._purchase_times)

        in_app = []
        seen = set()
        # Same transaction id listed once
        for transaction in paid:
            if transaction.transaction_id in seen:
                continue
            seen.add(transaction.transaction_id)
            purchased_at = str(purchase_times.get(transaction.transaction_id, millis_now()))
            in_app.append(
                {
                    "quantity": str(transaction.quantity),
                    "product_id": transaction.product_id,
                    "transaction_id": transaction.transaction_id,
                    "original_transaction_id": transaction.transaction_id,
                    "purchase_date_ms": purchased_at,
                    "original_purchase_date_ms": purchased_at,
                }
            )
        return {
            "bundle_id": self.bundle_id,
            "application_version": "1.0",
            "original_application_version": "1.0",
            "environment": self.environment,
            "in_app": in_app,
        }

    def receipt_bytes(self) -> bytes:
        """Local receipt document encoded as the app would read it from disk."""
        return json.dumps(self.receipt_document()).encode("utf-8")

    def _transition(
        self,
        transaction_id: str,
        new_state: TransactionState,
        reason: Optional[str] = None,
        error: Optional[PaymentError] = None,
    ) -> PaymentTransaction:
        with self._lock:
            transaction = self._transactions.get(transaction_id)
            if transaction is None:
                raise TransactionNotFoundError(
                    f"No unfinished transaction with id: {transaction_id}"
                )
            transaction.set_state(new_state, reason=reason, error=error)
            return transaction

    def _observers_snapshot(self) -> List[PaymentQueueObserver]:
        with self._lock:
            return list(self._observers)

    def _deliver(self, transactions: List[PaymentTransaction]) -> None:
        for observer in self._observers_snapshot():
            observer.updated_transactions(list(transactions))
