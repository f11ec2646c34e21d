"""Transaction Coordinator - drives payment transactions to completion.

Responsibilities:
- Observe the payment queue and dispatch each transaction by state
- Validate receipts for purchased (and restored) transactions
- Record entitlements once validation succeeds
- Finish every transaction exactly once
- Report outcomes through events and pending purchase/restore futures

Concurrency: everything runs on one asyncio event loop. Queue delivery is
synchronous and never blocks; receipt validation runs in tasks whose
continuations resume on the same loop.
"""

import asyncio
from collections import OrderedDict
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from warehouse.exceptions import (
    InvalidProductIdentifierError,
    NoProductsFoundError,
    PaymentError,
    PaymentErrorCode,
    PurchaseInProgressError,
    ReceiptUnavailableError,
    TransactionAlreadyFinishedError,
)
from warehouse.logging_config import get_logger
from warehouse.models import (
    Payment,
    PaymentTransaction,
    ProductDefinition,
    TransactionState,
    ValidationResult,
    WarehouseEvent,
    WarehouseResult,
)
from warehouse.repositories.entitlement_ledger import EntitlementLedger
from warehouse.repositories.product_catalog import ProductCatalog
from warehouse.repositories.receipt_source import ReceiptSource
from warehouse.services.event_dispatcher import EventSink
from warehouse.services.payment_queue import PaymentQueue
from warehouse.services.receipt_validator import ReceiptValidator
from warehouse.state_logger import log_transaction_received

logger = get_logger(__name__)

Completion = Callable[[WarehouseResult], None]

# Recently finished transaction ids remembered to skip duplicate finishes
FINISHED_WINDOW_SIZE = 1024


class _PendingRequest:
    """A caller waiting on a purchase or restore outcome."""

    def __init__(self, completion: Optional[Completion]):
        self.future: "asyncio.Future[WarehouseResult]" = asyncio.get_running_loop().create_future()
        self.completion = completion

    def resolve(self, result: WarehouseResult) -> None:
        if not self.future.done():
            self.future.set_result(result)
        if self.completion is not None:
            try:
                self.completion(result)
            except Exception as e:
                logger.error(
                    "completion_callback_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )


class Warehouse:
    """Coordinates the payment queue, receipt validation and entitlements.

    Constructed once at startup and registered as the payment queue's
    observer. Must be used from within a running asyncio event loop.
    """

    def __init__(
        self,
        payment_queue: PaymentQueue,
        validator: ReceiptValidator,
        ledger: EntitlementLedger,
        events: EventSink,
        receipt_source: ReceiptSource,
        catalog: Optional[ProductCatalog] = None,
        validate_restored_transactions: bool = True,
    ):
        """Initialize the coordinator and subscribe to the payment queue.

        Args:
            payment_queue: Queue delivering transaction updates
            validator: Receipt validator
            ledger: Entitlement ledger
            events: Sink receiving outcome events
            receipt_source: Provides the local receipt bytes
            catalog: Product catalog for retrieve_products
            validate_restored_transactions: Deep-check restored products
                against the receipt before recording them
        """
        self._queue = payment_queue
        self._validator = validator
        self._ledger = ledger
        self._events = events
        self._receipt_source = receipt_source
        self._catalog = catalog
        self._validate_restored = validate_restored_transactions

        self.product_identifiers: List[str] = []
        self.products: List[ProductDefinition] = []
        self.invalid_identifiers: List[str] = []
        self._products_loaded = False

        self._pending_purchases: Dict[str, _PendingRequest] = {}
        self._pending_restores: List[_PendingRequest] = []
        self._validating: Set[str] = set()
        self._finished: "OrderedDict[str, None]" = OrderedDict()
        self._tasks: Set["asyncio.Task[None]"] = set()
        self._restore_tasks: Set["asyncio.Task[None]"] = set()
        self._restore_errors: List[Exception] = []

        payment_queue.add_observer(self)

    # Products

    async def set_product_identifiers(self, product_ids: Iterable[str]) -> List[ProductDefinition]:
        """Replace the product identifiers and retrieve their metadata."""
        self.product_identifiers = list(dict.fromkeys(product_ids))
        return await self.retrieve_products()

    async def retrieve_products(self) -> List[ProductDefinition]:
        """Look up the configured product identifiers in the catalog.

        Emits NO_PRODUCTS when nothing valid comes back, PRODUCTS_RETRIEVED
        otherwise.
        """
        if self._catalog is None:
            raise RuntimeError("No product catalog configured")

        response = await self._catalog.fetch_products(self.product_identifiers)
        self.products = list(response.products)
        self.invalid_identifiers = list(response.invalid_identifiers)
        self._products_loaded = True

        if self.invalid_identifiers:
            logger.warning("invalid_product_identifiers", product_ids=self.invalid_identifiers)

        if not self.products:
            self._events.emit(WarehouseEvent.NO_PRODUCTS, NoProductsFoundError())
        else:
            logger.info("products_retrieved", product_ids=[p.id for p in self.products])
            self._events.emit(WarehouseEvent.PRODUCTS_RETRIEVED, list(self.products))
        return self.products

    # Public API

    def purchase(
        self, product_id: str, completion: Optional[Completion] = None
    ) -> "asyncio.Future[WarehouseResult]":
        """Start a purchase.

        Args:
            product_id: Product to buy
            completion: Optional callback invoked once with the outcome

        Returns:
            Future resolved once with the outcome

        Raises:
            InvalidProductIdentifierError: If products were retrieved and
                product_id is not among them
            PurchaseInProgressError: If a purchase of product_id is pending
        """
        if self._products_loaded and product_id not in {p.id for p in self.products}:
            raise InvalidProductIdentifierError(product_id)
        if product_id in self._pending_purchases:
            raise PurchaseInProgressError(product_id)

        pending = _PendingRequest(completion)
        self._pending_purchases[product_id] = pending
        logger.info("purchase_requested", product_id=product_id)
        try:
            self._queue.add_payment(Payment(product_id=product_id))
        except Exception as e:
            # Queue never saw the payment, so nothing will resolve this entry
            self._pending_purchases.pop(product_id, None)
            pending.future.cancel()
            logger.error(
                "purchase_request_failed",
                product_id=product_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise
        return pending.future

    def restore_purchases(
        self, completion: Optional[Completion] = None
    ) -> "asyncio.Future[WarehouseResult]":
        """Restore previously completed purchases.

        Returns:
            Future resolved once the queue reports the restore outcome
        """
        pending = _PendingRequest(completion)
        self._pending_restores.append(pending)
        logger.info("restore_requested")
        self._queue.restore_completed_transactions()
        return pending.future

    def is_product_purchased(self, product_id: str) -> bool:
        return self._ledger.is_purchased(product_id)

    def can_make_purchases(self) -> bool:
        return self._queue.can_make_payments()

    async def drain(self) -> None:
        """Wait until no validations or restore completions are in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # PaymentQueueObserver

    def updated_transactions(self, transactions: Sequence[PaymentTransaction]) -> None:
        """Dispatch a batch of transaction updates in arrival order.

        Items are independent. A transaction whose handling raises is
        reported and left open; the rest of the batch is still dispatched.
        """
        for transaction in transactions:
            log_transaction_received(
                transaction.transaction_id, transaction.product_id, transaction.state
            )
            try:
                self._dispatch(transaction)
            except Exception as e:
                self._dispatch_failed(transaction, e)

    def restore_completed_transactions_finished(self) -> None:
        """Queue finished delivering restored transactions."""
        self._spawn(self._finish_restore())

    def restore_completed_transactions_failed(self, error: Exception) -> None:
        """Queue failed to restore completed transactions."""
        logger.warning("restore_failed", error=str(error), error_type=type(error).__name__)
        self._events.emit(WarehouseEvent.RESTORE_FAILED, error)
        self._restore_errors = []
        self._resolve_restores(WarehouseResult.failure(error))

    # State handlers

    def _dispatch(self, transaction: PaymentTransaction) -> None:
        state = transaction.state
        if state is TransactionState.PURCHASING:
            self._events.emit(WarehouseEvent.PAYMENT_PROCESSING, transaction.product_id)
        elif state is TransactionState.DEFERRED:
            # Awaiting approval; the pending purchase stays open
            self._events.emit(WarehouseEvent.PAYMENT_DEFERRED, transaction.product_id)
        elif state is TransactionState.FAILED:
            self._failed_transaction(transaction)
        elif state is TransactionState.PURCHASED:
            self._start_validation(transaction, self._complete_transaction(transaction))
        elif state is TransactionState.RESTORED:
            self._restore_transaction(transaction)

    def _dispatch_failed(self, transaction: PaymentTransaction, error: Exception) -> None:
        """Report a transaction whose handling raised. It is left unfinished."""
        product_id = transaction.product_id
        logger.error(
            "transaction_dispatch_failed",
            transaction_id=transaction.transaction_id,
            product_id=product_id,
            state=transaction.state.value,
            error=str(error),
            error_type=type(error).__name__,
            exc_info=error,
        )
        if transaction.state is TransactionState.RESTORED:
            self._restore_failed(product_id, error)
        else:
            self._events.emit(WarehouseEvent.PAYMENT_FAILED, {"product_id": product_id, "error": error})
            self._resolve_purchase(product_id, WarehouseResult.failure(error))

    def _failed_transaction(self, transaction: PaymentTransaction) -> None:
        error = transaction.error or PaymentError(PaymentErrorCode.UNKNOWN)
        try:
            if error.is_cancellation:
                self._events.emit(WarehouseEvent.PAYMENT_CANCELLED, transaction.product_id)
                self._resolve_purchase(transaction.product_id, WarehouseResult.cancelled())
            else:
                self._events.emit(
                    WarehouseEvent.PAYMENT_FAILED,
                    {"product_id": transaction.product_id, "error": error},
                )
                self._resolve_purchase(transaction.product_id, WarehouseResult.failure(error))
        finally:
            # Failed and cancelled payments are never redelivered
            self._finish_transaction(transaction)

    async def _complete_transaction(self, transaction: PaymentTransaction) -> None:
        product_id = transaction.product_id
        result = await self._validate_receipt(product_id)

        if not result.is_success:
            # Leave unfinished so the queue redelivers it later
            logger.warning(
                "transaction_validation_failed",
                transaction_id=transaction.transaction_id,
                product_id=product_id,
                error=str(result.error),
                error_type=type(result.error).__name__,
                message="Transaction left open for redelivery",
            )
            self._events.emit(
                WarehouseEvent.PAYMENT_FAILED, {"product_id": product_id, "error": result.error}
            )
            self._resolve_purchase(product_id, WarehouseResult.failure(result.error))
            return

        try:
            self._ledger.record_purchase(product_id)
        except Exception as e:
            # Transaction stays open; the task failure is logged by _task_done
            self._events.emit(WarehouseEvent.PAYMENT_FAILED, {"product_id": product_id, "error": e})
            self._resolve_purchase(product_id, WarehouseResult.failure(e))
            raise

        self._events.emit(WarehouseEvent.PAYMENT_COMPLETED, product_id)
        self._resolve_purchase(product_id, WarehouseResult.success())
        self._finish_transaction(transaction)

    def _restore_transaction(self, transaction: PaymentTransaction) -> None:
        if not self._validate_restored:
            self._record_restored(transaction)
            return
        task = self._start_validation(transaction, self._validate_restored_transaction(transaction))
        if task is not None:
            # _finish_restore waits for these before resolving restore callers
            self._restore_tasks.add(task)
            task.add_done_callback(self._restore_tasks.discard)

    async def _validate_restored_transaction(self, transaction: PaymentTransaction) -> None:
        result = await self._validate_receipt(transaction.product_id)
        if result.is_success:
            self._record_restored(transaction)
            return

        logger.warning(
            "restored_transaction_validation_failed",
            transaction_id=transaction.transaction_id,
            product_id=transaction.product_id,
            error=str(result.error),
            error_type=type(result.error).__name__,
            message="Transaction left open for redelivery",
        )
        self._events.emit(
            WarehouseEvent.RESTORE_FAILED,
            {"product_id": transaction.product_id, "error": result.error},
        )

    def _record_restored(self, transaction: PaymentTransaction) -> None:
        product_id = transaction.product_id
        try:
            self._ledger.record_purchase(product_id)
        except Exception as e:
            logger.error(
                "restored_transaction_record_failed",
                transaction_id=transaction.transaction_id,
                product_id=product_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            self._restore_failed(product_id, e)
            return

        self._events.emit(WarehouseEvent.RESTORE_COMPLETED, product_id)
        self._finish_transaction(transaction)

    def _restore_failed(self, product_id: str, error: Exception) -> None:
        """Restored product could not be recorded; fails the running restore."""
        # Redeliveries outside a restore have no caller to fail
        if self._pending_restores:
            self._restore_errors.append(error)
        self._events.emit(WarehouseEvent.RESTORE_FAILED, {"product_id": product_id, "error": error})

    async def _finish_restore(self) -> None:
        if self._restore_tasks:
            await asyncio.gather(*list(self._restore_tasks), return_exceptions=True)

        errors, self._restore_errors = self._restore_errors, []
        if errors:
            logger.warning(
                "restore_finished_with_errors",
                error_count=len(errors),
                error=str(errors[0]),
                error_type=type(errors[0]).__name__,
            )
            self._resolve_restores(WarehouseResult.failure(errors[0]))
            return

        logger.info("restore_finished")
        self._resolve_restores(WarehouseResult.success())

    # Helpers

    async def _validate_receipt(self, product_id: Optional[str] = None) -> ValidationResult:
        receipt_data = self._receipt_source.load()
        if receipt_data is None:
            # No local receipt: fail without contacting the service
            logger.warning("receipt_unavailable", product_id=product_id)
            return ValidationResult.failure(ReceiptUnavailableError())
        return await self._validator.validate(receipt_data, product_id=product_id)

    def _start_validation(self, transaction: PaymentTransaction, coro) -> "Optional[asyncio.Task[None]]":
        """Run a validation coroutine unless this transaction is already validating."""
        transaction_id = transaction.transaction_id
        if transaction_id in self._validating:
            logger.debug("transaction_already_validating", transaction_id=transaction_id)
            coro.close()
            return None

        self._validating.add(transaction_id)
        task = self._spawn(coro)
        task.add_done_callback(lambda _: self._validating.discard(transaction_id))
        return task

    def _spawn(self, coro) -> "asyncio.Task[None]":
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: "asyncio.Task[None]") -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "transaction_task_failed",
                error=str(error),
                error_type=type(error).__name__,
                exc_info=error,
            )

    def _finish_transaction(self, transaction: PaymentTransaction) -> None:
        transaction_id = transaction.transaction_id
        if transaction_id in self._finished:
            logger.warning("transaction_already_finished", transaction_id=transaction_id)
            return

        try:
            self._queue.finish_transaction(transaction)
        except TransactionAlreadyFinishedError:
            # Finished before and since dropped from the recent window
            logger.warning("transaction_already_finished", transaction_id=transaction_id)

        self._finished[transaction_id] = None
        if len(self._finished) > FINISHED_WINDOW_SIZE:
            self._finished.popitem(last=False)

    def _resolve_purchase(self, product_id: str, result: WarehouseResult) -> None:
        pending = self._pending_purchases.pop(product_id, None)
        if pending is None:
            logger.debug("no_pending_purchase", product_id=product_id, result=result.kind.value)
            return
        pending.resolve(result)

    def _resolve_restores(self, result: WarehouseResult) -> None:
        pending, self._pending_restores = self._pending_restores, []
        for request in pending:
            request.resolve(result)
