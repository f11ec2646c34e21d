"""Wires a Warehouse together from configuration."""

from typing import Optional

import httpx

from warehouse.config import Config
from warehouse.logging_config import get_logger
from warehouse.repositories.entitlement_ledger import EntitlementLedger
from warehouse.repositories.product_catalog import ConfiguredProductCatalog, ProductCatalog
from warehouse.repositories.receipt_source import (
    FileReceiptSource,
    ReceiptSource,
    StaticReceiptSource,
)
from warehouse.repositories.storage import KeyValueStorage, create_storage
from warehouse.services.event_dispatcher import EventSink, create_event_dispatcher
from warehouse.services.payment_queue import PaymentQueue
from warehouse.services.receipt_validator import ReceiptValidator
from warehouse.services.transaction_coordinator import Warehouse

logger = get_logger(__name__)


def create_warehouse(
    config: Config,
    payment_queue: PaymentQueue,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    receipt_source: Optional[ReceiptSource] = None,
    storage: Optional[KeyValueStorage] = None,
    events: Optional[EventSink] = None,
    catalog: Optional[ProductCatalog] = None,
) -> Warehouse:
    """Build the warehouse and its collaborators.

    Anything not passed in is created from configuration: file or in-memory
    storage, a file receipt source, the static product catalog and an event
    dispatcher (forwarding to Pub/Sub when enabled).

    Args:
        config: Loaded configuration
        payment_queue: Queue the warehouse observes
        http_client: Shared HTTP client for receipt validation
        receipt_source: Source of the local receipt
        storage: Entitlement storage backend
        events: Event sink
        catalog: Product catalog

    Returns:
        Warehouse registered as the payment queue's observer
    """
    if receipt_source is None:
        receipt_source = (
            FileReceiptSource(config.receipt_path) if config.receipt_path else StaticReceiptSource()
        )

    warehouse = Warehouse(
        payment_queue=payment_queue,
        validator=ReceiptValidator(config.validation, http_client=http_client),
        ledger=EntitlementLedger(
            storage if storage is not None else create_storage(config.storage_path),
            storage_key=config.storage_key,
        ),
        events=events if events is not None else create_event_dispatcher(config.pubsub),
        receipt_source=receipt_source,
        catalog=catalog if catalog is not None else ConfiguredProductCatalog(config.products),
        validate_restored_transactions=config.validation.validate_restored_transactions,
    )
    warehouse.product_identifiers = config.product_identifiers

    logger.info(
        "warehouse_created",
        environment=config.validation.environment,
        product_identifiers=warehouse.product_identifiers,
        storage_path=config.storage_path,
    )
    return warehouse
