"""End-to-end purchase and restore flows.

The warehouse validates receipts produced by SimulatedPaymentQueue against
the receipt emulator, served in-process through httpx's ASGI transport.
"""

import httpx
import pytest

from warehouse.config import Config
from warehouse.emulator.main import create_app
from warehouse.exceptions import ServerUnavailableError
from warehouse.exceptions import TestReceiptSentToProductionError as SandboxReceiptError
from warehouse.factory import create_warehouse
from warehouse.models import (
    EmulatorSettings,
    ProductDefinition,
    ValidationSettings,
    WarehouseEvent,
    WarehouseSettings,
)
from warehouse.repositories.receipt_source import StaticReceiptSource
from warehouse.repositories.storage import InMemoryStorage, JsonFileStorage
from warehouse.services.event_dispatcher import EventDispatcher
from warehouse.services.payment_queue import SimulatedPaymentQueue

BUNDLE_ID = "com.example.app"


def make_config(**validation) -> Config:
    settings = WarehouseSettings(
        bundle_id=BUNDLE_ID,
        products=[ProductDefinition(id="com.app.pro"), ProductDefinition(id="com.app.themes")],
        validation=ValidationSettings(
            sandbox_url="http://emulator/sandbox/verifyReceipt",
            production_url="http://emulator/production/verifyReceipt",
            **validation,
        ),
    )
    return Config.from_settings(settings)


@pytest.fixture
def emulator_app():
    return create_app(EmulatorSettings(bundle_id=BUNDLE_ID))


@pytest.fixture
def http_client(emulator_app):
    """HTTP client routing verifyReceipt calls to the in-process emulator."""
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=emulator_app))


@pytest.fixture
def queue():
    return SimulatedPaymentQueue(bundle_id=BUNDLE_ID)


@pytest.fixture
def events():
    dispatcher = EventDispatcher()
    received = []
    dispatcher.subscribe(received.append)
    dispatcher.received = received
    return dispatcher


def build_warehouse(config, queue, http_client, events, storage=None):
    return create_warehouse(
        config,
        queue,
        http_client=http_client,
        receipt_source=StaticReceiptSource(queue.receipt_bytes),
        storage=storage if storage is not None else InMemoryStorage(),
        events=events,
    )


def event_names(events):
    return [notification.event for notification in events.received]


def transaction_for(queue, product_id):
    return next(t for t in queue.unfinished_transactions() if t.product_id == product_id)


@pytest.mark.asyncio
async def test_purchase_validated_after_environment_retry(queue, http_client, events):
    """Sandbox receipt is retried against sandbox and the purchase completes."""
    warehouse = build_warehouse(make_config(environment="production"), queue, http_client, events)
    await warehouse.retrieve_products()

    future = warehouse.purchase("com.app.pro")
    transaction = transaction_for(queue, "com.app.pro")
    queue.approve(transaction.transaction_id)
    result = await future
    await warehouse.drain()

    assert result.is_success
    assert warehouse.is_product_purchased("com.app.pro")
    assert queue.is_finished(transaction.transaction_id)
    assert event_names(events) == [
        WarehouseEvent.PRODUCTS_RETRIEVED,
        WarehouseEvent.PAYMENT_PROCESSING,
        WarehouseEvent.PAYMENT_COMPLETED,
    ]


@pytest.mark.asyncio
async def test_wrong_environment_without_retry_leaves_transaction_open(queue, http_client, events):
    """21007 without retry: nothing recorded and the transaction stays open."""
    config = make_config(environment="production", retry_on_environment_mismatch=False)
    warehouse = build_warehouse(config, queue, http_client, events)

    future = warehouse.purchase("com.app.pro")
    transaction = transaction_for(queue, "com.app.pro")
    queue.approve(transaction.transaction_id)
    result = await future
    await warehouse.drain()

    assert isinstance(result.error, SandboxReceiptError)
    assert not warehouse.is_product_purchased("com.app.pro")
    assert not queue.is_finished(transaction.transaction_id)
    assert events.received[-1].event is WarehouseEvent.PAYMENT_FAILED
    assert events.received[-1].error_code == 21007


@pytest.mark.asyncio
async def test_server_outage_then_redelivery(queue, http_client, events, emulator_app):
    """Transient 21005 fails the purchase; redelivery completes it."""
    warehouse = build_warehouse(make_config(environment="sandbox"), queue, http_client, events)
    emulator_app.state.receipt_emulator.force_statuses([21005])

    future = warehouse.purchase("com.app.pro")
    transaction = transaction_for(queue, "com.app.pro")
    queue.approve(transaction.transaction_id)
    result = await future
    await warehouse.drain()

    assert isinstance(result.error, ServerUnavailableError)
    assert not queue.is_finished(transaction.transaction_id)

    queue.redeliver_unfinished()
    await warehouse.drain()

    assert warehouse.is_product_purchased("com.app.pro")
    assert queue.is_finished(transaction.transaction_id)


@pytest.mark.asyncio
async def test_cancelled_purchase(queue, http_client, events):
    warehouse = build_warehouse(make_config(), queue, http_client, events)

    future = warehouse.purchase("com.app.pro")
    transaction = transaction_for(queue, "com.app.pro")
    queue.cancel(transaction.transaction_id)
    result = await future

    assert result.is_cancelled
    assert queue.is_finished(transaction.transaction_id)
    assert not warehouse.is_product_purchased("com.app.pro")


@pytest.mark.asyncio
async def test_restore_previous_purchases(queue, http_client, events):
    """Restored products are validated against the receipt and recorded."""
    warehouse = build_warehouse(make_config(environment="sandbox"), queue, http_client, events)
    queue.add_purchase_history(["com.app.pro", "com.app.themes"])

    result = await warehouse.restore_purchases()

    assert result.is_success
    assert warehouse.is_product_purchased("com.app.pro")
    assert warehouse.is_product_purchased("com.app.themes")
    assert queue.unfinished_transactions() == []
    assert event_names(events).count(WarehouseEvent.RESTORE_COMPLETED) == 2


@pytest.mark.asyncio
async def test_entitlements_persist_across_restarts(queue, http_client, events, tmp_path):
    """A new warehouse on the same storage file sees earlier purchases."""
    storage_path = str(tmp_path / "entitlements.json")
    config = make_config(environment="sandbox")
    warehouse = build_warehouse(config, queue, http_client, events, JsonFileStorage(storage_path))

    future = warehouse.purchase("com.app.themes")
    queue.approve(transaction_for(queue, "com.app.themes").transaction_id)
    await future
    await warehouse.drain()

    restarted = build_warehouse(
        config, SimulatedPaymentQueue(), http_client, EventDispatcher(), JsonFileStorage(storage_path)
    )
    assert restarted.is_product_purchased("com.app.themes")
    assert not restarted.is_product_purchased("com.app.pro")
