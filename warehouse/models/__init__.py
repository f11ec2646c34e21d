"""Pydantic models for configuration, receipts, transactions and events."""

# Configuration models
from .settings import (
    EmulatorSettings,
    EventSettings,
    PubSubSettings,
    ReceiptSettings,
    StorageSettings,
    ValidationSettings,
    WarehouseSettings,
)

# Product catalog models
from .product import (
    ProductDefinition,
    ProductsResponse,
)

# Receipt models
from .receipt import (
    InAppPurchaseRecord,
    Receipt,
)

# Payment queue models
from .transaction import (
    Payment,
    PaymentTransaction,
    TransactionState,
)

# Outcomes
from .results import (
    ResultKind,
    ValidationResult,
    WarehouseResult,
)

# Events
from .events import (
    WarehouseEvent,
    WarehouseNotification,
)

# Receipt emulator API models
from .emulator_api import (
    ForceStatusesRequest,
    ForceStatusesResponse,
    ReceiptDocument,
    ResetResponse,
    VerifyReceiptResponse,
)

__all__ = [
    # Configuration
    "EmulatorSettings",
    "EventSettings",
    "PubSubSettings",
    "ReceiptSettings",
    "StorageSettings",
    "ValidationSettings",
    "WarehouseSettings",
    # Product catalog
    "ProductDefinition",
    "ProductsResponse",
    # Receipt
    "InAppPurchaseRecord",
    "Receipt",
    # Payment queue
    "Payment",
    "PaymentTransaction",
    "TransactionState",
    # Outcomes
    "ResultKind",
    "ValidationResult",
    "WarehouseResult",
    # Events
    "WarehouseEvent",
    "WarehouseNotification",
    # Emulator API
    "ForceStatusesRequest",
    "ForceStatusesResponse",
    "ReceiptDocument",
    "ResetResponse",
    "VerifyReceiptResponse",
]
