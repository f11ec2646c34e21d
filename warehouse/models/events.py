"""Warehouse outcome events and the envelope they are delivered in."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class WarehouseEvent(str, Enum):
    """Named events emitted to the rest of the application."""

    NO_PRODUCTS = "WarehouseNoProductsNotification"
    PRODUCTS_RETRIEVED = "WarehouseRetrievedProductsNotification"
    PAYMENT_PROCESSING = "WarehousePaymentProcessingNotification"
    PAYMENT_DEFERRED = "WarehousePaymentDeferredNotification"
    PAYMENT_CANCELLED = "WarehousePaymentCancelledNotification"
    PAYMENT_FAILED = "WarehousePaymentFailedNotification"
    PAYMENT_COMPLETED = "WarehousePaymentCompletedNotification"
    RESTORE_FAILED = "WarehouseRestoreFailedNotification"
    RESTORE_COMPLETED = "WarehouseRestoreCompletedNotification"


class WarehouseNotification(BaseModel):
    """Envelope for an emitted event.

    ``payload`` keeps the original object (product list, error, ...) for
    in-process subscribers and is excluded from serialization.
    """

    event: WarehouseEvent = Field(..., description="Event name")
    event_time_millis: int = Field(..., description="Emission time (Unix millis)")
    product_id: Optional[str] = Field(None, description="Product the event refers to")
    product_ids: list[str] = Field(default_factory=list, description="Products in a listing")
    error_code: Optional[int] = Field(None, description="Error code for failure events")
    error_message: Optional[str] = Field(None, description="Error description")
    payload: Any = Field(default=None, exclude=True)

    class Config:
        json_schema_extra = {
            "example": {
                "event": "WarehousePaymentCompletedNotification",
                "event_time_millis": 1700000000000,
                "product_id": "com.app.pro",
                "product_ids": [],
                "error_code": None,
                "error_message": None,
            }
        }
