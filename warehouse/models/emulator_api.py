"""Request/response models for the local receipt validation emulator.

The verifyReceipt models follow the wire format of the App Store
``verifyReceipt`` endpoint; the control models drive the emulator in tests.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ReceiptDocument(BaseModel):
    """Local receipt document, base64-encoded into ``receipt-data``."""

    bundle_id: str = Field(default="", description="Application bundle identifier")
    application_version: str = Field(default="", description="Application version")
    original_application_version: str = Field(default="", description="Original version")
    environment: str = Field(default="Sandbox", description="'Sandbox' or 'Production'")
    in_app: list[dict[str, Any]] = Field(default_factory=list, description="Purchase entries")

    class Config:
        json_schema_extra = {
            "example": {
                "bundle_id": "com.example.app",
                "application_version": "1.0",
                "original_application_version": "1.0",
                "environment": "Sandbox",
                "in_app": [
                    {
                        "quantity": "1",
                        "product_id": "com.app.pro",
                        "transaction_id": "1000000123456789",
                        "original_transaction_id": "1000000123456789",
                        "purchase_date_ms": "1700000000000",
                        "original_purchase_date_ms": "1700000000000",
                    }
                ],
            }
        }


class VerifyReceiptResponse(BaseModel):
    """Response body of POST .../verifyReceipt."""

    status: int = Field(..., description="0 for a valid receipt, otherwise 21000-21008")
    environment: Optional[str] = Field(None, description="Environment that answered")
    receipt: Optional[dict[str, Any]] = Field(None, description="Decoded receipt on status 0")


class ForceStatusesRequest(BaseModel):
    """Request body for POST /emulator/statuses."""

    statuses: list[int] = Field(..., min_length=1, description="Statuses for the next responses")


class ForceStatusesResponse(BaseModel):
    pending_statuses: list[int] = Field(..., description="Queued forced statuses")
    message: str = Field(..., description="Status message")


class ResetResponse(BaseModel):
    message: str = Field(..., description="Status message")
