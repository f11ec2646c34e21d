"""Configuration models loaded from warehouse.yaml."""

from typing import Literal, Optional

from pydantic import BaseModel, Field

from .product import ProductDefinition

SANDBOX_URL = "https://sandbox.itunes.apple.com/verifyReceipt"
PRODUCTION_URL = "https://buy.itunes.apple.com/verifyReceipt"

Environment = Literal["sandbox", "production"]


class ValidationSettings(BaseModel):
    """Receipt validation endpoint configuration."""

    environment: Environment = Field(
        default="production", description="Endpoint tried first: 'sandbox' or 'production'"
    )
    sandbox_url: str = Field(default=SANDBOX_URL, description="Sandbox verifyReceipt URL")
    production_url: str = Field(default=PRODUCTION_URL, description="Production verifyReceipt URL")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request timeout")
    retry_on_environment_mismatch: bool = Field(
        default=True,
        description="Retry once against the other endpoint on status 21007/21008",
    )
    shared_secret: Optional[str] = Field(None, description="Shared secret sent as 'password'")
    validate_restored_transactions: bool = Field(
        default=True,
        description="Run the deep receipt check before recording a restored product",
    )

    def url_for(self, environment: Environment) -> str:
        return self.sandbox_url if environment == "sandbox" else self.production_url

    class Config:
        json_schema_extra = {
            "example": {
                "environment": "production",
                "sandbox_url": SANDBOX_URL,
                "production_url": PRODUCTION_URL,
                "timeout_seconds": 30,
                "retry_on_environment_mismatch": True,
                "shared_secret": None,
                "validate_restored_transactions": True,
            }
        }


class StorageSettings(BaseModel):
    """Entitlement storage configuration."""

    path: Optional[str] = Field(None, description="JSON file path; in-memory storage when unset")
    key: str = Field(default="WarehouseStorageKey", description="Key holding purchased product IDs")


class ReceiptSettings(BaseModel):
    """Local receipt location."""

    path: Optional[str] = Field(None, description="Path to the app store receipt file")


class PubSubSettings(BaseModel):
    """Optional forwarding of warehouse events to Google Cloud Pub/Sub."""

    enabled: bool = Field(default=False, description="Forward events to Pub/Sub")
    project_id: str = Field(default="warehouse-project", description="GCP project ID")
    topic: str = Field(default="warehouse-events", description="Pub/Sub topic name")


class EventSettings(BaseModel):
    pubsub: PubSubSettings = Field(default_factory=PubSubSettings)


class EmulatorSettings(BaseModel):
    """Local receipt validation emulator behavior."""

    bundle_id: Optional[str] = Field(
        None, description="Reject receipts for other bundles with 21002 when set"
    )
    shared_secret: Optional[str] = Field(
        None, description="Expected 'password'; mismatches return 21004 when set"
    )


class WarehouseSettings(BaseModel):
    """Complete warehouse.yaml configuration."""

    bundle_id: str = Field(default="", description="Application bundle identifier")
    product_identifiers: list[str] = Field(
        default_factory=list, description="Products to look up at startup"
    )
    products: list[ProductDefinition] = Field(
        default_factory=list, description="Static product catalog"
    )
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    receipt: ReceiptSettings = Field(default_factory=ReceiptSettings)
    events: EventSettings = Field(default_factory=EventSettings)
    emulator: EmulatorSettings = Field(default_factory=EmulatorSettings)
