"""Receipt models decoded from a validation response."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class InAppPurchaseRecord(BaseModel):
    """One purchase entry inside a validated receipt."""

    quantity: int = Field(default=0, description="Number of items purchased")
    product_id: str = Field(default="", description="Product identifier")
    transaction_id: str = Field(default="", description="Transaction identifier")
    original_transaction_id: str = Field(
        default="", description="Transaction identifier of the original purchase"
    )
    purchase_date: Optional[datetime] = Field(None, description="Purchase time (UTC)")
    original_purchase_date: Optional[datetime] = Field(
        None, description="Original purchase time (UTC)"
    )

    class Config:
        frozen = True


class Receipt(BaseModel):
    """A validated receipt and the purchases it lists.

    String fields are never absent: missing data decodes to an empty string.
    """

    bundle_id: str = Field(default="", description="Application bundle identifier")
    app_version: str = Field(default="", description="Application version")
    original_app_version: str = Field(
        default="", description="Version of the originally purchased application"
    )
    expiration_date: Optional[datetime] = Field(None, description="Receipt expiration (UTC)")
    in_app_purchases: tuple[InAppPurchaseRecord, ...] = Field(
        default_factory=tuple, description="Purchases in receipt order"
    )

    def contains_purchase(self, product_id: str) -> bool:
        """Check whether any purchase in the receipt is for product_id."""
        return any(purchase.product_id == product_id for purchase in self.in_app_purchases)

    @property
    def product_ids(self) -> list[str]:
        return [purchase.product_id for purchase in self.in_app_purchases]

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "bundle_id": "com.example.app",
                "app_version": "1.2",
                "original_app_version": "1.0",
                "expiration_date": None,
                "in_app_purchases": [
                    {
                        "quantity": 1,
                        "product_id": "com.app.pro",
                        "transaction_id": "1000000123456789",
                        "original_transaction_id": "1000000123456789",
                        "purchase_date": "2023-11-14T22:13:20Z",
                        "original_purchase_date": "2023-11-14T22:13:20Z",
                    }
                ],
            }
        }
