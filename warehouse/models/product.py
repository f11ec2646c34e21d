"""Product catalog models."""

from pydantic import BaseModel, Field


class ProductDefinition(BaseModel):
    """Purchasable product metadata returned by the product catalog."""

    id: str = Field(..., description="Product identifier (e.g., com.app.pro)")
    title: str = Field(default="", description="Human-readable title")
    description: str = Field(default="", description="Product description")
    price_micros: int = Field(default=0, description="Price in micros (1,000,000 = $1.00)")
    currency: str = Field(default="USD", description="ISO 4217 currency code")

    class Config:
        json_schema_extra = {
            "example": {
                "id": "com.app.pro",
                "title": "Pro Upgrade",
                "description": "Unlock every pro feature",
                "price_micros": 4_990_000,
                "currency": "USD",
            }
        }


class ProductsResponse(BaseModel):
    """Answer to a product catalog lookup."""

    products: list[ProductDefinition] = Field(default_factory=list, description="Valid products")
    invalid_identifiers: list[str] = Field(
        default_factory=list, description="Requested identifiers the catalog does not know"
    )
