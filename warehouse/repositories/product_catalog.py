"""Product catalog - answers product metadata lookups.

The catalog is an external collaborator; ConfiguredProductCatalog serves the
static product list from warehouse.yaml.
"""

from typing import Dict, Iterable, List, Optional, Protocol

from warehouse.models import ProductDefinition, ProductsResponse


class ProductNotFoundError(Exception):
    """Raised when a product is not found in the catalog."""

    pass


class ProductCatalog(Protocol):
    """Request/response lookup of product metadata."""

    async def fetch_products(self, product_ids: Iterable[str]) -> ProductsResponse:
        ...


class ConfiguredProductCatalog:
    """Catalog backed by product definitions from configuration."""

    def __init__(self, products: Iterable[ProductDefinition]):
        self._products_by_id: Dict[str, ProductDefinition] = {}
        for product in products:
            self._products_by_id[product.id] = product

    async def fetch_products(self, product_ids: Iterable[str]) -> ProductsResponse:
        """Look up product metadata.

        Args:
            product_ids: Requested product identifiers (duplicates ignored)

        Returns:
            ProductsResponse with known products and unknown identifiers
        """
        products: List[ProductDefinition] = []
        invalid: List[str] = []
        for product_id in dict.fromkeys(product_ids):
            product = self._products_by_id.get(product_id)
            if product is None:
                invalid.append(product_id)
            else:
                products.append(product)
        return ProductsResponse(products=products, invalid_identifiers=invalid)

    def get_by_id(self, product_id: str) -> ProductDefinition:
        """Get product definition by ID.

        Raises:
            ProductNotFoundError: If product ID not found
        """
        product = self._products_by_id.get(product_id)
        if product is None:
            raise ProductNotFoundError(
                f"Product not found: {product_id}. "
                f"Available products: {list(self._products_by_id.keys())}"
            )
        return product

    def find_by_id(self, product_id: str) -> Optional[ProductDefinition]:
        return self._products_by_id.get(product_id)

    def __len__(self) -> int:
        return len(self._products_by_id)

    def __contains__(self, product_id: str) -> bool:
        return product_id in self._products_by_id

    def __repr__(self) -> str:
        return f"ConfiguredProductCatalog(products={len(self._products_by_id)})"
