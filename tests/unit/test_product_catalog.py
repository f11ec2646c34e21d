"""Unit tests for ConfiguredProductCatalog and receipt sources."""

import pytest

from warehouse.models import ProductDefinition
from warehouse.repositories.product_catalog import ConfiguredProductCatalog, ProductNotFoundError
from warehouse.repositories.receipt_source import FileReceiptSource, StaticReceiptSource


@pytest.fixture
def catalog():
    """Catalog with two products."""
    return ConfiguredProductCatalog(
        [
            ProductDefinition(id="com.app.pro", title="Pro Upgrade", price_micros=4_990_000),
            ProductDefinition(id="com.app.themes", title="Theme Pack", price_micros=990_000),
        ]
    )


class TestFetchProducts:
    """Test product lookups."""

    @pytest.mark.asyncio
    async def test_known_products_returned_in_request_order(self, catalog):
        response = await catalog.fetch_products(["com.app.themes", "com.app.pro"])

        assert [p.id for p in response.products] == ["com.app.themes", "com.app.pro"]
        assert response.invalid_identifiers == []

    @pytest.mark.asyncio
    async def test_unknown_identifiers_reported(self, catalog):
        """Identifiers the catalog does not know are listed as invalid."""
        response = await catalog.fetch_products(["com.app.pro", "com.app.gone"])

        assert [p.id for p in response.products] == ["com.app.pro"]
        assert response.invalid_identifiers == ["com.app.gone"]

    @pytest.mark.asyncio
    async def test_duplicate_identifiers_ignored(self, catalog):
        response = await catalog.fetch_products(["com.app.pro", "com.app.pro"])

        assert len(response.products) == 1

    @pytest.mark.asyncio
    async def test_empty_request(self, catalog):
        response = await catalog.fetch_products([])

        assert response.products == []
        assert response.invalid_identifiers == []


class TestCatalogAccess:
    """Test direct access to product definitions."""

    def test_get_by_id(self, catalog):
        assert catalog.get_by_id("com.app.pro").title == "Pro Upgrade"

    def test_get_by_id_not_found(self, catalog):
        with pytest.raises(ProductNotFoundError, match="com.app.gone"):
            catalog.get_by_id("com.app.gone")

    def test_find_by_id(self, catalog):
        assert catalog.find_by_id("com.app.themes").price_micros == 990_000
        assert catalog.find_by_id("com.app.gone") is None

    def test_len_and_contains(self, catalog):
        assert len(catalog) == 2
        assert "com.app.pro" in catalog
        assert "com.app.gone" not in catalog


class TestReceiptSources:
    """Test local receipt loading."""

    def test_file_source_reads_bytes(self, tmp_path):
        path = tmp_path / "receipt"
        path.write_bytes(b"\x01receipt")

        assert FileReceiptSource(str(path)).load() == b"\x01receipt"

    def test_missing_file_is_unavailable(self, tmp_path):
        assert FileReceiptSource(str(tmp_path / "missing")).load() is None

    def test_empty_file_is_unavailable(self, tmp_path):
        path = tmp_path / "receipt"
        path.write_bytes(b"")

        assert FileReceiptSource(str(path)).load() is None

    def test_static_source(self):
        assert StaticReceiptSource(b"receipt").load() == b"receipt"
        assert StaticReceiptSource().load() is None

    def test_static_source_callable_is_read_each_time(self):
        """Callable sources reflect the current receipt on every load."""
        receipts = iter([b"first", b"second"])
        source = StaticReceiptSource(lambda: next(receipts))

        assert source.load() == b"first"
        assert source.load() == b"second"
