"""Entitlement ledger - idempotent record of purchased product identifiers.

Thread-safe read-modify-write over a KeyValueStorage list.
"""

import threading
from typing import List

from warehouse.repositories.storage import KeyValueStorage
from warehouse.state_logger import log_entitlement_recorded

DEFAULT_STORAGE_KEY = "WarehouseStorageKey"


class EntitlementLedger:
    """Set of purchased product identifiers persisted as an ordered list.

    Adding an already-present identifier is a no-op, and the stored list never
    contains duplicates after a write. There is no revoke operation.
    """

    def __init__(self, storage: KeyValueStorage, storage_key: str = DEFAULT_STORAGE_KEY):
        """Initialize ledger.

        Args:
            storage: Storage backend holding the product identifier list
            storage_key: Key the list is stored under
        """
        self._storage = storage
        self._storage_key = storage_key
        self._lock = threading.RLock()

    def _load(self) -> List[str]:
        return self._storage.get(self._storage_key) or []

    def is_purchased(self, product_id: str) -> bool:
        """Check whether product_id has been recorded."""
        with self._lock:
            return product_id in self._load()

    def record_purchase(self, product_id: str) -> bool:
        """Record an entitlement for product_id.

        Args:
            product_id: Product identifier

        Returns:
            True if the product was newly recorded, False if already present
        """
        with self._lock:
            purchased = self._load()
            if product_id in purchased:
                log_entitlement_recorded(product_id, newly_recorded=False)
                return False

            deduplicated = list(dict.fromkeys(purchased))
            deduplicated.append(product_id)
            self._storage.set(self._storage_key, deduplicated)
            log_entitlement_recorded(product_id, newly_recorded=True, total=len(deduplicated))
            return True

    def purchased_products(self) -> List[str]:
        """Get recorded product identifiers in recording order."""
        with self._lock:
            return list(dict.fromkeys(self._load()))

    def __contains__(self, product_id: str) -> bool:
        return self.is_purchased(product_id)

    def __len__(self) -> int:
        return len(self.purchased_products())

    def __repr__(self) -> str:
        return f"EntitlementLedger(key={self._storage_key!r})"
