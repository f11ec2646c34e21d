"""Utility functions and helpers for the warehouse."""

from warehouse.utils.transaction_ids import (
    generate_transaction_id,
    millis_now,
    validate_transaction_id,
)

__all__ = [
    # Transaction identifiers
    "generate_transaction_id",
    "validate_transaction_id",
    # Time
    "millis_now",
]
