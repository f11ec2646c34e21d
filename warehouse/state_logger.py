"""State change logging for payment transactions and entitlements.

Tracks transitions with before/after values for debugging and auditing.
"""

from typing import Any, Optional

from warehouse.logging_config import get_logger

logger = get_logger(__name__)


def log_transaction_state_change(
    transaction_id: str,
    product_id: str,
    old_state: Any,
    new_state: Any,
    reason: Optional[str] = None,
    **extra_context: Any,
) -> None:
    """Log a payment transaction state change.

    Args:
        transaction_id: Transaction identifier
        product_id: Product ID
        old_state: Previous state value (None for a new transaction)
        new_state: New state value
        reason: Reason for state change
        **extra_context: Additional context
    """
    logger.info(
        "transaction_state_changed",
        transaction_id=transaction_id,
        product_id=product_id,
        old_state=str(old_state) if old_state is not None else None,
        new_state=str(new_state),
        reason=reason,
        **extra_context,
    )


def log_transaction_received(
    transaction_id: str,
    product_id: str,
    state: Any,
    **extra_context: Any,
) -> None:
    """Log a transaction delivered by the payment queue."""
    logger.info(
        "transaction_received",
        transaction_id=transaction_id,
        product_id=product_id,
        state=str(state),
        **extra_context,
    )


def log_transaction_finished(
    transaction_id: str,
    product_id: str,
    state: Any,
    **extra_context: Any,
) -> None:
    """Log a transaction acknowledged to the payment queue."""
    logger.info(
        "transaction_finished",
        transaction_id=transaction_id,
        product_id=product_id,
        state=str(state),
        **extra_context,
    )


def log_entitlement_recorded(product_id: str, newly_recorded: bool, **extra_context: Any) -> None:
    """Log an entitlement write.

    Args:
        product_id: Product ID
        newly_recorded: False when the product was already entitled
        **extra_context: Additional context
    """
    logger.info(
        "entitlement_recorded" if newly_recorded else "entitlement_already_recorded",
        product_id=product_id,
        **extra_context,
    )
