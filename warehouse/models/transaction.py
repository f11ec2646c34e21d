"""Payment queue models - payments and the transactions they produce."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from warehouse.exceptions import PaymentError


class TransactionState(str, Enum):
    """Lifecycle state of a payment transaction."""

    PURCHASING = "purchasing"  # Being processed by the store
    DEFERRED = "deferred"  # Waiting on external approval (e.g., ask to buy)
    FAILED = "failed"  # Cancelled or failed
    PURCHASED = "purchased"  # Paid, awaiting receipt confirmation
    RESTORED = "restored"  # Previously purchased product restored

    def __str__(self) -> str:
        return self.name


class Payment(BaseModel):
    """Request to buy a product."""

    product_id: str = Field(..., description="Product identifier")
    quantity: int = Field(default=1, ge=1, description="Number of items")


class PaymentTransaction(BaseModel):
    """A payment transaction owned by the payment queue.

    The coordinator holds a transaction only while processing it and must
    finish it exactly once before forgetting it.
    """

    transaction_id: str = Field(..., description="Unique transaction identifier")
    product_id: str = Field(..., description="Product identifier of the payment")
    state: TransactionState = Field(
        default=TransactionState.PURCHASING, description="Current transaction state"
    )
    error: Optional[PaymentError] = Field(None, description="Failure reason for FAILED")
    original_transaction_id: Optional[str] = Field(
        None, description="Transaction being restored, for RESTORED"
    )
    quantity: int = Field(default=1, description="Number of items")

    def set_state(
        self,
        new_state: TransactionState,
        reason: Optional[str] = None,
        error: Optional[PaymentError] = None,
    ) -> None:
        """Change transaction state and log the transition.

        Args:
            new_state: New transaction state
            reason: Reason for state change
            error: Failure reason, only meaningful for FAILED
        """
        from warehouse.state_logger import log_transaction_state_change

        old_state = self.state
        self.error = error
        if old_state != new_state:
            self.state = new_state
            log_transaction_state_change(
                transaction_id=self.transaction_id,
                product_id=self.product_id,
                old_state=old_state,
                new_state=new_state,
                reason=reason,
            )

    class Config:
        arbitrary_types_allowed = True
        validate_assignment = False
        json_schema_extra = {
            "example": {
                "transaction_id": "1000000123456789",
                "product_id": "com.app.pro",
                "state": "purchased",
                "error": None,
                "original_transaction_id": None,
                "quantity": 1,
            }
        }
