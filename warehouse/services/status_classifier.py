"""Maps receipt validation status codes to typed outcomes."""

import dataclasses
from typing import Dict, Optional, Type

from warehouse.exceptions import (
    AuthenticationFailedError,
    InvalidJSONError,
    InvalidSecretError,
    MalformedReceiptError,
    ProductionReceiptSentToTestError,
    ServerUnavailableError,
    SubscriptionExpiredError,
    TestReceiptSentToProductionError,
    UnknownValidationStatusError,
    ValidationStatus,
    ValidationStatusError,
)

_STATUS_ERRORS: Dict[int, Type[ValidationStatusError]] = {
    ValidationStatus.INVALID_JSON: InvalidJSONError,
    ValidationStatus.MALFORMED_RECEIPT: MalformedReceiptError,
    ValidationStatus.AUTHENTICATION_FAILED: AuthenticationFailedError,
    ValidationStatus.INVALID_SECRET: InvalidSecretError,
    ValidationStatus.SERVER_UNAVAILABLE: ServerUnavailableError,
    ValidationStatus.SUBSCRIPTION_EXPIRED: SubscriptionExpiredError,
    ValidationStatus.TEST_RECEIPT_SENT_TO_PRODUCTION: TestReceiptSentToProductionError,
    ValidationStatus.PRODUCTION_RECEIPT_SENT_TO_TEST: ProductionReceiptSentToTestError,
}


@dataclasses.dataclass(frozen=True)
class StatusClassification:
    code: int
    error: Optional[ValidationStatusError] = None

    @property
    def is_success(self) -> bool:
        return self.error is None


def classify_status(code: int) -> StatusClassification:
    """Classify a validation status code.

    0 is a valid receipt; each documented code maps to its own error and any
    other code to UnknownValidationStatusError carrying the code.
    """
    if code == ValidationStatus.VALID:
        return StatusClassification(code=code)
    error_class = _STATUS_ERRORS.get(code)
    # Internal data access errors (21100-21199) and anything undocumented
    if error_class is None:
        return StatusClassification(code=code, error=UnknownValidationStatusError(code))
    return StatusClassification(code=code, error=error_class())
