"""Error taxonomy for receipt validation, payments and entitlements.

Every error carries a numeric ``code`` and a human-readable ``description``.
Validation failures are never raised past ``ReceiptValidator.validate``; they
travel inside a ``ValidationResult`` instead.
"""

from enum import IntEnum
from typing import Optional

UNKNOWN_VALIDATION_ERROR_CODE = 30000
INVALID_RESPONSE_FORMAT_ERROR_CODE = 30001
PURCHASE_NOT_FOUND_ERROR_CODE = 30002
TRANSPORT_ERROR_CODE = 30003
RECEIPT_UNAVAILABLE_ERROR_CODE = 30004


class WarehouseError(Exception):
    """Base exception for all warehouse errors."""

    code: int = 0
    description: str = "An unknown warehouse error has occurred."

    def __init__(self, description: Optional[str] = None, code: Optional[int] = None):
        if description is not None:
            self.description = description
        if code is not None:
            self.code = code
        super().__init__(self.description)


class ConfigurationError(WarehouseError):
    """Raised when configuration is invalid or missing."""

    pass


# Validation errors


class TransportError(WarehouseError):
    """Network layer failure while talking to the validation endpoint."""

    code = TRANSPORT_ERROR_CODE
    description = "The receipt validation request could not be completed."

    def __init__(self, description: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(description)
        self.cause = cause


class InvalidResponseFormatError(WarehouseError):
    """Validation response body was not the expected JSON object."""

    code = INVALID_RESPONSE_FORMAT_ERROR_CODE
    description = "The JSON response was not valid."


class PurchaseNotFoundInReceiptError(WarehouseError):
    """Receipt validated but does not contain the confirmed product."""

    code = PURCHASE_NOT_FOUND_ERROR_CODE
    description = "The provided transaction was not present inside the validated receipt."

    def __init__(self, product_id: str):
        super().__init__()
        self.product_id = product_id


class ReceiptUnavailableError(WarehouseError):
    """The local receipt could not be read before validation."""

    code = RECEIPT_UNAVAILABLE_ERROR_CODE
    description = "The app store receipt could not be found."


class ValidationStatus(IntEnum):
    """Status codes documented by the receipt validation service."""

    VALID = 0
    INVALID_JSON = 21000
    MALFORMED_RECEIPT = 21002
    AUTHENTICATION_FAILED = 21003
    INVALID_SECRET = 21004
    SERVER_UNAVAILABLE = 21005
    SUBSCRIPTION_EXPIRED = 21006
    TEST_RECEIPT_SENT_TO_PRODUCTION = 21007
    PRODUCTION_RECEIPT_SENT_TO_TEST = 21008


class ValidationStatusError(WarehouseError):
    """Non-zero status reported by the validation service."""

    status: int = UNKNOWN_VALIDATION_ERROR_CODE

    def __init__(self, description: Optional[str] = None):
        super().__init__(description, code=self.status)


class InvalidJSONError(ValidationStatusError):
    status = ValidationStatus.INVALID_JSON
    description = "The App Store could not read the JSON object you provided."


class MalformedReceiptError(ValidationStatusError):
    status = ValidationStatus.MALFORMED_RECEIPT
    description = "The data in the receipt-data property was malformed or missing."


class AuthenticationFailedError(ValidationStatusError):
    status = ValidationStatus.AUTHENTICATION_FAILED
    description = "The receipt could not be authenticated."


class InvalidSecretError(ValidationStatusError):
    status = ValidationStatus.INVALID_SECRET
    description = (
        "The shared secret you provided does not match the shared secret on file for your account."
    )


class ServerUnavailableError(ValidationStatusError):
    status = ValidationStatus.SERVER_UNAVAILABLE
    description = "The receipt server is not currently available."


class SubscriptionExpiredError(ValidationStatusError):
    status = ValidationStatus.SUBSCRIPTION_EXPIRED
    description = "This receipt is valid but the subscription has expired."


class TestReceiptSentToProductionError(ValidationStatusError):
    status = ValidationStatus.TEST_RECEIPT_SENT_TO_PRODUCTION
    description = (
        "This receipt is from the test environment, but it was sent to the production "
        "environment for verification. Send it to the test environment instead."
    )


class ProductionReceiptSentToTestError(ValidationStatusError):
    status = ValidationStatus.PRODUCTION_RECEIPT_SENT_TO_TEST
    description = (
        "This receipt is from the production environment, but it was sent to the test "
        "environment for verification. Send it to the production environment instead."
    )


class UnknownValidationStatusError(ValidationStatusError):
    """Undocumented status code; the raw value is kept in ``status``."""

    description = "An unknown validation code was received."

    def __init__(self, status: int):
        super().__init__()
        self.code = UNKNOWN_VALIDATION_ERROR_CODE
        self.status = status


# Payment queue and coordinator errors


class PaymentErrorCode(IntEnum):
    """Failure reasons reported by the payment queue for a transaction."""

    UNKNOWN = 0
    CLIENT_INVALID = 1
    PAYMENT_CANCELLED = 2
    PAYMENT_INVALID = 3
    PAYMENT_NOT_ALLOWED = 4
    PRODUCT_NOT_AVAILABLE = 5


class PaymentError(WarehouseError):
    """Failure attached to a FAILED transaction by the payment queue."""

    description = "The payment could not be completed."

    def __init__(
        self,
        code: PaymentErrorCode = PaymentErrorCode.UNKNOWN,
        description: Optional[str] = None,
    ):
        super().__init__(description, code=int(code))

    @property
    def is_cancellation(self) -> bool:
        return self.code == PaymentErrorCode.PAYMENT_CANCELLED


class RestoreError(WarehouseError):
    """Queue-level failure of a restore-all operation."""

    description = "Restoring completed transactions failed."


class InvalidProductIdentifierError(WarehouseError):
    """Raised when purchasing a product the catalog does not know."""

    code = 1

    def __init__(self, product_id: str):
        super().__init__(f"Invalid product identifier: {product_id}")
        self.product_id = product_id


class NoProductsFoundError(WarehouseError):
    code = 1
    description = "No products were found."


class PurchaseInProgressError(WarehouseError):
    """Raised when a purchase of the same product is already pending."""

    def __init__(self, product_id: str):
        super().__init__(f"A purchase of {product_id} is already in progress")
        self.product_id = product_id


class TransactionAlreadyFinishedError(WarehouseError):
    """Raised by a payment queue when a transaction is finished twice."""

    def __init__(self, transaction_id: str):
        super().__init__(f"Transaction {transaction_id} is already finished")
        self.transaction_id = transaction_id
