"""Receipt Validator - validates receipts against the verifyReceipt service.

Responsibilities:
- Build the JSON request carrying the base64-encoded receipt
- POST it to the configured sandbox or production endpoint
- Retry once against the other endpoint on a wrong-environment status
- Classify the status and parse the receipt
- Optionally check that the receipt contains a specific product

``validate`` never raises; every failure is returned as a ValidationResult.
"""

import base64
from typing import Any, Dict, Optional

import httpx

from warehouse.exceptions import (
    InvalidResponseFormatError,
    ProductionReceiptSentToTestError,
    PurchaseNotFoundInReceiptError,
    TestReceiptSentToProductionError,
    TransportError,
)
from warehouse.logging_config import get_logger
from warehouse.models import ValidationResult, ValidationSettings
from warehouse.models.settings import Environment
from warehouse.services.receipt_parser import parse_receipt
from warehouse.services.status_classifier import classify_status

logger = get_logger(__name__)


def encode_receipt(receipt_data: bytes) -> str:
    """Base64-encode raw receipt bytes for the request body."""
    return base64.b64encode(receipt_data).decode("ascii")


class ReceiptValidator:
    """Validates app store receipts with the remote validation service."""

    def __init__(
        self,
        settings: Optional[ValidationSettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize validator.

        Args:
            settings: Endpoint configuration (defaults apply when omitted)
            http_client: Shared HTTP client; one is created and owned if omitted
        """
        self.settings = settings or ValidationSettings()
        self._http_client = http_client
        self._owns_client = http_client is None

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.timeout_seconds)
        return self._http_client

    async def aclose(self) -> None:
        """Close the HTTP client if this validator created it."""
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def build_request_body(self, receipt_data: bytes) -> Dict[str, str]:
        body = {"receipt-data": encode_receipt(receipt_data)}
        if self.settings.shared_secret:
            body["password"] = self.settings.shared_secret
        return body

    async def validate(
        self,
        receipt_data: bytes,
        product_id: Optional[str] = None,
    ) -> ValidationResult:
        """Validate a receipt.

        Args:
            receipt_data: Raw receipt bytes
            product_id: When given, the receipt must contain a purchase of it

        Returns:
            ValidationResult with the parsed Receipt or a typed error
        """
        body = self.build_request_body(receipt_data)
        environment = self.settings.environment
        result = await self._validate_at(environment, body)

        # 21007/21008: the receipt belongs to the other environment
        retry_environment = self._retry_environment(environment, result)
        if retry_environment is not None:
            logger.info(
                "receipt_validation_environment_retry",
                from_environment=environment,
                to_environment=retry_environment,
                status=result.error.code if result.error else None,
            )
            result = await self._validate_at(retry_environment, body)

        # Deep check: the receipt must list the product being confirmed
        if result.is_success and product_id is not None:
            if not result.receipt.contains_purchase(product_id):
                logger.warning(
                    "receipt_purchase_not_found",
                    product_id=product_id,
                    receipt_products=result.receipt.product_ids,
                )
                return ValidationResult.failure(PurchaseNotFoundInReceiptError(product_id))

        return result

    def _retry_environment(
        self, environment: Environment, result: ValidationResult
    ) -> Optional[Environment]:
        if result.is_success or not self.settings.retry_on_environment_mismatch:
            return None
        if environment == "production" and isinstance(result.error, TestReceiptSentToProductionError):
            return "sandbox"
        if environment == "sandbox" and isinstance(result.error, ProductionReceiptSentToTestError):
            return "production"
        return None

    async def _validate_at(self, environment: Environment, body: Dict[str, str]) -> ValidationResult:
        url = self.settings.url_for(environment)

        try:
            response = await self.http_client.post(
                url, json=body, timeout=self.settings.timeout_seconds
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            # Connection errors, timeouts and HTTP 4xx/5xx
            logger.error(
                "receipt_validation_transport_failed",
                environment=environment,
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ValidationResult.failure(
                TransportError(f"Receipt validation request failed: {e}", cause=e)
            )

        try:
            payload: Any = response.json()
        except ValueError:
            logger.error("receipt_validation_invalid_json", environment=environment, url=url)
            return ValidationResult.failure(InvalidResponseFormatError())

        if not isinstance(payload, dict):
            logger.error("receipt_validation_not_an_object", environment=environment)
            return ValidationResult.failure(InvalidResponseFormatError())

        # bool is an int subclass; true/false is not a status code
        status = payload.get("status")
        if isinstance(status, bool) or not isinstance(status, int):
            logger.error("receipt_validation_status_missing", environment=environment, status=status)
            return ValidationResult.failure(InvalidResponseFormatError())

        classification = classify_status(status)
        if not classification.is_success:
            logger.warning(
                "receipt_validation_rejected",
                environment=environment,
                status=status,
                error_type=type(classification.error).__name__,
            )
            return ValidationResult.failure(classification.error)

        receipt = parse_receipt(payload)
        logger.info(
            "receipt_validated",
            environment=environment,
            bundle_id=receipt.bundle_id,
            purchases=len(receipt.in_app_purchases),
        )
        return ValidationResult.success(receipt)
