"""Receipt emulator - answers verifyReceipt requests for local receipts.

Local receipts are JSON documents (see ReceiptDocument) that the app reads
from disk; the emulator decodes them from ``receipt-data`` and replies with
the status codes the real service would use.
"""

import base64
import binascii
import json
import threading
from collections import deque
from typing import Any, Deque, List, Optional

from pydantic import ValidationError

from warehouse.exceptions import ValidationStatus
from warehouse.logging_config import get_logger
from warehouse.models import EmulatorSettings, ReceiptDocument, VerifyReceiptResponse

logger = get_logger(__name__)

ENVIRONMENT_NAMES = {"sandbox": "Sandbox", "production": "Production"}


class ReceiptEmulator:
    """verifyReceipt behavior with optional forced statuses.

    Thread-safe.
    """

    def __init__(self, settings: Optional[EmulatorSettings] = None):
        self.settings = settings or EmulatorSettings()
        self._forced_statuses: Deque[int] = deque()
        self._lock = threading.RLock()

    def force_statuses(self, statuses: List[int]) -> List[int]:
        """Queue statuses returned by the next requests, one per request.

        A forced 0 processes the request normally.
        """
        with self._lock:
            self._forced_statuses.extend(statuses)
            return list(self._forced_statuses)

    def pending_statuses(self) -> List[int]:
        with self._lock:
            return list(self._forced_statuses)

    def reset(self) -> None:
        with self._lock:
            self._forced_statuses.clear()

    def _next_forced_status(self) -> Optional[int]:
        with self._lock:
            return self._forced_statuses.popleft() if self._forced_statuses else None

    def verify(self, body: Any, environment: str) -> VerifyReceiptResponse:
        """Answer a verifyReceipt request.

        Args:
            body: Decoded JSON request body
            environment: "sandbox" or "production" endpoint that was called

        Returns:
            VerifyReceiptResponse
        """
        environment_name = ENVIRONMENT_NAMES[environment]

        # Forced statuses win over the request content
        forced = self._next_forced_status()
        if forced is not None and forced != ValidationStatus.VALID:
            logger.info("verify_receipt_forced_status", status=forced, environment=environment)
            return VerifyReceiptResponse(status=forced, environment=environment_name)

        def reject(status: ValidationStatus, reason: str) -> VerifyReceiptResponse:
            logger.info(
                "verify_receipt_rejected",
                status=int(status),
                reason=reason,
                environment=environment,
            )
            return VerifyReceiptResponse(status=int(status), environment=environment_name)

        # Checks run in the order the real service applies them
        if not isinstance(body, dict) or not isinstance(body.get("receipt-data"), str):
            return reject(ValidationStatus.INVALID_JSON, "receipt-data missing")

        if self.settings.shared_secret and body.get("password") != self.settings.shared_secret:
            return reject(ValidationStatus.INVALID_SECRET, "shared secret mismatch")

        document = self._decode_document(body["receipt-data"])
        if document is None:
            return reject(ValidationStatus.MALFORMED_RECEIPT, "receipt-data undecodable")

        if self.settings.bundle_id and document.bundle_id != self.settings.bundle_id:
            return reject(ValidationStatus.MALFORMED_RECEIPT, "bundle id mismatch")

        # Wrong endpoint for the receipt: 21007 / 21008
        receipt_environment = document.environment.lower()
        if environment == "production" and receipt_environment == "sandbox":
            return reject(ValidationStatus.TEST_RECEIPT_SENT_TO_PRODUCTION, "sandbox receipt")
        if environment == "sandbox" and receipt_environment == "production":
            return reject(ValidationStatus.PRODUCTION_RECEIPT_SENT_TO_TEST, "production receipt")

        logger.info(
            "verify_receipt_valid",
            environment=environment,
            bundle_id=document.bundle_id,
            purchases=len(document.in_app),
        )
        return VerifyReceiptResponse(
            status=int(ValidationStatus.VALID),
            environment=environment_name,
            receipt={
                "bundle_id": document.bundle_id,
                "application_version": document.application_version,
                "original_application_version": document.original_application_version,
                "in_app": document.in_app,
            },
        )

    @staticmethod
    def _decode_document(receipt_data: str) -> Optional[ReceiptDocument]:
        try:
            # binascii.Error for bad base64, ValueError (JSONDecodeError) for bad JSON
            raw = base64.b64decode(receipt_data, validate=True)
            data = json.loads(raw)
        except (binascii.Error, ValueError):
            return None
        if not isinstance(data, dict):
            return None
        try:
            return ReceiptDocument(**data)
        except ValidationError:
            return None
