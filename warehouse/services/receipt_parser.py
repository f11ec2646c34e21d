"""Receipt parser - decodes a validation response into a Receipt.

Every field follows a present-or-default policy: a missing or mistyped field
decodes to its default and never fails the whole parse. Malformed purchase
entries are skipped individually.
"""

from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from warehouse.exceptions import InvalidResponseFormatError
from warehouse.logging_config import get_logger
from warehouse.models import InAppPurchaseRecord, Receipt

logger = get_logger(__name__)


def _string(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def _integer(data: Mapping[str, Any], key: str) -> Optional[int]:
    """Read an int, accepting numeric strings as the service sends them."""
    value = data.get(key)
    # JSON true/false decode to bool, which is an int subclass
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _timestamp(data: Mapping[str, Any], key: str) -> Optional[datetime]:
    """Read a millisecond epoch field as a UTC datetime."""
    millis = _integer(data, key)
    if millis is None:
        return None
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        logger.warning("receipt_timestamp_out_of_range", field=key, value=millis)
        return None


def parse_in_app_purchase(data: Mapping[str, Any]) -> InAppPurchaseRecord:
    """Decode one ``in_app`` entry."""
    quantity = _integer(data, "quantity")
    return InAppPurchaseRecord(
        quantity=quantity if quantity is not None else 0,
        product_id=_string(data, "product_id"),
        transaction_id=_string(data, "transaction_id"),
        original_transaction_id=_string(data, "original_transaction_id"),
        purchase_date=_timestamp(data, "purchase_date_ms"),
        original_purchase_date=_timestamp(data, "original_purchase_date_ms"),
    )


def parse_receipt(payload: Any) -> Receipt:
    """Decode the ``receipt`` object of a validation response.

    Args:
        payload: Decoded JSON body of the validation response

    Returns:
        Receipt with defaults for any missing fields

    Raises:
        InvalidResponseFormatError: If payload is not a JSON object
    """
    if not isinstance(payload, dict):
        raise InvalidResponseFormatError()

    # Missing or malformed receipt object decodes to an all-defaults Receipt
    receipt_data = payload.get("receipt")
    if not isinstance(receipt_data, dict):
        if receipt_data is not None:
            logger.warning("receipt_object_malformed", value_type=type(receipt_data).__name__)
        receipt_data = {}

    purchases: List[InAppPurchaseRecord] = []
    entries = receipt_data.get("in_app")
    if isinstance(entries, list):
        for index, entry in enumerate(entries):
            # Skip entries that are not objects, keep the rest
            if not isinstance(entry, dict):
                logger.warning(
                    "receipt_purchase_skipped",
                    index=index,
                    value_type=type(entry).__name__,
                )
                continue
            purchases.append(parse_in_app_purchase(entry))
    elif entries is not None:
        logger.warning("receipt_in_app_malformed", value_type=type(entries).__name__)

    return Receipt(
        bundle_id=_string(receipt_data, "bundle_id"),
        app_version=_string(receipt_data, "application_version"),
        original_app_version=_string(receipt_data, "original_application_version"),
        expiration_date=_timestamp(receipt_data, "expiration_date_ms"),
        in_app_purchases=tuple(purchases),
    )
