"""Transaction identifier generation utilities.

Generates App Store-style numeric transaction identifiers for the simulated
payment queue and emulator receipts.
"""

import itertools
import random
import re
import threading
import time

TRANSACTION_ID_PREFIX = "1000000"
_TRANSACTION_ID_PATTERN = re.compile(r"^\d{16}$")

_counter = itertools.count(random.randint(0, 999))
_counter_lock = threading.Lock()


def generate_transaction_id() -> str:
    """Generate a unique transaction identifier.

    Format: 16 digits, "1000000" followed by 9 digits derived from the
    current time and a process-wide counter.
    Example: 1000000481516234

    Returns:
        Transaction identifier string
    """
    with _counter_lock:
        sequence = next(_counter)
    suffix = (int(time.time() * 1000) * 1000 + sequence) % 1_000_000_000
    return f"{TRANSACTION_ID_PREFIX}{suffix:09d}"


def validate_transaction_id(transaction_id: str) -> bool:
    """Validate transaction identifier format.

    Args:
        transaction_id: Identifier to validate

    Returns:
        True if the identifier is a 16-digit numeric string
    """
    if not transaction_id or not isinstance(transaction_id, str):
        return False
    return bool(_TRANSACTION_ID_PATTERN.match(transaction_id))


def millis_now() -> int:
    """Current time in Unix milliseconds."""
    return int(time.time() * 1000)
