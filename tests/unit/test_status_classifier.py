"""Tests for validation status classification."""

import pytest

from warehouse.exceptions import (
    UNKNOWN_VALIDATION_ERROR_CODE,
    AuthenticationFailedError,
    InvalidJSONError,
    InvalidSecretError,
    MalformedReceiptError,
    ProductionReceiptSentToTestError,
    ServerUnavailableError,
    SubscriptionExpiredError,
    TestReceiptSentToProductionError as SandboxReceiptError,
    UnknownValidationStatusError,
)
from warehouse.services.status_classifier import classify_status

DOCUMENTED_STATUSES = [
    (21000, InvalidJSONError),
    (21002, MalformedReceiptError),
    (21003, AuthenticationFailedError),
    (21004, InvalidSecretError),
    (21005, ServerUnavailableError),
    (21006, SubscriptionExpiredError),
    (21007, SandboxReceiptError),
    (21008, ProductionReceiptSentToTestError),
]


class TestSuccessStatus:
    """Test the success status."""

    def test_zero_is_success(self):
        classification = classify_status(0)

        assert classification.is_success
        assert classification.error is None
        assert classification.code == 0


class TestDocumentedStatuses:
    """Test statuses documented by the validation service."""

    @pytest.mark.parametrize("code,error_class", DOCUMENTED_STATUSES)
    def test_documented_code_maps_to_named_error(self, code, error_class):
        classification = classify_status(code)

        assert not classification.is_success
        assert type(classification.error) is error_class
        assert classification.error.code == code
        assert classification.error.description

    def test_documented_errors_are_distinct(self):
        error_types = {type(classify_status(code).error) for code, _ in DOCUMENTED_STATUSES}

        assert len(error_types) == len(DOCUMENTED_STATUSES)

    def test_each_call_builds_a_new_error(self):
        assert classify_status(21005).error is not classify_status(21005).error


class TestUnknownStatuses:
    """Test statuses outside the documented set."""

    @pytest.mark.parametrize("code", [1, -1, 21001, 21009, 21010, 21100, 30000, 99999])
    def test_undocumented_code_is_unknown(self, code):
        classification = classify_status(code)

        assert not classification.is_success
        assert isinstance(classification.error, UnknownValidationStatusError)
        assert classification.error.status == code
        assert classification.error.code == UNKNOWN_VALIDATION_ERROR_CODE
