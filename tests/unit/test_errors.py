"""Tests for the StudioError hierarchy: codes, context and cause chaining."""

from __future__ import annotations

import pytest

from catalogstudio.errors import (
    ErrorCode,
    StudioAuthError,
    StudioConfigurationError,
    StudioConversionError,
    StudioDescriptionError,
    StudioError,
    StudioGenerationError,
    StudioLookupError,
    StudioNetworkError,
    StudioNotFoundError,
    StudioRequestError,
    StudioRetryExhaustedError,
    StudioUploadError,
)

_EXPECTED_CODES = [
    (StudioLookupError, ErrorCode.LOOKUP_ERROR),
    (StudioConversionError, ErrorCode.CONVERSION_ERROR),
    (StudioDescriptionError, ErrorCode.DESCRIPTION_ERROR),
    (StudioGenerationError, ErrorCode.GENERATION_ERROR),
    (StudioUploadError, ErrorCode.UPLOAD_ERROR),
    (StudioConfigurationError, ErrorCode.CONFIGURATION_ERROR),
    (StudioAuthError, ErrorCode.AUTH_ERROR),
    (StudioNotFoundError, ErrorCode.NOT_FOUND),
    (StudioRequestError, ErrorCode.REQUEST_ERROR),
    (StudioNetworkError, ErrorCode.NETWORK_ERROR),
    (StudioRetryExhaustedError, ErrorCode.RETRY_EXHAUSTED),
]


class TestErrorCodes:
    @pytest.mark.parametrize(("cls", "code"), _EXPECTED_CODES)
    def test_default_code(self, cls, code):
        err = cls(message="boom")
        assert err.code == code
        assert isinstance(err, StudioError)

    def test_codes_compare_as_strings(self):
        err = StudioLookupError(message="x")
        assert err.code == "LOOKUP_ERROR"

    def test_explicit_code_overrides_default(self):
        err = StudioError(message="x", code="CUSTOM")
        assert err.code == "CUSTOM"


class TestErrorPayload:
    def test_message_and_str(self):
        err = StudioConversionError(message="Could not decode image: a.png")
        assert err.message == "Could not decode image: a.png"
        assert str(err) == "Could not decode image: a.png"

    def test_context_defaults_to_empty_dict(self):
        assert StudioUploadError(message="x").context == {}

    def test_context_is_kept(self):
        err = StudioUploadError(message="x", context={"sku_id": "123"})
        assert err.context["sku_id"] == "123"

    def test_cause_is_chained(self):
        root = OSError("disk")
        err = StudioConversionError(message="x", cause=root)
        assert err.cause is root
        assert err.__cause__ is root

    def test_repr_contains_code_and_context(self):
        err = StudioLookupError(message="missing", context={"product_id": "42"})
        text = repr(err)
        assert "StudioLookupError" in text
        assert "LOOKUP_ERROR" in text
        assert "product_id" in text

    def test_repr_without_context(self):
        assert "context" not in repr(StudioLookupError(message="missing"))

    def test_catchable_as_base(self):
        with pytest.raises(StudioError):
            raise StudioRetryExhaustedError(message="gave up")
