"""Full error hierarchy for catalogstudio.

Every public error class inherits from StudioError. Each carries a
machine-readable ``code`` (from :class:`ErrorCode`), a human-readable
``message``, an optional structured ``context`` dict, and an optional
``cause`` (chained exception).

Error codes are a :class:`str` enum so they serialise naturally into the
structured log stream and can be matched with plain ``==``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable codes for every error the package can raise."""

    LOOKUP_ERROR = "LOOKUP_ERROR"
    CONVERSION_ERROR = "CONVERSION_ERROR"
    DESCRIPTION_ERROR = "DESCRIPTION_ERROR"
    GENERATION_ERROR = "GENERATION_ERROR"
    UPLOAD_ERROR = "UPLOAD_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    NOT_FOUND = "NOT_FOUND"
    REQUEST_ERROR = "REQUEST_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    RETRY_EXHAUSTED = "RETRY_EXHAUSTED"


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class StudioError(Exception):
    """Base exception for all catalogstudio errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` identifying the error category.
    message:
        Operator-facing description of what went wrong.
    context:
        Structured diagnostic detail.  Keys are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    default_code: str = "STUDIO_ERROR"

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
        code: str | None = None,
    ) -> None:
        self.code: str = code or self.default_code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


# ---------------------------------------------------------------------------
# Pipeline errors
# ---------------------------------------------------------------------------

class StudioLookupError(StudioError):
    """The product could not be resolved or fetched.  Fatal to an ingestion
    request.

    Context keys: ``page_url``, ``product_id``.
    """

    default_code = ErrorCode.LOOKUP_ERROR


class StudioConversionError(StudioError):
    """An input could not be normalized, or no input of a batch survived.

    Context keys: ``src``, ``reason``, ``inputs``.
    """

    default_code = ErrorCode.CONVERSION_ERROR


class StudioDescriptionError(StudioError):
    """The AI description service failed for one image.

    Context keys: ``record_id``, ``model``.
    """

    default_code = ErrorCode.DESCRIPTION_ERROR


class StudioGenerationError(StudioError):
    """The AI image-generation service failed or returned no image.

    Context keys: ``model``, ``finish_reason``.
    """

    default_code = ErrorCode.GENERATION_ERROR


class StudioUploadError(StudioError):
    """A single catalog upload failed.

    Context keys: ``sku_id``, ``status_code``.
    """

    default_code = ErrorCode.UPLOAD_ERROR


class StudioConfigurationError(StudioError):
    """Required configuration (e.g. catalog credentials) is missing.

    Context keys: ``setting``.
    """

    default_code = ErrorCode.CONFIGURATION_ERROR


# ---------------------------------------------------------------------------
# Transport errors
# ---------------------------------------------------------------------------

class StudioAuthError(StudioError):
    """Remote API returned 401/403.

    Context keys: ``status_code``, ``url``.
    """

    default_code = ErrorCode.AUTH_ERROR


class StudioNotFoundError(StudioError):
    """Remote API returned 404.

    Context keys: ``status_code``, ``url``.
    """

    default_code = ErrorCode.NOT_FOUND


class StudioRequestError(StudioError):
    """Remote API rejected the request with a non-retryable 4xx.

    Context keys: ``status_code``, ``url``, ``body``.
    """

    default_code = ErrorCode.REQUEST_ERROR


class StudioNetworkError(StudioError):
    """Timeout, DNS failure or connection reset, after retries.

    Context keys: ``url``, ``attempt``.
    """

    default_code = ErrorCode.NETWORK_ERROR


class StudioRetryExhaustedError(StudioError):
    """Every retry of a retryable response was used up.

    Context keys: ``attempts``, ``last_status_code``.
    """

    default_code = ErrorCode.RETRY_EXHAUSTED
