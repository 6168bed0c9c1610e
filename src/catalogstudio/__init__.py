"""catalogstudio: product image ingestion and batch tooling for commerce catalogs.

Public re-exports
-----------------

* **Session:** :class:`CatalogStudio`
* **Configuration:** :class:`StudioConfig`, :class:`CredentialStore`
* **Errors:** Every :class:`StudioError` subclass and :class:`ErrorCode`
* **Models:** Records, enums, and result dataclasses

Usage::

    from catalogstudio import CatalogStudio

    async with CatalogStudio(ai_api_key="...") as studio:
        result = await studio.search("https://www.oechsle.pe/sofa-gris-20347821/p")
        summary = await studio.rename_all()
"""

from __future__ import annotations

# ── Configuration ───────────────────────────────────────────────────────
from catalogstudio.config import (
    DEFAULT_CREDENTIALS_PATH,
    CredentialStore,
    StudioConfig,
)

# ── Errors ──────────────────────────────────────────────────────────────
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

# ── Models ──────────────────────────────────────────────────────────────
from catalogstudio.models import (
    BatchUploadResult,
    Credentials,
    ImageRecord,
    IngestionResult,
    LocalFile,
    NormalizedImage,
    PipelineState,
    ProductInfo,
    RecordStatus,
    RenameSummary,
    SourceKind,
    UploadResult,
    ZipExportResult,
)

# ── Session ─────────────────────────────────────────────────────────────
from catalogstudio.studio import CatalogStudio

# ── Public surface ──────────────────────────────────────────────────────

__all__ = [
    # Session
    "CatalogStudio",
    # Configuration
    "StudioConfig",
    "CredentialStore",
    "DEFAULT_CREDENTIALS_PATH",
    # Error base + code enum
    "StudioError",
    "ErrorCode",
    # Pipeline errors
    "StudioLookupError",
    "StudioConversionError",
    "StudioDescriptionError",
    "StudioGenerationError",
    "StudioUploadError",
    "StudioConfigurationError",
    # Transport errors
    "StudioAuthError",
    "StudioNotFoundError",
    "StudioRequestError",
    "StudioNetworkError",
    "StudioRetryExhaustedError",
    # Models: records
    "ImageRecord",
    "NormalizedImage",
    "LocalFile",
    "ProductInfo",
    "Credentials",
    # Models: enums
    "SourceKind",
    "RecordStatus",
    "PipelineState",
    # Models: results
    "IngestionResult",
    "RenameSummary",
    "UploadResult",
    "BatchUploadResult",
    "ZipExportResult",
]
