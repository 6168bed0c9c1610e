"""Public data models for catalogstudio.

Every record, result type and enum referenced by the public API lives
here.  Types are plain dataclasses; :class:`ImageRecord` is frozen so a
snapshot handed to a caller can never change underneath it -- the store
publishes updates by replacing records wholesale.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class SourceKind(str, Enum):
    """Provenance of an :class:`ImageRecord`."""

    REMOTE_FETCH = "remote_fetch"
    """Downloaded from a product's image URL."""

    LOCAL_UPLOAD = "local_upload"
    """Supplied by the operator as a local file."""

    AI_GENERATED = "ai_generated"
    """Produced by the AI image-generation service."""


class RecordStatus(str, Enum):
    """Per-record lifecycle, independent of sibling records."""

    CONVERTING = "converting"
    SUCCESS = "success"
    FAILED = "failed"


class PipelineState(str, Enum):
    """Coarse processing state of the session."""

    IDLE = "idle"
    FETCHING_INFO = "fetching_info"
    CONVERTING = "converting"
    COMPLETE = "complete"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ImageRecord:
    """One unit of catalog art.

    Attributes
    ----------
    id:
        Opaque unique identifier assigned at ingestion.
    source_kind:
        Where the image came from.
    original_reference:
        The remote URL, local filename, or generation prompt.
    encoded_buffer:
        Current normalized JPEG bytes, ``None`` for failed records.
    display_handle:
        Live handle for :attr:`encoded_buffer` (see
        :class:`catalogstudio.pipeline.handles.HandleRegistry`).
    width, height:
        Pixel dimensions of :attr:`encoded_buffer`.
    suggested_name:
        Operator-facing filename stem, ``None`` until assigned.
    status:
        Per-record lifecycle state.
    """

    id: str
    source_kind: SourceKind
    original_reference: str
    encoded_buffer: bytes | None = field(default=None, repr=False)
    display_handle: str | None = None
    width: int = 0
    height: int = 0
    suggested_name: str | None = None
    status: RecordStatus = RecordStatus.SUCCESS

    def __post_init__(self) -> None:
        if self.status == RecordStatus.FAILED and self.encoded_buffer is not None:
            raise ValueError(f"Failed record {self.id} must not carry a buffer")

    @property
    def has_pixels(self) -> bool:
        """True when the record can take part in pixel-level operations."""
        return self.status != RecordStatus.FAILED and self.encoded_buffer is not None

    def evolve(self, **changes: object) -> ImageRecord:
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class NormalizedImage:
    """Output of the normalizer: canonical JPEG bytes and their dimensions."""

    buffer: bytes = field(repr=False)
    width: int
    height: int


@dataclass(frozen=True)
class LocalFile:
    """An operator-supplied file: its display name and raw bytes."""

    name: str
    data: bytes = field(repr=False)

    @classmethod
    def from_path(cls, path: str | Path) -> LocalFile:
        p = Path(path)
        return cls(name=p.name, data=p.read_bytes())


# ---------------------------------------------------------------------------
# Collaborator payloads
# ---------------------------------------------------------------------------

@dataclass
class ProductInfo:
    """What the product lookup returns for one product id."""

    product_id: str
    display_name: str
    image_references: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Credentials:
    """Catalog API credentials.  ``app_key``/``app_token`` are never printed."""

    account_name: str
    app_key: str
    app_token: str
    environment: str = "vtexcommercestable"

    def __repr__(self) -> str:
        masked = f"...{self.app_key[-4:]}" if len(self.app_key) >= 4 else "****"
        return (
            f"Credentials(account_name={self.account_name!r}, "
            f"app_key='{masked}', app_token='****', "
            f"environment={self.environment!r})"
        )


@dataclass(frozen=True)
class UploadResult:
    """Outcome of one catalog upload call."""

    success: bool
    message: str | None = None


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------

@dataclass
class IngestionResult:
    """Outcome of one ingestion request.

    ``ok`` is ``False`` when the request failed fatally or was superseded by
    a newer request; ``error`` then carries the operator-facing message
    (``None`` for superseded requests).
    """

    ok: bool
    records: list[ImageRecord] = field(default_factory=list)
    product_id: str | None = None
    display_name: str = ""
    dropped: int = 0
    error: str | None = None
    superseded: bool = False


@dataclass
class RenameSummary:
    renamed: int = 0
    failed: int = 0
    skipped: int = 0


@dataclass
class BatchUploadResult:
    """Aggregated outcome of a sequential upload run.

    ``message`` is the message of the chronologically last failed item, or
    ``None`` when every item succeeded.
    """

    success: bool
    success_count: int
    total: int
    message: str | None = None


@dataclass
class ZipExportResult:
    path: Path | None
    files: list[str] = field(default_factory=list)
    skipped: int = 0
