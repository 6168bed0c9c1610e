"""Session configuration for catalogstudio.

:class:`StudioConfig` is a dataclass that captures every tuneable knob of
the pipeline and its HTTP adapters.  One instance is passed to
:class:`~catalogstudio.studio.CatalogStudio` and from there to every
component that needs it.

Catalog credentials are kept apart from the config because the operator
edits them at runtime; :class:`CredentialStore` persists them between
sessions.
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from catalogstudio.models import Credentials
from catalogstudio.observability import get_logger

log = get_logger("catalogstudio.config")

DEFAULT_CREDENTIALS_PATH = Path("~/.config/catalogstudio/credentials.json")

_LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")


# ---------------------------------------------------------------------------
# Configuration dataclass
# ---------------------------------------------------------------------------

@dataclass
class StudioConfig:
    """Complete configuration for a catalog studio session.

    Every parameter has a default; only ``ai_api_key`` is needed for the AI
    rename/variation actions.

    Parameters
    ----------
    storefront_base_url:
        Root of the storefront whose public search API resolves products.
    ai_api_key:
        Key for the AI description/generation service.  Never logged.
    ai_base_url:
        Root of the ``generateContent`` REST API.
    ai_describe_model:
        Model used to name images.
    ai_generate_model:
        Image-capable model used for variations.
    jpeg_quality:
        Pillow JPEG quality (1-95) of every normalized buffer.
    max_image_bytes:
        Inputs larger than this are rejected before decoding.
    default_generated_size:
        Edge length assumed for a generated image when no reference is given.
    normalize_max_concurrent:
        Maximum number of normalizer calls in flight during ingestion.
    describe_max_concurrent:
        Maximum number of AI description calls in flight during rename-all.
    retry_max_attempts:
        Total attempts per HTTP request for retryable failures.
    retry_base_delay:
        Base delay (seconds) for exponential backoff.
    retry_max_delay:
        Upper cap (seconds) on computed backoff delay.
    retry_jitter:
        Scale backoff delays randomly to 50-100 %.
    timeout_seconds:
        HTTP request timeout.
    http_proxy:
        Optional proxy URL for every adapter.
    metrics:
        A :class:`~catalogstudio.observability.MetricsHook` or ``None``.
    debug_dump_payload:
        Write redacted request/response dumps to *stderr*.
    credentials_path:
        Where :class:`CredentialStore` keeps catalog credentials.
    """

    # ── Storefront ──────────────────────────────────────────────────────
    storefront_base_url: str = "https://www.oechsle.pe"

    # ── AI service ──────────────────────────────────────────────────────
    ai_api_key: str = ""

    ai_base_url: str = "https://generativelanguage.googleapis.com/v1beta"

    ai_describe_model: str = "gemini-2.5-flash"

    ai_generate_model: str = "gemini-2.5-flash-image"

    # ── Normalization ───────────────────────────────────────────────────
    jpeg_quality: int = 92

    max_image_bytes: int = 20 * 1024 * 1024  # 20 MiB

    default_generated_size: int = 1024

    # ── Concurrency ─────────────────────────────────────────────────────
    normalize_max_concurrent: int = 8

    describe_max_concurrent: int = 4

    # ── Retry & HTTP ────────────────────────────────────────────────────
    retry_max_attempts: int = 3

    retry_base_delay: float = 0.5

    retry_max_delay: float = 10.0

    retry_jitter: bool = True

    timeout_seconds: float = 30.0

    http_proxy: str | None = None

    # ── Observability ───────────────────────────────────────────────────
    metrics: Any | None = None

    debug_dump_payload: bool = False

    # ── Persistence ─────────────────────────────────────────────────────
    credentials_path: str | None = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        for name in ("storefront_base_url", "ai_base_url"):
            parsed = urlparse(getattr(self, name))
            if parsed.scheme == "http" and parsed.hostname not in _LOCAL_HOSTS:
                raise ValueError(
                    f"{name} uses insecure HTTP for non-local host '{parsed.hostname}'. "
                    "Use HTTPS, or target localhost for testing."
                )
            if parsed.scheme not in ("http", "https"):
                raise ValueError(f"{name} must be an http(s) URL, got {getattr(self, name)!r}")

        if not 1 <= self.jpeg_quality <= 95:
            raise ValueError(f"jpeg_quality must be within 1..95, got {self.jpeg_quality}")
        if self.max_image_bytes <= 0:
            raise ValueError(f"max_image_bytes must be > 0, got {self.max_image_bytes}")
        if self.default_generated_size <= 0:
            raise ValueError(
                f"default_generated_size must be > 0, got {self.default_generated_size}"
            )
        if self.normalize_max_concurrent < 1:
            raise ValueError(
                f"normalize_max_concurrent must be >= 1, got {self.normalize_max_concurrent}"
            )
        if self.describe_max_concurrent < 1:
            raise ValueError(
                f"describe_max_concurrent must be >= 1, got {self.describe_max_concurrent}"
            )
        if self.retry_max_attempts < 1:
            raise ValueError(f"retry_max_attempts must be >= 1, got {self.retry_max_attempts}")
        if self.retry_base_delay < 0:
            raise ValueError(f"retry_base_delay must be >= 0, got {self.retry_base_delay}")
        if self.retry_max_delay < 0:
            raise ValueError(f"retry_max_delay must be >= 0, got {self.retry_max_delay}")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")

    def __repr__(self) -> str:
        """Mask the AI key to prevent accidental credential leakage."""
        parts: list[str] = []
        for f in dataclasses.fields(self):
            val = getattr(self, f.name)
            if f.name == "ai_api_key":
                masked = f"...{val[-4:]}" if len(val) >= 4 else "****"
                parts.append(f"ai_api_key='{masked}'")
            else:
                parts.append(f"{f.name}={val!r}")
        return f"StudioConfig({', '.join(parts)})"


# ---------------------------------------------------------------------------
# Credential persistence
# ---------------------------------------------------------------------------

_CREDENTIAL_KEYS = ("account_name", "app_key", "app_token", "environment")


class CredentialStore:
    """Load and save catalog :class:`Credentials` as a JSON file.

    A missing, unreadable or malformed file loads as ``None`` -- the upload
    action then reports a configuration error instead of the session
    failing at start-up.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path or DEFAULT_CREDENTIALS_PATH).expanduser()

    def load(self) -> Credentials | None:
        if not self.path.is_file():
            return None
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return Credentials(**{k: raw[k] for k in _CREDENTIAL_KEYS if k in raw})
        except (OSError, ValueError, TypeError) as exc:
            log.warning(
                "Ignoring unreadable credentials file",
                extra={"extra_fields": {"op": "load_credentials", "path": str(self.path),
                                        "error": type(exc).__name__}},
            )
            return None

    def save(self, credentials: Credentials) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {k: getattr(credentials, k) for k in _CREDENTIAL_KEYS}
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        try:
            self.path.chmod(0o600)
        except OSError:
            log.debug("Could not restrict credentials file permissions")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
