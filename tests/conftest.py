"""Shared test fixtures for the catalogstudio test suite."""

from __future__ import annotations

from collections.abc import Callable
from io import BytesIO
from typing import Any

import pytest
from PIL import Image

from catalogstudio.config import StudioConfig


class RecordingMetricsHook:
    """A metrics backend that records all calls for assertion."""

    def __init__(self) -> None:
        self.increments: list[dict[str, Any]] = []
        self.timings: list[dict[str, Any]] = []
        self.gauges: list[dict[str, Any]] = []

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        self.increments.append({"name": name, "value": value, "tags": tags})

    def timing(self, name: str, ms: float, tags: dict[str, str] | None = None) -> None:
        self.timings.append({"name": name, "ms": ms, "tags": tags})

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        self.gauges.append({"name": name, "value": value, "tags": tags})

    def total(self, name: str) -> int:
        return sum(c["value"] for c in self.increments if c["name"] == name)


@pytest.fixture
def metrics() -> RecordingMetricsHook:
    return RecordingMetricsHook()


@pytest.fixture
def config(tmp_path) -> StudioConfig:
    """Fast, deterministic configuration: no backoff delay, no jitter."""
    return StudioConfig(
        ai_api_key="test-ai-key-1234",
        retry_max_attempts=3,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        retry_jitter=False,
        credentials_path=str(tmp_path / "credentials.json"),
    )


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    """Factory for encoded test images generated with Pillow."""

    def _make(
        width: int = 32,
        height: int = 24,
        *,
        mode: str = "RGB",
        fmt: str = "PNG",
        color: Any = (200, 30, 30),
    ) -> bytes:
        image = Image.new(mode, (width, height), color)
        out = BytesIO()
        image.save(out, format=fmt)
        return out.getvalue()

    return _make
