"""Metrics hook protocol and no-op default implementation.

The pipeline reports counters and timings at its seams (HTTP requests,
ingested and dropped images, renames, uploads).  Without a configured hook a
:class:`NoopMetricsHook` swallows them.

Emitted metric names:

* ``catalogstudio.requests_total``           -- counter
* ``catalogstudio.retries_total``            -- counter
* ``catalogstudio.request_duration_ms``      -- timing
* ``catalogstudio.images_ingested_total``    -- counter
* ``catalogstudio.images_dropped_total``     -- counter
* ``catalogstudio.rename_total``             -- counter (tag ``outcome``)
* ``catalogstudio.upload_success_total``     -- counter
* ``catalogstudio.upload_failure_total``     -- counter
* ``catalogstudio.live_handles``             -- gauge
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol any metrics backend must satisfy.

    *tags* is an optional ``str -> str`` mapping the backend may translate
    into labels, tags or name suffixes.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge to an absolute value."""
        ...


class NoopMetricsHook:
    """Metrics backend that discards every data point."""

    __slots__ = ()

    def increment(self, name: str, value: int = 1, tags: dict[str, str] | None = None) -> None:
        pass

    def timing(self, name: str, ms: float, tags: dict[str, str] | None = None) -> None:
        pass

    def gauge(self, name: str, value: float, tags: dict[str, str] | None = None) -> None:
        pass
