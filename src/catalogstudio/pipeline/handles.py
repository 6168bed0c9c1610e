"""Display-handle lifecycle.

A display handle is what a viewer uses to render a record's buffer -- the
equivalent of a browser object URL.  Handles are created from a buffer and
must be released once that buffer is superseded, otherwise the registry
keeps the old bytes alive for the rest of the session.

:class:`HandleRegistry` owns the handle -> buffer mapping.
:class:`ResourceLifecycleManager` is the only code path allowed to replace a
record's ``encoded_buffer``: it releases the old handle, creates the new one
and publishes both through the store in a single update.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable

from catalogstudio.models import ImageRecord, RecordStatus
from catalogstudio.observability import NoopMetricsHook, get_logger

from .store import AssetRecordStore

log = get_logger("catalogstudio.handles")

HANDLE_SCHEME = "handle:"


class HandleRegistry:
    """Create, resolve and release display handles."""

    def __init__(self, metrics: object | None = None) -> None:
        self._buffers: dict[str, bytes] = {}
        self._metrics = metrics if metrics is not None else NoopMetricsHook()

    def create(self, buffer: bytes) -> str:
        handle = f"{HANDLE_SCHEME}{uuid.uuid4().hex}"
        self._buffers[handle] = buffer
        self._metrics.gauge("catalogstudio.live_handles", len(self._buffers))
        return handle

    def release(self, handle: str | None) -> None:
        """Release *handle*.  Unknown or ``None`` handles are ignored."""
        if handle is None:
            return
        if self._buffers.pop(handle, None) is not None:
            self._metrics.gauge("catalogstudio.live_handles", len(self._buffers))

    def resolve(self, handle: str) -> bytes:
        """Return the buffer behind *handle*; ``KeyError`` if released."""
        return self._buffers[handle]

    def is_live(self, handle: str | None) -> bool:
        return handle is not None and handle in self._buffers

    @property
    def live_count(self) -> int:
        return len(self._buffers)


class ResourceLifecycleManager:
    """Guard every buffer replacement so exactly one handle stays live."""

    def __init__(self, store: AssetRecordStore, registry: HandleRegistry) -> None:
        self._store = store
        self._registry = registry

    @property
    def registry(self) -> HandleRegistry:
        return self._registry

    def adopt(self, record: ImageRecord) -> ImageRecord:
        """Attach a fresh handle to a record that is not in the store yet."""
        if record.encoded_buffer is None:
            return record
        return record.evolve(display_handle=self._registry.create(record.encoded_buffer))

    def install_buffer(
        self,
        record_id: str,
        buffer: bytes,
        width: int,
        height: int,
    ) -> ImageRecord | None:
        """Replace a record's buffer, handle and dimensions in one update.

        Returns the updated record, or ``None`` if the record no longer
        exists (in which case nothing stays allocated).
        """
        current = self._store.get(record_id)
        if current is None:
            return None

        self._registry.release(current.display_handle)
        handle = self._registry.create(buffer)
        try:
            updated = self._store.upsert_field(
                record_id,
                encoded_buffer=buffer,
                display_handle=handle,
                width=width,
                height=height,
                status=RecordStatus.SUCCESS,
            )
        except Exception:
            self._registry.release(handle)
            raise
        if updated is None:
            self._registry.release(handle)
            return None
        log.debug(
            "installed buffer",
            extra={"extra_fields": {"op": "install_buffer", "record_id": record_id,
                                    "width": width, "height": height}},
        )
        return updated

    def release_records(self, records: Iterable[ImageRecord]) -> int:
        """Release the handles of records that left the store."""
        released = 0
        for record in records:
            if self._registry.is_live(record.display_handle):
                self._registry.release(record.display_handle)
                released += 1
        return released
