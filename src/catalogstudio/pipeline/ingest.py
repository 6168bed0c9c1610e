"""Ingestion: raw inputs -> normalized, named records committed as one batch.

Each request resets the pipeline state and clears the store, normalizes all
inputs concurrently, drops the ones that fail, and commits the survivors
with a single :meth:`~catalogstudio.pipeline.store.AssetRecordStore.replace_all`.
Only a lookup failure or a batch with zero survivors fails the request.

Requests may overlap.  Every request carries the generation token it got
from :meth:`~catalogstudio.pipeline.state.PipelineStateMachine.begin`; a
request that has been superseded finishes quietly without touching the
store or the state.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Sequence
from pathlib import Path

from catalogstudio.config import StudioConfig
from catalogstudio.errors import StudioConversionError, StudioError, StudioLookupError
from catalogstudio.models import (
    ImageRecord,
    IngestionResult,
    LocalFile,
    NormalizedImage,
    PipelineState,
    RecordStatus,
    SourceKind,
)
from catalogstudio.observability import NoopMetricsHook, get_logger
from catalogstudio.services.base import ProductLookup
from catalogstudio.utils.naming import local_name, remote_name

from .handles import ResourceLifecycleManager
from .normalize import Normalizer
from .settle import Settled, require_successes, settle_all
from .state import PipelineStateMachine
from .store import AssetRecordStore

log = get_logger("catalogstudio.ingest")

LOCAL_DISPLAY_NAME = "Local files"


def new_record_id() -> str:
    return uuid.uuid4().hex


class IngestionOrchestrator:
    """Run search and file-upload ingestion requests against the store."""

    def __init__(
        self,
        config: StudioConfig,
        store: AssetRecordStore,
        state: PipelineStateMachine,
        lifecycle: ResourceLifecycleManager,
        normalizer: Normalizer,
        lookup: ProductLookup | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._state = state
        self._lifecycle = lifecycle
        self._normalizer = normalizer
        self._lookup = lookup
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def ingest_remote(self, page_url: str) -> IngestionResult:
        """Look up the product behind *page_url* and ingest its images.

        The first surviving image is named after the product id, the one at
        surviving position ``i`` after it ``f"{product_id}_{i}"``.
        """
        token = self._start(PipelineState.FETCHING_INFO)

        if self._lookup is None:
            return self._fail(token, StudioLookupError(message="No product lookup is configured"))
        product_id = self._lookup.resolve_product_id(page_url)
        if not product_id:
            return self._fail(token, StudioLookupError(
                message="Could not detect a product id in the URL",
                context={"page_url": page_url},
            ))

        try:
            product = await self._lookup.fetch_product(product_id)
        except StudioError as exc:
            return self._fail(token, exc, product_id=product_id)

        if not self._state.is_current(token):
            return self._superseded(product_id)
        self._state.transition(PipelineState.CONVERTING)

        outcomes = await settle_all(
            product.image_references,
            self._normalizer.from_url,
            limit=self._config.normalize_max_concurrent,
            catch=(Exception,),
        )
        try:
            survivors = self._survivors(outcomes, "No usable images could be processed")
        except StudioConversionError as exc:
            return self._fail(token, exc, product_id=product_id)

        records = [
            ImageRecord(
                id=new_record_id(),
                source_kind=SourceKind.REMOTE_FETCH,
                original_reference=outcome.key,
                encoded_buffer=outcome.value.buffer,
                width=outcome.value.width,
                height=outcome.value.height,
                suggested_name=remote_name(product_id, index),
                status=RecordStatus.SUCCESS,
            )
            for index, outcome in enumerate(survivors)
        ]
        return self._commit(
            token,
            records,
            dropped=len(outcomes) - len(survivors),
            product_id=product_id,
            display_name=product.display_name,
        )

    async def ingest_files(self, files: Sequence[LocalFile | str | Path]) -> IngestionResult:
        """Ingest operator-supplied files, named after their filenames."""
        token = self._start(PipelineState.CONVERTING)

        outcomes = await settle_all(
            list(files),
            self._normalize_local,
            limit=self._config.normalize_max_concurrent,
            catch=(Exception,),
        )
        try:
            survivors = self._survivors(outcomes, "The files could not be processed")
        except StudioConversionError as exc:
            return self._fail(token, exc)

        records = []
        for outcome in survivors:
            name = _file_name(outcome.key)
            records.append(ImageRecord(
                id=new_record_id(),
                source_kind=SourceKind.LOCAL_UPLOAD,
                original_reference=name,
                encoded_buffer=outcome.value.buffer,
                width=outcome.value.width,
                height=outcome.value.height,
                suggested_name=local_name(name),
                status=RecordStatus.SUCCESS,
            ))
        return self._commit(
            token,
            records,
            dropped=len(outcomes) - len(survivors),
            display_name=LOCAL_DISPLAY_NAME,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start(self, start: PipelineState) -> int:
        token = self._state.begin(start)
        self._lifecycle.release_records(self._store.replace_all([]))
        return token

    async def _normalize_local(self, file: LocalFile | str | Path) -> NormalizedImage:
        if isinstance(file, LocalFile):
            return await self._normalizer.from_file(file)
        loop = asyncio.get_running_loop()
        try:
            local = await loop.run_in_executor(None, LocalFile.from_path, file)
        except OSError as exc:
            raise StudioConversionError(
                message=f"Could not read file: {file}",
                context={"src": str(file), "reason": type(exc).__name__},
                cause=exc,
            ) from exc
        return await self._normalizer.from_file(local)

    def _survivors(
        self,
        outcomes: list[Settled],
        message: str,
    ) -> list[Settled]:
        for outcome in outcomes:
            if not outcome.ok:
                log.warning(
                    "dropped input",
                    extra={"extra_fields": {"op": "ingest", "src": str(_file_name(outcome.key))[:200],
                                            "error_code": getattr(outcome.error, "code", None),
                                            "error": str(outcome.error)}},
                )
        return require_successes(
            outcomes,
            1,
            lambda: StudioConversionError(message=message, context={"inputs": len(outcomes)}),
        )

    def _commit(
        self,
        token: int,
        records: list[ImageRecord],
        *,
        dropped: int,
        product_id: str | None = None,
        display_name: str = "",
    ) -> IngestionResult:
        if not self._state.is_current(token):
            return self._superseded(product_id)

        adopted = [self._lifecycle.adopt(r) for r in records]
        self._lifecycle.release_records(self._store.replace_all(adopted))
        self._state.transition(PipelineState.COMPLETE)

        self._metrics.increment("catalogstudio.images_ingested_total", len(adopted))
        if dropped:
            self._metrics.increment("catalogstudio.images_dropped_total", dropped)
        log.info(
            "ingestion complete",
            extra={"extra_fields": {"op": "ingest", "product_id": product_id,
                                    "records": len(adopted), "dropped": dropped}},
        )
        return IngestionResult(
            ok=True,
            records=adopted,
            product_id=product_id,
            display_name=display_name,
            dropped=dropped,
        )

    def _fail(
        self,
        token: int,
        exc: StudioError,
        *,
        product_id: str | None = None,
    ) -> IngestionResult:
        if not self._state.is_current(token):
            return self._superseded(product_id)
        self._state.fail(exc.message)
        log.error(
            "ingestion failed",
            extra={"extra_fields": {"op": "ingest", "product_id": product_id,
                                    "error_code": exc.code, "error": exc.message}},
        )
        return IngestionResult(ok=False, product_id=product_id, error=exc.message)

    def _superseded(self, product_id: str | None) -> IngestionResult:
        log.info(
            "discarding superseded ingestion",
            extra={"extra_fields": {"op": "ingest", "product_id": product_id}},
        )
        return IngestionResult(ok=False, product_id=product_id, superseded=True)


def _file_name(file: object) -> str:
    if isinstance(file, LocalFile):
        return file.name
    if isinstance(file, Path):
        return file.name
    if isinstance(file, str):
        return Path(file).name if "://" not in file else file
    return str(file)
