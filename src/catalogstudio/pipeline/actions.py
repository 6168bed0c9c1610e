"""Operator-triggered actions over the current scope.

The scope of every batch action is the selection when it is non-empty and
the whole record list otherwise (:meth:`AssetRecordStore.scope`).  Renames
fan out with :func:`~catalogstudio.pipeline.settle.settle_all`; uploads run
one at a time and keep going after failures.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from catalogstudio.config import StudioConfig
from catalogstudio.errors import (
    StudioConfigurationError,
    StudioConversionError,
    StudioDescriptionError,
    StudioError,
    StudioGenerationError,
)
from catalogstudio.models import (
    BatchUploadResult,
    Credentials,
    ImageRecord,
    RecordStatus,
    RenameSummary,
    SourceKind,
    UploadResult,
    ZipExportResult,
)
from catalogstudio.observability import NoopMetricsHook, get_logger
from catalogstudio.services.base import CatalogUploader, ImageDescriber, ImageGenerator
from catalogstudio.utils.naming import ai_name, export_filename

from . import export
from .handles import ResourceLifecycleManager
from .ingest import new_record_id
from .normalize import Normalizer
from .settle import settle_all
from .state import PipelineStateMachine
from .store import AssetRecordStore

log = get_logger("catalogstudio.actions")

DEFAULT_UPLOAD_FAILURE = "Unknown upload failure"


class BatchActionOrchestrator:
    """Rename, generate, edit, export and upload records in the store.

    Collaborators are optional so a session can run without the AI or the
    catalog configured; calling an action whose collaborator is missing
    raises :class:`StudioConfigurationError`.
    """

    def __init__(
        self,
        config: StudioConfig,
        store: AssetRecordStore,
        state: PipelineStateMachine,
        lifecycle: ResourceLifecycleManager,
        normalizer: Normalizer,
        *,
        describer: ImageDescriber | None = None,
        generator: ImageGenerator | None = None,
        uploader: CatalogUploader | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._state = state
        self._lifecycle = lifecycle
        self._normalizer = normalizer
        self._describer = describer
        self._generator = generator
        self._uploader = uploader
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()

    def _require_record(self, record_id: str) -> ImageRecord:
        record = self._store.get(record_id)
        if record is None:
            raise KeyError(record_id)
        return record

    # ------------------------------------------------------------------
    # AI rename
    # ------------------------------------------------------------------

    async def rename_one(self, record_id: str) -> str:
        """Ask the describer for a name and store it on the record.

        Raises
        ------
        KeyError
            If no record has *record_id*.
        StudioDescriptionError
            If the describer fails or the record has no image.
        """
        record = self._require_record(record_id)
        describer = self._require_describer()
        if record.encoded_buffer is None:
            raise StudioDescriptionError(
                message=f"Record {record_id} has no image to describe",
                context={"record_id": record_id},
            )
        self._store.mark_analyzing(record_id)
        return await self._describe_into(describer, record)

    async def rename_all(self) -> RenameSummary:
        """Rename every in-scope record concurrently.

        A failed item keeps its current name; it never aborts the others.
        """
        describer = self._require_describer()
        scope = self._store.scope()
        candidates = [r for r in scope if r.encoded_buffer is not None]

        async def _rename(record: ImageRecord) -> str:
            self._store.mark_analyzing(record.id)
            return await self._describe_into(describer, record)

        outcomes = await settle_all(
            candidates,
            _rename,
            limit=self._config.describe_max_concurrent,
            catch=(Exception,),
        )

        summary = RenameSummary(skipped=len(scope) - len(candidates))
        for outcome in outcomes:
            if outcome.ok:
                summary.renamed += 1
            else:
                summary.failed += 1
                log.warning(
                    "rename failed",
                    extra={"extra_fields": {"op": "rename", "record_id": outcome.key.id,
                                            "error_code": getattr(outcome.error, "code", None),
                                            "error": str(outcome.error)}},
                )
        log.info(
            "rename batch finished",
            extra={"extra_fields": {"op": "rename_all", "renamed": summary.renamed,
                                    "failed": summary.failed, "skipped": summary.skipped}},
        )
        return summary

    async def _describe_into(self, describer: ImageDescriber, record: ImageRecord) -> str:
        try:
            name = await describer.describe(record.encoded_buffer)
        except Exception:
            self._metrics.increment("catalogstudio.rename_total", tags={"outcome": "failure"})
            raise
        finally:
            self._store.clear_analyzing(record.id)
        self._store.upsert_field(record.id, suggested_name=name)
        self._metrics.increment("catalogstudio.rename_total", tags={"outcome": "success"})
        return name

    def _require_describer(self) -> ImageDescriber:
        if self._describer is None:
            raise StudioConfigurationError(
                message="No image describer is configured",
                context={"setting": "describer"},
            )
        return self._describer

    # ------------------------------------------------------------------
    # AI variation
    # ------------------------------------------------------------------

    async def generate_variation(
        self,
        prompt: str,
        reference_id: str | None = None,
    ) -> ImageRecord:
        """Generate a new image from *prompt* and prepend it to the list.

        When *reference_id* is given, that record's buffer seeds the
        generation and its dimensions pick the aspect ratio.

        Raises
        ------
        ValueError
            If *prompt* is blank.
        StudioGenerationError
            If the generator fails or returns something that cannot be
            normalized.  The store is left untouched.
        """
        if not prompt or not prompt.strip():
            raise ValueError("A prompt is required to generate an image")
        if self._generator is None:
            raise StudioConfigurationError(
                message="No image generator is configured",
                context={"setting": "generator"},
            )

        reference = self._require_record(reference_id) if reference_id else None
        size = self._config.default_generated_size
        width = reference.width if reference is not None and reference.width else size
        height = reference.height if reference is not None and reference.height else size

        raw = await self._generator.generate(
            prompt,
            reference=reference.encoded_buffer if reference is not None else None,
            width=width,
            height=height,
        )
        try:
            normalized = await self._normalizer.from_bytes(raw, src="generated")
        except StudioConversionError as exc:
            raise StudioGenerationError(
                message=f"The generated image could not be processed: {exc.message}",
                context={"prompt_chars": len(prompt)},
                cause=exc,
            ) from exc

        record = self._lifecycle.adopt(ImageRecord(
            id=new_record_id(),
            source_kind=SourceKind.AI_GENERATED,
            original_reference=prompt,
            encoded_buffer=normalized.buffer,
            width=normalized.width,
            height=normalized.height,
            suggested_name=ai_name(prompt),
            status=RecordStatus.SUCCESS,
        ))
        self._store.prepend(record)
        log.info(
            "variation generated",
            extra={"extra_fields": {"op": "generate", "record_id": record.id,
                                    "reference_id": reference_id,
                                    "width": record.width, "height": record.height}},
        )
        return record

    # ------------------------------------------------------------------
    # Edit
    # ------------------------------------------------------------------

    async def apply_edit(self, record_id: str, buffer: bytes) -> ImageRecord | None:
        """Normalize an edited buffer and install it on the record.

        The record is ``converting`` while the buffer is normalized.  On
        failure it keeps its previous buffer and handle and the error is
        raised; ``None`` means the record disappeared in the meantime.
        """
        self._require_record(record_id)
        self._store.upsert_field(record_id, status=RecordStatus.CONVERTING)
        try:
            normalized = await self._normalizer.from_bytes(buffer, src=f"edit:{record_id}")
        except StudioError:
            self._store.upsert_field(record_id, status=RecordStatus.SUCCESS)
            raise
        return self._lifecycle.install_buffer(
            record_id, normalized.buffer, normalized.width, normalized.height,
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    async def download(self, record_id: str, directory: str | Path) -> Path:
        record = self._require_record(record_id)
        loop = asyncio.get_running_loop()
        path = await loop.run_in_executor(None, export.write_single, record, directory)
        log.info(
            "record downloaded",
            extra={"extra_fields": {"op": "download", "record_id": record_id,
                                    "file": export_filename(record.id, record.suggested_name)}},
        )
        return path

    def build_zip(self) -> bytes:
        """Archive of the in-scope buffers, as bytes."""
        return export.build_zip(self._store.scope())

    async def export_zip(self, destination: str | Path) -> ZipExportResult:
        scope = self._store.scope()
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(None, export.write_zip, scope, destination)
        log.info(
            "zip exported",
            extra={"extra_fields": {"op": "export_zip", "path": str(result.path),
                                    "count": len(result.files), "skipped": result.skipped}},
        )
        return result

    # ------------------------------------------------------------------
    # Catalog upload
    # ------------------------------------------------------------------

    async def upload_scope(
        self,
        sku_id: str | None,
        credentials: Credentials | None,
    ) -> BatchUploadResult:
        """Upload every in-scope record to SKU *sku_id*, one at a time.

        Every in-scope record with an image is attempted; records without
        one are left out of the run and its total.  The run succeeds only
        if all attempted items do; otherwise the result carries the message
        of the last item that failed.

        Raises
        ------
        StudioConfigurationError
            If credentials, an uploader or the SKU id are missing.  Raised
            before any network call, after moving the state machine to
            ``ERROR``.
        """
        problem = self._upload_configuration_problem(sku_id, credentials)
        if problem is not None:
            self._state.fail(problem.message)
            raise problem

        scope = self._store.scope()
        records = [r for r in scope if r.encoded_buffer is not None]
        if len(records) < len(scope):
            log.info(
                "records without an image left out of upload",
                extra={"extra_fields": {"op": "upload_scope", "skipped": len(scope) - len(records)}},
            )
        success_count = 0
        last_message: str | None = None
        for record in records:
            result = await self._upload_one(record, sku_id, credentials)
            if result.success:
                success_count += 1
                self._metrics.increment("catalogstudio.upload_success_total")
                continue
            last_message = result.message or DEFAULT_UPLOAD_FAILURE
            self._metrics.increment("catalogstudio.upload_failure_total")
            log.warning(
                "upload failed",
                extra={"extra_fields": {"op": "upload", "record_id": record.id,
                                        "sku_id": sku_id, "error": result.message}},
            )

        log.info(
            "upload batch finished",
            extra={"extra_fields": {"op": "upload_scope", "sku_id": sku_id,
                                    "count": success_count, "total": len(records)}},
        )
        if last_message is None:
            return BatchUploadResult(success=True, success_count=success_count, total=len(records))
        return BatchUploadResult(
            success=False,
            success_count=success_count,
            total=len(records),
            message=last_message,
        )

    async def _upload_one(
        self,
        record: ImageRecord,
        sku_id: str,
        credentials: Credentials,
    ) -> UploadResult:
        name = record.suggested_name or f"img-{record.id[:4]}"
        try:
            return await self._uploader.upload(
                record.encoded_buffer, sku_id, credentials, name=name,
            )
        except StudioError as exc:
            return UploadResult(success=False, message=exc.message)
        except Exception as exc:
            return UploadResult(success=False, message=str(exc) or type(exc).__name__)

    def _upload_configuration_problem(
        self,
        sku_id: str | None,
        credentials: Credentials | None,
    ) -> StudioConfigurationError | None:
        if self._uploader is None:
            return StudioConfigurationError(
                message="No catalog uploader is configured",
                context={"setting": "uploader"},
            )
        if credentials is None or not (
            credentials.account_name and credentials.app_key and credentials.app_token
        ):
            return StudioConfigurationError(
                message="Catalog credentials are not configured",
                context={"setting": "credentials"},
            )
        if not sku_id:
            return StudioConfigurationError(
                message="No SKU id to upload to; search for a product first",
                context={"setting": "sku_id"},
            )
        return None
