"""Session facade tying the pipeline to its collaborators.

:class:`CatalogStudio` owns one record store, one state machine and one
handle registry, and exposes every operator action as a coroutine.

Usage::

    import asyncio
    from catalogstudio import CatalogStudio

    async def main():
        async with CatalogStudio(ai_api_key="...") as studio:
            result = await studio.search("https://www.oechsle.pe/sofa-gris-20347821/p")
            if result.ok:
                await studio.rename_all()
                await studio.export_zip("exports/")

    asyncio.run(main())
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from catalogstudio.config import CredentialStore, StudioConfig
from catalogstudio.http import AsyncHttpTransport
from catalogstudio.models import (
    BatchUploadResult,
    Credentials,
    ImageRecord,
    IngestionResult,
    LocalFile,
    PipelineState,
    RenameSummary,
    ZipExportResult,
)
from catalogstudio.observability import get_logger
from catalogstudio.pipeline import (
    AssetRecordStore,
    BatchActionOrchestrator,
    HandleRegistry,
    IngestionOrchestrator,
    Normalizer,
    PipelineStateMachine,
    ResourceLifecycleManager,
)
from catalogstudio.services import (
    CatalogUploader,
    GeminiVisionClient,
    ImageDescriber,
    ImageGenerator,
    ProductLookup,
    VtexCatalogUploader,
    VtexProductLookup,
)

log = get_logger("catalogstudio.studio")


class CatalogStudio:
    """One operator session.

    Parameters
    ----------
    config:
        Session configuration.  When omitted, a :class:`StudioConfig` is
        built from *kwargs*.
    lookup, describer, generator, uploader:
        Collaborators.  Any that is omitted is replaced by the bundled HTTP
        adapter, which the session then closes in :meth:`close`.
    credential_store:
        Where catalog credentials are loaded from and saved to.
    """

    def __init__(
        self,
        config: StudioConfig | None = None,
        *,
        lookup: ProductLookup | None = None,
        describer: ImageDescriber | None = None,
        generator: ImageGenerator | None = None,
        uploader: CatalogUploader | None = None,
        credential_store: CredentialStore | None = None,
        **kwargs: Any,
    ) -> None:
        self._config = config if config is not None else StudioConfig(**kwargs)
        self._owned: list[Any] = []

        if describer is None or generator is None:
            vision = GeminiVisionClient(self._config)
            self._owned.append(vision)
            describer = describer or vision
            generator = generator or vision
        if lookup is None:
            lookup = VtexProductLookup(self._config)
            self._owned.append(lookup)
        if uploader is None:
            uploader = VtexCatalogUploader(self._config)
            self._owned.append(uploader)
        fetcher = AsyncHttpTransport(self._config)
        self._owned.append(fetcher)

        self._store = AssetRecordStore()
        self._state = PipelineStateMachine()
        self._registry = HandleRegistry(self._config.metrics)
        self._lifecycle = ResourceLifecycleManager(self._store, self._registry)
        normalizer = Normalizer(self._config, fetcher=fetcher)

        self._ingestion = IngestionOrchestrator(
            self._config, self._store, self._state, self._lifecycle, normalizer, lookup,
        )
        self._actions = BatchActionOrchestrator(
            self._config, self._store, self._state, self._lifecycle, normalizer,
            describer=describer, generator=generator, uploader=uploader,
        )

        self._credential_store = credential_store or CredentialStore(self._config.credentials_path)
        self._credentials = self._credential_store.load()
        self.sku_id: str | None = None
        self.display_name: str = ""

    # ------------------------------------------------------------------
    # Session views
    # ------------------------------------------------------------------

    @property
    def config(self) -> StudioConfig:
        return self._config

    @property
    def records(self) -> tuple[ImageRecord, ...]:
        return self._store.records

    @property
    def selected_ids(self) -> frozenset[str]:
        return self._store.selected_ids

    @property
    def analyzing_ids(self) -> frozenset[str]:
        return self._store.analyzing_ids

    @property
    def state(self) -> PipelineState:
        return self._state.state

    @property
    def error_message(self) -> str | None:
        return self._state.error_message

    @property
    def handles(self) -> HandleRegistry:
        return self._registry

    @property
    def credentials(self) -> Credentials | None:
        return self._credentials

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def search(self, page_url: str) -> IngestionResult:
        """Replace the record list with the images of a storefront product."""
        result = await self._ingestion.ingest_remote(page_url)
        if result.ok:
            self.sku_id = result.product_id
            self.display_name = result.display_name
        return result

    async def load_files(self, files: Sequence[LocalFile | str | Path]) -> IngestionResult:
        """Replace the record list with operator-supplied files.

        The SKU id of the last search is kept as the upload target.
        """
        result = await self._ingestion.ingest_files(files)
        if result.ok:
            self.display_name = result.display_name
        return result

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def toggle_select(self, record_id: str) -> bool:
        return self._store.toggle_select(record_id)

    def select_all_or_none(self) -> None:
        self._store.select_all_or_none()

    def clear_selection(self) -> None:
        self._store.clear_selection()

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def rename_one(self, record_id: str) -> str:
        self._require_idle()
        return await self._actions.rename_one(record_id)

    async def rename_all(self) -> RenameSummary:
        self._require_idle()
        return await self._actions.rename_all()

    async def generate_variation(self, prompt: str, reference_id: str | None = None) -> ImageRecord:
        self._require_idle()
        return await self._actions.generate_variation(prompt, reference_id)

    async def apply_edit(self, record_id: str, buffer: bytes) -> ImageRecord | None:
        self._require_idle()
        return await self._actions.apply_edit(record_id, buffer)

    async def download(self, record_id: str, directory: str | Path) -> Path:
        return await self._actions.download(record_id, directory)

    def build_zip(self) -> bytes:
        return self._actions.build_zip()

    async def export_zip(self, destination: str | Path) -> ZipExportResult:
        return await self._actions.export_zip(destination)

    async def upload_to_catalog(self, sku_id: str | None = None) -> BatchUploadResult:
        """Upload the in-scope records to *sku_id* (default: last searched)."""
        self._require_idle()
        return await self._actions.upload_scope(sku_id or self.sku_id, self._credentials)

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def set_credentials(self, credentials: Credentials | None, *, persist: bool = True) -> None:
        """Use *credentials* for uploads; ``None`` forgets them."""
        self._credentials = credentials
        if not persist:
            return
        if credentials is None:
            self._credential_store.clear()
        else:
            self._credential_store.save(credentials)
        log.info(
            "credentials updated",
            extra={"extra_fields": {"op": "set_credentials",
                                    "account": credentials.account_name if credentials else None}},
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Release every display handle and close owned HTTP clients."""
        self._lifecycle.release_records(self._store.replace_all([]))
        for resource in self._owned:
            await resource.close()

    async def __aenter__(self) -> CatalogStudio:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _require_idle(self) -> None:
        if self._state.is_busy:
            raise RuntimeError("An ingestion request is in progress")
