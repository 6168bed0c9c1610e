"""Tests for the ingestion orchestrator: survivors, naming, fatal failures
and superseded requests."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx

from catalogstudio.errors import StudioLookupError, StudioNotFoundError
from catalogstudio.http import AsyncHttpTransport
from catalogstudio.models import LocalFile, PipelineState, ProductInfo, SourceKind
from catalogstudio.pipeline import (
    AssetRecordStore,
    HandleRegistry,
    IngestionOrchestrator,
    Normalizer,
    PipelineStateMachine,
    ResourceLifecycleManager,
)


class Session:
    """The containers an orchestrator works on, bundled for assertions."""

    def __init__(self, config, lookup=None, images: dict[str, bytes] | None = None):
        self.store = AssetRecordStore()
        self.state = PipelineStateMachine()
        self.registry = HandleRegistry()
        self.lifecycle = ResourceLifecycleManager(self.store, self.registry)
        self.images = images or {}
        fetcher = MagicMock()
        fetcher.get_bytes = AsyncMock(side_effect=self._fetch)
        self.normalizer = Normalizer(config, fetcher=fetcher)
        self.orchestrator = IngestionOrchestrator(
            config, self.store, self.state, self.lifecycle, self.normalizer, lookup,
        )

    async def _fetch(self, url: str) -> bytes:
        if url not in self.images:
            raise StudioNotFoundError(message=f"Not found: GET {url}")
        return self.images[url]


def _lookup(product_id: str | None, refs: list[str], name: str = "Sofa Gris") -> MagicMock:
    lookup = MagicMock()
    lookup.resolve_product_id.return_value = product_id
    lookup.fetch_product = AsyncMock(
        return_value=ProductInfo(product_id=product_id or "", display_name=name, image_references=refs),
    )
    return lookup


class TestIngestRemote:
    async def test_second_of_three_fails(self, config, make_image):
        refs = ["https://img/1.jpg", "https://img/2.jpg", "https://img/3.jpg"]
        images = {refs[0]: make_image(30, 20), refs[2]: make_image(10, 40)}
        session = Session(config, _lookup("20347821", refs), images)

        result = await session.orchestrator.ingest_remote("https://www.oechsle.pe/sofa-20347821/p")

        assert result.ok
        assert result.dropped == 1
        assert result.display_name == "Sofa Gris"
        assert session.state.state == PipelineState.COMPLETE
        records = session.store.records
        assert [r.suggested_name for r in records] == ["20347821", "20347821_1"]
        assert [r.original_reference for r in records] == [refs[0], refs[2]]
        assert [(r.width, r.height) for r in records] == [(30, 20), (10, 40)]
        assert all(r.source_kind == SourceKind.REMOTE_FETCH for r in records)
        assert len({r.id for r in records}) == 2

    async def test_every_record_gets_a_live_handle(self, config, make_image):
        refs = ["https://img/1.jpg", "https://img/2.jpg"]
        session = Session(config, _lookup("1", refs), {u: make_image() for u in refs})
        await session.orchestrator.ingest_remote("1")
        assert session.registry.live_count == 2
        for record in session.store:
            assert session.registry.resolve(record.display_handle) == record.encoded_buffer

    async def test_zero_survivors_is_fatal(self, config):
        session = Session(config, _lookup("1", ["https://img/a.jpg", "https://img/b.jpg"]))
        result = await session.orchestrator.ingest_remote("1")
        assert not result.ok
        assert result.error
        assert session.state.state == PipelineState.ERROR
        assert session.state.error_message == result.error
        assert len(session.store) == 0

    async def test_unresolvable_url_is_fatal(self, config):
        lookup = _lookup(None, [])
        session = Session(config, lookup)
        result = await session.orchestrator.ingest_remote("https://www.oechsle.pe/")
        assert not result.ok
        assert session.state.state == PipelineState.ERROR
        lookup.fetch_product.assert_not_awaited()

    async def test_lookup_failure_is_fatal(self, config):
        lookup = _lookup("1", [])
        lookup.fetch_product = AsyncMock(side_effect=StudioLookupError(message="Product 1 was not found"))
        session = Session(config, lookup)
        result = await session.orchestrator.ingest_remote("1")
        assert result.error == "Product 1 was not found"
        assert session.state.state == PipelineState.ERROR
        assert len(session.store) == 0

    async def test_previous_batch_is_cleared_and_released(self, config, make_image):
        refs = ["https://img/1.jpg"]
        session = Session(config, _lookup("1", refs), {refs[0]: make_image()})
        await session.orchestrator.ingest_remote("1")
        old = session.store.records[0]

        session.orchestrator._lookup = _lookup("2", [])
        await session.orchestrator.ingest_remote("2")

        assert len(session.store) == 0
        assert not session.registry.is_live(old.display_handle)
        assert session.registry.live_count == 0

    async def test_protocol_error_on_one_image_drops_only_that_image(self, config, make_image):
        refs = ["https://img/1.jpg", "https://img/2.jpg", "https://img/3.jpg"]
        images = {refs[0]: make_image(), refs[2]: make_image()}

        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == refs[1]:
                raise httpx.RemoteProtocolError("peer closed connection", request=request)
            return httpx.Response(200, content=images[str(request.url)])

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        store = AssetRecordStore()
        state = PipelineStateMachine()
        orchestrator = IngestionOrchestrator(
            config, store, state, ResourceLifecycleManager(store, HandleRegistry()),
            Normalizer(config, fetcher=AsyncHttpTransport(config, client=client)),
            _lookup("123", refs),
        )

        result = await orchestrator.ingest_remote("123")

        assert result.ok
        assert result.dropped == 1
        assert state.state == PipelineState.COMPLETE
        assert [r.suggested_name for r in store] == ["123", "123_1"]
        await client.aclose()

    async def test_unexpected_normalizer_exception_is_dropped(self, config, make_image):
        refs = ["https://img/1.jpg", "https://img/2.jpg"]
        session = Session(config, _lookup("9", refs), {refs[0]: make_image()})
        original = session.normalizer.from_url

        async def from_url(url: str):
            if url == refs[1]:
                raise RuntimeError("decoder crashed")
            return await original(url)

        session.normalizer.from_url = from_url
        result = await session.orchestrator.ingest_remote("9")

        assert result.ok
        assert session.state.state == PipelineState.COMPLETE
        assert [r.suggested_name for r in session.store] == ["9"]

    async def test_metrics(self, config, make_image, metrics):
        config.metrics = metrics
        refs = ["https://img/1.jpg", "https://img/2.jpg"]
        session = Session(config, _lookup("1", refs), {refs[0]: make_image()})
        await session.orchestrator.ingest_remote("1")
        assert metrics.total("catalogstudio.images_ingested_total") == 1
        assert metrics.total("catalogstudio.images_dropped_total") == 1


class TestIngestFiles:
    async def test_local_files_named_from_filename(self, config, make_image):
        session = Session(config)
        files = [
            LocalFile("Sofa Azul.PNG", make_image()),
            LocalFile("broken.png", b"nope"),
            LocalFile("mesa_120.webp", make_image(fmt="WEBP")),
        ]
        result = await session.orchestrator.ingest_files(files)
        assert result.ok
        assert result.product_id is None
        assert result.dropped == 1
        assert [r.suggested_name for r in session.store] == ["sofa-azul", "mesa-120"]
        assert [r.original_reference for r in session.store] == ["Sofa Azul.PNG", "mesa_120.webp"]
        assert all(r.source_kind == SourceKind.LOCAL_UPLOAD for r in session.store)
        assert session.state.state == PipelineState.COMPLETE

    async def test_paths_are_read(self, config, make_image, tmp_path):
        path = tmp_path / "Lampara Mesa.jpg"
        path.write_bytes(make_image(fmt="JPEG"))
        session = Session(config)
        result = await session.orchestrator.ingest_files([path, tmp_path / "missing.png"])
        assert result.ok
        assert [r.suggested_name for r in session.store] == ["lampara-mesa"]

    async def test_all_files_broken(self, config):
        session = Session(config)
        result = await session.orchestrator.ingest_files([LocalFile("a.png", b"")])
        assert not result.ok
        assert session.state.state == PipelineState.ERROR
        assert len(session.store) == 0

    async def test_empty_file_list(self, config):
        session = Session(config)
        result = await session.orchestrator.ingest_files([])
        assert not result.ok
        assert session.state.state == PipelineState.ERROR


class TestSupersededRequests:
    async def test_older_request_never_commits(self, config, make_image):
        gate = asyncio.Event()
        slow_refs = ["https://img/slow.jpg"]
        lookup = _lookup("111", slow_refs)

        async def slow_fetch(product_id: str) -> ProductInfo:
            await gate.wait()
            return ProductInfo("111", "Old", slow_refs)

        lookup.fetch_product = AsyncMock(side_effect=slow_fetch)
        session = Session(config, lookup, {slow_refs[0]: make_image()})

        older = asyncio.create_task(session.orchestrator.ingest_remote("111"))
        await asyncio.sleep(0)

        newer = await session.orchestrator.ingest_files([LocalFile("new.png", make_image())])
        gate.set()
        stale = await older

        assert newer.ok
        assert stale.superseded
        assert not stale.ok
        assert [r.suggested_name for r in session.store] == ["new"]
        assert session.state.state == PipelineState.COMPLETE
        assert session.registry.live_count == 1

    async def test_superseded_failure_leaves_state_alone(self, config, make_image):
        gate = asyncio.Event()
        lookup = _lookup("111", [])

        async def failing_fetch(product_id: str) -> ProductInfo:
            await gate.wait()
            raise StudioLookupError(message="late failure")

        lookup.fetch_product = AsyncMock(side_effect=failing_fetch)
        session = Session(config, lookup)

        older = asyncio.create_task(session.orchestrator.ingest_remote("111"))
        await asyncio.sleep(0)
        await session.orchestrator.ingest_files([LocalFile("new.png", make_image())])
        gate.set()
        stale = await older

        assert stale.superseded
        assert session.state.state == PipelineState.COMPLETE
        assert session.state.error_message is None


async def test_remote_without_lookup(config):
    session = Session(config, lookup=None)
    result = await session.orchestrator.ingest_remote("123")
    assert not result.ok
    assert session.state.state == PipelineState.ERROR
