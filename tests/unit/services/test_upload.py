"""Tests for the SKU file uploader."""

from __future__ import annotations

import httpx
import pytest

from catalogstudio.http import AsyncHttpTransport
from catalogstudio.models import Credentials
from catalogstudio.services.upload import VtexCatalogUploader, sku_file_url

CREDS = Credentials(account_name="oechsle", app_key="vtexappkey-oechsle", app_token="APPTOKEN")


def _uploader(config, handler) -> VtexCatalogUploader:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return VtexCatalogUploader(config, AsyncHttpTransport(config, client=client))


class TestSkuFileUrl:
    def test_builds_endpoint(self):
        assert sku_file_url(CREDS, "20347821") == (
            "https://oechsle.vtexcommercestable.com.br"
            "/api/catalog/pvt/stockkeepingunit/20347821/file"
        )

    @pytest.mark.parametrize("sku", ["", "12a", "../1"])
    def test_rejects_non_numeric_sku(self, sku):
        with pytest.raises(ValueError):
            sku_file_url(CREDS, sku)

    def test_rejects_host_injection(self):
        creds = Credentials(account_name="evil.com/x", app_key="k", app_token="t")
        with pytest.raises(ValueError):
            sku_file_url(creds, "1")


class TestUpload:
    async def test_success_sends_multipart_with_headers(self, config):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"Id": 1})

        uploader = _uploader(config, handler)
        result = await uploader.upload(b"\xff\xd8jpeg", "20347821", CREDS, name="sofa-gris")

        assert result.success
        assert result.message is None
        request = seen[0]
        assert request.method == "POST"
        assert request.url.host == "oechsle.vtexcommercestable.com.br"
        assert request.headers["X-VTEX-API-AppKey"] == "vtexappkey-oechsle"
        assert request.headers["X-VTEX-API-AppToken"] == "APPTOKEN"
        assert request.headers["content-type"].startswith("multipart/form-data")
        body = request.read()
        assert b'name="Name"' in body
        assert b"sofa-gris" in body
        assert b'filename="sofa-gris.jpg"' in body
        assert b"\xff\xd8jpeg" in body
        await uploader.close()

    async def test_api_error_is_reported_not_raised(self, config):
        uploader = _uploader(config, lambda r: httpx.Response(400, json={"Message": "Invalid image"}))
        result = await uploader.upload(b"x", "1", CREDS, name="a")
        assert not result.success
        assert "Invalid image" in result.message
        await uploader.close()

    async def test_auth_error_is_reported(self, config):
        uploader = _uploader(config, lambda r: httpx.Response(401, json={"message": "bad token"}))
        result = await uploader.upload(b"x", "1", CREDS, name="a")
        assert not result.success
        assert "bad token" in result.message
        await uploader.close()

    async def test_invalid_sku_makes_no_request(self, config):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        uploader = _uploader(config, handler)
        result = await uploader.upload(b"x", "not-a-sku", CREDS, name="a")
        assert not result.success
        assert seen == []
        await uploader.close()

    async def test_protocol_error_is_reported_not_raised(self, config):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.RemoteProtocolError("peer closed connection", request=request)

        uploader = _uploader(config, handler)
        result = await uploader.upload(b"x", "1", CREDS, name="a")
        assert not result.success
        assert "peer closed connection" in result.message
        await uploader.close()
