"""Catalog upload: attach a JPEG to a SKU through the private catalog API."""

from __future__ import annotations

import re

from catalogstudio.config import StudioConfig
from catalogstudio.errors import StudioError, StudioUploadError
from catalogstudio.http import AsyncHttpTransport
from catalogstudio.models import Credentials, UploadResult
from catalogstudio.observability import get_logger

log = get_logger("catalogstudio.upload")

SKU_FILE_PATH = "/api/catalog/pvt/stockkeepingunit/{sku_id}/file"

_HOST_LABEL_RE = re.compile(r"^[a-z0-9][a-z0-9-]*$", re.IGNORECASE)


def sku_file_url(credentials: Credentials, sku_id: str) -> str:
    """Endpoint for *sku_id* on the account described by *credentials*.

    Raises
    ------
    ValueError
        If the account or environment is not a plain host label, or the SKU
        id is not numeric.
    """
    for label in (credentials.account_name, credentials.environment):
        if not _HOST_LABEL_RE.match(label):
            raise ValueError(f"Invalid host label {label!r}")
    if not sku_id.isdigit():
        raise ValueError(f"Invalid SKU id {sku_id!r}")
    host = f"https://{credentials.account_name}.{credentials.environment}.com.br"
    return host + SKU_FILE_PATH.format(sku_id=sku_id)


class VtexCatalogUploader:
    """:class:`~catalogstudio.services.base.CatalogUploader` for the VTEX
    catalog API."""

    def __init__(self, config: StudioConfig, transport: AsyncHttpTransport | None = None) -> None:
        self._transport = transport or AsyncHttpTransport(config)

    async def upload(
        self,
        buffer: bytes,
        sku_id: str,
        credentials: Credentials,
        *,
        name: str,
    ) -> UploadResult:
        try:
            await self._post(buffer, sku_id, credentials, name)
        except StudioUploadError as exc:
            log.warning(
                "sku file upload failed",
                extra={"extra_fields": {"op": "upload", "sku_id": sku_id,
                                        "error_code": exc.code, **exc.context}},
            )
            return UploadResult(success=False, message=exc.message)
        return UploadResult(success=True)

    async def _post(self, buffer: bytes, sku_id: str, credentials: Credentials, name: str) -> None:
        try:
            url = sku_file_url(credentials, sku_id)
        except ValueError as exc:
            raise StudioUploadError(
                message=str(exc), context={"sku_id": sku_id}, cause=exc,
            ) from exc

        try:
            await self._transport.request(
                "POST",
                url,
                headers={
                    "X-VTEX-API-AppKey": credentials.app_key,
                    "X-VTEX-API-AppToken": credentials.app_token,
                    "Accept": "application/json",
                },
                data={"Name": name, "Label": name, "Text": name, "IsMain": "false"},
                files={"file": (f"{name}.jpg", buffer, "image/jpeg")},
            )
        except StudioError as exc:
            raise StudioUploadError(
                message=exc.message,
                context={"sku_id": sku_id, "status_code": exc.context.get("status_code")},
                cause=exc,
            ) from exc

    async def close(self) -> None:
        await self._transport.close()
