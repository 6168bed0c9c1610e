"""Collaborator protocols consumed by the pipeline.

The orchestrators only ever talk to these protocols, so any object with the
right methods -- the bundled HTTP adapters or a test double -- can be
plugged in.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from catalogstudio.models import Credentials, ProductInfo, UploadResult


@runtime_checkable
class ProductLookup(Protocol):
    """Resolves storefront pages to products and lists their images."""

    def resolve_product_id(self, page_url: str) -> str | None:
        """Extract the product id from *page_url*, ``None`` if there is none."""
        ...

    async def fetch_product(self, product_id: str) -> ProductInfo:
        """Fetch display name and image URLs.

        Raises :class:`~catalogstudio.errors.StudioLookupError`.
        """
        ...


@runtime_checkable
class ImageDescriber(Protocol):
    async def describe(self, buffer: bytes) -> str:
        """Return a short filename-safe name for the image.

        Raises :class:`~catalogstudio.errors.StudioDescriptionError`.
        """
        ...


@runtime_checkable
class ImageGenerator(Protocol):
    async def generate(
        self,
        prompt: str,
        reference: bytes | None = None,
        width: int | None = None,
        height: int | None = None,
    ) -> bytes:
        """Return encoded image bytes for *prompt*.

        Raises :class:`~catalogstudio.errors.StudioGenerationError`.
        """
        ...


@runtime_checkable
class CatalogUploader(Protocol):
    async def upload(
        self,
        buffer: bytes,
        sku_id: str,
        credentials: Credentials,
        *,
        name: str,
    ) -> UploadResult:
        """Attach *buffer* to SKU *sku_id*.

        API failures are reported in the result, not raised.
        """
        ...
