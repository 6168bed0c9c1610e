"""Storefront product lookup.

Product pages look like ``https://www.oechsle.pe/sofa-3-cuerpos-gris-20347821/p``
-- the trailing number of the slug is the SKU id.  The storefront's public
search API then returns the product with all of its SKUs and images.
"""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import parse_qs, urlparse

from catalogstudio.config import StudioConfig
from catalogstudio.errors import StudioError, StudioLookupError
from catalogstudio.http import AsyncHttpTransport
from catalogstudio.models import ProductInfo
from catalogstudio.observability import get_logger

log = get_logger("catalogstudio.catalog")

SEARCH_PATH = "/api/catalog_system/pub/products/search"

_ID_QUERY_KEYS = ("skuId", "idsku", "sku")
_SLUG_ID_RE = re.compile(r"-(\d+)/p/?$")
_LONG_NUMBER_RE = re.compile(r"\d{5,}")


def extract_product_id(page_url: str) -> str | None:
    """Pull the product id out of a storefront URL or a bare id.

    Tried in order: the whole input being numeric, an ``skuId``-style query
    parameter, the ``-<digits>/p`` slug suffix, and finally the last long
    number in the path.
    """
    text = page_url.strip()
    if not text:
        return None
    if text.isdigit():
        return text

    parsed = urlparse(text)
    query = parse_qs(parsed.query)
    for key in _ID_QUERY_KEYS:
        values = query.get(key)
        if values and values[0].isdigit():
            return values[0]

    match = _SLUG_ID_RE.search(parsed.path)
    if match:
        return match.group(1)

    numbers = _LONG_NUMBER_RE.findall(parsed.path)
    return numbers[-1] if numbers else None


def _pick_images(product: dict[str, Any], product_id: str) -> list[str]:
    items = product.get("items") or []
    chosen = next((i for i in items if str(i.get("itemId")) == product_id), None)
    if chosen is None and items:
        chosen = items[0]
    seen: set[str] = set()
    urls: list[str] = []
    for image in (chosen or {}).get("images") or []:
        url = image.get("imageUrl")
        if url and url not in seen:
            seen.add(url)
            urls.append(url)
    return urls


class VtexProductLookup:
    """:class:`~catalogstudio.services.base.ProductLookup` over the public
    storefront search API."""

    def __init__(self, config: StudioConfig, transport: AsyncHttpTransport | None = None) -> None:
        self._config = config
        self._transport = transport or AsyncHttpTransport(
            config,
            base_url=config.storefront_base_url,
            headers={"Accept": "application/json"},
        )

    def resolve_product_id(self, page_url: str) -> str | None:
        return extract_product_id(page_url)

    async def fetch_product(self, product_id: str) -> ProductInfo:
        products: Any = []
        for fq in (f"skuId:{product_id}", f"productId:{product_id}"):
            try:
                products = await self._transport.request_json(
                    "GET", SEARCH_PATH, params={"fq": fq},
                )
            except StudioError as exc:
                raise StudioLookupError(
                    message=f"Product lookup failed for {product_id}: {exc.message}",
                    context={"product_id": product_id},
                    cause=exc,
                ) from exc
            if isinstance(products, list) and products:
                break

        if not isinstance(products, list) or not products:
            raise StudioLookupError(
                message=f"Product {product_id} was not found",
                context={"product_id": product_id},
            )

        product = products[0]
        images = _pick_images(product, product_id)
        if not images:
            raise StudioLookupError(
                message=f"Product {product_id} has no images",
                context={"product_id": product_id},
            )

        log.info(
            "product fetched",
            extra={"extra_fields": {"op": "fetch_product", "product_id": product_id,
                                    "images": len(images)}},
        )
        return ProductInfo(
            product_id=product_id,
            display_name=str(product.get("productName") or product_id),
            image_references=images,
        )

    async def close(self) -> None:
        await self._transport.close()
