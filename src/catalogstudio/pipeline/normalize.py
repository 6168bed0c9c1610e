"""Normalization: any raw image input -> canonical JPEG plus dimensions.

Downstream code never branches on source format: remote images, local
files, edited buffers and AI output all come out of :class:`Normalizer` as a
:class:`~catalogstudio.models.NormalizedImage`.  Every failure is raised as
:class:`~catalogstudio.errors.StudioConversionError`.
"""

from __future__ import annotations

import asyncio
from io import BytesIO

from PIL import Image, ImageOps

from catalogstudio.config import StudioConfig
from catalogstudio.errors import StudioConversionError, StudioError
from catalogstudio.http import AsyncHttpTransport
from catalogstudio.models import LocalFile, NormalizedImage
from catalogstudio.observability import get_logger

log = get_logger("catalogstudio.normalize")

_BACKGROUND = (255, 255, 255)


def _has_alpha(image: Image.Image) -> bool:
    return image.mode in ("RGBA", "LA", "PA") or (
        image.mode == "P" and "transparency" in image.info
    )


def encode_jpeg(data: bytes, quality: int, src: str = "buffer") -> NormalizedImage:
    """Decode *data*, render it onto an RGB canvas and re-encode as JPEG.

    EXIF orientation is applied first; transparent pixels are composited on
    white.  Blocking -- call it through an executor from async code.
    """
    if not data:
        raise StudioConversionError(
            message=f"Empty image payload: {src}",
            context={"src": src, "reason": "empty"},
        )
    try:
        with Image.open(BytesIO(data)) as source:
            image = ImageOps.exif_transpose(source)
            if _has_alpha(image):
                rgba = image.convert("RGBA")
                canvas = Image.new("RGB", rgba.size, _BACKGROUND)
                canvas.paste(rgba, mask=rgba.getchannel("A"))
            else:
                canvas = image.convert("RGB")
            out = BytesIO()
            canvas.save(out, format="JPEG", quality=quality, optimize=True)
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise StudioConversionError(
            message=f"Could not decode image: {src}",
            context={"src": src, "reason": type(exc).__name__},
            cause=exc,
        ) from exc

    width, height = canvas.size
    return NormalizedImage(buffer=out.getvalue(), width=width, height=height)


class Normalizer:
    """Turn remote references, local files and raw buffers into JPEG.

    Parameters
    ----------
    config:
        Supplies ``jpeg_quality`` and ``max_image_bytes``.
    fetcher:
        Transport used to download remote references.  Only needed for
        :meth:`from_url`.
    """

    def __init__(self, config: StudioConfig, fetcher: AsyncHttpTransport | None = None) -> None:
        self._config = config
        self._fetcher = fetcher

    async def from_url(self, url: str) -> NormalizedImage:
        if self._fetcher is None:
            raise StudioConversionError(
                message="No fetcher configured for remote images",
                context={"src": url, "reason": "no_fetcher"},
            )
        try:
            data = await self._fetcher.get_bytes(url)
        except StudioError as exc:
            raise StudioConversionError(
                message=f"Could not fetch image: {url}",
                context={"src": url, "reason": exc.code},
                cause=exc,
            ) from exc
        return await self.from_bytes(data, src=url)

    async def from_file(self, file: LocalFile) -> NormalizedImage:
        return await self.from_bytes(file.data, src=file.name)

    async def from_bytes(self, data: bytes, src: str = "buffer") -> NormalizedImage:
        if len(data) > self._config.max_image_bytes:
            raise StudioConversionError(
                message=(
                    f"Image {src} is {len(data)} bytes, above the "
                    f"{self._config.max_image_bytes} byte limit"
                ),
                context={"src": src, "reason": "too_large", "size_bytes": len(data)},
            )
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None, encode_jpeg, data, self._config.jpeg_quality, src,
        )
        log.debug(
            "normalized image",
            extra={"extra_fields": {"op": "normalize", "src": src[:200],
                                    "width": result.width, "height": result.height,
                                    "bytes": len(result.buffer)}},
        )
        return result
