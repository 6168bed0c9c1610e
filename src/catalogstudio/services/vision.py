"""AI description and image generation over the ``generateContent`` REST API.

Images travel as base64 ``inlineData`` parts in both directions.  The
describe call asks for a short hyphenated name and slugs whatever comes
back; the generate call asks for an image-only response and returns the
first image part's bytes.
"""

from __future__ import annotations

import base64
import binascii
import math
import unicodedata
from typing import Any

from catalogstudio.config import StudioConfig
from catalogstudio.errors import (
    StudioConfigurationError,
    StudioDescriptionError,
    StudioError,
    StudioGenerationError,
)
from catalogstudio.http import AsyncHttpTransport
from catalogstudio.observability import get_logger
from catalogstudio.utils.naming import slugify

log = get_logger("catalogstudio.vision")

DESCRIBE_PROMPT = (
    "Genera un nombre de archivo corto y descriptivo para esta imagen de producto, "
    "optimizado para SEO. Usa entre 3 y 6 palabras en español, en minúsculas, "
    "separadas por guiones, sin extensión. Responde solo con el nombre."
)

REFERENCE_PREAMBLE = (
    "Usa la imagen adjunta como referencia del producto y conserva su forma y "
    "proporciones. Fondo blanco de catálogo. "
)

MAX_NAME_LENGTH = 60

SUPPORTED_ASPECT_RATIOS: tuple[str, ...] = (
    "1:1", "2:3", "3:2", "3:4", "4:3", "4:5", "5:4", "9:16", "16:9", "21:9",
)


def nearest_aspect_ratio(width: int | None, height: int | None) -> str:
    """Closest supported ``"W:H"`` ratio, compared on a log scale."""
    if not width or not height:
        return "1:1"
    target = math.log(width / height)

    def _distance(ratio: str) -> float:
        w, h = ratio.split(":")
        return abs(math.log(int(w) / int(h)) - target)

    return min(SUPPORTED_ASPECT_RATIOS, key=_distance)


def clean_name(raw: str) -> str:
    """Fold accents, slug and truncate a model answer into a name stem."""
    lines = raw.strip().splitlines()
    folded = unicodedata.normalize("NFKD", lines[0] if lines else "")
    ascii_text = "".join(ch for ch in folded if not unicodedata.combining(ch)).lower()
    name = slugify(ascii_text.removesuffix(".jpg").removesuffix(".jpeg"))
    return name[:MAX_NAME_LENGTH].rstrip("-")


def _inline_part(buffer: bytes, mime_type: str = "image/jpeg") -> dict[str, Any]:
    return {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(buffer).decode("ascii")}}


def _candidate_parts(response: Any) -> list[dict[str, Any]]:
    parts: list[dict[str, Any]] = []
    for candidate in (response or {}).get("candidates") or []:
        parts.extend((candidate.get("content") or {}).get("parts") or [])
    return parts


def _finish_reason(response: Any) -> str | None:
    candidates = (response or {}).get("candidates") or []
    return candidates[0].get("finishReason") if candidates else None


class GeminiVisionClient:
    """Implements both :class:`~catalogstudio.services.base.ImageDescriber`
    and :class:`~catalogstudio.services.base.ImageGenerator`."""

    def __init__(self, config: StudioConfig, transport: AsyncHttpTransport | None = None) -> None:
        self._config = config
        self._transport = transport or AsyncHttpTransport(
            config,
            base_url=config.ai_base_url,
            headers={"Content-Type": "application/json"},
            secrets=(config.ai_api_key,),
        )

    def _require_key(self) -> None:
        if not self._config.ai_api_key:
            raise StudioConfigurationError(
                message="The AI service API key is not configured",
                context={"setting": "ai_api_key"},
            )

    async def _generate_content(self, model: str, body: dict[str, Any]) -> Any:
        return await self._transport.request_json(
            "POST",
            f"/models/{model}:generateContent",
            json=body,
            headers={"x-goog-api-key": self._config.ai_api_key},
        )

    async def describe(self, buffer: bytes) -> str:
        self._require_key()
        model = self._config.ai_describe_model
        body = {"contents": [{"parts": [_inline_part(buffer), {"text": DESCRIBE_PROMPT}]}]}
        try:
            response = await self._generate_content(model, body)
        except StudioError as exc:
            raise StudioDescriptionError(
                message=f"Image description failed: {exc.message}",
                context={"model": model},
                cause=exc,
            ) from exc

        text = "".join(p.get("text", "") for p in _candidate_parts(response))
        name = clean_name(text)
        if not name:
            raise StudioDescriptionError(
                message="The AI service returned no usable name",
                context={"model": model, "finish_reason": _finish_reason(response)},
            )
        return name

    async def generate(
        self,
        prompt: str,
        reference: bytes | None = None,
        width: int | None = None,
        height: int | None = None,
    ) -> bytes:
        self._require_key()
        model = self._config.ai_generate_model
        parts: list[dict[str, Any]] = []
        if reference is not None:
            parts.append(_inline_part(reference))
            parts.append({"text": REFERENCE_PREAMBLE + prompt})
        else:
            parts.append({"text": prompt})
        body = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "imageConfig": {"aspectRatio": nearest_aspect_ratio(width, height)},
            },
        }
        try:
            response = await self._generate_content(model, body)
        except StudioError as exc:
            raise StudioGenerationError(
                message=f"Image generation failed: {exc.message}",
                context={"model": model},
                cause=exc,
            ) from exc

        for part in _candidate_parts(response):
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                try:
                    return base64.b64decode(inline["data"], validate=True)
                except (binascii.Error, ValueError) as exc:
                    raise StudioGenerationError(
                        message="The AI service returned a corrupt image",
                        context={"model": model},
                        cause=exc,
                    ) from exc

        log.warning(
            "generation returned no image",
            extra={"extra_fields": {"op": "generate", "model": model,
                                    "finish_reason": _finish_reason(response)}},
        )
        raise StudioGenerationError(
            message="The AI service did not return an image",
            context={"model": model, "finish_reason": _finish_reason(response)},
        )

    async def close(self) -> None:
        await self._transport.close()
