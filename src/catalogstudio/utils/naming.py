"""Filename and suggested-name derivation.

All the places where a string becomes part of a filename go through here so
the rules stay in one spot.
"""

from __future__ import annotations

import re

AI_NAME_PREFIX = "ai-"
AI_NAME_PROMPT_CHARS = 20
EXPORT_EXTENSION = ".jpg"

_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")
_LOCAL_DISALLOWED = re.compile(r"[^a-zA-Z0-9-]")


def slugify(text: str) -> str:
    """Lower-case *text* and collapse every non ``[a-z0-9]`` run to ``-``."""
    return _NON_ALNUM_RUN.sub("-", text.lower()).strip("-")


def remote_name(product_id: str, index: int) -> str:
    """Name of the survivor at post-filter position *index* of a remote batch."""
    return product_id if index == 0 else f"{product_id}_{index}"


def local_name(filename: str) -> str:
    """Derive a suggested name from a local filename.

    The extension (text after the last ``.``) is dropped unless that dot
    is the first character, and every character outside
    ``[a-zA-Z0-9-]`` becomes ``-``.

    >>> local_name("Sofa Azul (1).PNG")
    'sofa-azul--1-'
    """
    dot = filename.rfind(".")
    stem = filename[:dot] if dot > 0 else filename
    return _LOCAL_DISALLOWED.sub("-", stem).lower()


def ai_name(prompt: str) -> str:
    """Suggested name for an AI-generated image.

    >>> ai_name("Sofá en color azul turquesa")
    'ai-sof-en-color-azul-t'
    """
    return AI_NAME_PREFIX + slugify(prompt[:AI_NAME_PROMPT_CHARS])


def export_filename(record_id: str, suggested_name: str | None) -> str:
    """Filename used for single downloads and zip entries."""
    if suggested_name:
        return f"{suggested_name}{EXPORT_EXTENSION}"
    return f"img-{record_id[:4]}{EXPORT_EXTENSION}"


def dedupe(name: str, taken: set[str]) -> str:
    """Return *name*, or *name* with a ``-N`` suffix if already in *taken*."""
    if name not in taken:
        return name
    stem, dot, ext = name.rpartition(".")
    if not dot:
        stem, ext = name, ""
    n = 2
    while True:
        candidate = f"{stem}-{n}.{ext}" if dot else f"{stem}-{n}"
        if candidate not in taken:
            return candidate
        n += 1
