"""Secret and payload redaction for debug dumps.

:func:`redact` runs over every request/response dump before it is written:

* Values under credential-like keys (``X-VTEX-API-AppToken``,
  ``x-goog-api-key``, ``app_key`` ...) are masked, keeping only the last
  four characters of strings.
* Raw ``bytes`` become ``<binary:N_bytes>``.
* Long base64 runs (inline image parts sent to the AI service) become
  ``<base64:N_chars>``.
* Any explicitly supplied secret is scrubbed wherever it appears.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Iterable
from typing import Any

_SENSITIVE_KEY_PATTERNS: frozenset[str] = frozenset({
    "token",
    "secret",
    "password",
    "credential",
    "authorization",
    "cookie",
    "appkey",
    "app_key",
    "api_key",
    "api-key",
})

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/=\s]+$")

_BASE64_LENGTH_THRESHOLD = 256


def _mask(value: str) -> str:
    if len(value) >= 8:
        return f"<redacted:...{value[-4:]}>"
    return "<redacted>"


def _scrub(value: str, secrets: Iterable[str]) -> str:
    for secret in secrets:
        if secret and secret in value:
            value = value.replace(secret, "<redacted>")
    return value


def _redact_value(value: Any, secrets: tuple[str, ...]) -> Any:
    if isinstance(value, dict):
        return _redact_dict(value, secrets)
    if isinstance(value, (list, tuple)):
        return [_redact_value(item, secrets) for item in value]
    if isinstance(value, (bytes, bytearray)):
        return f"<binary:{len(value)}_bytes>"
    if isinstance(value, str):
        if len(value) >= _BASE64_LENGTH_THRESHOLD and _BASE64_RE.match(value):
            return f"<base64:{len(value)}_chars>"
        return _scrub(value, secrets)
    return value


def _redact_dict(d: dict, secrets: tuple[str, ...]) -> dict:
    result: dict = {}
    for key, value in d.items():
        normalized = key.lower().replace("x-vtex-api-", "") if isinstance(key, str) else ""
        if any(pat in normalized for pat in _SENSITIVE_KEY_PATTERNS):
            result[key] = _mask(value) if isinstance(value, str) else "<redacted>"
        else:
            result[key] = _redact_value(value, secrets)
    return result


def redact(payload: dict, secrets: Iterable[str] = ()) -> dict:
    """Return a redacted deep copy of *payload*; the input is never mutated.

    >>> redact({"X-VTEX-API-AppToken": "abcdefgh1234"})
    {'X-VTEX-API-AppToken': '<redacted:...1234>'}
    """
    return _redact_dict(copy.deepcopy(payload), tuple(secrets))
