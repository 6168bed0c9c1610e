"""Async HTTP transport shared by every remote adapter.

Request lifecycle:

1. Send the request through a pooled ``httpx.AsyncClient``.
2. On ``2xx`` -- return the response.
3. On ``429`` / ``408`` / ``5xx`` / network error -- back off and retry.
4. On other ``4xx`` -- raise a typed error immediately.
5. When attempts run out -- raise :class:`StudioRetryExhaustedError` or
   :class:`StudioNetworkError`.
"""

from __future__ import annotations

import asyncio
import json as _json
import sys
import time
from collections.abc import Iterable
from typing import Any

import httpx

from catalogstudio.config import StudioConfig
from catalogstudio.errors import (
    StudioAuthError,
    StudioNetworkError,
    StudioNotFoundError,
    StudioRequestError,
    StudioRetryExhaustedError,
)
from catalogstudio.observability import NoopMetricsHook, get_logger
from catalogstudio.utils.redact import redact

from .retries import RETRYABLE_STATUSES, compute_backoff, should_retry

log = get_logger("catalogstudio.http")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except (ValueError, TypeError):
        return None


def _error_detail(response: httpx.Response) -> tuple[str, Any]:
    """Best-effort human message and parsed body of an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:500], None
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and "message" in err:
            return str(err["message"]), body
        for key in ("message", "Message", "error"):
            if isinstance(body.get(key), str):
                return body[key], body
    return response.text[:500], body


def _raise_for_status(response: httpx.Response, method: str, url: str) -> None:
    """Raise the typed error for a non-retryable 4xx response."""
    status = response.status_code
    detail, body = _error_detail(response)
    context = {"status_code": status, "url": url}

    if status in (401, 403):
        raise StudioAuthError(
            message=f"Not authorized for {method} {url}: {detail}",
            context=context,
        )
    if status == 404:
        raise StudioNotFoundError(
            message=f"Not found: {method} {url}",
            context=context,
        )
    raise StudioRequestError(
        message=f"Request rejected ({status}) on {method} {url}: {detail}",
        context={**context, "body": body},
    )


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

class AsyncHttpTransport:
    """Async HTTP transport with retry, typed errors and metrics.

    Parameters
    ----------
    config:
        Session configuration (timeouts, retry policy, proxy, metrics).
    base_url:
        Optional root prepended to relative request paths.
    headers:
        Headers sent with every request.
    secrets:
        Strings scrubbed from debug dumps in addition to the key-based rules
        of :func:`~catalogstudio.utils.redact.redact`.
    client:
        Pre-built ``httpx.AsyncClient``; the transport then does not own it.
    """

    def __init__(
        self,
        config: StudioConfig,
        *,
        base_url: str = "",
        headers: dict[str, str] | None = None,
        secrets: Iterable[str] = (),
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._metrics = config.metrics if config.metrics is not None else NoopMetricsHook()
        self._secrets = tuple(s for s in secrets if s)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers=headers or {},
            timeout=httpx.Timeout(config.timeout_seconds),
            proxy=config.http_proxy,
            follow_redirects=True,
        )

    # -- public API --------------------------------------------------------

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Execute *method* *url* with retries and return the 2xx response."""
        max_attempts = self._config.retry_max_attempts
        last_status: int | None = None

        for attempt in range(max_attempts):
            t0 = time.monotonic()
            try:
                response = await self._client.request(method, url, **kwargs)
            except (httpx.TimeoutException, httpx.NetworkError) as exc:
                delay = self._on_network_error(method, url, exc, attempt)
                await asyncio.sleep(delay)
                continue
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                self._metrics.increment(
                    "catalogstudio.requests_total", tags={"method": method, "status": "error"},
                )
                raise StudioRequestError(
                    message=f"Request failed for {method} {url}: {exc}",
                    context={"url": url, "attempt": attempt + 1, "error_type": type(exc).__name__},
                    cause=exc,
                ) from exc
            elapsed_ms = (time.monotonic() - t0) * 1000

            last_status = response.status_code
            tags = {"method": method, "status": str(response.status_code)}
            self._metrics.increment("catalogstudio.requests_total", tags=tags)
            self._metrics.timing("catalogstudio.request_duration_ms", elapsed_ms, tags=tags)
            self._dump(method, url, kwargs, response)

            if 200 <= response.status_code < 300:
                return response

            if response.status_code not in RETRYABLE_STATUSES:
                _raise_for_status(response, method, url)

            if not should_retry(response.status_code, None, attempt, max_attempts):
                break

            delay = compute_backoff(
                attempt,
                base=self._config.retry_base_delay,
                maximum=self._config.retry_max_delay,
                jitter=self._config.retry_jitter,
                retry_after=_parse_retry_after(response),
            )
            self._metrics.increment(
                "catalogstudio.retries_total",
                tags={"method": method, "reason": str(response.status_code)},
            )
            log.warning(
                "Retryable response",
                extra={"extra_fields": {"op": "request", "method": method, "url": url,
                                        "status_code": response.status_code,
                                        "attempt": attempt + 1, "delay": round(delay, 3)}},
            )
            await asyncio.sleep(delay)

        raise StudioRetryExhaustedError(
            message=(
                f"All {max_attempts} attempts exhausted for {method} {url} "
                f"(last status: {last_status})"
            ),
            context={"attempts": max_attempts, "last_status_code": last_status},
        )

    async def request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        """Like :meth:`request` but return the decoded JSON body (``{}`` if empty)."""
        response = await self.request(method, url, **kwargs)
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise StudioRequestError(
                message=f"Invalid JSON from {method} {url}",
                context={"status_code": response.status_code, "url": url},
                cause=exc,
            ) from exc

    async def get_bytes(self, url: str, **kwargs: Any) -> bytes:
        response = await self.request("GET", url, **kwargs)
        return response.content

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> AsyncHttpTransport:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # -- internals ---------------------------------------------------------

    def _on_network_error(self, method: str, url: str, exc: Exception, attempt: int) -> float:
        """Return the backoff delay, or raise once attempts are exhausted."""
        self._metrics.increment(
            "catalogstudio.requests_total", tags={"method": method, "status": "error"},
        )
        log.warning(
            "Request network error",
            extra={"extra_fields": {"op": "request", "method": method, "url": url,
                                    "attempt": attempt + 1, "error": str(exc)}},
        )
        if should_retry(None, exc, attempt, self._config.retry_max_attempts):
            self._metrics.increment(
                "catalogstudio.retries_total", tags={"method": method, "reason": "network_error"},
            )
            return compute_backoff(
                attempt,
                base=self._config.retry_base_delay,
                maximum=self._config.retry_max_delay,
                jitter=self._config.retry_jitter,
            )
        raise StudioNetworkError(
            message=f"Network error on {method} {url}: {exc}",
            context={"url": url, "attempt": attempt + 1},
            cause=exc,
        ) from exc

    def _dump(self, method: str, url: str, kwargs: dict[str, Any], response: httpx.Response) -> None:
        if not self._config.debug_dump_payload:
            return
        dump: dict[str, Any] = {
            "method": method,
            "url": url,
            "request_headers": dict(self._client.headers) | dict(kwargs.get("headers") or {}),
            "response_status": response.status_code,
        }
        if kwargs.get("json") is not None:
            dump["request_body"] = kwargs["json"]
        content_type = response.headers.get("content-type", "")
        if "json" in content_type:
            try:
                dump["response_body"] = response.json()
            except ValueError:
                dump["response_body"] = response.text[:1000]
        else:
            dump["response_body"] = f"<{len(response.content)}_bytes {content_type}>"
        print(_json.dumps(redact(dump, self._secrets), indent=2, default=str), file=sys.stderr)
