"""Retry decision logic and exponential backoff computation.

Two pure functions used by :mod:`catalogstudio.http.transport`:

* :func:`should_retry` -- decide whether a failed request is retryable.
* :func:`compute_backoff` -- compute the delay before the next attempt.
"""

from __future__ import annotations

import random

import httpx

RETRYABLE_STATUSES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})

RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
)


def should_retry(
    status_code: int | None,
    exception: Exception | None,
    attempt: int,
    max_attempts: int,
) -> bool:
    """Decide whether a request should be retried.

    Parameters
    ----------
    status_code:
        Response status, or ``None`` when no response arrived.
    exception:
        The transport exception, or ``None`` when a response arrived.
    attempt:
        Current attempt number (0-indexed).
    max_attempts:
        Total attempts allowed, including the first.
    """
    if attempt + 1 >= max_attempts:
        return False
    if exception is not None:
        return isinstance(exception, RETRYABLE_EXCEPTIONS)
    if status_code is not None:
        return status_code in RETRYABLE_STATUSES
    return False


def compute_backoff(
    attempt: int,
    base: float = 0.5,
    maximum: float = 10.0,
    jitter: bool = True,
    retry_after: float | None = None,
) -> float:
    """Delay in seconds before the next attempt.

    A server-provided ``Retry-After`` wins; otherwise ``base * 2**attempt``
    capped at *maximum*.  With *jitter* the delay is scaled to 50-100 %.
    """
    if retry_after is not None:
        delay = min(retry_after, maximum) if maximum > 0 else retry_after
    else:
        delay = min(base * (2 ** attempt), maximum)

    if jitter:
        delay *= 0.5 + random.random() * 0.5

    return delay
