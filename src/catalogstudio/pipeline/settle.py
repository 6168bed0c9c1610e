"""Settle-all fan-out/fan-in combinator.

Launch every task, wait for every one of them to finish, then sort the
outcomes into successes and failures.  A failure of one task never cancels
or hides its siblings; only the caller decides whether too few successes
make the whole batch a failure (see :func:`require_successes`).
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

from catalogstudio.errors import StudioError

T = TypeVar("T")
K = TypeVar("K")


@dataclass(frozen=True)
class Settled(Generic[K, T]):
    """Outcome of one task: exactly one of ``value``/``error`` is meaningful."""

    key: K
    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def settle_all(
    items: Iterable[K],
    worker: Callable[[K], Awaitable[T]],
    *,
    limit: int | None = None,
    catch: tuple[type[Exception], ...] = (StudioError,),
) -> list[Settled[K, T]]:
    """Run ``worker(item)`` for every item concurrently and collect outcomes.

    Parameters
    ----------
    items:
        Inputs; outcomes come back in the same order.
    worker:
        Coroutine function applied to each item.
    limit:
        Maximum number of workers in flight, ``None`` for unbounded.
    catch:
        Exception types turned into failed outcomes.  Anything else is a
        bug and propagates once every task has settled.
    """
    semaphore = asyncio.Semaphore(limit) if limit else None

    async def _run(item: K) -> Settled[K, T]:
        try:
            if semaphore is None:
                return Settled(key=item, value=await worker(item))
            async with semaphore:
                return Settled(key=item, value=await worker(item))
        except catch as exc:
            return Settled(key=item, error=exc)

    outcomes = await asyncio.gather(*(_run(item) for item in items), return_exceptions=True)
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome
    return list(outcomes)


def successes(outcomes: Sequence[Settled[K, T]]) -> list[Settled[K, T]]:
    return [o for o in outcomes if o.ok]


def require_successes(
    outcomes: Sequence[Settled[K, T]],
    min_successes: int,
    error: Callable[[], Exception],
) -> list[Settled[K, T]]:
    """Return the successful outcomes, or raise ``error()`` if too few."""
    survivors = successes(outcomes)
    if len(survivors) < min_successes:
        raise error()
    return survivors
