"""Bounded worker pool that fetches identifiers concurrently."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

from PIL import Image

from .errors import ChannelSealedError, FetchError
from .fetcher import Fetcher

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SEALED = object()


@dataclass(frozen=True)
class FetchResult:
    """Outcome of one fetch attempt, tagged with its identifier."""

    identifier: int
    bitmap: Image.Image | None = None
    error: FetchError | None = None

    def __post_init__(self) -> None:
        if (self.bitmap is None) == (self.error is None):
            raise ValueError("exactly one of bitmap or error must be set")

    @property
    def ok(self) -> bool:
        return self.error is None


class Channel(Generic[T]):
    """A bounded FIFO that can be sealed to signal end-of-stream.

    Any number of producers may :meth:`publish` and any number of
    consumers may iterate with ``async for``. Iteration stops once the seal
    marker is reached; the marker is put back so sibling consumers see it
    too.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._sealed = False

    @property
    def sealed(self) -> bool:
        return self._sealed

    async def publish(self, item: T) -> None:
        if self._sealed:
            raise ChannelSealedError("cannot publish to a sealed channel")
        await self._queue.put(item)

    async def seal(self) -> None:
        if self._sealed:
            return
        self._sealed = True
        await self._queue.put(_SEALED)

    def __aiter__(self) -> Channel[T]:
        return self

    async def __anext__(self) -> T:
        item = await self._queue.get()
        if item is _SEALED:
            # A slot was just freed, so this never blocks.
            self._queue.put_nowait(_SEALED)
            raise StopAsyncIteration
        return item  # type: ignore[return-value]


async def _worker(
    worker_id: int,
    fetch: Fetcher,
    jobs: Channel[int],
    results: Channel[FetchResult],
    on_result: Callable[[FetchResult], None] | None,
) -> None:
    async for identifier in jobs:
        logger.info("Worker %d: downloading image %d", worker_id, identifier)
        try:
            bitmap = await fetch(identifier)
        except FetchError as exc:
            result = FetchResult(identifier=identifier, error=exc)
        else:
            result = FetchResult(identifier=identifier, bitmap=bitmap)

        await results.publish(result)
        if on_result is not None:
            on_result(result)


async def run_pool(
    fetch: Fetcher,
    identifiers: Iterable[int],
    results: Channel[FetchResult],
    *,
    worker_count: int,
    on_result: Callable[[FetchResult], None] | None = None,
) -> None:
    """Fetch every identifier exactly once using *worker_count* workers.

    The work channel is loaded with all identifiers and sealed; *results*
    is sealed only after every worker has returned.

    Args:
        fetch: Coroutine function turning an identifier into a bitmap.
        identifiers: Identifiers to process, each at most once.
        results: Channel receiving one :class:`FetchResult` per identifier.
        worker_count: Number of concurrent workers.
        on_result: Optional callback invoked after each result is published.

    Raises:
        ValueError: If *worker_count* is less than 1.
    """
    if worker_count < 1:
        raise ValueError(f"worker_count must be >= 1, got {worker_count}")

    pending = list(identifiers)
    jobs: Channel[int] = Channel(maxsize=len(pending))

    workers = [
        asyncio.create_task(_worker(i, fetch, jobs, results, on_result))
        for i in range(1, worker_count + 1)
    ]
    try:
        for identifier in pending:
            await jobs.publish(identifier)
        await jobs.seal()

        await asyncio.gather(*workers)
    except BaseException:
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        raise

    await results.seal()
    logger.debug("All %d workers finished; result channel sealed", worker_count)
