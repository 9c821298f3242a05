"""Reassemble unordered fetch results into ascending identifier order."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from PIL import Image

from .errors import FetchError
from .pool import Channel, FetchResult

logger = logging.getLogger(__name__)


class Collector:
    """Single consumer of fetch results for one identifier range.

    Results are written into a slot per identifier (``identifier - first``),
    so reordering needs no map and no sorting. The slots are read back
    exactly once through :meth:`ordered`.
    """

    def __init__(self, first: int, last: int) -> None:
        self.first = first
        self.last = last
        self._slots: list[Image.Image | None] = [None] * max(0, last - first + 1)
        self._seen: set[int] = set()
        self._sealed = False
        self._consumed = False
        self.failures: dict[int, FetchError] = {}

    def __len__(self) -> int:
        return max(0, self.last - self.first + 1)

    @property
    def received(self) -> int:
        return len(self._seen)

    def add(self, result: FetchResult) -> None:
        """Store one result.

        Raises:
            ValueError: If the identifier is outside the range or was
                already received.
        """
        identifier = result.identifier
        if not self.first <= identifier <= self.last:
            raise ValueError(
                f"identifier {identifier} outside range [{self.first}, {self.last}]"
            )
        if identifier in self._seen:
            raise ValueError(f"duplicate result for identifier {identifier}")
        self._seen.add(identifier)

        if result.error is not None:
            logger.warning("Error downloading image %d: %s", identifier, result.error)
            self.failures[identifier] = result.error
            return

        self._slots[identifier - self.first] = result.bitmap

    def seal(self) -> None:
        self._sealed = True

    async def collect(self, results: Channel[FetchResult]) -> Collector:
        """Drain *results* until the channel is sealed."""
        async for result in results:
            self.add(result)
        self.seal()
        return self

    @property
    def skipped(self) -> list[int]:
        """Failed identifiers in ascending order."""
        return sorted(self.failures)

    def ordered(self) -> Iterator[tuple[int, Image.Image]]:
        """Return a single-pass iterator of ``(identifier, bitmap)`` pairs.

        Identifiers whose fetch failed are left out entirely.

        Raises:
            RuntimeError: If the stream has not been sealed yet, or if the
                ordered sequence was already requested.
        """
        if not self._sealed:
            raise RuntimeError("results are still arriving; collect() has not finished")
        if self._consumed:
            raise RuntimeError("ordered sequence can only be read once")
        self._consumed = True

        slots, self._slots = self._slots, []
        return self._iter_slots(slots)

    def _iter_slots(self, slots: list[Image.Image | None]) -> Iterator[tuple[int, Image.Image]]:
        for offset, bitmap in enumerate(slots):
            if bitmap is None:
                continue
            slots[offset] = None
            yield self.first + offset, bitmap
