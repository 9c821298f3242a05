"""Unit tests for ordered reassembly — no network required."""

from __future__ import annotations

import random

import pytest
from PIL import Image

from imgseq_pdf.collector import Collector
from imgseq_pdf.errors import DecodeError, NetworkError
from imgseq_pdf.pool import Channel, FetchResult


def _ok(identifier: int) -> FetchResult:
    return FetchResult(
        identifier=identifier,
        bitmap=Image.new("RGBA", (1, 1), (identifier, identifier, identifier, 255)),
    )


def _failed(identifier: int) -> FetchResult:
    return FetchResult(identifier=identifier, error=NetworkError(f"HTTP 404 for {identifier}"))


def _ordered_ids(results: list[FetchResult], *, first: int, last: int) -> list[tuple[int, bytes]]:
    collector = Collector(first, last)
    for result in results:
        collector.add(result)
    collector.seal()
    return [(i, bitmap.tobytes()) for i, bitmap in collector.ordered()]


class TestCollector:
    def test_ascending_and_skips_failures(self):
        results = [_ok(3), _failed(2), _ok(1), _ok(5), _failed(4)]
        ordered = _ordered_ids(results, first=1, last=5)
        assert [i for i, _ in ordered] == [1, 3, 5]

    def test_arrival_order_does_not_matter(self):
        results = [_ok(i) if i % 3 else _failed(i) for i in range(10, 40)]
        expected = _ordered_ids(results, first=10, last=39)

        shuffled = list(results)
        random.Random(42).shuffle(shuffled)

        assert _ordered_ids(list(reversed(results)), first=10, last=39) == expected
        assert _ordered_ids(shuffled, first=10, last=39) == expected
        assert [i for i, _ in expected] == [i for i in range(10, 40) if i % 3]

    def test_failures_manifest(self):
        collector = Collector(1, 4)
        collector.add(_failed(4))
        collector.add(_ok(1))
        collector.add(FetchResult(identifier=2, error=DecodeError("not an image")))
        assert collector.skipped == [2, 4]
        assert isinstance(collector.failures[2], DecodeError)
        assert collector.received == 3

    def test_ordered_before_seal_raises(self):
        collector = Collector(1, 2)
        collector.add(_ok(1))
        with pytest.raises(RuntimeError, match="still arriving"):
            collector.ordered()

    def test_ordered_is_single_use(self):
        collector = Collector(1, 1)
        collector.add(_ok(1))
        collector.seal()
        assert len(list(collector.ordered())) == 1
        with pytest.raises(RuntimeError, match="only be read once"):
            collector.ordered()

    def test_duplicate_identifier_raises(self):
        collector = Collector(1, 3)
        collector.add(_ok(2))
        with pytest.raises(ValueError, match="duplicate"):
            collector.add(_failed(2))

    def test_out_of_range_identifier_raises(self):
        collector = Collector(1, 3)
        with pytest.raises(ValueError, match="outside range"):
            collector.add(_ok(4))

    def test_empty_range(self):
        collector = Collector(5, 1)
        assert len(collector) == 0
        collector.seal()
        assert list(collector.ordered()) == []

    def test_logs_failures(self, caplog: pytest.LogCaptureFixture):
        collector = Collector(1, 1)
        with caplog.at_level("WARNING", logger="imgseq_pdf.collector"):
            collector.add(_failed(1))
        assert "Error downloading image 1" in caplog.text


class TestCollect:
    @pytest.mark.asyncio
    async def test_drains_until_sealed(self):
        channel: Channel[FetchResult] = Channel()
        for result in (_ok(2), _failed(1), _ok(3)):
            await channel.publish(result)
        await channel.seal()

        collector = await Collector(1, 3).collect(channel)

        assert [i for i, _ in collector.ordered()] == [2, 3]
        assert collector.skipped == [1]
