"""Integration tests that download real images over the network.

These tests require network access. Run them with ``pytest -m integration``.
"""

from pathlib import Path

import pytest

from imgseq_pdf import PipelineConfig, build_document

pytestmark = pytest.mark.integration

PICSUM_TEMPLATE = "https://picsum.photos/id/{}/80/60"


class TestRealSource:
    @pytest.mark.asyncio
    async def test_builds_pdf_in_order(self, tmp_path: Path):
        config = PipelineConfig(
            url_template=PICSUM_TEMPLATE,
            first=10,
            last=14,
            worker_count=3,
            output=tmp_path / "picsum.pdf",
        )

        result = await build_document(config)

        assert result.pages == sorted(result.pages)
        assert set(result.pages) | set(result.skipped) == set(range(10, 15))
        assert result.write_error is None
        assert result.output_path.read_bytes()[:5] == b"%PDF-"
