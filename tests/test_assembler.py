"""Unit tests for page encoding and PDF assembly — no network required."""

from __future__ import annotations

import io
from pathlib import Path

import img2pdf
import pikepdf
import pytest
from PIL import Image

from imgseq_pdf.assembler import ImageFolder, PdfDocument, encode_png, page_layout
from imgseq_pdf.errors import BuilderError


def _bitmap(color=(255, 0, 0, 255), *, size=(100, 100)) -> Image.Image:
    return Image.new("RGBA", size, color)


class TestEncodePng:
    def test_opaque_alpha_dropped(self):
        data = encode_png(_bitmap())
        image = Image.open(io.BytesIO(data))
        assert image.format == "PNG"
        assert image.mode == "RGB"

    def test_translucent_alpha_kept(self):
        data = encode_png(_bitmap((0, 0, 255, 128)))
        assert Image.open(io.BytesIO(data)).mode == "RGBA"

    def test_translucent_flattened_onto_white(self):
        data = encode_png(_bitmap((0, 0, 0, 0)), keep_alpha=False)
        image = Image.open(io.BytesIO(data))
        assert image.mode == "RGB"
        assert image.getpixel((0, 0)) == (255, 255, 255)


class TestPageLayout:
    def test_quarter_scale_with_margin(self):
        layout = page_layout(scale=4, margin_mm=10)
        pagewidth, pageheight, imgwidth, imgheight = layout(400, 200, (96, 96))

        assert imgwidth == pytest.approx(img2pdf.mm_to_pt(100))
        assert imgheight == pytest.approx(img2pdf.mm_to_pt(50))
        # img2pdf centres the image, which puts it one margin from the origin.
        assert (pagewidth - imgwidth) / 2 == pytest.approx(img2pdf.mm_to_pt(10))
        assert (pageheight - imgheight) / 2 == pytest.approx(img2pdf.mm_to_pt(10))


class TestPdfDocument:
    def test_single_page(self, tmp_path: Path):
        doc = PdfDocument()
        doc.append_page(_bitmap(), identifier=1)
        out = tmp_path / "output.pdf"

        size = doc.finalize(out)

        assert out.exists()
        assert size > 0
        assert out.read_bytes()[:5] == b"%PDF-"

    def test_multiple_pages_keep_append_order(self, tmp_path: Path):
        doc = PdfDocument()
        for identifier in (3, 7, 9):
            doc.append_page(_bitmap((identifier * 20, 0, 0, 255)), identifier=identifier)
        out = tmp_path / "output.pdf"

        size = doc.finalize(out)

        assert doc.page_count == 3
        assert doc.page_ids == [3, 7, 9]
        assert size == out.stat().st_size

    def test_translucent_page(self, tmp_path: Path):
        doc = PdfDocument()
        doc.append_page(_bitmap((0, 255, 0, 100)), identifier=1)
        out = tmp_path / "output.pdf"

        assert doc.finalize(out) > 0

    def test_creates_parent_directories(self, tmp_path: Path):
        doc = PdfDocument()
        doc.append_page(_bitmap(), identifier=1)
        out = tmp_path / "nested" / "deep" / "output.pdf"

        doc.finalize(out)

        assert out.exists()

    def test_empty_document_has_zero_pages(self, tmp_path: Path):
        out = tmp_path / "output.pdf"

        size = PdfDocument().finalize(out)

        assert size == out.stat().st_size
        assert out.read_bytes()[:5] == b"%PDF-"
        with pikepdf.open(out) as pdf:
            assert len(pdf.pages) == 0

    def test_zero_area_page_rejected(self):
        doc = PdfDocument()
        with pytest.raises(BuilderError, match="no area"):
            doc.append_page(Image.new("RGBA", (0, 0)), identifier=1)
        assert doc.page_count == 0

    def test_unwritable_output_raises(self, tmp_path: Path):
        doc = PdfDocument()
        doc.append_page(_bitmap(), identifier=1)
        out = tmp_path / "taken.pdf"
        out.mkdir()

        with pytest.raises(BuilderError, match="failed to save PDF"):
            doc.finalize(out)

    def test_invalid_scale(self):
        with pytest.raises(ValueError, match="scale"):
            PdfDocument(scale=0)


class TestImageFolder:
    def test_writes_numbered_pngs(self, tmp_path: Path):
        folder = ImageFolder(tmp_path / "pages")
        folder.append_page(_bitmap(), identifier=2)
        folder.append_page(_bitmap((0, 0, 0, 10)), identifier=11)

        total = folder.finalize()

        assert [p.name for p in folder.paths] == ["page_002.png", "page_011.png"]
        assert folder.page_ids == [2, 11]
        assert total == sum(p.stat().st_size for p in folder.paths)
