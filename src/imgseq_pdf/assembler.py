"""Assemble normalized bitmaps into a single PDF file."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path

import img2pdf
import pikepdf
from PIL import Image

from .errors import BuilderError, EncodeError

logger = logging.getLogger(__name__)

PAGE_MARGIN_MM = 10.0
DEFAULT_SCALE = 4


def encode_png(bitmap: Image.Image, *, keep_alpha: bool = True) -> bytes:
    """Serialize a normalized bitmap as PNG.

    A fully opaque alpha channel is always dropped. With
    ``keep_alpha=False`` translucent pixels are composited onto white, the
    way they would appear on a blank page.

    Raises:
        EncodeError: If Pillow cannot encode the bitmap.
    """
    image = bitmap
    if image.mode == "RGBA":
        if image.getextrema()[3] == (255, 255):
            image = image.convert("RGB")
        elif not keep_alpha:
            background = Image.new("RGBA", image.size, (255, 255, 255, 255))
            image = Image.alpha_composite(background, image).convert("RGB")

    buffer = io.BytesIO()
    try:
        image.save(buffer, format="PNG")
    except (OSError, ValueError, SystemError) as exc:
        raise EncodeError(f"failed to encode image: {exc}") from exc
    return buffer.getvalue()


def page_layout(*, scale: float = DEFAULT_SCALE, margin_mm: float = PAGE_MARGIN_MM):
    """Build an img2pdf layout function for fixed-scale pages.

    Each pixel maps to ``1 / scale`` millimetres and the page is the image
    plus *margin_mm* on every side. img2pdf centres the image, so it lands
    exactly *margin_mm* from the page origin.
    """

    def layout_fun(imgwidthpx, imgheightpx, ndpi):
        imgwidthpdf = img2pdf.mm_to_pt(imgwidthpx / scale)
        imgheightpdf = img2pdf.mm_to_pt(imgheightpx / scale)
        border = img2pdf.mm_to_pt(margin_mm)
        return (
            imgwidthpdf + 2 * border,
            imgheightpdf + 2 * border,
            imgwidthpdf,
            imgheightpdf,
        )

    return layout_fun


@dataclass
class _Page:
    identifier: int
    png: bytes


class PdfDocument:
    """A PDF under construction, one page per appended bitmap."""

    def __init__(self, *, scale: float = DEFAULT_SCALE) -> None:
        if scale <= 0:
            raise ValueError(f"scale must be positive, got {scale}")
        self.scale = scale
        self._pages: list[_Page] = []

    @property
    def page_count(self) -> int:
        return len(self._pages)

    @property
    def page_ids(self) -> list[int]:
        return [page.identifier for page in self._pages]

    def append_page(self, bitmap: Image.Image, identifier: int) -> None:
        """Add *bitmap* as the next page.

        Raises:
            BuilderError: If the bitmap has no area.
            EncodeError: If the bitmap cannot be serialized.
        """
        width, height = bitmap.size
        if width <= 0 or height <= 0:
            raise BuilderError(
                f"image_{identifier}.png has no area ({width}x{height})"
            )
        png = encode_png(bitmap, keep_alpha=False)
        self._pages.append(_Page(identifier=identifier, png=png))

    def finalize(self, output_path: Path) -> int:
        """Write the document to *output_path*.

        Returns:
            Size of the written PDF in bytes. A document with no pages is
            still written, as a valid PDF with an empty page tree.

        Raises:
            BuilderError: If the PDF cannot be generated or written.
        """
        if self._pages:
            pdf_bytes = self._convert()
        else:
            logger.warning("No pages to write; saving an empty PDF to %s", output_path)
            pdf_bytes = _empty_pdf()

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(pdf_bytes)
        except OSError as exc:
            raise BuilderError(f"failed to save PDF to {output_path}: {exc}") from exc

        return len(pdf_bytes)

    def _convert(self) -> bytes:
        try:
            return img2pdf.convert(
                [page.png for page in self._pages],
                layout_fun=page_layout(scale=self.scale),
            )
        except (img2pdf.ImageOpenError, ValueError) as exc:
            raise BuilderError(f"failed to build PDF: {exc}") from exc


def _empty_pdf() -> bytes:
    buffer = io.BytesIO()
    try:
        with pikepdf.new() as pdf:
            pdf.save(buffer)
    except pikepdf.PdfError as exc:
        raise BuilderError(f"failed to build empty PDF: {exc}") from exc
    return buffer.getvalue()


class ImageFolder:
    """Writes each appended bitmap as ``page_{identifier:03d}.png``."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir
        self.paths: list[Path] = []
        self._total_bytes = 0

    @property
    def page_count(self) -> int:
        return len(self.paths)

    @property
    def page_ids(self) -> list[int]:
        return [int(path.stem.split("_")[1]) for path in self.paths]

    def append_page(self, bitmap: Image.Image, identifier: int) -> None:
        data = encode_png(bitmap)
        path = self.output_dir / f"page_{identifier:03d}.png"
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise BuilderError(f"failed to save {path}: {exc}") from exc
        self.paths.append(path)
        self._total_bytes += len(data)

    def finalize(self, output_path: Path | None = None) -> int:
        return self._total_bytes
