"""imgseq-pdf: Fetch a numbered sequence of remote images into one PDF."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from .assembler import ImageFolder, PdfDocument, encode_png
from .collector import Collector
from .config import DEFAULT_OUTPUT_NAME, PipelineConfig
from .errors import (
    BuilderError,
    ChannelSealedError,
    ConfigError,
    DecodeError,
    EncodeError,
    FetchError,
    ImgSeqError,
    NetworkError,
)
from .fetcher import Fetcher, HttpFetcher, decode_image, normalize_bitmap
from .pool import Channel, FetchResult, run_pool

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "BuilderError",
    "Channel",
    "ChannelSealedError",
    "Collector",
    "ConfigError",
    "DecodeError",
    "EncodeError",
    "FetchError",
    "FetchResult",
    "Fetcher",
    "HttpFetcher",
    "ImageFolder",
    "ImgSeqError",
    "NetworkError",
    "PdfDocument",
    "PipelineConfig",
    "PipelineResult",
    "build_document",
    "decode_image",
    "encode_png",
    "fetch_all",
    "normalize_bitmap",
    "run_pool",
]

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Manifest of one pipeline run."""

    requested: int
    pages: list[int]
    failures: dict[int, FetchError] = field(default_factory=dict)
    page_errors: dict[int, ImgSeqError] = field(default_factory=dict)
    output_path: Path | None = None
    total_bytes: int = 0
    write_error: BuilderError | None = None

    @property
    def skipped(self) -> list[int]:
        """Identifiers with no page, in ascending order."""
        return sorted({*self.failures, *self.page_errors})


def _resolve_pdf_path(*, output: Path | str | None) -> Path:
    """Resolve the output PDF file path.

    Rules:
        - ``None`` → ``{cwd}/final_output.pdf``
        - Ends in ``.pdf`` → treated as literal file path
        - Otherwise → treated as directory: ``{path}/final_output.pdf``
    """
    if output is None:
        return Path(DEFAULT_OUTPUT_NAME).resolve()

    output = Path(output)
    if output.suffix.lower() == ".pdf":
        return output.resolve()

    return (output / DEFAULT_OUTPUT_NAME).resolve()


async def fetch_all(
    fetch: Fetcher,
    config: PipelineConfig,
    *,
    on_result: Callable[[FetchResult], None] | None = None,
) -> Collector:
    """Run the worker pool and collector together for ``config``'s range.

    Returns the sealed :class:`Collector`, ready for :meth:`Collector.ordered`.
    """
    identifiers = config.identifiers
    results: Channel[FetchResult] = Channel(maxsize=len(identifiers))
    collector = Collector(config.first, config.last)

    collecting = asyncio.create_task(collector.collect(results))
    try:
        await run_pool(
            fetch,
            identifiers,
            results,
            worker_count=config.worker_count,
            on_result=on_result,
        )
    except BaseException:
        collecting.cancel()
        await asyncio.gather(collecting, return_exceptions=True)
        raise

    return await collecting


async def build_document(
    config: PipelineConfig,
    *,
    images_only: bool = False,
    fetch: Fetcher | None = None,
    on_result: Callable[[FetchResult], None] | None = None,
) -> PipelineResult:
    """Fetch every image in ``config``'s range and assemble the output.

    By default the images become pages of a single PDF.  Pass
    ``images_only=True`` to save individual PNG files instead.

    Args:
        config: Immutable pipeline configuration.
        images_only: Write ``page_NNN.png`` files into the output
            directory instead of a PDF.
        fetch: Override the HTTP fetcher (e.g. with an in-memory source).
        on_result: Callback invoked once per identifier as results arrive.

    Returns:
        A :class:`PipelineResult` listing the pages written and every
        identifier that was skipped, with its error.

    Example::

        import asyncio
        from imgseq_pdf import PipelineConfig, build_document

        result = asyncio.run(build_document(PipelineConfig(
            url_template="https://example.com/scans/{}.png",
            first=1,
            last=56,
        )))
        print(f"Saved {len(result.pages)} pages to {result.output_path}")
    """
    if fetch is None:
        async with httpx.AsyncClient(follow_redirects=True) as client:
            fetcher = HttpFetcher(client, config.url_for, timeout=config.timeout)
            collector = await fetch_all(fetcher, config, on_result=on_result)
    else:
        collector = await fetch_all(fetch, config, on_result=on_result)

    if images_only:
        output_path = Path(config.output or "pages").resolve()
        document: PdfDocument | ImageFolder = ImageFolder(output_path)
    else:
        output_path = _resolve_pdf_path(output=config.output)
        document = PdfDocument(scale=config.scale)

    result = PipelineResult(
        requested=len(collector),
        pages=[],
        failures=dict(collector.failures),
        output_path=output_path,
    )

    for identifier, bitmap in collector.ordered():
        try:
            document.append_page(bitmap, identifier)
        except (EncodeError, BuilderError) as exc:
            logger.error("Error adding image %d to PDF: %s", identifier, exc)
            result.page_errors[identifier] = exc
            continue
        result.pages.append(identifier)

    try:
        result.total_bytes = document.finalize(output_path)
    except BuilderError as exc:
        logger.error("Error saving PDF: %s", exc)
        result.write_error = exc

    return result
