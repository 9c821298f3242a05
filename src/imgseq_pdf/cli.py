"""Command-line interface for imgseq-pdf."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TimeRemainingColumn,
)

from . import PipelineResult, build_document
from .config import PipelineConfig
from .errors import ImgSeqError
from .pool import FetchResult


def _format_size(num_bytes: int) -> str:
    """Format a byte count as a human-readable string."""
    value = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if abs(value) < 1024:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} TB"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="imgseq-pdf",
        description=(
            "Download a numbered sequence of images and assemble them, in"
            " order, into a single PDF (default) or individual PNG images."
        ),
    )
    parser.add_argument(
        "url_template",
        help=(
            "Image URL with one {} slot for the index"
            " (e.g. https://example.com/scans/{}.png or .../{:03d}.jpg)"
        ),
    )
    parser.add_argument(
        "--first",
        type=int,
        default=1,
        help="First image index, inclusive (default: 1)",
    )
    parser.add_argument(
        "--last",
        type=int,
        required=True,
        help="Last image index, inclusive",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=10,
        help="Number of concurrent downloads (default: 10)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Per-request timeout in seconds (default: 30)",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help=(
            "Output path. In PDF mode (default): a .pdf file path, a"
            " directory, or omit for final_output.pdf in CWD. In --images"
            " mode: output directory (default: ./pages)."
        ),
    )
    parser.add_argument(
        "--images",
        action="store_true",
        default=False,
        help="Save individual PNG images instead of a single PDF",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Show per-worker download messages",
    )
    return parser


def _configure_logging(*, console: Console, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _report_result(*, console: Console, result: FetchResult) -> None:
    """Print a progress line for a downloaded image.

    Failures are reported once, through the collector's log warning.
    """
    if result.ok:
        console.print(f"  [green]✓[/green] image {result.identifier}")


async def _build_with_progress(
    *,
    console: Console,
    config: PipelineConfig,
    images_only: bool,
) -> PipelineResult:
    """Run the pipeline with a rich progress bar."""
    progress = Progress(
        SpinnerColumn(),
        "[progress.description]{task.description}",
        BarColumn(),
        MofNCompleteColumn(),
        TimeRemainingColumn(),
        console=console,
    )

    def _on_result(result: FetchResult) -> None:
        _report_result(console=progress.console, result=result)
        progress.advance(task_id=task_id)

    with progress:
        task_id = progress.add_task(
            description="Downloading images",
            total=len(config.identifiers),
        )
        return await build_document(
            config,
            images_only=images_only,
            on_result=_on_result,
        )


async def _async_main(args: argparse.Namespace) -> None:
    console = Console()
    _configure_logging(console=console, verbose=args.verbose)
    start_time = time.monotonic()

    config = PipelineConfig(
        url_template=args.url_template,
        first=args.first,
        last=args.last,
        worker_count=args.workers,
        output=args.output,
        timeout=args.timeout,
    )
    requested = len(config.identifiers)
    console.print(
        f"Fetching [bold]{requested}[/bold] images"
        f" ({config.first}..{config.last}) with {config.worker_count} workers"
    )

    result = await _build_with_progress(
        console=console,
        config=config,
        images_only=args.images,
    )

    elapsed = time.monotonic() - start_time

    summary_lines = [
        f"[bold]Pages saved:[/bold] {len(result.pages)}/{requested}",
    ]
    if result.skipped:
        summary_lines.append(
            f"[bold red]Skipped:[/bold red] {len(result.skipped)}"
        )
        for identifier in result.skipped:
            error = result.failures.get(identifier) or result.page_errors.get(identifier)
            summary_lines.append(f"  [red]- {identifier}: {error}[/red]")
    label = "Total size" if args.images else "PDF size"
    summary_lines.append(f"[bold]{label}:[/bold] {_format_size(result.total_bytes)}")
    if result.write_error is not None:
        summary_lines.append(f"[bold red]Not saved:[/bold red] {result.write_error}")
    else:
        summary_lines.append(f"[bold]Output:[/bold] {result.output_path}")

    clean = not result.skipped and result.write_error is None
    console.print(Panel(
        "\n".join(summary_lines),
        title=f"[bold green]Done in {elapsed:.1f}s[/bold green]",
        border_style="green" if clean else "yellow",
    ))


def main() -> None:
    """Entry point for the ``imgseq-pdf`` CLI command."""
    console = Console(stderr=True)
    parser = _build_parser()
    args = parser.parse_args()

    try:
        asyncio.run(_async_main(args=args))
    except ImgSeqError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted.[/dim]")
        sys.exit(130)
