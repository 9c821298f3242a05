"""Immutable pipeline configuration."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .assembler import DEFAULT_SCALE
from .errors import ConfigError

_DEFAULT_WORKER_COUNT = 10
_DEFAULT_TIMEOUT = 30.0
DEFAULT_OUTPUT_NAME = "final_output.pdf"


@dataclass(frozen=True)
class PipelineConfig:
    """Everything the pipeline needs to run once.

    ``url_template`` is formatted with :meth:`str.format` and the identifier
    as its only positional argument, so ``"https://host/{}.png"`` and
    ``"https://host/page-{:03d}.jpg"`` are both valid.
    """

    url_template: str
    first: int
    last: int
    worker_count: int = _DEFAULT_WORKER_COUNT
    output: Path | str | None = None
    timeout: float = _DEFAULT_TIMEOUT
    scale: float = DEFAULT_SCALE

    def __post_init__(self) -> None:
        if self.worker_count < 1:
            raise ConfigError(f"worker_count must be >= 1, got {self.worker_count}")
        if self.scale <= 0:
            raise ConfigError(f"scale must be positive, got {self.scale}")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        try:
            self.url_template.format(self.first)
        except (IndexError, KeyError, ValueError) as exc:
            raise ConfigError(
                f"Invalid URL template {self.url_template!r}: {exc}\n"
                "Expected exactly one positional slot, e.g. https://host/{}.png"
            ) from exc
        if "{" not in self.url_template:
            raise ConfigError(
                f"URL template {self.url_template!r} has no slot for the identifier"
            )

    @property
    def identifiers(self) -> range:
        """The inclusive identifier range (empty when ``first > last``)."""
        return range(self.first, self.last + 1)

    def url_for(self, identifier: int) -> str:
        return self.url_template.format(identifier)
