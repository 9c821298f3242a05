"""Exception hierarchy for imgseq-pdf."""

from __future__ import annotations


class ImgSeqError(Exception):
    """Base exception for imgseq-pdf errors."""


class ConfigError(ImgSeqError):
    """Raised when the pipeline configuration is invalid."""


class FetchError(ImgSeqError):
    """Base class for failures while fetching a single image."""


class NetworkError(FetchError):
    """Raised when an image cannot be retrieved (transport or HTTP status)."""


class DecodeError(FetchError):
    """Raised when a payload is not a decodable image."""


class EncodeError(ImgSeqError):
    """Raised when a normalized bitmap cannot be serialized for a page."""


class BuilderError(ImgSeqError):
    """Raised when the document rejects a page or fails to finalize."""


class ChannelSealedError(ImgSeqError):
    """Raised when publishing to a channel that has already been sealed."""
