"""Single-image retrieval, decoding and pixel-format normalization."""

from __future__ import annotations

import io
import struct
from collections.abc import Awaitable, Callable

import httpx
from PIL import Image, UnidentifiedImageError

from .errors import DecodeError, NetworkError

NORMALIZED_MODE = "RGBA"

_SIXTEEN_BIT_MODES = frozenset({"I;16", "I;16B", "I;16L", "I;16N"})

# Raised by Pillow plugins on corrupt or truncated payloads.
_DECODE_ERRORS = (
    UnidentifiedImageError,
    Image.DecompressionBombError,
    OSError,
    SyntaxError,
    ValueError,
    EOFError,
    IndexError,
    struct.error,
)

Fetcher = Callable[[int], Awaitable[Image.Image]]


def _reduce_depth(image: Image.Image) -> Image.Image:
    """Scale integer samples wider than 8 bits down to 0..255.

    16-bit modes are divided by 256. Plain 32-bit ``"I"`` images wider than
    16 bits are scaled by their own maximum.
    """
    if image.mode in _SIXTEEN_BIT_MODES:
        return image.convert("I").point(lambda v: v * (1 / 256)).convert("L")
    if image.mode != "I":
        return image

    _, high = image.getextrema()
    if high <= 255:
        return image.convert("L")
    if high <= 0xFFFF:
        return image.point(lambda v: v * (1 / 256)).convert("L")
    return image.point(lambda v: v * (255 / high)).convert("L")


def normalize_bitmap(image: Image.Image) -> Image.Image:
    """Re-render *image* into a freshly allocated 8-bit RGBA raster.

    The copy is unconditional: even an image that is already RGBA is
    pasted onto a new canvas of the same size, so callers always get a
    bitmap they own with one known pixel layout.
    """
    source = _reduce_depth(image)
    if source.mode != NORMALIZED_MODE:
        source = source.convert(NORMALIZED_MODE)

    canvas = Image.new(NORMALIZED_MODE, source.size)
    canvas.paste(source, (0, 0))
    return canvas


def decode_image(payload: bytes) -> Image.Image:
    """Decode *payload*, sniffing the format from its content.

    Raises:
        DecodeError: If Pillow cannot identify or fully decode the payload.
    """
    try:
        image = Image.open(io.BytesIO(payload))
        image.load()
    except _DECODE_ERRORS as exc:
        raise DecodeError(f"failed to decode image: {exc}") from exc
    return image


class HttpFetcher:
    """Fetch one image per identifier over HTTP and normalize it.

    Instances are callables matching :data:`Fetcher`, so the pool can be
    driven by this class or by any in-memory stub with the same shape.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url_for: Callable[[int], str],
        *,
        timeout: float,
    ) -> None:
        self._client = client
        self._url_for = url_for
        self._timeout = timeout

    async def __call__(self, identifier: int) -> Image.Image:
        url = self._url_for(identifier)
        try:
            response = await self._client.get(url, timeout=self._timeout)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise NetworkError(f"failed to download image: {exc}") from exc

        image = decode_image(response.content)
        try:
            return normalize_bitmap(image)
        except _DECODE_ERRORS as exc:
            raise DecodeError(f"failed to normalize image: {exc}") from exc
