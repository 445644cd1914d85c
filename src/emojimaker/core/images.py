"""Image byte helpers built on Pillow."""

from __future__ import annotations

import io
import logging
from urllib.parse import quote

from PIL import Image, UnidentifiedImageError

from emojimaker.core.errors import UpstreamProviderFailure

logger = logging.getLogger(__name__)

PNG_CONTENT_TYPE = "image/png"


def ensure_png(data: bytes) -> bytes:
    """Return ``data`` as PNG bytes.

    PNG input is returned untouched.  Any other format Pillow can read is
    re-encoded, since uploads are always stored as ``image/png``.

    Raises:
        UpstreamProviderFailure: If ``data`` is empty or not an image.
    """
    if not data:
        raise UpstreamProviderFailure("Image provider returned an empty image")

    try:
        with Image.open(io.BytesIO(data)) as image:
            if image.format == "PNG":
                return data
            logger.info(f"Converting {image.format} output to PNG")
            if image.mode not in ("RGB", "RGBA", "L", "LA", "P"):
                image = image.convert("RGBA")
            buffer = io.BytesIO()
            image.save(buffer, format="PNG")
            return buffer.getvalue()
    except (UnidentifiedImageError, OSError) as e:
        raise UpstreamProviderFailure(f"Image provider returned data that is not an image: {e}") from e


def download_filename(prompt: str, ascii_only: bool = False) -> str:
    """Filename offered when downloading an emoji, e.g. ``emoji-a-happy-cat.png``.

    With ``ascii_only`` any non-ASCII character is dropped, which yields a
    name that is safe in a latin-1 HTTP header.
    """
    slug = "-".join(prompt.split())
    slug = "".join(
        ch for ch in slug if (ch.isalnum() or ch in "-_") and (ch.isascii() or not ascii_only)
    )
    return f"emoji-{slug or 'image'}.png"


def content_disposition(prompt: str) -> str:
    """``Content-Disposition`` value for downloading the emoji made from ``prompt``.

    ``filename`` always carries the ASCII name.  When the prompt has other
    characters the full name is added as an RFC 5987 ``filename*``.
    """
    fallback = download_filename(prompt, ascii_only=True)
    value = f'attachment; filename="{fallback}"'
    full_name = download_filename(prompt)
    if full_name != fallback:
        value += f"; filename*=UTF-8''{quote(full_name)}"
    return value
