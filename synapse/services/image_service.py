"""
synapse.services.image_service — Image Uploads as Data URLs
===========================================================

There is no object storage behind the site yet.  Uploaded images are
shrunk to fit inside ``max_dimension`` × ``max_dimension``, re-encoded as
WebP and returned as a ``data:`` URL that is stored directly on the
competition / sponsor / day-pass document.  GIFs are passed through
untouched so animations survive.

Swapping in real storage only means changing :func:`upload_image` to
return a URL; callers never look inside the string.
"""

from __future__ import annotations

import asyncio
import base64
import io
import logging
from pathlib import Path

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 25 * 1024 * 1024  # 25 MB
ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}
ALLOWED_MIME_TYPES = {
    "image/png",
    "image/jpeg",
    "image/gif",
    "image/webp",
}

DEFAULT_MAX_DIMENSION = 800
DEFAULT_QUALITY = 75


def validate_upload(filename: str, content: bytes, content_type: str | None = None) -> None:
    """Raise ``ValueError`` if the file may not be uploaded."""
    if len(content) > MAX_FILE_SIZE:
        raise ValueError(
            f"File too large: {len(content)} bytes (max {MAX_FILE_SIZE // 1024 // 1024}MB)"
        )

    ext = Path(filename).suffix.lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise ValueError(
            f"File type not allowed: {ext!r}. "
            f"Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    if content_type and content_type not in ALLOWED_MIME_TYPES:
        raise ValueError(
            f"MIME type not allowed: {content_type!r}. "
            f"Allowed: {', '.join(sorted(ALLOWED_MIME_TYPES))}"
        )


def to_data_url(content: bytes, mime: str) -> str:
    return f"data:{mime};base64,{base64.b64encode(content).decode('ascii')}"


def compress_image(
    content: bytes,
    content_type: str | None = None,
    *,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    quality: int = DEFAULT_QUALITY,
) -> str:
    """Resize and re-encode *content*, returning a data URL.

    Aspect ratio is preserved and images already within bounds are not
    enlarged.  Raises ``ValueError`` when the bytes are not an
    image Pillow will decode (unreadable, or over its pixel limit) and when a
    file sent as ``image/gif`` is not one.
    """
    try:
        with Image.open(io.BytesIO(content)) as img:
            img.load()
            if img.format == "GIF":
                return to_data_url(content, "image/gif")
            if content_type == "image/gif":
                raise ValueError("File content is not a GIF image")
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA" if "A" in img.getbands() or img.mode == "P" else "RGB")
            img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)
            buf = io.BytesIO()
            img.save(buf, format="WEBP", quality=quality)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ValueError("Failed to process image") from exc
    return to_data_url(buf.getvalue(), "image/webp")


async def upload_image(
    filename: str,
    content: bytes,
    content_type: str | None = None,
    *,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    quality: int = DEFAULT_QUALITY,
) -> str:
    """Validate and compress an upload.  Raises ``ValueError`` on rejection."""
    validate_upload(filename, content, content_type)
    # Pillow work is CPU-bound; keep it off the event loop
    return await asyncio.to_thread(
        compress_image, content, content_type,
        max_dimension=max_dimension, quality=quality,
    )


async def upload_images(
    files: list[tuple[str, bytes, str | None]],
    *,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    quality: int = DEFAULT_QUALITY,
) -> dict:
    """Process several ``(filename, content, content_type)`` uploads.

    One bad file does not stop the rest; its error is reported alongside
    the URLs of the files that worked.
    """
    urls: list[str] = []
    errors: list[str] = []
    for filename, content, content_type in files:
        try:
            urls.append(await upload_image(
                filename, content, content_type,
                max_dimension=max_dimension, quality=quality,
            ))
        except ValueError as exc:
            logger.warning("Rejected upload %s: %s", filename, exc)
            errors.append(f"{filename}: {exc}")
    return {"success": not errors, "urls": urls, "errors": errors}
