import math
from collections.abc import Callable
from io import BytesIO
from pathlib import Path

import structlog
from PIL import Image

from up2b.schemas.descriptors import CompressedFormat

logger = structlog.get_logger()

# (data, max_bytes, target format) -> (data, file extension)
Compressor = Callable[[bytes, int, CompressedFormat], tuple[bytes, str]]

FORMAT_TO_MEDIA_TYPE = {
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
    "bmp": "image/bmp",
    "avif": "image/avif",
}


def detect_mime_type(image_bytes: bytes, filename: str | None = None) -> str:
    fmt = _detect_image_format(image_bytes)
    if fmt is None and filename:
        fmt = Path(filename).suffix.lstrip(".").lower()
    return FORMAT_TO_MEDIA_TYPE.get(fmt or "", "image/jpeg")


def _detect_image_format(image_bytes: bytes) -> str | None:
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "png"
    if image_bytes[:2] == b"\xff\xd8":
        return "jpeg"
    if image_bytes[:6] in (b"GIF87a", b"GIF89a"):
        return "gif"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "webp"
    if image_bytes[:2] == b"BM":
        return "bmp"
    if image_bytes[4:12] in (b"ftypavif", b"ftypavis"):
        return "avif"
    return None


def _to_jpeg(img: Image.Image, max_bytes: int, size: int) -> bytes:
    quality = max(1, min(95, max_bytes * 100 // size))
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    buffer = BytesIO()
    img.save(buffer, format="JPEG", quality=quality, optimize=True)
    return buffer.getvalue()


def _to_webp(img: Image.Image, max_bytes: int, size: int) -> bytes:
    scale = math.ceil(math.sqrt(size / max_bytes))
    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA")
    width, height = img.size
    new_size = (max(1, width // scale), max(1, height // scale))
    if new_size != img.size:
        img = img.resize(new_size, Image.Resampling.LANCZOS)
    buffer = BytesIO()
    img.save(buffer, format="WEBP")
    return buffer.getvalue()


def compress(image_bytes: bytes, max_bytes: int, target: CompressedFormat) -> tuple[bytes, str]:
    """Re-encode an image that is larger than ``max_bytes``; smaller images come back untouched."""
    size = len(image_bytes)
    if size <= max_bytes:
        return image_bytes, ""

    img: Image.Image = Image.open(BytesIO(image_bytes))
    if target is CompressedFormat.JPEG:
        data, ext = _to_jpeg(img, max_bytes, size), "jpeg"
    else:
        data, ext = _to_webp(img, max_bytes, size), "webp"
    logger.info("image_compressed", original=size, compressed=len(data), format=ext)
    return data, ext
