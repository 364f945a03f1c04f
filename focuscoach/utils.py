from __future__ import annotations

import base64
import binascii
import io
from datetime import datetime
from pathlib import Path
from typing import Tuple

from PIL import Image

JPEG_MIME = "image/jpeg"


def ensure_directory(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def timestamp_slug(ts: datetime) -> str:
    return ts.strftime("%Y%m%d-%H%M%S")


def image_to_data_url(image: Image.Image, quality: int = 80) -> str:
    buffer = io.BytesIO()
    image.convert("RGB").save(buffer, format="JPEG", quality=quality)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:{JPEG_MIME};base64,{encoded}"


def split_data_url(data_url: str) -> Tuple[str, bytes]:
    """Return ``(mime_type, raw_bytes)`` for a base64 ``data:`` URL."""
    header, sep, payload = data_url.partition(",")
    if not sep or not header.startswith("data:") or ";base64" not in header:
        raise ValueError("Not a base64 data URL")
    mime_type = header[len("data:"):].split(";", 1)[0] or "application/octet-stream"
    try:
        return mime_type, base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64 payload: {exc}") from exc


def data_url_to_image(data_url: str) -> Image.Image:
    _, raw = split_data_url(data_url)
    image = Image.open(io.BytesIO(raw))
    image.load()
    return image
