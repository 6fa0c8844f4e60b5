"""Downsized preview generation backed by Pillow.

The ingestion core only depends on the ``PreviewGenerator`` callable shape;
:func:`generate_preview` is the default implementation.
"""

from __future__ import annotations

import io
import logging
from typing import Callable

from PIL import Image, UnidentifiedImageError

from ..config import PREVIEW_MAX_SIDE
from ..errors import PreviewGenerationError

logger = logging.getLogger(__name__)

PreviewGenerator = Callable[[bytes, int], bytes]

PREVIEW_FORMAT: str = "JPEG"
PREVIEW_QUALITY: int = 85


def generate_preview(blob: bytes, max_side: int = PREVIEW_MAX_SIDE) -> bytes:
    """Return a JPEG copy of *blob* whose longest side is at most *max_side*.

    Images already within bounds are re-encoded but never upscaled.
    """
    try:
        with Image.open(io.BytesIO(blob)) as image:
            width, height = image.size
            if width <= 0 or height <= 0:
                raise PreviewGenerationError("Invalid image dimensions")

            scale = min(max_side / width, max_side / height, 1.0)
            size = (max(1, round(width * scale)), max(1, round(height * scale)))
            preview = image.convert("RGB").resize(size, Image.LANCZOS)

            out = io.BytesIO()
            preview.save(out, format=PREVIEW_FORMAT, quality=PREVIEW_QUALITY)
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise PreviewGenerationError(f"Could not build preview: {exc}") from exc

    logger.debug("Preview %dx%d -> %dx%d", width, height, *size)
    return out.getvalue()

__all__ = ["PreviewGenerator", "generate_preview"]
