"""Upload decoding: bytes -> RGB pixel array."""

from __future__ import annotations

import io
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

if TYPE_CHECKING:
    from numpy.typing import NDArray


class ImageTooLargeError(ValueError):
    """Raised when an upload exceeds the configured size limits."""


def decode_image(image_bytes: bytes, max_file_size: int, max_image_pixels: int) -> NDArray[np.uint8]:
    """Decode raw image bytes into an HxWx3 RGB uint8 array.

    EXIF orientation is applied so landmark coordinates match what a viewer
    shows.

    Raises:
        ImageTooLargeError: If the file or the decoded image exceeds the limits.
        ValueError: If the bytes are not a supported image.
    """
    if len(image_bytes) > max_file_size:
        raise ImageTooLargeError(f"File is {len(image_bytes)} bytes, limit is {max_file_size}")

    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            if image.width * image.height > max_image_pixels:
                raise ImageTooLargeError(
                    f"Image is {image.width}x{image.height}, limit is {max_image_pixels} pixels"
                )
            rgb = ImageOps.exif_transpose(image).convert("RGB")
    except Image.DecompressionBombError as exc:
        raise ImageTooLargeError(str(exc)) from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError("Could not decode image") from exc

    return np.asarray(rgb, dtype=np.uint8)
