"""Image decoding and pixel sampling.

Uploads are decoded with Pillow into HxWx3 RGB uint8 arrays. Classification
never scans every pixel: ``sample_pixels`` walks the row-major pixel sequence
with a stride chosen so roughly ``target_samples`` pixels are visited, keeping
cost bounded regardless of resolution.
"""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from wastelens.errors import InvalidImageError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_TARGET: int = 8000


def decode_image(image_bytes: bytes, max_pixels: int) -> NDArray[np.uint8]:
    """Decode raw image bytes into an RGB uint8 numpy array.

    Args:
        image_bytes: Raw file bytes (any format Pillow can read).
        max_pixels: Upper bound on width * height.

    Returns:
        HxWx3 RGB uint8 numpy array, EXIF orientation applied.

    Raises:
        InvalidImageError: If the bytes are empty, cannot be decoded, have a
            zero dimension, or exceed ``max_pixels``.
    """
    if not image_bytes:
        raise InvalidImageError("file is empty")

    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            width, height = img.size
            if width == 0 or height == 0:
                raise InvalidImageError("image has zero width or height")
            if width * height > max_pixels:
                raise InvalidImageError(f"image is {width}x{height}, larger than {max_pixels} pixels")
            img.load()
            rgb = ImageOps.exif_transpose(img).convert("RGB")
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        logger.debug("Image decode failed: %s", exc)
        raise InvalidImageError("format not recognised or file is corrupt") from exc

    return np.asarray(rgb, dtype=np.uint8)


def sample_pixels(image: NDArray[np.uint8], target_samples: int = DEFAULT_SAMPLE_TARGET) -> NDArray[np.uint8]:
    """Subsample an image into an (N, 3) array of RGB rows.

    The stride is ``max(1, W*H // target_samples)`` over the flattened pixel
    sequence, starting at the first pixel. An alpha channel, if present, is
    dropped.

    Raises:
        InvalidImageError: If the array is not HxWx3/4 or has a zero dimension.
    """
    if image.ndim != 3 or image.shape[2] not in (3, 4):
        raise InvalidImageError(f"expected an HxWx3 pixel array, got shape {image.shape}")

    height, width = image.shape[:2]
    if width == 0 or height == 0:
        raise InvalidImageError("image has zero width or height")

    pixels = image[:, :, :3].reshape(-1, 3)
    stride = max(1, pixels.shape[0] // max(1, target_samples))
    return pixels[::stride]


def iter_chunks(samples: NDArray[np.uint8], chunk_size: int) -> Iterator[NDArray[np.uint8]]:
    """Yield contiguous slices of at most ``chunk_size`` samples."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    for start in range(0, samples.shape[0], chunk_size):
        yield samples[start : start + chunk_size]
