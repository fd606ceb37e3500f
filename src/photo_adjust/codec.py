"""Decoding, encoding and resampling of raster images."""

from __future__ import annotations

import io
import math

import cv2
import numpy as np
from PIL import Image, ImageOps

from photo_adjust.buffer import PixelBuffer
from photo_adjust.errors import AllocationError, DecodeError, ProcessingError
from photo_adjust.models import EncodedImage

PNG_MIME = "image/png"
JPEG_MIME = "image/jpeg"


def decode_image(data: bytes) -> PixelBuffer:
    """Decode any raster format Pillow understands into an RGBA buffer.

    EXIF orientation is applied so the buffer matches what a viewer shows.

    Args:
        data: Encoded image bytes

    Returns:
        Decoded RGBA buffer

    Raises:
        DecodeError: If the bytes are not a readable image
        AllocationError: If the decoded image does not fit in memory
    """
    if not data:
        raise DecodeError("Image data is empty")

    try:
        with Image.open(io.BytesIO(data)) as img:
            oriented = ImageOps.exif_transpose(img)
            pixels = np.array(oriented.convert("RGBA"))
    except MemoryError as e:
        raise AllocationError("Out of memory decoding image") from e
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Failed to decode image: {e}") from e

    return PixelBuffer(pixels)


def encode_png(buffer: PixelBuffer) -> EncodedImage:
    """Encode a buffer as PNG without consuming it.

    Raises:
        ProcessingError: If encoding fails
    """
    output = io.BytesIO()
    try:
        Image.fromarray(buffer.pixels).save(output, format="PNG")
    except (OSError, ValueError) as e:
        raise ProcessingError(f"Failed to encode PNG: {e}") from e

    return EncodedImage(
        data=output.getvalue(),
        width=buffer.width,
        height=buffer.height,
        mime_type=PNG_MIME,
    )


def scaled_size(width: int, height: int, factor: float) -> tuple[int, int]:
    """Scale dimensions, rounding half up and keeping at least one pixel."""
    return (
        max(1, math.floor(width * factor + 0.5)),
        max(1, math.floor(height * factor + 0.5)),
    )


def fit_within(width: int, height: int, max_width: int, max_height: int) -> tuple[int, int]:
    """Shrink dimensions to fit a box, keeping the aspect ratio.

    Width is constrained first, then height, so a result never exceeds either
    bound. Images already inside the box are returned unchanged.
    """
    if width <= max_width and height <= max_height:
        return width, height

    aspect_ratio = width / height
    new_width, new_height = float(width), float(height)
    if new_width > max_width:
        new_width = max_width
        new_height = new_width / aspect_ratio
    if new_height > max_height:
        new_height = max_height
        new_width = new_height * aspect_ratio

    return max(1, int(new_width)), max(1, int(new_height))


def resize_buffer(buffer: PixelBuffer, width: int, height: int) -> PixelBuffer:
    """Resample to an exact size with area interpolation, without consuming.

    Raises:
        AllocationError: If memory runs out
    """
    if (width, height) == buffer.size:
        return buffer.copy()
    try:
        resized = cv2.resize(buffer.pixels, (width, height), interpolation=cv2.INTER_AREA)
    except MemoryError as e:
        raise AllocationError(f"Out of memory resizing to {width}x{height}") from e
    return PixelBuffer(resized)


def scale_buffer(buffer: PixelBuffer, factor: float) -> PixelBuffer:
    """Resample by a uniform factor (e.g. a preview quality factor)."""
    width, height = scaled_size(buffer.width, buffer.height, factor)
    return resize_buffer(buffer, width, height)


def compress_image(
    data: bytes,
    max_width: int = 1600,
    max_height: int = 1600,
    quality: float = 0.8,
) -> EncodedImage:
    """Downscale and re-encode an image for storage.

    PNG input stays PNG; anything else becomes JPEG at the given quality.

    Args:
        data: Encoded source image
        max_width: Maximum output width
        max_height: Maximum output height
        quality: JPEG quality in [0, 1]

    Returns:
        The compressed image

    Raises:
        DecodeError: If the source cannot be decoded
        ProcessingError: If re-encoding fails
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            source_format = img.format
            img.load()
            source = img.copy()
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Failed to decode image for compression: {e}") from e

    width, height = fit_within(source.width, source.height, max_width, max_height)
    if (width, height) != source.size:
        source = source.resize((width, height), Image.Resampling.LANCZOS)

    output = io.BytesIO()
    try:
        if source_format == "PNG":
            source.save(output, format="PNG", optimize=True)
            mime_type = PNG_MIME
        else:
            jpeg_quality = max(1, min(95, round(quality * 100)))
            source.convert("RGB").save(output, format="JPEG", quality=jpeg_quality)
            mime_type = JPEG_MIME
    except (OSError, ValueError) as e:
        raise ProcessingError(f"Failed to encode compressed image: {e}") from e

    return EncodedImage(data=output.getvalue(), width=width, height=height, mime_type=mime_type)


def create_thumbnail(data: bytes, max_size: int = 200, quality: float = 0.5) -> EncodedImage:
    """Create a thumbnail fitting in a ``max_size`` square."""
    return compress_image(data, max_width=max_size, max_height=max_size, quality=quality)
