"""The four adjustment stages: Geometry, Tone, Colour and Effects.

Each stage consumes the buffer it is given (the caller's handle is
invalidated) and returns a new buffer. Stages never fail for in-range
parameters; running out of memory is reported as AllocationError by
:func:`apply_stages`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, assert_never

import cv2
import numpy as np

from photo_adjust.buffer import PixelBuffer
from photo_adjust.color import (
    hsl_to_rgb_array,
    luma,
    rgb_to_hsl_array,
    round_half_up,
    saturate,
)
from photo_adjust.errors import AllocationError
from photo_adjust.kernels import box_blur, unsharp_mask
from photo_adjust.logging_config import get_logger
from photo_adjust.models import AdjustmentParams, FilterPreset

if TYPE_CHECKING:
    from photo_adjust.models import CropRect

logger = get_logger(__name__)

# Transparent fill for corners uncovered by arbitrary-angle rotation.
_ROTATION_FILL = (0, 0, 0, 0)


def blur_radius(blur: float) -> int:
    """Map the 0-100 blur parameter onto a box blur radius."""
    return max(1, int(blur // 20))


# Geometry ---------------------------------------------------------------


def _rotate(pixels: np.ndarray, degrees: float) -> np.ndarray:
    """Rotate clockwise about the centre.

    Multiples of 90 degrees are exact transposes that swap width and height.
    Other angles keep the canvas size and leave transparent corners.
    """
    quarter_turns, remainder = divmod(degrees, 90.0)
    if remainder == 0:
        return np.ascontiguousarray(np.rot90(pixels, k=-int(quarter_turns)))

    height, width = pixels.shape[:2]
    centre = ((width - 1) / 2.0, (height - 1) / 2.0)
    # OpenCV treats positive angles as counter-clockwise.
    matrix = cv2.getRotationMatrix2D(centre, -degrees, 1.0)
    return cv2.warpAffine(
        pixels,
        matrix,
        (width, height),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=_ROTATION_FILL,
    )


def _crop(pixels: np.ndarray, rect: CropRect) -> np.ndarray:
    height, width = pixels.shape[:2]
    x = min(rect.x, width - 1)
    y = min(rect.y, height - 1)
    crop_width = min(rect.width, width - x)
    crop_height = min(rect.height, height - y)
    return pixels[y : y + crop_height, x : x + crop_width].copy()


def apply_geometry(buffer: PixelBuffer, params: AdjustmentParams) -> PixelBuffer:
    """Flip, rotate about the centre, then crop in the rotated space."""
    pixels = buffer.detach()

    if params.flip_horizontal:
        pixels = pixels[:, ::-1]
    if params.flip_vertical:
        pixels = pixels[::-1, :]
    if params.rotation:
        pixels = _rotate(pixels, params.rotation)
    if params.crop is not None:
        pixels = _crop(pixels, params.crop)

    return PixelBuffer(np.ascontiguousarray(pixels))


# Tone -------------------------------------------------------------------


def contrast_factor(contrast: float) -> float:
    """Standard contrast factor for a 0-200 contrast value (100 is neutral)."""
    offset = contrast - 100.0
    return 259.0 * (offset + 255.0) / (255.0 * (259.0 - offset))


def apply_tone(buffer: PixelBuffer, params: AdjustmentParams) -> PixelBuffer:
    """Brightness, contrast and clarity per pixel, then unsharp masking."""
    pixels = buffer.detach()
    if (
        params.brightness == 100
        and params.contrast == 100
        and params.clarity == 0
        and params.sharpen == 0
    ):
        return PixelBuffer(pixels)

    rgb = pixels[..., :3].astype(np.float64)
    rgb *= params.brightness / 100.0
    rgb = contrast_factor(params.contrast) * (rgb - 128.0) + 128.0

    if params.clarity != 0:
        mean = rgb.mean(axis=-1, keepdims=True)
        rgb += (rgb - mean) * (params.clarity / 100.0)

    pixels[..., :3] = round_half_up(rgb)

    if params.sharpen > 0:
        pixels = unsharp_mask(pixels, params.sharpen / 100.0)

    return PixelBuffer(pixels)


# Colour -----------------------------------------------------------------


def _temperature_shift(temperature: float) -> np.ndarray:
    """Per-channel RGB offset; blue moves against red and green."""
    t = temperature / 100.0
    if t > 0:
        return np.array([t * 25.0, t * 15.0, -t * 25.0])
    return np.array([t * 15.0, t * 10.0, -t * 25.0])


def apply_colour(buffer: PixelBuffer, params: AdjustmentParams) -> PixelBuffer:
    """Temperature in RGB, then hue, saturation and vibrance in HSL."""
    pixels = buffer.detach()
    if (
        params.temperature == 0
        and params.hue == 0
        and params.saturation == 100
        and params.vibrance == 0
    ):
        return PixelBuffer(pixels)

    rgb = pixels[..., :3].astype(np.float64)
    if params.temperature != 0:
        rgb = np.clip(rgb + _temperature_shift(params.temperature), 0.0, 255.0)

    hue, sat, lightness = rgb_to_hsl_array(rgb)

    if params.hue != 0:
        hue = np.mod(hue + params.hue / 360.0, 1.0)
    if params.saturation != 100:
        sat = sat * (params.saturation / 100.0)
    if params.vibrance != 0:
        sat = np.clip(sat * (1.0 + (params.vibrance / 100.0) * (1.0 - sat)), 0.0, 1.0)

    pixels[..., :3] = round_half_up(hsl_to_rgb_array(hue, sat, lightness))
    return PixelBuffer(pixels)


# Effects ----------------------------------------------------------------


def _dramatic(rgb: np.ndarray) -> np.ndarray:
    hue, sat, lightness = rgb_to_hsl_array(rgb)
    sat = np.minimum(1.0, sat * 1.3)
    # Push lightness 20% further from mid grey.
    lightness = lightness + (lightness - 0.5) * 0.2
    return hsl_to_rgb_array(hue, sat, lightness)


def apply_filter(rgb: np.ndarray, preset: FilterPreset) -> np.ndarray:
    """Apply a named filter to an (h, w, 3) uint8 array.

    Args:
        rgb: RGB channels, alpha excluded
        preset: Filter to apply

    Returns:
        New uint8 array of the same shape
    """
    values = rgb.astype(np.float64)
    r, g, b = values[..., 0], values[..., 1], values[..., 2]

    match preset:
        case FilterPreset.NONE:
            return rgb.copy()
        case FilterPreset.GRAYSCALE:
            grey = luma(rgb)
            result = np.stack([grey, grey, grey], axis=-1)
        case FilterPreset.SEPIA:
            result = np.stack(
                [
                    r * 0.393 + g * 0.769 + b * 0.189,
                    r * 0.349 + g * 0.686 + b * 0.168,
                    r * 0.272 + g * 0.534 + b * 0.131,
                ],
                axis=-1,
            )
        case FilterPreset.INVERT:
            result = 255.0 - values
        case FilterPreset.WARM:
            result = np.stack([r * 1.1 + 15.0, g * 1.05, b * 0.9], axis=-1)
        case FilterPreset.COOL:
            result = np.stack([r * 0.9, g, b * 1.2], axis=-1)
        case FilterPreset.VINTAGE:
            result = np.stack(
                [
                    r * 0.5 + g * 0.4 + b * 0.19 + 40.0,
                    r * 0.3 + g * 0.4 + b * 0.16 + 20.0,
                    r * 0.2 + g * 0.3 + b * 0.26,
                ],
                axis=-1,
            )
        case FilterPreset.DRAMATIC:
            result = _dramatic(values)
        case FilterPreset.NOIR:
            grey = luma(rgb)
            grey = np.where(grey < 127, grey * 0.8, grey * 1.2)
            result = np.stack([grey, grey, grey], axis=-1)
        case FilterPreset.FADE:
            result = np.stack([r * 0.9 + 20.0, g * 0.9 + 20.0, b * 0.9 + 30.0], axis=-1)
        case _:
            assert_never(preset)

    return saturate(result)


def vignette_factor(width: int, height: int, amount: float) -> np.ndarray:
    """Per-pixel darkening multiplier of shape (height, width).

    Pixels within half the normalized radius keep a factor of exactly 1;
    beyond it the darkening grows quadratically towards the corners.
    """
    centre_x, centre_y = width / 2.0, height / 2.0
    dx = (np.arange(width) - centre_x) / centre_x
    dy = (np.arange(height) - centre_y) / centre_y
    distance = np.hypot(dx[np.newaxis, :], dy[:, np.newaxis])
    falloff = 1.0 - np.minimum(1.0, amount * ((distance - 0.5) * 2.0) ** 2)
    return np.where(distance > 0.5, falloff, 1.0)


def _vignette(pixels: np.ndarray, amount: float) -> np.ndarray:
    height, width = pixels.shape[:2]
    factor = vignette_factor(width, height, amount)[..., np.newaxis]
    darkened = np.floor(pixels[..., :3].astype(np.float64) * factor)
    pixels[..., :3] = darkened.astype(np.uint8)
    return pixels


def _noise(pixels: np.ndarray, amount: float, rng: np.random.Generator) -> np.ndarray:
    height, width = pixels.shape[:2]
    # Roughly half the pixels receive noise, the same offset on R, G and B.
    affected = rng.random((height, width)) >= 0.5
    offset = (rng.random((height, width)) - 0.5) * amount * 50.0
    offset = np.where(affected, offset, 0.0)[..., np.newaxis]
    pixels[..., :3] = saturate(pixels[..., :3].astype(np.float64) + offset)
    return pixels


def apply_effects(
    buffer: PixelBuffer,
    params: AdjustmentParams,
    rng: np.random.Generator | None = None,
) -> PixelBuffer:
    """Filter preset, then vignette, then noise, then blur."""
    pixels = buffer.detach()

    if params.filter_preset is not FilterPreset.NONE:
        pixels[..., :3] = apply_filter(pixels[..., :3], params.filter_preset)
    if params.vignette > 0:
        pixels = _vignette(pixels, params.vignette / 100.0)
    if params.noise > 0:
        pixels = _noise(pixels, params.noise / 100.0, rng or np.random.default_rng())
    if params.blur > 0:
        pixels = box_blur(pixels, blur_radius(params.blur))

    return PixelBuffer(pixels)


def apply_stages(
    buffer: PixelBuffer,
    params: AdjustmentParams,
    rng: np.random.Generator | None = None,
) -> PixelBuffer:
    """Run Geometry, Tone, Colour and Effects in order.

    Args:
        buffer: Source buffer; consumed by the call
        params: Adjustments to apply
        rng: Random source for noise (a fresh generator when None)

    Returns:
        The adjusted buffer

    Raises:
        AllocationError: If memory runs out during the pass
    """
    width, height = buffer.size
    try:
        result = apply_geometry(buffer, params)
        result = apply_tone(result, params)
        result = apply_colour(result, params)
        result = apply_effects(result, params, rng)
    except MemoryError as e:
        raise AllocationError(f"Out of memory rendering a {width}x{height} image") from e

    logger.debug(f"Applied stages to {width}x{height} buffer -> {result.width}x{result.height}")
    return result
