"""Colour math shared by the adjustment stages.

Scalar helpers operate on single channel values; the ``*_array`` variants
are their vectorized numpy counterparts used by the stages. Hue, saturation
and lightness are all normalized to [0, 1).
"""

from __future__ import annotations

import math

import numpy as np


def clamp255(value: float) -> int:
    """Round half up and clamp to [0, 255]."""
    return max(0, min(255, math.floor(value + 0.5)))


def rgb_to_hsl(r: float, g: float, b: float) -> tuple[float, float, float]:
    """Convert RGB channels in [0, 255] to (h, s, l) in [0, 1).

    Achromatic input (``max == min``) yields ``h = s = 0``.
    """
    r, g, b = r / 255.0, g / 255.0, b / 255.0
    high = max(r, g, b)
    low = min(r, g, b)
    lightness = (high + low) / 2.0

    if high == low:
        return 0.0, 0.0, lightness

    delta = high - low
    if lightness > 0.5:
        saturation = delta / (2.0 - high - low)
    else:
        saturation = delta / (high + low)

    if high == r:
        hue = (g - b) / delta + (6.0 if g < b else 0.0)
    elif high == g:
        hue = (b - r) / delta + 2.0
    else:
        hue = (r - g) / delta + 4.0

    return hue / 6.0, saturation, lightness


def _hue_to_channel(p: float, q: float, t: float) -> float:
    if t < 0:
        t += 1.0
    if t > 1:
        t -= 1.0
    if t < 1 / 6:
        return p + (q - p) * 6.0 * t
    if t < 1 / 2:
        return q
    if t < 2 / 3:
        return p + (q - p) * (2 / 3 - t) * 6.0
    return p


def hsl_to_rgb(h: float, s: float, lightness: float) -> tuple[int, int, int]:
    """Convert (h, s, l) in [0, 1] back to RGB channels in [0, 255].

    ``s == 0`` yields the grey ``(l, l, l) * 255``.
    """
    if s == 0:
        grey = clamp255(lightness * 255.0)
        return grey, grey, grey

    if lightness < 0.5:
        q = lightness * (1.0 + s)
    else:
        q = lightness + s - lightness * s
    p = 2.0 * lightness - q
    return (
        clamp255(_hue_to_channel(p, q, h + 1 / 3) * 255.0),
        clamp255(_hue_to_channel(p, q, h) * 255.0),
        clamp255(_hue_to_channel(p, q, h - 1 / 3) * 255.0),
    )


def round_half_up(values: np.ndarray) -> np.ndarray:
    """Round half up, clamp to [0, 255] and convert to uint8."""
    return np.clip(np.floor(values + 0.5), 0, 255).astype(np.uint8)


def saturate(values: np.ndarray) -> np.ndarray:
    """Round half to even, clamp to [0, 255] and convert to uint8."""
    return np.clip(np.rint(values), 0, 255).astype(np.uint8)


def luma(rgb: np.ndarray) -> np.ndarray:
    """Rec. 601 luma of an (..., 3) array."""
    rgb = rgb.astype(np.float64)
    return rgb[..., 0] * 0.299 + rgb[..., 1] * 0.587 + rgb[..., 2] * 0.114


def rgb_to_hsl_array(rgb: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Vectorized :func:`rgb_to_hsl` over an (..., 3) array in [0, 255]."""
    rgb = rgb.astype(np.float64) / 255.0
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    high = rgb.max(axis=-1)
    low = rgb.min(axis=-1)
    lightness = (high + low) / 2.0
    delta = high - low
    chromatic = delta > 0

    # Placeholders keep the divisions finite where the pixel is grey.
    safe_delta = np.where(chromatic, delta, 1.0)
    denominator = np.where(lightness > 0.5, 2.0 - high - low, high + low)
    denominator = np.where(chromatic, denominator, 1.0)
    saturation = np.where(chromatic, delta / denominator, 0.0)

    hue = np.where(
        high == r,
        (g - b) / safe_delta + np.where(g < b, 6.0, 0.0),
        np.where(high == g, (b - r) / safe_delta + 2.0, (r - g) / safe_delta + 4.0),
    )
    hue = np.where(chromatic, hue / 6.0, 0.0)

    return hue, saturation, lightness


def _hue_to_channel_array(p: np.ndarray, q: np.ndarray, t: np.ndarray) -> np.ndarray:
    t = np.where(t < 0, t + 1.0, t)
    t = np.where(t > 1, t - 1.0, t)
    return np.select(
        [t < 1 / 6, t < 1 / 2, t < 2 / 3],
        [p + (q - p) * 6.0 * t, q, p + (q - p) * (2 / 3 - t) * 6.0],
        default=p,
    )


def hsl_to_rgb_array(h: np.ndarray, s: np.ndarray, lightness: np.ndarray) -> np.ndarray:
    """Vectorized :func:`hsl_to_rgb`.

    Returns unrounded floats of shape (..., 3) in roughly [0, 255]; callers
    round and clamp when storing into a buffer.
    """
    q = np.where(lightness < 0.5, lightness * (1.0 + s), lightness + s - lightness * s)
    p = 2.0 * lightness - q
    rgb = np.stack(
        [
            _hue_to_channel_array(p, q, h + 1 / 3),
            _hue_to_channel_array(p, q, h),
            _hue_to_channel_array(p, q, h - 1 / 3),
        ],
        axis=-1,
    )
    grey = (s == 0)[..., np.newaxis]
    return np.where(grey, lightness[..., np.newaxis], rgb) * 255.0
