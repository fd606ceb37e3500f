"""Separable box blur and the unsharp mask built on it."""

from __future__ import annotations

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from photo_adjust.color import saturate


def _box_pass(pixels: np.ndarray, radius: int, axis: int) -> np.ndarray:
    """Mean over a ``2r+1`` window along one axis, repeating edge pixels."""
    pad_width = [(0, 0)] * pixels.ndim
    pad_width[axis] = (radius, radius)
    padded = np.pad(pixels, pad_width, mode="edge")
    windows = sliding_window_view(padded, 2 * radius + 1, axis=axis)
    total = windows.sum(axis=-1, dtype=np.int64)
    return saturate(total / (2 * radius + 1))


def box_blur(pixels: np.ndarray, radius: int) -> np.ndarray:
    """Two-pass separable box blur over every channel, alpha included.

    The horizontal pass runs first and its output is rounded to 8 bits
    before the vertical pass, so results are reproducible pixel for pixel.

    Args:
        pixels: uint8 array of shape (height, width, channels)
        radius: Window radius; 0 returns a copy

    Returns:
        New uint8 array of the same shape
    """
    if radius < 0:
        raise ValueError(f"Blur radius must not be negative, got {radius}")
    if radius == 0:
        return pixels.copy()
    horizontal = _box_pass(pixels, radius, axis=1)
    return _box_pass(horizontal, radius, axis=0)


def unsharp_mask(pixels: np.ndarray, amount: float, radius: int = 1) -> np.ndarray:
    """Sharpen RGB as ``original + amount * (original - blur(original))``.

    Alpha is left untouched.

    Args:
        pixels: uint8 RGBA array of shape (height, width, 4)
        amount: Strength, typically ``sharpen / 100``
        radius: Box blur radius of the mask

    Returns:
        New uint8 array of the same shape
    """
    blurred = box_blur(pixels, radius)
    original = pixels[..., :3].astype(np.float64)
    detail = original - blurred[..., :3]
    result = pixels.copy()
    result[..., :3] = saturate(original + amount * detail)
    return result
