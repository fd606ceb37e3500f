"""Owned RGBA8 pixel buffer with explicit move semantics."""

from __future__ import annotations

import numpy as np

from photo_adjust.errors import AllocationError, InvalidStateError

CHANNELS = 4


class PixelBuffer:
    """A width x height RGBA8 raster held by exactly one owner.

    Pixels live in a ``uint8`` array of shape ``(height, width, 4)``, row-major
    with no padding. Ownership moves with :meth:`take` or :meth:`detach`; the
    buffer handed over is invalidated, and reading it afterwards raises
    :class:`InvalidStateError`. This keeps at most one stage holding a mutable
    reference to any given pixel array.
    """

    __slots__ = ("_pixels",)

    def __init__(self, pixels: np.ndarray) -> None:
        if pixels.ndim != 3 or pixels.shape[2] != CHANNELS:
            raise ValueError(f"Expected an (h, w, 4) array, got shape {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 pixels, got {pixels.dtype}")
        if pixels.shape[0] < 1 or pixels.shape[1] < 1:
            height, width = pixels.shape[:2]
            raise ValueError(f"Buffer must be at least 1x1, got {width}x{height}")
        self._pixels: np.ndarray | None = pixels

    @classmethod
    def allocate(cls, width: int, height: int) -> PixelBuffer:
        """Allocate a transparent black buffer.

        Raises:
            AllocationError: If the size is invalid or memory is exhausted
        """
        if width < 1 or height < 1:
            raise AllocationError(f"Cannot allocate a {width}x{height} buffer")
        try:
            pixels = np.zeros((height, width, CHANNELS), dtype=np.uint8)
        except MemoryError as e:
            raise AllocationError(f"Out of memory allocating a {width}x{height} buffer") from e
        return cls(pixels)

    @classmethod
    def from_array(cls, array: np.ndarray) -> PixelBuffer:
        """Build a buffer from an RGB or RGBA array of any numeric dtype.

        Values are rounded and clamped to [0, 255]; RGB input gets an opaque
        alpha channel.
        """
        array = np.asarray(array)
        if array.ndim != 3 or array.shape[2] not in (3, CHANNELS):
            raise ValueError(f"Expected an (h, w, 3) or (h, w, 4) array, got {array.shape}")
        if array.dtype != np.uint8:
            array = np.clip(np.rint(array), 0, 255).astype(np.uint8)
        if array.shape[2] == 3:
            alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
            array = np.concatenate([array, alpha], axis=2)
        return cls(np.ascontiguousarray(array))

    @classmethod
    def from_bytes(cls, data: bytes, width: int, height: int) -> PixelBuffer:
        """Build a buffer from raw RGBA8 bytes.

        Raises:
            ValueError: If the byte length does not equal ``width * height * 4``
        """
        expected = width * height * CHANNELS
        if len(data) != expected:
            raise ValueError(f"Expected {expected} bytes for {width}x{height}, got {len(data)}")
        pixels = np.frombuffer(data, dtype=np.uint8).reshape(height, width, CHANNELS)
        return cls(pixels.copy())

    @property
    def pixels(self) -> np.ndarray:
        if self._pixels is None:
            raise InvalidStateError("Pixel buffer was moved and can no longer be accessed")
        return self._pixels

    @property
    def is_valid(self) -> bool:
        return self._pixels is not None

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self) -> tuple[int, int]:
        """(width, height) of the buffer."""
        return self.width, self.height

    def take(self) -> PixelBuffer:
        """Move the pixels into a new buffer, invalidating this one."""
        return PixelBuffer(self.detach())

    def detach(self) -> np.ndarray:
        """Move the raw pixel array out, invalidating this buffer."""
        pixels = self.pixels
        self._pixels = None
        return pixels

    def copy(self) -> PixelBuffer:
        """Return an independent copy.

        Raises:
            AllocationError: If memory is exhausted
        """
        try:
            return PixelBuffer(self.pixels.copy())
        except MemoryError as e:
            raise AllocationError(
                f"Out of memory copying a {self.width}x{self.height} buffer"
            ) from e

    def release(self) -> None:
        self._pixels = None

    def get_pixel(self, x: int, y: int) -> tuple[int, int, int, int]:
        r, g, b, a = self.pixels[y, x]
        return int(r), int(g), int(b), int(a)

    def to_bytes(self) -> bytes:
        return self.pixels.tobytes()

    # Pickling is how buffers cross into worker processes.
    def __getstate__(self) -> dict[str, np.ndarray | None]:
        return {"pixels": self._pixels}

    def __setstate__(self, state: dict[str, np.ndarray | None]) -> None:
        self._pixels = state["pixels"]

    def __repr__(self) -> str:
        if self._pixels is None:
            return "PixelBuffer(<moved>)"
        return f"PixelBuffer({self.width}x{self.height})"
