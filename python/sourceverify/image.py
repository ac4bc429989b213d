"""Validated, read-only view over a decoded RGBA8 pixel buffer."""
import hashlib
from typing import Optional

import numpy as np

from .errors import InvalidInput
from .primitives import luminance
from .types import ImageMetadata

BYTES_PER_PIXEL = 4


def validate_dimensions(data, width, height) -> int:
    """Check that ``data`` holds exactly ``width * height`` RGBA pixels.

    Returns the buffer length in bytes.

    Raises:
        InvalidInput: on non-integer or negative dimensions, or a length
            mismatch.
    """
    for label, value in (("width", width), ("height", height)):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            raise InvalidInput(f"{label} must be an integer, got {type(value).__name__}")
        if value < 0:
            raise InvalidInput(f"{label} must be non-negative, got {value}")

    try:
        length = memoryview(data).nbytes
    except TypeError:
        raise InvalidInput(f"pixel buffer must support the buffer protocol, got {type(data).__name__}")

    expected = int(width) * int(height) * BYTES_PER_PIXEL
    if length != expected:
        raise InvalidInput(
            f"pixel buffer length {length} does not match {width}x{height}x{BYTES_PER_PIXEL} = {expected}"
        )
    return length


def content_digest(data) -> str:
    """SHA-256 hex digest of the raw pixel bytes, usable as a cache key."""
    return hashlib.sha256(memoryview(data).cast("B")).hexdigest()


def _select(plane: np.ndarray, ys, xs) -> np.ndarray:
    ys = slice(None) if ys is None else ys
    xs = slice(None) if xs is None else xs
    if isinstance(ys, slice) or isinstance(xs, slice):
        return plane[ys, xs]
    return plane[np.ix_(ys, xs)]


class PixelBuffer:
    """Immutable RGBA8 image shared by every analyzer of one request.

    ``rgba`` is a read-only ``(height, width, 4)`` uint8 array and ``gray`` the
    luminance plane (0.299R + 0.587G + 0.114B) computed once up front.
    """

    def __init__(self, data, width: int, height: int,
                 metadata: Optional[ImageMetadata] = None):
        validate_dimensions(data, width, height)
        self.width = int(width)
        self.height = int(height)
        self.metadata = metadata

        rgba = np.frombuffer(memoryview(data).cast("B"), dtype=np.uint8)
        rgba = rgba.reshape(self.height, self.width, BYTES_PER_PIXEL)
        rgba.flags.writeable = False
        self.rgba = rgba

        gray = luminance(rgba)
        gray.flags.writeable = False
        self.gray = gray

    @classmethod
    def from_array(cls, array: np.ndarray,
                   metadata: Optional[ImageMetadata] = None) -> "PixelBuffer":
        """Build a buffer from an ``(h, w, 4)`` uint8 array."""
        if array.ndim != 3 or array.shape[2] != BYTES_PER_PIXEL:
            raise InvalidInput(f"expected an (h, w, 4) array, got shape {array.shape}")
        data = np.ascontiguousarray(array, dtype=np.uint8).tobytes()
        return cls(data, array.shape[1], array.shape[0], metadata)

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def min_side(self) -> int:
        return min(self.width, self.height)

    def channel(self, index: int, ys=None, xs=None) -> np.ndarray:
        """Single channel (0=R, 1=G, 2=B, 3=A) as float64.

        ``ys`` and ``xs`` (slices or index arrays) select the rows and columns
        to convert, so sampling analyzers never copy the whole frame.
        """
        return _select(self.rgba[:, :, index], ys, xs).astype(np.float64)

    def rgb(self, ys=None, xs=None) -> np.ndarray:
        """RGB channels as float64, shape ``(h, w, 3)`` or ``(len(ys), len(xs), 3)``."""
        return _select(self.rgba[:, :, :3], ys, xs).astype(np.float64)

    def digest(self) -> str:
        return content_digest(self.rgba.tobytes())
