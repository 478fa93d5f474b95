"""A stack of same-sized images.

The original photo sits at position 0 and the current image on top (index -1).
Image passes create a new image and push it; they never modify an image that
is already on the stack. `push` stores a read-only copy of the pixels, so
`clone` can share the stored buffer without copying it again.
"""
from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from cartoonify.converters import PIXEL_DTYPE
from cartoonify.errors import DimensionMismatchError

logger = logging.getLogger(__name__)


def _owned(pixels: np.ndarray) -> np.ndarray:
    """A read-only copy; the caller keeps no writable handle on a stored image."""
    owned = np.array(pixels, dtype=PIXEL_DTYPE, copy=True)
    owned.flags.writeable = False
    return owned


class ImageStack:
    def __init__(self, width: Optional[int] = None, height: Optional[int] = None):
        self._images: List[np.ndarray] = []
        self.width = None
        self.height = None
        if width is not None or height is not None:
            self.set_size(width, height)

    @property
    def has_size(self) -> bool:
        return self.width is not None

    @property
    def num_pixels(self) -> int:
        if not self.has_size:
            return 0
        return self.width * self.height

    def set_size(self, width: int, height: int) -> None:
        """Fix the image size. Only allowed while the stack is empty."""
        if width is None or height is None or width <= 0 or height <= 0:
            raise DimensionMismatchError(f"Invalid image size {width}x{height}")
        if self._images and (width, height) != (self.width, self.height):
            raise DimensionMismatchError(
                f"Cannot resize a non-empty stack from {self.width}x{self.height} to {width}x{height}")
        self.width = width
        self.height = height
        logger.debug(f"Image size set to {width}x{height}")

    def check_size(self, width: int, height: int) -> None:
        """Establish the size on an empty stack, otherwise require it to match."""
        if not self._images:
            self.set_size(width, height)
        elif (width, height) != (self.width, self.height):
            raise DimensionMismatchError(
                f"Incorrect image size: {width}x{height}, expected {self.width}x{self.height}")

    def _resolve(self, which: int) -> int:
        pos = which if which >= 0 else len(self._images) + which
        if not 0 <= pos < len(self._images):
            raise IndexError(f"Image {which} is not on the stack (size {len(self._images)})")
        return pos

    def push(self, pixels: np.ndarray) -> None:
        if not self.has_size:
            raise DimensionMismatchError("Image size has not been set")
        pixels = np.asarray(pixels)
        if pixels.ndim != 1 or len(pixels) != self.num_pixels:
            raise DimensionMismatchError(
                f"Image has {pixels.size} pixels, expected {self.width}*{self.height}={self.num_pixels}")
        self._images.append(_owned(pixels))

    def pop(self) -> np.ndarray:
        if not self._images:
            raise IndexError("pop from an empty image stack")
        return self._images.pop()

    def clone(self, which: int) -> None:
        """Push a shallow copy of image `which`.

        Negative numbers are relative to the top of the stack, so -1 duplicates
        the current image. Zero or positive counts from the bottom, so 0
        duplicates the original photo.
        """
        source = self._images[self._resolve(which)]
        self._images.append(source.view())

    def current(self) -> np.ndarray:
        if not self._images:
            raise IndexError("The image stack is empty")
        return self._images[-1]

    def clear(self) -> None:
        self._images.clear()

    def reset(self) -> None:
        """Empty the stack and forget the established image size."""
        self.clear()
        self.width = None
        self.height = None

    def __getitem__(self, which: int) -> np.ndarray:
        return self._images[self._resolve(which)]

    def __len__(self) -> int:
        return len(self._images)

    def __repr__(self) -> str:
        return f"<ImageStack size={len(self)} image={self.width}x{self.height}>"
