"""Square filter matrices and their application to packed-pixel images."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import numpy as np

from cartoonify.converters import channels, colour_value
from cartoonify.enums import Channel
from cartoonify.errors import ConfigurationError


@dataclass(frozen=True)
class FilterMatrix:
    """An N*N matrix of integer weights, laid out in row-major order.

    `divisor` is what the weighted sum is divided by to normalise it; 1 for
    filters (like Sobel) whose sums are used raw.
    """
    name: str
    weights: Tuple[int, ...]
    divisor: float = 1.0

    def __post_init__(self):
        object.__setattr__(self, "weights", tuple(int(w) for w in self.weights))
        size = 1
        while size * size < len(self.weights):
            size += 1
        if size * size != len(self.weights):
            raise ConfigurationError(f"non-square filter {self.name}: {list(self.weights)}")
        if size % 2 == 0:
            raise ConfigurationError(f"filter {self.name} must have an odd side, not {size}")
        if self.divisor == 0:
            raise ConfigurationError(f"filter {self.name} has a zero divisor")

    @property
    def size(self) -> int:
        return int(round(len(self.weights) ** 0.5))

    @property
    def half(self) -> int:
        return self.size // 2

    def as_array(self) -> np.ndarray:
        return np.array(self.weights, dtype=np.int64).reshape(self.size, self.size)


GAUSSIAN_FILTER = FilterMatrix("gaussian", (
    2,  4,  5,  4,  2,  # sum=17
    4,  9, 12,  9,  4,  # sum=38
    5, 12, 15, 12,  5,  # sum=49
    4,  9, 12,  9,  4,  # sum=38
    2,  4,  5,  4,  2,  # sum=17
), divisor=159.0)

SOBEL_VERTICAL_FILTER = FilterMatrix("sobel_vertical", (
    -1,  0, +1,
    -2,  0, +2,
    -1,  0, +1,
))

SOBEL_HORIZONTAL_FILTER = FilterMatrix("sobel_horizontal", (
    +1, +2, +1,
     0,  0,  0,
    -1, -2, -1,
))


def as_filter(kernel: Union[FilterMatrix, Sequence[int]]) -> FilterMatrix:
    if isinstance(kernel, FilterMatrix):
        return kernel
    return FilterMatrix("custom", tuple(kernel))


def wrap(pos: int, size: int) -> int:
    """Reflect an index that may be outside the image back into 0 .. size-1.

    -1 maps to 0, -2 to 1, size to size-1, and so on. Reflection repeats
    until the index is inside, so tiny images still get a valid index.
    """
    if size <= 0:
        raise ValueError(f"size must be positive, not {size}")
    while pos < 0 or pos >= size:
        if pos < 0:
            pos = -1 - pos
        else:
            pos = (size - 1) - (pos - size)
    return pos


def wrap_array(pos: np.ndarray, size: int) -> np.ndarray:
    """`wrap` applied to every element of an integer array."""
    pos = np.asarray(pos, dtype=np.int64)
    while True:
        low = pos < 0
        high = pos >= size
        if not (low.any() or high.any()):
            return pos
        pos = np.where(low, -1 - pos, np.where(high, (size - 1) - (pos - size), pos))


def convolution(pixels: np.ndarray, width: int, height: int, x_centre: int, y_centre: int,
                kernel: Union[FilterMatrix, Sequence[int]]) -> Tuple[int, int, int]:
    """Apply `kernel` around the pixel (x_centre, y_centre).

    Each nearby pixel's red, green and blue values are multiplied by the
    matching filter weight and summed. The image is not changed.

    Returns the (red, green, blue) sums.
    """
    kernel = as_filter(kernel)
    size, half = kernel.size, kernel.half
    sum_r = sum_g = sum_b = 0
    for filter_y in range(size):
        y = wrap(y_centre + filter_y - half, height)
        for filter_x in range(size):
            x = wrap(x_centre + filter_x - half, width)
            rgb = int(pixels[y * width + x])
            weight = kernel.weights[filter_y * size + filter_x]
            sum_r += colour_value(rgb, Channel.RED) * weight
            sum_g += colour_value(rgb, Channel.GREEN) * weight
            sum_b += colour_value(rgb, Channel.BLUE) * weight
    return sum_r, sum_g, sum_b


def convolve(pixels: np.ndarray, width: int, height: int,
             kernel: Union[FilterMatrix, Sequence[int]]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """`convolution` for every pixel at once.

    Returns three int64 arrays of length width * height holding the red,
    green and blue sums.
    """
    kernel = as_filter(kernel)
    pixels = np.asarray(pixels)
    if pixels.size != width * height:
        raise ValueError(f"Image has {pixels.size} pixels, expected {width}*{height}")
    planes = [c.astype(np.int64).reshape(height, width) for c in channels(pixels)]
    sums = [np.zeros((height, width), dtype=np.int64) for _ in range(3)]
    weights = kernel.as_array()
    rows0 = np.arange(height)
    cols0 = np.arange(width)
    for filter_y in range(kernel.size):
        rows = wrap_array(rows0 + filter_y - kernel.half, height)
        for filter_x in range(kernel.size):
            weight = weights[filter_y, filter_x]
            if weight == 0:
                continue
            cols = wrap_array(cols0 + filter_x - kernel.half, width)
            index = np.ix_(rows, cols)
            for total, plane in zip(sums, planes):
                total += plane[index] * weight
    return tuple(total.ravel() for total in sums)
