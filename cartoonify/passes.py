# passes.py
"""Image passes used by the cartoon recipe.

Every pass takes packed-pixel images (1-D int32 arrays, see `converters`) and
returns a new image; inputs are never modified.
"""

from __future__ import annotations

import math

import numpy as np

from cartoonify.config import MAX_COLOURS
from cartoonify.converters import BLACK, COLOUR_MASK, PIXEL_DTYPE, WHITE, channels, pack_channels
from cartoonify.convolution import GAUSSIAN_FILTER, SOBEL_HORIZONTAL_FILTER, SOBEL_VERTICAL_FILTER, convolve
from cartoonify.errors import ConfigurationError, DimensionMismatchError
from cartoonify.timing import timing


def clamp(value: float) -> int:
    """Round a colour value to the nearest integer (halves go up) and clip it to 0..255."""
    result = math.floor(value + 0.5)
    if result <= 0:
        return 0
    elif result > COLOUR_MASK:
        return COLOUR_MASK
    return int(result)


def clamp_array(values: np.ndarray) -> np.ndarray:
    return np.clip(np.floor(np.asarray(values, dtype=np.float64) + 0.5), 0, COLOUR_MASK).astype(PIXEL_DTYPE)


def _check_levels(levels: int) -> None:
    if not 0 < levels <= MAX_COLOURS:
        raise ConfigurationError(f"NumColours must be 1..{MAX_COLOURS}, not {levels}")


def quantize_colour(colour_value: int, num_per_channel: int) -> int:
    """Convert a colour value (0..255) to one of `num_per_channel` evenly spaced values.

    For example, if num_per_channel is 3, then 0..85 maps to 0, 86..170 maps
    to 127 and 171..255 maps to 255. The input range is cut into equal-sized
    buckets; outputs always start at 0 and end at 255.
    """
    _check_levels(num_per_channel)
    discrete = min(colour_value * num_per_channel // (COLOUR_MASK + 1), num_per_channel - 1)
    if num_per_channel == 1:
        return 0
    return discrete * COLOUR_MASK // (num_per_channel - 1)


def quantize_array(values: np.ndarray, num_per_channel: int) -> np.ndarray:
    _check_levels(num_per_channel)
    values = np.asarray(values, dtype=np.int64)
    if num_per_channel == 1:
        return np.zeros_like(values, dtype=PIXEL_DTYPE)
    discrete = np.minimum(values * num_per_channel // (COLOUR_MASK + 1), num_per_channel - 1)
    return (discrete * COLOUR_MASK // (num_per_channel - 1)).astype(PIXEL_DTYPE)


def grayscale(img: np.ndarray) -> np.ndarray:
    r, g, b = channels(img)
    average = (r + g + b) // 3
    return pack_channels(average, average, average)


@timing
def gaussian_blur(img: np.ndarray, width: int, height: int) -> np.ndarray:
    sum_r, sum_g, sum_b = convolve(img, width, height, GAUSSIAN_FILTER)
    divisor = GAUSSIAN_FILTER.divisor
    return pack_channels(clamp_array(sum_r / divisor),
                         clamp_array(sum_g / divisor),
                         clamp_array(sum_b / divisor))


@timing
def sobel_edge_detect(img: np.ndarray, width: int, height: int, edge_threshold: int) -> np.ndarray:
    """Mark edges black and everything else white.

    The gradient is the sum of the absolute vertical and horizontal Sobel
    responses of all three channels; sqrt(v^2 + h^2) would be more precise
    but plain addition catches most edges.
    """
    if edge_threshold < 0:
        raise ConfigurationError(f"edge threshold must be at least zero, not {edge_threshold}")
    vertical = convolve(img, width, height, SOBEL_VERTICAL_FILTER)
    horizontal = convolve(img, width, height, SOBEL_HORIZONTAL_FILTER)
    total = sum(np.abs(s) for s in vertical) + sum(np.abs(s) for s in horizontal)
    return np.where(total >= edge_threshold, BLACK, WHITE).astype(PIXEL_DTYPE)


@timing
def reduce_colours(img: np.ndarray, num_colours: int) -> np.ndarray:
    r, g, b = channels(img)
    return pack_channels(quantize_array(r, num_colours),
                         quantize_array(g, num_colours),
                         quantize_array(b, num_colours))


@timing
def merge_mask(mask_img: np.ndarray, mask_colour: int, other_img: np.ndarray) -> np.ndarray:
    """Take `other_img` wherever the mask is exactly `mask_colour`, else the mask itself."""
    mask_img = np.asarray(mask_img, dtype=PIXEL_DTYPE)
    other_img = np.asarray(other_img, dtype=PIXEL_DTYPE)
    if mask_img.shape != other_img.shape:
        raise DimensionMismatchError(f"Images must be the same size: {mask_img.shape} vs {other_img.shape}")
    return np.where(mask_img == mask_colour, other_img, mask_img).astype(PIXEL_DTYPE)
