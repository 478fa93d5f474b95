# converters.py
"""Packing and unpacking of RGB pixels.

A pixel is one integer holding three 8-bit channels as (0, red, green, blue),
so `(r << 16) | (g << 8) | b`. Alpha is never stored.
"""

import numpy as np

from cartoonify.enums import Channel

COLOUR_BITS = 8
COLOUR_MASK = (1 << COLOUR_BITS) - 1  # 0xFF

PIXEL_DTYPE = np.int32


def create_pixel(r: int, g: int, b: int) -> int:
    for name, v in (("red", r), ("green", g), ("blue", b)):
        if not 0 <= v <= COLOUR_MASK:
            raise ValueError(f"{name} value must be in 0..{COLOUR_MASK}, not {v}")
    return (r << (2 * COLOUR_BITS)) | (g << COLOUR_BITS) | b


def colour_value(pixel: int, channel) -> int:
    channel = Channel.from_value(channel)
    return (pixel >> channel.shift) & COLOUR_MASK


def get_r(pixel: int) -> int: return colour_value(pixel, Channel.RED)
def get_g(pixel: int) -> int: return colour_value(pixel, Channel.GREEN)
def get_b(pixel: int) -> int: return colour_value(pixel, Channel.BLUE)


BLACK = create_pixel(0, 0, 0)
WHITE = create_pixel(COLOUR_MASK, COLOUR_MASK, COLOUR_MASK)


def channels(pixels: np.ndarray) -> tuple:
    """Split packed pixels into (red, green, blue) int32 arrays."""
    pixels = np.asarray(pixels, dtype=PIXEL_DTYPE)
    return tuple((pixels >> c.shift) & COLOUR_MASK for c in (Channel.RED, Channel.GREEN, Channel.BLUE))


def pack_channels(r: np.ndarray, g: np.ndarray, b: np.ndarray) -> np.ndarray:
    r = np.asarray(r, dtype=PIXEL_DTYPE)
    g = np.asarray(g, dtype=PIXEL_DTYPE)
    b = np.asarray(b, dtype=PIXEL_DTYPE)
    return (r << (2 * COLOUR_BITS)) | (g << COLOUR_BITS) | b


def pack_array(rgb: np.ndarray) -> np.ndarray:
    """Pack an (..., 3) array of channel values into packed pixels of shape (...)."""
    rgb = np.asarray(rgb)
    if rgb.shape[-1] != 3:
        raise ValueError(f"Expected an array with 3 channels in the last axis, got shape {rgb.shape}")
    if rgb.size and (rgb.min() < 0 or rgb.max() > COLOUR_MASK):
        raise ValueError(f"Channel values must be in 0..{COLOUR_MASK}")
    return pack_channels(rgb[..., 0], rgb[..., 1], rgb[..., 2])


def unpack_array(pixels: np.ndarray) -> np.ndarray:
    """Inverse of `pack_array`: returns a uint8 array with a trailing channel axis."""
    r, g, b = channels(pixels)
    return np.stack([r, g, b], axis=-1).astype(np.uint8)
