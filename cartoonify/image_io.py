"""Reading and writing photos as packed-pixel arrays, using Pillow."""
from __future__ import annotations

import logging
import os
from typing import Tuple

import numpy as np
from PIL import Image, UnidentifiedImageError

from cartoonify.converters import pack_array, unpack_array
from cartoonify.errors import DimensionMismatchError

logger = logging.getLogger(__name__)


def image_to_pixels(image: Image.Image) -> Tuple[int, int, np.ndarray]:
    """Convert a PIL image to (width, height, packed pixels); any alpha channel is dropped."""
    rgb = image.convert("RGB")
    width, height = rgb.size
    return width, height, pack_array(np.asarray(rgb, dtype=np.uint8)).ravel()


def pixels_to_image(width: int, height: int, pixels: np.ndarray) -> Image.Image:
    pixels = np.asarray(pixels)
    if pixels.size != width * height:
        raise DimensionMismatchError(f"Image has {pixels.size} pixels, expected {width}*{height}")
    return Image.fromarray(unpack_array(pixels.reshape(height, width)), 'RGB')


class FileImageSource:
    def load(self, path: str) -> Tuple[int, int, np.ndarray]:
        if not os.path.exists(path):
            raise FileNotFoundError(path)
        try:
            with Image.open(path) as image:
                return image_to_pixels(image)
        except UnidentifiedImageError as e:
            raise ValueError(f"Invalid image file: {path}") from e


class FileImageSink:
    def save(self, path: str, width: int, height: int, pixels: np.ndarray) -> None:
        """Save the pixels to `path`; the extension (e.g. .jpg) determines the file type."""
        image = pixels_to_image(width, height, pixels)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        image.save(path)
        logger.debug(f"Saved {width}x{height} image to {path}")
