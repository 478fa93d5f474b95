"""
Processes photos and uses edge detection and colour reduction to make them cartoon-like.

Each input image, e.g. xyz.jpg, is processed and written to xyz_cartoon.jpg.
A `Cartoonify` keeps a stack of images with the original photo at position 0
and the current image on top; the pipelines push one new image per stage.
"""
from __future__ import annotations

import logging
import os
import time
from typing import Optional

import numpy as np

from cartoonify.config import ProcessingConfig
from cartoonify.cpu_pipeline import CpuPipeline
from cartoonify.gpu_context import GpuSession
from cartoonify.gpu_pipeline import GpuPipeline
from cartoonify.image_io import FileImageSink, FileImageSource
from cartoonify.image_stack import ImageStack
from cartoonify.pipeline import Pipeline

logger = logging.getLogger(__name__)


def derived_name(name: str, suffix: str) -> str:
    """photo.JPG -> photo_<suffix>.jpg"""
    base_name, extn = os.path.splitext(name)
    return f"{base_name}_{suffix}{extn.lower()}"


class Cartoonify:
    def __init__(self, config: Optional[ProcessingConfig] = None, source=None, sink=None):
        self.config = config if config is not None else ProcessingConfig()
        self.source = source if source is not None else FileImageSource()
        self.sink = sink if sink is not None else FileImageSink()
        self.stack = ImageStack()
        self._gpu_session: Optional[GpuSession] = None

    @property
    def width(self) -> Optional[int]:
        return self.stack.width

    @property
    def height(self) -> Optional[int]:
        return self.stack.height

    def num_images(self) -> int:
        return len(self.stack)

    def current_image(self) -> np.ndarray:
        return self.stack.current()

    def pixel(self, x: int, y: int) -> int:
        """The packed pixel at column x, row y of the current image."""
        image = self.stack.current()
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) is outside the {self.width}x{self.height} image")
        return int(image[y * self.width + x])

    def load_photo(self, filename: str) -> None:
        """Push a photo onto the stack.

        If the stack is empty this also sets the image size, otherwise the
        photo must be the same size as the images already on the stack.
        """
        width, height, pixels = self.source.load(filename)
        self.stack.check_size(width, height)
        self.stack.push(pixels)

    def save_photo(self, filename: str) -> None:
        """Save the current image; the stack is left unchanged."""
        self.sink.save(filename, self.width, self.height, self.stack.current())

    def pipeline(self) -> Pipeline:
        if not self.config.use_gpu:
            return CpuPipeline()
        if self._gpu_session is None:
            self._gpu_session = GpuSession(self.config)
        return GpuPipeline(self._gpu_session)

    def process_photo(self, name: str) -> float:
        """Cartoonify one photo and save it next to the input as <name>_cartoon.<ext>.

        Returns the seconds spent processing (excluding loading and saving).
        """
        if not os.path.splitext(name)[1]:
            logger.warning(f"Skipping unknown kind of file: {name}")
            return 0.0
        new_name = derived_name(name, "cartoon")
        try:
            self.load_photo(name)
            start = time.perf_counter()
            self.pipeline().run(self.stack, self.config)
            elapsed = time.perf_counter() - start
            self.save_photo(new_name)
            if self.config.debug:
                self._save_intermediates(name)
        finally:
            self.stack.clear()
        return elapsed

    def _save_intermediates(self, name: str) -> None:
        # stack (bottom to top): original, blurred, edges, original, quantized, merged
        self.stack.pop()
        self.save_photo(derived_name(name, "colours"))
        self.stack.pop()
        self.stack.pop()
        self.save_photo(derived_name(name, "edges"))
        self.stack.pop()
        self.save_photo(derived_name(name, "blurred"))
        self.stack.pop()
        if len(self.stack) != 1:
            raise RuntimeError(f"Expected only the original photo left, found {len(self.stack)} images")

    def close(self) -> None:
        if self._gpu_session is not None:
            self._gpu_session.release()
            self._gpu_session = None

    def __enter__(self) -> "Cartoonify":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
