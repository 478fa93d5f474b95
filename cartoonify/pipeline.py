"""State machine shared by the CPU and GPU executors of the stage graph."""
from __future__ import annotations

import logging
from typing import Dict, Optional

import numpy as np

from cartoonify.config import ProcessingConfig
from cartoonify.enums import PipelineState
from cartoonify.image_stack import ImageStack
from cartoonify.stage_graph import SOURCE, Stage, StageGraph, cartoon_graph

logger = logging.getLogger(__name__)


class Pipeline:
    """Runs the recipe over an image stack whose bottom image is the photo.

    The stack ends up as (bottom to top) original, blurred, edges, original,
    quantized, merged, and the merged image is exposed as `result`.
    Subclasses decide how each stage's image is produced.
    """
    name = "base"

    def __init__(self, graph: Optional[StageGraph] = None):
        self.graph = graph if graph is not None else cartoon_graph()
        self.state = PipelineState.START
        self.result: Optional[np.ndarray] = None

    def _advance(self, state: PipelineState) -> None:
        expected = self.state.next()
        if state != expected:
            raise RuntimeError(f"Illegal pipeline transition {self.state.name} -> {state.name}, "
                               f"expected {expected.name}")
        logger.debug(f"[{self.name}] {self.state.name} -> {state.name}")
        self.state = state

    def run(self, stack: ImageStack, config: ProcessingConfig) -> np.ndarray:
        if len(stack) == 0:
            raise IndexError("No photo on the image stack")
        self.state = PipelineState.START
        self.result = None
        self._prepare(stack, config)
        self._walk(stack, config)
        self._advance(PipelineState.DONE)
        self.result = stack.current()
        return self.result

    def _prepare(self, stack: ImageStack, config: ProcessingConfig) -> None:
        """Hook run before any image is pushed."""

    def _walk(self, stack: ImageStack, config: ProcessingConfig) -> None:
        positions: Dict[str, int] = {SOURCE: 0}
        for stage in self.graph:
            if stage.fresh_source:
                stack.clone(0)
                positions[SOURCE] = len(stack) - 1
                self._advance(PipelineState.CLONED_ORIGINAL)
            stack.push(self._produce(stage, stack, positions, config))
            positions[stage.name] = len(stack) - 1
            self._advance(stage.state)

    def _produce(self, stage: Stage, stack: ImageStack, positions: Dict[str, int],
                 config: ProcessingConfig) -> np.ndarray:
        raise NotImplementedError
