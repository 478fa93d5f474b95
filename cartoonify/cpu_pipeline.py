import logging
from typing import Dict

import numpy as np

from cartoonify.config import ProcessingConfig
from cartoonify.image_stack import ImageStack
from cartoonify.pipeline import Pipeline
from cartoonify.stage_graph import Stage

logger = logging.getLogger(__name__)


class CpuPipeline(Pipeline):
    """Runs each stage to completion, one after the other, reading its inputs off the stack."""
    name = "cpu"

    def _produce(self, stage: Stage, stack: ImageStack, positions: Dict[str, int],
                 config: ProcessingConfig) -> np.ndarray:
        images = [stack[positions[n]] for n in stage.inputs]
        logger.debug(f"Running {stage.name} on stack positions {[positions[n] for n in stage.inputs]}")
        return stage.compute(images, stack.width, stack.height, config)
