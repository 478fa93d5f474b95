"""The cartoon recipe as OpenCL kernels over shared device buffers.

Stages that form a chain (blur -> edges) share a command queue and so run in
submission order; independent stages (quantize) get their own queue. Each
kernel launch waits on the completion events of exactly its predecessors, and
the host blocks on the final stage before reading anything back. Results are
only pushed onto the stack once every kernel has finished.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

import numpy as np
import pyopencl as cl

from cartoonify.config import ProcessingConfig
from cartoonify.converters import PIXEL_DTYPE
from cartoonify.errors import DeviceError
from cartoonify.gpu_context import GpuSession
from cartoonify.image_stack import ImageStack
from cartoonify.pipeline import Pipeline
from cartoonify.stage_graph import SOURCE, Stage, StageGraph
from cartoonify.timing import timing

logger = logging.getLogger(__name__)


def global_size(num_pixels: int, local_size: int) -> int:
    """Round the pixel count up to a whole number of work groups."""
    return ((num_pixels + local_size - 1) // local_size) * local_size


INT_ARG_MAX = int(np.iinfo(np.int32).max)


def kernel_int(value: int) -> np.int32:
    """A scalar kernel argument, saturated to the range of a C int.

    Saturating the edge threshold is exact: the L1 gradient of a pixel is at
    most 3 * 2 * 4 * 255, far below INT_ARG_MAX.
    """
    return np.int32(max(-INT_ARG_MAX - 1, min(int(value), INT_ARG_MAX)))


class GpuPipeline(Pipeline):
    name = "gpu"

    def __init__(self, session: GpuSession, graph: Optional[StageGraph] = None):
        super().__init__(graph)
        self.session = session
        self._outputs: Dict[str, np.ndarray] = {}

    def wait_list(self, stage: Stage, events: Dict[str, "cl.Event"], upload: "cl.Event") -> List["cl.Event"]:
        """Events a stage must wait for: its predecessor stages, plus the upload if it reads the photo."""
        wait_for = [events[name] for name in sorted(self.graph.predecessors(stage.name))]
        if SOURCE in stage.inputs:
            wait_for.append(upload)
        return wait_for

    def _prepare(self, stack: ImageStack, config: ProcessingConfig) -> None:
        try:
            self._outputs = self._run_kernels(stack[0], stack.width, stack.height, config)
        except cl.Error as e:
            raise DeviceError(f"OpenCL error while processing photo: {e}") from e

    @timing
    def _run_kernels(self, photo: np.ndarray, width: int, height: int,
                     config: ProcessingConfig) -> Dict[str, np.ndarray]:
        session = self.session.acquire()
        names = self.graph.order()
        buffers = session.buffers(width, height, names)
        lanes = self.graph.lanes()
        num_pixels = width * height
        local_size = session.local_size()
        work_size = (global_size(num_pixels, local_size),)

        host_input = np.ascontiguousarray(photo, dtype=PIXEL_DTYPE)
        upload = cl.enqueue_copy(session.queue(0), buffers.input, host_input, is_blocking=False)
        session.queue(0).flush()

        events: Dict[str, "cl.Event"] = {}
        for stage in self.graph:
            kernel = session.kernel(stage.kernel_name)
            args = [buffers.input if name == SOURCE else buffers[name] for name in stage.inputs]
            args.append(buffers[stage.name])
            args += [np.int32(width), np.int32(height)]
            args += [kernel_int(p) for p in stage.params(config)]
            kernel.set_args(*args)

            queue = session.queue(lanes[stage.name])
            events[stage.name] = cl.enqueue_nd_range_kernel(
                queue, kernel, work_size, (local_size,),
                wait_for=self.wait_list(stage, events, upload))
            # other queues may be waiting on this event
            queue.flush()
            logger.debug(f"Enqueued {stage.kernel_name} on queue {lanes[stage.name]}")

        cl.wait_for_events([events[self.graph.terminal.name]])

        outputs: Dict[str, np.ndarray] = {}
        for name in names:
            result = np.empty(num_pixels, dtype=PIXEL_DTYPE)
            cl.enqueue_copy(session.queue(lanes[name]), result, buffers[name],
                            wait_for=[events[name]], is_blocking=True)
            outputs[name] = result
        return outputs

    def _produce(self, stage: Stage, stack: ImageStack, positions: Dict[str, int],
                 config: ProcessingConfig) -> np.ndarray:
        return self._outputs.pop(stage.name)
