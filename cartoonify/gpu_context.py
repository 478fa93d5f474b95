"""
OpenCL device selection and per-session GPU resources.

`DeviceProvider` finds a device and creates a context for it. `GpuSession`
owns everything created from that context (program, kernels, queues and
buffers) and releases it all in `release()`; use it as a context manager or
through `opencl_session()`.
"""

import contextlib
import logging
import os
from typing import Dict, Iterable, List, Optional

import numpy as np
import pyopencl as cl

from cartoonify.config import ProcessingConfig
from cartoonify.converters import PIXEL_DTYPE
from cartoonify.enums import DeviceType
from cartoonify.errors import DeviceError

logger = logging.getLogger(__name__)

SHADER_PATH = os.path.join(os.path.dirname(__file__), "shaders", "cartoonify.cl")

_CL_DEVICE_TYPES = {
    DeviceType.GPU: cl.device_type.GPU,
    DeviceType.CPU: cl.device_type.CPU,
    DeviceType.ALL: cl.device_type.ALL,
}


def opencl_version(device) -> float:
    """Parse the version out of a device string like 'OpenCL 3.0 CUDA'."""
    try:
        return float(device.version.split()[1])
    except (IndexError, ValueError):
        return 0.0


def get_platforms() -> List["cl.Platform"]:
    try:
        platforms = cl.get_platforms()
    except cl.Error as e:
        raise DeviceError(f"No OpenCL platforms available: {e}") from e
    if not platforms:
        raise DeviceError("No OpenCL platforms available")
    return platforms


def describe_devices() -> List[Dict[str, object]]:
    """Name, platform and OpenCL version of every device on every platform."""
    found = []
    for platform in get_platforms():
        try:
            devices = platform.get_devices(device_type=cl.device_type.ALL)
        except cl.Error:
            continue
        for device in devices:
            version = opencl_version(device)
            found.append({"platform": platform.name, "name": device.name, "version": version})
            if version >= 2.0:
                logger.info(f"OpenCL 2.0 capable device: {device.name}, version {version}")
            else:
                logger.info(f"Skipping device {device.name}, version {version}")
    return found


class DeviceProvider:
    """Picks the first device of the requested type, starting at `platform_index`."""

    def __init__(self, device_type="gpu", platform_index: int = 0):
        self.device_type = DeviceType.from_value(device_type)
        self.platform_index = platform_index

    def select_device(self):
        platforms = get_platforms()
        if self.platform_index >= len(platforms):
            raise DeviceError(f"Platform index {self.platform_index} out of range, "
                              f"{len(platforms)} platform(s) available")
        ordered = platforms[self.platform_index:] + platforms[:self.platform_index]
        for platform in ordered:
            try:
                devices = platform.get_devices(device_type=_CL_DEVICE_TYPES[self.device_type])
            except cl.Error:
                continue
            if devices:
                logger.info(f"Selected CLPlatform: {platform.name}")
                logger.info(f"Selected CLDevice: {devices[0].name} ({devices[0].version})")
                return devices[0]
        raise DeviceError(f"No OpenCL {self.device_type.value} device available")

    def create_context(self, device):
        try:
            return cl.Context([device])
        except cl.Error as e:
            raise DeviceError(f"Failed to create OpenCL context: {e}") from e


class GpuBuffers:
    """One read-only input buffer and one output buffer per stage, all width * height ints."""

    def __init__(self, ctx, width: int, height: int, stage_names: Iterable[str]):
        self.width = width
        self.height = height
        self.stage_names = tuple(stage_names)
        nbytes = width * height * np.dtype(PIXEL_DTYPE).itemsize
        mf = cl.mem_flags
        self.input = None
        self.outputs: Dict[str, "cl.Buffer"] = {}
        try:
            self.input = cl.Buffer(ctx, mf.READ_ONLY, nbytes)
            for name in self.stage_names:
                self.outputs[name] = cl.Buffer(ctx, mf.READ_WRITE, nbytes)
        except cl.Error as e:
            self.release()
            raise DeviceError(f"Failed to allocate {width}x{height} buffers: {e}") from e

    def matches(self, width: int, height: int, stage_names: Iterable[str]) -> bool:
        return (width, height, tuple(stage_names)) == (self.width, self.height, self.stage_names)

    def __getitem__(self, name: str):
        return self.outputs[name]

    def release(self) -> None:
        for buffer in [self.input, *self.outputs.values()]:
            if buffer is not None:
                buffer.release()
        self.input = None
        self.outputs.clear()


class GpuSession:
    """Lazily acquired OpenCL context, program and buffers, reused across photos of one size."""

    def __init__(self, config: Optional[ProcessingConfig] = None, provider: Optional[DeviceProvider] = None):
        self.config = config if config is not None else ProcessingConfig()
        self.provider = provider if provider is not None else DeviceProvider(
            self.config.device_type, self.config.platform_index)
        self.device = None
        self.ctx = None
        self.program = None
        self._kernels: Dict[str, "cl.Kernel"] = {}
        self._queues: Dict[int, "cl.CommandQueue"] = {}
        self._buffers: Optional[GpuBuffers] = None

    @property
    def is_acquired(self) -> bool:
        return self.ctx is not None

    def acquire(self) -> "GpuSession":
        if self.is_acquired:
            return self
        self.device = self.provider.select_device()
        self.ctx = self.provider.create_context(self.device)
        logger.info(f"Created OpenCL context with device: {self.device.name}")
        with open(SHADER_PATH, "r", encoding="utf-8") as f:
            program_src = f.read()
        try:
            self.program = cl.Program(self.ctx, program_src).build()
        except cl.Error as e:
            self.release()
            raise DeviceError(f"Failed to build OpenCL program: {e}") from e
        return self

    def kernel(self, name: str) -> "cl.Kernel":
        if name not in self._kernels:
            try:
                self._kernels[name] = cl.Kernel(self.program, name)
            except cl.Error as e:
                raise DeviceError(f"OpenCL kernel '{name}' not found: {e}") from e
        return self._kernels[name]

    def queue(self, lane: int) -> "cl.CommandQueue":
        if lane not in self._queues:
            try:
                self._queues[lane] = cl.CommandQueue(self.ctx, self.device)
            except cl.Error as e:
                raise DeviceError(f"Failed to create command queue: {e}") from e
        return self._queues[lane]

    def local_size(self) -> int:
        return max(1, min(self.config.work_group_size, self.device.max_work_group_size))

    def buffers(self, width: int, height: int, stage_names: Iterable[str]) -> GpuBuffers:
        """Buffers for a width x height photo, reallocated when the size changes."""
        stage_names = tuple(stage_names)
        if self._buffers is not None and self._buffers.matches(width, height, stage_names):
            return self._buffers
        if self._buffers is not None:
            logger.info(f"Reallocating OpenCL buffers for {width}x{height}")
            self._release_buffers()
        self._buffers = GpuBuffers(self.ctx, width, height, stage_names)
        return self._buffers

    def _release_buffers(self) -> None:
        for queue in self._queues.values():
            queue.finish()
        if self._buffers is not None:
            self._buffers.release()
            self._buffers = None

    def release(self) -> None:
        if not self.is_acquired:
            return
        try:
            self._release_buffers()
        except cl.Error as e:
            logger.error(f"Failed to finish OpenCL queues: {e}")
        self._queues.clear()
        self._kernels.clear()
        self.program = None
        self.ctx = None
        self.device = None
        logger.info("OpenCL context cleaned up")

    def __enter__(self) -> "GpuSession":
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


@contextlib.contextmanager
def opencl_session(config: Optional[ProcessingConfig] = None):
    """
    Context manager for a GPU session.
    Ensures the OpenCL context, queues and buffers are released on exit.
    """
    session = GpuSession(config)
    try:
        yield session.acquire()
    finally:
        session.release()
