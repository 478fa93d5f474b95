"""
Package initializer for the cartoonify package.

Photos are turned into cartoons by a fixed recipe of image passes (blur, edge
detection, colour reduction, mask merge) that can run either on the CPU or as
OpenCL kernels. See `cartoonify.cartoonify.Cartoonify` for the entry point.
"""

__all__ = [
    "cartoonify",
    "config",
    "converters",
    "convolution",
    "cpu_pipeline",
    "enums",
    "errors",
    "gpu_context",
    "gpu_pipeline",
    "image_io",
    "image_stack",
    "main",
    "passes",
    "pipeline",
    "stage_graph",
    "timing",
]

__version__ = "1.0.0"
