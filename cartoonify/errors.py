"""Exceptions raised by the cartoon pipeline."""


class ConfigurationError(ValueError):
    """An option or filter matrix is outside its allowed range."""


class DimensionMismatchError(ValueError):
    """An image does not have the width * height the session expects."""


class DeviceError(RuntimeError):
    """No usable OpenCL device, or a device operation failed."""
