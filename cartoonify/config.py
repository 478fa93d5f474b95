"""Processing options for a cartoonify run, with eager validation and JSON persistence."""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict

from cartoonify.enums import DeviceType
from cartoonify.errors import ConfigurationError

MAX_COLOURS = 256


@dataclass
class ProcessingConfig:
    """Options that stay constant for the duration of a run.

    edge_threshold: gradient level treated as an edge. Small values (e.g. 50)
        give lots of heavy black edges, large ones (e.g. 1000) few thin ones.
    num_colours: number of values in each colour channel after quantization.
    """
    edge_threshold: int = 128
    num_colours: int = 3
    debug: bool = False
    use_gpu: bool = False
    work_group_size: int = 256
    device_type: str = "gpu"
    platform_index: int = 0

    def __setattr__(self, name: str, value: Any) -> None:
        validator = getattr(self, f"_check_{name}", None)
        if validator is not None:
            value = validator(value)
        super().__setattr__(name, value)

    @staticmethod
    def _as_int(name: str, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(f"{name} must be an integer, not {value!r}")
        return value

    def _check_edge_threshold(self, value: Any) -> int:
        value = self._as_int("edge_threshold", value)
        if value < 0:
            raise ConfigurationError(f"edge threshold must be at least zero, not {value}")
        return value

    def _check_num_colours(self, value: Any) -> int:
        value = self._as_int("num_colours", value)
        if not 0 < value <= MAX_COLOURS:
            raise ConfigurationError(f"num_colours must be 1..{MAX_COLOURS}, not {value}")
        return value

    def _check_work_group_size(self, value: Any) -> int:
        value = self._as_int("work_group_size", value)
        if value <= 0:
            raise ConfigurationError(f"work_group_size must be positive, not {value}")
        return value

    def _check_platform_index(self, value: Any) -> int:
        value = self._as_int("platform_index", value)
        if value < 0:
            raise ConfigurationError(f"platform_index must be at least zero, not {value}")
        return value

    def _check_device_type(self, value: Any) -> str:
        try:
            return DeviceType.from_value(value).value
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def _check_debug(self, value: Any) -> bool:
        return bool(value)

    def _check_use_gpu(self, value: Any) -> bool:
        return bool(value)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessingConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown config keys: {sorted(unknown)}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path: str) -> ProcessingConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)
    with open(p, 'r', encoding='utf-8') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a JSON object")
    return ProcessingConfig.from_dict(data)


def save_config(path: str, config: ProcessingConfig) -> None:
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2)
