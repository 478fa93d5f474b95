from __future__ import annotations

from enum import Enum
from typing import Any


class Channel(Enum):
    """Colour channels of a packed pixel; the value is the channel's bit shift."""
    RED = 16
    GREEN = 8
    BLUE = 0

    @property
    def shift(self) -> int:
        return self.value

    @classmethod
    def from_value(cls, v: Any) -> "Channel":
        if isinstance(v, cls):
            return v
        if not isinstance(v, str):
            raise ValueError(f"Cannot convert {v!r} to Channel")
        v_up = v.upper()
        for c in cls:
            if c.name == v_up or c.name[0] == v_up:
                return c
        raise ValueError(f"Unsupported Channel: {v}")


class PipelineState(Enum):
    START = "start"
    BLURRED = "blurred"
    EDGES = "edges"
    CLONED_ORIGINAL = "cloned_original"
    QUANTIZED = "quantized"
    MERGED = "merged"
    DONE = "done"

    def next(self) -> "PipelineState":
        members = list(PipelineState)
        idx = members.index(self)
        if idx == len(members) - 1:
            raise ValueError("DONE is the final pipeline state")
        return members[idx + 1]


class DeviceType(Enum):
    GPU = "gpu"
    CPU = "cpu"
    ALL = "all"

    @classmethod
    def from_value(cls, v: Any) -> "DeviceType":
        if isinstance(v, cls):
            return v
        if not isinstance(v, str):
            raise ValueError(f"Cannot convert {v!r} to DeviceType")
        v_low = v.lower()
        for d in cls:
            if d.value == v_low:
                return d
        raise ValueError(f"Unsupported DeviceType: {v}")
