"""
frames.py — frame wrapper handed to the scanner by the capture collaborator.

The detection strategies only need a handful of capabilities (dimensions, a
BGR view, a grayscale view), so they depend on `Frame` rather than on
whatever object the camera layer produces.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

import cv2
import numpy as np

# pixel format -> (expected channels, conversion code to BGR)
_TO_BGR = {
    "GRAY": (1, cv2.COLOR_GRAY2BGR),
    "BGR": (3, None),
    "RGB": (3, cv2.COLOR_RGB2BGR),
    "BGRA": (4, cv2.COLOR_BGRA2BGR),
    "RGBA": (4, cv2.COLOR_RGBA2BGR),
}


@dataclass
class Frame:
    data: np.ndarray
    pixel_format: str = "BGR"
    timestamp_ms: float = 0.0
    _bgr: Optional[np.ndarray] = field(default=None, repr=False, compare=False)
    _gray: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        fmt = self.pixel_format.upper()
        if fmt not in _TO_BGR:
            raise ValueError(f"Unsupported pixel format: {self.pixel_format}")
        if not isinstance(self.data, np.ndarray) or self.data.ndim not in (2, 3) or self.data.size == 0:
            raise ValueError("Frame data must be a non-empty 2D or 3D numpy array")
        channels = 1 if self.data.ndim == 2 else self.data.shape[2]
        expected = _TO_BGR[fmt][0]
        if channels != expected:
            raise ValueError(f"{fmt} frame needs {expected} channel(s), got {channels}")
        self.pixel_format = fmt

    @classmethod
    def from_array(cls, data: np.ndarray, pixel_format: str = "BGR",
                   timestamp_ms: Optional[float] = None) -> "Frame":
        if timestamp_ms is None:
            timestamp_ms = time.monotonic() * 1000.0
        if data.dtype != np.uint8:
            data = np.clip(data, 0, 255).astype(np.uint8)
        return cls(data=data, pixel_format=pixel_format, timestamp_ms=float(timestamp_ms))

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def bgr(self) -> np.ndarray:
        if self._bgr is None:
            code = _TO_BGR[self.pixel_format][1]
            self._bgr = self.data if code is None else cv2.cvtColor(self.data, code)
        return self._bgr

    @property
    def gray(self) -> np.ndarray:
        if self._gray is None:
            if self.pixel_format == "GRAY":
                self._gray = self.data
            else:
                self._gray = cv2.cvtColor(self.bgr, cv2.COLOR_BGR2GRAY)
        return self._gray
