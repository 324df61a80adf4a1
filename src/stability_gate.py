"""
stability_gate.py — how long has the detected quad stayed put?

Every corner has to stay within `tolerance_px` (per axis) of where it was on
the previous frame for time to accrue; any larger jump restarts the clock at
the current timestamp.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from scan_types import Quad
from scanner_config import STABILITY_THRESHOLD_MS, STABILITY_TOLERANCE_PX


def now_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class StabilityState:
    last_quad: Optional[Quad] = None
    stable_since_ms: float = 0.0
    accumulated_ms: float = 0.0


class StabilityGate:
    def __init__(self,
                 tolerance_px: float = STABILITY_TOLERANCE_PX,
                 threshold_ms: float = STABILITY_THRESHOLD_MS):
        self.tolerance_px = float(tolerance_px)
        self.threshold_ms = float(threshold_ms)
        self.state = StabilityState()

    def reset(self) -> None:
        self.state = StabilityState()

    def is_similar(self, prev: Optional[Quad], curr: Quad) -> bool:
        if prev is None:
            return False
        return prev.max_corner_shift(curr) <= self.tolerance_px

    def update(self, quad: Optional[Quad], now: Optional[float] = None) -> float:
        """Feed this frame's quad (or None); returns elapsed stable ms."""
        if now is None:
            now = now_ms()
        if quad is None:
            self.reset()
            return 0.0

        st = self.state
        if self.is_similar(st.last_quad, quad):
            st.accumulated_ms = max(0.0, now - st.stable_since_ms)
        else:
            st.stable_since_ms = now
            st.accumulated_ms = 0.0
        st.last_quad = quad
        return st.accumulated_ms

    @property
    def elapsed_ms(self) -> float:
        return self.state.accumulated_ms

    def is_stable(self, elapsed: Optional[float] = None) -> bool:
        e = self.state.accumulated_ms if elapsed is None else elapsed
        return e >= self.threshold_ms

    def progress(self, elapsed: Optional[float] = None) -> float:
        e = self.state.accumulated_ms if elapsed is None else elapsed
        if self.threshold_ms <= 0:
            return 1.0
        return max(0.0, min(1.0, e / self.threshold_ms))
