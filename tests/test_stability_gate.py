"""Tests for the stability clock."""

import pytest

from scan_types import Quad
from stability_gate import StabilityGate


def square(x=100.0, y=100.0, s=200.0):
    return Quad.from_points([(x, y), (x + s, y), (x + s, y + s), (x, y + s)])


class TestStabilityGate:
    def test_elapsed_reaches_threshold_on_third_tick(self):
        gate = StabilityGate(tolerance_px=20, threshold_ms=1000)
        elapsed = [gate.update(square(), now) for now in (0, 500, 1000)]
        assert elapsed == [0.0, 500.0, 1000.0]
        assert [gate.is_stable(e) for e in elapsed] == [False, False, True]

    def test_small_jitter_accrues(self):
        gate = StabilityGate(tolerance_px=20)
        gate.update(square(), 0)
        assert gate.update(square(x=115, y=90), 300) == 300.0

    def test_large_jump_restarts_clock(self):
        gate = StabilityGate(tolerance_px=20)
        gate.update(square(), 0)
        gate.update(square(), 800)
        assert gate.update(square(x=150), 900) == 0.0
        assert gate.update(square(x=150), 1400) == 500.0

    def test_tolerance_is_per_axis(self):
        gate = StabilityGate(tolerance_px=20)
        gate.update(square(), 0)
        # 25 px diagonal shift but only 18 px per axis
        assert gate.update(square(x=118, y=118), 100) == 100.0

    def test_missing_detection_resets(self):
        gate = StabilityGate()
        gate.update(square(), 0)
        gate.update(square(), 900)
        assert gate.update(None, 1000) == 0.0
        assert gate.update(square(), 1100) == 0.0
        assert gate.elapsed_ms == 0.0

    def test_progress_is_clamped(self):
        gate = StabilityGate(threshold_ms=1000)
        assert gate.progress(500) == pytest.approx(0.5)
        assert gate.progress(5000) == 1.0
        assert gate.progress(-10) == 0.0

    def test_default_clock(self):
        gate = StabilityGate()
        assert gate.update(square()) == 0.0
        assert gate.update(square()) >= 0.0
