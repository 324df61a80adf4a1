"""Tests for the shared value types."""

import math

import pytest

from scan_types import CandidateFace, Point2D, Quad, Sample


SQUARE = [(0, 0), (100, 0), (100, 100), (0, 100)]


class TestQuad:
    def test_needs_four_corners(self):
        with pytest.raises(ValueError):
            Quad.from_points(SQUARE[:3])

    def test_area_center_contains(self):
        q = Quad.from_points(SQUARE)
        assert q.area == pytest.approx(10000.0)
        assert q.center == Point2D(50.0, 50.0)
        assert q.contains(Point2D(20, 80))
        assert not q.contains(Point2D(120, 50))

    def test_max_corner_shift_is_per_axis(self):
        a = Quad.from_points(SQUARE)
        b = Quad.from_points([(3, -4), (100, 0), (112, 100), (0, 100)])
        assert a.max_corner_shift(b) == pytest.approx(12.0)
        assert a.max_corner_shift(a) == 0.0

    def test_non_finite(self):
        assert not Quad.from_points([(math.nan, 0), (1, 0), (1, 1), (0, 1)]).is_finite()
        assert Quad.from_points(SQUARE).is_finite()

    def test_as_array_shape(self):
        arr = Quad.from_points(SQUARE).as_array()
        assert arr.shape == (4, 2)
        assert arr.dtype.name == "float32"


class TestCandidateFace:
    def test_exactly_nine_stickers(self):
        with pytest.raises(ValueError):
            CandidateFace.from_colors(['R'] * 8)

    def test_colors_and_center(self):
        face = CandidateFace.from_colors(list("WRGOBYWRG"))
        assert face.colors == list("WRGOBYWRG")
        assert face.center_color == 'B'

    def test_with_colors_keeps_samples(self):
        samples = [Sample.from_rgb((255, 0, 0))] * 9
        face = CandidateFace.from_colors(['O'] * 9, samples)
        relabeled = face.with_colors(['R'] * 9)
        assert relabeled.colors == ['R'] * 9
        assert relabeled.stickers[0].sample is samples[0]
        assert face.colors == ['O'] * 9

    def test_sample_from_rgb_white(self):
        s = Sample.from_rgb((255, 255, 255))
        assert s.lab[0] == pytest.approx(100.0, abs=0.5)
        assert s.hsv[1] == 0
