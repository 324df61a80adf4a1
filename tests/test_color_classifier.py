"""Tests for CIEDE2000 classification and confusable-pair refinement."""

import pytest

from color_classifier import (
    ColorClassifier,
    hsv_fallback,
    is_white_by_saturation,
    resolve_confusable_pair,
)
from scan_types import Sample
from scanner_config import COLORS, REFERENCE_RGB


def ref(color):
    return Sample.from_rgb(REFERENCE_RGB[color])


@pytest.fixture
def classifier():
    return ColorClassifier()


class TestNearest:
    @pytest.mark.parametrize("color", COLORS)
    def test_reference_maps_to_itself(self, classifier, color):
        best, dists = classifier.nearest(ref(color))
        assert best == color
        assert dists[color] == pytest.approx(0.0, abs=1e-6)
        assert set(dists) == set(COLORS)

    def test_far_sample_uses_hsv_rules(self):
        strict = ColorClassifier(fallback_threshold=-1.0)
        assert strict.nearest(ref('B'))[0] == 'B'
        assert strict.nearest(ref('G'))[0] == 'G'


class TestClassify:
    def test_every_output_is_canonical(self, classifier):
        samples = [Sample.from_rgb(rgb) for rgb in
                   [(0, 0, 0), (255, 255, 255), (90, 40, 200), (10, 250, 240),
                    (128, 128, 0), (255, 0, 255), (30, 30, 30), (200, 120, 60), (70, 10, 10)]]
        assert all(c in COLORS for c in classifier.classify(samples))

    def test_reference_face(self, classifier):
        colors = ['R', 'O', 'Y', 'G', 'R', 'B', 'W', 'R', 'O']
        assert classifier.classify([ref(c) for c in colors]) == colors

    def test_deterministic(self, classifier):
        samples = [Sample.from_rgb((200, 100 + i * 10, 20)) for i in range(9)]
        assert classifier.classify(samples) == classifier.classify(samples)

    def test_desaturated_sample_forced_white(self, classifier):
        samples = [ref('B')] * 8 + [Sample.from_rgb((170, 175, 190))]
        assert classifier.classify(samples)[8] == 'W'


class TestConfusablePair:
    def test_split_at_gap(self):
        # two stickers, both labelled Yellow, 30 units apart in preference score
        colors = ['Y', 'Y']
        distances = [{'W': 5.0, 'Y': 20.0}, {'W': 20.0, 'Y': 5.0}]
        assert resolve_confusable_pair(colors, distances, ('W', 'Y')) == ['W', 'Y']

    def test_b_gap_of_fifteen_splits_red_and_orange(self, classifier):
        # Lab b of reference Red and Orange differ by well over 15
        red, orange = ref('R'), ref('O')
        assert abs(red.lab[2] - orange.lab[2]) > 15
        dists = [classifier.distance_map(red.lab), classifier.distance_map(orange.lab)]
        out = resolve_confusable_pair(['R', 'R'], dists, ('R', 'O'))
        assert out == ['R', 'O']

    def test_narrow_spread_goes_to_closer_color(self, classifier):
        samples = [ref('O')] * 3
        dists = [classifier.distance_map(s.lab) for s in samples]
        out = resolve_confusable_pair(['R', 'O', 'O'], dists, ('R', 'O'))
        assert out == ['O', 'O', 'O']

    def test_single_member_untouched(self):
        colors = ['R', 'G', 'B']
        distances = [{'R': 1.0, 'O': 2.0}, {}, {}]
        assert resolve_confusable_pair(colors, distances, ('R', 'O')) == colors

    def test_non_members_untouched(self, classifier):
        colors = ['R', 'G', 'O', 'B']
        samples = [ref(c) for c in colors]
        dists = [classifier.distance_map(s.lab) for s in samples]
        out = resolve_confusable_pair(colors, dists, ('R', 'O'))
        assert out[1] == 'G' and out[3] == 'B'

    def test_spread_without_clear_gap_goes_by_average(self):
        # scores -10..14 in steps of 3: wide spread, no gap above the minimum
        scores = [-10 + 3 * k for k in range(9)]
        distances = [{'R': 10.0 + s, 'O': 10.0} for s in scores]
        out = resolve_confusable_pair(['R'] * 9, distances, ('R', 'O'))
        assert out == ['O'] * 9

    def test_both_sides_closer_to_same_color(self):
        # wide gap between 22 and 35, but every member is far closer to Yellow
        scores = [20.0, 21.0, 22.0, 35.0, 36.0]
        distances = [{'W': 5.0 + s, 'Y': 5.0} for s in scores]
        out = resolve_confusable_pair(['Y'] * 5, distances, ('W', 'Y'))
        assert out == ['Y'] * 5


def _gradient(start, end, n=9):
    return [Sample.from_rgb(tuple(round(a + (b - a) * k / (n - 1)) for a, b in zip(start, end)))
            for k in range(n)]


def _jitter(rgb, offset):
    return Sample.from_rgb(tuple(min(255, max(0, c + d)) for c, d in zip(rgb, offset)))


class TestUnevenLight:
    def test_yellow_face_under_gradient(self, classifier):
        samples = _gradient((255, 220, 40), (195, 160, 5))
        assert [classifier.nearest(s)[0] for s in samples] == ['Y'] * 9
        assert classifier.classify(samples) == ['Y'] * 9

    def test_red_face_under_gradient(self, classifier):
        samples = _gradient((200, 25, 55), (140, 10, 35))
        assert [classifier.nearest(s)[0] for s in samples] == ['R'] * 9
        assert classifier.classify(samples) == ['R'] * 9

    def test_mixed_red_orange_with_noise(self, classifier):
        colors = ['R', 'O', 'R', 'O', 'B', 'O', 'R', 'O', 'R']
        offsets = [(10, -8, 6), (-10, 5, 0), (-6, 10, -10), (4, -10, 8),
                   (0, 0, 0), (-8, 7, 10), (8, -5, -7), (-3, 9, 4), (-10, 10, 10)]
        samples = [_jitter(REFERENCE_RGB[c], d) for c, d in zip(colors, offsets)]
        assert classifier.classify(samples) == colors


class TestHsvRules:
    @pytest.mark.parametrize("hsv,expected", [
        ((110, 200, 200), 'B'),
        ((60, 200, 200), 'G'),
        ((30, 200, 200), 'Y'),
        ((15, 200, 200), 'O'),
        ((5, 200, 200), 'R'),
        ((175, 200, 200), 'R'),
        ((0, 20, 220), 'W'),
    ])
    def test_rules(self, hsv, expected):
        assert hsv_fallback(hsv) == expected

    def test_white_by_saturation(self):
        assert is_white_by_saturation((0, 40, 200))
        assert is_white_by_saturation((0, 20, 50))
        assert not is_white_by_saturation((0, 40, 100))
        assert not is_white_by_saturation((0, 200, 200))
