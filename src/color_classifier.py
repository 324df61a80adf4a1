"""
color_classifier.py — map the nine samples of one face to canonical colors
==========================================================================

Classification works on the whole face at once because the neighbours are
the best calibration we have: one face is lit by one light.

## Algorithm

1. One reference Lab per color, derived from `REFERENCE_RGB`.
2. Per sample: CIEDE2000 to every reference; nearest wins and the full
   distance map is kept. When even the nearest reference is further than
   `DISTANCE_FALLBACK_THRESHOLD`, a coarse HSV rule set decides instead.
3. Contextual refinement of the confusable pairs (W/Y, R/O, O/Y), see
   `resolve_confusable_pair`.
4. Low-saturation guard: very desaturated samples are White regardless of
   their Lab distances.

The procedure is deterministic: identical samples give identical colors.

-------------------------------------------------------------------------------

Copyright (c) 2025 Facundo Gauna & Ulises Carnevale. Licensed under MIT License.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from color_math import ciede2000, rgb_to_lab
from scan_types import Sample
from scanner_config import (
    COLORS,
    CONFUSABLE_PAIRS,
    CONFUSABLE_MIN_GAP,
    CONFUSABLE_SPREAD_THRESHOLD,
    DISTANCE_FALLBACK_THRESHOLD,
    REFERENCE_RGB,
    WHITE_GUARD_SAT,
    WHITE_GUARD_SAT_ANY,
    WHITE_GUARD_VAL,
)

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

DistanceMap = Dict[str, float]


def hsv_fallback(hsv: Sequence[int]) -> str:
    """Coarse HSV rules for samples far from every reference (extreme light)."""
    h, s, v = hsv[0], hsv[1], hsv[2]
    if s < 55 and v > 150:
        return 'W'
    if 90 <= h <= 130 and s > 40:
        return 'B'
    if 36 <= h <= 85 and s > 40:
        return 'G'
    if 21 <= h <= 38 and s > 60 and v > 140:
        return 'Y'
    if (h <= 25 or h >= 165) and s > 60:
        return 'O' if 10 <= h <= 25 else 'R'
    return 'W'


def is_white_by_saturation(hsv: Sequence[int]) -> bool:
    s, v = hsv[1], hsv[2]
    return (s < WHITE_GUARD_SAT and v > WHITE_GUARD_VAL) or s < WHITE_GUARD_SAT_ANY


def _closer_of(pair: Tuple[str, str], members: Sequence[int],
               distances: Sequence[Mapping[str, float]]) -> str:
    a, b = pair
    avg_a = sum(distances[i][a] for i in members) / len(members)
    avg_b = sum(distances[i][b] for i in members) / len(members)
    return a if avg_a <= avg_b else b


def resolve_confusable_pair(colors: Sequence[str],
                            distances: Sequence[Mapping[str, float]],
                            pair: Tuple[str, str],
                            spread_threshold: float = CONFUSABLE_SPREAD_THRESHOLD,
                            min_gap: float = CONFUSABLE_MIN_GAP) -> List[str]:
    """
    Re-split the stickers currently assigned to either color of `pair`.

    score = d(A) - d(B) per member. A narrow spread, or no gap between sorted
    scores wider than `min_gap`, means one physical color seen under uneven
    light: every member goes to whichever reference is closer on average.
    Otherwise the group is cut at the widest gap and each side takes the
    reference it is closer to on average, so both sides may end up the same.
    """
    result = list(colors)
    members = [i for i, c in enumerate(colors) if c in pair]
    if len(members) < 2:
        return result

    scored = sorted((distances[i][pair[0]] - distances[i][pair[1]], i) for i in members)
    spread = scored[-1][0] - scored[0][0]

    split = 0
    widest = 0.0
    for k in range(len(scored) - 1):
        gap = scored[k + 1][0] - scored[k][0]
        if gap > widest:
            widest = gap
            split = k

    if spread < spread_threshold or widest <= min_gap:
        winner = _closer_of(pair, members, distances)
        for i in members:
            result[i] = winner
        return result

    for side in ([i for _, i in scored[:split + 1]], [i for _, i in scored[split + 1:]]):
        winner = _closer_of(pair, side, distances)
        for i in side:
            result[i] = winner
    return result


class ColorClassifier:
    def __init__(self,
                 reference_rgb: Optional[Mapping[str, Sequence[int]]] = None,
                 confusable_pairs: Optional[Sequence[Tuple[str, str]]] = None,
                 spread_threshold: float = CONFUSABLE_SPREAD_THRESHOLD,
                 min_gap: float = CONFUSABLE_MIN_GAP,
                 fallback_threshold: float = DISTANCE_FALLBACK_THRESHOLD,
                 white_guard: bool = True):
        refs = reference_rgb if reference_rgb is not None else REFERENCE_RGB
        missing = [c for c in COLORS if c not in refs]
        if missing:
            raise ValueError(f"reference colors missing: {missing}")
        self.references_lab: Dict[str, Tuple[float, float, float]] = {
            c: rgb_to_lab(refs[c]) for c in COLORS
        }
        self.confusable_pairs = list(confusable_pairs if confusable_pairs is not None else CONFUSABLE_PAIRS)
        self.spread_threshold = float(spread_threshold)
        self.min_gap = float(min_gap)
        self.fallback_threshold = float(fallback_threshold)
        self.white_guard = white_guard

    def distance_map(self, lab: Sequence[float]) -> DistanceMap:
        return {c: ciede2000(lab, ref) for c, ref in self.references_lab.items()}

    def nearest(self, sample: Sample) -> Tuple[str, DistanceMap]:
        dists = self.distance_map(sample.lab)
        best = min(COLORS, key=lambda c: dists[c])
        if dists[best] > self.fallback_threshold:
            fallback = hsv_fallback(sample.hsv)
            logger.debug("sample %s far from references (%.1f), HSV fallback -> %s",
                         sample.rgb, dists[best], fallback)
            return fallback, dists
        return best, dists

    def classify_detailed(self, samples: Sequence[Sample]) -> Tuple[List[str], List[DistanceMap]]:
        colors: List[str] = []
        distances: List[DistanceMap] = []
        for s in samples:
            color, dists = self.nearest(s)
            colors.append(color)
            distances.append(dists)

        for pair in self.confusable_pairs:
            colors = resolve_confusable_pair(colors, distances, pair,
                                             self.spread_threshold, self.min_gap)

        if self.white_guard:
            colors = ['W' if is_white_by_saturation(s.hsv) else c for s, c in zip(samples, colors)]
        return colors, distances

    def classify(self, samples: Sequence[Sample]) -> List[str]:
        """Nine samples in, nine color letters out (row-major)."""
        colors, _ = self.classify_detailed(samples)
        return colors
