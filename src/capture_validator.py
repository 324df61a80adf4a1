"""
capture_validator.py — last checks before a voted face is committed
===================================================================

* `validate_face(colors)` — sanity rules for a single face:

  * nine identical colors are only plausible on the White face,
  * no color other than the center's may appear more than 5 times,
  * a non-White face may hold at most 4 White stickers.

* `cross_face_correction(face, accepted)` — soft repair using the faces
  already accepted. Global color counts should end at 9 each; when a color
  is over 9 and its confusable partner under 9, the smallest number of
  non-center stickers of the over-counted color on the *new* face are moved
  to the partner. It never adds or removes stickers and never pushes any
  count above the largest count before correction.

* `CaptureValidator.validate(candidate, accepted)` — both of the above plus
  the one-capture-per-center rule; a duplicate center is reported as
  `DUPLICATE_CENTER` so the UI can offer "update existing face".

-------------------------------------------------------------------------------

Copyright (c) 2025 Facundo Gauna & Ulises Carnevale. Licensed under MIT License.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Iterable, List, Optional, Sequence, Tuple

from scan_types import AcceptedFace, CandidateFace, ScanFailure, ValidationResult
from scanner_config import (
    CENTER_INDEX,
    COLORS,
    CONFUSABLE_PAIRS,
    MAX_NON_CENTER_COLOR,
    MAX_WHITE_ON_COLORED,
    STICKERS_PER_COLOR,
    STICKERS_PER_FACE,
)

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def validate_face(colors: Sequence[str]) -> Tuple[bool, str]:
    if len(colors) != STICKERS_PER_FACE:
        return False, f"Not {STICKERS_PER_FACE} stickers"

    counts = Counter(colors)
    center = colors[CENTER_INDEX]

    if len(counts) == 1 and center != 'W':
        return False, "All same color (not white)"

    for color in COLORS:
        if color != center and counts.get(color, 0) > MAX_NON_CENTER_COLOR:
            return False, f"Too many {color}: {counts[color]}"

    if center != 'W' and counts.get('W', 0) > MAX_WHITE_ON_COLORED:
        return False, "Too much white on colored face"

    return True, ""


def _is_confusable(a: str, b: str, pairs: Sequence[Tuple[str, str]]) -> bool:
    return any((a, b) == p or (b, a) == p for p in pairs)


def cross_face_correction(colors: Sequence[str],
                          accepted_colors: Iterable[Sequence[str]],
                          pairs: Sequence[Tuple[str, str]] = CONFUSABLE_PAIRS,
                          target: int = STICKERS_PER_COLOR) -> List[str]:
    """Return the candidate's colors after the soft global-count repair."""
    counts = Counter({c: 0 for c in COLORS})
    for face in accepted_colors:
        counts.update(face)
    counts.update(colors)

    corrected = list(colors)
    for over in COLORS:
        for under in COLORS:
            if counts[over] <= target or counts[under] >= target:
                continue
            if not _is_confusable(over, under, pairs):
                continue
            needed = min(counts[over] - target, target - counts[under])
            swapped = 0
            for i, c in enumerate(corrected):
                if swapped >= needed:
                    break
                if i == CENTER_INDEX or c != over:
                    continue
                corrected[i] = under
                swapped += 1
            if swapped:
                logger.info("cross-face correction: %d sticker(s) %s -> %s", swapped, over, under)
                counts[over] -= swapped
                counts[under] += swapped
    return corrected


class CaptureValidator:
    def __init__(self, pairs: Optional[Sequence[Tuple[str, str]]] = None, correct: bool = True):
        self.pairs = list(pairs if pairs is not None else CONFUSABLE_PAIRS)
        self.correct = correct

    def validate(self, candidate: CandidateFace,
                 accepted_faces: Iterable[AcceptedFace] = ()) -> ValidationResult:
        accepted = list(accepted_faces)
        ok, reason = validate_face(candidate.colors)
        if not ok:
            return ValidationResult(ok=False, face=None, reason=reason,
                                    failure=ScanFailure.VALIDATION_FAILURE)

        center = candidate.center_color
        if any(f.center_color == center for f in accepted):
            return ValidationResult(ok=False, face=candidate,
                                    reason=f"Center {center} already captured",
                                    failure=ScanFailure.DUPLICATE_CENTER)

        face = candidate
        if self.correct and accepted:
            fixed = cross_face_correction(candidate.colors, [f.colors for f in accepted], self.pairs)
            if fixed != candidate.colors:
                face = candidate.with_colors(fixed)
        return ValidationResult(ok=True, face=face)
