"""
cube_faces.py — accepted faces and the 54-character facelet string
===================================================================

`ScannedCube` is the minimal cube-state collaborator the scanner needs: it
keeps at most one `AcceptedFace` per face name, answers "which centers are
still missing" and assembles the solver input once all six faces are in.

Facelet string format: faces in kociemba order U, R, F, D, L, B, nine
stickers each (row-major), every character being the face letter whose
center color matches that sticker.

-------------------------------------------------------------------------------

Copyright (c) 2025 Facundo Gauna & Ulises Carnevale. Licensed under MIT License.
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from scan_types import AcceptedFace, CandidateFace, ClassifiedSticker, Sample
from scanner_config import (
    CENTER_TO_FACE,
    COLORS,
    FACE_NAMES,
    FACE_ORDER,
    STICKERS_PER_COLOR,
    STICKERS_PER_FACE,
)

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def face_for_center(color: str) -> str:
    try:
        return CENTER_TO_FACE[color]
    except KeyError:
        raise ValueError(f"Unknown center color: {color!r}") from None


def build_facelet_string(faces: Mapping[str, AcceptedFace]) -> Optional[str]:
    """
    Build the solver string from six faces keyed by face name.
    Returns None when a face is missing or a sticker color has no center.
    """
    color_to_face = {f.center_color: name for name, f in faces.items()}
    chars: List[str] = []
    for name in FACE_ORDER:
        face = faces.get(name)
        if face is None:
            logger.error("facelet string: face %s missing", name)
            return None
        for color in face.colors:
            mapped = color_to_face.get(color)
            if mapped is None:
                logger.error("facelet string: color %r has no center face", color)
                return None
            chars.append(mapped)
    if len(chars) != STICKERS_PER_FACE * len(FACE_ORDER):
        return None
    return ''.join(chars)


def validate_faces(faces: Mapping[str, AcceptedFace]) -> Tuple[bool, List[str]]:
    errors: List[str] = []
    centers = {f.center_color for f in faces.values()}
    if len(centers) != len(FACE_ORDER):
        errors.append(f"Expected 6 unique center colors, got {len(centers)}")

    counts = Counter()
    for f in faces.values():
        counts.update(f.colors)
    for color in COLORS:
        if counts.get(color, 0) != STICKERS_PER_COLOR:
            errors.append(f"Color {color}: {counts.get(color, 0)} stickers (expected {STICKERS_PER_COLOR})")
    return not errors, errors


class ScannedCube:
    def __init__(self):
        self.faces: Dict[str, AcceptedFace] = {}

    # --------- queries ----------

    @property
    def scanned_count(self) -> int:
        return len(self.faces)

    @property
    def is_complete(self) -> bool:
        return len(self.faces) == len(FACE_ORDER)

    def accepted_faces(self) -> List[AcceptedFace]:
        return list(self.faces.values())

    def scanned_centers(self) -> List[str]:
        return [f.center_color for f in self.faces.values()]

    def can_scan(self, center_color: str) -> bool:
        return center_color not in self.scanned_centers()

    def missing_faces(self) -> List[str]:
        """Human-readable names of faces not scanned yet, e.g. ['Up', 'Front']."""
        scanned = set(self.scanned_centers())
        return [FACE_NAMES[CENTER_TO_FACE[c]] for c in ('W', 'R', 'G', 'O', 'B', 'Y') if c not in scanned]

    def validate(self) -> Tuple[bool, List[str]]:
        if not self.is_complete:
            return False, [f"Only {self.scanned_count}/6 faces scanned"]
        return validate_faces(self.faces)

    def facelet_string(self) -> Optional[str]:
        if not self.is_complete:
            return None
        ok, errors = self.validate()
        if not ok:
            for e in errors:
                logger.warning("cube not valid: %s", e)
            return None
        return build_facelet_string(self.faces)

    # --------- mutations ----------

    def make_face(self, candidate: CandidateFace, timestamp_ms: Optional[float] = None) -> AcceptedFace:
        if timestamp_ms is None:
            timestamp_ms = time.time() * 1000.0
        return AcceptedFace(name=face_for_center(candidate.center_color),
                            stickers=list(candidate.stickers),
                            timestamp_ms=float(timestamp_ms))

    def add_face(self, face: AcceptedFace) -> bool:
        """Store a new face; refuses a center that is already scanned."""
        if len(face.stickers) != STICKERS_PER_FACE:
            return False
        if not self.can_scan(face.center_color):
            return False
        self.faces[face.name] = face
        logger.info("face %s (%s) stored, %d/6", face.name, FACE_NAMES[face.name], self.scanned_count)
        return True

    def replace_face(self, face: AcceptedFace) -> None:
        """Explicit "update existing face" action for a duplicate center."""
        if len(face.stickers) != STICKERS_PER_FACE:
            raise ValueError(f"A face has {STICKERS_PER_FACE} stickers")
        self.faces[face.name] = face
        logger.info("face %s replaced", face.name)

    def remove_face(self, name: str) -> bool:
        return self.faces.pop(name, None) is not None

    def set_all_faces(self, face_colors: Mapping[str, Sequence[str]]) -> None:
        """Manual entry: face name -> nine colors. Replaces everything."""
        blank = Sample(rgb=(0.0, 0.0, 0.0), lab=(0.0, 0.0, 0.0))
        now = time.time() * 1000.0
        faces: Dict[str, AcceptedFace] = {}
        for name, colors in face_colors.items():
            if name not in FACE_ORDER:
                raise ValueError(f"Unknown face: {name!r}")
            if len(colors) != STICKERS_PER_FACE:
                raise ValueError(f"Face {name} needs {STICKERS_PER_FACE} colors")
            faces[name] = AcceptedFace(name=name,
                                       stickers=[ClassifiedSticker(blank, c) for c in colors],
                                       timestamp_ms=now)
        self.faces = faces

    def reset(self) -> None:
        self.faces = {}
