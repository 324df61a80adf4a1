from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from color_math import rgb_to_hsv, rgb_to_lab
from scanner_config import CENTER_INDEX, STICKERS_PER_FACE


@dataclass(frozen=True)
class Point2D:
    x: float
    y: float


@dataclass(frozen=True)
class Quad:
    # top-left, top-right, bottom-right, bottom-left
    corners: Tuple[Point2D, Point2D, Point2D, Point2D]

    @classmethod
    def from_points(cls, pts: Sequence[Sequence[float]]) -> "Quad":
        if len(pts) != 4:
            raise ValueError(f"Quad needs 4 corners, got {len(pts)}")
        return cls(tuple(Point2D(float(p[0]), float(p[1])) for p in pts))

    def as_array(self) -> np.ndarray:
        return np.array([[c.x, c.y] for c in self.corners], dtype=np.float32)

    @property
    def area(self) -> float:
        # shoelace
        s = 0.0
        for i in range(4):
            a = self.corners[i]
            b = self.corners[(i + 1) % 4]
            s += a.x * b.y - b.x * a.y
        return abs(s) / 2.0

    @property
    def center(self) -> Point2D:
        return Point2D(sum(c.x for c in self.corners) / 4.0,
                       sum(c.y for c in self.corners) / 4.0)

    def is_finite(self) -> bool:
        return all(math.isfinite(c.x) and math.isfinite(c.y) for c in self.corners)

    def contains(self, p: Point2D) -> bool:
        for i in range(4):
            a = self.corners[i]
            b = self.corners[(i + 1) % 4]
            if (b.x - a.x) * (p.y - a.y) - (b.y - a.y) * (p.x - a.x) < 0:
                return False
        return True

    def max_corner_shift(self, other: "Quad") -> float:
        """Largest per-axis displacement between matching corners."""
        return max(max(abs(a.x - b.x), abs(a.y - b.y))
                   for a, b in zip(self.corners, other.corners))


@dataclass(frozen=True)
class BlobCandidate:
    center: Point2D
    area: float


@dataclass(frozen=True)
class Sample:
    rgb: Tuple[float, float, float]
    lab: Tuple[float, float, float]
    hsv: Tuple[int, int, int] = (0, 0, 0)

    @classmethod
    def from_rgb(cls, rgb: Sequence[float]) -> "Sample":
        rgb = (float(rgb[0]), float(rgb[1]), float(rgb[2]))
        return cls(rgb=rgb, lab=rgb_to_lab(rgb), hsv=rgb_to_hsv(rgb))


@dataclass(frozen=True)
class ClassifiedSticker:
    sample: Sample
    color: str


@dataclass
class CandidateFace:
    stickers: List[ClassifiedSticker]

    def __post_init__(self):
        if len(self.stickers) != STICKERS_PER_FACE:
            raise ValueError(f"A face has {STICKERS_PER_FACE} stickers, got {len(self.stickers)}")

    @classmethod
    def from_colors(cls, colors: Sequence[str],
                    samples: Optional[Sequence[Sample]] = None) -> "CandidateFace":
        if samples is None:
            samples = [Sample(rgb=(0.0, 0.0, 0.0), lab=(0.0, 0.0, 0.0))] * len(colors)
        if len(samples) != len(colors):
            raise ValueError("colors and samples differ in length")
        return cls([ClassifiedSticker(s, c) for s, c in zip(samples, colors)])

    @property
    def colors(self) -> List[str]:
        return [s.color for s in self.stickers]

    @property
    def center_color(self) -> str:
        return self.stickers[CENTER_INDEX].color

    def with_colors(self, colors: Sequence[str]) -> "CandidateFace":
        return CandidateFace.from_colors(colors, [s.sample for s in self.stickers])


@dataclass
class AcceptedFace:
    name: str                       # U,R,F,D,L,B
    stickers: List[ClassifiedSticker]
    timestamp_ms: float

    @property
    def colors(self) -> List[str]:
        return [s.color for s in self.stickers]

    @property
    def center_color(self) -> str:
        return self.stickers[CENTER_INDEX].color


class ScanFailure(enum.Enum):
    NO_DETECTION = "no_detection"
    SAMPLE_FAILURE = "sample_failure"
    LOW_CONFIDENCE = "low_confidence"
    VALIDATION_FAILURE = "validation_failure"
    DUPLICATE_CENTER = "duplicate_center"


@dataclass
class ValidationResult:
    ok: bool
    face: Optional[CandidateFace] = None
    reason: str = ""
    failure: Optional[ScanFailure] = None


@dataclass
class ScanStatus:
    """Read-only projection of one processed frame, for UI feedback."""
    detected: bool = False
    quad: Optional[Quad] = None
    live_colors: Optional[List[str]] = None
    voted_colors: Optional[List[str]] = None
    stable_ms: float = 0.0
    stability: float = 0.0
    cooldown_active: bool = False
    accepted: Optional[AcceptedFace] = None
    failure: Optional[ScanFailure] = None
    reason: str = ""
    guidance: str = ""
    scanned_count: int = 0
    missing_faces: List[str] = field(default_factory=list)
