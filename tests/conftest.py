"""Shared fixtures: synthetic cube faces drawn with OpenCV."""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np
import pytest

from scan_types import Quad
from scanner_config import REFERENCE_RGB

# A plausible Front face: center Red, no rule broken.
FRONT_COLORS = ['R', 'O', 'Y', 'G', 'R', 'B', 'W', 'R', 'O']


@dataclass
class SyntheticFace:
    image: np.ndarray
    grid: Quad                                  # outer sticker edges, TL TR BR BL
    centers: List[Tuple[float, float]]          # sticker centers, row-major
    colors: List[str]


def render_face(colors: Sequence[str] = FRONT_COLORS,
                size: Tuple[int, int] = (640, 480),
                sticker: int = 70,
                gap: int = 10,
                bordered: bool = True,
                origin: Optional[Tuple[int, int]] = None,
                background: int = 50) -> SyntheticFace:
    """
    Draw a 3x3 face. Bordered faces get a black cube body around and between
    the stickers; borderless faces sit directly on the background.
    """
    w, h = size
    img = np.full((h, w, 3), background, dtype=np.uint8)
    span = 3 * sticker + 2 * gap
    if origin is None:
        origin = ((w - span) // 2, (h - span) // 2)
    x0, y0 = origin

    if bordered:
        pad = gap
        cv2.rectangle(img, (x0 - pad, y0 - pad), (x0 + span + pad - 1, y0 + span + pad - 1), (0, 0, 0), -1)

    centers = []
    for i, c in enumerate(colors):
        row, col = divmod(i, 3)
        x = x0 + col * (sticker + gap)
        y = y0 + row * (sticker + gap)
        r, g, b = REFERENCE_RGB[c]
        cv2.rectangle(img, (x, y), (x + sticker - 1, y + sticker - 1), (b, g, r), -1)
        centers.append((x + sticker / 2.0, y + sticker / 2.0))

    grid = Quad.from_points([(x0, y0), (x0 + span, y0), (x0 + span, y0 + span), (x0, y0 + span)])
    return SyntheticFace(image=img, grid=grid, centers=centers, colors=list(colors))


class FixedDetector:
    """Detector stand-in that always reports the same quad (or None)."""

    def __init__(self, quad: Optional[Quad]):
        self.quad = quad
        self.last_strategy = "fixed" if quad is not None else None

    def detect(self, frame):
        return self.quad


@pytest.fixture
def front_face() -> SyntheticFace:
    return render_face()


@pytest.fixture
def blank_frame() -> np.ndarray:
    return np.full((480, 640, 3), 50, dtype=np.uint8)
