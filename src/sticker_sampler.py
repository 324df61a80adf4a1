"""
sticker_sampler.py — rectify a detected face and measure one color per cell.

The quad is warped to a `WARP_SIZE` square; every cell center is sampled on a
small sub-grid and reduced with a luminance-trimmed mean: the darkest
`TRIM_DARK_FRAC` (shadows) and brightest `TRIM_BRIGHT_FRAC` (specular
highlights) sub-samples are dropped before averaging RGB.

-------------------------------------------------------------------------------

Copyright (c) 2025 Facundo Gauna & Ulises Carnevale. Licensed under MIT License.
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Tuple, Union

import cv2
import numpy as np

from color_math import luminance
from frames import Frame
from scan_types import Quad, Sample
from scanner_config import (
    GRID_SIZE,
    MIN_QUAD_AREA,
    SAMPLE_RADIUS,
    TRIM_BRIGHT_FRAC,
    TRIM_DARK_FRAC,
    WARP_SIZE,
)

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_NEUTRAL_RGB = (128.0, 128.0, 128.0)


def trimmed_mean_rgb(pixels_rgb: np.ndarray,
                     trim_dark: float = TRIM_DARK_FRAC,
                     trim_bright: float = TRIM_BRIGHT_FRAC) -> Tuple[float, float, float]:
    """
    pixels_rgb: Nx3 array. Sort by luma, keep [floor(N*dark), ceil(N*(1-bright)))
    and average. Returns mid gray for an empty input.
    """
    px = np.asarray(pixels_rgb, dtype=float).reshape(-1, 3)
    n = px.shape[0]
    if n == 0:
        return _NEUTRAL_RGB
    luma = luminance(px.T)
    order = np.argsort(luma, kind="stable")
    lo = int(math.floor(n * trim_dark))
    hi = int(math.ceil(n * (1.0 - trim_bright)))
    kept = px[order[lo:hi]]
    if kept.shape[0] == 0:
        return _NEUTRAL_RGB
    mean = kept.mean(axis=0)
    return float(mean[0]), float(mean[1]), float(mean[2])


class StickerSampler:
    def __init__(self, warp_size: int = WARP_SIZE, radius: int = SAMPLE_RADIUS):
        self.warp_size = int(warp_size)
        self.radius = int(radius)
        s = float(self.warp_size)
        self._dst = np.array([[0, 0], [s, 0], [s, s], [0, s]], dtype=np.float32)

    def warp(self, frame: Frame, quad: Quad) -> Optional[np.ndarray]:
        """Fronto-parallel BGR view of the face, or None for a degenerate quad."""
        if not quad.is_finite() or quad.area < MIN_QUAD_AREA:
            return None
        m = cv2.getPerspectiveTransform(quad.as_array(), self._dst)
        if m is None or not np.all(np.isfinite(m)):
            return None
        return cv2.warpPerspective(frame.bgr, m, (self.warp_size, self.warp_size))

    def _cell_pixels(self, warped_rgb: np.ndarray, cx: int, cy: int) -> np.ndarray:
        h, w = warped_rgb.shape[:2]
        step = max(1, int(math.floor(self.radius / 2.5)))
        offsets = range(-self.radius, self.radius + 1, step)
        pts = [(cx + dx, cy + dy) for dy in offsets for dx in offsets
               if 0 <= cx + dx < w and 0 <= cy + dy < h]
        if not pts:
            return np.empty((0, 3), dtype=float)
        xs = np.array([p[0] for p in pts])
        ys = np.array([p[1] for p in pts])
        return warped_rgb[ys, xs].astype(float)

    def sample_warped(self, warped_bgr: np.ndarray) -> List[Sample]:
        rgb = cv2.cvtColor(warped_bgr, cv2.COLOR_BGR2RGB)
        cell = self.warp_size / float(GRID_SIZE)
        samples: List[Sample] = []
        for row in range(GRID_SIZE):
            for col in range(GRID_SIZE):
                cx = int(math.floor(col * cell + cell / 2.0))
                cy = int(math.floor(row * cell + cell / 2.0))
                mean = trimmed_mean_rgb(self._cell_pixels(rgb, cx, cy))
                samples.append(Sample.from_rgb(mean))
        return samples

    def sample(self, frame: Union[Frame, np.ndarray], quad: Quad) -> Optional[List[Sample]]:
        """
        Nine row-major samples for the face bounded by `quad`, or None when the
        transform cannot be computed.
        """
        if not isinstance(frame, Frame):
            frame = Frame.from_array(frame)
        try:
            warped = self.warp(frame, quad)
        except cv2.error as e:
            logger.debug("perspective warp failed: %s", e)
            return None
        if warped is None:
            return None
        return self.sample_warped(warped)
