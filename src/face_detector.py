"""
face_detector.py — locate the 3x3 sticker grid of one cube face in a frame
==========================================================================

`FaceDetector.detect(frame)` returns the `Quad` bounding the sticker grid, or
`None` when the frame holds no plausible face. Two strategies are tried in
order and the first hit wins; there is no scoring across strategies.

## Strategies

* **Edge-based grid** (`detect_by_edge_grid`) — bordered cubes.

  * grayscale -> Gaussian blur -> Canny -> dilate -> contour tree,
  * sticker candidates are small, convex, near-square 4-point contours
    (0.1%..4% of the frame),
  * candidates of similar size are clustered by proximity and each large
    enough cluster is binned into a 3x3 grid using its bounding span,
  * the grid quad is the span box pushed outwards by `GRID_MARGIN_CELLS`
    cell widths so it covers the sticker-to-border gap,
  * fallback: the largest square-ish contour (>= 3% of the frame) that
    contains a few sticker candidates.

* **Color-blob grid** (`detect_by_color_blobs`) — borderless cubes where
  edges are weak.

  * downscale to `BLOB_WORK_WIDTH` px, HSV masks for "saturated" and
    "white" pixels, close then open,
  * blobs filtered by area, circularity and aspect ratio,
  * lattice fit: every blob is tried as the grid center, pairs of nearby
    blobs as the two axis vectors, remaining blobs snap to the nearest
    lattice cell under a tolerance; the best fit (cells filled, centrality)
    wins.

## Limitations

* Faces seen at a strong angle break the "roughly square" tests.
* The blob strategy merges stickers separated by less than about the
  closing kernel (a few px at work resolution).
* Busy backgrounds with many small squares can produce false clusters;
  `TemporalConsensus` and `StabilityGate` absorb most single-frame mistakes.

-------------------------------------------------------------------------------

Copyright (c) 2025 Facundo Gauna & Ulises Carnevale. Licensed under MIT License.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from frames import Frame
from scan_types import BlobCandidate, Point2D, Quad
from scanner_config import (
    APPROX_EPSILON_FRAC,
    BLOB_AREA_RATIO,
    BLOB_AXIS_ANGLE_DEG,
    BLOB_AXIS_CANDIDATES,
    BLOB_AXIS_LENGTH_RATIO,
    BLOB_BLUR_KSIZE,
    BLOB_CELL_TOLERANCE,
    BLOB_CENTER_WEIGHT,
    BLOB_CLOSE_KSIZE,
    BLOB_FILL_WEIGHT,
    BLOB_MAX_AREA_FRAC,
    BLOB_MIN_ASPECT,
    BLOB_MIN_AREA_FRAC,
    BLOB_MIN_CIRCULARITY,
    BLOB_MIN_COUNT,
    BLOB_MIN_FILLED,
    BLOB_MIN_NEIGHBORS,
    BLOB_NEIGHBOR_MAX,
    BLOB_NEIGHBOR_MIN,
    BLOB_OPEN_KSIZE,
    BLOB_WORK_WIDTH,
    CANDIDATE_AREA_SPREAD,
    CANNY_HIGH,
    CANNY_LOW,
    CLUSTER_DISTANCE_FACTOR,
    EDGE_BLUR_KSIZE,
    EDGE_DILATE_KSIZE,
    FALLBACK_MIN_AREA_FRAC,
    FALLBACK_MIN_INNER,
    FALLBACK_SQUARE_RATIO,
    GRID_MARGIN_CELLS,
    GRID_MIN_ASPECT,
    GRID_MIN_FILLED,
    GRID_SIZE,
    MIN_CLUSTER_SIZE,
    SATURATED_HSV_HIGH,
    SATURATED_HSV_LOW,
    STICKER_MAX_AREA_FRAC,
    STICKER_MIN_AREA_FRAC,
    STICKER_SQUARE_RATIO,
    WHITE_HSV_HIGH,
    WHITE_HSV_LOW,
)

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

Corner = Tuple[float, float]
Corners = List[Corner]


# ---------- Geometry helpers ----------

def order_corners(points: Sequence[Sequence[float]]) -> Corners:
    """
    Order four points as top-left, top-right, bottom-right, bottom-left.
    TL has the smallest x+y and BR the largest; of the other two, the one
    with the smaller x-y is BL.
    """
    pts = [(float(p[0]), float(p[1])) for p in points]
    if len(pts) != 4:
        raise ValueError(f"expected 4 corners, got {len(pts)}")
    by_sum = sorted(pts, key=lambda p: p[0] + p[1])
    top_left, bottom_right = by_sum[0], by_sum[3]
    bottom_left, top_right = sorted(by_sum[1:3], key=lambda p: p[0] - p[1])
    return [top_left, top_right, bottom_right, bottom_left]


def _dist(a: Corner, b: Corner) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def is_roughly_square(corners: Sequence[Sequence[float]], threshold: float = 0.6) -> bool:
    ordered = order_corners(corners)
    sides = [_dist(ordered[i], ordered[(i + 1) % 4]) for i in range(4)]
    longest = max(sides)
    if longest <= 0:
        return False
    return min(sides) / longest > threshold


def quad_area(corners: Sequence[Sequence[float]]) -> float:
    s = 0.0
    n = len(corners)
    for i in range(n):
        x1, y1 = corners[i][0], corners[i][1]
        x2, y2 = corners[(i + 1) % n][0], corners[(i + 1) % n][1]
        s += x1 * y2 - x2 * y1
    return abs(s) / 2.0


def point_in_quad(px: float, py: float, corners: Sequence[Sequence[float]]) -> bool:
    ordered = order_corners(corners)
    for i in range(4):
        ax, ay = ordered[i]
        bx, by = ordered[(i + 1) % 4]
        if (bx - ax) * (py - ay) - (by - ay) * (px - ax) < 0:
            return False
    return True


def _round_half_up(v: float) -> int:
    return int(math.floor(v + 0.5))


def _centroid(contour: np.ndarray) -> Optional[Point2D]:
    m = cv2.moments(contour)
    if m["m00"] <= 0:
        return None
    return Point2D(m["m10"] / m["m00"], m["m01"] / m["m00"])


def _approx_quad(contour: np.ndarray) -> Optional[Corners]:
    peri = cv2.arcLength(contour, True)
    approx = cv2.approxPolyDP(contour, APPROX_EPSILON_FRAC * peri, True)
    if len(approx) != 4 or not cv2.isContourConvex(approx):
        return None
    return [(float(p[0]), float(p[1])) for p in approx.reshape(4, 2)]


# ---------- Edge-based grid fitting ----------

def cluster_by_proximity(candidates: Sequence[BlobCandidate],
                         distance_factor: float = CLUSTER_DISTANCE_FACTOR) -> List[List[BlobCandidate]]:
    """Connected components of candidates closer than factor x mean sticker size."""
    if not candidates:
        return []
    mean_size = math.sqrt(sum(c.area for c in candidates) / len(candidates))
    threshold = mean_size * distance_factor

    visited = [False] * len(candidates)
    clusters: List[List[BlobCandidate]] = []
    for i in range(len(candidates)):
        if visited[i]:
            continue
        visited[i] = True
        queue = deque([i])
        cluster = []
        while queue:
            idx = queue.popleft()
            cluster.append(candidates[idx])
            ci = candidates[idx].center
            for j in range(len(candidates)):
                if visited[j]:
                    continue
                cj = candidates[j].center
                if math.hypot(ci.x - cj.x, ci.y - cj.y) < threshold:
                    visited[j] = True
                    queue.append(j)
        clusters.append(cluster)
    return clusters


def fit_grid_pattern(cluster: Sequence[BlobCandidate],
                     margin_cells: float = GRID_MARGIN_CELLS,
                     min_filled: int = GRID_MIN_FILLED) -> Optional[Corners]:
    """
    Bin cluster centers into a 3x3 grid spanned by the cluster's bounding box.
    Returns the margin-expanded box corners (TL, TR, BR, BL) or None.
    """
    ordered = sorted(cluster, key=lambda c: (c.center.y, c.center.x))
    xs = [c.center.x for c in ordered]
    ys = [c.center.y for c in ordered]
    x_min, x_max = min(xs), max(xs)
    y_min, y_max = min(ys), max(ys)
    x_span = x_max - x_min
    y_span = y_max - y_min
    if x_span <= 0 or y_span <= 0:
        return None
    if min(x_span, y_span) / max(x_span, y_span) < GRID_MIN_ASPECT:
        return None

    cell_w = x_span / (GRID_SIZE - 1)
    cell_h = y_span / (GRID_SIZE - 1)
    grid = [[False] * GRID_SIZE for _ in range(GRID_SIZE)]
    assigned = 0
    for c in ordered:
        col = _round_half_up((c.center.x - x_min) / cell_w)
        row = _round_half_up((c.center.y - y_min) / cell_h)
        if 0 <= row < GRID_SIZE and 0 <= col < GRID_SIZE and not grid[row][col]:
            grid[row][col] = True
            assigned += 1
    if assigned < min_filled:
        return None

    mx = cell_w * margin_cells
    my = cell_h * margin_cells
    return [
        (x_min - mx, y_min - my),
        (x_max + mx, y_min - my),
        (x_max + mx, y_max + my),
        (x_min - mx, y_max + my),
    ]


def find_grid_cluster(candidates: Sequence[BlobCandidate],
                      margin_cells: float = GRID_MARGIN_CELLS,
                      min_filled: int = GRID_MIN_FILLED) -> Optional[Corners]:
    """
    Group candidates of similar size, cluster each group by proximity and
    return the first cluster that fits a 3x3 grid.
    """
    if len(candidates) < MIN_CLUSTER_SIZE:
        return None
    by_area = sorted(candidates, key=lambda c: c.area)
    for start in range(len(by_area) - MIN_CLUSTER_SIZE + 1):
        ref_area = by_area[start].area
        group = [c for c in by_area[start:] if c.area <= ref_area * CANDIDATE_AREA_SPREAD]
        if len(group) < MIN_CLUSTER_SIZE:
            continue
        for cluster in cluster_by_proximity(group):
            if len(cluster) < MIN_CLUSTER_SIZE:
                continue
            corners = fit_grid_pattern(cluster, margin_cells, min_filled)
            if corners is not None:
                return corners
    return None


# ---------- Color-blob lattice fitting ----------

def find_blob_grid(blobs: Sequence[BlobCandidate], frame_w: float, frame_h: float,
                   margin_cells: float = GRID_MARGIN_CELLS,
                   min_filled: int = BLOB_MIN_FILLED) -> Optional[Corners]:
    """
    Fit a 3x3 lattice to blob centers. Returns the best-scoring lattice's
    margin-expanded corners, or None when no fit fills `min_filled` cells.
    """
    if len(blobs) < BLOB_MIN_COUNT:
        return None

    frame_cx, frame_cy = frame_w / 2.0, frame_h / 2.0
    max_frame_dist = math.hypot(frame_cx, frame_cy) or 1.0
    angle_lo, angle_hi = (math.radians(a) for a in BLOB_AXIS_ANGLE_DEG)
    ratio_lo, ratio_hi = BLOB_AREA_RATIO
    extent = 1.0 + margin_cells

    best_score = -1.0
    best_corners: Optional[Corners] = None

    for ci, center in enumerate(blobs):
        size = math.sqrt(center.area)
        min_d, max_d = size * BLOB_NEIGHBOR_MIN, size * BLOB_NEIGHBOR_MAX

        nearby = []
        for i, blob in enumerate(blobs):
            if i == ci:
                continue
            dx = blob.center.x - center.center.x
            dy = blob.center.y - center.center.y
            d = math.hypot(dx, dy)
            if d < min_d or d > max_d:
                continue
            if ratio_lo < blob.area / center.area < ratio_hi:
                nearby.append((d, dx, dy, math.atan2(dy, dx), blob))
        if len(nearby) < BLOB_MIN_NEIGHBORS:
            continue

        nearby.sort(key=lambda n: n[0])
        closest = nearby[:BLOB_AXIS_CANDIDATES]

        for i in range(len(closest)):
            for j in range(i + 1, len(closest)):
                d1, ax1x, ax1y, ang1, _ = closest[i]
                d2, ax2x, ax2y, ang2, _ = closest[j]

                diff = abs(ang1 - ang2)
                if diff > math.pi:
                    diff = 2.0 * math.pi - diff
                if diff < angle_lo or diff > angle_hi:
                    continue
                if min(d1, d2) / max(d1, d2) < BLOB_AXIS_LENGTH_RATIO:
                    continue
                det = ax1x * ax2y - ax1y * ax2x
                if abs(det) < 1e-3:
                    continue

                tolerance = max(d1, d2) * BLOB_CELL_TOLERANCE
                filled = {(1, 1)}
                for _, dx, dy, _, blob in nearby:
                    r = (dx * ax2y - dy * ax2x) / det
                    c = (ax1x * dy - ax1y * dx) / det
                    ri, cj = _round_half_up(r), _round_half_up(c)
                    cell = (1 + ri, 1 + cj)
                    if not (0 <= cell[0] < GRID_SIZE and 0 <= cell[1] < GRID_SIZE):
                        continue
                    if cell in filled:
                        continue
                    ex = center.center.x + ri * ax1x + cj * ax2x
                    ey = center.center.y + ri * ax1y + cj * ax2y
                    if math.hypot(blob.center.x - ex, blob.center.y - ey) <= tolerance:
                        filled.add(cell)

                if len(filled) < min_filled:
                    continue

                cx, cy = center.center.x, center.center.y
                corners = [
                    (cx + rs * extent * ax1x + cs * extent * ax2x,
                     cy + rs * extent * ax1y + cs * extent * ax2y)
                    for rs, cs in ((-1, -1), (-1, 1), (1, 1), (1, -1))
                ]
                centrality = 1.0 - math.hypot(cx - frame_cx, cy - frame_cy) / max_frame_dist
                score = (len(filled) / 9.0) * BLOB_FILL_WEIGHT + centrality * BLOB_CENTER_WEIGHT
                if score > best_score:
                    best_score = score
                    best_corners = corners

    return best_corners


# ---------- Detector ----------

class FaceDetector:
    def __init__(self,
                 margin_cells: float = GRID_MARGIN_CELLS,
                 min_grid_filled: int = GRID_MIN_FILLED,
                 min_blob_filled: int = BLOB_MIN_FILLED,
                 work_width: int = BLOB_WORK_WIDTH,
                 use_color_blobs: bool = True):
        self.margin_cells = float(margin_cells)
        self.min_grid_filled = int(min_grid_filled)
        self.min_blob_filled = int(min_blob_filled)
        self.work_width = int(work_width)
        self.use_color_blobs = use_color_blobs
        self.last_strategy: Optional[str] = None

        self._dilate_kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (EDGE_DILATE_KSIZE, EDGE_DILATE_KSIZE))
        self._close_kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (BLOB_CLOSE_KSIZE, BLOB_CLOSE_KSIZE))
        self._open_kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (BLOB_OPEN_KSIZE, BLOB_OPEN_KSIZE))

    def detect(self, frame: Union[Frame, np.ndarray]) -> Optional[Quad]:
        """
        Return the ordered quad of the face in `frame`, or None.
        Never raises for frames without usable geometry.
        """
        if not isinstance(frame, Frame):
            frame = Frame.from_array(frame)

        strategies = [("edge-grid", self.detect_by_edge_grid)]
        if self.use_color_blobs:
            strategies.append(("color-blob", self.detect_by_color_blobs))

        self.last_strategy = None
        for name, strategy in strategies:
            try:
                corners = strategy(frame)
            except Exception:
                logger.debug("%s strategy failed", name, exc_info=True)
                continue
            if corners is None:
                continue
            ordered = order_corners(corners)
            if quad_area(ordered) <= 0:
                continue
            self.last_strategy = name
            return Quad.from_points(ordered)
        return None

    # -- edge-based grid --

    def find_sticker_candidates(self, contours, frame_area: float) -> List[BlobCandidate]:
        lo = frame_area * STICKER_MIN_AREA_FRAC
        hi = frame_area * STICKER_MAX_AREA_FRAC
        stickers: List[BlobCandidate] = []
        for cnt in contours:
            area = cv2.contourArea(cnt)
            if area < lo or area > hi:
                continue
            corners = _approx_quad(cnt)
            if corners is None or not is_roughly_square(corners, STICKER_SQUARE_RATIO):
                continue
            center = _centroid(cnt)
            if center is not None:
                stickers.append(BlobCandidate(center=center, area=float(area)))
        return stickers

    def detect_by_edge_grid(self, frame: Frame) -> Optional[Corners]:
        blurred = cv2.GaussianBlur(frame.gray, (EDGE_BLUR_KSIZE, EDGE_BLUR_KSIZE), 0)
        edges = cv2.Canny(blurred, CANNY_LOW, CANNY_HIGH)
        dilated = cv2.dilate(edges, self._dilate_kernel)
        contours, _ = cv2.findContours(dilated, cv2.RETR_TREE, cv2.CHAIN_APPROX_SIMPLE)

        frame_area = float(frame.area)
        stickers = self.find_sticker_candidates(contours, frame_area)
        corners = find_grid_cluster(stickers, self.margin_cells, self.min_grid_filled)
        if corners is not None:
            return corners
        return self._largest_square_holding(contours, stickers, frame_area)

    def _largest_square_holding(self, contours, stickers: Sequence[BlobCandidate],
                                frame_area: float) -> Optional[Corners]:
        best_area = 0.0
        best: Optional[Corners] = None
        min_area = frame_area * FALLBACK_MIN_AREA_FRAC
        for cnt in contours:
            area = cv2.contourArea(cnt)
            if area < min_area or area <= best_area:
                continue
            corners = _approx_quad(cnt)
            if corners is None or not is_roughly_square(corners, FALLBACK_SQUARE_RATIO):
                continue
            inner = sum(1 for s in stickers if point_in_quad(s.center.x, s.center.y, corners))
            if inner >= FALLBACK_MIN_INNER:
                best_area = area
                best = corners
        return best

    # -- color-blob grid --

    def find_color_blobs(self, small_bgr: np.ndarray) -> List[BlobCandidate]:
        blurred = cv2.GaussianBlur(small_bgr, (BLOB_BLUR_KSIZE, BLOB_BLUR_KSIZE), 0)
        hsv = cv2.cvtColor(blurred, cv2.COLOR_BGR2HSV)

        mask = cv2.inRange(hsv, np.array(SATURATED_HSV_LOW, np.uint8), np.array(SATURATED_HSV_HIGH, np.uint8))
        white = cv2.inRange(hsv, np.array(WHITE_HSV_LOW, np.uint8), np.array(WHITE_HSV_HIGH, np.uint8))
        mask = cv2.bitwise_or(mask, white)
        mask = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, self._close_kernel)
        mask = cv2.morphologyEx(mask, cv2.MORPH_OPEN, self._open_kernel)

        contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        rows, cols = mask.shape[:2]
        lo = rows * cols * BLOB_MIN_AREA_FRAC
        hi = rows * cols * BLOB_MAX_AREA_FRAC

        blobs: List[BlobCandidate] = []
        for cnt in contours:
            area = cv2.contourArea(cnt)
            if area < lo or area > hi:
                continue
            peri = cv2.arcLength(cnt, True)
            if peri <= 0:
                continue
            if 4.0 * math.pi * area / (peri * peri) < BLOB_MIN_CIRCULARITY:
                continue
            _, _, w, h = cv2.boundingRect(cnt)
            if min(w, h) / max(w, h) < BLOB_MIN_ASPECT:
                continue
            center = _centroid(cnt)
            if center is not None:
                blobs.append(BlobCandidate(center=center, area=float(area)))
        return blobs

    def detect_by_color_blobs(self, frame: Frame) -> Optional[Corners]:
        scale = min(1.0, self.work_width / float(frame.width))
        if scale < 1.0:
            size = (max(1, int(round(frame.width * scale))), max(1, int(round(frame.height * scale))))
            small = cv2.resize(frame.bgr, size, interpolation=cv2.INTER_AREA)
        else:
            small = frame.bgr

        blobs = self.find_color_blobs(small)
        if len(blobs) < BLOB_MIN_COUNT:
            return None
        corners = find_blob_grid(blobs, small.shape[1], small.shape[0],
                                 self.margin_cells, self.min_blob_filled)
        if corners is None:
            return None
        return [(x / scale, y / scale) for x, y in corners]
