"""scanner_config.py — scanner configuration
------------------------------------------

This file centralizes the fixed constants of the face-scanning pipeline.
They are *defaults*: every component takes them as constructor arguments so
tests and experiments can override them without touching this module.

Notes / warnings
- Geometric thresholds are expressed as fractions of the frame (or of the
  downscaled frame for the color-blob strategy) so they survive resolution
  changes.
- Color thresholds use the OpenCV HSV scale (H 0..180, S 0..255, V 0..255)
  and CIEDE2000 units for perceptual distances.

-------------------------------------------------------------------------------

Copyright (c) 2025 Facundo Gauna & Ulises Carnevale. Licensed under MIT License.
"""

from typing import Dict, List, Tuple

# ---------------- Cube model ----------------

COLORS: Tuple[str, ...] = ('R', 'O', 'Y', 'G', 'B', 'W')
FACE_ORDER: List[str] = ['U', 'R', 'F', 'D', 'L', 'B']   # kociemba order
CENTER_INDEX: int = 4
STICKERS_PER_FACE: int = 9
GRID_SIZE: int = 3

# Standard orientation: white up, red front -> blue right, green left.
CENTER_TO_FACE: Dict[str, str] = {
    'W': 'U',
    'Y': 'D',
    'R': 'F',
    'O': 'B',
    'B': 'R',
    'G': 'L',
}

FACE_NAMES: Dict[str, str] = {
    'U': 'Up',
    'R': 'Right',
    'F': 'Front',
    'D': 'Down',
    'L': 'Left',
    'B': 'Back',
}

# Reference sRGB per color; the classifier converts them to Lab at startup.
REFERENCE_RGB: Dict[str, Tuple[int, int, int]] = {
    'R': (183, 18, 52),
    'O': (255, 88, 0),
    'Y': (255, 213, 0),
    'G': (0, 155, 72),
    'B': (0, 70, 173),
    'W': (255, 255, 255),
}

# BGR used for preview overlays only.
DISPLAY_BGR: Dict[str, Tuple[int, int, int]] = {
    'R': (38, 38, 220),
    'O': (22, 115, 249),
    'Y': (21, 204, 250),
    'G': (74, 163, 22),
    'B': (235, 99, 37),
    'W': (251, 250, 249),
}

# ---------------- Edge-based grid strategy ----------------

EDGE_BLUR_KSIZE: int = 5
CANNY_LOW: int = 50
CANNY_HIGH: int = 150
EDGE_DILATE_KSIZE: int = 3

STICKER_MIN_AREA_FRAC: float = 0.001     # 0.1% of the frame
STICKER_MAX_AREA_FRAC: float = 0.04      # 4% of the frame
APPROX_EPSILON_FRAC: float = 0.04        # approxPolyDP epsilon / perimeter
STICKER_SQUARE_RATIO: float = 0.55       # min/max side length
CANDIDATE_AREA_SPREAD: float = 4.0       # size grouping: area <= ref * spread
CLUSTER_DISTANCE_FACTOR: float = 3.5     # x sqrt(mean candidate area)
MIN_CLUSTER_SIZE: int = 7
GRID_MIN_ASPECT: float = 0.45            # short/long span of the cluster
GRID_MIN_FILLED: int = 7

# Fallback: a large square-ish contour holding some sticker candidates.
FALLBACK_MIN_AREA_FRAC: float = 0.03
FALLBACK_SQUARE_RATIO: float = 0.5
FALLBACK_MIN_INNER: int = 3

# Outward margin (in cell widths) added around the outer sticker centers so
# the quad also covers the sticker-to-border gap. Shared by both strategies.
GRID_MARGIN_CELLS: float = 0.85

# ---------------- Color-blob grid strategy ----------------

BLOB_WORK_WIDTH: int = 320
BLOB_BLUR_KSIZE: int = 5
SATURATED_HSV_LOW: Tuple[int, int, int] = (0, 50, 40)
SATURATED_HSV_HIGH: Tuple[int, int, int] = (180, 255, 255)
WHITE_HSV_LOW: Tuple[int, int, int] = (0, 0, 150)
WHITE_HSV_HIGH: Tuple[int, int, int] = (180, 50, 255)
BLOB_CLOSE_KSIZE: int = 7
BLOB_OPEN_KSIZE: int = 3
BLOB_MIN_AREA_FRAC: float = 0.003
BLOB_MAX_AREA_FRAC: float = 0.09
BLOB_MIN_CIRCULARITY: float = 0.25
BLOB_MIN_ASPECT: float = 0.35
BLOB_MIN_COUNT: int = 5

BLOB_NEIGHBOR_MIN: float = 0.4           # x sqrt(center blob area)
BLOB_NEIGHBOR_MAX: float = 7.0
BLOB_AREA_RATIO: Tuple[float, float] = (0.2, 5.0)
BLOB_MIN_NEIGHBORS: int = 4
BLOB_AXIS_CANDIDATES: int = 12
BLOB_AXIS_ANGLE_DEG: Tuple[float, float] = (60.0, 120.0)
BLOB_AXIS_LENGTH_RATIO: float = 0.35
BLOB_CELL_TOLERANCE: float = 0.45        # x longer axis length
BLOB_MIN_FILLED: int = 6
BLOB_FILL_WEIGHT: float = 0.6
BLOB_CENTER_WEIGHT: float = 0.4

# ---------------- Sticker sampling ----------------

WARP_SIZE: int = 300
SAMPLE_RADIUS: int = 8
TRIM_DARK_FRAC: float = 0.1              # shadows
TRIM_BRIGHT_FRAC: float = 0.2            # specular highlights
MIN_QUAD_AREA: float = 16.0

# ---------------- Classification ----------------

CONFUSABLE_PAIRS: List[Tuple[str, str]] = [('W', 'Y'), ('R', 'O'), ('O', 'Y')]
CONFUSABLE_SPREAD_THRESHOLD: float = 12.0 # CIEDE2000 units of preference score
CONFUSABLE_MIN_GAP: float = 6.0          # widest score gap must exceed this to split
DISTANCE_FALLBACK_THRESHOLD: float = 45.0 # best CIEDE2000 above this -> HSV rules
WHITE_GUARD_SAT: int = 45
WHITE_GUARD_VAL: int = 160
WHITE_GUARD_SAT_ANY: int = 30

# ---------------- Temporal consensus ----------------

VOTING_BUFFER_SIZE: int = 10
VOTING_MIN_FRAMES: int = 5
VOTING_QUORUM: float = 0.6
VOTING_SHIFT_RESET: int = 3              # positions changed frame-to-frame

# ---------------- Stability & capture ----------------

STABILITY_TOLERANCE_PX: float = 20.0
STABILITY_THRESHOLD_MS: float = 1000.0
CAPTURE_COOLDOWN_MS: float = 1500.0
STATUS_LOG_INTERVAL_MS: float = 2000.0

# ---------------- Validation ----------------

MAX_NON_CENTER_COLOR: int = 5
MAX_WHITE_ON_COLORED: int = 4
STICKERS_PER_COLOR: int = 9

# ---------------- CLI preview ----------------

PREVIEW_WINDOW: str = "Cube scanner"
CAMERA_RESOLUTION: Tuple[int, int] = (1280, 720)
