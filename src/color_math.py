"""
color_math.py — color-space conversions and perceptual distance
===============================================================

Small, dependency-free helpers shared by the sampler and the classifier.

* `rgb_to_lab(rgb)` — sRGB (0..255) -> linear -> XYZ (D65) -> CIE L*a*b*.
* `rgb_to_hsv(rgb)` — sRGB (0..255) -> HSV on the OpenCV scale
  (H 0..180, S 0..255, V 0..255), so thresholds match `cv2.inRange` masks.
* `ciede2000(lab1, lab2)` — full CIEDE2000 color difference, including the
  chroma/hue weighting functions and the blue-region rotation term.
* `luminance(rgb)` — Rec.601 luma, used to rank sub-samples.

Euclidean Lab distance is not used for classification: it conflates
red/orange/yellow under warm light, whereas CIEDE2000 compresses chroma
differences and expands hue differences where the eye does.

-------------------------------------------------------------------------------

Copyright (c) 2025 Facundo Gauna & Ulises Carnevale. Licensed under MIT License.
"""

from __future__ import annotations

import math
from typing import Sequence, Tuple

Lab = Tuple[float, float, float]

_C25_7 = 25.0 ** 7

# D65 reference white
_XN, _YN, _ZN = 0.95047, 1.0, 1.08883


def _to_linear(v: float) -> float:
    if v > 0.04045:
        return ((v + 0.055) / 1.055) ** 2.4
    return v / 12.92


def _lab_f(t: float) -> float:
    if t > 0.008856:
        return t ** (1.0 / 3.0)
    return (7.787 * t) + (16.0 / 116.0)


def rgb_to_lab(rgb: Sequence[float]) -> Lab:
    """
    Convert an sRGB triple (0..255) to CIE L*a*b* (L ~ 0..100, a/b around 0).
    """
    r = _to_linear(float(rgb[0]) / 255.0)
    g = _to_linear(float(rgb[1]) / 255.0)
    b = _to_linear(float(rgb[2]) / 255.0)

    x = (r * 0.4124564 + g * 0.3575761 + b * 0.1804375) / _XN
    y = (r * 0.2126729 + g * 0.7151522 + b * 0.0721750) / _YN
    z = (r * 0.0193339 + g * 0.1191920 + b * 0.9503041) / _ZN

    fx, fy, fz = _lab_f(x), _lab_f(y), _lab_f(z)
    return (116.0 * fy - 16.0, 500.0 * (fx - fy), 200.0 * (fy - fz))


def rgb_to_hsv(rgb: Sequence[float]) -> Tuple[int, int, int]:
    """sRGB (0..255) -> OpenCV-scaled HSV (H 0..180, S/V 0..255)."""
    r, g, b = (float(c) / 255.0 for c in rgb[:3])
    mx = max(r, g, b)
    mn = min(r, g, b)
    delta = mx - mn

    s = 0.0 if mx == 0 else delta / mx
    h = 0.0
    if delta != 0:
        if mx == r:
            h = ((g - b) / delta) % 6.0
        elif mx == g:
            h = (b - r) / delta + 2.0
        else:
            h = (r - g) / delta + 4.0
        h *= 60.0
        if h < 0:
            h += 360.0
    return int(round(h / 2.0)), int(round(s * 255.0)), int(round(mx * 255.0))


def luminance(rgb):
    # works on scalars and on numpy channel arrays alike
    return 0.299 * rgb[0] + 0.587 * rgb[1] + 0.114 * rgb[2]


def _hue_angle(b: float, a: float) -> float:
    if a == 0 and b == 0:
        return 0.0
    h = math.atan2(b, a)
    return h + 2.0 * math.pi if h < 0 else h


def ciede2000(lab1: Sequence[float], lab2: Sequence[float]) -> float:
    """
    CIEDE2000 color difference between two CIE-Lab triples (kL = kC = kH = 1).
    """
    L1, a1, b1 = float(lab1[0]), float(lab1[1]), float(lab1[2])
    L2, a2, b2 = float(lab2[0]), float(lab2[1]), float(lab2[2])

    c_bar = (math.hypot(a1, b1) + math.hypot(a2, b2)) / 2.0
    c_bar7 = c_bar ** 7
    g = 0.5 * (1.0 - math.sqrt(c_bar7 / (c_bar7 + _C25_7)))

    a1p = (1.0 + g) * a1
    a2p = (1.0 + g) * a2
    c1p = math.hypot(a1p, b1)
    c2p = math.hypot(a2p, b2)
    h1p = _hue_angle(b1, a1p)
    h2p = _hue_angle(b2, a2p)

    d_lp = L2 - L1
    d_cp = c2p - c1p

    c_prod = c1p * c2p
    dh = h2p - h1p
    if c_prod == 0:
        dh = 0.0
    elif dh > math.pi:
        dh -= 2.0 * math.pi
    elif dh < -math.pi:
        dh += 2.0 * math.pi
    d_hp = 2.0 * math.sqrt(c_prod) * math.sin(dh / 2.0)

    l_bar = (L1 + L2) / 2.0
    cp_bar = (c1p + c2p) / 2.0

    h_sum = h1p + h2p
    if c_prod == 0:
        hp_bar = h_sum
    elif abs(h1p - h2p) <= math.pi:
        hp_bar = h_sum / 2.0
    elif h_sum < 2.0 * math.pi:
        hp_bar = (h_sum + 2.0 * math.pi) / 2.0
    else:
        hp_bar = (h_sum - 2.0 * math.pi) / 2.0

    t = (1.0
         - 0.17 * math.cos(hp_bar - math.radians(30.0))
         + 0.24 * math.cos(2.0 * hp_bar)
         + 0.32 * math.cos(3.0 * hp_bar + math.radians(6.0))
         - 0.20 * math.cos(4.0 * hp_bar - math.radians(63.0)))

    d_theta = math.radians(30.0) * math.exp(-(((math.degrees(hp_bar) - 275.0) / 25.0) ** 2))
    cp_bar7 = cp_bar ** 7
    r_c = 2.0 * math.sqrt(cp_bar7 / (cp_bar7 + _C25_7))
    r_t = -math.sin(2.0 * d_theta) * r_c

    l50 = (l_bar - 50.0) ** 2
    s_l = 1.0 + 0.015 * l50 / math.sqrt(20.0 + l50)
    s_c = 1.0 + 0.045 * cp_bar
    s_h = 1.0 + 0.015 * cp_bar * t

    f_l = d_lp / s_l
    f_c = d_cp / s_c
    f_h = d_hp / s_h
    return math.sqrt(max(0.0, f_l * f_l + f_c * f_c + f_h * f_h + r_t * f_c * f_h))
