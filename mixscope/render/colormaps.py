"""Colormaps as five-stop RGB tables with piecewise-linear lookup."""
from __future__ import annotations

import numpy as np

from mixscope.errors import check_choice

COLORMAPS: dict[str, tuple[tuple[int, int, int], ...]] = {
    "viridis": (
        (68, 1, 84),
        (59, 82, 139),
        (33, 145, 140),
        (94, 201, 98),
        (253, 231, 37),
    ),
    "plasma": (
        (13, 8, 135),
        (126, 3, 168),
        (204, 71, 120),
        (248, 149, 64),
        (240, 249, 33),
    ),
    "magma": (
        (0, 0, 4),
        (81, 18, 124),
        (183, 55, 121),
        (254, 159, 109),
        (252, 253, 191),
    ),
    "inferno": (
        (0, 0, 4),
        (87, 16, 110),
        (188, 55, 84),
        (249, 142, 9),
        (252, 255, 164),
    ),
}
COLORMAP_NAMES = tuple(COLORMAPS) + ("grayscale",)


def interpolate_stops(t: np.ndarray, stops) -> np.ndarray:
    """
    Map values in [0, 1] through evenly spaced colour stops.

    Segment i = min(floor(t * n), n - 1) with n = len(stops) - 1; channels
    are rounded to the nearest integer.
    """
    table = np.asarray(stops, dtype=np.float64)
    n = table.shape[0] - 1
    t = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0)
    i = np.minimum(np.floor(t * n).astype(np.int64), n - 1)
    f = (t * n - i)[..., None]
    rgb = table[i] + (table[i + 1] - table[i]) * f
    return np.round(rgb).astype(np.uint8)


def apply_colormap(values: np.ndarray, name: str = "viridis") -> np.ndarray:
    """RGB uint8 array of shape values.shape + (3,)."""
    check_choice("colormap", name, COLORMAP_NAMES)
    if name == "grayscale":
        v = np.round(np.clip(np.asarray(values, dtype=np.float64), 0.0, 1.0) * 255.0)
        return np.repeat(v.astype(np.uint8)[..., None], 3, axis=-1)
    return interpolate_stops(values, COLORMAPS[name])


def colormap_color(value: float, name: str = "viridis") -> tuple[int, int, int]:
    r, g, b = apply_colormap(np.array([value]), name)[0]
    return int(r), int(g), int(b)
