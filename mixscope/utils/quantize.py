from __future__ import annotations
import math

import numpy as np


def q(x: float, step: float) -> float:
    """Round to the nearest multiple of step, halves away from zero."""
    if x is None or math.isnan(x) or math.isinf(x):
        return x
    inv = 1.0 / step
    scaled = x * inv
    rounded = math.floor(abs(scaled) + 0.5)
    return math.copysign(rounded, scaled) / inv if rounded else 0.0


def q_tree(obj, step: float = 1e-6):
    """
    Quantize every float in a nested dict/list structure.

    Non-finite floats become None so the result is always valid JSON.
    """
    if isinstance(obj, dict):
        return {k: q_tree(v, step) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [q_tree(v, step) for v in obj]
    if isinstance(obj, np.ndarray):
        return [q_tree(v, step) for v in obj.tolist()]
    if isinstance(obj, (bool, np.bool_)):
        return bool(obj)
    if isinstance(obj, (int, np.integer)):
        return int(obj)
    if isinstance(obj, (float, np.floating)):
        v = float(obj)
        if math.isnan(v) or math.isinf(v):
            return None
        return q(v, step)
    return obj
