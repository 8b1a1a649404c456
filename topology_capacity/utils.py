from __future__ import annotations

import math
from typing import Optional


def clamp01(value: Optional[float], default: float = 0.0) -> float:
    """Clamp a ratio/probability into [0, 1]; None and NaN fall back to `default`."""
    if value is None or math.isnan(value):
        return default
    return max(0.0, min(1.0, value))


def floored(value: float, epsilon: float) -> float:
    """Denominator floor so divisions never hit zero."""
    return max(value, epsilon)


def fmt_rps(value: float) -> str:
    return "inf" if math.isinf(value) else f"{value:.1f}"
