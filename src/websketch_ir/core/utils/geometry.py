# src/websketch_ir/core/utils/geometry.py
import math
from typing import Tuple

from websketch_ir.model import Bounds

# Longest possible distance between two points in the unit square
_UNIT_DIAGONAL = math.sqrt(2.0)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def to_cells(bounds: Bounds, width: int, height: int) -> Tuple[int, int, int, int]:
    """
    Maps normalized bounds onto inclusive grid cells.

    Returns:
        Tuple[int, int, int, int]: (col0, row0, col1, row1), always inside the
        grid and spanning at least one cell.
    """
    col0 = clamp(round_half_up(bounds.x * width), 0, width - 1)
    row0 = clamp(round_half_up(bounds.y * height), 0, height - 1)
    col1 = clamp(round_half_up((bounds.x + bounds.width) * width) - 1, col0, width - 1)
    row1 = clamp(round_half_up((bounds.y + bounds.height) * height) - 1, row0, height - 1)
    return col0, row0, col1, row1


def intersection_over_union(a: Bounds, b: Bounds) -> float:
    ix = max(0.0, min(a.x + a.width, b.x + b.width) - max(a.x, b.x))
    iy = max(0.0, min(a.y + a.height, b.y + b.height) - max(a.y, b.y))
    intersection = ix * iy
    union = a.area + b.area - intersection
    if union <= 0.0:
        # Two zero-area boxes: identical points overlap fully
        return 1.0 if (a.x, a.y) == (b.x, b.y) else 0.0
    return intersection / union


def center_distance(a: Bounds, b: Bounds) -> float:
    return math.hypot(
        (a.x + a.width / 2) - (b.x + b.width / 2),
        (a.y + a.height / 2) - (b.y + b.height / 2),
    )


def proximity(a: Bounds, b: Bounds) -> float:
    """1.0 for coincident centers, falling to 0.0 at opposite corners."""
    return max(0.0, 1.0 - center_distance(a, b) / _UNIT_DIAGONAL)


def size_similarity(a: Bounds, b: Bounds) -> float:
    """Ratio of the smaller to the larger extent, averaged over both axes."""
    def ratio(p: float, q: float) -> float:
        big = max(p, q)
        return 1.0 if big == 0.0 else min(p, q) / big
    return (ratio(a.width, b.width) + ratio(a.height, b.height)) / 2
