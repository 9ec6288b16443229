from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache

LAYOUT_MARGIN = 2.0
SQRT3 = math.sqrt(3.0)


@dataclass(frozen=True)
class GridSpec:
    columns: int
    rows: int
    cell_radius: float

    def __post_init__(self) -> None:
        if isinstance(self.columns, bool) or not isinstance(self.columns, int) or self.columns < 1:
            raise ValueError("grid columns must be an integer >= 1")
        if isinstance(self.rows, bool) or not isinstance(self.rows, int) or self.rows < 1:
            raise ValueError("grid rows must be an integer >= 1")
        if not isinstance(self.cell_radius, (int, float)) or not math.isfinite(self.cell_radius) or self.cell_radius <= 0:
            raise ValueError("grid cell_radius must be a finite number > 0")

    @property
    def cell_count(self) -> int:
        return self.columns * self.rows


@dataclass(frozen=True)
class CellCenter:
    """World-space center of one grid position."""

    index: int
    row: int
    col: int
    x: float
    y: float


@dataclass(frozen=True)
class GridLayout:
    spec: GridSpec
    centers: tuple[CellCenter, ...]
    bounding_width: float
    bounding_height: float

    @property
    def cell_width(self) -> float:
        return self.spec.cell_radius * SQRT3

    @property
    def row_step(self) -> float:
        return self.spec.cell_radius * 1.5

    def center_of(self, index: int) -> CellCenter:
        if index < 0 or index >= len(self.centers):
            raise IndexError(f"cell index out of range: {index}")
        return self.centers[index]


def cell_center_xy(row: int, col: int, radius: float) -> tuple[float, float]:
    """Pointy-top offset rows; odd rows shift right by one cell width."""
    w = radius * SQRT3
    h = radius * 1.5
    x = col * w * 2 + (w if row % 2 else 0.0) + w
    y = row * h + radius + LAYOUT_MARGIN
    return (x, y)


@lru_cache(maxsize=8)
def compute_layout(spec: GridSpec) -> GridLayout:
    centers: list[CellCenter] = []
    for row in range(spec.rows):
        for col in range(spec.columns):
            x, y = cell_center_xy(row, col, spec.cell_radius)
            centers.append(CellCenter(index=row * spec.columns + col, row=row, col=col, x=x, y=y))
    max_x = max(center.x for center in centers)
    max_y = max(center.y for center in centers)
    return GridLayout(
        spec=spec,
        centers=tuple(centers),
        bounding_width=max_x + spec.cell_radius,
        bounding_height=max_y + spec.cell_radius,
    )


def hex_corner(cx: float, cy: float, radius: float, i: int) -> tuple[float, float]:
    angle = math.radians(60 * i - 30)
    return (cx + radius * math.cos(angle), cy + radius * math.sin(angle))


def hex_corners(cx: float, cy: float, radius: float) -> list[tuple[float, float]]:
    return [hex_corner(cx, cy, radius, i) for i in range(6)]
