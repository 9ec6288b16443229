from __future__ import annotations

from dataclasses import dataclass

DEFAULT_COLUMNS = 100
DEFAULT_ROWS = 80
DEFAULT_CELL_RADIUS = 14.0
MIN_ZOOM = 0.3
MAX_ZOOM = 3.0
MAX_LABEL_LENGTH = 18
DISPLAY_LABEL_LENGTH = 10
MIN_SECRET_LENGTH = 4
FIT_PADDING_PX = 24.0
MAX_FIT_SCALE = 1.2

DEFAULT_FILL = "#f3f4f6"
DRAFT_COLOR = "#fde68a"
DEFAULT_STROKE = "#d1d5db"
HOVER_STROKE = "#111827"
SELECTED_STROKE = "#2563eb"
LABEL_COLOR = "#111827"


@dataclass(frozen=True)
class BoardConfig:
    columns: int = DEFAULT_COLUMNS
    rows: int = DEFAULT_ROWS
    cell_radius: float = DEFAULT_CELL_RADIUS
    min_zoom: float = MIN_ZOOM
    max_zoom: float = MAX_ZOOM
    max_label_length: int = MAX_LABEL_LENGTH
    display_label_length: int = DISPLAY_LABEL_LENGTH
    min_secret_length: int = MIN_SECRET_LENGTH
    fit_padding: float = FIT_PADDING_PX
    max_fit_scale: float = MAX_FIT_SCALE

    def __post_init__(self) -> None:
        if isinstance(self.columns, bool) or not isinstance(self.columns, int) or self.columns < 1:
            raise ValueError("columns must be an integer >= 1")
        if isinstance(self.rows, bool) or not isinstance(self.rows, int) or self.rows < 1:
            raise ValueError("rows must be an integer >= 1")
        if self.cell_radius <= 0:
            raise ValueError("cell_radius must be > 0")
        if self.min_zoom <= 0 or self.max_zoom < self.min_zoom:
            raise ValueError("zoom bounds must satisfy 0 < min_zoom <= max_zoom")
        if self.max_label_length < 1:
            raise ValueError("max_label_length must be >= 1")
        if self.display_label_length < 1:
            raise ValueError("display_label_length must be >= 1")
        if self.min_secret_length < 1:
            raise ValueError("min_secret_length must be >= 1")
        if self.fit_padding < 0:
            raise ValueError("fit_padding must be >= 0")
        if self.max_fit_scale <= 0:
            raise ValueError("max_fit_scale must be > 0")

    @property
    def cell_count(self) -> int:
        return self.columns * self.rows
