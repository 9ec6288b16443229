from __future__ import annotations

import math
from dataclasses import dataclass

from hexaboard.board.config import MAX_FIT_SCALE, MAX_ZOOM, MIN_ZOOM

WHEEL_ZOOM_SENSITIVITY = 0.001

Point = tuple[float, float]


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def wheel_factor(delta_y: float) -> float:
    """Wheel delta to multiplicative zoom; scrolling up (negative delta) zooms in."""
    return math.exp(-delta_y * WHEEL_ZOOM_SENSITIVITY)


@dataclass
class ViewportState:
    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def __post_init__(self) -> None:
        if not math.isfinite(self.scale) or self.scale <= 0:
            raise ValueError("viewport scale must be a finite number > 0")


class Viewport:
    """World <-> screen mapping: screen = world * scale + offset."""

    def __init__(
        self,
        state: ViewportState | None = None,
        *,
        min_scale: float = MIN_ZOOM,
        max_scale: float = MAX_ZOOM,
    ) -> None:
        if min_scale <= 0 or max_scale < min_scale:
            raise ValueError("viewport scale bounds must satisfy 0 < min_scale <= max_scale")
        self.min_scale = min_scale
        self.max_scale = max_scale
        self.state = state if state is not None else ViewportState()
        self.state.scale = clamp(self.state.scale, min_scale, max_scale)

    @property
    def scale(self) -> float:
        return self.state.scale

    @property
    def offset(self) -> Point:
        return (self.state.offset_x, self.state.offset_y)

    def to_world(self, screen_point: Point) -> Point:
        return (
            (screen_point[0] - self.state.offset_x) / self.state.scale,
            (screen_point[1] - self.state.offset_y) / self.state.scale,
        )

    def to_screen(self, world_point: Point) -> Point:
        return (
            world_point[0] * self.state.scale + self.state.offset_x,
            world_point[1] * self.state.scale + self.state.offset_y,
        )

    def zoom_at(self, screen_point: Point, factor: float) -> bool:
        """Rescale keeping the world point under screen_point fixed. Returns True if the state changed."""
        if not math.isfinite(factor) or factor <= 0:
            raise ValueError("zoom factor must be a finite number > 0")
        anchor_x, anchor_y = self.to_world(screen_point)
        new_scale = clamp(self.state.scale * factor, self.min_scale, self.max_scale)
        before = (self.state.scale, self.state.offset_x, self.state.offset_y)
        self.state.scale = new_scale
        self.state.offset_x = screen_point[0] - anchor_x * new_scale
        self.state.offset_y = screen_point[1] - anchor_y * new_scale
        return before != (self.state.scale, self.state.offset_x, self.state.offset_y)

    def pan_by(self, delta: Point) -> bool:
        if delta[0] == 0 and delta[1] == 0:
            return False
        self.state.offset_x += delta[0]
        self.state.offset_y += delta[1]
        return True

    def fit_to_container(
        self,
        container_size: Point,
        content_size: Point,
        padding: float,
        *,
        max_fit_scale: float = MAX_FIT_SCALE,
    ) -> None:
        if content_size[0] <= 0 or content_size[1] <= 0:
            raise ValueError("content size must be > 0")
        scale_x = (container_size[0] - padding * 2) / content_size[0]
        scale_y = (container_size[1] - padding * 2) / content_size[1]
        fitted = min(scale_x, scale_y, max_fit_scale)
        self.state.scale = clamp(fitted, self.min_scale, self.max_scale)
        self.state.offset_x = padding
        self.state.offset_y = padding
