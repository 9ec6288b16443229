from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence, Union

from hexaboard.board.cache import CellCache
from hexaboard.board.config import (
    DEFAULT_FILL,
    DEFAULT_STROKE,
    HOVER_STROKE,
    LABEL_COLOR,
    SELECTED_STROKE,
    BoardConfig,
)
from hexaboard.board.geometry import GridLayout, hex_corners
from hexaboard.board.selection import SelectionState
from hexaboard.board.viewport import Viewport

ELLIPSIS = "…"
LABEL_WIDTH_FACTOR = 1.6


@dataclass(frozen=True)
class PolygonCommand:
    index: int
    points: tuple[tuple[float, float], ...]
    fill: str
    stroke: str
    width: int


@dataclass(frozen=True)
class TextCommand:
    index: int
    text: str
    x: float
    y: float
    color: str
    max_width: float


DrawCommand = Union[PolygonCommand, TextCommand]


class DrawingSurface(Protocol):
    def size(self) -> tuple[int, int]: ...

    def reset(self) -> None: ...

    def draw_polygon(self, command: PolygonCommand) -> None: ...

    def draw_text(self, command: TextCommand) -> None: ...


class RecordingSurface:
    """Surface that keeps the commands of the last frame; used headless and in tests."""

    def __init__(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.commands: list[DrawCommand] = []
        self.resets = 0

    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.reset()

    def reset(self) -> None:
        self.commands = []
        self.resets += 1

    def draw_polygon(self, command: PolygonCommand) -> None:
        self.commands.append(command)

    def draw_text(self, command: TextCommand) -> None:
        self.commands.append(command)


def display_label(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return f"{text[:max_length]}{ELLIPSIS}"


def stroke_for(index: int, selection: SelectionState) -> tuple[str, int]:
    if selection.selected_index == index:
        return SELECTED_STROKE, 2
    if selection.hover_index == index:
        return HOVER_STROKE, 1
    return DEFAULT_STROKE, 1


def build_frame(
    layout: GridLayout,
    viewport: Viewport,
    cache: CellCache,
    selection: SelectionState,
    config: BoardConfig,
    surface_size: tuple[int, int] | None = None,
) -> list[DrawCommand]:
    radius = layout.spec.cell_radius
    scale = viewport.scale
    screen_radius = radius * scale
    commands: list[DrawCommand] = []
    for center in layout.centers:
        sx, sy = viewport.to_screen((center.x, center.y))
        if surface_size is not None and (
            sx + screen_radius < 0
            or sy + screen_radius < 0
            or sx - screen_radius > surface_size[0]
            or sy - screen_radius > surface_size[1]
        ):
            continue
        record = cache.get(center.index)
        stroke, width = stroke_for(center.index, selection)
        points = tuple(viewport.to_screen(corner) for corner in hex_corners(center.x, center.y, radius))
        commands.append(
            PolygonCommand(
                index=center.index,
                points=points,
                fill=record.color if record is not None and record.color else DEFAULT_FILL,
                stroke=stroke,
                width=width,
            )
        )
        if record is not None and record.label:
            commands.append(
                TextCommand(
                    index=center.index,
                    text=display_label(record.label, config.display_label_length),
                    x=sx,
                    y=sy,
                    color=LABEL_COLOR,
                    max_width=radius * LABEL_WIDTH_FACTOR * scale,
                )
            )
    return commands


def issue_commands(surface: DrawingSurface, commands: Sequence[DrawCommand]) -> None:
    for command in commands:
        if isinstance(command, PolygonCommand):
            surface.draw_polygon(command)
        else:
            surface.draw_text(command)


def render_frame(
    surface: DrawingSurface,
    layout: GridLayout,
    viewport: Viewport,
    cache: CellCache,
    selection: SelectionState,
    config: BoardConfig,
) -> int:
    """Clear the surface and draw every visible cell; returns the number of commands issued."""
    surface.reset()
    commands = build_frame(layout, viewport, cache, selection, config, surface.size())
    issue_commands(surface, commands)
    return len(commands)
