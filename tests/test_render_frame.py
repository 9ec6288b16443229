import pytest

from hexaboard.board.cache import CellCache
from hexaboard.board.config import BoardConfig, DEFAULT_FILL, DEFAULT_STROKE, HOVER_STROKE, SELECTED_STROKE
from hexaboard.board.geometry import GridSpec, compute_layout
from hexaboard.board.records import CellRecord
from hexaboard.board.render import (
    PolygonCommand,
    RecordingSurface,
    TextCommand,
    build_frame,
    display_label,
    render_frame,
    stroke_for,
)
from hexaboard.board.selection import SelectionState
from hexaboard.board.viewport import Viewport, ViewportState
from hexaboard.content.storage import MemoryCellStorage

CONFIG = BoardConfig(columns=4, rows=3, cell_radius=10.0)


def _layout():
    return compute_layout(GridSpec(CONFIG.columns, CONFIG.rows, CONFIG.cell_radius))


def _polygons(commands) -> dict[int, PolygonCommand]:
    return {command.index: command for command in commands if isinstance(command, PolygonCommand)}


def test_display_label_truncates_with_ellipsis() -> None:
    assert display_label("short", 10) == "short"
    assert display_label("exactly10!", 10) == "exactly10!"
    assert display_label("abcdefghijkl", 10) == "abcdefghij…"


def test_stroke_precedence() -> None:
    selection = SelectionState(hover_index=3, selected_index=3)
    assert stroke_for(3, selection) == (SELECTED_STROKE, 2)

    selection = SelectionState(hover_index=3, selected_index=1)
    assert stroke_for(3, selection) == (HOVER_STROKE, 1)
    assert stroke_for(1, selection) == (SELECTED_STROKE, 2)
    assert stroke_for(0, selection) == (DEFAULT_STROKE, 1)


def test_frame_draws_every_cell_with_record_fill_and_labels() -> None:
    cache = CellCache(MemoryCellStorage())
    cache.put(2, CellRecord("#ff0000", "abcdefghijkl", "aa"))
    cache.put(5, CellRecord("#00ff00", "", None))
    viewport = Viewport(ViewportState(scale=2.0))

    commands = build_frame(_layout(), viewport, cache, SelectionState(), CONFIG)

    polygons = _polygons(commands)
    assert sorted(polygons) == list(range(12))
    assert polygons[2].fill == "#ff0000"
    assert polygons[5].fill == "#00ff00"
    assert polygons[0].fill == DEFAULT_FILL
    assert len(polygons[0].points) == 6

    labels = [command for command in commands if isinstance(command, TextCommand)]
    assert len(labels) == 1
    assert labels[0].text == "abcdefghij…"
    assert labels[0].max_width == pytest.approx(10.0 * 1.6 * 2.0)
    center = _layout().centers[2]
    assert (labels[0].x, labels[0].y) == pytest.approx((center.x * 2.0, center.y * 2.0))


def test_frame_culls_offscreen_cells() -> None:
    cache = CellCache(MemoryCellStorage())
    layout = _layout()

    everything = build_frame(layout, Viewport(), cache, SelectionState(), CONFIG, (1000, 1000))
    corner = build_frame(layout, Viewport(), cache, SelectionState(), CONFIG, (20, 20))
    nothing = build_frame(layout, Viewport(ViewportState(offset_x=-5000.0)), cache, SelectionState(), CONFIG, (500, 500))

    assert len(everything) == 12
    assert 0 < len(corner) < 12
    assert 0 in _polygons(corner)
    assert nothing == []


def test_render_frame_clears_surface_first() -> None:
    surface = RecordingSurface(800, 600)
    cache = CellCache(MemoryCellStorage())

    issued = render_frame(surface, _layout(), Viewport(), cache, SelectionState(), CONFIG)
    render_frame(surface, _layout(), Viewport(), cache, SelectionState(), CONFIG)

    assert issued == 12
    assert len(surface.commands) == 12
    assert surface.resets == 2
