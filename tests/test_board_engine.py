import asyncio
from collections import Counter

import pytest

from hexaboard.board.claims import CLAIM_CLAIMED, EditDraft
from hexaboard.board.config import BoardConfig, DRAFT_COLOR, SELECTED_STROKE
from hexaboard.board.engine import BoardEngine
from hexaboard.board.errors import StorageReadError
from hexaboard.board.hash import digest_hex
from hexaboard.board.records import CellRecord
from hexaboard.board.render import PolygonCommand, RecordingSurface
from hexaboard.content.storage import JsonFileCellStorage, MemoryCellStorage

SMALL = BoardConfig(columns=3, rows=2, cell_radius=10.0)


def _engine(storage=None, config: BoardConfig = SMALL) -> BoardEngine:
    engine = BoardEngine(storage if storage is not None else MemoryCellStorage(), config)
    engine.initialize()
    return engine


def _center(engine: BoardEngine, index: int) -> tuple[float, float]:
    center = engine.layout.centers[index]
    return engine.viewport.to_screen((center.x, center.y))


def test_claim_and_reload_end_to_end(tmp_path) -> None:
    store_path = tmp_path / "cells.json"

    async def scenario() -> None:
        engine = _engine(JsonFileCellStorage(store_path))
        update = engine.on_pointer_down(_center(engine, 4))
        assert update.selected_index == 4
        assert update.selection_changed
        await engine.settle()

        engine.set_secret("test")
        engine.set_color("#ff0000")
        engine.set_label("Hi")
        saved = await engine.on_save()

        assert saved.save_result.ok
        assert saved.save_result.message == "saved"
        assert engine.draft == EditDraft(secret="", label="Hi", color="#ff0000")
        await engine.dispose()

        reloaded = _engine(JsonFileCellStorage(store_path))
        reloaded.select(4)
        await reloaded.settle()
        assert reloaded.selected_record() == CellRecord("#ff0000", "Hi", digest_hex("test"))
        assert reloaded.selected_claimed()
        assert reloaded.draft.label == "Hi"

    asyncio.run(scenario())


def test_wrong_secret_reports_message_and_keeps_record() -> None:
    storage = MemoryCellStorage()
    asyncio.run(storage.set_cell(1, CellRecord("#00ff00", "Mine", digest_hex("abcd"))))
    engine = _engine(storage)
    engine.select(1)
    asyncio.run(engine.settle())

    engine.set_secret("wrong")
    engine.set_label("Stolen")
    update = asyncio.run(engine.on_save())

    assert not update.save_result.ok
    assert update.save_result.message == "wrong secret"
    assert engine.message == "wrong secret"
    assert engine.cache.get(1).label == "Mine"
    assert engine.editor.claim_state(1) == CLAIM_CLAIMED


def test_save_without_selection_is_a_no_op() -> None:
    engine = _engine()

    update = asyncio.run(engine.on_save())

    assert update.save_result is None


def test_selecting_another_cell_resets_the_draft() -> None:
    engine = _engine()
    engine.select(1)
    engine.set_secret("abcd")
    engine.set_label("draft")

    update = engine.select(2)

    assert update.selection_changed
    assert engine.draft == EditDraft(secret="", label="", color=DRAFT_COLOR)


def test_draft_is_seeded_when_selected_record_arrives() -> None:
    storage = MemoryCellStorage()
    asyncio.run(storage.set_cell(2, CellRecord("#123456", "Moin", None)))
    engine = _engine(storage)

    update = engine.select(2)
    assert update.load_requests == (2,)
    assert engine.draft.label == ""

    assert asyncio.run(engine.settle()) is True
    assert engine.draft == EditDraft(secret="", label="Moin", color="#123456")


def test_label_input_is_truncated() -> None:
    engine = _engine()

    engine.set_label("y" * 39)

    assert engine.draft.label == "y" * 18
    engine.on_clear_label()
    assert engine.draft.label == ""


def test_hover_and_leave() -> None:
    engine = _engine()

    update = engine.on_pointer_move(_center(engine, 3))
    assert update.hover_index == 3
    assert update.hover_changed
    assert update.needs_redraw

    again = engine.on_pointer_move(_center(engine, 3))
    assert not again.hover_changed

    left = engine.on_pointer_leave()
    assert left.hover_index is None
    assert left.hover_changed


def test_click_outside_grid_clears_selection() -> None:
    engine = _engine()
    engine.on_pointer_down(_center(engine, 0))

    update = engine.on_pointer_down((-100.0, -100.0))

    assert update.selected_index is None
    assert update.selection_changed


def test_drag_pans_and_does_not_hover() -> None:
    engine = _engine()

    engine.on_pointer_down((50.0, 50.0), button=3)
    assert engine.dragging
    update = engine.on_pointer_move((80.0, 40.0))

    assert update.viewport_changed
    assert engine.viewport.offset == (30.0, -10.0)
    assert update.hover_index is None

    engine.on_pointer_up()
    assert not engine.dragging


def test_wheel_zoom_is_anchored_and_clamped() -> None:
    engine = _engine()
    cursor = (40.0, 30.0)
    anchor = engine.viewport.to_world(cursor)

    update = engine.on_wheel(cursor, -100.0)

    assert update.viewport_changed
    assert engine.viewport.scale > 1.0
    assert engine.viewport.to_world(cursor) == pytest.approx(anchor)

    for _ in range(100):
        engine.on_wheel(cursor, -500.0)
    assert engine.zoom_percent() == 300


def test_select_rejects_out_of_range_index() -> None:
    engine = _engine()

    with pytest.raises(IndexError):
        engine.select(6)


def test_commands_require_initialize() -> None:
    engine = BoardEngine(MemoryCellStorage(), SMALL)

    with pytest.raises(RuntimeError):
        engine.pick((0.0, 0.0))


def test_render_only_when_dirty() -> None:
    engine = _engine()
    surface = RecordingSurface(400, 300)

    assert engine.render(surface) is True
    assert engine.render(surface) is False

    engine.select(4)
    assert engine.render(surface) is True
    selected = [c for c in surface.commands if isinstance(c, PolygonCommand) and c.index == 4]
    assert selected[0].stroke == SELECTED_STROKE

    engine.on_resize((800, 600))
    assert engine.render(surface) is True
    assert engine.render(surface, force=True) is True


def test_completed_load_triggers_redraw() -> None:
    storage = MemoryCellStorage()
    asyncio.run(storage.set_cell(0, CellRecord("#abcdef", "", None)))
    engine = _engine(storage)
    surface = RecordingSurface(400, 300)
    engine.on_pointer_move(_center(engine, 0))
    engine.render(surface)

    assert asyncio.run(engine.settle()) is True
    engine.render(surface)

    fills = {c.index: c.fill for c in surface.commands if isinstance(c, PolygonCommand)}
    assert fills[0] == "#abcdef"


def test_initialize_with_container_fits_grid() -> None:
    engine = BoardEngine(MemoryCellStorage(), BoardConfig(columns=100, rows=80, cell_radius=14.0))

    engine.initialize((1200, 800))

    assert engine.viewport.offset == (24.0, 24.0)
    assert engine.viewport.scale <= 1.2
    assert engine.info_text() == "100 × 80 cells | Adapter: Memory"


def test_dispose_cancels_loads() -> None:
    async def scenario() -> None:
        engine = _engine()
        engine.on_pointer_move(_center(engine, 5))
        await engine.dispose()
        assert engine.cache.pending == frozenset()
        assert not engine.initialized

    asyncio.run(scenario())


class CountingStorage(MemoryCellStorage):
    def __init__(self, *, read_failures: int = 0, write_failures: int = 0) -> None:
        super().__init__()
        self.reads: Counter[int] = Counter()
        self.read_failures = read_failures
        self.write_failures = write_failures

    async def get_cell(self, index: int) -> CellRecord | None:
        self.reads[index] += 1
        await asyncio.sleep(0)
        if self.read_failures > 0:
            self.read_failures -= 1
            raise StorageReadError("backend unavailable")
        return await super().get_cell(index)

    async def set_cell(self, index: int, record: CellRecord) -> None:
        if self.write_failures > 0:
            self.write_failures -= 1
            raise OSError("disk full")
        await super().set_cell(index, record)


def test_hover_and_click_on_same_cell_share_one_read() -> None:
    storage = CountingStorage()

    async def scenario() -> None:
        engine = _engine(storage)
        point = _center(engine, 4)
        hover = engine.on_pointer_move(point)
        click = engine.on_pointer_down(point)
        assert hover.load_requests == (4,)
        assert click.load_requests == (4,)
        assert engine.cache.is_pending(4)
        await engine.settle()

    asyncio.run(scenario())

    assert storage.reads[4] == 1


def test_failed_write_reports_message_and_keeps_draft() -> None:
    storage = CountingStorage(write_failures=1)
    engine = _engine(storage)
    engine.select(2)
    asyncio.run(engine.settle())
    engine.set_secret("abcd")
    engine.set_label("Hi")
    engine.set_color("#ff0000")

    failed = asyncio.run(engine.on_save())

    assert failed.save_result.ok is False
    assert failed.save_result.message.startswith("could not save cell 2")
    assert engine.message == failed.save_result.message
    assert engine.cache.get(2) is None
    assert engine.draft == EditDraft(secret="abcd", label="Hi", color="#ff0000")

    retried = asyncio.run(engine.on_save())

    assert retried.save_result.ok is True
    assert engine.cache.get(2) == CellRecord("#ff0000", "Hi", digest_hex("abcd"))


def test_failed_read_during_save_is_reported_not_raised() -> None:
    storage = CountingStorage(read_failures=1)
    engine = _engine(storage)
    engine.select(3)
    engine.set_secret("abcd")

    update = asyncio.run(engine.on_save())

    assert update.save_result.ok is False
    assert update.save_result.message.startswith("could not load cell 3")
    assert asyncio.run(storage.get_cell(3)) is None


def test_failed_load_stops_draft_seeding() -> None:
    storage = CountingStorage(read_failures=1)
    asyncio.run(storage.set_cell(2, CellRecord("#123456", "Moin", None)))
    engine = _engine(storage)

    engine.select(2)
    asyncio.run(engine.settle())
    assert not engine.cache.is_loaded(2)

    engine.set_label("typed")
    engine.set_color("#00ff00")
    engine.on_pointer_move(_center(engine, 2))
    asyncio.run(engine.settle())

    assert engine.cache.get(2).label == "Moin"
    assert engine.draft.label == "typed"
    assert engine.draft.color == "#00ff00"


def test_zoom_and_pan_commands_mark_board_dirty() -> None:
    engine = _engine()
    surface = RecordingSurface(400, 300)
    engine.render(surface)

    panned = engine.pan_by((5.0, 5.0))
    assert panned.viewport_changed
    assert engine.render(surface) is True

    zoomed = engine.zoom_at((0.0, 0.0), 2.0)
    assert zoomed.viewport_changed
    assert engine.viewport.scale == 2.0
    assert engine.render(surface) is True

    assert engine.pan_by((0.0, 0.0)).viewport_changed is False
