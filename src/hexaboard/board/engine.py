from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable

from hexaboard.board.cache import CellCache
from hexaboard.board.claims import CLAIM_CLAIMED, CellEditor, EditDraft
from hexaboard.board.config import BoardConfig
from hexaboard.board.errors import AuthError, StorageError, ValidationError
from hexaboard.board.geometry import GridLayout, GridSpec, compute_layout
from hexaboard.board.hash import digest_hex
from hexaboard.board.hit_test import CellLocator
from hexaboard.board.records import CellRecord
from hexaboard.board.render import DrawingSurface, render_frame
from hexaboard.board.selection import SelectionState
from hexaboard.board.viewport import Viewport, wheel_factor
from hexaboard.content.storage import CellStorage

logger = logging.getLogger(__name__)

BUTTON_PRIMARY = 1
PAN_BUTTONS = frozenset({2, 3})


@dataclass(frozen=True)
class SaveResult:
    ok: bool
    message: str
    record: CellRecord | None = None


@dataclass(frozen=True)
class EngineUpdate:
    """What a command changed; the embedding shell decides when to repaint."""

    hover_index: int | None
    selected_index: int | None
    hover_changed: bool = False
    selection_changed: bool = False
    viewport_changed: bool = False
    needs_redraw: bool = False
    load_requests: tuple[int, ...] = ()
    save_result: SaveResult | None = None


@dataclass
class _DragState:
    last_x: float
    last_y: float


@dataclass
class _Changes:
    hover: bool = False
    selection: bool = False
    viewport: bool = False
    loads: list[int] = field(default_factory=list)


class BoardEngine:
    """
    Interaction core for one board: geometry, viewport, selection, cache
    and the claim/edit protocol behind a command interface.

    Commands that may start storage reads expect to run inside an asyncio
    loop; without one the reads are queued until ``settle()`` is awaited.
    """

    def __init__(
        self,
        storage: CellStorage,
        config: BoardConfig | None = None,
        *,
        digest: Callable[[str], str] = digest_hex,
    ) -> None:
        self.config = config if config is not None else BoardConfig()
        self.storage = storage
        self.cache = CellCache(storage)
        self.editor = CellEditor(self.cache, digest=digest, config=self.config)
        self.viewport = Viewport(min_scale=self.config.min_zoom, max_scale=self.config.max_zoom)
        self.selection = SelectionState()
        self.draft = EditDraft()
        self.message = ""
        self.layout: GridLayout | None = None
        self.locator: CellLocator | None = None
        self.surface_size: tuple[int, int] | None = None
        self.needs_redraw = False
        self._drag: _DragState | None = None
        self._queued_loads: set[int] = set()
        self._rendered_revision = -1
        self._draft_awaiting_record = False

    # -- lifecycle -----------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self.layout is not None

    def initialize(self, container_size: tuple[int, int] | None = None) -> None:
        spec = GridSpec(self.config.columns, self.config.rows, self.config.cell_radius)
        self.layout = compute_layout(spec)
        self.locator = CellLocator(self.layout)
        if container_size is not None:
            self.surface_size = container_size
            self.fit_to_container(container_size)
        self.needs_redraw = True
        logger.info(
            f"Board initialized: {spec.columns}x{spec.rows} cells, radius={spec.cell_radius}, storage={self.storage_name}"
        )

    async def dispose(self) -> None:
        await self.cache.cancel_pending()
        self._queued_loads.clear()
        self._drag = None
        self.layout = None
        self.locator = None
        logger.info("Board disposed")

    def _require_layout(self) -> GridLayout:
        if self.layout is None:
            raise RuntimeError("BoardEngine.initialize() must be called first")
        return self.layout

    # -- queries -------------------------------------------------------------------

    @property
    def storage_name(self) -> str:
        return getattr(self.storage, "name", type(self.storage).__name__)

    @property
    def dragging(self) -> bool:
        return self._drag is not None

    def info_text(self) -> str:
        return f"{self.config.columns:,} × {self.config.rows:,} cells | Adapter: {self.storage_name}"

    def zoom_percent(self) -> int:
        return int(round(self.viewport.scale * 100))

    def selected_record(self) -> CellRecord | None:
        if self.selection.selected_index is None:
            return None
        return self.cache.get(self.selection.selected_index)

    def selected_claimed(self) -> bool:
        index = self.selection.selected_index
        return index is not None and self.editor.claim_state(index) == CLAIM_CLAIMED

    def pick(self, screen_point: tuple[float, float]) -> int | None:
        self._require_layout()
        return self.locator.pick(self.viewport.to_world(screen_point))

    # -- commands --------------------------------------------------------------------

    def on_pointer_move(self, screen_point: tuple[float, float]) -> EngineUpdate:
        changes = _Changes()
        if self._drag is not None:
            delta = (screen_point[0] - self._drag.last_x, screen_point[1] - self._drag.last_y)
            self._drag.last_x, self._drag.last_y = screen_point
            changes.viewport = self.viewport.pan_by(delta)
            return self._finish(changes)
        index = self.pick(screen_point)
        changes.hover = self.selection.set_hover(index)
        if index is not None:
            self._request_load(index, changes)
        return self._finish(changes)

    def on_pointer_down(self, screen_point: tuple[float, float], button: int = BUTTON_PRIMARY) -> EngineUpdate:
        changes = _Changes()
        if button == BUTTON_PRIMARY:
            index = self.pick(screen_point)
            changes.hover = self.selection.set_hover(index)
            if self.selection.set_selected(index):
                changes.selection = True
                self._reset_draft()
            if index is not None:
                self._request_load(index, changes)
        elif button in PAN_BUTTONS:
            self._drag = _DragState(last_x=screen_point[0], last_y=screen_point[1])
        return self._finish(changes)

    def on_pointer_up(self) -> EngineUpdate:
        self._drag = None
        return self._finish(_Changes())

    def on_pointer_leave(self) -> EngineUpdate:
        self._drag = None
        changes = _Changes(hover=self.selection.set_hover(None))
        return self._finish(changes)

    def on_wheel(self, screen_point: tuple[float, float], delta_y: float) -> EngineUpdate:
        return self.zoom_at(screen_point, wheel_factor(delta_y))

    def zoom_at(self, screen_point: tuple[float, float], factor: float) -> EngineUpdate:
        return self._finish(_Changes(viewport=self.viewport.zoom_at(screen_point, factor)))

    def pan_by(self, delta: tuple[float, float]) -> EngineUpdate:
        return self._finish(_Changes(viewport=self.viewport.pan_by(delta)))

    def on_resize(self, size: tuple[int, int]) -> EngineUpdate:
        self.surface_size = size
        self.needs_redraw = True
        return self._finish(_Changes())

    def select(self, index: int | None) -> EngineUpdate:
        layout = self._require_layout()
        if index is not None and not 0 <= index < len(layout.centers):
            raise IndexError(f"cell index out of range: {index}")
        changes = _Changes()
        if self.selection.set_selected(index):
            changes.selection = True
            self._reset_draft()
        if index is not None:
            self._request_load(index, changes)
        return self._finish(changes)

    def fit_to_container(self, container_size: tuple[int, int]) -> EngineUpdate:
        layout = self._require_layout()
        self.viewport.fit_to_container(
            container_size,
            (layout.bounding_width, layout.bounding_height),
            self.config.fit_padding,
            max_fit_scale=self.config.max_fit_scale,
        )
        return self._finish(_Changes(viewport=True))

    def set_secret(self, value: str) -> None:
        self.draft.secret = value

    def set_label(self, value: str) -> None:
        self.draft.label = value[: self.config.max_label_length]

    def set_color(self, value: str) -> None:
        self.draft.color = value

    def on_clear_label(self) -> None:
        self.draft.label = ""

    async def on_save(self) -> EngineUpdate:
        index = self.selection.selected_index
        if index is None:
            return self._finish(_Changes())
        self.message = ""
        try:
            record = await self.editor.save(
                index,
                secret=self.draft.secret,
                label=self.draft.label,
                color=self.draft.color,
            )
        except (ValidationError, AuthError, StorageError) as exc:
            self.message = str(exc)
            logger.info(f"Save rejected for cell {index}: {exc}")
            result = SaveResult(ok=False, message=self.message)
        else:
            self.message = "saved"
            self.draft = EditDraft(label=record.label, color=record.color)
            result = SaveResult(ok=True, message=self.message, record=record)
        update = self._finish(_Changes())
        return EngineUpdate(
            hover_index=update.hover_index,
            selected_index=update.selected_index,
            needs_redraw=update.needs_redraw,
            save_result=result,
        )

    async def settle(self) -> bool:
        """Run queued and in-flight loads to completion; True if the board needs a redraw."""
        queued = sorted(self._queued_loads)
        self._queued_loads.clear()
        for index in queued:
            self.cache.request(index)
        pending = self.cache.pending_tasks()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._sync_cache()
        return self.needs_redraw

    def refresh(self) -> bool:
        """Pick up loads that completed since the last command; True if a redraw is due."""
        self._sync_cache()
        return self.needs_redraw

    def render(self, surface: DrawingSurface, *, force: bool = False) -> bool:
        """Draw one frame if anything changed since the last one."""
        layout = self._require_layout()
        self._sync_cache()
        if not (force or self.needs_redraw):
            return False
        render_frame(surface, layout, self.viewport, self.cache, self.selection, self.config)
        self.needs_redraw = False
        return True

    # -- internals --------------------------------------------------------------------

    def _request_load(self, index: int, changes: _Changes) -> None:
        if self.cache.is_loaded(index):
            return
        changes.loads.append(index)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._queued_loads.add(index)
            return
        self.cache.request(index)

    def _reset_draft(self) -> None:
        self.message = ""
        index = self.selection.selected_index
        if index is None:
            self.draft = EditDraft()
            self._draft_awaiting_record = False
            return
        self.draft = EditDraft.for_record(self.cache.get(index))
        self._draft_awaiting_record = not self.cache.is_loaded(index)

    def _sync_cache(self) -> None:
        if self.cache.revision != self._rendered_revision:
            self._rendered_revision = self.cache.revision
            self.needs_redraw = True
        index = self.selection.selected_index
        if not self._draft_awaiting_record or index is None:
            return
        if self.cache.is_loaded(index):
            record = self.cache.get(index)
            if record is not None:
                self.draft = EditDraft(secret=self.draft.secret, label=record.label, color=record.color)
            self._draft_awaiting_record = False
        elif not self.cache.is_pending(index) and index not in self._queued_loads:
            # The load failed; later loads must not overwrite what the user typed meanwhile.
            self._draft_awaiting_record = False

    def _finish(self, changes: _Changes) -> EngineUpdate:
        if changes.hover or changes.selection or changes.viewport:
            self.needs_redraw = True
        self._sync_cache()
        return EngineUpdate(
            hover_index=self.selection.hover_index,
            selected_index=self.selection.selected_index,
            hover_changed=changes.hover,
            selection_changed=changes.selection,
            viewport_changed=changes.viewport,
            needs_redraw=self.needs_redraw,
            load_requests=tuple(changes.loads),
        )
