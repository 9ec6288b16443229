from __future__ import annotations

import argparse
import asyncio
import shlex
from typing import Callable, Sequence

from hexaboard.board.config import BoardConfig
from hexaboard.board.engine import BoardEngine, EngineUpdate
from hexaboard.board.render import RecordingSurface, TextCommand
from hexaboard.content.storage import JsonFileCellStorage, MemoryCellStorage

DEFAULT_STORAGE_PATH = "saves/hexaboard_cells.json"
DEFAULT_CONTAINER_SIZE = (1024, 768)
HELP_TEXT = (
    "Commands: show | cell <index> | pick <x> <y> | select <index> | code <secret> | label <text> | "
    "color <#rrggbb> | clear | save | zoom <factor> [x y] | pan <dx> <dy> | fit | quit"
)


class AsciiViewer:
    """Read-only projection of board state for terminal display."""

    def render(self, engine: BoardEngine) -> str:
        lines: list[str] = [f"zoom={engine.zoom_percent()}% offset=({engine.viewport.offset[0]:.1f},{engine.viewport.offset[1]:.1f})"]
        lines.append(engine.info_text())
        lines.append(f"hover={engine.selection.hover_index} selected={engine.selection.selected_index}")
        if engine.selection.selected_index is not None:
            lines.append(self.describe_cell(engine, engine.selection.selected_index))
            draft = engine.draft
            lines.append(f"draft label={draft.label!r} color={draft.color} code={'*' * len(draft.secret)}")
        if engine.message:
            lines.append(f"message: {engine.message}")

        surface = RecordingSurface(*(engine.surface_size or DEFAULT_CONTAINER_SIZE))
        engine.render(surface, force=True)
        labels = [command for command in surface.commands if isinstance(command, TextCommand)]
        polygons = len(surface.commands) - len(labels)
        lines.append(f"visible cells={polygons} labels={len(labels)} loaded={len(engine.cache)}")
        for command in labels:
            lines.append(f"  [{command.index}] {command.text} @ ({command.x:.0f},{command.y:.0f})")
        return "\n".join(lines)

    def describe_cell(self, engine: BoardEngine, index: int) -> str:
        state = engine.editor.claim_state(index)
        record = engine.cache.get(index)
        if record is None:
            return f"cell[{index}] {state}"
        return f"cell[{index}] {state} color={record.color} label={record.label!r}"


class BoardController:
    """Line-command adapter; drives the engine but does not own its state."""

    def __init__(self, engine: BoardEngine) -> None:
        self.engine = engine

    def _settled(self, update: EngineUpdate) -> EngineUpdate:
        if update.load_requests:
            asyncio.run(self.engine.settle())
        return update

    def pick(self, x: float, y: float) -> int | None:
        return self.engine.pick((x, y))

    def select(self, index: int | None) -> EngineUpdate:
        return self._settled(self.engine.select(index))

    def click(self, x: float, y: float) -> EngineUpdate:
        return self._settled(self.engine.on_pointer_down((x, y)))

    def zoom(self, factor: float, x: float = 0.0, y: float = 0.0) -> EngineUpdate:
        return self.engine.zoom_at((x, y), factor)

    def pan(self, dx: float, dy: float) -> EngineUpdate:
        return self.engine.pan_by((dx, dy))

    def save(self) -> EngineUpdate:
        return asyncio.run(self.engine.on_save())


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hexaboard-term", description="Terminal HexaBoard shell.")
    parser.add_argument("--storage-path", default=DEFAULT_STORAGE_PATH, help="Path to the JSON cell store.")
    parser.add_argument("--memory", action="store_true", help="Keep cells in memory only.")
    parser.add_argument("--columns", type=int, default=BoardConfig.columns, help="Grid columns.")
    parser.add_argument("--rows", type=int, default=BoardConfig.rows, help="Grid rows.")
    parser.add_argument("--radius", type=float, default=BoardConfig.cell_radius, help="Cell radius in world pixels.")
    return parser


def execute(controller: BoardController, view: AsciiViewer, raw: str) -> str:
    """Run one REPL line and return the text to print."""
    engine = controller.engine
    try:
        parts = shlex.split(raw)
    except ValueError as exc:
        return f"parse error: {exc}"
    if not parts:
        return ""
    command, args = parts[0], parts[1:]

    if command == "show":
        return view.render(engine)
    if command == "cell" and len(args) == 1:
        index = int(args[0])
        if not 0 <= index < len(engine.layout.centers):
            raise IndexError(f"cell index out of range: {index}")
        asyncio.run(engine.cache.ensure_loaded(index))
        return view.describe_cell(engine, index)
    if command == "pick" and len(args) == 2:
        update = controller.click(float(args[0]), float(args[1]))
        return f"selected {update.selected_index}"
    if command == "select" and len(args) == 1:
        update = controller.select(int(args[0]))
        return f"selected {update.selected_index}"
    if command == "code" and len(args) == 1:
        engine.set_secret(args[0])
        return "code set"
    if command == "label":
        engine.set_label(" ".join(args))
        return f"label {engine.draft.label!r}"
    if command == "color" and len(args) == 1:
        engine.set_color(args[0])
        return f"color {engine.draft.color}"
    if command == "clear":
        engine.on_clear_label()
        return "label cleared"
    if command == "save":
        update = controller.save()
        if update.save_result is None:
            return "no cell selected"
        return update.save_result.message
    if command == "zoom" and len(args) in (1, 3):
        anchor = (float(args[1]), float(args[2])) if len(args) == 3 else (0.0, 0.0)
        controller.zoom(float(args[0]), *anchor)
        return f"zoom {engine.zoom_percent()}%"
    if command == "pan" and len(args) == 2:
        controller.pan(float(args[0]), float(args[1]))
        return f"offset ({engine.viewport.offset[0]:.1f},{engine.viewport.offset[1]:.1f})"
    if command == "fit":
        engine.fit_to_container(engine.surface_size or DEFAULT_CONTAINER_SIZE)
        return f"zoom {engine.zoom_percent()}%"
    return "unknown command"


def run_repl(
    argv: Sequence[str] | None = None,
    *,
    read_line: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> int:
    args = _build_parser().parse_args(argv)
    config = BoardConfig(columns=args.columns, rows=args.rows, cell_radius=args.radius)
    storage = MemoryCellStorage() if args.memory else JsonFileCellStorage(args.storage_path)
    engine = BoardEngine(storage, config)
    engine.initialize(DEFAULT_CONTAINER_SIZE)

    view = AsciiViewer()
    controller = BoardController(engine)

    write(f"HexaBoard terminal. {HELP_TEXT}")
    while True:
        try:
            raw = read_line("> ").strip()
        except EOFError:
            break
        if raw in {"quit", "exit"}:
            break
        if raw in {"help", "?"}:
            write(HELP_TEXT)
            continue
        try:
            output = execute(controller, view, raw)
        except (ValueError, IndexError) as exc:
            output = f"error: {exc}"
        if output:
            write(output)

    asyncio.run(engine.dispose())
    return 0


if __name__ == "__main__":
    raise SystemExit(run_repl())
