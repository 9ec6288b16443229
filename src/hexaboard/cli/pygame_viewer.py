from __future__ import annotations

import argparse
import asyncio
import importlib.metadata
import logging
import os
import platform
import sys
from dataclasses import dataclass, field
from typing import Any

from hexaboard.board.config import DRAFT_COLOR, BoardConfig
from hexaboard.board.engine import BoardEngine
from hexaboard.board.render import PolygonCommand, TextCommand
from hexaboard.content.storage import CellStorage, JsonFileCellStorage, MemoryCellStorage
from hexaboard.logging_config import setup_logging

WINDOW_SIZE = (1440, 900)
MIN_WINDOW_SIZE = (640, 480)
PANEL_WIDTH = 380
VIEWPORT_MARGIN = 12
PANEL_MARGIN = 12
FRAME_RATE = 60
WHEEL_NOTCH_DELTA = 100.0
DEFAULT_STORAGE_PATH = "saves/hexaboard_cells.json"

BACKGROUND = (255, 255, 255)
PANEL_BACKGROUND = (249, 250, 251)
PANEL_BORDER = (229, 231, 235)
TEXT_COLOR = (17, 24, 39)
MUTED_TEXT = (107, 114, 128)
FIELD_BORDER = (209, 213, 219)
FOCUS_BORDER = (37, 99, 235)
BUTTON_COLOR = (37, 99, 235)
BUTTON_TEXT = (255, 255, 255)

PALETTE: tuple[str, ...] = (
    DRAFT_COLOR,
    "#fca5a5",
    "#fdba74",
    "#86efac",
    "#93c5fd",
    "#c4b5fd",
    "#f9a8d4",
    "#d1d5db",
)

FIELD_SECRET = "secret"
FIELD_LABEL = "label"
FIELD_COLOR = "color"
FIELD_ORDER: tuple[str, ...] = (FIELD_SECRET, FIELD_LABEL, FIELD_COLOR)

pygame: Any | None = None


@dataclass
class TextField:
    name: str
    max_length: int
    masked: bool = False
    value: str = ""

    def insert(self, text: str) -> None:
        self.value = (self.value + text)[: self.max_length]

    def backspace(self) -> None:
        self.value = self.value[:-1]

    def display_value(self) -> str:
        return "*" * len(self.value) if self.masked else self.value


@dataclass
class EditorPanelState:
    fields: dict[str, TextField] = field(default_factory=dict)
    focused: str | None = None
    rects: dict[str, Any] = field(default_factory=dict)

    def cycle_focus(self) -> None:
        if self.focused not in FIELD_ORDER:
            self.focused = FIELD_ORDER[0]
            return
        position = FIELD_ORDER.index(self.focused)
        self.focused = FIELD_ORDER[(position + 1) % len(FIELD_ORDER)]


def _build_panel_state(config: BoardConfig) -> EditorPanelState:
    return EditorPanelState(
        fields={
            FIELD_SECRET: TextField(FIELD_SECRET, max_length=64, masked=True),
            FIELD_LABEL: TextField(FIELD_LABEL, max_length=config.max_label_length),
            FIELD_COLOR: TextField(FIELD_COLOR, max_length=7, value=DRAFT_COLOR),
        }
    )


def _sync_fields_from_draft(panel: EditorPanelState, engine: BoardEngine) -> None:
    panel.fields[FIELD_SECRET].value = engine.draft.secret
    panel.fields[FIELD_LABEL].value = engine.draft.label
    panel.fields[FIELD_COLOR].value = engine.draft.color


def _push_field_to_draft(panel: EditorPanelState, engine: BoardEngine, name: str) -> None:
    value = panel.fields[name].value
    if name == FIELD_SECRET:
        engine.set_secret(value)
    elif name == FIELD_LABEL:
        engine.set_label(value)
    elif name == FIELD_COLOR:
        engine.set_color(value)


def _truncate_text_to_pixel_width(text: str, font: Any, max_width: int, *, marker: str = "...") -> str:
    normalized = text.strip()
    if not normalized:
        return "?"
    if font.size(normalized)[0] <= max_width:
        return normalized
    cut = len(normalized)
    while cut > 0 and font.size(f"{normalized[:cut]}{marker}")[0] > max_width:
        cut -= 1
    return f"{normalized[:cut]}{marker}"


def _viewport_rect(window_size: tuple[int, int]) -> pygame.Rect:
    panel_x = window_size[0] - PANEL_WIDTH - PANEL_MARGIN
    width = max(1, panel_x - (VIEWPORT_MARGIN * 2))
    return pygame.Rect(VIEWPORT_MARGIN, VIEWPORT_MARGIN, width, max(1, window_size[1] - (VIEWPORT_MARGIN * 2)))


def _panel_rect(window_size: tuple[int, int]) -> pygame.Rect:
    panel_x = window_size[0] - PANEL_WIDTH - PANEL_MARGIN
    return pygame.Rect(panel_x, PANEL_MARGIN, PANEL_WIDTH, max(1, window_size[1] - (PANEL_MARGIN * 2)))


class PygameSurface:
    """Offscreen board buffer; the engine draws into it only when something changed."""

    def __init__(self, size: tuple[int, int], font: pygame.font.Font) -> None:
        self.font = font
        self.buffer = pygame.Surface(size)

    def size(self) -> tuple[int, int]:
        return self.buffer.get_size()

    def resize(self, size: tuple[int, int]) -> None:
        self.buffer = pygame.Surface(size)
        self.reset()

    def reset(self) -> None:
        self.buffer.fill(BACKGROUND)

    def draw_polygon(self, command: PolygonCommand) -> None:
        pygame.draw.polygon(self.buffer, pygame.Color(command.fill), command.points)
        pygame.draw.polygon(self.buffer, pygame.Color(command.stroke), command.points, command.width)

    def draw_text(self, command: TextCommand) -> None:
        text = command.text
        if self.font.size(text)[0] > command.max_width:
            text = _truncate_text_to_pixel_width(text, self.font, int(command.max_width), marker="…")
        surface = self.font.render(text, True, pygame.Color(command.color))
        self.buffer.blit(surface, surface.get_rect(center=(int(command.x), int(command.y))))

    def blit_to(self, screen: pygame.Surface, rect: pygame.Rect) -> None:
        screen.blit(self.buffer, rect.topleft)
        pygame.draw.rect(screen, PANEL_BORDER, rect, 1)


def _draw_header(screen: pygame.Surface, engine: BoardEngine, font: pygame.font.Font, rect: pygame.Rect) -> None:
    text = f"HexaBoard  Zoom: {engine.zoom_percent()}%  {engine.info_text()}"
    surface = font.render(text, True, TEXT_COLOR)
    box = surface.get_rect(topleft=(rect.x + 12, rect.y + 12)).inflate(16, 10)
    pygame.draw.rect(screen, (255, 255, 255), box, border_radius=10)
    pygame.draw.rect(screen, PANEL_BORDER, box, 1, border_radius=10)
    screen.blit(surface, (rect.x + 12, rect.y + 12))


def _draw_controls_hint(screen: pygame.Surface, font: pygame.font.Font, rect: pygame.Rect) -> None:
    text = "Left click: select cell | Wheel: zoom | Right/middle drag: pan | Tab: next field | Enter: save"
    surface = font.render(text, True, MUTED_TEXT)
    screen.blit(surface, (rect.x + 12, rect.bottom - surface.get_height() - 12))


def _draw_field(
    screen: pygame.Surface,
    font: pygame.font.Font,
    panel: EditorPanelState,
    name: str,
    rect: pygame.Rect,
) -> None:
    border = FOCUS_BORDER if panel.focused == name else FIELD_BORDER
    pygame.draw.rect(screen, (255, 255, 255), rect, border_radius=8)
    pygame.draw.rect(screen, border, rect, 1, border_radius=8)
    value = panel.fields[name].display_value()
    if value:
        shown = _truncate_text_to_pixel_width(value, font, rect.width - 16)
        screen.blit(font.render(shown, True, TEXT_COLOR), (rect.x + 8, rect.y + 8))
    panel.rects[name] = rect


def _draw_editor_panel(
    screen: pygame.Surface,
    engine: BoardEngine,
    panel: EditorPanelState,
    font: pygame.font.Font,
    small_font: pygame.font.Font,
    rect: pygame.Rect,
) -> None:
    pygame.draw.rect(screen, PANEL_BACKGROUND, rect)
    pygame.draw.rect(screen, PANEL_BORDER, rect, 1)
    panel.rects = {}
    x = rect.x + 16
    width = rect.width - 32
    y = rect.y + 16

    screen.blit(font.render("Editor", True, TEXT_COLOR), (x, y))
    y += 30
    screen.blit(small_font.render("Select a cell, enter its code, edit and save.", True, MUTED_TEXT), (x, y))
    y += 32

    index = engine.selection.selected_index
    if index is None:
        screen.blit(small_font.render("No cell selected.", True, MUTED_TEXT), (x, y))
        return

    screen.blit(small_font.render("Index", True, MUTED_TEXT), (x, y))
    screen.blit(font.render(str(index), True, TEXT_COLOR), (x, y + 18))
    y += 56

    claimed = engine.selected_claimed()
    screen.blit(small_font.render("Code", True, TEXT_COLOR), (x, y))
    y += 20
    _draw_field(screen, font, panel, FIELD_SECRET, pygame.Rect(x, y, width, 36))
    y += 42
    if not engine.cache.is_loaded(index):
        hint = "Loading cell..."
    elif claimed:
        hint = "Already claimed. Enter the code to edit."
    else:
        hint = f"Still free: set a code (min. {engine.config.min_secret_length} characters) to claim it."
    screen.blit(small_font.render(hint, True, MUTED_TEXT), (x, y))
    y += 30

    screen.blit(small_font.render(f"Label (max. {engine.config.max_label_length} characters)", True, TEXT_COLOR), (x, y))
    y += 20
    _draw_field(screen, font, panel, FIELD_LABEL, pygame.Rect(x, y, width - 90, 36))
    clear_rect = pygame.Rect(x + width - 82, y, 82, 36)
    pygame.draw.rect(screen, (255, 255, 255), clear_rect, border_radius=8)
    pygame.draw.rect(screen, FIELD_BORDER, clear_rect, 1, border_radius=8)
    clear_text = small_font.render("Clear", True, TEXT_COLOR)
    screen.blit(clear_text, clear_text.get_rect(center=clear_rect.center))
    panel.rects["clear"] = clear_rect
    y += 50

    screen.blit(small_font.render("Color", True, TEXT_COLOR), (x, y))
    y += 20
    _draw_field(screen, font, panel, FIELD_COLOR, pygame.Rect(x, y, 120, 36))
    swatch_rect = pygame.Rect(x + 130, y, 36, 36)
    try:
        swatch_color = pygame.Color(engine.draft.color)
    except ValueError:
        swatch_color = pygame.Color(PANEL_BACKGROUND)
    pygame.draw.rect(screen, swatch_color, swatch_rect, border_radius=8)
    pygame.draw.rect(screen, FIELD_BORDER, swatch_rect, 1, border_radius=8)
    y += 44
    for position, color in enumerate(PALETTE):
        chip = pygame.Rect(x + position * 32, y, 26, 26)
        pygame.draw.rect(screen, pygame.Color(color), chip, border_radius=6)
        pygame.draw.rect(screen, FIELD_BORDER, chip, 1, border_radius=6)
        panel.rects[f"palette:{color}"] = chip
    y += 44

    save_rect = pygame.Rect(x, y, width, 40)
    pygame.draw.rect(screen, BUTTON_COLOR, save_rect, border_radius=12)
    save_text = font.render("Save", True, BUTTON_TEXT)
    screen.blit(save_text, save_text.get_rect(center=save_rect.center))
    panel.rects["save"] = save_rect
    y += 50
    if engine.message:
        screen.blit(small_font.render(engine.message, True, TEXT_COLOR), (x, y))
    y += 40

    pygame.draw.line(screen, PANEL_BORDER, (x, y), (x + width, y))
    y += 10
    screen.blit(small_font.render(f"Storage: {engine.storage_name}", True, MUTED_TEXT), (x, y))


def _panel_hit(panel: EditorPanelState, pos: tuple[int, int]) -> str | None:
    for name, rect in panel.rects.items():
        if rect.collidepoint(pos):
            return name
    return None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hexaboard",
        description="Run the HexaBoard pygame viewer.",
    )
    parser.add_argument(
        "--storage-path",
        default=DEFAULT_STORAGE_PATH,
        help="Path to the JSON cell store (created on first save).",
    )
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Keep cells in memory only; nothing is written to disk.",
    )
    parser.add_argument("--columns", type=int, default=BoardConfig.columns, help="Grid columns.")
    parser.add_argument("--rows", type=int, default=BoardConfig.rows, help="Grid rows.")
    parser.add_argument("--radius", type=float, default=BoardConfig.cell_radius, help="Cell radius in world pixels.")
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Force SDL dummy video driver, render one frame and exit without opening a real window.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Log level for the hexaboard logger.",
    )
    return parser


def _env_flag_enabled(var_name: str) -> bool:
    return os.environ.get(var_name, "").strip().lower() in {"1", "true", "yes", "on"}


def _print_startup_banner() -> None:
    try:
        pygame_version = importlib.metadata.version("pygame")
    except importlib.metadata.PackageNotFoundError:
        pygame_version = "not-installed"
    print(
        "[hexaboard.viewer] startup "
        f"python={platform.python_version()} "
        f"pygame={pygame_version} "
        f"platform={platform.platform()}"
    )
    for name in ("SDL_VIDEODRIVER", "SDL_AUDIODRIVER", "SDL_VIDEO_WINDOW_POS"):
        value = os.environ.get(name, "<unset>")
        print(f"[hexaboard.viewer] env {name}={value}")


def _ensure_pygame_imported() -> Any:
    global pygame
    if pygame is None:
        import pygame as pygame_module

        pygame = pygame_module
    return pygame


def _build_storage(storage_path: str, *, memory: bool) -> CellStorage:
    if memory:
        return MemoryCellStorage()
    return JsonFileCellStorage(storage_path)


def _build_engine(config: BoardConfig, storage: CellStorage, container_size: tuple[int, int]) -> BoardEngine:
    engine = BoardEngine(storage, config)
    engine.initialize(container_size)
    return engine


async def _run_loop(engine: BoardEngine, screen: pygame.Surface, window_size: tuple[int, int]) -> None:
    pygame_module = pygame
    clock = pygame_module.time.Clock()
    font = pygame_module.font.SysFont("arial", 18)
    small_font = pygame_module.font.SysFont("arial", 14)
    label_font = pygame_module.font.SysFont("arial", 10)

    panel = _build_panel_state(engine.config)
    viewport_rect = _viewport_rect(window_size)
    board_surface = PygameSurface(viewport_rect.size, label_font)
    last_selected: int | None = None
    last_draft = engine.draft
    running = True
    pygame_module.key.start_text_input()

    def local(pos: tuple[int, int]) -> tuple[float, float]:
        return (float(pos[0] - viewport_rect.x), float(pos[1] - viewport_rect.y))

    async def save() -> None:
        for name in FIELD_ORDER:
            _push_field_to_draft(panel, engine, name)
        update = await engine.on_save()
        if update.save_result is not None:
            status = "saved" if update.save_result.ok else "rejected"
            print(f"[hexaboard.viewer] save {status} index={update.selected_index}: {update.save_result.message}")
        _sync_fields_from_draft(panel, engine)

    while running:
        clock.tick(FRAME_RATE)

        for event in pygame_module.event.get():
            if event.type == pygame_module.QUIT:
                running = False
            elif event.type == pygame_module.VIDEORESIZE:
                window_size = (max(MIN_WINDOW_SIZE[0], event.w), max(MIN_WINDOW_SIZE[1], event.h))
                screen = pygame_module.display.set_mode(window_size, pygame_module.RESIZABLE)
                viewport_rect = _viewport_rect(window_size)
                board_surface.resize(viewport_rect.size)
                engine.on_resize(viewport_rect.size)
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_ESCAPE:
                if panel.focused is None:
                    running = False
                panel.focused = None
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_TAB:
                panel.cycle_focus()
            elif event.type == pygame_module.KEYDOWN and event.key in (pygame_module.K_RETURN, pygame_module.K_KP_ENTER):
                await save()
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_BACKSPACE and panel.focused:
                panel.fields[panel.focused].backspace()
                _push_field_to_draft(panel, engine, panel.focused)
            elif event.type == pygame_module.TEXTINPUT and panel.focused:
                panel.fields[panel.focused].insert(event.text)
                _push_field_to_draft(panel, engine, panel.focused)
            elif event.type == pygame_module.MOUSEWHEEL:
                pos = pygame_module.mouse.get_pos()
                if viewport_rect.collidepoint(pos):
                    engine.on_wheel(local(pos), -event.y * WHEEL_NOTCH_DELTA)
            elif event.type == pygame_module.MOUSEBUTTONDOWN and event.button in (1, 2, 3):
                if viewport_rect.collidepoint(event.pos):
                    panel.focused = None
                    engine.on_pointer_down(local(event.pos), event.button)
                elif event.button == 1:
                    hit = _panel_hit(panel, event.pos)
                    if hit in FIELD_ORDER:
                        panel.focused = hit
                    elif hit == "clear":
                        engine.on_clear_label()
                        _sync_fields_from_draft(panel, engine)
                    elif hit == "save":
                        await save()
                    elif hit is not None and hit.startswith("palette:"):
                        engine.set_color(hit.split(":", 1)[1])
                        _sync_fields_from_draft(panel, engine)
            elif event.type == pygame_module.MOUSEBUTTONUP:
                engine.on_pointer_up()
            elif event.type == pygame_module.MOUSEMOTION:
                if viewport_rect.collidepoint(event.pos) or engine.dragging:
                    engine.on_pointer_move(local(event.pos))
                else:
                    engine.on_pointer_leave()

        if engine.selection.selected_index != last_selected:
            last_selected = engine.selection.selected_index
            panel.focused = FIELD_SECRET if last_selected is not None else None

        # Let hover/click loads resolve between frames.
        await asyncio.sleep(0)
        engine.refresh()
        if engine.draft is not last_draft:
            last_draft = engine.draft
            _sync_fields_from_draft(panel, engine)

        screen.fill(BACKGROUND)
        engine.render(board_surface)
        board_surface.blit_to(screen, viewport_rect)
        _draw_header(screen, engine, small_font, viewport_rect)
        _draw_controls_hint(screen, small_font, viewport_rect)
        _draw_editor_panel(screen, engine, panel, font, small_font, _panel_rect(window_size))
        pygame_module.display.flip()

    pygame_module.key.stop_text_input()


def run_pygame_viewer(
    storage_path: str = DEFAULT_STORAGE_PATH,
    *,
    memory: bool = False,
    config: BoardConfig | None = None,
    headless: bool = False,
) -> int:
    if headless:
        os.environ["SDL_VIDEODRIVER"] = "dummy"
        print("[hexaboard.viewer] warning: headless mode active; no window will open.")

    _print_startup_banner()
    pygame_module = _ensure_pygame_imported()
    board_config = config if config is not None else BoardConfig()

    try:
        pygame_module.init()
    except Exception as exc:
        print(
            "[hexaboard.viewer] failed during pygame.init(): "
            f"{exc}. Hint: verify a working SDL video driver (set SDL_VIDEODRIVER=dummy for headless mode).",
            file=sys.stderr,
        )
        return 1

    try:
        pygame_module.display.set_caption("HexaBoard")
        screen = pygame_module.display.set_mode(WINDOW_SIZE, pygame_module.RESIZABLE)
    except Exception as exc:
        print(
            "[hexaboard.viewer] failed during pygame.display.set_mode(...): "
            f"{exc}. Hint: GUI sessions require a valid display; in CI/WSL/remote shells use --headless or HEXABOARD_HEADLESS=1.",
            file=sys.stderr,
        )
        pygame_module.quit()
        return 1

    driver_name = pygame_module.display.get_driver()
    print(f"[hexaboard.viewer] display initialized: {driver_name}, window size={WINDOW_SIZE}")

    storage = _build_storage(storage_path, memory=memory)
    viewport_rect = _viewport_rect(WINDOW_SIZE)
    try:
        engine = _build_engine(board_config, storage, viewport_rect.size)
    except Exception as exc:
        print(f"[hexaboard.viewer] failed to initialize board: {exc}", file=sys.stderr)
        pygame_module.quit()
        return 1
    print(f"[hexaboard.viewer] board ready: {engine.info_text()} zoom={engine.zoom_percent()}%")

    if headless:
        board_surface = PygameSurface(viewport_rect.size, pygame_module.font.SysFont("arial", 10))
        engine.render(board_surface, force=True)
        board_surface.blit_to(screen, viewport_rect)
        pygame_module.display.flip()
        asyncio.run(engine.dispose())
        pygame_module.quit()
        return 0

    async def session() -> None:
        try:
            await _run_loop(engine, screen, WINDOW_SIZE)
        finally:
            await engine.dispose()

    asyncio.run(session())
    pygame_module.quit()
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logging(getattr(logging, args.log_level))
    headless = args.headless or _env_flag_enabled("HEXABOARD_HEADLESS")
    try:
        config = BoardConfig(columns=args.columns, rows=args.rows, cell_radius=args.radius)
    except ValueError as exc:
        parser.error(str(exc))
    raise SystemExit(
        run_pygame_viewer(
            storage_path=args.storage_path,
            memory=args.memory,
            config=config,
            headless=headless,
        )
    )


if __name__ == "__main__":
    main()
