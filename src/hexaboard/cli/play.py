from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from hexaboard.cli.pygame_viewer import run_pygame_viewer
from hexaboard.content.io import save_store_json
from hexaboard.logging_config import setup_logging

DEFAULT_STORAGE_PATH = "saves/hexaboard_cells.json"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hexaboard-play", description="Canonical HexaBoard launcher.")
    parser.add_argument("--storage-path", default=DEFAULT_STORAGE_PATH, help="Cell store to open (created empty when missing).")
    parser.add_argument("--headless", action="store_true", help="Run startup path in headless mode.")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Log level for the hexaboard logger.",
    )
    return parser


def _ensure_store_exists(*, storage_path: str) -> None:
    store_file = Path(storage_path)
    if store_file.exists():
        return
    save_store_json(store_file, {})


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(getattr(logging, args.log_level))
    _ensure_store_exists(storage_path=args.storage_path)
    return run_pygame_viewer(
        storage_path=args.storage_path,
        headless=args.headless,
    )


if __name__ == "__main__":
    raise SystemExit(main())
