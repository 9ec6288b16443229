from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

from hexaboard.content.schema import cell_entry_problem, validate_store_document, validate_store_payload

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
CANONICAL_JSON_INDENT = 2
CANONICAL_JSON_SEPARATORS = (",", ": ")


def _canonical_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, indent=CANONICAL_JSON_INDENT, separators=CANONICAL_JSON_SEPARATORS, sort_keys=True)


def _replace_file_atomically(destination: Path, text: str) -> None:
    """Write text next to destination, fsync it, then swap it in; readers never see a partial store."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    staged: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=destination.parent,
            prefix=f".{destination.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            staged = Path(handle.name)
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(staged, destination)
        staged = None
    finally:
        if staged is not None:
            staged.unlink(missing_ok=True)


def build_store_payload(cells: dict[str, str]) -> dict[str, Any]:
    return {"schema_version": SCHEMA_VERSION, "cells": dict(sorted(cells.items()))}


def load_store_json(path: str | Path) -> dict[str, str]:
    """
    Raw cell entries of a store file; a missing file is an empty store.

    A broken document raises ValueError. Single broken entries are dropped
    with a warning so they read as "no record".
    """
    source = Path(path)
    if not source.exists():
        return {}
    payload = json.loads(source.read_text(encoding="utf-8"))
    validate_store_document(payload)
    entries: dict[str, str] = {}
    for key, raw in payload["cells"].items():
        problem = cell_entry_problem(key, raw)
        if problem is not None:
            logger.warning(f"Skipping unusable entry in {source}: {problem}")
            continue
        entries[key] = raw
    return entries


def save_store_json(path: str | Path, cells: dict[str, str]) -> None:
    payload = build_store_payload(cells)
    validate_store_payload(payload)
    _replace_file_atomically(Path(path), _canonical_json(payload) + "\n")
