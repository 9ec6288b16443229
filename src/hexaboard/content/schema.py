from __future__ import annotations

from typing import Any

SUPPORTED_SCHEMA_VERSIONS = {1}
CELL_KEY_PREFIX = "hexaboard_cell_"


def cell_key(index: int) -> str:
    return f"{CELL_KEY_PREFIX}{index}"


def index_from_cell_key(key: str) -> int | None:
    if not key.startswith(CELL_KEY_PREFIX):
        return None
    suffix = key[len(CELL_KEY_PREFIX):]
    if not suffix.isdigit():
        return None
    return int(suffix)


def cell_entry_problem(key: Any, raw: Any) -> str | None:
    """Why one cells entry is unusable, or None when it is a well-formed key with opaque text."""
    if not isinstance(key, str) or index_from_cell_key(key) is None:
        return f"invalid cell key: {key!r}"
    # Entry text stays opaque here; unparseable records are read back as "no record".
    if not isinstance(raw, str):
        return f"cells[{key}] must be a JSON string"
    return None


def validate_store_document(payload: Any) -> None:
    if not isinstance(payload, dict):
        raise ValueError("cell store payload must be an object")

    schema_version = payload.get("schema_version")
    if schema_version not in SUPPORTED_SCHEMA_VERSIONS:
        raise ValueError(f"unsupported schema_version: {schema_version}")

    if not isinstance(payload.get("cells"), dict):
        raise ValueError("cells must be an object")


def validate_store_payload(payload: Any) -> None:
    validate_store_document(payload)
    for key, raw in payload["cells"].items():
        problem = cell_entry_problem(key, raw)
        if problem is not None:
            raise ValueError(problem)
