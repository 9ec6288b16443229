from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from hexaboard.board.errors import MalformedRecordError, StorageReadError, StorageWriteError
from hexaboard.board.records import CellRecord
from hexaboard.content.io import load_store_json, save_store_json
from hexaboard.content.schema import cell_key

logger = logging.getLogger(__name__)


class CellStorage(Protocol):
    name: str

    async def get_cell(self, index: int) -> CellRecord | None: ...

    async def set_cell(self, index: int, record: CellRecord) -> None: ...


def decode_cell_entry(index: int, raw: str | None) -> CellRecord | None:
    if not raw:
        return None
    try:
        return CellRecord.from_dict(json.loads(raw))
    except (json.JSONDecodeError, MalformedRecordError) as exc:
        logger.warning(f"Ignoring malformed record for cell {index}: {exc}")
        return None


def encode_cell_entry(record: CellRecord) -> str:
    return json.dumps(record.to_dict(), separators=(",", ":"))


class MemoryCellStorage:
    """Key/value store of JSON text held in process memory."""

    name = "Memory"

    def __init__(self, entries: dict[str, str] | None = None) -> None:
        self.entries: dict[str, str] = dict(entries or {})

    async def get_cell(self, index: int) -> CellRecord | None:
        return decode_cell_entry(index, self.entries.get(cell_key(index)))

    async def set_cell(self, index: int, record: CellRecord) -> None:
        self.entries[cell_key(index)] = encode_cell_entry(record)


class JsonFileCellStorage:
    """Key/value store persisted as one canonical JSON document, rewritten atomically on every set."""

    name = "JsonFile"

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._entries: dict[str, str] | None = None

    def _load_entries(self) -> dict[str, str]:
        if self._entries is None:
            try:
                self._entries = load_store_json(self.path)
            except (OSError, ValueError) as exc:
                raise StorageReadError(f"failed to read cell store {self.path}: {exc}") from exc
            logger.info(f"Loaded {len(self._entries)} cell entries from {self.path}")
        return self._entries

    async def get_cell(self, index: int) -> CellRecord | None:
        return decode_cell_entry(index, self._load_entries().get(cell_key(index)))

    async def set_cell(self, index: int, record: CellRecord) -> None:
        try:
            current = self._load_entries()
        except StorageReadError as exc:
            raise StorageWriteError(str(exc)) from exc
        updated = {**current, cell_key(index): encode_cell_entry(record)}
        try:
            save_store_json(self.path, updated)
        except (OSError, ValueError) as exc:
            raise StorageWriteError(f"failed to write cell store {self.path}: {exc}") from exc
        self._entries = updated
        logger.debug(f"Wrote cell {index} to {self.path}")
