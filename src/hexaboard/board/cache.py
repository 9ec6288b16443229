from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from hexaboard.board.errors import StorageError
from hexaboard.board.records import CellRecord

if TYPE_CHECKING:
    from hexaboard.content.storage import CellStorage

logger = logging.getLogger(__name__)


class CellCache:
    """
    Lazily loaded index -> CellRecord mapping backed by a storage collaborator.

    Absence of an index means "not loaded yet" unless the index is in the
    missing set, which records a completed load that found no record.
    At most one storage read is in flight per index.
    """

    def __init__(self, storage: CellStorage) -> None:
        self.storage = storage
        self._records: dict[int, CellRecord] = {}
        self._missing: set[int] = set()
        self._pending: dict[int, asyncio.Task[None]] = {}
        self.revision = 0

    def get(self, index: int) -> CellRecord | None:
        return self._records.get(index)

    def put(self, index: int, record: CellRecord) -> None:
        self._records[index] = record
        self._missing.discard(index)
        self.revision += 1

    def is_loaded(self, index: int) -> bool:
        return index in self._records or index in self._missing

    def is_pending(self, index: int) -> bool:
        return index in self._pending

    @property
    def pending(self) -> frozenset[int]:
        return frozenset(self._pending)

    def pending_tasks(self) -> list[asyncio.Task[None]]:
        return list(self._pending.values())

    def forget_missing(self, index: int) -> None:
        self._missing.discard(index)

    def __len__(self) -> int:
        return len(self._records)

    def request(self, index: int) -> asyncio.Task[None] | None:
        """Start (or join) the load for index; None when nothing needs loading. Requires a running loop."""
        if self.is_loaded(index):
            return None
        task = self._pending.get(index)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._load(index))
            self._pending[index] = task
        return task

    async def ensure_loaded(self, index: int) -> None:
        task = self.request(index)
        if task is not None:
            await asyncio.shield(task)

    async def _load(self, index: int) -> None:
        try:
            record = await self.storage.get_cell(index)
        except (StorageError, OSError, ValueError) as exc:
            logger.warning(f"Loading cell {index} failed; it stays unloaded: {exc}")
            return
        finally:
            self._pending.pop(index, None)
        # A save may have landed while the read was in flight; it wins.
        if index in self._records:
            return
        if record is None:
            self._missing.add(index)
            return
        self._records[index] = record
        self.revision += 1

    async def cancel_pending(self) -> None:
        tasks = list(self._pending.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
