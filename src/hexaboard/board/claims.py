from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from hexaboard.board.cache import CellCache
from hexaboard.board.config import DEFAULT_FILL, DRAFT_COLOR, BoardConfig
from hexaboard.board.errors import AuthError, StorageError, StorageReadError, StorageWriteError, ValidationError
from hexaboard.board.hash import digest_hex, digests_match
from hexaboard.board.records import CellRecord, is_valid_color

logger = logging.getLogger(__name__)

CLAIM_UNKNOWN = "unknown"
CLAIM_UNCLAIMED = "unclaimed"
CLAIM_CLAIMED = "claimed"


@dataclass
class EditDraft:
    """Transient editor inputs for the selected cell."""

    secret: str = ""
    label: str = ""
    color: str = DRAFT_COLOR

    @classmethod
    def for_record(cls, record: CellRecord | None) -> "EditDraft":
        if record is None:
            return cls()
        return cls(secret="", label=record.label, color=record.color)


def truncate_label(label: str, max_length: int) -> str:
    return label[:max_length]


class CellEditor:
    """Gates cell mutation behind a digest of the owner's secret."""

    def __init__(
        self,
        cache: CellCache,
        *,
        digest: Callable[[str], str] = digest_hex,
        config: BoardConfig | None = None,
    ) -> None:
        self.cache = cache
        self.digest = digest
        self.config = config if config is not None else BoardConfig()

    @property
    def storage(self):
        return self.cache.storage

    def claim_state(self, index: int) -> str:
        if not self.cache.is_loaded(index):
            return CLAIM_UNKNOWN
        record = self.cache.get(index)
        return CLAIM_CLAIMED if record is not None and record.claimed else CLAIM_UNCLAIMED

    async def _existing_record(self, index: int) -> CellRecord | None:
        if self.cache.is_loaded(index):
            return self.cache.get(index)
        try:
            return await self.storage.get_cell(index)
        except (StorageError, OSError, ValueError) as exc:
            raise StorageReadError(f"could not load cell {index}: {exc}") from exc

    def _authorize(self, existing: CellRecord | None, secret: str) -> str:
        candidate = secret.strip()
        if existing is not None and existing.code_hash is not None:
            if not candidate:
                raise ValidationError("secret required")
            if not digests_match(existing.code_hash, self.digest(candidate)):
                raise AuthError("wrong secret")
            return existing.code_hash
        if len(candidate) < self.config.min_secret_length:
            raise ValidationError("secret too short")
        return self.digest(candidate)

    def _resolve_color(self, existing: CellRecord | None, color: str | None) -> str:
        if color:
            if not is_valid_color(color):
                raise ValidationError("invalid color")
            return color.lower()
        if existing is not None and existing.color:
            return existing.color
        return DEFAULT_FILL

    def _resolve_label(self, existing: CellRecord | None, label: str | None) -> str:
        if label is None:
            label = existing.label if existing is not None else ""
        return truncate_label(label, self.config.max_label_length)

    async def save(self, index: int, *, secret: str, label: str | None = None, color: str | None = None) -> CellRecord:
        """
        Claim or edit a cell and persist it.

        Raises ValidationError / AuthError without touching anything, and
        StorageWriteError when the durable write fails; the cache is only
        updated after storage accepted the record.
        """
        if index < 0 or index >= self.config.cell_count:
            raise ValidationError(f"cell index out of range: {index}")
        existing = await self._existing_record(index)
        code_hash = self._authorize(existing, secret)
        record = CellRecord(
            color=self._resolve_color(existing, color),
            label=self._resolve_label(existing, label),
            code_hash=code_hash,
        )
        try:
            await self.storage.set_cell(index, record)
        except StorageWriteError:
            raise
        except (StorageError, OSError, ValueError) as exc:
            raise StorageWriteError(f"could not save cell {index}: {exc}") from exc
        self.cache.put(index, record)
        action = "claimed" if existing is None or existing.code_hash is None else "updated"
        logger.info(f"Cell {index} {action}")
        return record
