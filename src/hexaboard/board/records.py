from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from hexaboard.board.errors import MalformedRecordError

COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")
HEX_DIGEST_PATTERN = re.compile(r"^[0-9a-f]+$")


def is_valid_color(value: str) -> bool:
    return isinstance(value, str) and COLOR_PATTERN.match(value) is not None


@dataclass(frozen=True)
class CellRecord:
    color: str
    label: str = ""
    code_hash: str | None = None

    @property
    def claimed(self) -> bool:
        return self.code_hash is not None

    def to_dict(self) -> dict[str, Any]:
        return {"color": self.color, "label": self.label, "codeHash": self.code_hash}

    @classmethod
    def from_dict(cls, data: Any) -> "CellRecord":
        if not isinstance(data, dict):
            raise MalformedRecordError("cell record must be an object")
        color = data.get("color")
        label = data.get("label", "")
        code_hash = data.get("codeHash")
        if not is_valid_color(color):
            raise MalformedRecordError(f"cell record color must be a #rrggbb string, got {color!r}")
        if label is None:
            label = ""
        if code_hash == "":
            code_hash = None
        if not isinstance(label, str):
            raise MalformedRecordError("cell record label must be a string")
        if code_hash is not None and (not isinstance(code_hash, str) or HEX_DIGEST_PATTERN.match(code_hash) is None):
            raise MalformedRecordError("cell record codeHash must be a lowercase hex string or null")
        return cls(color=color.lower(), label=label, code_hash=code_hash)
