from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SelectionState:
    hover_index: int | None = None
    selected_index: int | None = None

    def set_hover(self, index: int | None) -> bool:
        if self.hover_index == index:
            return False
        self.hover_index = index
        return True

    def set_selected(self, index: int | None) -> bool:
        if self.selected_index == index:
            return False
        self.selected_index = index
        return True
