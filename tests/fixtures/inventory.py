"""Single-slot tracked type whose operations return wrapped instances."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import stateshift


@stateshift.type_state(slots=1, default="Empty")
@dataclass(frozen=True)
class Inventory:
    items: Tuple[str, ...] = ()

    @staticmethod
    @stateshift.require("Empty")
    def new() -> Inventory:
        return Inventory()

    @stateshift.require("Empty")
    @stateshift.switch_to("Stocked")
    def restock(self, items: List[str]) -> Optional[Inventory]:
        if not items:
            return None
        return Inventory(items=tuple(items))

    @stateshift.require("Stocked")
    @stateshift.switch_to("Empty")
    def clear(self) -> "Inventory | None":
        return Inventory()

    @stateshift.require("Stocked")
    def count(self) -> int:
        return len(self.items)
