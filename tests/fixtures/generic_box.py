"""A tracked type that is already generic."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from stateshift import require, switch_to, type_state

T = TypeVar("T")


@type_state(slots=1, default="Empty")
@dataclass
class Box(Generic[T]):
    value: Optional[T] = None

    @staticmethod
    @require("Empty")
    def new() -> Box[T]:
        return Box()

    @require("Empty")
    @switch_to("Full")
    def put(self, value: T) -> Box[T]:
        return Box(value=value)

    @require("Full")
    def get(self) -> T:
        return self.value
