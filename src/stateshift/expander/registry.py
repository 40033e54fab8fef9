"""
Registry Builder

Generates, once per tracked type, the marker classes for its states and
the two boundaries that close them:

    _Sealed<Type>   sealing boundary; only the listed members may derive from it
    Sealer<Type>    capability boundary; bound of every slot type parameter
    <Type><State>   one final marker class per state

All names derive from the tracked type's name, so identical state names on
two tracked types never collide. Names that still coincide once joined
(``Door`` + ``WayOpen`` and ``DoorWay`` + ``Open``) are rejected by the
expander. Identical input renders identical code.
"""

import ast
import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

logger = logging.getLogger(__name__)


def marker_name(type_name: str, state: str) -> str:
    return f"{type_name}{state}"


def sealing_name(type_name: str) -> str:
    return f"_Sealed{type_name}"


def capability_name(type_name: str) -> str:
    return f"Sealer{type_name}"


@dataclass(frozen=True)
class MarkerDecl:
    """One state of one tracked type."""
    state: str
    name: str


@dataclass(frozen=True)
class Registry:
    """Markers, sealing and capability declarations for one tracked type."""
    type_name: str
    slots: int
    markers: Tuple[MarkerDecl, ...]

    @property
    def sealing_name(self) -> str:
        return sealing_name(self.type_name)

    @property
    def capability_name(self) -> str:
        return capability_name(self.type_name)

    @property
    def states(self) -> Tuple[str, ...]:
        return tuple(m.state for m in self.markers)

    @property
    def marker_names(self) -> Tuple[str, ...]:
        return tuple(m.name for m in self.markers)

    @property
    def sealing_members(self) -> Tuple[str, ...]:
        """Classes allowed to derive from the sealing boundary."""
        return (self.capability_name,) + self.marker_names

    @property
    def capability_members(self) -> Tuple[str, ...]:
        return self.marker_names

    def marker_for(self, state: str) -> str:
        for marker in self.markers:
            if marker.state == state:
                return marker.name
        raise KeyError(f"{state!r} is not a state of {self.type_name}")

    def satisfies(self, marker: str, capability: str) -> bool:
        """Whether the marker class ``marker`` satisfies the capability ``capability``."""
        return capability == self.capability_name and marker in self.capability_members

    @classmethod
    def build(cls, type_name: str, slots: int, states: Sequence[str]) -> "Registry":
        """Build the registry for ``type_name`` from its distinct state names."""
        seen: List[str] = []
        for state in states:
            if state not in seen:
                seen.append(state)
        markers = tuple(MarkerDecl(state=s, name=marker_name(type_name, s)) for s in seen)
        logger.debug("Registry for %s: %d slot(s), states %s", type_name, slots, ", ".join(seen))
        return cls(type_name=type_name, slots=slots, markers=markers)

    def render(self, runtime_alias: str = "_stateshift") -> List[ast.stmt]:
        """Declarations in order: sealing boundary, capability boundary, markers."""
        members = ", ".join(repr(name) for name in self.sealing_members)
        lines = [
            f"class {self.sealing_name}({runtime_alias}.Sealed, owner={self.type_name!r}, members=({members},)):",
            f"    {f'Sealing boundary for {self.type_name} states.'!r}",
            "",
            f"class {self.capability_name}({self.sealing_name}):",
            f"    {f'Satisfied only by {self.type_name} markers.'!r}",
        ]
        for marker in self.markers:
            lines.extend([
                "",
                f"@{runtime_alias}.final",
                f"class {marker.name}({self.capability_name}):",
                f"    {f'{self.type_name} state: {marker.state}.'!r}",
            ])
        return ast.parse("\n".join(lines)).body
