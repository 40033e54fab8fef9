"""
Slot Binding Resolver

Turns an operation's precondition vector into the type arguments of its
receiver. A pinned slot binds to the marker class; a free slot binds to a
fresh placeholder type variable bounded by the tracked type's capability.

For PlayerBuilder with precondition (Initial, ..., ...):

    bindings      PlayerBuilderInitial, _PlayerBuilderB, _PlayerBuilderC
    placeholders  _PlayerBuilderB, _PlayerBuilderC  (bound=SealerPlayerBuilder)
    self type     PlayerBuilder[PlayerBuilderInitial, _PlayerBuilderB, _PlayerBuilderC]
"""

import ast
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from stateshift.expander.annotations import Pinned, SlotSpec
from stateshift.expander.model import TrackedType


@dataclass(frozen=True)
class SlotBinding:
    """What one slot is bound to: a marker class or a placeholder."""
    slot: int
    name: str
    free: bool = False
    state: Optional[str] = None

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Placeholder:
    """A free type parameter of one operation."""
    name: str
    bound: str
    slot: int


@dataclass(frozen=True)
class ResolvedBindings:
    bindings: Tuple[SlotBinding, ...]
    placeholders: Tuple[Placeholder, ...]
    type_params: Tuple[str, ...] = ()

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(b.name for b in self.bindings)

    @property
    def scope_params(self) -> Tuple[str, ...]:
        """Every type parameter the operation's scope is generic over."""
        return self.type_params + tuple(p.name for p in self.placeholders)


def resolve_bindings(precondition: Sequence[SlotSpec], tracked: TrackedType) -> ResolvedBindings:
    bindings = []
    placeholders = []
    for slot, spec in enumerate(precondition, start=1):
        if isinstance(spec, Pinned):
            bindings.append(SlotBinding(slot=slot, name=tracked.marker_name(spec.name), state=spec.name))
            continue
        placeholder = Placeholder(
            name=tracked.placeholder_name(slot),
            bound=tracked.capability_name,
            slot=slot,
        )
        placeholders.append(placeholder)
        bindings.append(SlotBinding(slot=slot, name=placeholder.name, free=True))
    return ResolvedBindings(
        bindings=tuple(bindings),
        placeholders=tuple(placeholders),
        type_params=tracked.type_params,
    )


def type_arguments(bindings: Sequence[SlotBinding]) -> List[ast.expr]:
    return [ast.Name(id=b.name, ctx=ast.Load()) for b in bindings]


def subscript(value: ast.expr, arguments: Sequence[ast.expr]) -> ast.Subscript:
    """``value[a]`` or ``value[a, b, ...]``."""
    if len(arguments) == 1:
        index: ast.expr = arguments[0]
    else:
        index = ast.Tuple(elts=list(arguments), ctx=ast.Load())
    return ast.Subscript(value=value, slice=index, ctx=ast.Load())


def type_reference(tracked: TrackedType, bindings: Sequence[SlotBinding]) -> ast.Subscript:
    """``Type[params..., b1, ..., bk]`` for the given slot bindings."""
    arguments: List[ast.expr] = [ast.Name(id=p, ctx=ast.Load()) for p in tracked.type_params]
    arguments.extend(type_arguments(bindings))
    return subscript(ast.Name(id=tracked.name, ctx=ast.Load()), arguments)
