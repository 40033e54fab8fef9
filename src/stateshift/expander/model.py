"""
Tracked types and operation specs.

A TrackedType is read once from its class declaration; an OperationSpec is
read from one annotated method and is discarded once its method has been
rewritten.
"""

import ast
import copy
import difflib
from dataclasses import dataclass, replace
from typing import Iterator, List, Optional, Sequence, Tuple

from stateshift.config import ExpanderConfig
from stateshift.expander import registry
from stateshift.expander.annotations import (
    FREE,
    PASS_THROUGH,
    Pinned,
    SlotSpec,
    annotation_name,
    extract_annotation,
    extract_symbols,
    find_annotation,
    parse_states,
    parse_type_state,
)
from stateshift.expander.errors import (
    ArityMismatchError,
    MalformedAnnotationError,
    UnknownMarkerError,
    UnsupportedShapeError,
)

_LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"

RECEIVER_SELF = "self"
RECEIVER_CLS = "cls"


def _is_classvar(annotation: ast.expr) -> bool:
    target = annotation.value if isinstance(annotation, ast.Subscript) else annotation
    if isinstance(target, ast.Constant) and isinstance(target.value, str):
        return target.value.split("[", 1)[0].rsplit(".", 1)[-1] == "ClassVar"
    return annotation_name(target) == "ClassVar"


def _generic_params(node: ast.ClassDef, declaration: str) -> Tuple[str, ...]:
    """Names declared by a ``Generic[...]`` base, in order."""
    for base in node.bases:
        if isinstance(base, ast.Subscript) and annotation_name(base.value) == "Generic":
            elements = base.slice.elts if isinstance(base.slice, ast.Tuple) else [base.slice]
            names = []
            for element in elements:
                if not isinstance(element, ast.Name):
                    raise UnsupportedShapeError(
                        f"Generic parameters must be plain names, got {ast.unparse(element)!r}",
                        node=element,
                        declaration=declaration,
                    )
                names.append(element.id)
            return tuple(names)
    return ()


@dataclass(frozen=True)
class TrackedType:
    """A class whose usable operations depend on its state slots."""
    name: str
    node: ast.ClassDef
    fields: Tuple[Tuple[str, str], ...]
    defaults: Tuple[str, ...]
    declared_states: Optional[Tuple[str, ...]] = None
    type_params: Tuple[str, ...] = ()
    alphabet: Tuple[str, ...] = ()

    @property
    def slots(self) -> int:
        return len(self.defaults)

    @property
    def has_declared_alphabet(self) -> bool:
        return self.declared_states is not None

    # Naming. Everything is prefixed with the type name so two tracked types
    # using the same state names never collide.

    def marker_name(self, state: str) -> str:
        return registry.marker_name(self.name, state)

    @property
    def sealing_name(self) -> str:
        return registry.sealing_name(self.name)

    @property
    def capability_name(self) -> str:
        return registry.capability_name(self.name)

    def slot_param(self, slot: int) -> str:
        """Class type parameter for slot ``slot`` (1-based)."""
        return f"{self.name}State{slot}"

    @property
    def slot_params(self) -> Tuple[str, ...]:
        return tuple(self.slot_param(i) for i in range(1, self.slots + 1))

    def placeholder_name(self, slot: int) -> str:
        """Free placeholder for slot ``slot`` (1-based): A for the first slot, B for the second..."""
        letter = _LETTERS[slot - 1] if slot <= len(_LETTERS) else f"S{slot}"
        candidate = f"_{self.name}{letter}"
        reserved = set(self.type_params) | set(self.slot_params)
        while candidate in reserved:
            candidate += "_"
        return candidate

    def with_alphabet(self, alphabet: Sequence[str]) -> "TrackedType":
        return replace(self, alphabet=tuple(alphabet))

    @classmethod
    def from_class(cls, node: ast.ClassDef, config: ExpanderConfig) -> "TrackedType":
        """Read a tracked type from its decorated class. ``node`` is not modified."""
        node = copy.deepcopy(node)
        name = node.name

        decorator = extract_annotation(node.decorator_list, config.type_state_name)
        if decorator is None:
            raise MalformedAnnotationError(
                f"class {name} has no @{config.type_state_name} annotation",
                node=node,
                declaration=name,
            )
        args = parse_type_state(decorator, config.type_state_name, name)

        declared = args.states
        grouping = extract_annotation(node.decorator_list, config.states_name)
        if grouping is not None:
            if declared is not None:
                raise MalformedAnnotationError(
                    f"marker alphabet declared twice (states= and @{config.states_name})",
                    node=grouping,
                    declaration=name,
                )
            declared = parse_states(grouping, config.states_name, name)

        if getattr(node, "type_params", None):
            raise UnsupportedShapeError(
                "classes using type parameter syntax are not supported; declare Generic[...] instead",
                node=node,
                declaration=name,
            )

        fields = []
        for item in node.body:
            if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)) and item.name == "__init__":
                raise UnsupportedShapeError(
                    "tracked types are built from their fields; a custom __init__ is not supported",
                    node=item,
                    declaration=name,
                )
            if not (isinstance(item, ast.AnnAssign) and isinstance(item.target, ast.Name)):
                continue
            if _is_classvar(item.annotation):
                continue
            if item.target.id == config.state_field:
                raise UnsupportedShapeError(
                    f"field name {config.state_field!r} is reserved for state tracking",
                    node=item,
                    declaration=name,
                )
            fields.append((item.target.id, ast.unparse(item.annotation)))

        if not fields:
            raise UnsupportedShapeError(
                "expected a class with annotated fields",
                node=node,
                declaration=name,
            )

        if declared is not None:
            if len(set(declared)) != len(declared):
                raise MalformedAnnotationError(
                    "marker alphabet lists a state more than once",
                    node=grouping or decorator,
                    declaration=name,
                )
            for default in args.defaults:
                if default not in declared:
                    raise UnknownMarkerError(
                        f"default marker {default!r} is not one of the declared states",
                        marker=default,
                        node=decorator,
                        declaration=name,
                    )

        return cls(
            name=name,
            node=node,
            fields=tuple(fields),
            defaults=args.defaults,
            declared_states=declared,
            type_params=_generic_params(node, name),
            alphabet=declared or (),
        )


def _receiver_kind(node: ast.FunctionDef, declaration: str) -> Optional[str]:
    names = {annotation_name(d) for d in node.decorator_list}
    if "staticmethod" in names:
        return None
    if not (node.args.posonlyargs or node.args.args):
        raise UnsupportedShapeError(
            "operation has no receiver parameter",
            node=node,
            declaration=declaration,
        )
    return RECEIVER_CLS if "classmethod" in names else RECEIVER_SELF


@dataclass
class OperationSpec:
    """One annotated method."""
    name: str
    node: ast.FunctionDef
    receiver: Optional[str]
    precondition: Tuple[SlotSpec, ...]
    postcondition: Tuple[SlotSpec, ...]
    explicit_postcondition: bool = False
    declaration: str = ""
    line: int = 0

    @property
    def returns(self) -> Optional[ast.expr]:
        return self.node.returns

    def pinned_names(self) -> Iterator[str]:
        for spec in self.precondition + self.postcondition:
            if isinstance(spec, Pinned):
                yield spec.name

    @classmethod
    def from_function(cls, node: ast.FunctionDef, tracked: TrackedType, config: ExpanderConfig) -> Optional["OperationSpec"]:
        """
        Read an operation from a method of ``tracked``.

        Returns None when the method carries no precondition; such methods are
        ordinary methods and stay as written. ``node`` is not modified.
        """
        declaration = f"{tracked.name}.{node.name}"
        node = copy.deepcopy(node)

        precondition = extract_symbols(node.decorator_list, config.require_name, FREE, declaration)
        postcondition = extract_symbols(node.decorator_list, config.switch_to_name, PASS_THROUGH, declaration)
        for name in (config.require_name, config.switch_to_name):
            duplicate = find_annotation(node.decorator_list, name)
            if duplicate is not None:
                raise MalformedAnnotationError(
                    f"@{name} given more than once",
                    node=duplicate,
                    declaration=declaration,
                )

        if precondition is None:
            if postcondition is not None:
                raise MalformedAnnotationError(
                    f"@{config.switch_to_name} needs a matching @{config.require_name}",
                    node=node,
                    declaration=declaration,
                )
            return None

        for label, vector in (("precondition", precondition), ("postcondition", postcondition)):
            if vector is not None and len(vector) != tracked.slots:
                raise ArityMismatchError(
                    f"{label} names {len(vector)} slot(s) but {tracked.name} has {tracked.slots}",
                    expected=tracked.slots,
                    actual=len(vector),
                    node=node,
                    declaration=declaration,
                )

        receiver = _receiver_kind(node, declaration)
        if node.returns is None:
            raise UnsupportedShapeError(
                f"operation {node.name!r} has no return annotation",
                node=node,
                declaration=declaration,
            )

        spec = cls(
            name=node.name,
            node=node,
            receiver=receiver,
            precondition=precondition,
            postcondition=postcondition if postcondition is not None else (PASS_THROUGH,) * tracked.slots,
            explicit_postcondition=postcondition is not None,
            declaration=declaration,
            line=node.lineno,
        )
        if tracked.has_declared_alphabet:
            validate_markers(spec, tracked)
        return spec


def validate_markers(spec: OperationSpec, tracked: TrackedType) -> None:
    """Every pinned name must be one of the tracked type's declared states."""
    for marker in spec.pinned_names():
        if marker in tracked.alphabet:
            continue
        hint = ""
        close = difflib.get_close_matches(marker, tracked.alphabet, n=1)
        if close:
            hint = f"; did you mean {close[0]!r}?"
        elif len(marker) == 1:
            hint = "; use ... for an unconstrained slot"
        raise UnknownMarkerError(
            f"{marker!r} is not a state of {tracked.name}{hint}",
            marker=marker,
            node=spec.node,
            declaration=spec.declaration,
        )


def collect_alphabet(tracked: TrackedType, operations: Sequence[OperationSpec]) -> Tuple[str, ...]:
    """
    Marker alphabet of a tracked type.

    The declared alphabet when there is one; otherwise every default and
    every pinned name used by the operations, in first-seen order.
    """
    if tracked.declared_states is not None:
        return tracked.declared_states
    seen: List[str] = []
    names = list(tracked.defaults)
    for spec in operations:
        names.extend(spec.pinned_names())
    for name in names:
        if name not in seen:
            seen.append(name)
    return tuple(seen)
