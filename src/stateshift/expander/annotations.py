"""
Annotation Extractor

Finds a named decorator on a declaration, removes it, and parses its
arguments into an ordered slot vector.

Slot grammar (one entry per state slot):
    Initial / "Initial"   -> Pinned("Initial")
    ...                   -> the wildcard (Free in a precondition,
                             PassThrough in a postcondition)
"""

import ast
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from stateshift.expander.errors import MalformedAnnotationError


@dataclass(frozen=True)
class Pinned:
    """Slot requires (or switches to) exactly this marker."""
    name: str

    def __str__(self) -> str:
        return self.name


class _Wildcard:
    __slots__ = ()
    label = "..."

    def __repr__(self) -> str:
        return self.label

    def __str__(self) -> str:
        return self.label


class Free(_Wildcard):
    """Unconstrained precondition slot, bound to a fresh placeholder."""
    __slots__ = ()
    label = "Free"


class PassThrough(_Wildcard):
    """Postcondition slot that keeps the precondition's binding."""
    __slots__ = ()
    label = "PassThrough"


FREE = Free()
PASS_THROUGH = PassThrough()

SlotSpec = Union[Pinned, Free, PassThrough]


@dataclass(frozen=True)
class TypeStateArgs:
    """Parsed arguments of the type declaration annotation."""
    defaults: Tuple[str, ...]
    states: Optional[Tuple[str, ...]] = None

    @property
    def slots(self) -> int:
        return len(self.defaults)


def annotation_name(decorator: ast.expr) -> Optional[str]:
    """Simple name of a decorator: ``require``, ``mod.require`` and ``require(...)`` all give 'require'."""
    target = decorator.func if isinstance(decorator, ast.Call) else decorator
    if isinstance(target, ast.Name):
        return target.id
    if isinstance(target, ast.Attribute):
        return target.attr
    return None


def find_annotation(decorators: List[ast.expr], name: str) -> Optional[ast.expr]:
    for decorator in decorators:
        if annotation_name(decorator) == name:
            return decorator
    return None


def extract_annotation(decorators: List[ast.expr], name: str) -> Optional[ast.expr]:
    """Remove and return the first decorator called ``name``; None when absent."""
    for index, decorator in enumerate(decorators):
        if annotation_name(decorator) == name:
            return decorators.pop(index)
    return None


def _require_call(decorator: ast.expr, name: str, declaration: Optional[str]) -> ast.Call:
    if not isinstance(decorator, ast.Call):
        raise MalformedAnnotationError(
            f"@{name} must be called with arguments",
            node=decorator,
            declaration=declaration,
        )
    return decorator


def parse_symbol(node: ast.expr, name: str, declaration: Optional[str] = None, wildcard: Optional[SlotSpec] = None) -> SlotSpec:
    """Parse one annotation entry."""
    if isinstance(node, ast.Constant) and node.value is Ellipsis:
        if wildcard is None:
            raise MalformedAnnotationError(
                f"@{name} does not accept '...' here",
                node=node,
                declaration=declaration,
            )
        return wildcard
    if isinstance(node, ast.Name):
        return Pinned(node.id)
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        if not node.value.isidentifier():
            raise MalformedAnnotationError(
                f"@{name}: {node.value!r} is not a valid marker name",
                node=node,
                declaration=declaration,
            )
        return Pinned(node.value)
    raise MalformedAnnotationError(
        f"@{name}: expected a marker name or '...', got {ast.unparse(node)!r}",
        node=node,
        declaration=declaration,
    )


def parse_symbols(call: ast.Call, name: str, declaration: Optional[str] = None, wildcard: Optional[SlotSpec] = None) -> Tuple[SlotSpec, ...]:
    """Parse the positional arguments of an annotation into a slot vector."""
    if call.keywords:
        raise MalformedAnnotationError(
            f"@{name} takes positional arguments only",
            node=call.keywords[0].value,
            declaration=declaration,
        )
    symbols = []
    for arg in call.args:
        if isinstance(arg, ast.Starred):
            raise MalformedAnnotationError(
                f"@{name} does not accept starred arguments",
                node=arg,
                declaration=declaration,
            )
        symbols.append(parse_symbol(arg, name, declaration, wildcard))
    return tuple(symbols)


def extract_symbols(
    decorators: List[ast.expr],
    name: str,
    wildcard: SlotSpec,
    declaration: Optional[str] = None,
) -> Optional[Tuple[SlotSpec, ...]]:
    """
    Remove the ``name`` annotation and return its slot vector.

    Returns None when the annotation is absent, which is the common case.
    """
    decorator = extract_annotation(decorators, name)
    if decorator is None:
        return None
    call = _require_call(decorator, name, declaration)
    return parse_symbols(call, name, declaration, wildcard)


def _marker_names(node: ast.expr, name: str, key: str, declaration: Optional[str]) -> Tuple[str, ...]:
    if isinstance(node, (ast.Tuple, ast.List)):
        elements = node.elts
    else:
        elements = [node]
    names = []
    for element in elements:
        symbol = parse_symbol(element, f"{name}({key}=...)", declaration)
        names.append(symbol.name)
    if not names:
        raise MalformedAnnotationError(
            f"@{name}: {key} must name at least one marker",
            node=node,
            declaration=declaration,
        )
    return tuple(names)


def parse_states(decorator: ast.expr, name: str = "states", declaration: Optional[str] = None) -> Tuple[str, ...]:
    """Parse the grouping annotation: ``@states(Initial, RaceSet, ...)``."""
    call = _require_call(decorator, name, declaration)
    symbols = parse_symbols(call, name, declaration)
    if not symbols:
        raise MalformedAnnotationError(
            f"@{name} must name at least one marker",
            node=call,
            declaration=declaration,
        )
    return tuple(symbol.name for symbol in symbols)


def parse_type_state(decorator: ast.expr, name: str = "type_state", declaration: Optional[str] = None) -> TypeStateArgs:
    """
    Parse the type declaration annotation.

    Accepted forms:
        @type_state(slots=3, default=Initial)
        @type_state(state_slots=3, default_state=Initial)
        @type_state(states=(Initial, RaceSet), slots=(Initial, Initial))
    """
    call = _require_call(decorator, name, declaration)
    if call.args:
        raise MalformedAnnotationError(
            f"@{name} takes keyword arguments only",
            node=call.args[0],
            declaration=declaration,
        )

    values = {}
    for keyword in call.keywords:
        key = {"state_slots": "slots", "default_state": "default"}.get(keyword.arg, keyword.arg)
        if key not in ("slots", "default", "states"):
            raise MalformedAnnotationError(
                f"@{name}: unexpected argument {keyword.arg!r}",
                node=keyword.value,
                declaration=declaration,
            )
        if key in values:
            raise MalformedAnnotationError(
                f"@{name}: {key!r} given more than once",
                node=keyword.value,
                declaration=declaration,
            )
        values[key] = keyword.value

    if "slots" not in values:
        raise MalformedAnnotationError(f"@{name} requires 'slots'", node=call, declaration=declaration)

    slots_node = values["slots"]
    if isinstance(slots_node, ast.Constant) and type(slots_node.value) is int:
        count = slots_node.value
        if count < 1:
            raise MalformedAnnotationError(
                f"@{name}: slots must be a positive number, got {count}",
                node=slots_node,
                declaration=declaration,
            )
        if "default" not in values:
            raise MalformedAnnotationError(
                f"@{name}: a numeric 'slots' needs a 'default' marker",
                node=call,
                declaration=declaration,
            )
        default = parse_symbol(values["default"], f"{name}(default=...)", declaration)
        defaults = (default.name,) * count
    else:
        if "default" in values:
            raise MalformedAnnotationError(
                f"@{name}: 'default' cannot be combined with a per-slot 'slots' vector",
                node=values["default"],
                declaration=declaration,
            )
        defaults = _marker_names(slots_node, name, "slots", declaration)

    states = None
    if "states" in values:
        states = _marker_names(values["states"], name, "states", declaration)

    return TypeStateArgs(defaults=defaults, states=states)
