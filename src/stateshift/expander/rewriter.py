"""
Transition Rewriter

Computes an operation's output slot bindings from its postcondition and
rewrites the declared return type so every occurrence of the tracked type
carries them:

    PlayerBuilder              -> PlayerBuilder[PlayerBuilderRaceSet, _PlayerBuilderB, _PlayerBuilderC]
    Optional[PlayerBuilder]    -> Optional[PlayerBuilder[...]]
    "PlayerBuilder | None"     -> "PlayerBuilder[...] | None"
    Self                       -> PlayerBuilder[...]
"""

import ast
import copy
import logging
from typing import List, Sequence, Tuple

from stateshift.expander.annotations import Pinned, SlotSpec
from stateshift.expander.bindings import ResolvedBindings, SlotBinding, subscript, type_arguments
from stateshift.expander.errors import UnsupportedShapeError
from stateshift.expander.model import TrackedType
from stateshift.expander.traversal import OccurrenceTransformer

logger = logging.getLogger(__name__)

SELF_TYPE = "Self"

# Wrappers whose arguments are values, not types.
_OPAQUE_WRAPPERS = ("Literal",)

# Wrapper whose first argument is a type and the rest are values.
_ANNOTATED = "Annotated"


def compute_transition(
    postcondition: Sequence[SlotSpec],
    resolved: ResolvedBindings,
    tracked: TrackedType,
) -> Tuple[SlotBinding, ...]:
    """Output binding per slot: the pinned marker, or the input binding unchanged."""
    output = []
    for spec, binding in zip(postcondition, resolved.bindings):
        if isinstance(spec, Pinned):
            output.append(SlotBinding(slot=binding.slot, name=tracked.marker_name(spec.name), state=spec.name))
        else:
            output.append(binding)
    return tuple(output)


def _parse_forward_ref(value: str):
    try:
        return ast.parse(value.strip(), mode="eval").body
    except SyntaxError:
        return None


def is_nameable(node: ast.expr) -> bool:
    """Whether ``node`` is a type reference a return type may use."""
    if isinstance(node, (ast.Name, ast.Attribute, ast.Subscript)):
        return True
    if isinstance(node, ast.Constant):
        if node.value is None:
            return True
        if isinstance(node.value, str):
            parsed = _parse_forward_ref(node.value)
            return parsed is not None and is_nameable(parsed)
        return False
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return is_nameable(node.left) and is_nameable(node.right)
    return False


class ReturnTypeRewriter(OccurrenceTransformer):
    """Parameterizes every tracked-type occurrence with the output bindings."""

    def __init__(self, tracked: TrackedType, output: Sequence[SlotBinding]):
        super().__init__(tracked.name)
        self.tracked = tracked
        self.output = list(output)

    def matches(self, node: ast.AST) -> bool:
        if isinstance(node, ast.Subscript):
            return self.names_type(node.value)
        if isinstance(node, ast.Name) and node.id == SELF_TYPE:
            return True
        return self.names_type(node)

    def rewrite(self, node: ast.AST) -> ast.AST:
        if isinstance(node, ast.Subscript):
            existing = node.slice.elts if isinstance(node.slice, ast.Tuple) else [node.slice]
            arguments: List[ast.expr] = list(existing)
            value = node.value
        else:
            arguments = [ast.Name(id=p, ctx=ast.Load()) for p in self.tracked.type_params]
            value = ast.Name(id=self.tracked.name, ctx=ast.Load()) if _is_self(node) else node
        arguments.extend(type_arguments(self.output))
        return ast.copy_location(subscript(value, arguments), node)

    def visit_Attribute(self, node: ast.Attribute) -> ast.AST:
        return node

    def visit_Subscript(self, node: ast.Subscript) -> ast.AST:
        name = node.value.attr if isinstance(node.value, ast.Attribute) else getattr(node.value, "id", None)
        if name in _OPAQUE_WRAPPERS:
            return node
        if name == _ANNOTATED and isinstance(node.slice, ast.Tuple) and node.slice.elts:
            # Only the first argument is a type; the rest is metadata.
            elts = node.slice.elts
            node.slice.elts = [self.visit(elts[0])] + list(elts[1:])
            return node
        return self.generic_visit(node)

    def visit_Constant(self, node: ast.Constant) -> ast.AST:
        if not isinstance(node.value, str):
            return node
        parsed = _parse_forward_ref(node.value)
        if parsed is None:
            return node
        before = self.occurrences
        rewritten = self.visit(parsed)
        if self.occurrences == before:
            return node
        return ast.copy_location(ast.Constant(value=ast.unparse(rewritten)), node)


def _is_self(node: ast.AST) -> bool:
    return isinstance(node, ast.Name) and node.id == SELF_TYPE


def rewrite_return_type(
    returns: ast.expr,
    tracked: TrackedType,
    output: Sequence[SlotBinding],
    operation: str,
) -> Tuple[ast.expr, int]:
    """
    Rewrite ``returns`` for the given output bindings.

    Returns the new annotation and how many tracked-type occurrences it
    contains. Raises UnsupportedShapeError when ``returns`` is not a
    nameable type reference.
    """
    declaration = f"{tracked.name}.{operation}"
    if returns is None:
        raise UnsupportedShapeError(
            f"operation {operation!r} has no return annotation",
            declaration=declaration,
        )
    if not is_nameable(returns):
        raise UnsupportedShapeError(
            f"return type of operation {operation!r} is not a nameable type: {ast.unparse(returns)!r}",
            node=returns,
            declaration=declaration,
        )

    rewriter = ReturnTypeRewriter(tracked, output)
    rewritten = rewriter.transform(copy.deepcopy(returns))
    logger.debug("%s returns %s", declaration, ast.unparse(rewritten))
    return rewritten, rewriter.occurrences
