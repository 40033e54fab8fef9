"""
Body Patcher

Adds the hidden state field to every construction of the tracked type in
an operation body, so authors never write it themselves:

    return Some(PlayerBuilder(race=race))
    ->
    return Some(PlayerBuilder(race=race, _state=(_stateshift.Phantom(), ...)))
"""

import ast
import logging
from typing import List, Optional, Sequence, Tuple

from stateshift.config import ExpanderConfig
from stateshift.expander.model import RECEIVER_CLS, TrackedType
from stateshift.expander.traversal import OccurrenceTransformer

logger = logging.getLogger(__name__)


def phantom_value(tracked: TrackedType, config: ExpanderConfig) -> ast.expr:
    """One Phantom() per slot: a bare value for a single slot, a tuple otherwise."""

    def phantom() -> ast.Call:
        func = ast.Attribute(
            value=ast.Name(id=config.runtime_alias, ctx=ast.Load()),
            attr="Phantom",
            ctx=ast.Load(),
        )
        return ast.Call(func=func, args=[], keywords=[])

    if tracked.slots == 1:
        return phantom()
    return ast.Tuple(elts=[phantom() for _ in range(tracked.slots)], ctx=ast.Load())


class ConstructionPatcher(OccurrenceTransformer):
    """Appends the state keyword to constructions of the tracked type."""

    def __init__(self, tracked: TrackedType, config: ExpanderConfig, receiver: Optional[str] = None):
        super().__init__(tracked.name)
        self.tracked = tracked
        self.config = config
        self.constructors = {tracked.name}
        if receiver == RECEIVER_CLS:
            self.constructors.add("cls")

    def matches(self, node: ast.AST) -> bool:
        if not isinstance(node, ast.Call):
            return False
        func = node.func
        if isinstance(func, ast.Name):
            return func.id in self.constructors
        return self.names_type(func)

    def rewrite(self, node: ast.Call) -> ast.AST:
        # Arguments may build further instances.
        node = self.generic_visit(node)
        if any(k.arg == self.config.state_field for k in node.keywords):
            return node
        node.keywords.append(ast.keyword(arg=self.config.state_field, value=phantom_value(self.tracked, self.config)))
        return node


def patch_body(
    body: Sequence[ast.stmt],
    tracked: TrackedType,
    config: ExpanderConfig,
    receiver: Optional[str] = None,
) -> Tuple[List[ast.stmt], int]:
    """Return the patched body and the number of constructions found."""
    patcher = ConstructionPatcher(tracked, config, receiver)
    new_body, count = patcher.transform_body(body)
    if count:
        logger.debug("Patched %d construction(s) of %s", count, tracked.name)
    return new_body, count
