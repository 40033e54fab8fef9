"""
Emission Orchestrator

Assembles the expansion of one tracked type:

    1. registry: sealing boundary, capability boundary, markers
    2. slot type parameters (bounded, defaulting to the declared markers)
    3. placeholder type parameters used by the operations
    4. the generic class, each operation narrowed to its own receiver type
"""

import ast
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from stateshift.config import ExpanderConfig
from stateshift.expander.annotations import annotation_name
from stateshift.expander.bindings import (
    Placeholder,
    ResolvedBindings,
    SlotBinding,
    resolve_bindings,
    subscript,
    type_reference,
)
from stateshift.expander.errors import ExpansionDiagnostic
from stateshift.expander.model import RECEIVER_CLS, OperationSpec, TrackedType
from stateshift.expander.patcher import patch_body
from stateshift.expander.registry import Registry
from stateshift.expander.rewriter import compute_transition, rewrite_return_type

logger = logging.getLogger(__name__)

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]


@dataclass
class OperationExpansion:
    """The rewritten form of one operation."""
    name: str
    declaration: str
    node: FunctionNode
    resolved: ResolvedBindings
    output: Tuple[SlotBinding, ...]
    return_occurrences: int = 0
    constructions: int = 0
    diagnostics: List[ExpansionDiagnostic] = field(default_factory=list)

    @property
    def bindings(self) -> Tuple[SlotBinding, ...]:
        return self.resolved.bindings

    @property
    def placeholders(self) -> Tuple[Placeholder, ...]:
        return self.resolved.placeholders

    @property
    def is_terminal(self) -> bool:
        """The return type no longer mentions the tracked type."""
        return self.return_occurrences == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "requires": [b.name for b in self.bindings],
            "returns": [b.name for b in self.output],
            "placeholders": [p.name for p in self.placeholders],
            "terminal": self.is_terminal,
        }


@dataclass
class TypeExpansion:
    """Everything emitted for one tracked type."""
    tracked: TrackedType
    registry: Registry
    operations: List[OperationExpansion]
    statements: List[ast.stmt]
    failed: List[str] = field(default_factory=list)

    def get_operation(self, name: str) -> Optional[OperationExpansion]:
        for operation in self.operations:
            if operation.name == name:
                return operation
        return None

    def generated_names(self) -> List[Tuple[str, str]]:
        """(name, role) for every module-level name this expansion declares."""
        name = self.tracked.name
        names = [
            (name, f"tracked type {name}"),
            (self.registry.sealing_name, f"sealing boundary of {name}"),
            (self.registry.capability_name, f"capability of {name}"),
        ]
        names.extend((m.name, f"marker for {name} state {m.state}") for m in self.registry.markers)
        names.extend(
            (param, f"slot {slot} parameter of {name}")
            for slot, param in enumerate(self.tracked.slot_params, start=1)
        )
        placeholders: List[str] = []
        for operation in self.operations:
            for placeholder in operation.placeholders:
                if placeholder.name not in placeholders:
                    placeholders.append(placeholder.name)
        names.extend((p, f"placeholder of {name}") for p in placeholders)
        return names

    def render(self) -> str:
        """Source text of the emitted declarations."""
        return "\n\n\n".join(ast.unparse(statement) for statement in self.statements) + "\n"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.tracked.name,
            "slots": self.tracked.slots,
            "defaults": list(self.tracked.defaults),
            "markers": list(self.registry.marker_names),
            "capability": self.registry.capability_name,
            "operations": [op.to_dict() for op in self.operations],
            "failed": list(self.failed),
        }


def _runtime(config: ExpanderConfig, attr: str) -> ast.Attribute:
    return ast.Attribute(value=ast.Name(id=config.runtime_alias, ctx=ast.Load()), attr=attr, ctx=ast.Load())


def _name(identifier: str) -> ast.Name:
    return ast.Name(id=identifier, ctx=ast.Load())


def emit_operation(spec: OperationSpec, tracked: TrackedType, config: ExpanderConfig) -> OperationExpansion:
    """Rewrite one operation: receiver type, return type and body."""
    resolved = resolve_bindings(spec.precondition, tracked)
    output = compute_transition(spec.postcondition, resolved, tracked)
    returns, occurrences = rewrite_return_type(spec.returns, tracked, output, spec.name)

    node = spec.node
    node.returns = returns
    if spec.receiver is not None:
        receiver = (node.args.posonlyargs + node.args.args)[0]
        self_type: ast.expr = type_reference(tracked, resolved.bindings)
        if spec.receiver == RECEIVER_CLS:
            self_type = subscript(_name("type"), [self_type])
        receiver.annotation = self_type
    node.body, constructions = patch_body(node.body, tracked, config, spec.receiver)
    ast.fix_missing_locations(node)

    diagnostics = []
    if spec.explicit_postcondition and occurrences == 0:
        diagnostics.append(ExpansionDiagnostic(
            line=spec.line,
            column=node.col_offset,
            end_line=spec.line,
            end_column=node.col_offset,
            severity="warning",
            code="UNUSED_TRANSITION",
            message=f"@{config.switch_to_name} has no effect: the return type never mentions {tracked.name}",
            declaration=spec.declaration,
        ))

    logger.debug(
        "%s: %s -> %s",
        spec.declaration,
        ", ".join(b.name for b in resolved.bindings),
        ", ".join(b.name for b in output),
    )
    return OperationExpansion(
        name=spec.name,
        declaration=spec.declaration,
        node=node,
        resolved=resolved,
        output=output,
        return_occurrences=occurrences,
        constructions=constructions,
        diagnostics=diagnostics,
    )


def _type_var(name: str, config: ExpanderConfig, bound: str, default: Optional[str] = None) -> ast.Assign:
    keywords = [ast.keyword(arg="bound", value=_name(bound))]
    if default is not None:
        keywords.append(ast.keyword(arg="default", value=_name(default)))
    call = ast.Call(func=_runtime(config, "TypeVar"), args=[ast.Constant(value=name)], keywords=keywords)
    return ast.Assign(targets=[ast.Name(id=name, ctx=ast.Store())], value=call)


def slot_type_vars(tracked: TrackedType, config: ExpanderConfig) -> List[ast.stmt]:
    """One class type parameter per slot, defaulting to the slot's declared marker."""
    return [
        _type_var(tracked.slot_param(slot), config, tracked.capability_name, tracked.marker_name(default))
        for slot, default in enumerate(tracked.defaults, start=1)
    ]


def placeholder_type_vars(operations: Sequence[OperationExpansion], config: ExpanderConfig) -> List[ast.stmt]:
    """Placeholder type parameters, each declared once, in first-use order."""
    seen: Dict[str, Placeholder] = {}
    for operation in operations:
        for placeholder in operation.placeholders:
            seen.setdefault(placeholder.name, placeholder)
    return [_type_var(p.name, config, p.bound) for p in seen.values()]


def state_field(tracked: TrackedType, config: ExpanderConfig) -> ast.AnnAssign:
    """``_state: Tuple[Phantom[S1], ...] = field(repr=False, compare=False, kw_only=True)``."""
    phantoms = [subscript(_runtime(config, "Phantom"), [_name(p)]) for p in tracked.slot_params]
    annotation = phantoms[0] if len(phantoms) == 1 else subscript(_runtime(config, "Tuple"), phantoms)
    value = ast.Call(
        func=_runtime(config, "field"),
        args=[],
        keywords=[
            ast.keyword(arg="repr", value=ast.Constant(value=False)),
            ast.keyword(arg="compare", value=ast.Constant(value=False)),
            ast.keyword(arg="kw_only", value=ast.Constant(value=True)),
        ],
    )
    return ast.AnnAssign(target=ast.Name(id=config.state_field, ctx=ast.Store()), annotation=annotation, value=value, simple=1)


def _extend_bases(node: ast.ClassDef, tracked: TrackedType, config: ExpanderConfig) -> None:
    slot_names = [_name(p) for p in tracked.slot_params]
    for base in node.bases:
        if isinstance(base, ast.Subscript) and annotation_name(base.value) == "Generic":
            existing = base.slice.elts if isinstance(base.slice, ast.Tuple) else [base.slice]
            base.slice = ast.Tuple(elts=list(existing) + slot_names, ctx=ast.Load())
            return
    node.bases.append(subscript(_runtime(config, "Generic"), slot_names))


def _ensure_dataclass(node: ast.ClassDef, config: ExpanderConfig) -> None:
    if any(annotation_name(d) == "dataclass" for d in node.decorator_list):
        return
    node.decorator_list.append(_runtime(config, "dataclass"))


def _insert_state_field(node: ast.ClassDef, tracked: TrackedType, config: ExpanderConfig) -> None:
    last_field = -1
    for index, item in enumerate(node.body):
        if isinstance(item, ast.AnnAssign) and isinstance(item.target, ast.Name):
            last_field = index
    node.body.insert(last_field + 1, state_field(tracked, config))


def emit_class(
    tracked: TrackedType,
    expanded: Dict[int, OperationExpansion],
    dropped: Sequence[int],
    config: ExpanderConfig,
) -> ast.ClassDef:
    """
    The tracked class, generic over its slots.

    ``expanded`` maps body positions of operations to their expansion;
    positions in ``dropped`` are left out. Constructions inside the
    remaining plain methods are patched as well.
    """
    node = copy.deepcopy(tracked.node)
    body: List[ast.stmt] = []
    for index, item in enumerate(node.body):
        if index in dropped:
            continue
        if index in expanded:
            body.append(expanded[index].node)
            continue
        if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
            receiver = RECEIVER_CLS if any(annotation_name(d) == "classmethod" for d in item.decorator_list) else None
            item.body, _ = patch_body(item.body, tracked, config, receiver)
        body.append(item)
    node.body = body

    _extend_bases(node, tracked, config)
    _ensure_dataclass(node, config)
    _insert_state_field(node, tracked, config)
    return ast.fix_missing_locations(node)


def emit_tracked_type(
    tracked: TrackedType,
    registry: Registry,
    expanded: Dict[int, OperationExpansion],
    dropped: Sequence[int],
    config: ExpanderConfig,
) -> TypeExpansion:
    """Registry first, then type parameters, then the class with its operations."""
    operations = [expanded[index] for index in sorted(expanded)]
    statements: List[ast.stmt] = []
    statements.extend(registry.render(config.runtime_alias))
    statements.extend(slot_type_vars(tracked, config))
    statements.extend(placeholder_type_vars(operations, config))
    statements.append(emit_class(tracked, expanded, dropped, config))
    for statement in statements:
        ast.fix_missing_locations(statement)
    return TypeExpansion(
        tracked=tracked,
        registry=registry,
        operations=operations,
        statements=statements,
    )
