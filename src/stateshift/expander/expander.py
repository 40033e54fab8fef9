"""
Expander

Drives the expansion of one module: finds the tracked classes, reads their
operations, emits the generated declarations and splices them into the
original text. Everything outside a tracked class is left byte for byte.

Two modes, as with any front end:

    expand_source()             strict; raises the first ExpansionError
    expand_source_recovering()  collects diagnostics and keeps going
"""

import ast
import logging
from typing import Dict, List, Optional, Tuple

from stateshift.config import ExpanderConfig
from stateshift.expander.annotations import find_annotation
from stateshift.expander.emitter import OperationExpansion, TypeExpansion, emit_operation, emit_tracked_type
from stateshift.expander.errors import (
    ExpansionDiagnostic,
    ExpansionError,
    ExpansionResult,
    SourceSyntaxError,
    UnsupportedShapeError,
)
from stateshift.expander.model import OperationSpec, TrackedType, collect_alphabet
from stateshift.expander.registry import Registry

logger = logging.getLogger(__name__)

# (first line, last line) of a replaced span, 1-based and inclusive
Span = Tuple[int, int]


def _span(node: ast.ClassDef) -> Span:
    first = min([node.lineno] + [d.lineno for d in node.decorator_list])
    return first, node.end_lineno


def _import_position(tree: ast.Module) -> int:
    """Line after the module docstring and any ``__future__`` imports (0 when none)."""
    position = 0
    body = list(tree.body)
    if body and isinstance(body[0], ast.Expr) and isinstance(body[0].value, ast.Constant) \
            and isinstance(body[0].value.value, str):
        position = body[0].end_lineno
        body.pop(0)
    for statement in body:
        if not (isinstance(statement, ast.ImportFrom) and statement.module == "__future__"):
            break
        position = statement.end_lineno
    return position


def _has_future_annotations(tree: ast.Module) -> bool:
    for statement in tree.body:
        if isinstance(statement, ast.ImportFrom) and statement.module == "__future__":
            if any(alias.name == "annotations" for alias in statement.names):
                return True
    return False


def _imports_runtime(tree: ast.Module, config: ExpanderConfig) -> bool:
    for statement in tree.body:
        if isinstance(statement, ast.Import):
            for alias in statement.names:
                if alias.name == config.runtime_module and alias.asname == config.runtime_alias:
                    return True
    return False


class Expander:
    """
    Expands every tracked type of a module.

    With ``strict`` the first ExpansionError propagates. Otherwise errors
    become diagnostics: a failing operation is dropped (or, when
    ``isolate_failures`` is off, its whole type), and the rest of the
    module still expands.
    """

    def __init__(self, config: Optional[ExpanderConfig] = None, filename: str = "<unknown>", strict: bool = False):
        self.config = config or ExpanderConfig.defaults()
        self.filename = filename
        self.strict = strict
        self.diagnostics: List[ExpansionDiagnostic] = []

    def _report(self, exc: ExpansionError) -> None:
        if self.strict:
            raise exc
        self.diagnostics.append(exc.to_diagnostic())

    def _drop_operation(self, exc: ExpansionError) -> None:
        if self.strict or not self.config.isolate_failures:
            raise exc
        logger.warning("%s: dropping %s: %s", self.filename, exc.declaration, exc.message)
        self.diagnostics.append(exc.to_diagnostic())

    def expand(self, source: str) -> ExpansionResult:
        self.diagnostics = []
        try:
            tree = ast.parse(source, filename=self.filename)
        except SyntaxError as e:
            error = SourceSyntaxError.from_syntax_error(e, self.filename)
            if self.strict:
                raise error from e
            return ExpansionResult(source=None, diagnostics=[error.to_diagnostic()], success=False)

        self._check_nesting(tree)

        edits: List[Tuple[Span, str]] = []
        types: List[TypeExpansion] = []
        seen = set()
        owners: Dict[str, str] = {}
        for node in tree.body:
            if not isinstance(node, ast.ClassDef):
                continue
            if find_annotation(node.decorator_list, self.config.type_state_name) is None:
                continue
            try:
                if node.name in seen:
                    raise UnsupportedShapeError(
                        f"tracked type {node.name} is declared more than once",
                        node=node,
                        declaration=node.name,
                    )
                seen.add(node.name)
                expansion = self.expand_type(node)
                self._claim_names(expansion, node, owners)
            except ExpansionError as exc:
                self._report(exc)
                logger.warning("%s: dropping %s: %s", self.filename, node.name, exc.message)
                edits.append((_span(node), ""))
                continue
            edits.append((_span(node), expansion.render()))
            types.append(expansion)

        output = self._splice(source, tree, edits, insert_imports=bool(types))
        diagnostics = sorted(self.diagnostics, key=lambda d: (d.line, d.column))
        success = not any(d.severity == "error" for d in diagnostics)
        logger.info("%s: expanded %d tracked type(s)", self.filename, len(types))
        return ExpansionResult(source=output, diagnostics=diagnostics, success=success, types=types)

    def _check_nesting(self, tree: ast.Module) -> None:
        """Tracked types must be module-level classes."""
        for statement in tree.body:
            for node in ast.walk(statement):
                if node is statement or not isinstance(node, ast.ClassDef):
                    continue
                if find_annotation(node.decorator_list, self.config.type_state_name) is not None:
                    self._report(UnsupportedShapeError(
                        "tracked types must be declared at module level",
                        node=node,
                        declaration=node.name,
                    ))

    def _claim_names(self, expansion: TypeExpansion, node: ast.ClassDef, owners: Dict[str, str]) -> None:
        """Generated names are unique across the module, including within one type."""
        claimed: Dict[str, str] = {}
        for name, role in expansion.generated_names():
            other = claimed.get(name) or owners.get(name)
            if other is not None:
                raise UnsupportedShapeError(
                    f"generated name {name} is declared by both the {other} and the {role}",
                    node=node,
                    declaration=node.name,
                )
            claimed[name] = role
        owners.update(claimed)

    def expand_type(self, node: ast.ClassDef) -> TypeExpansion:
        """Expand one tracked class. Raises on a type-level failure."""
        config = self.config
        tracked = TrackedType.from_class(node, config)
        logger.debug("Expanding %s (%d slot(s))", tracked.name, tracked.slots)

        specs: Dict[int, OperationSpec] = {}
        dropped: List[int] = []
        failed: List[str] = []
        for index, item in enumerate(tracked.node.body):
            if not isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
                continue
            try:
                spec = OperationSpec.from_function(item, tracked, config)
            except ExpansionError as exc:
                self._drop_operation(exc)
                dropped.append(index)
                failed.append(item.name)
                continue
            if spec is not None:
                specs[index] = spec

        alphabet = collect_alphabet(tracked, list(specs.values()))
        tracked = tracked.with_alphabet(alphabet)
        registry = Registry.build(tracked.name, tracked.slots, alphabet)

        expanded: Dict[int, OperationExpansion] = {}
        for index, spec in specs.items():
            try:
                operation = emit_operation(spec, tracked, config)
            except ExpansionError as exc:
                self._drop_operation(exc)
                dropped.append(index)
                failed.append(spec.name)
                continue
            expanded[index] = operation
            self.diagnostics.extend(operation.diagnostics)

        expansion = emit_tracked_type(tracked, registry, expanded, dropped, config)
        expansion.failed = failed
        return expansion

    def _splice(self, source: str, tree: ast.Module, edits: List[Tuple[Span, str]], insert_imports: bool) -> str:
        if not edits:
            return source
        lines = source.splitlines(keepends=True)
        if lines and not lines[-1].endswith("\n"):
            lines[-1] += "\n"

        # Bottom-up, so earlier spans keep their line numbers.
        for (first, last), text in sorted(edits, reverse=True):
            lines[first - 1:last] = text.splitlines(keepends=True)

        if insert_imports:
            header = []
            if not _has_future_annotations(tree):
                header.append("from __future__ import annotations\n")
            if not _imports_runtime(tree, self.config):
                header.append(f"import {self.config.runtime_module} as {self.config.runtime_alias}\n")
            position = _import_position(tree)
            lines[position:position] = header
        return "".join(lines)


def expand_source(source: str, filename: str = "<unknown>", config: Optional[ExpanderConfig] = None) -> str:
    """Expand a module. Raises the first ExpansionError."""
    result = Expander(config, filename, strict=True).expand(source)
    return result.source


def expand_source_recovering(
    source: str,
    filename: str = "<unknown>",
    config: Optional[ExpanderConfig] = None,
) -> ExpansionResult:
    """Expand a module, collecting diagnostics instead of raising."""
    return Expander(config, filename).expand(source)


def read_source(filepath: str) -> str:
    """Read a source file. Handles encoding fallback."""
    # Try UTF-8 with BOM first, then UTF-8, then latin-1 (which always succeeds)
    for encoding in ["utf-8-sig", "utf-8", "latin-1"]:
        try:
            with open(filepath, "r", encoding=encoding) as f:
                return f.read()
        except UnicodeDecodeError:
            continue
    raise AssertionError("latin-1 decoding cannot fail")


def expand_file(filepath: str, config: Optional[ExpanderConfig] = None) -> str:
    """Expand a file. Raises the first ExpansionError."""
    return expand_source(read_source(filepath), str(filepath), config)


def expand_file_recovering(filepath: str, config: Optional[ExpanderConfig] = None) -> ExpansionResult:
    return expand_source_recovering(read_source(filepath), str(filepath), config)
