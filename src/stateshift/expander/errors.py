"""
Expansion errors and diagnostics.

Every failure is tied to the declaration (tracked class or operation) that
caused it. The strict entry points raise the first ExpansionError; the
recovering ones turn them into ExpansionDiagnostic records.
"""

import ast
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class ExpansionError(Exception):
    """Base class for errors raised while expanding a declaration."""

    code = "EXPANSION_ERROR"

    def __init__(
        self,
        message: str,
        node: Optional[ast.AST] = None,
        declaration: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ):
        self.message = message
        self.declaration = declaration
        self.line = line or getattr(node, "lineno", 0) or 0
        self.column = column or getattr(node, "col_offset", 0) or 0
        self.end_line = getattr(node, "end_lineno", None) or self.line
        self.end_column = getattr(node, "end_col_offset", None) or self.column
        where = f" in {declaration}" if declaration else ""
        if self.line:
            super().__init__(f"Expansion error at line {self.line}, column {self.column}{where}: {message}")
        else:
            super().__init__(f"Expansion error{where}: {message}")

    def to_diagnostic(self, severity: str = "error") -> "ExpansionDiagnostic":
        return ExpansionDiagnostic(
            line=self.line,
            column=self.column,
            end_line=self.end_line,
            end_column=self.end_column,
            severity=severity,
            code=self.code,
            message=self.message,
            declaration=self.declaration,
        )


class MalformedAnnotationError(ExpansionError):
    """Annotation arguments do not follow the slot grammar."""
    code = "MALFORMED_ANNOTATION"


class UnsupportedShapeError(ExpansionError):
    """The annotated declaration cannot be expanded (e.g. unnameable return type)."""
    code = "UNSUPPORTED_SHAPE"


class ArityMismatchError(ExpansionError):
    """A slot vector's length disagrees with the tracked type's arity."""
    code = "ARITY_MISMATCH"

    def __init__(self, message: str, expected: int, actual: int, **kwargs: Any):
        self.expected = expected
        self.actual = actual
        super().__init__(message, **kwargs)


class UnknownMarkerError(ExpansionError):
    """A pinned marker is not part of the tracked type's alphabet."""
    code = "UNKNOWN_MARKER"

    def __init__(self, message: str, marker: str, **kwargs: Any):
        self.marker = marker
        super().__init__(message, **kwargs)


class SourceSyntaxError(ExpansionError):
    """The input module is not valid Python."""
    code = "SYNTAX_ERROR"

    @classmethod
    def from_syntax_error(cls, exc: SyntaxError, filename: str) -> "SourceSyntaxError":
        return cls(
            exc.msg or "invalid syntax",
            declaration=filename,
            line=exc.lineno or 0,
            column=(exc.offset or 1) - 1,
        )


@dataclass
class ExpansionDiagnostic:
    """A diagnostic message from expansion (error or warning)."""
    line: int
    column: int
    end_line: int
    end_column: int
    severity: str  # "error", "warning"
    code: str
    message: str
    declaration: Optional[str] = None

    def __str__(self) -> str:
        where = f" [{self.declaration}]" if self.declaration else ""
        return f"{self.line}:{self.column}: {self.severity} {self.code}{where}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line": self.line,
            "column": self.column,
            "end_line": self.end_line,
            "end_column": self.end_column,
            "severity": self.severity,
            "code": self.code,
            "message": self.message,
            "declaration": self.declaration,
        }


@dataclass
class ExpansionResult:
    """Result of expanding one module."""
    source: Optional[str]
    diagnostics: List[ExpansionDiagnostic]
    success: bool
    types: List[Any] = field(default_factory=list)

    @property
    def errors(self) -> List[ExpansionDiagnostic]:
        return [d for d in self.diagnostics if d.severity == "error"]

    @property
    def warnings(self) -> List[ExpansionDiagnostic]:
        return [d for d in self.diagnostics if d.severity == "warning"]

    def get_type(self, name: str) -> Optional[Any]:
        for expansion in self.types:
            if expansion.tracked.name == name:
                return expansion
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "types": [t.to_dict() for t in self.types],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "errors": [d.to_dict() for d in self.errors],
            "warnings": [d.to_dict() for d in self.warnings],
        }
