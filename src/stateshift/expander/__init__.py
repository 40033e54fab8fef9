"""
stateshift.expander - State overlay expander

Reads classes annotated with @type_state and methods annotated with
@require / @switch_to, and rewrites them into generic classes whose
operations are only callable in the states they declare.
"""

from stateshift.expander.annotations import (
    FREE,
    PASS_THROUGH,
    Free,
    PassThrough,
    Pinned,
    SlotSpec,
    TypeStateArgs,
)
from stateshift.expander.errors import (
    ArityMismatchError,
    ExpansionDiagnostic,
    ExpansionError,
    ExpansionResult,
    MalformedAnnotationError,
    SourceSyntaxError,
    UnknownMarkerError,
    UnsupportedShapeError,
)
from stateshift.expander.model import OperationSpec, TrackedType
from stateshift.expander.registry import MarkerDecl, Registry
from stateshift.expander.bindings import Placeholder, ResolvedBindings, SlotBinding, resolve_bindings
from stateshift.expander.rewriter import compute_transition, rewrite_return_type
from stateshift.expander.patcher import patch_body
from stateshift.expander.emitter import OperationExpansion, TypeExpansion, emit_operation, emit_tracked_type
from stateshift.expander.expander import (
    Expander,
    expand_file,
    expand_file_recovering,
    expand_source,
    expand_source_recovering,
    read_source,
)

__all__ = [
    # Annotations
    "FREE",
    "PASS_THROUGH",
    "Free",
    "PassThrough",
    "Pinned",
    "SlotSpec",
    "TypeStateArgs",
    # Errors
    "ArityMismatchError",
    "ExpansionDiagnostic",
    "ExpansionError",
    "ExpansionResult",
    "MalformedAnnotationError",
    "SourceSyntaxError",
    "UnknownMarkerError",
    "UnsupportedShapeError",
    # Model
    "OperationSpec",
    "TrackedType",
    "MarkerDecl",
    "Registry",
    "Placeholder",
    "ResolvedBindings",
    "SlotBinding",
    # Passes
    "resolve_bindings",
    "compute_transition",
    "rewrite_return_type",
    "patch_body",
    "OperationExpansion",
    "TypeExpansion",
    "emit_operation",
    "emit_tracked_type",
    # Driver
    "Expander",
    "expand_file",
    "expand_file_recovering",
    "expand_source",
    "expand_source_recovering",
    "read_source",
]
