"""
stateshift - Compile-time state overlays for Python classes

Annotate a dataclass with the states it moves through and each method with
the states it needs and produces; the expander rewrites the module so a
type checker rejects calls made in the wrong state.
"""

__version__ = "0.1.0"
__author__ = "stateshift contributors"

from stateshift.decorators import require, states, switch_to, type_state
from stateshift.expander import expand_file, expand_source, expand_source_recovering
