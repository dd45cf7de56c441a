"""Requirements, environment markers and marker environments.

- ``requirement``: ``Requirement`` parsing and name normalization.
- ``markers``: the marker expression tree, its parser and evaluator.
- ``environment``: marker environments for the running or a target
  interpreter.
"""

from lockstep.core.requirements.environment import (
    PLATFORM_PRESETS,
    MarkerEnvironment,
    default_environment,
    target_environment,
)
from lockstep.core.requirements.markers import (
    MARKER_VARIABLES,
    And,
    Comparison,
    Literal,
    Marker,
    MarkerNode,
    Or,
    Variable,
    evaluate_marker,
    parse_marker,
)
from lockstep.core.requirements.requirement import (
    Requirement,
    canonicalize_name,
    is_valid_name,
    parse_requirement,
)

__all__ = [
    "MARKER_VARIABLES",
    "PLATFORM_PRESETS",
    "And",
    "Comparison",
    "Literal",
    "Marker",
    "MarkerEnvironment",
    "MarkerNode",
    "Or",
    "Requirement",
    "Variable",
    "canonicalize_name",
    "default_environment",
    "evaluate_marker",
    "is_valid_name",
    "parse_marker",
    "parse_requirement",
    "target_environment",
]
