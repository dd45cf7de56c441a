"""Version numbers and version specifiers.

- ``version``: the ``Version`` value type, its parser and total order.
- ``specifiers``: ``Specifier`` (one comparison) and ``SpecifierSet``
  (a conjunction of comparisons).
"""

from lockstep.core.versioning.specifiers import (
    OPERATORS,
    Specifier,
    SpecifierSet,
    parse_specifier_set,
)
from lockstep.core.versioning.version import (
    Version,
    is_valid_version,
    parse_version,
)

__all__ = [
    "OPERATORS",
    "Specifier",
    "SpecifierSet",
    "Version",
    "is_valid_version",
    "parse_specifier_set",
    "parse_version",
]
