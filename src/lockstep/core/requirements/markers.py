"""Environment markers: parsing and evaluation.

A marker is a boolean expression that gates a requirement on the target
environment, e.g. ``python_version < "3.8" and sys_platform == "win32"``.

The expression tree is a small tagged variant:

- ``Comparison(lhs, op, rhs)`` where each side is a ``Variable`` or ``Literal``
- ``And(items)`` / ``Or(items)``

and is evaluated by ``evaluate_marker``, a structural recursion over those
node types.

Evaluation rules
----------------
- Version operators (``<``, ``<=``, ``==``, ``!=``, ``>=``, ``>``, ``~=``,
  ``===``) compare with version semantics when the right-hand side forms a
  valid specifier and the left-hand side a valid version; otherwise they
  fall back to plain string comparison (``~=`` then evaluates false).
- ``in`` / ``not in`` are substring tests.
- ``extra`` values are compared after name normalization.
- A comparison that references a variable missing from the environment
  evaluates to False instead of failing, so unfamiliar markers never block
  resolution.
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Union

from lockstep.core.requirements.environment import default_environment
from lockstep.core.requirements.scanner import Scanner
from lockstep.core.versioning import Specifier, Version
from lockstep.exceptions import InvalidMarker, InvalidSpecifier, InvalidVersion


# ---------------------------------------------------------------------------
# Variables
# ---------------------------------------------------------------------------

MARKER_VARIABLES: frozenset[str] = frozenset({
    "extra",
    "implementation_name",
    "implementation_version",
    "os_name",
    "platform_machine",
    "platform_python_implementation",
    "platform_release",
    "platform_system",
    "platform_version",
    "python_full_version",
    "python_version",
    "sys_platform",
})

# Older dotted spellings still found in published metadata.
_LEGACY_ALIASES: dict[str, str] = {
    "os.name": "os_name",
    "sys.platform": "sys_platform",
    "platform.version": "platform_version",
    "platform.machine": "platform_machine",
    "platform.python_implementation": "platform_python_implementation",
    "python_implementation": "platform_python_implementation",
}


def _normalize_extra(value: str) -> str:
    return re.sub(r"[-_.]+", "-", value).lower()


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Variable:
    """An environment variable reference such as ``python_version``."""

    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Literal:
    """A quoted string operand."""

    value: str

    def __str__(self) -> str:
        if '"' in self.value:
            return f"'{self.value}'"
        return f'"{self.value}"'


Operand = Union[Variable, Literal]


@dataclass(frozen=True)
class Comparison:
    """A leaf comparison ``lhs op rhs``."""

    lhs: Operand
    op: str
    rhs: Operand

    def __str__(self) -> str:
        return f"{self.lhs} {self.op} {self.rhs}"


@dataclass(frozen=True)
class And:
    items: tuple["MarkerNode", ...]


@dataclass(frozen=True)
class Or:
    items: tuple["MarkerNode", ...]


MarkerNode = Union[Comparison, And, Or]


def render_marker(node: MarkerNode, *, nested: bool = False) -> str:
    """Render a marker tree back to canonical text."""
    if isinstance(node, Comparison):
        return str(node)
    if isinstance(node, And):
        return " and ".join(render_marker(item, nested=True) for item in node.items)
    if isinstance(node, Or):
        text = " or ".join(render_marker(item) for item in node.items)
        return f"({text})" if nested else text
    raise TypeError(f"Not a marker node: {node!r}")


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

_LPAREN = re.compile(r"\(")
_RPAREN = re.compile(r"\)")
_AND = re.compile(r"and\b")
_OR = re.compile(r"or\b")
_QUOTED = re.compile(r"'[^']*'|\"[^\"]*\"")
_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")
_MARKER_OP = re.compile(r"===|==|~=|!=|<=|>=|<|>|not[ \t]+in\b|in\b")
_KEYWORDS = frozenset({"and", "or", "in", "not"})


class _MarkerParser:
    """Recursive descent over ``or`` > ``and`` > atom."""

    def __init__(self, scanner: Scanner) -> None:
        self.s = scanner

    def parse(self) -> MarkerNode:
        if self.s.at_end():
            self.s.error("Expected a marker expression")
        node = self._or()
        if not self.s.at_end():
            self.s.error("Unexpected text in marker")
        return node

    def _or(self) -> MarkerNode:
        items = [self._and()]
        while self.s.match(_OR):
            items.append(self._and())
        return items[0] if len(items) == 1 else Or(tuple(items))

    def _and(self) -> MarkerNode:
        items = [self._atom()]
        while self.s.match(_AND):
            items.append(self._atom())
        return items[0] if len(items) == 1 else And(tuple(items))

    def _atom(self) -> MarkerNode:
        if self.s.match(_LPAREN):
            node = self._or()
            self.s.expect(_RPAREN, "')'")
            return node
        lhs = self._operand()
        op_text = self.s.match(_MARKER_OP)
        if op_text is None:
            self.s.error("Expected a marker operator")
        op = "not in" if op_text.startswith("not") else op_text
        rhs = self._operand()
        if isinstance(lhs, Literal) and isinstance(rhs, Literal):
            self.s.error("Marker comparison needs an environment variable")
        return Comparison(lhs, op, rhs)

    def _operand(self) -> Operand:
        quoted = self.s.match(_QUOTED)
        if quoted is not None:
            return Literal(quoted[1:-1])
        start = self.s.pos
        ident = self.s.match(_IDENT)
        if ident is None or ident in _KEYWORDS:
            self.s.error("Expected a marker variable or quoted string", start)
        return Variable(_LEGACY_ALIASES.get(ident, ident))


def parse_marker(text: str, *, offset: int = 0, source: str | None = None) -> MarkerNode:
    """Parse marker text into a tree.

    Raises:
        InvalidMarker: On malformed syntax, with the failing position.
    """
    return _MarkerParser(
        Scanner(text, InvalidMarker, offset=offset, source=source)
    ).parse()


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

_STRING_OPS: dict[str, Callable[[str, str], bool]] = {
    "==": operator.eq,
    "===": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _resolve(operand: Operand, env: Mapping[str, str]) -> str | None:
    if isinstance(operand, Literal):
        return operand.value
    return env.get(operand.name)


def _compare(lhs: str, op: str, rhs: str) -> bool:
    if op == "in":
        return lhs in rhs
    if op == "not in":
        return lhs not in rhs
    try:
        spec = Specifier.parse(f"{op}{rhs}")
        version = Version.parse(lhs)
    except (InvalidSpecifier, InvalidVersion):
        fallback = _STRING_OPS.get(op)
        return fallback(lhs, rhs) if fallback is not None else False
    return spec.matches(version, prereleases=True)


def evaluate_marker(node: MarkerNode, env: Mapping[str, str]) -> bool:
    """Evaluate a marker tree against a concrete environment mapping."""
    if isinstance(node, And):
        return all(evaluate_marker(item, env) for item in node.items)
    if isinstance(node, Or):
        return any(evaluate_marker(item, env) for item in node.items)
    if isinstance(node, Comparison):
        lhs = _resolve(node.lhs, env)
        rhs = _resolve(node.rhs, env)
        if lhs is None or rhs is None:
            return False
        if Variable("extra") in (node.lhs, node.rhs):
            lhs, rhs = _normalize_extra(lhs), _normalize_extra(rhs)
        return _compare(lhs, node.op, rhs)
    raise TypeError(f"Not a marker node: {node!r}")


def _collect_extras(node: MarkerNode, found: set[str]) -> None:
    if isinstance(node, (And, Or)):
        for item in node.items:
            _collect_extras(item, found)
    elif node.op == "==":
        if node.lhs == Variable("extra") and isinstance(node.rhs, Literal):
            found.add(_normalize_extra(node.rhs.value))
        elif node.rhs == Variable("extra") and isinstance(node.lhs, Literal):
            found.add(_normalize_extra(node.lhs.value))


def _collect_variables(node: MarkerNode, found: set[str]) -> None:
    if isinstance(node, (And, Or)):
        for item in node.items:
            _collect_variables(item, found)
        return
    for side in (node.lhs, node.rhs):
        if isinstance(side, Variable):
            found.add(side.name)


def _reduce_extras(node: MarkerNode, extras: tuple[str, ...]) -> MarkerNode | bool:
    """Decide ``extra`` comparisons for ``extras``, keeping the other tests."""
    if isinstance(node, Comparison):
        if Variable("extra") not in (node.lhs, node.rhs):
            return node
        return any(evaluate_marker(node, {"extra": extra}) for extra in ("", *extras))
    reduced = [_reduce_extras(item, extras) for item in node.items]
    if isinstance(node, Or):
        if any(item is True for item in reduced):
            return True
        kept = [item for item in reduced if item is not False]
        if not kept:
            return False
    else:
        if any(item is False for item in reduced):
            return False
        kept = [item for item in reduced if item is not True]
        if not kept:
            return True
    return kept[0] if len(kept) == 1 else type(node)(tuple(kept))  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Marker
# ---------------------------------------------------------------------------


class Marker:
    """A parsed environment marker.

    Example::

        m = Marker('python_version < "3.8" or extra == "socks"')
        m.evaluate({"python_version": "3.12"}, extras=["socks"])  # True
    """

    __slots__ = ("_node",)

    def __init__(self, text: str) -> None:
        self._node = parse_marker(text)

    @classmethod
    def from_node(cls, node: MarkerNode) -> Marker:
        marker = cls.__new__(cls)
        marker._node = node
        return marker

    @property
    def node(self) -> MarkerNode:
        return self._node

    def evaluate(
        self,
        environment: Mapping[str, str] | None = None,
        extras: Iterable[str] = (),
    ) -> bool:
        """Evaluate against ``environment``.

        Args:
            environment: Marker environment; defaults to the running
                interpreter's.
            extras: Extras requested for the package declaring this marker.
                The marker holds if it holds with no extra or with any one of
                them.
        """
        if environment is None:
            environment = default_environment()
        for extra in ("", *sorted(extras)):
            env = dict(environment)
            env["extra"] = extra
            if evaluate_marker(self._node, env):
                return True
        return False

    def extras(self) -> frozenset[str]:
        """Return the extra names this marker tests for equality."""
        found: set[str] = set()
        _collect_extras(self._node, found)
        return frozenset(found)

    def variables(self) -> frozenset[str]:
        found: set[str] = set()
        _collect_variables(self._node, found)
        return frozenset(found)

    def unknown_variables(self) -> frozenset[str]:
        """Variables that are not standard marker variables.

        Comparisons on these evaluate false unless the environment happens
        to define them.
        """
        return self.variables() - MARKER_VARIABLES

    def assume_extras(self, extras: Iterable[str] = ()) -> Marker | bool:
        """Settle the ``extra`` tests for a package requested with ``extras``.

        Returns True if the marker then holds in every environment, False if
        it holds in none, and otherwise the marker reduced to its
        environment tests.
        """
        extras = tuple(sorted(_normalize_extra(e) for e in extras))
        node = _reduce_extras(self._node, extras)
        if isinstance(node, bool):
            return node
        return Marker.from_node(node)

    def __and__(self, other: Marker) -> Marker:
        return Marker.from_node(And((self._node, other._node)))

    def __or__(self, other: Marker) -> Marker:
        return Marker.from_node(Or((self._node, other._node)))

    def __str__(self) -> str:
        return render_marker(self._node)

    def __repr__(self) -> str:
        return f"<Marker({str(self)!r})>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Marker):
            return NotImplemented
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(str(self))
