"""Position-tracking scanner shared by the requirement and marker parsers."""

from __future__ import annotations

import re
from typing import NoReturn

from lockstep.exceptions import ParseError

_WS_RE = re.compile(r"[ \t]*")


class Scanner:
    """Consumes a string left to right with regular expressions.

    Every ``match`` call skips leading blanks first, so grammars built on it
    are whitespace-insensitive between tokens. Errors are raised as
    ``error_cls`` with the current offset, so callers can point at the
    offending substring.

    Args:
        text: The input.
        error_cls: ``ParseError`` subclass raised by ``error``.
        offset: Added to reported positions when ``text`` is a slice of a
            larger input.
    """

    def __init__(
        self,
        text: str,
        error_cls: type[ParseError] = ParseError,
        *,
        offset: int = 0,
        source: str | None = None,
    ) -> None:
        self.text = text
        self.pos = 0
        self.error_cls = error_cls
        self.offset = offset
        self.source = text if source is None else source

    def skip_ws(self) -> None:
        m = _WS_RE.match(self.text, self.pos)
        if m:
            self.pos = m.end()

    def peek(self, pattern: re.Pattern[str]) -> bool:
        self.skip_ws()
        return pattern.match(self.text, self.pos) is not None

    def match(self, pattern: re.Pattern[str]) -> str | None:
        """Consume and return the text matched by ``pattern``, or None."""
        self.skip_ws()
        m = pattern.match(self.text, self.pos)
        if m is None:
            return None
        self.pos = m.end()
        return m.group(0)

    def expect(self, pattern: re.Pattern[str], what: str) -> str:
        value = self.match(pattern)
        if value is None:
            self.error(f"Expected {what}")
        return value

    def at_end(self) -> bool:
        self.skip_ws()
        return self.pos >= len(self.text)

    @property
    def position(self) -> int:
        return self.offset + self.pos

    def error(self, reason: str, position: int | None = None) -> NoReturn:
        at = self.position if position is None else self.offset + position
        raise self.error_cls(reason, self.source, at)
