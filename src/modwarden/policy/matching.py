"""Glob matching over Matrix identifiers.

Policy rules name their targets with simple globs: ``*`` matches any run of
characters (including none), ``?`` matches exactly one character, and every
other character matches itself. Matching is case-sensitive and anchored, so
``@spam:example.org`` does not match ``@spam:example.org.evil``.
"""

from __future__ import annotations

import re
from functools import lru_cache


@lru_cache(maxsize=4096)
def glob_to_regex(glob: str) -> re.Pattern[str]:
    """Compile a Matrix glob into an anchored regular expression."""
    parts = []
    for char in glob:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.DOTALL)


class MatrixGlob:
    """A compiled glob pattern.

    An empty pattern matches nothing, not even the empty string.
    """

    __slots__ = ("pattern", "_regex")

    def __init__(self, pattern: str) -> None:
        self.pattern = pattern or ""
        self._regex = glob_to_regex(self.pattern) if self.pattern else None

    def test(self, candidate: str | None) -> bool:
        if self._regex is None or candidate is None:
            return False
        return self._regex.fullmatch(candidate) is not None

    def __repr__(self) -> str:
        return f"MatrixGlob({self.pattern!r})"


def is_match(pattern: str, candidate: str | None) -> bool:
    """Return True if ``candidate`` matches ``pattern`` over its whole length."""
    return MatrixGlob(pattern).test(candidate)
