"""
hareline.ingestion.regex_safety

Gate for operator-supplied patterns (group patterns, skip patterns).

Patterns run on RE2, which matches in linear time, so catastrophic
backtracking cannot happen at match time. The gate still rejects the
classic backtracking shapes (nested unbounded quantifiers) so a saved
configuration stays portable to backtracking engines, and it rejects
anything RE2 cannot compile.
"""

from __future__ import annotations

import re
import re._constants as sre_constants
import re._parser as sre_parser
from functools import lru_cache
from typing import Any, Optional

import re2

from hareline.ingestion.errors import UnsafePatternError

MAX_PATTERN_LENGTH = 300

# Repeated alternation whose branches can match the same text: (a|a)+, (a|ab)*
_REPEATED_ALTERNATION = re.compile(r"\((?:\?:)?([^()|\\]+)\|\1[^()]*\)(?:[+*]|\{\d+,\})")
_BACKREFERENCE = re.compile(r"\\[1-9]")
_LOOKAROUND = re.compile(r"\(\?<?[=!]")


_REPEATS = (sre_constants.MAX_REPEAT, sre_constants.MIN_REPEAT)


def _children(op: Any, av: Any) -> list:
    """Sub-patterns directly below one parsed node."""
    if op in _REPEATS:
        return [av[2]]
    if op is sre_constants.SUBPATTERN:
        return [av[3]]
    if op is sre_constants.BRANCH:
        return list(av[1])
    if op in (sre_constants.ASSERT, sre_constants.ASSERT_NOT):
        return [av[1]]
    if op is sre_constants.GROUPREF_EXISTS:
        return [p for p in av[1:] if p is not None]
    return []


def _is_unbounded(op: Any, av: Any) -> bool:
    return op in _REPEATS and av[1] == sre_constants.MAXREPEAT


def _contains_unbounded(subpattern: Any) -> bool:
    for op, av in subpattern:
        if _is_unbounded(op, av):
            return True
        if any(_contains_unbounded(child) for child in _children(op, av)):
            return True
    return False


def _walk_nested(subpattern: Any) -> bool:
    for op, av in subpattern:
        if _is_unbounded(op, av) and _contains_unbounded(av[2]):
            return True
        if any(_walk_nested(child) for child in _children(op, av)):
            return True
    return False


def has_nested_unbounded_repeat(pattern: str) -> bool:
    """
    True when an unbounded repeat contains another unbounded repeat at any
    depth: (a+)+, ((a+)b)+, (?:(?:\\w+)\\s)+, ((ab)*)+ ...

    Syntax Python cannot parse is left for RE2 to judge.
    """
    try:
        tree = sre_parser.parse(pattern)
    except re.error:
        return False
    return _walk_nested(tree)


def check_pattern(pattern: object) -> Optional[str]:
    """Return a human-readable rejection reason, or None when safe."""
    if not isinstance(pattern, str):
        return "pattern must be a string"
    if not pattern:
        return "pattern must not be empty"
    if len(pattern) > MAX_PATTERN_LENGTH:
        return f"pattern longer than {MAX_PATTERN_LENGTH} characters"
    if has_nested_unbounded_repeat(pattern):
        return "nested unbounded quantifiers (catastrophic backtracking risk)"
    if _REPEATED_ALTERNATION.search(pattern):
        return "repeated overlapping alternation (catastrophic backtracking risk)"
    if _BACKREFERENCE.search(pattern):
        return "backreferences are not supported"
    if _LOOKAROUND.search(pattern):
        return "lookaround assertions are not supported"
    try:
        compile_pattern(pattern)
    except re2.error as e:
        return f"invalid pattern: {e}"
    return None


def assert_safe_pattern(pattern: str) -> str:
    reason = check_pattern(pattern)
    if reason:
        raise UnsafePatternError(pattern, reason)
    return pattern


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str):
    """Compile a case-insensitive RE2 pattern (cached)."""
    return re2.compile("(?i)" + pattern)
