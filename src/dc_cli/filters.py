"""Name / schema id / content type filters.

A pattern is either an exact string or a regular expression wrapped in
forward slashes (``/\\.header/``).  Regexes are case sensitive and
unanchored: a single ``re.search`` hit is a match.  When several
patterns are given an entity matches if *any* of them does.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Callable, Iterable, Sequence, TypeVar

from .errors import FatalConfigurationError

T = TypeVar("T")

Patterns = str | Sequence[str] | None


def _regex_body(pattern: str) -> str | None:
    """Return the regex inside ``/.../``, or ``None`` for a plain string."""
    if len(pattern) >= 2 and pattern.startswith("/") and pattern.endswith("/"):
        return pattern[1:-1]
    return None


@lru_cache(maxsize=256)
def _compile(body: str) -> re.Pattern[str]:
    try:
        return re.compile(body)
    except re.error as exc:
        raise FatalConfigurationError(
            f"Invalid regular expression filter '/{body}/': {exc}",
            context={"pattern": body},
        ) from exc


def as_pattern_list(patterns: Patterns) -> list[str]:
    """Normalise a scalar or sequence of patterns to a list."""
    if patterns is None:
        return []
    if isinstance(patterns, str):
        return [patterns]
    return list(patterns)


def validate_patterns(patterns: Patterns) -> None:
    """Compile every regex pattern up front.

    Raises:
        FatalConfigurationError: If any ``/regex/`` pattern is malformed.
    """
    for pattern in as_pattern_list(patterns):
        body = _regex_body(pattern)
        if body is not None:
            _compile(body)


def is_regex(pattern: str) -> bool:
    return _regex_body(pattern) is not None


def equals_or_regex(value: str, pattern: str) -> bool:
    """Match *value* against a single exact-or-``/regex/`` *pattern*."""
    body = _regex_body(pattern)
    if body is None:
        return value == pattern
    return _compile(body).search(value) is not None


def matches_any(value: str, patterns: Patterns) -> bool:
    """Return True if any pattern matches *value* (OR semantics)."""
    return any(
        equals_or_regex(value, pattern)
        for pattern in as_pattern_list(patterns)
    )


def filter_entities(
    entities: Iterable[T],
    key: Callable[[T], str | None],
    patterns: Patterns,
) -> list[T]:
    """Keep entities whose *key* matches any pattern, preserving order.

    Entities with no key value are compared as the empty string.
    """
    pattern_list = as_pattern_list(patterns)
    return [
        entity
        for entity in entities
        if matches_any(key(entity) or "", pattern_list)
    ]
