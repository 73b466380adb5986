"""Wildcard pattern matching with per-pattern strategy selection.

A pattern is classified exactly once, when it is compiled, into the cheapest
strategy that can evaluate it:

==========  ==============  ==============================
Strategy    Pattern shape   Test
==========  ==============  ==============================
EXACT       ``Name``        ``subject == pattern``
PREFIX      ``Abstract*``   ``subject.startswith(prefix)``
SUFFIX      ``*Controller`` ``subject.endswith(suffix)``
CONTAINS    ``*Route*``     ``substring in subject``
GLOB        anything else   ``fnmatch`` translated regex
==========  ==============  ==============================

``*`` matches any run of characters (separators included) and ``?`` matches
exactly one character. A pattern containing ``?`` always uses GLOB.
"""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

WILDCARD = "*"
SINGLE = "?"


class MatchStrategy(str, Enum):
    EXACT = "exact"
    PREFIX = "prefix"
    SUFFIX = "suffix"
    CONTAINS = "contains"
    GLOB = "glob"


def has_wildcard(pattern: str) -> bool:
    return WILDCARD in pattern or SINGLE in pattern


def classify(pattern: str) -> MatchStrategy:
    """Return the cheapest strategy able to evaluate *pattern*."""
    if not has_wildcard(pattern):
        return MatchStrategy.EXACT
    if SINGLE in pattern:
        return MatchStrategy.GLOB

    stars = pattern.count(WILDCARD)
    if stars == 1 and pattern.endswith(WILDCARD):
        return MatchStrategy.PREFIX
    if stars == 1 and pattern.startswith(WILDCARD):
        return MatchStrategy.SUFFIX
    if stars == 2 and len(pattern) >= 2 and pattern.startswith(WILDCARD) and pattern.endswith(WILDCARD):
        return MatchStrategy.CONTAINS
    return MatchStrategy.GLOB


@dataclass(frozen=True)
class Matcher:
    """A compiled pattern. Call it with a subject string."""

    pattern: str
    strategy: MatchStrategy
    _test: Callable[[str], Any] = field(repr=False, compare=False)

    def __call__(self, subject: str) -> bool:
        return bool(self._test(subject))


def compile_pattern(pattern: str) -> Matcher:
    strategy = classify(pattern)

    if strategy is MatchStrategy.EXACT:
        test: Callable[[str], Any] = pattern.__eq__
    elif strategy is MatchStrategy.PREFIX:
        prefix = pattern[:-1]
        test = lambda s: s.startswith(prefix)  # noqa: E731
    elif strategy is MatchStrategy.SUFFIX:
        suffix = pattern[1:]
        test = lambda s: s.endswith(suffix)  # noqa: E731
    elif strategy is MatchStrategy.CONTAINS:
        needle = pattern[1:-1]
        test = lambda s: needle in s  # noqa: E731
    else:
        test = re.compile(fnmatch.translate(pattern)).match

    return Matcher(pattern=pattern, strategy=strategy, _test=test)


def glob_match(pattern: str, subject: str) -> bool:
    """Reference evaluator: plain case-sensitive ``fnmatch``."""
    return fnmatch.fnmatchcase(subject, pattern)
