"""Name, namespace and qualified-name matching with wildcard patterns.

:class:`PatternFilter` picks what to match from the shape of the pattern:

* no namespace separator: the simple name (``*Controller``, ``Abstract*``);
* a plain namespace (``App\\Http``) or one ending in ``\\*`` with no other
  wildcard (``App\\*``): the namespace, including sub-namespaces for the
  ``\\*`` form;
* anything else with a separator: the fully-qualified name
  (``*\\Api\\*Controller``).
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Iterable, Optional

from .errors import InvalidFilterError
from .filters import Filter, Key
from .matching import WILDCARD, MatchStrategy, compile_pattern, has_wildcard
from .models import NAMESPACE_SEPARATOR, DeclarationRecord


class PatternTarget(str, Enum):
    NAME = "name"
    NAMESPACE = "namespace"
    QUALIFIED_NAME = "qualified_name"


def detect_target(pattern: str, separator: str = NAMESPACE_SEPARATOR) -> PatternTarget:
    if separator not in pattern:
        return PatternTarget.NAME
    if not has_wildcard(pattern):
        return PatternTarget.NAMESPACE
    if pattern.endswith(separator + WILDCARD) and pattern.count(WILDCARD) == 1 and "?" not in pattern:
        return PatternTarget.NAMESPACE
    return PatternTarget.QUALIFIED_NAME


_EXTRACTORS = {
    PatternTarget.NAME: lambda record: record.name,
    PatternTarget.NAMESPACE: lambda record: record.namespace,
    PatternTarget.QUALIFIED_NAME: lambda record: record.qualified_name,
}


class PatternFilter(Filter):
    """Wildcard match against the subject chosen by :func:`detect_target`.

    The target and the matching strategy are both decided once here; an empty
    subject (a declaration in the global namespace, for namespace patterns)
    never matches.
    """

    def __init__(
        self,
        pattern: str,
        separator: str = NAMESPACE_SEPARATOR,
        target: Optional[PatternTarget] = None,
    ) -> None:
        if not isinstance(pattern, str):
            raise InvalidFilterError(f"pattern must be a string, got {type(pattern).__name__}")
        self.pattern = pattern
        self.separator = separator
        self.target = PatternTarget(target) if target is not None else detect_target(pattern, separator)
        self._extract = _EXTRACTORS[self.target]
        self.strategy: Optional[MatchStrategy] = None
        self._match = self._build_matcher(pattern)

    def _build_matcher(self, pattern: str) -> Callable[[str], bool]:
        tail = self.separator + WILDCARD
        if self.target is PatternTarget.NAMESPACE and pattern.endswith(tail):
            prefix = pattern[: -len(tail)]
            nested = prefix + self.separator
            self.strategy = MatchStrategy.PREFIX
            return lambda ns: ns == prefix or ns.startswith(nested)
        matcher = compile_pattern(pattern)
        self.strategy = matcher.strategy
        return matcher

    def accept(self, record: DeclarationRecord, key: Key = None) -> bool:
        subject = self._extract(record)
        if not subject:
            return False
        return self._match(subject)

    def __repr__(self) -> str:
        return f"PatternFilter({self.pattern!r}, target={self.target.value!r})"


class NameSetFilter(Filter):
    """Accepts records whose simple name is one of *names* (hash lookup)."""

    def __init__(self, names: Iterable[str]) -> None:
        self.names = frozenset(names)

    def accept(self, record: DeclarationRecord, key: Key = None) -> bool:
        return record.name in self.names

    def __repr__(self) -> str:
        return f"NameSetFilter({sorted(self.names)!r})"


def exact(value: str) -> PatternFilter:
    return PatternFilter(value)


def contains(substring: str) -> PatternFilter:
    return PatternFilter(f"*{substring}*")


def starts_with(prefix: str) -> PatternFilter:
    return PatternFilter(f"{prefix}*")


def ends_with(suffix: str) -> PatternFilter:
    return PatternFilter(f"*{suffix}")


def in_namespace(namespace: str) -> PatternFilter:
    """The namespace itself and every sub-namespace."""
    return PatternFilter(f"{namespace.rstrip(NAMESPACE_SEPARATOR)}{NAMESPACE_SEPARATOR}*")


def exact_namespace(namespace: str) -> PatternFilter:
    """Only the namespace itself, never its sub-namespaces."""
    return PatternFilter(namespace.strip(NAMESPACE_SEPARATOR), target=PatternTarget.NAMESPACE)


def any_of(names: Iterable[str]) -> NameSetFilter:
    return NameSetFilter(names)
