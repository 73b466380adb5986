"""Filters over the attributes (PHP 8 ``#[...]`` metadata) of a declaration.

Attributes are read from the declaration itself and, with ``deep_search``,
from its methods, properties and constants. Deep search pools the tags of
every attachment point before ALL/ANY is evaluated, so ``#[Route]`` on the
class and ``#[Auth]`` on one method together satisfy ``{Route, Auth}``.

An empty list of required names or patterns never matches.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Iterable, List, Tuple, Union

from .errors import InvalidFilterError
from .filters import Filter, Key, MatchMode, normalize_name
from .matching import Matcher, compile_pattern
from .models import DeclarationRecord


def _as_tuple(values: Union[str, Iterable[str]], owner: str, fold: bool = False) -> Tuple[str, ...]:
    if isinstance(values, str):
        values = (values,)
    result: List[str] = []
    seen = set()
    for index, value in enumerate(values):
        if not isinstance(value, str):
            raise InvalidFilterError(f"{owner}[{index}] must be a string, got {type(value).__name__}")
        value = normalize_name(value)
        marker = value.lower() if fold else value
        if marker not in seen:
            seen.add(marker)
            result.append(value)
    return tuple(result)


class _AttributeSearch(Filter):
    def __init__(self, mode: MatchMode, deep_search: bool) -> None:
        self.mode = MatchMode(mode)
        self.deep_search = deep_search

    @abstractmethod
    def _size(self) -> int:
        """Number of required names or patterns."""

    @abstractmethod
    def _first_hit(self, tag: str) -> bool:
        """True if *tag* satisfies any requirement."""

    @abstractmethod
    def _hits(self, tag: str) -> Iterable[int]:
        """Indexes of the requirements *tag* satisfies."""

    def accept(self, record: DeclarationRecord, key: Key = None) -> bool:
        total = self._size()
        if total == 0:
            return False

        points = record.iter_attachment_points(self.deep_search)

        if self.mode is MatchMode.ANY:
            for _, tags in points:
                for tag in tags:
                    if self._first_hit(tag):
                        return True
            return False

        found = set()
        for _, tags in points:
            for tag in tags:
                for index in self._hits(tag):
                    found.add(index)
                if len(found) == total:
                    return True
        return False


class AttributeFilter(_AttributeSearch):
    """Exact attribute names, combined with ALL or ANY.

    Names are compared as fully-qualified names without the leading ``\\``,
    ignoring case as PHP does.
    """

    def __init__(
        self,
        names: Union[str, Iterable[str]],
        mode: MatchMode = MatchMode.ANY,
        deep_search: bool = False,
    ) -> None:
        super().__init__(mode, deep_search)
        self.names = _as_tuple(names, owner="names", fold=True)
        self._index = {name.lower(): i for i, name in enumerate(self.names)}

    def _size(self) -> int:
        return len(self.names)

    def _first_hit(self, tag: str) -> bool:
        return tag.lower() in self._index

    def _hits(self, tag: str) -> Iterable[int]:
        index = self._index.get(tag.lower())
        return () if index is None else (index,)

    def __repr__(self) -> str:
        return (
            f"AttributeFilter({list(self.names)!r}, mode={self.mode.value!r}, "
            f"deep_search={self.deep_search!r})"
        )


class AttributePatternFilter(_AttributeSearch):
    """Wildcard patterns over attribute names, combined with ALL or ANY.

    Patterns match case-sensitively.
    """

    def __init__(
        self,
        patterns: Union[str, Iterable[str]],
        mode: MatchMode = MatchMode.ANY,
        deep_search: bool = False,
    ) -> None:
        super().__init__(mode, deep_search)
        self.patterns = _as_tuple(patterns, owner="patterns")
        self._matchers: Tuple[Matcher, ...] = tuple(compile_pattern(p) for p in self.patterns)

    def _size(self) -> int:
        return len(self._matchers)

    def _first_hit(self, tag: str) -> bool:
        for matcher in self._matchers:
            if matcher(tag):
                return True
        return False

    def _hits(self, tag: str) -> Iterable[int]:
        return [i for i, matcher in enumerate(self._matchers) if matcher(tag)]

    def __repr__(self) -> str:
        return (
            f"AttributePatternFilter({list(self.patterns)!r}, mode={self.mode.value!r}, "
            f"deep_search={self.deep_search!r})"
        )


class HasAttributesFilter(Filter):
    """Presence (or, with ``must_have=False``, absence) of any attribute."""

    def __init__(self, must_have: bool = True, deep_search: bool = False) -> None:
        self.must_have = must_have
        self.deep_search = deep_search

    def accept(self, record: DeclarationRecord, key: Key = None) -> bool:
        present = any(tags for _, tags in record.iter_attachment_points(self.deep_search))
        return present if self.must_have else not present


def has_attribute(name: str, deep_search: bool = False) -> AttributeFilter:
    return AttributeFilter(name, deep_search=deep_search)


def has_any_attribute(names: Iterable[str], deep_search: bool = False) -> AttributeFilter:
    return AttributeFilter(names, mode=MatchMode.ANY, deep_search=deep_search)


def has_all_attributes(names: Iterable[str], deep_search: bool = False) -> AttributeFilter:
    return AttributeFilter(names, mode=MatchMode.ALL, deep_search=deep_search)


def has_attributes(must_have: bool = True, deep_search: bool = False) -> HasAttributesFilter:
    return HasAttributesFilter(must_have=must_have, deep_search=deep_search)


def attribute_prefix(prefix: str, deep_search: bool = False) -> AttributePatternFilter:
    """Attributes whose qualified name starts with *prefix*, e.g. ``App\\Attribute\\``."""
    return AttributePatternFilter(f"{normalize_name(prefix)}*", deep_search=deep_search)


def any_attribute_pattern(patterns: Iterable[str], deep_search: bool = False) -> AttributePatternFilter:
    return AttributePatternFilter(patterns, mode=MatchMode.ANY, deep_search=deep_search)


def all_attribute_patterns(patterns: Iterable[str], deep_search: bool = False) -> AttributePatternFilter:
    return AttributePatternFilter(patterns, mode=MatchMode.ALL, deep_search=deep_search)
