"""Filter capability, boolean combinators and declaration-shape filters.

Every filter is a pure, total predicate over :class:`DeclarationRecord`:
``accept`` returns a bool for records of any kind and never raises. A record
of a kind the filter cannot judge is rejected.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, FrozenSet, Hashable, Iterable, Optional, Tuple, Union

from .errors import InvalidFilterError
from .models import NAMESPACE_SEPARATOR, DeclarationKind, DeclarationRecord

if TYPE_CHECKING:
    from .registry import TypeResolver

logger = logging.getLogger(__name__)

Key = Optional[Hashable]


class MatchMode(str, Enum):
    ALL = "all"
    ANY = "any"


class Filter(ABC):
    """A stateless boolean test over a declaration record.

    ``key`` is the per-item label the pipeline threads through (usually the
    source file path); most filters ignore it.
    """

    @abstractmethod
    def accept(self, record: DeclarationRecord, key: Key = None) -> bool:
        ...

    def __call__(self, record: DeclarationRecord, key: Key = None) -> bool:
        return self.accept(record, key)

    def __and__(self, other: "Filter") -> "AndFilter":
        return AndFilter([self, other])

    def __or__(self, other: "Filter") -> "OrFilter":
        return OrFilter([self, other])

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def ensure_filters(filters: Union[Filter, Iterable[Any]], owner: str = "filters") -> Tuple[Filter, ...]:
    """Validate a filter list up front so bad input fails before traversal."""
    if isinstance(filters, Filter):
        return (filters,)
    if isinstance(filters, (str, bytes)):
        raise InvalidFilterError(f"{owner} must be a Filter or an iterable of Filter, got a string")
    try:
        items = list(filters)
    except TypeError:
        raise InvalidFilterError(
            f"{owner} must be a Filter or an iterable of Filter, got {type(filters).__name__}"
        ) from None
    for index, item in enumerate(items):
        if not isinstance(item, Filter):
            raise InvalidFilterError(
                f"{owner}[{index}] must implement Filter, got {type(item).__name__}"
            )
    return tuple(items)


def normalize_name(name: str) -> str:
    """Strip the leading separator of a fully-qualified name."""
    return name.lstrip(NAMESPACE_SEPARATOR)


def _normalize_names(names: Union[str, Iterable[str]], owner: str) -> Tuple[str, ...]:
    if isinstance(names, str):
        names = (names,)
    result = []
    seen = set()
    for index, name in enumerate(names):
        if not isinstance(name, str):
            raise InvalidFilterError(f"{owner}[{index}] must be a string, got {type(name).__name__}")
        normalized = normalize_name(name)
        if normalized.lower() not in seen:
            seen.add(normalized.lower())
            result.append(normalized)
    return tuple(result)


# ---------------------------------------------------------------------------
# Combinators
# ---------------------------------------------------------------------------


class _Chain(Filter):
    def __init__(self, filters: Union[Filter, Iterable[Filter]] = ()) -> None:
        self._filters = ensure_filters(filters, owner=type(self).__name__)

    @property
    def filters(self) -> Tuple[Filter, ...]:
        return self._filters

    def with_filter(self, flt: Filter, prepend: bool = False):
        (flt,) = ensure_filters([flt], owner="filter")
        filters = (flt,) + self._filters if prepend else self._filters + (flt,)
        return type(self)(filters)

    def without_filter(self, flt: Filter):
        return type(self)(f for f in self._filters if f is not flt)

    def __len__(self) -> int:
        return len(self._filters)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self._filters)!r})"


class AndFilter(_Chain):
    """Accepts when every child accepts.

    An empty chain accepts everything (the neutral element of AND).
    Children run in construction order and evaluation stops at the first
    rejection.
    """

    def accept(self, record: DeclarationRecord, key: Key = None) -> bool:
        for flt in self._filters:
            if not flt.accept(record, key):
                return False
        return True

    def __and__(self, other: Filter) -> "AndFilter":
        return self.with_filter(other)


class OrFilter(_Chain):
    """Accepts when at least one child accepts.

    An empty chain rejects everything (the neutral element of OR).
    Children run in construction order and evaluation stops at the first
    acceptance.
    """

    def accept(self, record: DeclarationRecord, key: Key = None) -> bool:
        for flt in self._filters:
            if flt.accept(record, key):
                return True
        return False

    def __or__(self, other: Filter) -> "OrFilter":
        return self.with_filter(other)


# ---------------------------------------------------------------------------
# Kind and modifier filters
# ---------------------------------------------------------------------------


def parse_kinds(kinds: Union[DeclarationKind, str, Iterable[Union[DeclarationKind, str]]]) -> FrozenSet[DeclarationKind]:
    if isinstance(kinds, (DeclarationKind, str)):
        kinds = (kinds,)
    parsed = set()
    for kind in kinds:
        if isinstance(kind, DeclarationKind):
            parsed.add(kind)
        elif isinstance(kind, str):
            try:
                parsed.add(DeclarationKind.parse(kind))
            except ValueError as exc:
                raise InvalidFilterError(str(exc)) from None
        else:
            raise InvalidFilterError(f"Expected a DeclarationKind, got {type(kind).__name__}")
    return frozenset(parsed)


class KindFilter(Filter):
    """Accepts records whose kind is one of *kinds*."""

    def __init__(self, kinds: Union[DeclarationKind, str, Iterable[Union[DeclarationKind, str]]]) -> None:
        self.kinds = parse_kinds(kinds)

    def accept(self, record: DeclarationRecord, key: Key = None) -> bool:
        return record.kind in self.kinds

    def __repr__(self) -> str:
        names = sorted(k.value for k in self.kinds)
        return f"KindFilter({names!r})"


class IsAbstractFilter(Filter):
    def accept(self, record: DeclarationRecord, key: Key = None) -> bool:
        return record.kind is DeclarationKind.CLASS and record.is_abstract


class IsFinalFilter(Filter):
    def accept(self, record: DeclarationRecord, key: Key = None) -> bool:
        return record.kind is DeclarationKind.CLASS and record.is_final


class InstantiableFilter(Filter):
    """Concrete classes: not abstract, not an interface, trait, enum or function."""

    def accept(self, record: DeclarationRecord, key: Key = None) -> bool:
        return record.is_concrete


ConcreteClassFilter = InstantiableFilter


class CallableFilter(Filter):
    """Functions, and concrete classes with a public ``__invoke()``.

    ``__invoke`` must be callable without arguments: it may declare optional
    or variadic parameters but no required ones.
    """

    def accept(self, record: DeclarationRecord, key: Key = None) -> bool:
        if record.kind is DeclarationKind.FUNCTION:
            return True
        if not record.is_concrete:
            return False
        invoke = record.get_method("__invoke")
        if invoke is None:
            return False
        return invoke.public and not invoke.static and invoke.required_parameters == 0


# ---------------------------------------------------------------------------
# Type-hierarchy filters
# ---------------------------------------------------------------------------


class ImplementsFilter(Filter):
    """Accepts classes implementing the given interface(s).

    With ``MatchMode.ALL`` (the default) every named interface must be
    implemented; with ``MatchMode.ANY`` one is enough. A single name behaves
    the same under either mode, and an empty name list never matches.

    Without a *resolver* only the interfaces a class lists directly are
    considered. A :class:`~classfinder.registry.DeclarationRegistry` resolver
    adds inherited interfaces and parent interfaces; names it cannot resolve
    simply do not count. Interface names compare case-insensitively.
    """

    def __init__(
        self,
        interfaces: Union[str, Iterable[str]],
        mode: MatchMode = MatchMode.ALL,
        resolver: Optional["TypeResolver"] = None,
    ) -> None:
        self.interfaces = _normalize_names(interfaces, owner="interfaces")
        self.mode = MatchMode(mode)
        self.resolver = resolver
        self._required = frozenset(name.lower() for name in self.interfaces)

    def accept(self, record: DeclarationRecord, key: Key = None) -> bool:
        if record.kind is not DeclarationKind.CLASS or not self._required:
            return False

        implemented = self._implemented(record)

        if self.mode is MatchMode.ANY:
            for name in implemented:
                if name.lower() in self._required:
                    return True
            return False

        # More interfaces required than implemented can never match.
        if len(self._required) > len(implemented):
            return False
        found = set()
        for name in implemented:
            folded = name.lower()
            if folded in self._required:
                found.add(folded)
                if len(found) == len(self._required):
                    return True
        return False

    def _implemented(self, record: DeclarationRecord) -> Tuple[str, ...]:
        if self.resolver is None:
            return record.interfaces
        try:
            return tuple(self.resolver.interfaces(record))
        except LookupError as exc:
            logger.debug("Could not resolve interfaces of %s: %s", record.qualified_name, exc)
            return record.interfaces

    def __repr__(self) -> str:
        return f"ImplementsFilter({list(self.interfaces)!r}, mode={self.mode.value!r})"


def implements_any(interfaces: Iterable[str], resolver: Optional["TypeResolver"] = None) -> ImplementsFilter:
    return ImplementsFilter(interfaces, mode=MatchMode.ANY, resolver=resolver)


def implements_all(interfaces: Iterable[str], resolver: Optional["TypeResolver"] = None) -> ImplementsFilter:
    return ImplementsFilter(interfaces, mode=MatchMode.ALL, resolver=resolver)


class SubclassFilter(Filter):
    """Accepts classes having *ancestor* anywhere in their parent chain.

    The immediate parent comes from the record; further ancestors are looked
    up through *resolver*. An ancestor that cannot be resolved ends the walk,
    so an unknown chain reads as "not a subclass". Names compare
    case-insensitively.
    """

    def __init__(self, ancestor: str, resolver: Optional["TypeResolver"] = None) -> None:
        if not isinstance(ancestor, str):
            raise InvalidFilterError(f"ancestor must be a string, got {type(ancestor).__name__}")
        self.ancestor = normalize_name(ancestor)
        self.resolver = resolver
        self._folded = self.ancestor.lower()

    def accept(self, record: DeclarationRecord, key: Key = None) -> bool:
        if record.kind is not DeclarationKind.CLASS or record.parent is None:
            return False
        if record.parent.lower() == self._folded:
            return True
        if self.resolver is None:
            return False
        try:
            for name in self.resolver.ancestors(record.parent):
                if name.lower() == self._folded:
                    return True
        except LookupError as exc:
            logger.debug("Could not resolve ancestors of %s: %s", record.qualified_name, exc)
        return False

    def __repr__(self) -> str:
        return f"SubclassFilter({self.ancestor!r})"
