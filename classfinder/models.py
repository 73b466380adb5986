"""Core data models shared by discovery, filtering and notification."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Iterator, Mapping, Optional, Tuple

NAMESPACE_SEPARATOR = "\\"


class DeclarationKind(str, Enum):
    CLASS = "class"
    INTERFACE = "interface"
    TRAIT = "trait"
    ENUM = "enum"
    FUNCTION = "function"

    @classmethod
    def parse(cls, value: str) -> "DeclarationKind":
        """Look up a kind by its (case-insensitive) name."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown declaration kind {value!r}; "
                f"expected one of {', '.join(k.value for k in cls)}"
            ) from None


ALL_KINDS: FrozenSet[DeclarationKind] = frozenset(DeclarationKind)


class Modifier(str, Enum):
    ABSTRACT = "abstract"
    FINAL = "final"


class MemberKind(str, Enum):
    """Where an attribute is attached."""

    SELF = "self"
    METHOD = "method"
    PROPERTY = "property"
    CONSTANT = "constant"


@dataclass(frozen=True)
class AttachmentPoint:
    kind: MemberKind
    name: str = ""

    def __str__(self) -> str:
        if self.kind is MemberKind.SELF:
            return "<self>"
        return f"{self.kind.value}:{self.name}"


SELF = AttachmentPoint(MemberKind.SELF)


@dataclass(frozen=True)
class Method:
    name: str
    required_parameters: int = 0
    variadic: bool = False
    public: bool = True
    static: bool = False


@dataclass(frozen=True)
class DeclarationRecord:
    """One discovered class, interface, trait, enum or function.

    Records are never mutated once created; every filter and listener sees the
    same instance. ``is_concrete`` is derived on access rather than stored so
    it can never disagree with ``kind`` and ``modifiers``.
    """

    name: str
    kind: DeclarationKind
    namespace: str = ""
    modifiers: FrozenSet[Modifier] = frozenset()
    interfaces: Tuple[str, ...] = ()
    parent: Optional[str] = None
    extends: Tuple[str, ...] = ()
    attributes: Mapping[AttachmentPoint, Tuple[str, ...]] = field(default_factory=dict)
    methods: Tuple[Method, ...] = ()
    file_path: str = ""
    start_line: int = 0

    def __post_init__(self) -> None:
        # Only classes carry modifiers, implemented interfaces and a parent;
        # only interfaces extend other interfaces.
        if self.kind is DeclarationKind.CLASS:
            object.__setattr__(self, "modifiers", frozenset(self.modifiers))
            object.__setattr__(self, "interfaces", tuple(self.interfaces))
        else:
            object.__setattr__(self, "modifiers", frozenset())
            object.__setattr__(self, "interfaces", ())
            object.__setattr__(self, "parent", None)
        if self.kind is DeclarationKind.INTERFACE:
            object.__setattr__(self, "extends", tuple(self.extends))
        else:
            object.__setattr__(self, "extends", ())
        object.__setattr__(self, "methods", tuple(self.methods))
        frozen_attrs = {point: tuple(tags) for point, tags in self.attributes.items()}
        object.__setattr__(self, "attributes", MappingProxyType(frozen_attrs))

    def __hash__(self) -> int:
        return hash((self.kind, self.qualified_name, self.file_path, self.start_line))

    @property
    def qualified_name(self) -> str:
        if not self.namespace:
            return self.name
        return f"{self.namespace}{NAMESPACE_SEPARATOR}{self.name}"

    @property
    def is_abstract(self) -> bool:
        return Modifier.ABSTRACT in self.modifiers

    @property
    def is_final(self) -> bool:
        return Modifier.FINAL in self.modifiers

    @property
    def is_concrete(self) -> bool:
        return self.kind is DeclarationKind.CLASS and not self.is_abstract

    def get_method(self, name: str) -> Optional[Method]:
        # PHP method names are case-insensitive.
        lowered = name.lower()
        for method in self.methods:
            if method.name.lower() == lowered:
                return method
        return None

    def own_attributes(self) -> Tuple[str, ...]:
        return self.attributes.get(SELF, ())

    def iter_attachment_points(
        self, deep: bool = False
    ) -> Iterator[Tuple[AttachmentPoint, Tuple[str, ...]]]:
        """Yield ``(point, tags)`` starting with the declaration itself.

        With ``deep`` the member attachment points follow in declaration order.
        """
        yield SELF, self.own_attributes()
        if not deep:
            return
        for point, tags in self.attributes.items():
            if point.kind is not MemberKind.SELF:
                yield point, tags
