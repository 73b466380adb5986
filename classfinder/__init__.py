"""classfinder: discover PHP declarations and select them with composable filters."""

from .attributes import (
    AttributeFilter,
    AttributePatternFilter,
    HasAttributesFilter,
    all_attribute_patterns,
    any_attribute_pattern,
    attribute_prefix,
    has_all_attributes,
    has_any_attribute,
    has_attribute,
    has_attributes,
)
from .errors import ClassFinderError, ConfigError, DiscoveryError, InvalidFilterError
from .filters import (
    AndFilter,
    CallableFilter,
    ConcreteClassFilter,
    Filter,
    ImplementsFilter,
    InstantiableFilter,
    IsAbstractFilter,
    IsFinalFilter,
    KindFilter,
    MatchMode,
    OrFilter,
    SubclassFilter,
    implements_all,
    implements_any,
)
from .finder import ClassFinder, find
from .iterator import DeclarationIterator, PipelineState
from .models import (
    AttachmentPoint,
    DeclarationKind,
    DeclarationRecord,
    MemberKind,
    Method,
    Modifier,
)
from .notifier import (
    AttributeListener,
    ClassFoundListener,
    ClassNotifier,
    FinalizedListener,
    ListenerProvider,
    Scanner,
)
from .pattern import PatternFilter, PatternTarget
from .registry import DeclarationRegistry

__version__ = "0.1.0"

__all__ = [
    "AndFilter",
    "AttachmentPoint",
    "AttributeFilter",
    "AttributeListener",
    "AttributePatternFilter",
    "CallableFilter",
    "ClassFinder",
    "ClassFinderError",
    "ClassFoundListener",
    "ClassNotifier",
    "ConcreteClassFilter",
    "ConfigError",
    "DeclarationIterator",
    "DeclarationKind",
    "DeclarationRecord",
    "DeclarationRegistry",
    "DiscoveryError",
    "Filter",
    "FinalizedListener",
    "HasAttributesFilter",
    "ImplementsFilter",
    "InstantiableFilter",
    "InvalidFilterError",
    "IsAbstractFilter",
    "IsFinalFilter",
    "KindFilter",
    "ListenerProvider",
    "MatchMode",
    "MemberKind",
    "Method",
    "Modifier",
    "OrFilter",
    "PatternFilter",
    "PatternTarget",
    "PipelineState",
    "Scanner",
    "SubclassFilter",
    "all_attribute_patterns",
    "any_attribute_pattern",
    "attribute_prefix",
    "find",
    "has_all_attributes",
    "has_any_attribute",
    "has_attribute",
    "has_attributes",
    "implements_all",
    "implements_any",
]
