"""PHP declaration extraction built on Tree-sitter.

Tree-sitter produces a concrete syntax tree even for sources with syntax
errors, so a half-written file still yields the declarations that parsed.
Each class, interface, trait, enum and named function becomes one
:class:`~classfinder.models.DeclarationRecord` with every referenced type
name resolved against the file's ``namespace`` and ``use`` statements.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import tree_sitter_php
from tree_sitter import Language
from tree_sitter import Parser as TSParser

from .models import (
    NAMESPACE_SEPARATOR,
    SELF,
    AttachmentPoint,
    DeclarationKind,
    DeclarationRecord,
    MemberKind,
    Method,
    Modifier,
)

logger = logging.getLogger(__name__)

DECLARATION_NODES: Dict[str, DeclarationKind] = {
    "class_declaration": DeclarationKind.CLASS,
    "interface_declaration": DeclarationKind.INTERFACE,
    "trait_declaration": DeclarationKind.TRAIT,
    "enum_declaration": DeclarationKind.ENUM,
    "function_definition": DeclarationKind.FUNCTION,
}

NAME_NODES = ("name", "qualified_name", "relative_name")
MEMBER_LISTS = ("declaration_list", "enum_declaration_list")
MODIFIER_NODES: Dict[str, Modifier] = {
    "abstract_modifier": Modifier.ABSTRACT,
    "final_modifier": Modifier.FINAL,
}
RESERVED_NAMES = {"self", "static", "parent"}
# Statements whose blocks may hold conditional declarations.
BLOCK_NODES = {
    "compound_statement", "if_statement", "else_clause", "else_if_clause",
    "colon_block", "declare_statement", "try_statement", "catch_clause",
    "finally_clause",
}

_AS = re.compile(r"\s+as\s+", re.IGNORECASE)


# ===================================================================
# Abstract Parser Interface
# ===================================================================

class Parser(ABC):
    """Turns one source file into declaration records."""

    extensions: Tuple[str, ...] = ()

    @abstractmethod
    def parse_source(self, source: str, file_path: str = "") -> List[DeclarationRecord]:
        """Extract every declaration from *source*."""
        ...

    def parse_file(self, file_path: Path, source: Optional[str] = None) -> List[DeclarationRecord]:
        if source is None:
            source = Path(file_path).read_text(encoding="utf-8", errors="ignore")
        return self.parse_source(source, str(file_path))

    def supports(self, file_path: Path) -> bool:
        return Path(file_path).suffix.lower() in self.extensions


# ===================================================================
# Name resolution
# ===================================================================

@dataclass
class _Scope:
    """Namespace and class imports in effect at one point of a file."""

    namespace: str = ""
    imports: Dict[str, str] = field(default_factory=dict)

    def resolve(self, raw: str) -> str:
        raw = raw.strip()
        if raw.startswith(NAMESPACE_SEPARATOR):
            return raw.lstrip(NAMESPACE_SEPARATOR)
        if raw.lower() in RESERVED_NAMES:
            return raw
        head, sep, tail = raw.partition(NAMESPACE_SEPARATOR)
        if head.lower() == "namespace" and sep:
            return self._qualify(tail)
        target = self.imports.get(head.lower())
        if target is not None:
            return target + sep + tail
        return self._qualify(raw)

    def _qualify(self, name: str) -> str:
        if not self.namespace:
            return name
        return f"{self.namespace}{NAMESPACE_SEPARATOR}{name}"


def parse_use_statement(text: str) -> Dict[str, str]:
    """Map lower-cased alias to imported class for one ``use`` statement.

    ``use function`` and ``use const`` imports are ignored: they never name a
    class, interface or attribute.
    """
    body = text.strip().rstrip(";").strip()
    if body[:3].lower() == "use":
        body = body[3:].strip()
    if _is_non_class_import(body):
        return {}

    prefix = ""
    if "{" in body:
        prefix, _, body = body.partition("{")
        prefix = prefix.strip().strip(NAMESPACE_SEPARATOR)
        body = body.rstrip().rstrip("}")

    imports: Dict[str, str] = {}
    for clause in body.split(","):
        clause = clause.strip()
        if not clause or _is_non_class_import(clause):
            continue
        parts = _AS.split(clause, maxsplit=1)
        target = parts[0].strip().strip(NAMESPACE_SEPARATOR)
        if prefix:
            target = f"{prefix}{NAMESPACE_SEPARATOR}{target}"
        alias = parts[1].strip() if len(parts) > 1 else target.rsplit(NAMESPACE_SEPARATOR, 1)[-1]
        imports[alias.lower()] = target
    return imports


def _is_non_class_import(clause: str) -> bool:
    lowered = clause.lower()
    return lowered.startswith("function ") or lowered.startswith("const ")


# ===================================================================
# Tree helpers
# ===================================================================

def _text(node: Any) -> str:
    return node.text.decode("utf-8", errors="replace")


def _first_child(node: Any, *types: str) -> Optional[Any]:
    for child in node.children:
        if child.type in types:
            return child
    return None


def _field_or_child(node: Any, field_name: str, *types: str) -> Optional[Any]:
    found = node.child_by_field_name(field_name)
    if found is not None:
        return found
    return _first_child(node, *types)


def _descendants(node: Any, node_type: str, stop: Tuple[str, ...] = ()) -> Iterator[Any]:
    stack = list(reversed(node.children))
    while stack:
        current = stack.pop()
        if current.type == node_type:
            yield current
            continue
        if current.type in stop:
            continue
        stack.extend(reversed(current.children))


def _clause_names(clause: Any) -> List[str]:
    return [_text(child) for child in clause.children if child.type in NAME_NODES]


# ===================================================================
# Tree-sitter Parser
# ===================================================================

class PHPParser(Parser):
    """Error-tolerant PHP parser using the ``tree-sitter-php`` grammar."""

    extensions = (".php",)

    def __init__(self) -> None:
        self._parser = TSParser(Language(tree_sitter_php.language_php()))
        logger.debug("Loaded tree-sitter parser for php")

    def parse_source(self, source: str, file_path: str = "") -> List[DeclarationRecord]:
        tree = self._parser.parse(source.encode("utf-8"))
        if tree.root_node.has_error:
            logger.debug("Syntax errors in %s; extracting what parsed", file_path or "<source>")
        records: List[DeclarationRecord] = []
        self._walk(tree.root_node, _Scope(), file_path, records)
        return records

    # ------------------------------------------------------------------
    # Statement walker
    # ------------------------------------------------------------------

    def _walk(self, ts_node: Any, scope: _Scope, file_path: str, records: List[DeclarationRecord]) -> None:
        for child in ts_node.children:
            kind = DECLARATION_NODES.get(child.type)
            if kind is not None:
                record = self._declaration(child, kind, scope, file_path)
                if record is not None:
                    records.append(record)
            elif child.type == "namespace_definition":
                name_node = _field_or_child(child, "name", "namespace_name")
                namespace = _text(name_node).strip(NAMESPACE_SEPARATOR) if name_node is not None else ""
                body = _field_or_child(child, "body", "compound_statement")
                if body is not None:
                    self._walk(body, _Scope(namespace), file_path, records)
                else:
                    # "namespace Foo;" applies to the rest of the file.
                    scope.namespace = namespace
                    scope.imports = {}
            elif child.type == "namespace_use_declaration":
                scope.imports.update(parse_use_statement(_text(child)))
            elif child.type in BLOCK_NODES:
                # Conditional declarations: if (...) { class Foo {} }
                self._walk(child, scope, file_path, records)

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def _declaration(
        self,
        node: Any,
        kind: DeclarationKind,
        scope: _Scope,
        file_path: str,
    ) -> Optional[DeclarationRecord]:
        name_node = _field_or_child(node, "name", "name")
        if name_node is None:
            return None

        modifiers = {
            MODIFIER_NODES[child.type] for child in node.children if child.type in MODIFIER_NODES
        }

        parent: Optional[str] = None
        extends: Tuple[str, ...] = ()
        base = _first_child(node, "base_clause")
        if base is not None:
            names = [scope.resolve(n) for n in _clause_names(base)]
            if kind is DeclarationKind.CLASS and names:
                parent = names[0]
            elif kind is DeclarationKind.INTERFACE:
                extends = tuple(names)

        interfaces: Tuple[str, ...] = ()
        implements = _first_child(node, "class_interface_clause")
        if implements is not None:
            interfaces = tuple(scope.resolve(n) for n in _clause_names(implements))

        attributes: Dict[AttachmentPoint, Tuple[str, ...]] = {}
        own = self._attributes(node, scope)
        if own:
            attributes[SELF] = own

        methods: List[Method] = []
        if kind is not DeclarationKind.FUNCTION:
            body = _field_or_child(node, "body", *MEMBER_LISTS)
            if body is not None:
                self._members(body, scope, attributes, methods)

        return DeclarationRecord(
            name=_text(name_node),
            kind=kind,
            namespace=scope.namespace,
            modifiers=frozenset(modifiers),
            interfaces=interfaces,
            parent=parent,
            extends=extends,
            attributes=attributes,
            methods=tuple(methods),
            file_path=file_path,
            start_line=node.start_point[0] + 1,
        )

    def _members(
        self,
        body: Any,
        scope: _Scope,
        attributes: Dict[AttachmentPoint, Tuple[str, ...]],
        methods: List[Method],
    ) -> None:
        for member in body.named_children:
            if member.type == "method_declaration":
                method = self._method(member)
                if method is None:
                    continue
                methods.append(method)
                self._attach(attributes, MemberKind.METHOD, [method.name], self._attributes(member, scope))
            elif member.type == "property_declaration":
                names = self._property_names(member)
                self._attach(attributes, MemberKind.PROPERTY, names, self._attributes(member, scope))
            elif member.type == "const_declaration":
                names = [
                    _text(name)
                    for element in _descendants(member, "const_element")
                    for name in [_first_child(element, "name")]
                    if name is not None
                ]
                self._attach(attributes, MemberKind.CONSTANT, names, self._attributes(member, scope))
            elif member.type == "enum_case":
                name = _field_or_child(member, "name", "name")
                if name is not None:
                    self._attach(attributes, MemberKind.CONSTANT, [_text(name)], self._attributes(member, scope))

    @staticmethod
    def _attach(
        attributes: Dict[AttachmentPoint, Tuple[str, ...]],
        member_kind: MemberKind,
        names: List[str],
        tags: Tuple[str, ...],
    ) -> None:
        if not tags:
            return
        for name in names:
            attributes[AttachmentPoint(member_kind, name)] = tags

    @staticmethod
    def _method(node: Any) -> Optional[Method]:
        name_node = _field_or_child(node, "name", "name")
        if name_node is None:
            return None

        public = True
        static = False
        for child in node.children:
            if child.type == "visibility_modifier":
                public = _text(child).lower() == "public"
            elif child.type == "static_modifier":
                static = True

        required = 0
        variadic = False
        params = _field_or_child(node, "parameters", "formal_parameters")
        if params is not None:
            for param in params.named_children:
                if param.type == "variadic_parameter":
                    variadic = True
                elif param.type in ("simple_parameter", "property_promotion_parameter"):
                    has_default = param.child_by_field_name("default_value") is not None or any(
                        child.type == "=" for child in param.children
                    )
                    if not has_default:
                        required += 1

        return Method(
            name=_text(name_node),
            required_parameters=required,
            variadic=variadic,
            public=public,
            static=static,
        )

    @staticmethod
    def _property_names(node: Any) -> List[str]:
        elements = list(_descendants(node, "property_element"))
        holders = elements or [node]
        names = []
        for holder in holders:
            for variable in _descendants(holder, "variable_name"):
                names.append(_text(variable).lstrip("$"))
                break
        return names

    @staticmethod
    def _attributes(node: Any, scope: _Scope) -> Tuple[str, ...]:
        attribute_list = _field_or_child(node, "attributes", "attribute_list")
        if attribute_list is None:
            return ()
        tags: List[str] = []
        for attribute in _descendants(attribute_list, "attribute", stop=("arguments",)):
            name_node = _first_child(attribute, *NAME_NODES)
            if name_node is None:
                continue
            name = scope.resolve(_text(name_node))
            if name not in tags:
                tags.append(name)
        return tuple(tags)
