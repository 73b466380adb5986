"""Qualified-name index over a finished discovery pass."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Protocol, Tuple

from .models import DeclarationKind, DeclarationRecord

logger = logging.getLogger(__name__)


class TypeResolver(Protocol):
    """What hierarchy-aware filters need to look past a single record."""

    def ancestors(self, name: str) -> Iterator[str]:
        ...

    def interfaces(self, record: DeclarationRecord) -> Tuple[str, ...]:
        ...


class DeclarationRegistry(Mapping[str, DeclarationRecord]):
    """Ordered mapping of qualified name to record.

    Lookups ignore case, as PHP does for class, interface and function names;
    iteration yields names as first declared. The first declaration of a name
    wins the mapping slot, but every record is kept in :meth:`declarations`,
    so conditional duplicates (``if (...) { class A {} } else { class A {} }``)
    are still listed. Unknown names resolve to nothing, so walks over the
    hierarchy stop at the edge of what was discovered instead of failing.
    """

    def __init__(self, records: Iterable[DeclarationRecord] = ()) -> None:
        self._records: Dict[str, DeclarationRecord] = {}
        self._folded: Dict[str, str] = {}
        self._declarations: List[DeclarationRecord] = []
        for record in records:
            self._declarations.append(record)
            name = record.qualified_name
            folded = name.lower()
            if folded in self._folded:
                logger.debug(
                    "Duplicate declaration %s in %s (first seen in %s)",
                    name, record.file_path, self._records[self._folded[folded]].file_path,
                )
                continue
            self._folded[folded] = name
            self._records[name] = record

    def __getitem__(self, name: str) -> DeclarationRecord:
        return self._records[self._folded[name.lstrip("\\").lower()]]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def records(self) -> List[DeclarationRecord]:
        """One record per qualified name, the first declared."""
        return list(self._records.values())

    def declarations(self) -> List[DeclarationRecord]:
        """Every record in discovery order, duplicates included."""
        return list(self._declarations)

    def ancestors(self, name: str) -> Iterator[str]:
        """Yield the parent chain of class *name*, nearest first.

        The walk stops at the first parent that was not discovered and never
        revisits a name, so cyclic input terminates.
        """
        seen = {name.lower()}
        current: Optional[DeclarationRecord] = self.get(name)
        while current is not None and current.parent is not None:
            parent = current.parent
            if parent.lower() in seen:
                logger.debug("Inheritance cycle through %s", parent)
                return
            seen.add(parent.lower())
            yield parent
            current = self.get(parent)

    def interfaces(self, record: DeclarationRecord) -> Tuple[str, ...]:
        """All interfaces *record* implements, inherited ones included.

        Order is first discovery: the record's own list, then the interfaces
        those extend, then whatever the ancestors contribute.
        """
        if record.kind is not DeclarationKind.CLASS:
            return ()
        collected: Dict[str, str] = {}
        chain = [record]
        if record.parent is not None:
            for name in [record.parent, *self.ancestors(record.parent)]:
                ancestor = self.get(name)
                if ancestor is None:
                    break
                chain.append(ancestor)
        for declaration in chain:
            for name in declaration.interfaces:
                self._collect_interface(name, collected)
        return tuple(collected.values())

    def _collect_interface(self, name: str, collected: Dict[str, str]) -> None:
        pending = [name]
        while pending:
            current = pending.pop(0)
            if current.lower() in collected:
                continue
            collected[current.lower()] = current
            declaration = self.get(current)
            if declaration is not None:
                pending.extend(declaration.extends)
