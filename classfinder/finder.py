"""Discovery of declarations under one or more directory roots."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, FrozenSet, Iterable, Iterator, Optional, Sequence, Tuple, Union

from .files import DEFAULT_EXTENSIONS, PathLike, iter_source_files
from .filters import Filter, ensure_filters, parse_kinds
from .iterator import DeclarationIterator, Item
from .models import ALL_KINDS, DeclarationKind
from .parser import Parser, PHPParser
from .registry import DeclarationRegistry

if TYPE_CHECKING:
    from .config import FinderConfig

logger = logging.getLogger(__name__)

Roots = Union[PathLike, Iterable[PathLike]]
Excludes = Union[str, Iterable[str], None]
Kinds = Union[DeclarationKind, str, Iterable[Union[DeclarationKind, str]]]


class ClassFinder:
    """Finds declarations of the selected kinds and filters them.

    ``find`` is lazy: files are parsed only as the returned
    :class:`DeclarationIterator` is consumed. A file that cannot be read or
    parsed is logged and skipped.
    """

    def __init__(
        self,
        kinds: Kinds = ALL_KINDS,
        filters: Union[Filter, Iterable[Filter]] = (),
        parser: Optional[Parser] = None,
        extensions: Optional[Sequence[str]] = None,
    ) -> None:
        self.kinds: FrozenSet[DeclarationKind] = parse_kinds(kinds)
        self.filters: Tuple[Filter, ...] = ensure_filters(filters, owner="filters")
        self.parser = parser or PHPParser()
        self.extensions = tuple(extensions or self.parser.extensions or DEFAULT_EXTENSIONS)

    @classmethod
    def from_config(
        cls,
        config: "FinderConfig",
        filters: Union[Filter, Iterable[Filter]] = (),
        parser: Optional[Parser] = None,
    ) -> "ClassFinder":
        return cls(kinds=config.kinds, filters=filters, parser=parser, extensions=config.extensions)

    def with_filter(self, flt: Filter) -> "ClassFinder":
        return self.with_filters([flt])

    def with_filters(self, filters: Iterable[Filter]) -> "ClassFinder":
        added = ensure_filters(filters, owner="filters")
        return ClassFinder(self.kinds, self.filters + added, self.parser, self.extensions)

    def with_kinds(self, kinds: Kinds) -> "ClassFinder":
        return ClassFinder(kinds, self.filters, self.parser, self.extensions)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def find(self, roots: Roots, exclude: Excludes = ()) -> DeclarationIterator:
        """Return a lazy pipeline over every matching declaration under *roots*.

        Missing roots raise :class:`~classfinder.errors.DiscoveryError` here,
        before anything is parsed.
        """
        files = iter_source_files(roots, exclude, self.extensions)
        return DeclarationIterator(self._discover(files, self.kinds), self.filters)

    def find_in(self, registry: DeclarationRegistry) -> DeclarationIterator:
        """Filter an already discovered registry without parsing again.

        Every declaration is considered, including later duplicates of a
        qualified name that the registry mapping itself does not hold.
        """
        upstream = (
            (record.file_path, record) for record in registry.declarations() if record.kind in self.kinds
        )
        return DeclarationIterator(upstream, self.filters)

    def registry(self, roots: Roots, exclude: Excludes = ()) -> DeclarationRegistry:
        """Parse every file under *roots* and index all declarations.

        All kinds are indexed regardless of this finder's selection, so
        interfaces and parent classes are available for resolution.
        """
        files = iter_source_files(roots, exclude, self.extensions)
        registry = DeclarationRegistry(record for _, record in self._discover(files, ALL_KINDS))
        logger.info("Indexed %d declarations (%d unique names)", len(registry.declarations()), len(registry))
        return registry

    def _discover(self, files: Iterable[Path], kinds: FrozenSet[DeclarationKind]) -> Iterator[Item]:
        parsed = 0
        for file_path in files:
            try:
                records = self.parser.parse_file(file_path)
            except Exception as exc:
                logger.warning("Failed to parse %s: %s", file_path, exc)
                continue
            parsed += 1
            for record in records:
                if record.kind in kinds:
                    yield str(file_path), record
        logger.debug("Parsed %d files", parsed)

    def __repr__(self) -> str:
        kinds = sorted(k.value for k in self.kinds)
        return f"ClassFinder(kinds={kinds!r}, filters={list(self.filters)!r})"


def find(
    roots: Roots,
    filters: Union[Filter, Iterable[Filter]] = (),
    exclude: Excludes = (),
    kinds: Kinds = ALL_KINDS,
) -> DeclarationIterator:
    """Shorthand for ``ClassFinder(kinds, filters).find(roots, exclude)``."""
    return ClassFinder(kinds=kinds, filters=filters).find(roots, exclude)

