"""Lazy, filterable sequence of discovered declarations.

A :class:`DeclarationIterator` is bound to one upstream of ``(key, record)``
pairs and an ordered filter list. It is *lazy* until the upstream has been
read to the end and *materialized* afterwards, when it serves every later
traversal, ``to_list()`` and ``count()`` from its own cache. The upstream is
pulled at most once and every filter runs at most once per upstream item,
however the results are consumed.

Stopping a ``for`` loop early leaves the rest of the upstream unread; a later
traversal resumes where the previous one stopped.

Instances hold mutable cache state and are not safe to share between threads
without external locking.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Hashable, Iterable, Iterator, List, Optional, Tuple, Union

from .filters import AndFilter, Filter, ensure_filters
from .models import DeclarationRecord

logger = logging.getLogger(__name__)

Item = Tuple[Optional[Hashable], DeclarationRecord]


class PipelineState(str, Enum):
    LAZY = "lazy"
    MATERIALIZED = "materialized"


class _Upstream:
    """Single-pass source that remembers what it has produced.

    Derived pipelines share one instance, so the wrapped iterable is read
    exactly once no matter how many pipelines replay it.
    """

    # Consecutive raising pulls tolerated before the upstream is given up.
    max_failures = 3

    def __init__(self, iterable: Iterable[Item]) -> None:
        self._iterator: Optional[Iterator[Item]] = iter(iterable)
        self._items: List[Item] = []
        self._failures = 0

    @classmethod
    def complete(cls, items: Iterable[Item]) -> "_Upstream":
        upstream = cls(())
        upstream._items = list(items)
        upstream._iterator = None
        return upstream

    @property
    def exhausted(self) -> bool:
        return self._iterator is None

    def get(self, index: int) -> Optional[Item]:
        while index >= len(self._items):
            if self._iterator is None:
                return None
            self._pull()
        return self._items[index]

    def _pull(self) -> None:
        assert self._iterator is not None
        try:
            item = next(self._iterator)
        except StopIteration:
            self._iterator = None
            return
        except Exception as exc:
            # One unreadable item must not abort the scan, but a source that
            # fails on every pull would never end.
            self._failures += 1
            if self._failures >= self.max_failures:
                logger.error(
                    "Upstream failed %d times in a row, stopping: %s", self._failures, exc
                )
                self._iterator = None
                return
            logger.warning("Skipping unreadable upstream item: %s", exc)
            return
        self._failures = 0
        self._items.append(item)


class DeclarationIterator:
    """Filtered view over an upstream of ``(key, record)`` pairs.

    An item is yielded only when every filter accepts it; filters run in list
    order and evaluation stops at the first rejection.
    """

    def __init__(
        self,
        upstream: Union[Iterable[Item], _Upstream],
        filters: Union[Filter, Iterable[Filter]] = (),
    ) -> None:
        self._filters = ensure_filters(filters, owner="filters")
        self._chain = AndFilter(self._filters)
        self._upstream = upstream if isinstance(upstream, _Upstream) else _Upstream(upstream)
        self._accepted: List[Item] = []
        self._scanned = 0
        self._state = PipelineState.LAZY

    @classmethod
    def of(
        cls,
        records: Iterable[DeclarationRecord],
        filters: Union[Filter, Iterable[Filter]] = (),
    ) -> "DeclarationIterator":
        """Build a pipeline over bare records, keyed by their source file."""
        return cls(((record.file_path, record) for record in records), filters)

    # -- state ------------------------------------------------------------

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def materialized(self) -> bool:
        return self._state is PipelineState.MATERIALIZED

    @property
    def filters(self) -> Tuple[Filter, ...]:
        return self._filters

    def _advance(self) -> bool:
        """Evaluate the next upstream item; False once the upstream is done."""
        item = self._upstream.get(self._scanned)
        if item is None:
            self._state = PipelineState.MATERIALIZED
            return False
        self._scanned += 1
        key, record = item
        if self._chain.accept(record, key):
            self._accepted.append(item)
        return True

    def _materialize(self) -> None:
        while self._state is PipelineState.LAZY:
            self._advance()

    # -- traversal --------------------------------------------------------

    def items(self) -> Iterator[Item]:
        """Yield accepted ``(key, record)`` pairs in upstream order."""
        index = 0
        while True:
            if index < len(self._accepted):
                yield self._accepted[index]
                index += 1
            elif self._state is PipelineState.MATERIALIZED:
                return
            else:
                self._advance()

    def keys(self) -> Iterator[Optional[Hashable]]:
        for key, _ in self.items():
            yield key

    def __iter__(self) -> Iterator[DeclarationRecord]:
        for _, record in self.items():
            yield record

    def to_list(self) -> List[DeclarationRecord]:
        self._materialize()
        return [record for _, record in self._accepted]

    def count(self) -> int:
        """Number of accepted records (not the raw upstream length)."""
        self._materialize()
        return len(self._accepted)

    def first(self) -> Optional[DeclarationRecord]:
        for record in self:
            return record
        return None

    # -- structural changes -------------------------------------------------

    def with_filter(self, flt: Filter, prepend: bool = False) -> "DeclarationIterator":
        """Return a new pipeline with *flt* added.

        Once this pipeline is materialized the new one re-filters the cached
        results instead of the original upstream.
        """
        (flt,) = ensure_filters([flt], owner="filter")
        filters = (flt,) + self._filters if prepend else self._filters + (flt,)
        if self.materialized:
            return DeclarationIterator(_Upstream.complete(self._accepted), filters)
        return DeclarationIterator(self._upstream, filters)

    def without_filter(self, flt: Filter) -> "DeclarationIterator":
        """Return a new pipeline without *flt* (matched by identity).

        The new pipeline replays the shared upstream, so items rejected only
        by *flt* come back.
        """
        filters = tuple(f for f in self._filters if f is not flt)
        return DeclarationIterator(self._upstream, filters)

    def __repr__(self) -> str:
        return (
            f"DeclarationIterator(state={self._state.value!r}, "
            f"filters={len(self._filters)}, accepted={len(self._accepted)})"
        )
