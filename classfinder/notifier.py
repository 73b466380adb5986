"""Broadcast of discovered declarations to registered listeners.

Notification runs in two phases. Every accepted record is first handed to
every listener's ``handle`` in discovery order; once the records are
exhausted, ``finalize`` is called exactly once on each listener that supports
it, even if no record was accepted.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Union

from .filters import Filter
from .iterator import DeclarationIterator
from .models import DeclarationRecord

if TYPE_CHECKING:
    from .config import FinderConfig
    from .finder import ClassFinder, Excludes, Roots

logger = logging.getLogger(__name__)


class ClassFoundListener(ABC):
    """Receives each accepted declaration."""

    @abstractmethod
    def handle(self, record: DeclarationRecord) -> None:
        ...


class FinalizedListener(ClassFoundListener):
    """A listener that also wants to know when discovery has finished."""

    @abstractmethod
    def finalize(self) -> None:
        ...


class ListenerProvider(FinalizedListener):
    """Ordered collection of listeners, itself usable as one listener."""

    def __init__(self, listeners: Iterable[ClassFoundListener] = ()) -> None:
        self._listeners: List[ClassFoundListener] = []
        for listener in listeners:
            self.add_listener(listener)

    def add_listener(self, listener: ClassFoundListener) -> None:
        if not isinstance(listener, ClassFoundListener):
            raise TypeError(f"Listener must implement ClassFoundListener, got {type(listener).__name__}")
        self._listeners.append(listener)

    @property
    def listeners(self) -> List[ClassFoundListener]:
        return list(self._listeners)

    def handle(self, record: DeclarationRecord) -> None:
        for listener in self._listeners:
            listener.handle(record)

    def finalize(self) -> None:
        for listener in self._listeners:
            if isinstance(listener, FinalizedListener):
                listener.finalize()

    def __len__(self) -> int:
        return len(self._listeners)


class ClassNotifier:
    """Delivers discovered declarations to a :class:`ListenerProvider`."""

    def __init__(
        self,
        listeners: Union[ListenerProvider, ClassFoundListener, Iterable[ClassFoundListener]] = (),
    ) -> None:
        if isinstance(listeners, ListenerProvider):
            self.provider = listeners
        elif isinstance(listeners, ClassFoundListener):
            self.provider = ListenerProvider([listeners])
        else:
            self.provider = ListenerProvider(listeners)

    @classmethod
    def from_config(cls, config: "FinderConfig") -> "ClassNotifier":
        from .config import load_listeners

        return cls(load_listeners(config.listeners))

    def add_listener(self, listener: ClassFoundListener) -> None:
        self.provider.add_listener(listener)

    def notify(self, records: Iterable[DeclarationRecord]) -> int:
        """Run both phases over *records*; return how many were delivered."""
        listeners = self.provider.listeners
        delivered = 0
        for record in records:
            delivered += 1
            for listener in listeners:
                listener.handle(record)

        for listener in listeners:
            if isinstance(listener, FinalizedListener):
                listener.finalize()

        logger.debug("Notified %d listener(s) about %d declaration(s)", len(listeners), delivered)
        return delivered


class Scanner:
    """Finds declarations and notifies listeners in one call."""

    def __init__(self, finder: "ClassFinder", notifier: Optional[ClassNotifier] = None) -> None:
        self.finder = finder
        self.notifier = notifier or ClassNotifier()

    @classmethod
    def from_config(cls, config: "FinderConfig", filters: Iterable[Filter] = ()) -> "Scanner":
        from .finder import ClassFinder

        return cls(ClassFinder.from_config(config, filters), ClassNotifier.from_config(config))

    def listen(self, listener: ClassFoundListener) -> None:
        self.notifier.add_listener(listener)

    def scan(self, roots: "Roots", exclude: "Excludes" = ()) -> DeclarationIterator:
        """Notify listeners about everything found; return the materialized pipeline."""
        found = self.finder.find(roots, exclude)
        self.notifier.notify(found)
        return found


class AttributeListener(FinalizedListener):
    """Collects declarations carrying one attribute.

    On ``finalize`` the collected records go to *finalizer*, e.g. to build a
    route table from every ``#[Route]`` controller.
    """

    def __init__(self, attribute: str, finalizer: Callable[[List[DeclarationRecord]], None]) -> None:
        self.attribute = attribute.lstrip("\\")
        self._folded = self.attribute.lower()
        self._finalizer = finalizer
        self.records: List[DeclarationRecord] = []

    def handle(self, record: DeclarationRecord) -> None:
        if any(tag.lower() == self._folded for tag in record.own_attributes()):
            self.records.append(record)

    def finalize(self) -> None:
        self._finalizer(list(self.records))
