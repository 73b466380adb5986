"""Exception types raised by classfinder."""

from __future__ import annotations


class ClassFinderError(Exception):
    """Base class for every error raised by this package."""


class InvalidFilterError(ClassFinderError, TypeError):
    """A filter list element or filter argument is unusable.

    Raised at construction time, before any traversal begins.
    """


class DiscoveryError(ClassFinderError):
    """A discovery root does not exist or cannot be listed."""


class ConfigError(ClassFinderError):
    """The configuration file or one of its values is invalid."""
