"""Source file enumeration for discovery roots."""

from __future__ import annotations

import fnmatch
import logging
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator, Sequence, Set, Union

from .errors import DiscoveryError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

DEFAULT_EXTENSIONS = (".php",)

SKIP_DIRS: Set[str] = {
    ".git", ".svn", ".hg", ".idea", ".vscode",
    "vendor", "node_modules", ".phpunit.cache",
    "__pycache__", ".pytest_cache", ".mypy_cache",
}


def as_paths(paths: Union[PathLike, Iterable[PathLike]]) -> list:
    if isinstance(paths, (str, Path)):
        return [Path(paths)]
    return [Path(p) for p in paths]


def as_patterns(patterns: Union[str, Iterable[str], None]) -> tuple:
    if not patterns:
        return ()
    if isinstance(patterns, str):
        return (patterns,)
    return tuple(patterns)


def check_roots(roots: Sequence[Path]) -> None:
    for root in roots:
        if not root.exists():
            raise DiscoveryError(f"Discovery root does not exist: {root}")


def is_excluded(relative: PurePosixPath, patterns: Sequence[str]) -> bool:
    """True if *relative* or one of its directories matches a pattern.

    A pattern may name a directory (``tests``), a nested directory
    (``src/Legacy``) or a glob over the relative path (``*Test.php``).
    """
    if not patterns:
        return False
    text = relative.as_posix()
    parents = [p.as_posix() for p in relative.parents if p.as_posix() != "."]
    for pattern in patterns:
        pattern = pattern.strip("/")
        if fnmatch.fnmatchcase(text, pattern) or fnmatch.fnmatchcase(relative.name, pattern):
            return True
        for parent in parents:
            if fnmatch.fnmatchcase(parent, pattern) or fnmatch.fnmatchcase(PurePosixPath(parent).name, pattern):
                return True
    return False


def iter_source_files(
    roots: Union[PathLike, Iterable[PathLike]],
    exclude: Union[str, Iterable[str], None] = (),
    extensions: Sequence[str] = DEFAULT_EXTENSIONS,
) -> Iterator[Path]:
    """Yield source files under *roots* in sorted order.

    Roots are checked before anything is yielded; a missing root raises
    :class:`DiscoveryError`. A root that is a file is yielded as is.
    """
    root_paths = as_paths(roots)
    patterns = as_patterns(exclude)
    check_roots(root_paths)
    suffixes = {ext.lower() for ext in extensions}
    return _walk(root_paths, patterns, suffixes)


def _walk(roots: Sequence[Path], patterns: Sequence[str], suffixes: Set[str]) -> Iterator[Path]:
    for root in roots:
        if root.is_file():
            yield root
            continue
        for file_path in sorted(root.rglob("*")):
            if file_path.suffix.lower() not in suffixes or not file_path.is_file():
                continue
            relative = PurePosixPath(file_path.relative_to(root).as_posix())
            if any(part in SKIP_DIRS for part in relative.parts[:-1]):
                continue
            if is_excluded(relative, patterns):
                logger.debug("Excluded %s", file_path)
                continue
            yield file_path
