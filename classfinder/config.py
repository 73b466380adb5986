"""Configuration for discovery and notification, read from TOML.

The file defaults to ``classfinder.toml`` in the working directory; set
``CLASSFINDER_CONFIG`` to point elsewhere. Everything lives in one
``[classfinder]`` table::

    [classfinder]
    kinds = ["class", "interface"]
    exclude = ["tests", "*Test.php"]
    extensions = [".php"]
    listeners = ["my_app.routing:RouteCollector"]
    log_level = "INFO"
"""

from __future__ import annotations

import importlib
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

import toml

from .errors import ConfigError, InvalidFilterError
from .files import DEFAULT_EXTENSIONS
from .filters import parse_kinds
from .models import ALL_KINDS, DeclarationKind

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CLASSFINDER_CONFIG"
CONFIG_FILE_NAME = "classfinder.toml"
SECTION = "classfinder"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class FinderConfig:
    kinds: FrozenSet[DeclarationKind] = ALL_KINDS
    exclude: Tuple[str, ...] = ()
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    listeners: Tuple[str, ...] = ()
    log_level: str = "WARNING"


def config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.cwd() / CONFIG_FILE_NAME


def load_config(path: Optional[Path] = None) -> FinderConfig:
    """Load configuration, falling back to defaults when no file exists.

    Raises:
        ConfigError: the file exists but is not valid TOML or holds a value
            of the wrong shape.
    """
    path = Path(path) if path is not None else config_path()
    if not path.exists():
        logger.debug("No config file at %s; using defaults", path)
        return FinderConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        raise ConfigError(f"Could not read {path}: {exc}") from exc

    return config_from_dict(data.get(SECTION, {}), source=str(path))


def config_from_dict(section: Dict[str, Any], source: str = "<dict>") -> FinderConfig:
    if not isinstance(section, dict):
        raise ConfigError(f"[{SECTION}] in {source} must be a table")

    unknown = set(section) - {"kinds", "exclude", "extensions", "listeners", "log_level"}
    if unknown:
        logger.warning("Ignoring unknown keys in [%s] of %s: %s", SECTION, source, ", ".join(sorted(unknown)))

    defaults = FinderConfig()
    try:
        kinds = parse_kinds(_string_list(section, "kinds")) if "kinds" in section else defaults.kinds
    except InvalidFilterError as exc:
        raise ConfigError(f"{source}: {exc}") from exc

    extensions = tuple(
        ext if ext.startswith(".") else f".{ext}" for ext in _string_list(section, "extensions")
    ) or defaults.extensions

    log_level = str(section.get("log_level", defaults.log_level)).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"{source}: log_level must be one of {', '.join(LOG_LEVELS)}")

    return FinderConfig(
        kinds=kinds,
        exclude=tuple(_string_list(section, "exclude")),
        extensions=extensions,
        listeners=tuple(_string_list(section, "listeners")),
        log_level=log_level,
    )


def _string_list(section: Dict[str, Any], key: str) -> List[str]:
    value = section.get(key, [])
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"'{key}' must be a string or a list of strings")
    return value


def load_listener(ref: str) -> Any:
    """Import ``package.module:Name`` and instantiate it if it is a class."""
    module_name, sep, attr = ref.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"Listener '{ref}' must look like 'package.module:Name'")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Cannot import listener module '{module_name}': {exc}") from exc
    try:
        target = getattr(module, attr)
    except AttributeError:
        raise ConfigError(f"Module '{module_name}' has no attribute '{attr}'") from None
    return target() if isinstance(target, type) else target


def load_listeners(refs: Iterable[str]) -> List[Any]:
    from .notifier import ClassFoundListener

    listeners = []
    for ref in refs:
        listener = load_listener(ref)
        if not isinstance(listener, ClassFoundListener):
            raise ConfigError(f"Listener '{ref}' does not implement ClassFoundListener")
        listeners.append(listener)
    return listeners
