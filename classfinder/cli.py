"""Typer-based CLI for finding and filtering PHP declarations."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .attributes import AttributeFilter, AttributePatternFilter
from .config import FinderConfig, load_config
from .errors import ClassFinderError
from .filters import (
    CallableFilter,
    Filter,
    ImplementsFilter,
    InstantiableFilter,
    IsAbstractFilter,
    IsFinalFilter,
    MatchMode,
    OrFilter,
    SubclassFilter,
)
from .finder import ClassFinder
from .models import DeclarationRecord
from .pattern import PatternFilter
from .registry import DeclarationRegistry

console = Console()

app = typer.Typer(
    help="Find classes, interfaces, traits, enums and functions in PHP sources.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"classfinder v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    )
):
    """classfinder: discover PHP declarations and filter them."""
    pass


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def build_filters(
    registry: DeclarationRegistry,
    implements: List[str],
    any_interface: bool,
    extends: Optional[str],
    patterns: List[str],
    attributes: List[str],
    attribute_patterns: List[str],
    all_attributes: bool,
    deep: bool,
    abstract: bool,
    final: bool,
    instantiable: bool,
    callable_only: bool,
) -> List[Filter]:
    """Translate command-line options into an AND-ed filter list."""
    filters: List[Filter] = []
    attribute_mode = MatchMode.ALL if all_attributes else MatchMode.ANY

    # Cheap structural checks first: they reject most records early.
    if abstract:
        filters.append(IsAbstractFilter())
    if final:
        filters.append(IsFinalFilter())
    if instantiable:
        filters.append(InstantiableFilter())
    if callable_only:
        filters.append(CallableFilter())
    if patterns:
        filters.append(OrFilter(PatternFilter(p) for p in patterns))
    if implements:
        mode = MatchMode.ANY if any_interface else MatchMode.ALL
        filters.append(ImplementsFilter(implements, mode=mode, resolver=registry))
    if extends:
        filters.append(SubclassFilter(extends, resolver=registry))
    if attributes:
        filters.append(AttributeFilter(attributes, mode=attribute_mode, deep_search=deep))
    if attribute_patterns:
        filters.append(AttributePatternFilter(attribute_patterns, mode=attribute_mode, deep_search=deep))
    return filters


def _record_to_dict(record: DeclarationRecord) -> dict:
    return {
        "kind": record.kind.value,
        "name": record.qualified_name,
        "file": record.file_path,
        "line": record.start_line,
        "modifiers": sorted(m.value for m in record.modifiers),
        "parent": record.parent,
        "interfaces": list(record.interfaces),
        "attributes": list(record.own_attributes()),
    }


def _render_table(records: List[DeclarationRecord]) -> None:
    table = Table(title="Declarations", show_lines=False)
    table.add_column("Kind", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("File", style="dim")
    for record in records:
        modifiers = " ".join(sorted(m.value for m in record.modifiers))
        kind = f"{modifiers} {record.kind.value}".strip()
        table.add_row(kind, record.qualified_name, f"{record.file_path}:{record.start_line}")
    console.print(table)


@app.command("find")
def find_declarations(
    roots: List[Path] = typer.Argument(..., help="Directories or files to scan."),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-e", help="Directory name or glob to skip."),
    kind: Optional[List[str]] = typer.Option(None, "--kind", "-k", help="class, interface, trait, enum or function."),
    implements: Optional[List[str]] = typer.Option(None, "--implements", "-i", help="Required interface."),
    any_interface: bool = typer.Option(False, "--any", help="Accept any of the --implements interfaces."),
    extends: Optional[str] = typer.Option(None, "--extends", help="Required ancestor class."),
    pattern: Optional[List[str]] = typer.Option(None, "--pattern", "-p", help="Name/namespace wildcard pattern."),
    attribute: Optional[List[str]] = typer.Option(None, "--attribute", "-a", help="Attribute name."),
    attribute_pattern: Optional[List[str]] = typer.Option(None, "--attribute-pattern", help="Attribute name pattern."),
    all_attributes: bool = typer.Option(False, "--all-attributes", help="Require every attribute, not any."),
    deep: bool = typer.Option(False, "--deep", help="Also search method, property and constant attributes."),
    abstract: bool = typer.Option(False, "--abstract", help="Only abstract classes."),
    final: bool = typer.Option(False, "--final", help="Only final classes."),
    instantiable: bool = typer.Option(False, "--instantiable", help="Only concrete classes."),
    callable_only: bool = typer.Option(False, "--callable", help="Functions and invokable classes."),
    count: bool = typer.Option(False, "--count", help="Print only the number of matches."),
    json_output: bool = typer.Option(False, "--json", help="Print one JSON object per match."),
    config_file: Optional[Path] = typer.Option(None, "--config", help="Path to classfinder.toml."),
    verbose: bool = typer.Option(False, "--verbose", help="Log discovery progress."),
):
    """Scan ROOTS and list the declarations that pass every filter."""
    try:
        config = load_config(config_file)
    except ClassFinderError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2)

    if verbose or config.log_level != FinderConfig().log_level:
        _setup_logging("DEBUG" if verbose else config.log_level)

    try:
        finder = ClassFinder.from_config(config)
        if kind:
            finder = finder.with_kinds(kind)
        excludes = list(config.exclude) + list(exclude or [])
        registry = finder.registry(roots, excludes)
        filters = build_filters(
            registry,
            implements=implements or [],
            any_interface=any_interface,
            extends=extends,
            patterns=pattern or [],
            attributes=attribute or [],
            attribute_patterns=attribute_pattern or [],
            all_attributes=all_attributes,
            deep=deep,
            abstract=abstract,
            final=final,
            instantiable=instantiable,
            callable_only=callable_only,
        )
        found = finder.with_filters(filters).find_in(registry)
    except ClassFinderError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2)

    if count:
        typer.echo(str(found.count()))
        return

    records = found.to_list()
    if json_output:
        for record in records:
            typer.echo(json.dumps(_record_to_dict(record)))
        return

    if not records:
        typer.echo("No declarations found.")
        return

    _render_table(records)
    console.print(f"{len(records)} declaration(s) found")
