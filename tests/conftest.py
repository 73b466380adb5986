"""Pytest configuration and fixtures for classfinder tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest

from classfinder.models import DeclarationKind, DeclarationRecord, Modifier
from classfinder.parser import PHPParser


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to the sample PHP project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def php_parser() -> PHPParser:
    return PHPParser()


@pytest.fixture
def make_record() -> Callable[..., DeclarationRecord]:
    """Factory for records with class defaults; ``abstract``/``final`` set modifiers."""

    def _make(name: str = "Thing", kind: DeclarationKind = DeclarationKind.CLASS, **kwargs) -> DeclarationRecord:
        modifiers = set(kwargs.pop("modifiers", ()))
        if kwargs.pop("abstract", False):
            modifiers.add(Modifier.ABSTRACT)
        if kwargs.pop("final", False):
            modifiers.add(Modifier.FINAL)
        return DeclarationRecord(name=name, kind=kind, modifiers=frozenset(modifiers), **kwargs)

    return _make


@pytest.fixture
def one_of_each(make_record) -> list:
    """One record of every kind, plus an abstract and a final class."""
    return [
        make_record("Plain", namespace="App"),
        make_record("Base", namespace="App", abstract=True),
        make_record("Sealed", namespace="App", final=True),
        make_record("Contract", DeclarationKind.INTERFACE, namespace="App"),
        make_record("Mixin", DeclarationKind.TRAIT, namespace="App"),
        make_record("Color", DeclarationKind.ENUM, namespace="App"),
        make_record("helper", DeclarationKind.FUNCTION, namespace="App"),
    ]


@pytest.fixture
def sample_php_code() -> str:
    """Single-file PHP source covering the declaration shapes the parser handles."""
    return r'''<?php

namespace Shop\Domain;

use Shop\Attribute\Entity;
use Shop\Attribute\Column as Col;
use Shop\Contracts\{Identifiable, Timestamped};

#[Entity(table: 'orders')]
abstract class Order implements Identifiable, Timestamped
{
    #[Col]
    private int $id;

    #[Col('total'), \Shop\Attribute\Indexed]
    public const TOTAL = 'total';

    abstract public function id(): int;

    public static function make(int $id, string $currency = 'EUR', ...$extra): static
    {
    }
}

final class PaidOrder extends Order
{
    public function id(): int
    {
        return 1;
    }
}

interface Shippable extends Identifiable
{
}

trait Discountable
{
}

enum Currency
{
    case Eur;
}

function total(Order $order): int
{
    return 0;
}
'''
