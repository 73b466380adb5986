"""End-to-end discovery tests over the sample PHP project."""

import logging
from pathlib import Path

import pytest

from classfinder import find
from classfinder.attributes import has_attribute
from classfinder.config import FinderConfig
from classfinder.errors import DiscoveryError, InvalidFilterError
from classfinder.filters import CallableFilter, ImplementsFilter, IsAbstractFilter, MatchMode, SubclassFilter
from classfinder.finder import ClassFinder
from classfinder.models import DeclarationKind
from classfinder.parser import PHPParser
from classfinder.pattern import PatternFilter

CLASSES = [
    "App\\Actions\\ProcessOrder",
    "App\\Actions\\SendMail",
    "App\\Http\\Controller",
    "App\\Http\\Controllers\\BaseController",
    "App\\Http\\Controllers\\UserController",
]


class CountingParser(PHPParser):
    def __init__(self):
        super().__init__()
        self.parsed = []

    def parse_file(self, file_path, source=None):
        self.parsed.append(Path(file_path).name)
        return super().parse_file(file_path, source)


def names(records):
    return [r.qualified_name for r in records]


class TestFind:
    """Discovery and filtering without hierarchy resolution."""

    def test_classes_in_file_order(self, sample_project_path: Path):
        found = ClassFinder(kinds="class").find(sample_project_path, exclude=["tests"])
        assert names(found) == CLASSES

    def test_all_kinds(self, sample_project_path: Path):
        found = ClassFinder().find(sample_project_path, exclude=["tests"])
        kinds = {r.kind for r in found}
        assert kinds == set(DeclarationKind)
        assert found.count() == 12

    def test_without_exclude_includes_tests(self, sample_project_path: Path):
        found = ClassFinder(kinds=DeclarationKind.CLASS).find(sample_project_path)
        assert "App\\Tests\\ExampleTest" in names(found)

    def test_filters_are_anded(self, sample_project_path: Path):
        finder = ClassFinder(filters=[PatternFilter("*Controller"), IsAbstractFilter()])
        assert names(finder.find(sample_project_path)) == [
            "App\\Http\\Controller",
            "App\\Http\\Controllers\\BaseController",
        ]

    def test_direct_interfaces_only_without_registry(self, sample_project_path: Path):
        finder = ClassFinder(filters=ImplementsFilter("App\\Contracts\\Cacheable"))
        assert names(finder.find(sample_project_path)) == ["App\\Http\\Controllers\\BaseController"]

    def test_callable(self, sample_project_path: Path):
        finder = ClassFinder(filters=[CallableFilter()])
        assert names(finder.find(sample_project_path, exclude=["tests"])) == [
            "App\\Actions\\SendMail",
            "App\\Support\\format_name",
            "App\\Support\\legacy_name",
        ]

    def test_deep_attribute(self, sample_project_path: Path):
        auth = "App\\Attribute\\Auth"
        assert names(find(sample_project_path, has_attribute(auth))) == []
        assert names(find(sample_project_path, has_attribute(auth, deep_search=True))) == [
            "App\\Http\\Controllers\\UserController"
        ]

    def test_module_level_find(self, sample_project_path: Path):
        found = find(sample_project_path, exclude=["tests"], kinds=["interface"])
        assert names(found) == ["App\\Contracts\\Cacheable", "App\\Contracts\\Renderable"]


class TestRegistryResolution:
    """Hierarchy-aware filters backed by a registry."""

    def test_transitive_subclass(self, sample_project_path: Path):
        finder = ClassFinder(kinds="class")
        registry = finder.registry(sample_project_path, exclude=["tests"])
        found = finder.with_filter(SubclassFilter("App\\Http\\Controller", resolver=registry)).find_in(registry)
        assert names(found) == [
            "App\\Http\\Controllers\\BaseController",
            "App\\Http\\Controllers\\UserController",
        ]

    def test_inherited_interfaces(self, sample_project_path: Path):
        finder = ClassFinder()
        registry = finder.registry(sample_project_path)
        cacheable = finder.with_filter(ImplementsFilter("App\\Contracts\\Cacheable", resolver=registry))
        assert names(cacheable.find_in(registry)) == [
            "App\\Http\\Controllers\\BaseController",
            "App\\Http\\Controllers\\UserController",
        ]
        stringable = finder.with_filter(
            ImplementsFilter(["Stringable", "Countable"], mode=MatchMode.ALL, resolver=registry)
        )
        assert names(stringable.find_in(registry)) == ["App\\Http\\Controllers\\UserController"]

    def test_registry_indexes_every_kind(self, sample_project_path: Path):
        registry = ClassFinder(kinds="class").registry(sample_project_path, exclude=["tests"])
        assert "App\\Contracts\\Renderable" in registry
        assert len(registry) == 12

    def test_find_in_respects_kinds(self, sample_project_path: Path):
        finder = ClassFinder(kinds="trait")
        registry = finder.registry(sample_project_path)
        assert names(finder.find_in(registry)) == ["App\\Support\\HasTimestamps"]

    def test_find_in_keeps_duplicate_declarations(self, temp_dir: Path):
        """Conditionally declared classes share a name but are all reported."""
        (temp_dir / "compat.php").write_text(
            "<?php\nnamespace App;\n"
            "if (PHP_VERSION_ID >= 80000) {\n    class Compat {}\n} else {\n    class Compat {}\n}\n"
        )
        finder = ClassFinder(kinds="class")
        registry = finder.registry(temp_dir)
        assert len(registry) == 1
        found = finder.find_in(registry).to_list()
        assert names(found) == ["App\\Compat", "App\\Compat"]
        assert found[0].start_line < found[1].start_line


class TestLazyDiscovery:
    """Files are parsed only as results are consumed."""

    def test_find_parses_nothing_up_front(self, sample_project_path: Path):
        parser = CountingParser()
        ClassFinder(parser=parser).find(sample_project_path)
        assert parser.parsed == []

    def test_first_stops_early(self, sample_project_path: Path):
        parser = CountingParser()
        found = ClassFinder(parser=parser).find(sample_project_path)
        assert found.first().name == "ProcessOrder"
        assert parser.parsed == ["ProcessOrder.php"]

    def test_each_file_parsed_once(self, sample_project_path: Path):
        parser = CountingParser()
        found = ClassFinder(parser=parser).find(sample_project_path)
        found.to_list()
        found.without_filter(IsAbstractFilter()).to_list()
        assert len(parser.parsed) == len(set(parser.parsed)) == 11


class TestErrors:
    """Bad roots, bad filters and unparsable files."""

    def test_missing_root(self, temp_dir: Path):
        with pytest.raises(DiscoveryError):
            ClassFinder().find(temp_dir / "nope")

    def test_invalid_filter(self):
        with pytest.raises(InvalidFilterError):
            ClassFinder(filters=[IsAbstractFilter(), "abstract"])

    def test_unknown_kind(self):
        with pytest.raises(InvalidFilterError):
            ClassFinder(kinds=["class", "module"])

    def test_failing_file_is_skipped(self, temp_dir: Path, caplog):
        (temp_dir / "a.php").write_text("<?php class A {}")
        (temp_dir / "b.php").write_text("<?php class B {}")

        class Flaky(PHPParser):
            def parse_file(self, file_path, source=None):
                if Path(file_path).name == "a.php":
                    raise UnicodeDecodeError("utf-8", b"", 0, 1, "bad byte")
                return super().parse_file(file_path, source)

        with caplog.at_level(logging.WARNING, logger="classfinder.finder"):
            found = ClassFinder(parser=Flaky()).find(temp_dir).to_list()
        assert names(found) == ["B"]
        assert "Failed to parse" in caplog.text


class TestBuilders:
    """Finder configuration helpers return new finders."""

    def test_with_filters_appends(self):
        first, second = IsAbstractFilter(), CallableFilter()
        finder = ClassFinder(filters=[first])
        derived = finder.with_filters([second])
        assert derived.filters == (first, second)
        assert finder.filters == (first,)

    def test_with_kinds(self):
        finder = ClassFinder().with_kinds(["enum"])
        assert finder.kinds == {DeclarationKind.ENUM}

    def test_from_config(self):
        config = FinderConfig(kinds=frozenset({DeclarationKind.INTERFACE}), extensions=(".php", ".inc"))
        finder = ClassFinder.from_config(config)
        assert finder.kinds == {DeclarationKind.INTERFACE}
        assert finder.extensions == (".php", ".inc")
