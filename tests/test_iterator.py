"""Tests for the lazy, caching declaration pipeline."""

from itertools import islice

import pytest

from classfinder.errors import InvalidFilterError
from classfinder.filters import Filter, ImplementsFilter, KindFilter, implements_any
from classfinder.iterator import DeclarationIterator, PipelineState
from classfinder.models import DeclarationKind
from classfinder.pattern import PatternFilter


class CountingFilter(Filter):
    """Delegates to *inner* and counts how often it ran."""

    def __init__(self, inner: Filter):
        self.inner = inner
        self.calls = 0

    def accept(self, record, key=None):
        self.calls += 1
        return self.inner.accept(record, key)


class CountingSource:
    """Iterable that records how many items were pulled from it."""

    def __init__(self, items):
        self.items = list(items)
        self.pulled = 0
        self.iterations = 0

    def __iter__(self):
        self.iterations += 1
        for item in self.items:
            self.pulled += 1
            yield item


class FailingSource:
    """Iterator over records that raises *error* instead of returning the items in *fail_at*."""

    def __init__(self, records, fail_at, error):
        self.records = list(records)
        self.fail_at = set(fail_at)
        self.error = error
        self.calls = 0

    def __iter__(self):
        return self

    def __next__(self):
        index = self.calls
        self.calls += 1
        if index >= len(self.records):
            raise StopIteration
        if index in self.fail_at:
            raise self.error
        record = self.records[index]
        return record.file_path, record


@pytest.fixture
def records(make_record):
    return [
        make_record("UserController", namespace="App\\Http", file_path="a.php"),
        make_record("Renderable", DeclarationKind.INTERFACE, namespace="App", file_path="b.php"),
        make_record("OrderController", namespace="App\\Http", file_path="c.php"),
        make_record("helper", DeclarationKind.FUNCTION, namespace="App", file_path="d.php"),
    ]


@pytest.fixture
def source(records):
    return CountingSource((r.file_path, r) for r in records)


class TestLaziness:
    """Upstream is read on demand and at most once."""

    def test_nothing_read_before_traversal(self, source):
        DeclarationIterator(source)
        assert source.pulled == 0

    def test_partial_iteration_reads_partially(self, source):
        pipeline = DeclarationIterator(source)
        first = next(iter(pipeline))
        assert first.name == "UserController"
        assert source.pulled == 1
        assert pipeline.state is PipelineState.LAZY

    def test_resumes_after_partial_iteration(self, source):
        pipeline = DeclarationIterator(source)
        list(islice(pipeline, 2))
        names = [r.name for r in pipeline]
        assert names == ["UserController", "Renderable", "OrderController", "helper"]
        assert source.iterations == 1
        assert source.pulled == 4

    def test_first(self, source):
        pipeline = DeclarationIterator(source, PatternFilter("Order*"))
        assert pipeline.first().name == "OrderController"
        assert source.pulled == 3

    def test_first_on_empty(self):
        assert DeclarationIterator([]).first() is None


class TestMaterialization:
    """After one full pass results come from the cache."""

    def test_to_list_is_idempotent(self, source):
        counting = CountingFilter(KindFilter("class"))
        pipeline = DeclarationIterator(source, [counting])
        first = pipeline.to_list()
        second = pipeline.to_list()
        assert [r.name for r in first] == ["UserController", "OrderController"]
        assert first == second
        assert pipeline.state is PipelineState.MATERIALIZED
        assert counting.calls == 4
        assert source.iterations == 1

    def test_count_is_accepted_not_upstream(self, source):
        pipeline = DeclarationIterator(source, KindFilter("class"))
        assert pipeline.count() == 2
        assert pipeline.count() == 2
        assert source.pulled == 4

    def test_iteration_after_materialize_uses_cache(self, source):
        counting = CountingFilter(KindFilter("class"))
        pipeline = DeclarationIterator(source, [counting])
        pipeline.count()
        assert [r.name for r in pipeline] == ["UserController", "OrderController"]
        assert counting.calls == 4

    def test_items_and_keys(self, source):
        pipeline = DeclarationIterator(source, KindFilter("class"))
        assert list(pipeline.keys()) == ["a.php", "c.php"]
        assert [k for k, _ in pipeline.items()] == ["a.php", "c.php"]

    def test_of_keys_by_file_path(self, records):
        pipeline = DeclarationIterator.of(records)
        assert list(pipeline.keys()) == ["a.php", "b.php", "c.php", "d.php"]


class TestStructuralChanges:
    """Deriving pipelines with added or removed filters."""

    def test_with_filter_after_materialization_refilters_cache(self, source):
        pipeline = DeclarationIterator(source, KindFilter("class"))
        pipeline.to_list()
        derived = pipeline.with_filter(PatternFilter("Order*"))
        assert [r.name for r in derived] == ["OrderController"]
        assert source.iterations == 1
        assert pipeline.count() == 2

    def test_with_filter_before_materialization(self, source):
        pipeline = DeclarationIterator(source, KindFilter("class"))
        derived = pipeline.with_filter(PatternFilter("User*"))
        assert [r.name for r in derived] == ["UserController"]
        assert [r.name for r in pipeline] == ["UserController", "OrderController"]
        assert source.iterations == 1

    def test_with_filter_prepend(self, source):
        kinds = KindFilter("class")
        pattern = PatternFilter("*Controller")
        derived = DeclarationIterator(source, kinds).with_filter(pattern, prepend=True)
        assert derived.filters == (pattern, kinds)

    def test_without_filter_restores_rejected_items(self, source):
        kinds = KindFilter("class")
        pipeline = DeclarationIterator(source, [kinds])
        assert pipeline.count() == 2
        everything = pipeline.without_filter(kinds)
        assert everything.count() == 4
        assert source.iterations == 1

    def test_without_unknown_filter_keeps_everything(self, source):
        kinds = KindFilter("class")
        pipeline = DeclarationIterator(source, [kinds])
        assert pipeline.without_filter(KindFilter("class")).filters == (kinds,)

    def test_original_pipeline_is_unchanged(self, source):
        kinds = KindFilter("class")
        pipeline = DeclarationIterator(source, [kinds])
        pipeline.with_filter(PatternFilter("User*"))
        assert pipeline.filters == (kinds,)


class TestErrors:
    """Invalid input and unreadable upstream items."""

    def test_invalid_filter_raises_before_traversal(self, source):
        with pytest.raises(InvalidFilterError):
            DeclarationIterator(source, [KindFilter("class"), object()])
        assert source.pulled == 0

    def test_invalid_added_filter(self, source):
        with pytest.raises(InvalidFilterError):
            DeclarationIterator(source).with_filter("class")

    @pytest.mark.parametrize(
        "error",
        [
            OSError("permission denied"),
            UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte"),
            ValueError("I/O operation on closed file"),
            RuntimeError("parser crashed"),
            KeyError("missing"),
        ],
        ids=lambda exc: type(exc).__name__,
    )
    def test_unreadable_item_is_skipped(self, records, error):
        """Any exception from one upstream item skips that item only."""
        pipeline = DeclarationIterator(FailingSource(records, fail_at={1}, error=error))
        assert [r.name for r in pipeline] == ["UserController", "OrderController", "helper"]

    def test_always_failing_upstream_ends(self, records, caplog):
        """A source that raises on every pull is given up instead of retried forever."""
        source = FailingSource(records, fail_at=set(range(len(records))), error=OSError("broken handle"))
        pipeline = DeclarationIterator(source)
        assert pipeline.count() == 0
        assert pipeline.materialized
        assert source.calls == 3
        assert "stopping" in caplog.text

    def test_failures_reset_after_a_good_item(self, make_record):
        """Isolated failures spread through the upstream never end it early."""
        many = [make_record(f"C{i}", file_path=f"{i}.php") for i in range(7)]
        source = FailingSource(many, fail_at={0, 1, 3, 4}, error=OSError("flaky"))
        assert [r.name for r in DeclarationIterator(source)] == ["C2", "C5", "C6"]


class TestInterfaceScenario:
    """Implements filters driven through a pipeline."""

    @pytest.fixture
    def declarations(self, make_record):
        return [
            make_record("ClassA", interfaces=["Countable"]),
            make_record("ClassB", interfaces=["Countable", "Serializable"]),
            make_record("InterfaceC", DeclarationKind.INTERFACE),
        ]

    def test_all_mode(self, declarations):
        pipeline = DeclarationIterator.of(declarations, ImplementsFilter(["Countable", "Serializable"]))
        assert [r.name for r in pipeline] == ["ClassB"]

    def test_any_mode(self, declarations):
        pipeline = DeclarationIterator.of(declarations, implements_any(["Countable", "Serializable"]))
        assert [r.name for r in pipeline] == ["ClassA", "ClassB"]
