import pytest

from heapview.histogram import (
    NUM_COLUMNS,
    CountedAllocationInfo,
    HistogramColumn,
    HistogramData,
    HistogramModel,
    HistogramRow,
    build_size_histogram,
)
from heapview.model import (
    Allocation,
    Frame,
    InstructionPointer,
    Symbol,
    Trace,
    TraceGraph,
)

SYM1 = Symbol(1, 3)
SYM2 = Symbol(2, 3)


@pytest.fixture
def graph():
    return TraceGraph(
        traces=[Trace(1, 0), Trace(2, 0)],
        ips=[
            InstructionPointer(Frame(1, 0, 0), 3),
            InstructionPointer(Frame(2, 0, 0), 3),
        ],
        strings=("", "f", "g", "lib"),
    )


@pytest.fixture
def allocations():
    return [Allocation(1), Allocation(2)]


def test_empty_input(graph, allocations):
    data = build_size_histogram(graph, allocations, [])
    assert data.rows == []


def test_single_bucket(graph, allocations):
    infos = [
        CountedAllocationInfo(4, 0, 3),
        CountedAllocationInfo(8, 1, 5),
        CountedAllocationInfo(2, 0, 1),
    ]
    data = build_size_histogram(graph, allocations, infos)
    assert len(data.rows) == 1
    row = data.rows[0]
    assert row.size_label == "0B to 8B"
    assert row.size == 8
    assert row.columns[0].allocations == 3 + 5 + 1
    assert row.columns[0].total_allocated == 4 * 3 + 8 * 5 + 2 * 1
    assert row.columns[1] == HistogramColumn(5, 40, SYM2)
    assert row.columns[2] == HistogramColumn(4, 14, SYM1)
    assert row.columns[3] == HistogramColumn()


def test_bucket_advance(graph, allocations):
    infos = [CountedAllocationInfo(4, 0, 2), CountedAllocationInfo(12, 1, 3)]
    data = build_size_histogram(graph, allocations, infos)
    assert [r.size_label for r in data.rows] == ["0B to 8B", "9B to 16B"]
    assert data.rows[1].columns[0] == HistogramColumn(3, 36, Symbol())
    assert data.rows[1].columns[1] == HistogramColumn(3, 36, SYM2)
    assert data.strings == graph.strings


def test_totals_match_input(graph, allocations):
    infos = [CountedAllocationInfo(s, s % 2, s) for s in (1, 3, 7, 9, 15, 20)]
    data = build_size_histogram(graph, allocations, infos)
    total = sum(r.columns[0].allocations for r in data.rows)
    assert total == sum(i.allocations for i in infos)
    assert all(len(r.columns) == NUM_COLUMNS for r in data.rows)


@pytest.fixture
def model():
    m = HistogramModel()
    columns = [HistogramColumn() for _ in range(NUM_COLUMNS)]
    columns[0] = HistogramColumn(7, 70)
    columns[1] = HistogramColumn(7, 70, SYM1)
    m.reset_data(HistogramData([HistogramRow("0B to 8B", 8, columns)]))
    return m


def test_model_cells(model):
    assert model.row_count() == 1
    assert model.column_count() == NUM_COLUMNS
    assert model.header_data(0) == "0B to 8B"
    assert model.header_data(1) is None
    assert model.data(0, 1) == 7
    assert model.data(1, 0) is None
    assert model.data(0, NUM_COLUMNS) is None


def test_model_tooltips(model):
    assert model.tooltip(0, 0, str) == "7 allocations in total"
    text = model.tooltip(0, 1, lambda s: f"fn{s.function_id}")
    assert text.startswith("7 allocations from fn1, totalling ")
    assert model.tooltip(5, 0, str) is None


def test_model_clear(model):
    model.clear_data()
    assert model.row_count() == 0
    assert model.header_data(0) is None