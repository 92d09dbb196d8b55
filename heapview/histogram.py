"""Histogram of allocation sizes, split by the top allocating symbols."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Optional, Sequence

from heapview.model import Allocation, Symbol, TraceGraph

NUM_COLUMNS = 10 + 1

_BUCKETS: tuple[tuple[float, str], ...] = (
    (8, "0B to 8B"),
    (16, "9B to 16B"),
    (32, "17B to 32B"),
    (64, "33B to 64B"),
    (128, "65B to 128B"),
    (256, "129B to 256B"),
    (512, "257B to 512B"),
    (1024, "512B to 1KB"),
    (2**64 - 1, "more than 1KB"),
)


@dataclass(frozen=True)
class CountedAllocationInfo:
    """How often an allocation of a given size was made from one allocation site."""

    size: int
    allocation_index: int
    allocations: int = 0

    @property
    def sort_key(self) -> tuple[int, int]:
        return self.size, self.allocations


@dataclass(frozen=True)
class HistogramColumn:
    allocations: int = 0
    total_allocated: int = 0
    symbol: Symbol = Symbol()


def _empty_columns() -> list[HistogramColumn]:
    return [HistogramColumn() for _ in range(NUM_COLUMNS)]


@dataclass
class HistogramRow:
    """One size bucket; column 0 is the total, the others the top symbols."""

    size_label: str = ""
    size: int = 0
    columns: list[HistogramColumn] = field(default_factory=_empty_columns)


@dataclass
class HistogramData:
    rows: list[HistogramRow] = field(default_factory=list)
    strings: tuple[str, ...] = ()


def build_size_histogram(
    graph: TraceGraph,
    allocations: Sequence[Allocation],
    infos: Sequence[CountedAllocationInfo],
) -> HistogramData:
    """Group counted allocations into size buckets."""
    result = HistogramData()
    if not infos:
        return result

    bucket_index = 0
    size, label = _BUCKETS[bucket_index]
    columns = _empty_columns()
    per_symbol: dict[Symbol, list[int]] = {}

    def flush() -> None:
        ranked = sorted(
            sorted(per_symbol.items()),
            key=lambda item: (item[1][0], item[1][1]),
            reverse=True,
        )
        for i, (symbol, (count, total)) in enumerate(ranked[: NUM_COLUMNS - 1], 1):
            columns[i] = HistogramColumn(count, total, symbol)
        result.rows.append(HistogramRow(label, size, list(columns)))

    for info in sorted(infos, key=lambda i: i.sort_key):
        allocated = info.size * info.allocations
        if info.size > size:
            flush()
            per_symbol.clear()
            bucket_index += 1
            size, label = _BUCKETS[bucket_index]
            columns[0] = HistogramColumn(info.allocations, allocated)
        else:
            total = columns[0]
            columns[0] = replace(
                total,
                allocations=total.allocations + info.allocations,
                total_allocated=total.total_allocated + allocated,
            )
        allocation = allocations[info.allocation_index]
        ip_index = graph.find_trace(allocation.trace_index).ip_index
        symbol = graph.find_ip(ip_index).symbol
        counts = per_symbol.setdefault(symbol, [0, 0])
        counts[0] += info.allocations
        counts[1] += allocated

    flush()
    result.strings = graph.strings
    return result


def _format_bytes(value: int) -> str:
    units = ("B", "KiB", "MiB", "GiB", "TiB")
    amount = float(value)
    for unit in units:
        if abs(amount) < 1024 or unit == units[-1]:
            return f"{value} B" if unit == "B" else f"{amount:.1f} {unit}"
        amount /= 1024
    return f"{value} B"


class HistogramModel:
    """Table view of a size histogram: one row per bucket."""

    def __init__(self) -> None:
        self._data = HistogramData()

    def header_data(self, section: int) -> Optional[str]:
        """Return the size label of a row, or None outside the table."""
        if 0 <= section < len(self._data.rows):
            return self._data.rows[section].size_label
        return None

    def _column(self, row: int, column: int) -> Optional[HistogramColumn]:
        if not (0 <= row < len(self._data.rows) and 0 <= column < NUM_COLUMNS):
            return None
        return self._data.rows[row].columns[column]

    def data(self, row: int, column: int) -> Optional[int]:
        """Return the number of allocations in a cell, or None outside the table."""
        cell = self._column(row, column)
        return None if cell is None else cell.allocations

    def tooltip(
        self, row: int, column: int, describe_symbol: Callable[[Symbol], str]
    ) -> Optional[str]:
        """Describe a cell; ``describe_symbol`` names the symbol of a column."""
        cell = self._column(row, column)
        if cell is None:
            return None
        if column == 0:
            return f"{cell.allocations} allocations in total"
        average = cell.total_allocated // cell.allocations if cell.allocations else 0
        return (
            f"{cell.allocations} allocations from {describe_symbol(cell.symbol)}, "
            f"totalling {_format_bytes(cell.total_allocated)} allocated with an average "
            f"of {_format_bytes(average)} per allocation"
        )

    def row_count(self) -> int:
        return len(self._data.rows)

    def column_count(self) -> int:
        return NUM_COLUMNS

    def reset_data(self, data: HistogramData) -> None:
        self._data = data

    def clear_data(self) -> None:
        self._data = HistogramData()