"""Time series of the hottest allocation sites for the consumption charts."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Sequence

from heapview.model import Allocation, AllocationData, Symbol, TraceGraph

MAX_NUM_COST = 20
MAX_CHART_DATAPOINTS = 500


def _zero_costs() -> list[int]:
    return [0] * MAX_NUM_COST


@dataclass
class ChartRow:
    """Costs at one time stamp; column 0 holds the total."""

    time_stamp: int = 0
    cost: list[int] = field(default_factory=_zero_costs)


@dataclass
class ChartData:
    """Chart rows and the symbol shown by each cost column."""

    rows: list[ChartRow] = field(default_factory=list)
    labels: dict[int, Symbol] = field(default_factory=dict)
    strings: tuple[str, ...] = ()


@dataclass
class _MergedCost:
    ip: int
    consumed: int = 0
    allocations: int = 0
    temporary: int = 0


@dataclass(frozen=True)
class _LabelIds:
    allocation_index: int = 0
    consumed: int = -1
    allocations: int = -1
    temporary: int = -1


class ChartBuilder:
    """Collects chart rows for consumed memory, allocations and temporaries.

    The hottest instruction pointers are chosen once up front from the
    accumulated allocation costs; later time stamps then record the
    per-site costs of just those sites.
    """

    def __init__(
        self,
        graph: TraceGraph,
        allocations: Sequence[Allocation],
        min_time: int,
        max_time: int,
    ) -> None:
        self.min_time = min_time
        self.max_time = max_time
        self.consumed = ChartData(strings=graph.strings)
        self.allocations = ChartData(strings=graph.strings)
        self.temporary = ChartData(strings=graph.strings)
        self._last_time_stamp = min_time
        self._max_consumed = 0

        for chart in self._charts():
            chart.rows.append(ChartRow(time_stamp=min_time))
            chart.labels[0] = Symbol()

        def ip_of(allocation: Allocation) -> int:
            return graph.find_trace(allocation.trace_index).ip_index

        by_ip: dict[int, _MergedCost] = {}
        for allocation in allocations:
            merged = by_ip.setdefault(ip_of(allocation), _MergedCost(ip_of(allocation)))
            merged.consumed += allocation.peak
            merged.allocations += allocation.allocations
            merged.temporary += allocation.temporary
        merged_list = [by_ip[ip] for ip in sorted(by_ip)]

        ip_labels: dict[int, _LabelIds] = {}
        for attr, chart in (
            ("consumed", self.consumed),
            ("allocations", self.allocations),
            ("temporary", self.temporary),
        ):
            merged_list.sort(key=lambda m: abs(getattr(m, attr)), reverse=True)
            for i, merged in enumerate(merged_list[: MAX_NUM_COST - 2]):
                if not getattr(merged, attr):
                    break
                current = ip_labels.get(merged.ip, _LabelIds())
                ip_labels[merged.ip] = replace(current, **{attr: i + 1})
                chart.labels[i + 1] = graph.find_ip(merged.ip).symbol

        self._label_ids: list[_LabelIds] = [
            replace(ip_labels[ip_of(allocation)], allocation_index=i)
            for i, allocation in enumerate(allocations)
            if ip_of(allocation) in ip_labels
        ]

    def _charts(self) -> tuple[ChartData, ChartData, ChartData]:
        return self.consumed, self.allocations, self.temporary

    def note_allocation(self, leaked_total: int) -> None:
        """Track the highest consumption seen since the last recorded row."""
        self._max_consumed = max(self._max_consumed, leaked_total)

    def handle_time_stamp(
        self,
        new_stamp: int,
        total_cost: AllocationData,
        allocations: Sequence[Allocation],
        is_final: bool = False,
    ) -> bool:
        """Record a row per chart unless the stamp is too close to the last one.

        Returns True when rows were added.
        """
        self._max_consumed = max(self._max_consumed, total_cost.leaked)
        time_span = self.max_time - self.min_time
        min_distance = max(0, time_span) // MAX_CHART_DATAPOINTS
        if not is_final and new_stamp - self._last_time_stamp < min_distance:
            return False
        now_consumed = self._max_consumed
        self._max_consumed = 0
        self._last_time_stamp = new_stamp

        consumed = ChartRow(time_stamp=new_stamp)
        consumed.cost[0] = now_consumed
        allocs = ChartRow(time_stamp=new_stamp)
        allocs.cost[0] = total_cost.allocations
        temporary = ChartRow(time_stamp=new_stamp)
        temporary.cost[0] = total_cost.temporary

        def add(cost: int, label_id: int, row: ChartRow) -> None:
            if cost and label_id != -1:
                row.cost[label_id] += cost

        for ids in self._label_ids:
            allocation = allocations[ids.allocation_index]
            add(allocation.leaked, ids.consumed, consumed)
            add(allocation.allocations, ids.allocations, allocs)
            add(allocation.temporary, ids.temporary, temporary)

        self.consumed.rows.append(consumed)
        self.allocations.rows.append(allocs)
        self.temporary.rows.append(temporary)
        return True