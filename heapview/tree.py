"""Building bottom-up, top-down and caller/callee views from allocations."""

from __future__ import annotations

import copy
import logging
from bisect import bisect_left
from typing import Callable, Iterable, Iterator, Optional, Sequence

from heapview.model import (
    Allocation,
    AllocationData,
    CallerCalleeEntry,
    CallerCalleeResults,
    FileLine,
    LocationCost,
    RowData,
    Symbol,
    TraceGraph,
    TreeData,
)

logger = logging.getLogger(__name__)


def _post_order(rows: Iterable[RowData]) -> Iterator[RowData]:
    """Yield every row after all of its children, siblings in order."""
    stack = [iter(rows)]
    pending: list[RowData] = []
    while stack:
        row = next(stack[-1], None)
        if row is None:
            stack.pop()
            if pending:
                yield pending.pop()
            continue
        pending.append(row)
        stack.append(iter(row.children))


def _children_cost(row: RowData) -> AllocationData:
    total = AllocationData()
    for child in row.children:
        total += child.cost
    return total


def merge_allocations(
    graph: TraceGraph,
    allocations: Sequence[Allocation],
    progress: Optional[Callable[[int], None]] = None,
) -> tuple[TreeData, CallerCalleeResults]:
    """Merge allocations into a bottom-up tree and per-location caller/callee costs.

    ``progress`` is called with a completion percentage as merging advances.
    """
    results = CallerCalleeResults(strings=graph.strings)
    tree = TreeData(strings=graph.strings)
    symbol_guard: set[Symbol] = set()

    def add_caller_callee_event(symbol: Symbol, file_line: FileLine, cost: AllocationData) -> None:
        is_leaf = not symbol_guard
        if symbol in symbol_guard:
            return
        symbol_guard.add(symbol)
        entry = results.entries.setdefault(symbol, CallerCalleeEntry())
        location = entry.source_map.setdefault(file_line, LocationCost())
        location.inclusive_cost += cost
        if is_leaf:
            location.self_cost += cost

    def add_row(parent: Optional[RowData], symbol: Symbol, file_line: FileLine, cost: AllocationData) -> RowData:
        rows = parent.children if parent is not None else tree.rows
        pos = bisect_left(rows, symbol, key=lambda r: r.symbol)
        if pos < len(rows) and rows[pos].symbol == symbol:
            row = rows[pos]
            row.cost += cost
        else:
            row = RowData(cost, symbol, parent)
            rows.insert(pos, row)
        add_caller_callee_event(symbol, file_line, cost)
        return row

    count = len(allocations)
    one_percent = max(1, count // 100)
    for done, allocation in enumerate(allocations, 1):
        cost = allocation.cost
        trace_index = allocation.trace_index
        trace_guard = {trace_index}
        symbol_guard.clear()
        parent: Optional[RowData] = None
        first = True
        while trace_index or first:
            first = False
            trace = graph.find_trace(trace_index)
            ip = graph.find_ip(trace.ip_index)
            parent = add_row(parent, ip.symbol, FileLine(ip.frame.file_id, ip.frame.line), cost)
            for inlined in ip.inlined:
                parent = add_row(
                    parent,
                    Symbol(inlined.function_id, ip.module_id),
                    FileLine(inlined.file_id, inlined.line),
                    cost,
                )
            if graph.is_stop_index(ip.frame.function_id):
                break
            trace_index = trace.parent_index
            if trace_index in trace_guard:
                logger.warning("Trace recursion detected - corrupt data file?")
                break
            trace_guard.add(trace_index)
        if progress is not None and done % one_percent == 0:
            progress(done * 100 // count)

    return tree, results


def build_top_down(bottom_up: TreeData) -> TreeData:
    """Invert a bottom-up tree into a top-down tree."""
    top = TreeData(strings=bottom_up.strings)
    for row in _post_order(bottom_up.rows):
        child_cost = _children_cost(row)
        if child_cost == row.cost:
            continue
        cost = row.cost - child_cost
        node: Optional[RowData] = row
        parent: Optional[RowData] = None
        while node is not None:
            siblings = parent.children if parent is not None else top.rows
            data = next((r for r in siblings if r.symbol == node.symbol), None)
            if data is None:
                data = RowData(AllocationData(), node.symbol, parent)
                siblings.append(data)
            data.cost += cost
            parent = data
            node = node.parent
    return top


def build_caller_callee(
    bottom_up: TreeData, results: CallerCalleeResults, diff_mode: bool
) -> CallerCalleeResults:
    """Add inclusive, self, caller and callee costs to a copy of ``results``.

    In diff mode, entries left without any cost are dropped.
    """
    out = copy.deepcopy(results)
    entries = out.entries
    for row in _post_order(bottom_up.rows):
        child_cost = _children_cost(row)
        if child_cost == row.cost:
            continue
        cost = row.cost - child_cost
        recursion_guard: set[Symbol] = set()
        pair_guard: set[tuple[Symbol, Symbol]] = set()
        node: Optional[RowData] = row
        last_symbol = Symbol()
        last_entry: Optional[CallerCalleeEntry] = None
        while node is not None:
            symbol = node.symbol
            entry = entries.setdefault(symbol, CallerCalleeEntry())
            if symbol not in recursion_guard:
                recursion_guard.add(symbol)
                entry.inclusive_cost += cost
            if node.parent is None:
                entry.self_cost += cost
            if last_entry is not None and (symbol, last_symbol) not in pair_guard:
                pair_guard.add((symbol, last_symbol))
                last_entry.callees[symbol] = last_entry.callees.get(symbol, AllocationData()) + cost
                entry.callers[last_symbol] = entry.callers.get(last_symbol, AllocationData()) + cost
            node = node.parent
            last_symbol = symbol
            last_entry = entry

    if diff_mode:
        out.entries = {
            symbol: entry
            for symbol, entry in entries.items()
            if not (entry.inclusive_cost.is_zero() and entry.self_cost.is_zero())
        }
    out.strings = bottom_up.strings
    return out