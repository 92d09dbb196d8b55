"""Flame graph items built from a call tree, with layout and search."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from heapview.model import AllocationData, RowData, Symbol, TreeData

Y_MARGIN = 2.0


class CostType(Enum):
    """Which allocation counter a flame graph visualizes."""

    ALLOCATIONS = "allocations"
    TEMPORARY = "temporary"
    PEAK = "peak"
    LEAKED = "leaked"

    def of(self, cost: AllocationData) -> int:
        """Return the counter of ``cost`` that this cost type selects."""
        return getattr(cost, self.value)


class SearchMatch(Enum):
    """How a frame relates to the current search."""

    NO_SEARCH = "no_search"
    NO_MATCH = "no_match"
    DIRECT_MATCH = "direct_match"
    CHILD_MATCH = "child_match"


@dataclass
class Rect:
    """An axis-aligned rectangle; y grows downwards."""

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0


def _string(strings: Sequence[str], index: int) -> str:
    """Look up a one-based string index; 0 and unknown indices give ''."""
    if 0 < index <= len(strings):
        return strings[index - 1]
    return ""


@dataclass(eq=False)
class FrameItem:
    """One frame of the flame graph with its accumulated cost."""

    cost: int
    symbol: Symbol
    cost_type: CostType
    parent: Optional[FrameItem] = field(default=None, repr=False)
    children: list[FrameItem] = field(default_factory=list)
    rect: Rect = field(default_factory=Rect)
    visible: bool = True
    search_match: SearchMatch = SearchMatch.NO_SEARCH

    def root(self) -> FrameItem:
        """Return the topmost ancestor of this item (itself if it has no parent)."""
        item = self
        while item.parent is not None:
            item = item.parent
        return item

    def match(self, search_value: str, strings: Sequence[str]) -> bool:
        """Return True if the function or module name contains ``search_value``, ignoring case."""
        needle = search_value.casefold()
        return any(
            needle in _string(strings, index).casefold()
            for index in (self.symbol.function_id, self.symbol.module_id)
        )

    def _child_for(self, symbol: Symbol) -> Optional[FrameItem]:
        return next((child for child in self.children if child.symbol == symbol), None)


@dataclass
class SearchResults:
    """The match state of an item and the cost of all directly matched frames below it."""

    match_type: SearchMatch = SearchMatch.NO_MATCH
    direct_cost: int = 0


def build_flame_graph(
    tree: TreeData,
    cost_type: CostType,
    total_cost: int,
    cost_threshold: float = 0.1,
    collapse_recursion: bool = True,
) -> FrameItem:
    """Convert a call tree into a tree of frame items under a root holding ``total_cost``.

    ``cost_threshold`` is a percentage of ``total_cost``; items whose cost does
    not exceed it are kept but not expanded. With ``collapse_recursion`` a
    function calling itself is merged into its caller's frame.
    """
    root = FrameItem(total_cost, Symbol(), cost_type)
    threshold = total_cost * cost_threshold / 100.0

    stack: list[tuple[object, FrameItem]] = [(iter(tree.rows), root)]
    while stack:
        rows, parent = stack[-1]
        row: Optional[RowData] = next(rows, None)  # type: ignore[call-overload]
        if row is None:
            stack.pop()
            continue
        if collapse_recursion and row.symbol.function_id and row.symbol == parent.symbol:
            stack.append((iter(row.children), parent))
            continue
        cost = cost_type.of(row.cost)
        item = parent._child_for(row.symbol)
        if item is None:
            item = FrameItem(cost, row.symbol, cost_type, parent)
            parent.children.append(item)
        else:
            item.cost += cost
        if item.cost > threshold:
            stack.append((iter(row.children), item))
    return root


def layout_items(parent: FrameItem) -> None:
    """Place the children of ``parent`` above it, sized by cost, hiding tiny ones."""
    pending = [parent]
    while pending:
        item = pending.pop()
        rect = item.rect
        y = rect.y - rect.height - Y_MARGIN
        x = rect.x
        for child in item.children:
            width = rect.width * child.cost / item.cost if item.cost else 0.0
            child.visible = width > 1
            if child.visible:
                child.rect = Rect(x, y, width, rect.height)
                pending.append(child)
                x += width


def apply_search(item: FrameItem, search_value: str, strings: Sequence[str]) -> SearchResults:
    """Mark ``item`` and all items below it with their search match state."""
    result = SearchResults()
    if not search_value:
        result.match_type = SearchMatch.NO_SEARCH
    elif item.match(search_value, strings):
        result.direct_cost += item.cost
        result.match_type = SearchMatch.DIRECT_MATCH

    for child in item.children:
        child_result = apply_search(child, search_value, strings)
        if result.match_type != SearchMatch.DIRECT_MATCH and child_result.match_type in (
            SearchMatch.DIRECT_MATCH,
            SearchMatch.CHILD_MATCH,
        ):
            result.match_type = SearchMatch.CHILD_MATCH
            result.direct_cost += child_result.direct_cost

    item.search_match = result.match_type
    return result