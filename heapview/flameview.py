"""Interactive state of a flame graph: selection history, zoom and search."""

from __future__ import annotations

from typing import Optional, Sequence

from heapview.flamegraph import (
    CostType,
    FrameItem,
    Rect,
    SearchResults,
    apply_search,
    layout_items,
)
from heapview.model import Symbol

ROW_HEIGHT = 20.0
INITIAL_WIDTH = 800.0
VIEW_MARGIN = 40


def _format_bytes(value: int) -> str:
    units = ("B", "KiB", "MiB", "GiB", "TiB")
    amount = float(value)
    for unit in units[:-1]:
        if abs(amount) < 1024:
            return f"{value} B" if unit == "B" else f"{amount:.1f} {unit}"
        amount /= 1024
    return f"{amount:.1f} {units[-1]}"


def _format_relative(cost: int, total: int) -> str:
    if not total:
        return "0"
    return f"{cost * 100 / total:.2f}"


class FlameGraph:
    """Holds a flame graph, the history of selected frames and the active search."""

    def __init__(self, strings: Sequence[str] = ()) -> None:
        self.strings = tuple(strings)
        self.root: Optional[FrameItem] = None
        self._history: list[Optional[FrameItem]] = []
        self._selected = -1
        self.tooltip_item: Optional[FrameItem] = None
        self.tooltip = ""
        self.search_value = ""
        self.search_label: Optional[str] = None

    @property
    def selected_item(self) -> Optional[FrameItem]:
        """The frame currently zoomed into, or None."""
        if 0 <= self._selected < len(self._history):
            return self._history[self._selected]
        return None

    def set_data(self, root: Optional[FrameItem]) -> None:
        """Show a new graph, dropping the selection history."""
        self.root = root
        self.tooltip_item = None
        self.tooltip = ""
        self._history = [root]
        self._selected = 0
        if root is None:
            return
        root.rect = Rect(0.0, 0.0, INITIAL_WIDTH, ROW_HEIGHT)
        if self.search_value:
            self.search(self.search_value)

    def select(self, item: Optional[FrameItem], width: int) -> bool:
        """Zoom into ``item`` and record it in the history.

        Returns False when ``item`` is None or already selected.
        """
        if item is None or item is self.selected_item:
            return False
        self._show(item, width)
        del self._history[self._selected + 1 :]
        self._history.append(item)
        self._selected = len(self._history) - 1
        return True

    def navigate_back(self, width: int) -> bool:
        """Go to the previous entry of the history, if any."""
        if self._selected > 0:
            self._show_index(self._selected - 1, width)
            return True
        return False

    def navigate_forward(self, width: int) -> bool:
        """Go to the next entry of the history, if any."""
        if self._selected + 1 < len(self._history):
            self._show_index(self._selected + 1, width)
            return True
        return False

    def reset(self, width: int) -> None:
        """Return to the root of the graph, keeping the history."""
        if self._history:
            self._show_index(0, width)

    def can_go_back(self) -> bool:
        return self._selected > 0

    def can_go_forward(self) -> bool:
        return self._selected + 1 < len(self._history)

    def search(self, value: str) -> Optional[SearchResults]:
        """Mark frames matching ``value`` and update the search summary label."""
        self.search_value = value
        if self.root is None:
            return None
        result = apply_search(self.root, value, self.strings)
        if not value:
            self.search_label = None
            return result
        total = self.root.cost
        fraction = _format_relative(result.direct_cost, total)
        if self.root.cost_type in (CostType.ALLOCATIONS, CostType.TEMPORARY):
            self.search_label = (
                f"{result.direct_cost} ({fraction}% of total of {total}) "
                "allocations matched by search."
            )
        else:
            self.search_label = (
                f"{_format_bytes(result.direct_cost)} ({fraction}% of total of "
                f"{_format_bytes(total)}) matched by search."
            )
        return result

    def _show_index(self, index: int, width: int) -> None:
        self._selected = index
        self._show(self._history[index], width)

    def _show(self, item: Optional[FrameItem], width: int) -> None:
        if item is None:
            return
        root_width = width - VIEW_MARGIN
        node: Optional[FrameItem] = item
        while node is not None:
            rect = node.rect
            node.rect = Rect(0.0, rect.y, float(root_width), rect.height)
            if node.parent is not None:
                for sibling in node.parent.children:
                    sibling.visible = sibling is node
            node = node.parent
        layout_items(item)
        self._set_tooltip_item(item)

    def _set_tooltip_item(self, item: Optional[FrameItem]) -> None:
        if item is None:
            item = self.selected_item
        self.tooltip_item = item
        self.tooltip = self._describe(item) if item is not None else ""

    def _symbol_name(self, symbol: Symbol) -> str:
        index = symbol.function_id
        if 0 < index <= len(self.strings) and self.strings[index - 1]:
            return self.strings[index - 1]
        return "??"

    def _root_label(self, item: FrameItem) -> str:
        cost_type = item.cost_type
        if cost_type is CostType.ALLOCATIONS:
            return f"{item.cost} allocations in total"
        if cost_type is CostType.TEMPORARY:
            return f"{item.cost} temporary allocations in total"
        if cost_type is CostType.PEAK:
            return f"{_format_bytes(item.cost)} peak memory consumption"
        return f"{_format_bytes(item.cost)} leaked in total"

    def _describe(self, item: FrameItem) -> str:
        if item.parent is None:
            return self._root_label(item)
        name = self._symbol_name(item.symbol)
        fraction = _format_relative(item.cost, item.root().cost)
        cost_type = item.cost_type
        if cost_type is CostType.ALLOCATIONS:
            return f"{item.cost} ({fraction}%) allocations in {name} and below."
        if cost_type is CostType.TEMPORARY:
            return f"{item.cost} ({fraction}%) temporary allocations in {name} and below."
        if cost_type is CostType.PEAK:
            return (
                f"{_format_bytes(item.cost)} ({fraction}%) contribution to peak "
                f"consumption in {name} and below."
            )
        return f"{_format_bytes(item.cost)} ({fraction}%) leaked in {name} and below."