import pytest

from heapview.flamegraph import (
    CostType,
    FrameItem,
    Rect,
    SearchMatch,
    apply_search,
    build_flame_graph,
    layout_items,
)
from heapview.model import AllocationData, RowData, Symbol, TreeData

STRINGS = ("main", "helper", "do_alloc", "libapp.so", "libc.so")
MAIN = Symbol(1, 4)
HELPER = Symbol(2, 4)
ALLOC = Symbol(3, 5)


def row(symbol, allocations, children=(), peak=0):
    node = RowData(AllocationData(allocations=allocations, peak=peak), symbol)
    for child in children:
        child.parent = node
        node.children.append(child)
    return node


def simple_tree():
    return TreeData(
        rows=[
            row(MAIN, 100, [row(HELPER, 60, [row(ALLOC, 40)]), row(ALLOC, 30)]),
        ],
        strings=STRINGS,
    )


def test_build_structure_and_costs():
    root = build_flame_graph(simple_tree(), CostType.ALLOCATIONS, 100, 0.0, True)
    assert root.cost == 100
    assert not root.symbol.is_valid()
    assert [c.symbol for c in root.children] == [MAIN]
    main = root.children[0]
    assert main.parent is root
    assert [(c.symbol, c.cost) for c in main.children] == [(HELPER, 60), (ALLOC, 30)]
    assert [(c.symbol, c.cost) for c in main.children[0].children] == [(ALLOC, 40)]


def test_cost_type_selects_counter():
    tree = TreeData(rows=[row(MAIN, 5, peak=77)], strings=STRINGS)
    root = build_flame_graph(tree, CostType.PEAK, 77, 0.0, True)
    assert root.children[0].cost == 77
    assert root.children[0].cost_type is CostType.PEAK


def test_duplicate_symbols_are_merged():
    tree = TreeData(rows=[row(MAIN, 10), row(MAIN, 15)], strings=STRINGS)
    root = build_flame_graph(tree, CostType.ALLOCATIONS, 25, 0.0, True)
    assert len(root.children) == 1
    assert root.children[0].cost == 25


def test_collapse_recursion():
    def tree():
        return TreeData(rows=[row(MAIN, 10, [row(MAIN, 10, [row(HELPER, 10)])])], strings=STRINGS)

    collapsed = build_flame_graph(tree(), CostType.ALLOCATIONS, 10, 0.0, True)
    main = collapsed.children[0]
    assert [c.symbol for c in main.children] == [HELPER]

    expanded = build_flame_graph(tree(), CostType.ALLOCATIONS, 10, 0.0, False)
    main = expanded.children[0]
    assert [c.symbol for c in main.children] == [MAIN]
    assert [c.symbol for c in main.children[0].children] == [HELPER]


def test_threshold_stops_expansion():
    tree = TreeData(
        rows=[row(MAIN, 50, [row(ALLOC, 50)]), row(HELPER, 5, [row(ALLOC, 5)])],
        strings=STRINGS,
    )
    root = build_flame_graph(tree, CostType.ALLOCATIONS, 100, 10.0, True)
    main, helper = root.children
    assert len(main.children) == 1
    assert helper.children == []


def test_root_walks_up():
    root = build_flame_graph(simple_tree(), CostType.ALLOCATIONS, 100, 0.0, True)
    leaf = root.children[0].children[0].children[0]
    assert leaf.root() is root
    assert root.root() is root


def test_layout_invariants():
    root = build_flame_graph(simple_tree(), CostType.ALLOCATIONS, 100, 0.0, True)
    root.rect = Rect(0, 0, 800, 20)
    layout_items(root)
    main = root.children[0]
    assert main.visible
    assert main.rect.width == pytest.approx(root.rect.width)
    assert main.rect.height == root.rect.height
    assert main.rect.y < root.rect.y
    helper, alloc = main.children
    assert alloc.rect.x == pytest.approx(helper.rect.x + helper.rect.width)
    assert helper.rect.width + alloc.rect.width == pytest.approx(main.rect.width * 90 / 100)
    assert helper.rect.y == alloc.rect.y
    assert helper.children[0].rect.y < helper.rect.y


def test_layout_hides_tiny_items():
    tree = TreeData(rows=[row(MAIN, 9999), row(HELPER, 1)], strings=STRINGS)
    root = build_flame_graph(tree, CostType.ALLOCATIONS, 10000, 0.0, True)
    root.rect = Rect(0, 0, 800, 20)
    layout_items(root)
    big, tiny = root.children
    assert big.visible
    assert not tiny.visible


def test_match_is_case_insensitive_and_checks_module():
    item = FrameItem(1, ALLOC, CostType.ALLOCATIONS)
    assert item.match("DO_ALL", STRINGS)
    assert item.match("libc", STRINGS)
    assert not item.match("helper", STRINGS)


def test_apply_search_marks_items():
    root = build_flame_graph(simple_tree(), CostType.ALLOCATIONS, 100, 0.0, True)
    result = apply_search(root, "helper", STRINGS)
    main = root.children[0]
    helper, alloc = main.children
    assert result.match_type is SearchMatch.CHILD_MATCH
    assert result.direct_cost == helper.cost
    assert root.search_match is SearchMatch.CHILD_MATCH
    assert main.search_match is SearchMatch.CHILD_MATCH
    assert helper.search_match is SearchMatch.DIRECT_MATCH
    assert alloc.search_match is SearchMatch.NO_MATCH
    assert helper.children[0].search_match is SearchMatch.NO_MATCH


def test_apply_search_sums_direct_matches():
    root = build_flame_graph(simple_tree(), CostType.ALLOCATIONS, 100, 0.0, True)
    result = apply_search(root, "do_alloc", STRINGS)
    main = root.children[0]
    helper, alloc = main.children
    assert result.direct_cost == helper.children[0].cost + alloc.cost
    assert helper.search_match is SearchMatch.CHILD_MATCH


def test_apply_empty_search_clears():
    root = build_flame_graph(simple_tree(), CostType.ALLOCATIONS, 100, 0.0, True)
    apply_search(root, "helper", STRINGS)
    result = apply_search(root, "", STRINGS)
    assert result.match_type is SearchMatch.NO_SEARCH
    assert result.direct_cost == 0
    assert root.children[0].children[0].search_match is SearchMatch.NO_SEARCH