# heapview

Data models for analysing recorded heap allocation traces. Given the
trace graph of a profiled program (instruction pointers, frames, traces)
and the allocation costs recorded per trace, `heapview` builds the views
a heap profiler shows:

- **Bottom-up and top-down call trees**: `heapview.tree.merge_allocations`
  and `heapview.tree.build_top_down`.
- **Caller/callee tables** with inclusive and self cost, callers, callees
  and per-location source maps: `heapview.tree.build_caller_callee`.
- **Time charts** of consumed memory, allocations and temporary
  allocations, with a column for each of the hottest instruction pointers:
  `heapview.charts.ChartBuilder`.
- **Allocation size histograms** split by the top allocating symbols:
  `heapview.histogram.build_size_histogram` and
  `heapview.histogram.HistogramModel`.
- **Flame graphs** with layout, recursion collapsing, cost thresholds and
  search (`heapview.flamegraph`), plus a selection history with back,
  forward and reset and a search summary (`heapview.flameview.FlameGraph`).

The package needs nothing beyond the standard library.

## Installation

```
pip install heapview
```

To run the tests:

```
pip install "heapview[test]"
pytest
```

## Data model

All types live in `heapview.model`.

- `Symbol(function_id, module_id)` and `FileLine(file_id, line)` refer to
  entries of a string table. String, trace and instruction pointer indices
  are one-based; index 0 means "none".
- `AllocationData` holds the four counters `allocations`, `temporary`,
  `peak` and `leaked`; values add and subtract field by field.
- `TraceGraph` holds `traces`, `ips`, `strings` and `stop_indices`
  (function ids at which unwinding stops). `find_trace` and `find_ip`
  return an empty value for index 0 and raise `IndexError` for indices out
  of range.
- `Allocation(trace_index, allocations, temporary, peak, leaked)` is the
  cost recorded for one trace.

## Example

```python
from heapview.flamegraph import CostType, build_flame_graph
from heapview.flameview import FlameGraph
from heapview.model import Allocation, Frame, InstructionPointer, Trace, TraceGraph
from heapview.tree import build_caller_callee, build_top_down, merge_allocations

strings = ("main", "libapp.so", "alloc_buffer")
graph = TraceGraph(
    traces=[Trace(ip_index=1, parent_index=0), Trace(ip_index=2, parent_index=1)],
    ips=[
        InstructionPointer(Frame(function_id=1), module_id=2),
        InstructionPointer(Frame(function_id=3), module_id=2),
    ],
    strings=strings,
)
allocations = [Allocation(trace_index=2, allocations=3, peak=1024, leaked=512)]

bottom_up, locations = merge_allocations(graph, allocations, progress=print)
top_down = build_top_down(bottom_up)
caller_callee = build_caller_callee(bottom_up, locations, diff_mode=False)

root = build_flame_graph(top_down, CostType.PEAK, total_cost=1024,
                         cost_threshold=0.1, collapse_recursion=True)

view = FlameGraph(strings)
view.set_data(root)
view.select(root.children[0], width=840)
print(view.tooltip)        # "1.0 KiB (100.00%) contribution to peak consumption in main and below."
view.search("alloc")
print(view.search_label)
view.navigate_back(width=840)
```

`merge_allocations` calls `progress` with a completion percentage while it
works. In diff mode `build_caller_callee` drops entries whose costs are all
zero.

### Charts

```python
from heapview.charts import ChartBuilder
from heapview.model import AllocationData

charts = ChartBuilder(graph, allocations, min_time=0, max_time=1000)
charts.handle_time_stamp(1000, AllocationData(allocations=3, leaked=512),
                         allocations, is_final=True)
print(charts.consumed.rows[-1].cost[:3], charts.consumed.labels)
```

Each chart starts with an empty row at `min_time`. Rows closer together
than a 500th of the time span are skipped unless `is_final` is set.

### Size histogram

```python
from heapview.histogram import CountedAllocationInfo, HistogramModel, build_size_histogram

infos = [CountedAllocationInfo(size=24, allocation_index=0, allocations=3)]
model = HistogramModel()
model.reset_data(build_size_histogram(graph, allocations, infos))
print(model.header_data(0), model.data(0, 0))
```

`allocation_index` is a zero-based position in `allocations`. Buckets run
from "0B to 8B" up to "more than 1KB"; column 0 of each row is the bucket
total, columns 1 to 10 the top symbols.

## What this package does not do

`heapview` works on trace data that is already in memory. It does not read
or decompress recorded trace files, apply leak suppressions, draw anything
on screen, open source files in an editor, or provide a command-line
program.