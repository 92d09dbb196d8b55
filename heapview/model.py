"""Core data types shared by the analysis steps."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True, order=True)
class Symbol:
    """A function within a module, both given as string indices."""

    function_id: int = 0
    module_id: int = 0

    def is_valid(self) -> bool:
        """Return True unless this is the empty symbol."""
        return bool(self.function_id or self.module_id)


@dataclass(frozen=True, order=True)
class FileLine:
    """A source location: a file string index and a line number."""

    file_id: int = 0
    line: int = 0


@dataclass(frozen=True)
class AllocationData:
    """The four cost counters tracked for every allocation site."""

    allocations: int = 0
    temporary: int = 0
    peak: int = 0
    leaked: int = 0

    def __add__(self, other: AllocationData) -> AllocationData:
        if not isinstance(other, AllocationData):
            return NotImplemented
        return AllocationData(
            self.allocations + other.allocations,
            self.temporary + other.temporary,
            self.peak + other.peak,
            self.leaked + other.leaked,
        )

    def __sub__(self, other: AllocationData) -> AllocationData:
        if not isinstance(other, AllocationData):
            return NotImplemented
        return AllocationData(
            self.allocations - other.allocations,
            self.temporary - other.temporary,
            self.peak - other.peak,
            self.leaked - other.leaked,
        )

    def is_zero(self) -> bool:
        """Return True when every counter is zero."""
        return self == AllocationData()


@dataclass(frozen=True)
class Allocation:
    """Cost accumulated for one trace."""

    trace_index: int
    allocations: int = 0
    temporary: int = 0
    peak: int = 0
    leaked: int = 0

    @property
    def cost(self) -> AllocationData:
        return AllocationData(self.allocations, self.temporary, self.peak, self.leaked)


@dataclass(frozen=True)
class Frame:
    """A resolved stack frame."""

    function_id: int = 0
    file_id: int = 0
    line: int = 0


@dataclass(frozen=True)
class InstructionPointer:
    """An instruction pointer with its frame and any inlined frames."""

    frame: Frame = Frame()
    module_id: int = 0
    inlined: tuple[Frame, ...] = ()

    @property
    def symbol(self) -> Symbol:
        return Symbol(self.frame.function_id, self.module_id)


@dataclass(frozen=True)
class Trace:
    """A node in the backtrace tree: an instruction pointer and its caller trace."""

    ip_index: int = 0
    parent_index: int = 0


@dataclass
class TraceGraph:
    """Traces and instruction pointers, addressed by one-based indices."""

    traces: list[Trace] = field(default_factory=list)
    ips: list[InstructionPointer] = field(default_factory=list)
    strings: tuple[str, ...] = ()
    stop_indices: frozenset[int] = frozenset()

    @staticmethod
    def _lookup(items, index, kind, empty):
        if index == 0:
            return empty
        if index < 0 or index > len(items):
            raise IndexError(f"{kind} index {index} out of range")
        return items[index - 1]

    def find_trace(self, index: int) -> Trace:
        """Return the trace at a one-based index; index 0 is the empty trace."""
        return self._lookup(self.traces, index, "trace", Trace())

    def find_ip(self, index: int) -> InstructionPointer:
        """Return the instruction pointer at a one-based index; 0 is empty."""
        return self._lookup(self.ips, index, "instruction pointer", InstructionPointer())

    def is_stop_index(self, function_id: int) -> bool:
        """Return True if unwinding should stop at this function."""
        return function_id in self.stop_indices


@dataclass(eq=False)
class RowData:
    """One node of a call tree."""

    cost: AllocationData
    symbol: Symbol
    parent: Optional[RowData] = field(default=None, repr=False)
    children: list[RowData] = field(default_factory=list)


@dataclass
class TreeData:
    """A call tree together with the string table it refers to."""

    rows: list[RowData] = field(default_factory=list)
    strings: tuple[str, ...] = ()


@dataclass
class LocationCost:
    """Inclusive and self cost at one source location."""

    inclusive_cost: AllocationData = AllocationData()
    self_cost: AllocationData = AllocationData()


@dataclass
class CallerCalleeEntry:
    """Aggregated costs of one symbol, with its callers and callees."""

    inclusive_cost: AllocationData = AllocationData()
    self_cost: AllocationData = AllocationData()
    source_map: dict[FileLine, LocationCost] = field(default_factory=dict)
    callees: dict[Symbol, AllocationData] = field(default_factory=dict)
    callers: dict[Symbol, AllocationData] = field(default_factory=dict)


@dataclass
class CallerCalleeResults:
    """Caller/callee entries per symbol."""

    entries: dict[Symbol, CallerCalleeEntry] = field(default_factory=dict)
    strings: tuple[str, ...] = ()