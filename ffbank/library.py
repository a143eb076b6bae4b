"""Standard-cell library: gate cells, flip-flop cells and lookup tables."""

from __future__ import annotations

import abc
import sys
from collections.abc import Iterator
from dataclasses import dataclass

FLIP_FLOP = "FlipFlop"
GATE = "Gate"


@dataclass
class PinOffset:
    """A pin position relative to the lower-left corner of its cell."""

    name: str
    x: float
    y: float


class Cell(abc.ABC):
    """A library cell with a size and a set of pins."""

    kind: str = ""

    def __init__(self, name: str, size_x: float, size_y: float, pin_num: int) -> None:
        self.name = name
        self.size_x = size_x
        self.size_y = size_y
        self.area = size_x * size_y
        self.pin_num = pin_num

    @property
    def size(self) -> tuple[float, float]:
        return (self.size_x, self.size_y)

    @abc.abstractmethod
    def add_pin(self, name: str, x: float, y: float) -> None:
        """Record a pin at offset (x, y) from the cell origin."""


class GateCell(Cell):
    """A combinational gate; pins whose name contains ``IN`` are inputs."""

    kind = GATE

    def __init__(self, name: str, size_x: float, size_y: float, pin_num: int) -> None:
        super().__init__(name, size_x, size_y, pin_num)
        self.in_pins: list[PinOffset] = []
        self.out_pins: list[PinOffset] = []
        self._index: dict[str, int] = {}

    def add_pin(self, name: str, x: float, y: float) -> None:
        pins = self.in_pins if "IN" in name else self.out_pins
        self._index.setdefault(name, len(pins))
        pins.append(PinOffset(name, x, y))

    def pin_index(self, name: str) -> int:
        """Position of the pin among the inputs or outputs; 0 if unknown."""
        return self._index.get(name, 0)


class FlipFlopCell(Cell):
    """A (multi-bit) flip-flop; pins whose name contains ``Q`` are outputs."""

    kind = FLIP_FLOP

    def __init__(
        self, name: str, bit_num: int, size_x: float, size_y: float, pin_num: int
    ) -> None:
        super().__init__(name, size_x, size_y, pin_num)
        self.bit_num = bit_num
        self.d_pins: list[PinOffset] = []
        self.q_pins: list[PinOffset] = []
        self.clk_pin: PinOffset | None = None
        self.qpin_delay = 0.0
        self.gate_power = 0.0
        self.cost_per_bit = 0.0
        self.fsr_min_w = 0.0
        self.fsr_min_h = 0.0
        self._index: dict[str, int] = {}

    def add_pin(self, name: str, x: float, y: float) -> None:
        pins = self.q_pins if "Q" in name else self.d_pins
        self._index.setdefault(name, len(pins))
        pins.append(PinOffset(name, x, y))

    def set_clk_pin(self, name: str, x: float, y: float) -> None:
        self.clk_pin = PinOffset(name, x, y)

    def pin_index(self, name: str) -> int:
        """Bit index of a D or Q pin; 0 if unknown."""
        return self._index.get(name, 0)


class Library:
    """All cells of a design, plus flip-flop tables grouped by bit count."""

    def __init__(self) -> None:
        self.cells: dict[str, Cell] = {}
        self.max_ff_size = 0
        self.min_ff_size = sys.maxsize
        self.ff_table_cost: list[list[FlipFlopCell]] = []
        self.ff_table_c2q: list[list[FlipFlopCell]] = []
        self.ff_table_area: list[list[FlipFlopCell]] = []

    def add_cell(self, cell: Cell) -> None:
        """Register a cell; a name already present keeps its first cell."""
        self.cells.setdefault(cell.name, cell)
        if isinstance(cell, FlipFlopCell):
            self.max_ff_size = max(self.max_ff_size, cell.bit_num)
            self.min_ff_size = min(self.min_ff_size, cell.bit_num)

    def _flip_flop(self, name: str) -> FlipFlopCell | None:
        cell = self.cells.get(name)
        return cell if isinstance(cell, FlipFlopCell) else None

    def _flip_flops(self) -> Iterator[FlipFlopCell]:
        return (c for c in self.cells.values() if isinstance(c, FlipFlopCell))

    def set_qpin_delay(self, name: str, delay: float) -> None:
        cell = self._flip_flop(name)
        if cell is not None:
            cell.qpin_delay = delay

    def set_gate_power(self, name: str, power: float) -> None:
        cell = self._flip_flop(name)
        if cell is not None:
            cell.gate_power = power

    def build_ff_tables(self, die) -> None:
        """Group flip-flops by bit count, sorted by cost, clk-to-Q delay and area."""
        size = self.max_ff_size + 1
        self.ff_table_cost = [[] for _ in range(size)]
        self.ff_table_c2q = [[] for _ in range(size)]
        self.ff_table_area = [[] for _ in range(size)]

        for ff in self._flip_flops():
            ff.cost_per_bit = (die.gamma * ff.area + die.beta * ff.gate_power) / ff.bit_num
            self.ff_table_cost[ff.bit_num].append(ff)
            self.ff_table_c2q[ff.bit_num].append(ff)
            self.ff_table_area[ff.bit_num].append(ff)

        for row in self.ff_table_cost:
            row.sort(key=lambda c: c.cost_per_bit)
        for row in self.ff_table_c2q:
            row.sort(key=lambda c: c.qpin_delay)
        for row in self.ff_table_area:
            row.sort(key=lambda c: c.area)

    def get_cell(self, name: str) -> Cell | None:
        return self.cells.get(name)