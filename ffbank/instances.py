"""Placed instances: flip-flops, gates, their pins and the nets joining them."""

from __future__ import annotations

import enum
import math
import re
from dataclasses import dataclass, field

from .library import FlipFlopCell, GateCell, Library


class PinKind(enum.Enum):
    """What a pin belongs to."""

    FLIP_FLOP = "f"
    GATE = "g"
    DIE = "d"


@dataclass(eq=False)
class Pin:
    """A pin of a flip-flop, a gate or the die boundary."""

    name: str = ""
    kind: PinKind | None = None
    net: Net | None = field(default=None, repr=False)
    gate: Gate | None = field(default=None, repr=False)
    ff: FlipFlop | None = field(default=None, repr=False)
    is_d: bool = False  # flip-flop pins only
    x: float = 0.0
    y: float = 0.0
    is_output: bool = False  # die pins only: False for an input, True for an output
    slack: float = 0.0  # D pins only
    dispensed_slack: float = 0.0  # share of the slack given to a D or Q pin
    critical_path_hpwl: float = 0.0
    visited: bool = False
    calculating_slack: bool = False
    # Placement on the new multi-bit flip-flop.
    new_name: str = ""
    new_ff: FlipFlop | None = field(default=None, repr=False)
    new_x: float = 0.0
    new_y: float = 0.0
    new_critical_path_hpwl: float = 0.0


@dataclass(eq=False)
class Net:
    """A net: pins that drive it and pins that it drives."""

    name: str
    drivers: list[Pin] = field(default_factory=list, repr=False)
    sinks: list[Pin] = field(default_factory=list, repr=False)

    @property
    def driver(self) -> Pin | None:
        """The first driving pin, if any."""
        return self.drivers[0] if self.drivers else None


@dataclass
class SweepEdge:
    """An opening (0) or closing (1) edge of a flip-flop in a sweep."""

    kind: int
    coor: float
    ff: FlipFlop = field(repr=False)


@dataclass
class Block:
    """An axis-aligned rectangle."""

    xmin: float = 0.0
    xmax: float = 0.0
    ymin: float = 0.0
    ymax: float = 0.0


_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _bit_index(pin_name: str) -> int:
    """Bit index encoded after the first character of a D pin name."""
    rest = pin_name[1:]
    if not rest:
        return 0
    match = _LEADING_INT.match(rest)
    if match is None:
        raise ValueError(f"cannot read a bit index from pin name {pin_name!r}")
    return int(match.group(1))


def _fmt(value: float) -> str:
    return f"{value:g}"


class FlipFlop:
    """A flip-flop instance, original or newly banked."""

    def __init__(
        self, name: str, x: float = 0.0, y: float = 0.0, cell: FlipFlopCell | None = None
    ) -> None:
        self.size = 0
        self.name = name
        self.cell = cell
        self.ideal_x = x
        self.ideal_y = y
        self.x = x
        self.y = y
        self.cen_x = 0.0
        self.cen_y = 0.0
        self.d_pins: list[Pin] = []
        self.q_pins: list[Pin] = []
        self.clk_pin: Pin | None = None

        self.x_allow_dis = math.inf
        self.y_allow_dis = math.inf
        self.index_to_bin_row = -1
        self.index_to_bin_col = -1
        self.index_to_placement_row = -1
        self.index_to_site = -1

        self.pseudo_block = Block()
        self.dist_to_essential = 0.0
        self.distance_to_die_centroid = 0.0
        self.cost = math.inf
        self.no_neighbor = True
        self.members: list[FlipFlop] = []
        self.is_clustered = False
        self.gain = 0.0
        self.members_area_plus_power_gain = 0.0
        self.pin_displacement = 0.0

    def __repr__(self) -> str:
        cell = self.cell.name if self.cell else None
        return f"FlipFlop({self.name!r}, x={self.x}, y={self.y}, cell={cell!r})"

    def _require_cell(self) -> FlipFlopCell:
        if self.cell is None:
            raise ValueError(f"flip-flop {self.name} has no cell type")
        return self.cell

    def set_type(self, cell: FlipFlopCell) -> None:
        """Assign the cell type and recompute the centre from the cell size."""
        self.cell = cell
        self.cen_x = self.x + cell.size_x / 2
        self.cen_y = self.y + cell.size_y / 2

    def set_slack(self, d_pin_name: str, slack: float) -> None:
        """Record the timing slack of a D pin; half of it is dispensed to the pin."""
        pin = self.d_pins[_bit_index(d_pin_name)]
        pin.slack = slack
        pin.dispensed_slack = slack / 2

    def init_pins(self) -> None:
        """Create the D, Q and clock pins at their absolute positions."""
        cell = self._require_cell()
        bits = cell.bit_num
        if len(cell.d_pins) < bits or len(cell.q_pins) < bits:
            raise ValueError(f"cell {cell.name} defines fewer pins than its {bits} bits")
        self.size = bits

        def make(offset) -> Pin:
            return Pin(
                name=offset.name,
                kind=PinKind.FLIP_FLOP,
                ff=self,
                x=self.x + offset.x,
                y=self.y + offset.y,
            )

        self.d_pins = [make(offset) for offset in cell.d_pins[:bits]]
        self.q_pins = [make(offset) for offset in cell.q_pins[:bits]]
        if cell.clk_pin is not None:
            self.clk_pin = make(cell.clk_pin)
        else:
            self.clk_pin = Pin(kind=PinKind.FLIP_FLOP, ff=self, x=self.x, y=self.y)

    def _place_pins(self) -> None:
        cell = self._require_cell()
        for d, q, d_off, q_off in zip(self.d_pins, self.q_pins, cell.d_pins, cell.q_pins):
            d.new_x = self.x + d_off.x
            d.new_y = self.y + d_off.y
            q.new_x = self.x + q_off.x
            q.new_y = self.y + q_off.y

    def update_pin_locations(self) -> None:
        """Move each pin's new position to follow the current location."""
        self._place_pins()

    def update_coordinates(self) -> None:
        """Place the flip-flop so its pin centroid matches that of the mapped pins.

        The location is clamped at zero; each mapped pin is then bound to this
        flip-flop with its new name and position.
        """
        cell = self._require_cell()
        bits = len(self.d_pins)
        pins = self.d_pins + self.q_pins
        if not pins:
            raise ValueError(f"flip-flop {self.name} has no pins to place")
        mx = sum(p.x for p in pins) / len(pins)
        my = sum(p.y for p in pins) / len(pins)
        self.cen_x = mx
        self.cen_y = my

        offsets = list(zip(cell.d_pins[:bits], cell.q_pins[:bits]))
        if len(offsets) < bits:
            raise ValueError(f"cell {cell.name} has fewer than {bits} bits")
        rx = sum(d.x + q.x for d, q in offsets) / (2 * bits) if bits else 0.0
        ry = sum(d.y + q.y for d, q in offsets) / (2 * bits) if bits else 0.0

        self.x = max(0.0, mx - rx)
        self.y = max(0.0, my - ry)

        for d, q, (d_off, q_off) in zip(self.d_pins, self.q_pins, offsets):
            d.new_name = d_off.name
            d.new_ff = self
            d.new_x = self.x + d_off.x
            d.new_y = self.y + d_off.y
            q.new_name = q_off.name
            q.new_ff = self
            q.new_x = self.x + q_off.x
            q.new_y = self.y + q_off.y

    def set_pseudo_block(self, expand_rate: float) -> None:
        """Grow the footprint by ``expand_rate`` percent of its shorter side."""
        cell = self._require_cell()
        expand = min(cell.size_x, cell.size_y) * (expand_rate / 100)
        self.pseudo_block = Block(
            xmin=self.x - expand,
            xmax=self.x + cell.size_x + expand,
            ymin=self.y - expand,
            ymax=self.y + cell.size_y + expand,
        )

    def timing_cost(self, x: float, y: float, displacement_delay: float) -> float:
        """Total negative D-pin slack if the flip-flop were moved to (x, y)."""
        rel_x = x - self.x
        rel_y = y - self.y
        cost = 0.0
        for pin in self.d_pins:
            driver = pin.net.driver if pin.net is not None else None
            if driver is None:
                continue
            pin_x = pin.new_x + rel_x
            pin_y = pin.new_y + rel_y
            ori = abs(pin.x - driver.x) + abs(pin.y - driver.y)
            new = abs(pin_x - driver.x) + abs(pin_y - driver.y)
            slack = pin.slack - (new - ori) * displacement_delay
            if slack < 0:
                cost -= slack
        return cost

    def calculate_cost(
        self, alpha: float, beta: float, gamma: float, displacement_delay: float
    ) -> float:
        """Weighted sum of timing cost, power and area; stored and returned."""
        cell = self._require_cell()
        self.cost = (
            alpha * self.timing_cost(self.x, self.y, displacement_delay)
            + beta * cell.gate_power
            + gamma * cell.area
        )
        return self.cost


class Gate:
    """A combinational gate instance."""

    def __init__(
        self, name: str, x: float = 0.0, y: float = 0.0, cell: GateCell | None = None
    ) -> None:
        self.name = name
        self.cell = cell
        self.x = x
        self.y = y
        self.in_pins: list[Pin] = []
        self.out_pins: list[Pin] = []
        self.visited = False
        self.critical_slack = math.inf
        self.consume_time = -math.inf
        self.is_tracking = False
        self.min_cs = math.inf
        self.critical_path_hpwl = 0.0
        self.new_critical_path_hpwl = 0.0
        self.critical_pin: Pin | None = None

    def __repr__(self) -> str:
        cell = self.cell.name if self.cell else None
        return f"Gate({self.name!r}, x={self.x}, y={self.y}, cell={cell!r})"

    def set_type(self, cell: GateCell) -> None:
        self.cell = cell

    def init_pins(self) -> None:
        """Create the input and output pins at their absolute positions."""
        if self.cell is None:
            raise ValueError(f"gate {self.name} has no cell type")

        def make(offset) -> Pin:
            return Pin(
                name=offset.name,
                kind=PinKind.GATE,
                gate=self,
                x=self.x + offset.x,
                y=self.y + offset.y,
            )

        self.in_pins = [make(offset) for offset in self.cell.in_pins]
        self.out_pins = [make(offset) for offset in self.cell.out_pins]

    def visit(self, critical_slack: float) -> None:
        """Mark the gate visited with the given critical slack."""
        self.visited = True
        self.critical_slack = critical_slack


class Design:
    """Every flip-flop and gate instance of a design."""

    def __init__(self) -> None:
        self.ff_num = 0
        self.is_gate: dict[str, bool] = {}
        self.flip_flops: dict[str, FlipFlop] = {}
        self.gates: dict[str, Gate] = {}
        self.ffs_ori: list[list[FlipFlop]] = []  # grouped by clock net
        self.ffs_sing: list[list[FlipFlop]] = []  # debanked groups

    def add_instance(
        self, library: Library, name: str, type_name: str, x: float, y: float
    ) -> FlipFlop | Gate:
        """Create an instance of a library cell; the first of a name is kept."""
        cell = library.get_cell(type_name)
        if cell is None:
            raise KeyError(f"instance {name}: no library cell named {type_name!r}")
        if isinstance(cell, FlipFlopCell):
            ff = FlipFlop(name, x, y)
            ff.set_type(cell)
            ff.init_pins()
            self.flip_flops.setdefault(name, ff)
            self.is_gate.setdefault(name, False)
            self.ff_num += cell.bit_num
            return ff
        gate = Gate(name, x, y)
        gate.set_type(cell)
        gate.init_pins()
        self.gates.setdefault(name, gate)
        self.is_gate.setdefault(name, True)
        return gate

    def set_slack(self, inst_name: str, pin_name: str, slack: float) -> None:
        """Record a D-pin slack; unknown instances are ignored."""
        ff = self.flip_flops.get(inst_name)
        if ff is not None:
            ff.set_slack(pin_name, slack)

    def debank_all(self, library: Library) -> None:
        """Split every clock group into flip-flops of the smallest bit count.

        Multi-bit originals take the cheapest smallest cell; single-bit ones
        keep their own. Unconnected D pins are dropped.
        """
        self.ffs_sing = []
        count = 0
        for group in self.ffs_ori:
            singles: list[FlipFlop] = []
            self.ffs_sing.append(singles)
            for ori in group:
                new_ff: FlipFlop | None = None
                for d_pin, q_pin in zip(ori.d_pins, ori.q_pins):
                    if d_pin.net is None:
                        continue
                    if new_ff is None:
                        new_ff = FlipFlop(f"NFSB{count}")
                        count += 1
                        if ori.cell.bit_num > 1:
                            new_ff.cell = library.ff_table_cost[library.min_ff_size][0]
                        else:
                            new_ff.cell = ori.cell
                        new_ff.clk_pin = Pin()
                        singles.append(new_ff)
                    d_pin.new_ff = new_ff
                    q_pin.new_ff = new_ff
                    new_ff.d_pins.append(d_pin)
                    new_ff.q_pins.append(q_pin)
                    new_ff.size += 1
                    if new_ff.size == library.min_ff_size:
                        new_ff.update_coordinates()
                        new_ff = None
                if new_ff is not None:
                    new_ff.update_coordinates()

    def describe_flip_flops(self) -> str:
        """A readable listing of every flip-flop and its D-pin slacks."""
        parts = []
        for name, ff in self.flip_flops.items():
            lines = [
                "",
                f"Inst Name: {name}",
                f"Type Name: {ff.cell.name if ff.cell else ''}",
                f"Pos X: {_fmt(ff.x)}",
                f"Pos Y: {_fmt(ff.y)}",
            ]
            lines += [f"Pin Name: {p.name} -> Slack = {_fmt(p.slack)}" for p in ff.d_pins]
            lines.append("")
            parts.append("\n".join(lines) + "\n")
        return "".join(parts)

    def describe_gates(self) -> str:
        """A readable listing of every gate."""
        parts = []
        for name, gate in self.gates.items():
            lines = [
                "",
                f"Inst Name: {name}",
                f"Type Name: {gate.cell.name if gate.cell else ''}",
                f"Pos X: {_fmt(gate.x)}",
                f"Pos Y: {_fmt(gate.y)}",
                "",
            ]
            parts.append("\n".join(lines) + "\n")
        return "".join(parts)