"""Readers for the design description and for a banking result."""

from __future__ import annotations

from pathlib import Path

from .instances import Design, FlipFlop
from .library import FlipFlopCell, GateCell, Library


class _Tokens:
    """Whitespace-separated tokens of a file, consumed in order."""

    def __init__(self, path) -> None:
        self._path = str(path)
        self._items = Path(path).read_text().split()
        self._pos = 0

    def optional(self) -> str | None:
        if self._pos >= len(self._items):
            return None
        item = self._items[self._pos]
        self._pos += 1
        return item

    def remaining(self) -> int:
        return len(self._items) - self._pos

    def word(self, what: str) -> str:
        item = self.optional()
        if item is None:
            raise ValueError(f"{self._path}: unexpected end of file, expected {what}")
        return item

    def number(self, what: str) -> float:
        item = self.word(what)
        try:
            return float(item)
        except ValueError:
            raise ValueError(f"{self._path}: expected a number for {what}, got {item!r}") from None

    def integer(self, what: str) -> int:
        item = self.word(what)
        try:
            return int(item)
        except ValueError:
            raise ValueError(f"{self._path}: expected an integer for {what}, got {item!r}") from None

    def labelled(self, what: str) -> float:
        self.word(f"{what} label")
        return self.number(what)


def _read_flip_flop(tokens: _Tokens) -> FlipFlopCell:
    bit_num = tokens.integer("bit count")
    name = tokens.word("cell name")
    size_x = tokens.number("cell width")
    size_y = tokens.number("cell height")
    pin_num = tokens.integer("pin count")
    cell = FlipFlopCell(name, bit_num, size_x, size_y, pin_num)
    for _ in range(pin_num):
        title = tokens.word("pin label")
        pin_name = tokens.word("pin name")
        x = tokens.number("pin x")
        y = tokens.number("pin y")
        if title == "CLK" or pin_name == "CLK":
            cell.set_clk_pin(pin_name, x, y)
        else:
            cell.add_pin(pin_name, x, y)
    return cell


def _read_gate(tokens: _Tokens) -> GateCell:
    name = tokens.word("cell name")
    size_x = tokens.number("cell width")
    size_y = tokens.number("cell height")
    pin_num = tokens.integer("pin count")
    cell = GateCell(name, size_x, size_y, pin_num)
    for _ in range(pin_num):
        tokens.word("pin label")
        pin_name = tokens.word("pin name")
        cell.add_pin(pin_name, tokens.number("pin x"), tokens.number("pin y"))
    return cell


def read_input(path, library: Library, design: Design, die, netlist, placement) -> None:
    """Read a design file into the library, instances, die, netlist and rows."""
    tokens = _Tokens(path)

    die.alpha = tokens.labelled("Alpha")
    die.beta = tokens.labelled("Beta")
    die.gamma = tokens.labelled("Gamma")
    die.lambda_ = tokens.labelled("Lambda")

    tokens.word("DieSize label")
    tokens.number("die origin x")
    tokens.number("die origin y")
    width = tokens.number("die width")
    height = tokens.number("die height")
    die.set_size(width, height)

    tokens.word("input count label")
    for _ in range(tokens.integer("input count")):
        tokens.word("input label")
        name = tokens.word("input name")
        netlist.add_input_pin(name, tokens.number("input x"), tokens.number("input y"))

    tokens.word("output count label")
    for _ in range(tokens.integer("output count")):
        tokens.word("output label")
        name = tokens.word("output name")
        netlist.add_output_pin(name, tokens.number("output x"), tokens.number("output y"))

    while True:
        title = tokens.word("library entry")
        if title == "FlipFlop":
            library.add_cell(_read_flip_flop(tokens))
        elif title == "Gate":
            library.add_cell(_read_gate(tokens))
        else:
            break

    for _ in range(tokens.integer("instance count")):
        tokens.word("instance label")
        name = tokens.word("instance name")
        type_name = tokens.word("instance type")
        x = tokens.number("instance x")
        y = tokens.number("instance y")
        design.add_instance(library, name, type_name, x, y)

    tokens.word("net count label")
    for _ in range(tokens.integer("net count")):
        tokens.word("net label")
        netlist.add_net(tokens.word("net name"))
        for _ in range(tokens.integer("net pin count")):
            tokens.word("pin label")
            netlist.add_pin(tokens.word("pin name"), design)

    die.bin_width = tokens.labelled("BinWidth")
    die.bin_height = tokens.labelled("BinHeight")
    die.bin_util = tokens.labelled("BinMaxUtil")

    while tokens.word("placement row label") == "PlacementRows":
        x = tokens.number("row x")
        y = tokens.number("row y")
        site_w = tokens.number("site width")
        site_h = tokens.number("site height")
        site_num = tokens.integer("site count")
        placement.add_row(x, y, site_w, site_h, site_num)
    placement.initialize()

    die.displacement_delay = tokens.number("DisplacementDelay")

    title = tokens.optional()
    while title == "QpinDelay":
        name = tokens.word("cell name")
        library.set_qpin_delay(name, tokens.number("Q pin delay"))
        title = tokens.optional()

    while title == "TimingSlack":
        name = tokens.word("instance name")
        pin_name = tokens.word("pin name")
        design.set_slack(name, pin_name, tokens.number("slack"))
        title = tokens.optional()

    while title == "GatePower":
        name = tokens.word("cell name")
        library.set_gate_power(name, tokens.number("gate power"))
        title = tokens.optional()


def read_output(path, library: Library, design: Design) -> list[FlipFlop]:
    """Read a banking result: the new flip-flops and their pin mapping.

    Each new flip-flop's D and Q slots are filled with the original pins
    mapped onto them; originals are recorded as members in mapping order.
    """
    tokens = _Tokens(path)
    tokens.word("CellInst label")
    count = tokens.integer("instance count")

    mbffs: dict[str, FlipFlop] = {}
    for _ in range(count):
        tokens.word("instance label")
        name = tokens.word("instance name")
        type_name = tokens.word("instance type")
        x = tokens.number("instance x")
        y = tokens.number("instance y")
        cell = library.get_cell(type_name)
        if not isinstance(cell, FlipFlopCell):
            raise KeyError(f"instance {name}: no flip-flop cell named {type_name!r}")
        mbff = FlipFlop(name, x, y)
        mbff.cell = cell
        mbff.d_pins = [None] * cell.bit_num
        mbff.q_pins = [None] * cell.bit_num
        mbffs.setdefault(name, mbff)

    last = ("", "")
    while tokens.remaining() >= 3:
        source = tokens.word("original pin")
        tokens.word("map keyword")
        target = tokens.word("new pin")
        ori_name, slash1, ori_pin = source.partition("/")
        new_name, slash2, new_pin = target.partition("/")
        if not slash1 or not slash2:
            break

        ori = design.flip_flops.get(ori_name)
        if ori is None:
            raise KeyError(f"cannot find flip-flop: {ori_name}")
        new = mbffs.get(new_name)
        if new is None:
            raise KeyError(f"cannot find flip-flop: {new_name}")

        if "D" in ori_pin:
            ori_pins, new_pins = ori.d_pins, new.d_pins
        elif "Q" in ori_pin:
            ori_pins, new_pins = ori.q_pins, new.q_pins
        else:
            continue
        try:
            new_pins[new.cell.pin_index(new_pin)] = ori_pins[ori.cell.pin_index(ori_pin)]
        except IndexError:
            raise ValueError(f"cannot map {source} to {target}") from None

        if (ori_name, new_name) != last:
            new.members.append(ori)
        last = (ori_name, new_name)

    return list(mbffs.values())