import math

import pytest

from ffbank.instances import Design, Net, Pin, PinKind
from ffbank.library import FlipFlopCell, GateCell, Library
from ffbank.netlist import Netlist
from ffbank.slack import (
    critical_slack,
    dispense_slack,
    min_critical_slack,
    pin_tns,
    tns_test,
)


def make_library():
    lib = Library()
    ff1 = FlipFlopCell("FF1", 1, 4, 2, 3)
    ff1.add_pin("D", 0, 1)
    ff1.add_pin("Q", 3, 1)
    ff1.set_clk_pin("CLK", 1, 0)
    lib.add_cell(ff1)
    inv = GateCell("INV", 2, 2, 2)
    inv.add_pin("IN", 0, 1)
    inv.add_pin("OUT", 2, 1)
    lib.add_cell(inv)
    return lib


def chain(extra_sink=False):
    """in0 -> A/D ; A/Q -> G/IN ; G/OUT -> B/D (and C/D)."""
    lib = make_library()
    design = Design()
    for name, x in (("A", 0), ("B", 20), ("C", 30)):
        design.add_instance(lib, name, "FF1", x, 0)
    design.add_instance(lib, "G", "INV", 10, 0)
    nl = Netlist()
    nl.add_input_pin("in0", 0, 0)
    nl.add_net("n0")
    nl.add_pin("in0", design)
    nl.add_pin("A/D", design)
    nl.add_net("n1")
    nl.add_pin("A/Q", design)
    nl.add_pin("G/IN", design)
    nl.add_net("n2")
    nl.add_pin("G/OUT", design)
    nl.add_pin("B/D", design)
    if extra_sink:
        nl.add_pin("C/D", design)
    return design, nl


def test_critical_slack_empty_net_is_infinite():
    assert critical_slack(Net("n")) == math.inf


def test_critical_slack_min_of_ff_sinks_ignores_die():
    net = Net("n")
    a = Pin(kind=PinKind.FLIP_FLOP, dispensed_slack=3.0)
    b = Pin(kind=PinKind.FLIP_FLOP, dispensed_slack=7.0)
    die = Pin(kind=PinKind.DIE)
    net.sinks += [a, die, b]
    assert critical_slack(net) == a.dispensed_slack


def test_critical_slack_unknown_kind_raises():
    net = Net("n")
    net.sinks.append(Pin(name="odd"))
    with pytest.raises(ValueError):
        critical_slack(net)


def test_critical_slack_through_gate():
    design, nl = chain()
    b = design.flip_flops["B"]
    design.set_slack("B", "D", 10.0)
    gate = design.gates["G"]
    q = design.flip_flops["A"].q_pins[0]
    assert critical_slack(q.net) == b.d_pins[0].dispensed_slack
    assert gate.visited is True
    assert gate.critical_slack == b.d_pins[0].dispensed_slack


def test_min_critical_slack_stops_at_flip_flop_driver():
    design, _ = chain()
    gate = design.gates["G"]
    gate.critical_slack = 4.5
    assert min_critical_slack(gate) == 4.5
    assert gate.visited is True


def test_dispense_slack_chain():
    design, _ = chain()
    design.set_slack("A", "D", 4.0)
    design.set_slack("B", "D", 10.0)
    dispense_slack(design)
    a = design.flip_flops["A"]
    b = design.flip_flops["B"]
    assert a.q_pins[0].dispensed_slack == b.d_pins[0].slack / 2
    assert a.d_pins[0].dispensed_slack == a.d_pins[0].slack
    assert b.d_pins[0].dispensed_slack == b.d_pins[0].slack / 2


def test_dispense_slack_returns_redundant_slack():
    design, _ = chain(extra_sink=True)
    design.set_slack("A", "D", 4.0)
    design.set_slack("B", "D", 10.0)
    design.set_slack("C", "D", 2.0)
    dispense_slack(design)
    b_d = design.flip_flops["B"].d_pins[0]
    assert design.flip_flops["A"].q_pins[0].dispensed_slack == 1.0
    assert b_d.dispensed_slack == 9.0
    assert b_d.dispensed_slack <= b_d.slack


def test_dispense_slack_without_downstream_takes_d_slack():
    lib = make_library()
    design = Design()
    design.add_instance(lib, "A", "FF1", 0, 0)
    nl = Netlist()
    nl.add_output_pin("out0", 9, 9)
    nl.add_net("n")
    nl.add_pin("A/Q", design)
    nl.add_pin("out0", design)
    design.set_slack("A", "D", 6.0)
    dispense_slack(design)
    ff = design.flip_flops["A"]
    assert ff.q_pins[0].dispensed_slack == ff.d_pins[0].slack


def _d_pin(x, y, driver_x, driver_y, dispensed):
    net = Net("n")
    net.drivers.append(Pin(kind=PinKind.DIE, x=driver_x, y=driver_y))
    pin = Pin(kind=PinKind.FLIP_FLOP, x=x, y=y, dispensed_slack=dispensed, net=net)
    net.sinks.append(pin)
    return pin


def test_pin_tns_unconnected_is_zero():
    cell = make_library().get_cell("FF1")
    assert pin_tns(Pin(kind=PinKind.FLIP_FLOP), 5, 5, True, cell, 1.0) == 0


def test_pin_tns_positive_returns_one():
    cell = make_library().get_cell("FF1")
    pin = _d_pin(0, 0, 0, 0, 2.0)
    assert pin_tns(pin, 0, 0, True, cell, 1.0) == 1


def test_pin_tns_negative_after_move():
    cell = make_library().get_cell("FF1")
    pin = _d_pin(0, 0, 0, 0, 2.0)
    assert pin_tns(pin, 5, 0, True, cell, 1.0) == -3.0


def test_tns_test_empty():
    cell = make_library().get_cell("FF1")
    assert tns_test([], [], cell, 1.0) == (0.0, [], [])


def _two_bit_cell():
    cell = FlipFlopCell("FF2", 2, 8, 11, 5)
    cell.add_pin("D0", 0, 0)
    cell.add_pin("D1", 0, 10)
    cell.add_pin("Q0", 7, 0)
    cell.add_pin("Q1", 7, 10)
    return cell


def test_tns_test_unconnected_keeps_order():
    cell = _two_bit_cell()
    dpins = [Pin(kind=PinKind.FLIP_FLOP, x=0, y=0), Pin(kind=PinKind.FLIP_FLOP, x=0, y=10)]
    qpins = [Pin(kind=PinKind.FLIP_FLOP, x=7, y=0), Pin(kind=PinKind.FLIP_FLOP, x=7, y=10)]
    result = tns_test(dpins, qpins, cell, 1.0)
    assert result.total_slack == 0
    assert result.d_order == dpins
    assert result.q_order == qpins


def test_tns_test_swaps_to_closest_port():
    cell = _two_bit_cell()
    d_a = _d_pin(0, 10, 0, 10, 0.0)
    d_b = _d_pin(0, 0, 0, 0, 0.0)
    q_a = Pin(kind=PinKind.FLIP_FLOP, x=7, y=10)
    q_b = Pin(kind=PinKind.FLIP_FLOP, x=7, y=0)
    result = tns_test([d_a, d_b], [q_a, q_b], cell, 1.0)
    assert result.d_order == [d_b, d_a]
    assert result.q_order == [q_b, q_a]
    assert result.total_slack == 0