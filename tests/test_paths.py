import pytest

from ffbank.instances import Design, Pin
from ffbank.library import FlipFlopCell, GateCell, Library
from ffbank.netlist import Netlist
from ffbank.paths import (
    PathMode,
    compute_critical_paths,
    flip_flop_critical_path,
    gate_critical_path,
    propagate_gate_slack,
    propagate_pin_slack,
    timing_degradation,
)

DD = 0.5


def build():
    lib = Library()
    ff = FlipFlopCell("FF1", 1, 2, 2, 3)
    ff.add_pin("D", 0, 1)
    ff.add_pin("Q", 2, 1)
    ff.set_clk_pin("CLK", 0, 0)
    ff.qpin_delay = 1.0
    gate = GateCell("G", 1, 1, 2)
    gate.add_pin("IN1", 0, 0)
    gate.add_pin("OUT", 1, 0)
    lib.add_cell(ff)
    lib.add_cell(gate)

    design = Design()
    design.add_instance(lib, "A", "FF1", 0, 0)
    design.add_instance(lib, "G1", "G", 10, 0)
    design.add_instance(lib, "B", "FF1", 20, 0)

    nl = Netlist()
    nl.add_input_pin("IN", 0, 0)
    nl.add_net("n1")
    nl.add_pin("IN", design)
    nl.add_pin("A/D", design)
    nl.add_net("n2")
    nl.add_pin("A/Q", design)
    nl.add_pin("G1/IN1", design)
    nl.add_net("n3")
    nl.add_pin("G1/OUT", design)
    nl.add_pin("B/D", design)

    for f in design.flip_flops.values():
        for p in f.d_pins + f.q_pins:
            p.new_ff = f
        f.update_pin_locations()
    return design


def test_pinned_original_paths():
    design = build()
    compute_critical_paths(design, DD)
    a = design.flip_flops["A"]
    b = design.flip_flops["B"]
    g = design.gates["G1"]
    assert a.d_pins[0].critical_path_hpwl == pytest.approx(1.0)
    assert g.critical_path_hpwl == pytest.approx(11.0)
    assert b.d_pins[0].critical_path_hpwl == pytest.approx(21.0)
    assert g.critical_pin is g.in_pins[0]


def test_original_mode_sets_new_equal_to_original():
    design = build()
    compute_critical_paths(design, DD)
    for ff in design.flip_flops.values():
        for p in ff.d_pins:
            assert p.new_critical_path_hpwl == p.critical_path_hpwl
    g = design.gates["G1"]
    assert g.visited is True
    assert g.new_critical_path_hpwl == g.critical_path_hpwl


def test_compute_resets_memo():
    design = build()
    compute_critical_paths(design, DD)
    g = design.gates["G1"]
    expected = g.critical_path_hpwl
    g.critical_path_hpwl = 999.0
    assert gate_critical_path(g, PathMode.ORIGINAL, DD) == 999.0
    compute_critical_paths(design, DD)
    assert g.critical_path_hpwl == expected


def test_new_mode_follows_moved_pins():
    design = build()
    compute_critical_paths(design, DD)
    a = design.flip_flops["A"]
    before = a.d_pins[0].critical_path_hpwl
    a.x = 3
    a.update_pin_locations()
    flip_flop_critical_path(a, PathMode.NEW, DD)
    assert a.d_pins[0].new_critical_path_hpwl == pytest.approx(before + 3)
    assert a.d_pins[0].critical_path_hpwl == before


def test_no_movement_no_degradation():
    design = build()
    compute_critical_paths(design, DD)
    for ff in design.flip_flops.values():
        assert timing_degradation(ff, DD) == 0


def test_move_away_and_back_is_symmetric():
    design = build()
    compute_critical_paths(design, DD)
    b = design.flip_flops["B"]
    design.set_slack("B", "D", 1.0)
    b.x = 30
    b.update_pin_locations()
    worse = timing_degradation(b, DD)
    assert worse > 0
    assert b.d_pins[0].new_critical_path_hpwl > b.d_pins[0].critical_path_hpwl
    b.x = 20
    b.update_pin_locations()
    back = timing_degradation(b, DD)
    assert back == pytest.approx(-worse)
    assert b.d_pins[0].new_critical_path_hpwl == pytest.approx(
        b.d_pins[0].critical_path_hpwl
    )


def test_gate_ignores_shorter_non_critical_arrival():
    design = build()
    compute_critical_paths(design, DD)
    g = design.gates["G1"]
    before = g.new_critical_path_hpwl
    assert propagate_gate_slack(g, Pin(name="other"), 0.0, DD) == 0.0
    assert g.new_critical_path_hpwl == before


def test_gate_longer_arrival_propagates():
    design = build()
    compute_critical_paths(design, DD)
    g = design.gates["G1"]
    b_d = design.flip_flops["B"].d_pins[0]
    gap = b_d.critical_path_hpwl - g.critical_path_hpwl
    degraded = propagate_gate_slack(g, g.in_pins[0], 15.0, DD)
    assert g.new_critical_path_hpwl == 15.0
    assert g.critical_pin is g.in_pins[0]
    assert b_d.new_critical_path_hpwl - 15.0 == pytest.approx(gap)
    assert degraded > 0


def test_pin_slack_on_unconnected_pin_is_zero():
    design = build()
    b = design.flip_flops["B"]
    assert propagate_pin_slack(b.q_pins[0], DD) == 0.0


def test_unknown_driver_kind_raises():
    design = build()
    a = design.flip_flops["A"]
    a.d_pins[0].net.drivers.insert(0, Pin(name="weird"))
    with pytest.raises(ValueError):
        flip_flop_critical_path(a, PathMode.ORIGINAL, DD)