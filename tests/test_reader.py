import pytest

from ffbank.die import DieInfo
from ffbank.instances import Design
from ffbank.library import Library
from ffbank.netlist import Netlist
from ffbank.output import write_output
from ffbank.reader import read_input, read_output

DESIGN = """\
Alpha 1
Beta 5
Gamma 5
Lambda 10
DieSize 0 0 50 30
NumInput 2
Input INPUT0 0 25
Input CLK 0 10
NumOutput 1
Output OUTPUT0 50 25
FlipFlop 1 FF1 5 10 3
Pin D 0 8
Pin Q 5 8
Pin CLK 0 2
FlipFlop 2 FF2 8 10 5
Pin D0 0 9
Pin D1 0 6
Pin Q0 8 9
Pin Q1 8 6
Pin CLK 0 2
Gate G1 5 10 2
Pin IN1 0 8
Pin OUT 5 2
NumInstances 3
Inst C1 FF1 20 0
Inst C2 FF1 20 10
Inst C3 G1 10 0
NumNets 4
Net N1 2
Pin INPUT0
Pin C1/D
Net N2 2
Pin C1/Q
Pin C3/IN1
Net N3 2
Pin C3/OUT
Pin C2/D
Net N4 3
Pin CLK
Pin C1/CLK
Pin C2/CLK
BinWidth 10
BinHeight 10
BinMaxUtil 79
PlacementRows 0 0 2 10 25
PlacementRows 0 10 2 10 25
DisplacementDelay 0.01
QpinDelay FF1 1.0
QpinDelay FF2 2.0
TimingSlack C1 D 1.0
TimingSlack C2 D 3.0
GatePower FF1 10.0
GatePower FF2 17.0
"""

RESULT = """\
CellInst 1
Inst M1 FF2 20 5
C1/D map M1/D0
C1/Q map M1/Q0
C1/CLK map M1/CLK
C2/D map M1/D1
C2/Q map M1/Q1
C2/CLK map M1/CLK
"""


class RecordingPlacement:
    def __init__(self):
        self.rows = []
        self.initialized = False

    def add_row(self, *args):
        self.rows.append(args)

    def initialize(self):
        self.initialized = True


def load(tmp_path, text=DESIGN):
    path = tmp_path / "design.txt"
    path.write_text(text)
    lib, design, die, nl, pm = Library(), Design(), DieInfo(), Netlist(), RecordingPlacement()
    read_input(path, lib, design, die, nl, pm)
    return lib, design, die, nl, pm


def test_die_and_weights(tmp_path):
    _, _, die, _, _ = load(tmp_path)
    assert (die.alpha, die.beta, die.gamma, die.lambda_) == (1, 5, 5, 10)
    assert (die.die_width, die.die_height) == (50, 30)
    assert die.cenx == 25 and die.ceny == 15
    assert (die.bin_width, die.bin_height, die.bin_util) == (10, 10, 79)
    assert die.displacement_delay == 0.01


def test_library_cells(tmp_path):
    lib, _, _, _, _ = load(tmp_path)
    ff1 = lib.get_cell("FF1")
    assert ff1.clk_pin.name == "CLK"
    assert [p.name for p in ff1.d_pins] == ["D"]
    assert ff1.qpin_delay == 1.0 and ff1.gate_power == 10.0
    assert lib.get_cell("FF2").gate_power == 17.0
    assert [p.name for p in lib.get_cell("G1").in_pins] == ["IN1"]
    assert (lib.min_ff_size, lib.max_ff_size) == (1, 2)


def test_instances_nets_and_rows(tmp_path):
    _, design, _, nl, pm = load(tmp_path)
    assert set(design.flip_flops) == {"C1", "C2"}
    assert set(design.gates) == {"C3"}
    c1, c2 = design.flip_flops["C1"], design.flip_flops["C2"]
    assert c1.d_pins[0].slack == 1.0
    assert c1.d_pins[0].dispensed_slack == 0.5
    assert c2.d_pins[0].slack == 3.0
    assert [n.name for n in nl.nets] == ["N1", "N2", "N3", "N4"]
    assert design.ffs_ori == [[c1, c2]]
    assert pm.rows == [(0, 0, 2, 10, 25), (0, 10, 2, 10, 25)]
    assert pm.initialized is True


def test_truncated_input_raises(tmp_path):
    with pytest.raises(ValueError):
        load(tmp_path, "Alpha 1\nBeta")


def test_unknown_instance_type_raises(tmp_path):
    with pytest.raises(KeyError):
        load(tmp_path, DESIGN.replace("Inst C3 G1", "Inst C3 NOPE"))


def test_read_output_maps_pins(tmp_path):
    lib, design, _, _, _ = load(tmp_path)
    path = tmp_path / "result.txt"
    path.write_text(RESULT)
    mbffs = read_output(path, lib, design)
    assert [m.name for m in mbffs] == ["M1"]
    m = mbffs[0]
    c1, c2 = design.flip_flops["C1"], design.flip_flops["C2"]
    assert m.cell is lib.get_cell("FF2")
    assert (m.x, m.y) == (20, 5)
    assert m.d_pins == [c1.d_pins[0], c2.d_pins[0]]
    assert m.q_pins == [c1.q_pins[0], c2.q_pins[0]]
    assert m.members == [c1, c2]


def test_read_output_unknown_flip_flop(tmp_path):
    lib, design, _, _, _ = load(tmp_path)
    path = tmp_path / "result.txt"
    path.write_text(RESULT.replace("C2/D map", "ZZ/D map"))
    with pytest.raises(KeyError):
        read_output(path, lib, design)


def test_output_round_trip(tmp_path):
    lib, design, _, _, _ = load(tmp_path)
    path = tmp_path / "result.txt"
    path.write_text(RESULT)
    first = read_output(path, lib, design)[0]
    first.update_coordinates()
    again_path = tmp_path / "again.txt"
    write_output(again_path, [first], design)
    second = read_output(again_path, lib, design)[0]
    assert second.name == first.name
    assert second.d_pins == first.d_pins
    assert second.q_pins == first.q_pins
    assert second.members == first.members
    assert second.x == pytest.approx(first.x, rel=1e-5)
    assert second.y == pytest.approx(first.y, rel=1e-5)