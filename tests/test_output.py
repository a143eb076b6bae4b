import pytest

from ffbank.instances import Design, FlipFlop
from ffbank.library import FlipFlopCell, Library
from ffbank.output import write_output


def make_library():
    lib = Library()
    ff1 = FlipFlopCell("FF1", 1, 4, 2, 3)
    ff1.add_pin("D", 0, 1)
    ff1.add_pin("Q", 3, 1)
    ff1.set_clk_pin("CLK", 1, 0)
    lib.add_cell(ff1)
    ff2 = FlipFlopCell("FF2", 2, 8, 2, 5)
    ff2.add_pin("D0", 0, 0)
    ff2.add_pin("D1", 0, 1)
    ff2.add_pin("Q0", 7, 0)
    ff2.add_pin("Q1", 7, 1)
    ff2.set_clk_pin("CLK", 3, 0)
    lib.add_cell(ff2)
    return lib


@pytest.fixture
def banked():
    lib = make_library()
    design = Design()
    a = design.add_instance(lib, "A", "FF1", 10, 0)
    b = design.add_instance(lib, "B", "FF1", 10, 4)
    m = FlipFlop("M", cell=lib.get_cell("FF2"))
    m.d_pins = [a.d_pins[0], b.d_pins[0]]
    m.q_pins = [a.q_pins[0], b.q_pins[0]]
    m.update_coordinates()
    return design, m


def test_header_and_instance_line(tmp_path, banked):
    design, m = banked
    path = write_output(tmp_path / "out.txt", [m], design)
    lines = path.read_text().splitlines()
    assert lines[0] == "CellInst 1"
    fields = lines[1].split()
    assert fields[:3] == ["Inst", "M", "FF2"]
    assert float(fields[3]) == pytest.approx(m.x)
    assert float(fields[4]) == pytest.approx(m.y)


def test_pin_mapping_lines(tmp_path, banked):
    design, m = banked
    path = write_output(tmp_path / "out.txt", [m], design)
    lines = path.read_text().splitlines()
    assert lines[2:] == [
        "A/D map M/D0",
        "A/Q map M/Q0",
        "A/CLK map M/CLK",
        "B/D map M/D1",
        "B/Q map M/Q1",
        "B/CLK map M/CLK",
    ]


def test_line_count_matches_bits(tmp_path, banked):
    design, m = banked
    path = write_output(tmp_path / "out.txt", [m], design)
    lines = path.read_text().splitlines()
    bits = sum(len(ff.d_pins) for ff in design.flip_flops.values())
    assert len(lines) == 1 + 1 + 3 * bits


def test_unmapped_pin_raises(tmp_path):
    lib = make_library()
    design = Design()
    design.add_instance(lib, "A", "FF1", 0, 0)
    with pytest.raises(ValueError):
        write_output(tmp_path / "out.txt", [], design)