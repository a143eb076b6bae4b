"""Statistics of a banking result: size distribution and pin displacement."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from .library import Library


def _fmt(value: float) -> str:
    return f"{value:g}"


@dataclass
class AnalysisReport:
    """Counts of new flip-flops per bit size and how far their pins moved."""

    size_counts: list[int]
    displacement_by_size: list[float]
    total_displacement: float = 0.0
    pin_displacement: dict[str, float] = field(default_factory=dict)

    def _per_bit(self, size: int) -> float:
        bits = self.size_counts[size] * size
        return self.displacement_by_size[size] / bits if bits else math.nan

    def format(self) -> str:
        """The report as printed text."""
        sizes = range(1, len(self.size_counts))
        border = "+---------------------+"
        rule = "=" * 57
        lines = [
            "",
            "Analyzing MBFF size distribution ...",
            border,
            "|  Size  Distribution |",
            border,
        ]
        lines += [f"|  Size {s:>3} |   {self.size_counts[s]:>5}    |" for s in sizes]
        lines += [border, "", "", "Analyzing the displacement of pins ..."]
        lines.append(f"Total pin displacement: {_fmt(self.total_displacement)}")
        lines.append(rule)
        lines += [
            f"Size {s} total displacement: {_fmt(self.displacement_by_size[s])}"
            for s in sizes
        ]
        lines.append(rule)
        lines += [f"Size {s} displacement per bit: {_fmt(self._per_bit(s))}" for s in sizes]
        return "\n".join(lines) + "\n"


def analyze(library: Library, mbffs) -> AnalysisReport:
    """Count the new flip-flops by size and sum the displacement of their pins.

    The pins' new positions are refreshed from each flip-flop's location.
    """
    mbffs = list(mbffs)
    size = library.max_ff_size + 1
    report = AnalysisReport([0] * size, [0.0] * size)
    for ff in mbffs:
        report.size_counts[ff.cell.bit_num] += 1

    for ff in mbffs:
        ff.update_pin_locations()

    for ff in mbffs:
        bits = ff.cell.bit_num
        moved = 0.0
        for d_pin, q_pin in zip(ff.d_pins[:bits], ff.q_pins[:bits]):
            moved += abs(d_pin.x - d_pin.new_x) + abs(d_pin.y - d_pin.new_y)
            moved += abs(q_pin.x - q_pin.new_x) + abs(q_pin.y - q_pin.new_y)
        report.pin_displacement[ff.name] = moved
        report.total_displacement += moved
        report.displacement_by_size[bits] += moved
    return report