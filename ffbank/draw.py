"""Dump flip-flop and gate placements as plain text for plotting."""

from __future__ import annotations

import math
from pathlib import Path


def _fmt(value) -> str:
    return f"{value:g}"


def _header(die) -> str:
    parts = (die.die_width, die.die_height, die.bin_width, die.bin_height)
    return " ".join(_fmt(v) for v in parts) + "\n"


def draw_ffs(die, design, mbffs, directory="Draw") -> tuple[Path, Path]:
    """Write the original flip-flops and the placed MBFFs; return both paths.

    Each MBFF's centre is set to the mean of its members' centres.
    """
    out = Path(directory)
    out.mkdir(parents=True, exist_ok=True)

    original = out / "ff_original.txt"
    with original.open("w") as fh:
        fh.write(_header(die))
        fh.write(f"{len(design.flip_flops)}\n")
        for ff in design.flip_flops.values():
            cell = ff.cell
            fh.write(
                f"{ff.name} {cell.bit_num} {_fmt(ff.x)} {_fmt(ff.y)} "
                f"{_fmt(cell.size_x)} {_fmt(cell.size_y)} \n"
            )

    result = out / "placement result.txt"
    with result.open("w") as fh:
        fh.write(_header(die))
        fh.write(f"{len(mbffs)}\n")
        for ff in mbffs:
            cell = ff.cell
            members = list(ff.members)
            if members:
                ff.cen_x = sum(m.cen_x for m in members) / len(members)
                ff.cen_y = sum(m.cen_y for m in members) / len(members)
            else:
                ff.cen_x = ff.cen_y = math.nan
            fh.write(
                f"{ff.name} {cell.bit_num} {_fmt(ff.x)} {_fmt(ff.y)} "
                f"{_fmt(cell.size_x)} {_fmt(cell.size_y)} "
                f"{_fmt(ff.x + cell.size_x / 2)} {_fmt(ff.y + cell.size_y / 2)} "
                f"{_fmt(ff.cen_x)} {_fmt(ff.cen_y)} \n"
            )
    return original, result


def draw_gates(die, design, directory="Draw") -> Path:
    """Write every gate's name, position and size; return the file path."""
    out = Path(directory)
    out.mkdir(parents=True, exist_ok=True)
    path = out / "gate.txt"
    with path.open("w") as fh:
        fh.write(_header(die))
        fh.write(f"{len(design.gates)}\n")
        for gate in design.gates.values():
            fh.write(
                f"{gate.name} {_fmt(gate.x)} {_fmt(gate.y)} "
                f"{_fmt(gate.cell.size_x)} {_fmt(gate.cell.size_y)} \n"
            )
    return path