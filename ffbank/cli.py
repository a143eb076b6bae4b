"""Command line entry: analyse a banking result against its design."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .analysis import analyze
from .die import DieInfo
from .draw import draw_ffs, draw_gates
from .instances import Design
from .library import Library
from .netlist import Netlist
from .paths import compute_critical_paths
from .placement import Placement
from .reader import read_input, read_output


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Report size distribution and pin displacement of a banking result."
    )
    parser.add_argument("design", help="design description file")
    parser.add_argument("result", help="banking result file")
    parser.add_argument(
        "--draw-dir", default="Draw", help="directory for the drawing data files"
    )
    args = parser.parse_args(argv)

    library = Library()
    design = Design()
    die = DieInfo()
    netlist = Netlist()
    placement = Placement(library, design, die)

    try:
        read_input(args.design, library, design, die, netlist, placement)
        library.build_ff_tables(die)
        compute_critical_paths(design, die.displacement_delay)
        mbffs = read_output(args.result, library, design)
    except (OSError, ValueError, KeyError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    report = analyze(library, mbffs)
    print(report.format(), end="")

    draw_dir = Path(args.draw_dir)
    draw_dir.mkdir(parents=True, exist_ok=True)
    draw_ffs(die, design, mbffs, draw_dir)
    draw_gates(die, design, draw_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())