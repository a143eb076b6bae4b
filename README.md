# ffbank

Tools for inspecting the result of multi-bit flip-flop (MBFF) banking on a
placed design.

The package reads a design description (cost weights, die size, I/O pins,
cell library, instances, netlist, bin settings, placement rows, displacement
delay, Q-pin delays, timing slacks and gate power) together with a banking
result that maps every original flip-flop pin onto a new multi-bit
flip-flop. From these it:

- reports how many new flip-flops of each bit width the result uses,
- measures how far every D and Q pin moved, in total, per bit width and per bit,
- writes plot data for the original flip-flops, the banked result and the gates,
- checks a list of placed cells for overlapping rectangles.

## Installation

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Commands

Analyze a banking result against its input design:

```
ffbank-analyze design.txt output.txt
```

This prints the size distribution and pin displacement report and writes
`ff_original.txt`, `placement result.txt` and `gate.txt` to the directory
given by `--draw-dir` (default `Draw`, created if missing). If either file
cannot be read or parsed, an error is printed to standard error and the
command exits with status 1.

Check a cell list for overlapping cells:

```
ffbank-check-overlap cells.txt
```

The cell file starts with a title word and a count, followed by one record
per cell: `name x y width height`. Every pair of cells whose rectangles
overlap (touching edges do not count) is printed with both cells' x extents.
The closing line `Check Done - Legal solution, no overlapped!` is printed
in every case, so look for `ERROR:` lines to see whether overlaps were found.

## Library use

The building blocks are importable on their own:

- `ffbank.die` — `DieInfo`
- `ffbank.library` — `Library`, `FlipFlopCell`, `GateCell`, `PinOffset`
- `ffbank.instances` — `Design`, `FlipFlop`, `Gate`, `Pin`, `Net`;
  `Design.debank_all` splits every clock group into smallest-width flip-flops
- `ffbank.netlist` — `Netlist`, `NetlistError`
- `ffbank.reader` — `read_input`, `read_output`
- `ffbank.paths` — `compute_critical_paths`, `timing_degradation` and the
  slack propagation helpers
- `ffbank.slack` — `dispense_slack`, `critical_slack`, `pin_tns` and
  `tns_test`, which assigns D/Q pin pairs to the bits of a cell by stable matching
- `ffbank.rows` — `PlacementRow` with its list of free site ranges
- `ffbank.placement` — `Placement`: blocking gate areas and placing a
  flip-flop on the free site with least displacement
- `ffbank.analysis` — `analyze` and `AnalysisReport`
- `ffbank.draw` — `draw_ffs`, `draw_gates`
- `ffbank.output` — `write_output`
- `ffbank.overlap` — `read_boxes`, `find_overlaps`

```python
from ffbank.analysis import analyze
from ffbank.die import DieInfo
from ffbank.instances import Design
from ffbank.library import Library
from ffbank.netlist import Netlist
from ffbank.placement import Placement
from ffbank.reader import read_input, read_output

library, design, die, netlist = Library(), Design(), DieInfo(), Netlist()
placement = Placement(library, design, die)
read_input("design.txt", library, design, die, netlist, placement)
library.build_ff_tables(die)
mbffs = read_output("output.txt", library, design)
print(analyze(library, mbffs).format())
```

## What it does not do

The package inspects banking results; it does not produce them. There is no
command that clusters flip-flops into multi-bit cells, chooses their cell
types, legalizes a whole design or computes the final weighted score
(timing, power, area and bin density). `write_output` writes a result file
in the expected format, and `Placement` and `tns_test` are usable pieces,
but assembling them into a banking flow is left to the caller.