"""Write the banked flip-flops and the original-to-new pin mapping."""

from __future__ import annotations

from pathlib import Path

from .instances import Design, Pin


def _fmt(value: float) -> str:
    return f"{value:g}"


def _mapping(ff_name: str, pin: Pin) -> str:
    if pin.new_ff is None:
        raise ValueError(f"pin {ff_name}/{pin.name} is not mapped to a new flip-flop")
    return f"{ff_name}/{pin.name} map {pin.new_ff.name}/{pin.new_name}\n"


def write_output(path, mbffs, design: Design) -> Path:
    """Write the new instances and, per original bit, its D, Q and CLK mapping."""
    mbffs = list(mbffs)
    lines = [f"CellInst {len(mbffs)}\n"]
    lines += [
        f"Inst {ff.name} {ff.cell.name} {_fmt(ff.x)} {_fmt(ff.y)}\n" for ff in mbffs
    ]
    for ff in design.flip_flops.values():
        for d_pin, q_pin in zip(ff.d_pins, ff.q_pins):
            lines.append(_mapping(ff.name, d_pin))
            lines.append(_mapping(ff.name, q_pin))
            lines.append(f"{ff.name}/CLK map {q_pin.new_ff.name}/CLK\n")
    out = Path(path)
    out.write_text("".join(lines))
    return out