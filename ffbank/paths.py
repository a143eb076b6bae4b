"""Critical-path lengths and the timing cost of moving flip-flop pins.

Path lengths are kept as half-perimeter wire lengths (HPWL); a clk-to-Q
delay is folded in by dividing it by the displacement delay coefficient.
"""

from __future__ import annotations

import enum

from .instances import Design, FlipFlop, Gate, Pin, PinKind


class PathMode(enum.IntEnum):
    """Which pin positions a critical-path computation uses."""

    ORIGINAL = 0
    NEW = 1


def _hpwl(ax: float, ay: float, bx: float, by: float) -> float:
    return abs(ax - bx) + abs(ay - by)


def _driver(pin: Pin | None) -> Pin | None:
    if pin is None or pin.net is None:
        return None
    return pin.net.driver


def _unknown(pin: Pin) -> ValueError:
    return ValueError(f"pin {pin.name!r} has no known kind")


def _degradation(ori_slack: float, new_slack: float) -> float:
    """Change in negative slack when a pin's slack goes from ori to new."""
    if new_slack < 0:
        return ori_slack - new_slack if ori_slack < 0 else -new_slack
    return ori_slack if ori_slack < 0 else 0.0


def _pin_slack(pin: Pin, displacement_delay: float) -> float:
    return pin.slack - (pin.new_critical_path_hpwl - pin.critical_path_hpwl) * displacement_delay


def compute_critical_paths(design: Design, displacement_delay: float) -> None:
    """Compute the original critical path of every flip-flop D pin."""
    for gate in design.gates.values():
        gate.visited = False
        gate.is_tracking = False
    for ff in design.flip_flops.values():
        flip_flop_critical_path(ff, PathMode.ORIGINAL, displacement_delay)


def flip_flop_critical_path(ff: FlipFlop, mode: PathMode, displacement_delay: float) -> None:
    """Set the critical-path HPWL of each connected D pin of ``ff``.

    In original mode both the original and the new length are set; in new
    mode only the new length, measured from the pins' new positions.
    """
    for pin in ff.d_pins:
        source = _driver(pin)
        if source is None:
            continue
        if mode is PathMode.ORIGINAL:
            if source.kind is PinKind.DIE:
                length = _hpwl(pin.x, pin.y, source.x, source.y)
            elif source.kind is PinKind.FLIP_FLOP:
                length = (
                    _hpwl(pin.x, pin.y, source.x, source.y)
                    + source.ff.cell.qpin_delay / displacement_delay
                )
            elif source.kind is PinKind.GATE:
                length = gate_critical_path(
                    source.gate, mode, displacement_delay
                ) + _hpwl(pin.x, pin.y, source.x, source.y)
            else:
                raise _unknown(source)
            pin.critical_path_hpwl = length
            pin.new_critical_path_hpwl = length
        else:
            if source.kind is PinKind.DIE:
                length = _hpwl(pin.new_x, pin.new_y, source.x, source.y)
            elif source.kind is PinKind.FLIP_FLOP:
                length = (
                    _hpwl(pin.new_x, pin.new_y, source.new_x, source.new_y)
                    + source.new_ff.cell.qpin_delay / displacement_delay
                )
            elif source.kind is PinKind.GATE:
                length = gate_critical_path(
                    source.gate, mode, displacement_delay
                ) + _hpwl(pin.new_x, pin.new_y, source.x, source.y)
            else:
                raise _unknown(source)
            pin.new_critical_path_hpwl = length


def gate_critical_path(gate: Gate, mode: PathMode, displacement_delay: float) -> float:
    """Longest path HPWL arriving at ``gate``; memoised through ``gate.visited``.

    In original mode the input pin on that path becomes the critical pin.
    """
    if gate.visited:
        return gate.critical_path_hpwl

    longest = 0.0
    for pin in gate.in_pins:
        source = _driver(pin)
        if source is None:
            continue
        if source.kind is PinKind.DIE:
            length = _hpwl(pin.x, pin.y, source.x, source.y)
        elif source.kind is PinKind.FLIP_FLOP:
            if mode is PathMode.ORIGINAL:
                length = (
                    _hpwl(pin.x, pin.y, source.x, source.y)
                    + source.ff.cell.qpin_delay / displacement_delay
                )
            else:
                length = (
                    _hpwl(pin.x, pin.y, source.new_x, source.new_y)
                    + source.new_ff.cell.qpin_delay / displacement_delay
                )
        elif source.kind is PinKind.GATE:
            length = gate_critical_path(source.gate, mode, displacement_delay) + _hpwl(
                pin.x, pin.y, source.x, source.y
            )
        else:
            raise _unknown(source)
        if length > longest:
            longest = length
            if mode is PathMode.ORIGINAL:
                gate.critical_pin = pin

    gate.visited = True
    gate.critical_path_hpwl = longest
    gate.new_critical_path_hpwl = longest
    return longest


def _recompute_gate(gate: Gate, displacement_delay: float) -> None:
    gate.critical_pin = None
    gate.new_critical_path_hpwl = 0.0
    for pin in gate.in_pins:
        source = _driver(pin)
        if source is None:
            continue
        if source.kind is PinKind.GATE:
            length = source.gate.new_critical_path_hpwl + _hpwl(
                source.x, source.y, pin.x, pin.y
            )
        elif source.kind is PinKind.FLIP_FLOP:
            length = (
                _hpwl(source.new_x, source.new_y, pin.x, pin.y)
                + source.new_ff.cell.qpin_delay / displacement_delay
            )
        elif source.kind is PinKind.DIE:
            length = _hpwl(source.x, source.y, pin.x, pin.y)
        else:
            continue
        if gate.new_critical_path_hpwl < length:
            gate.new_critical_path_hpwl = length
            gate.critical_pin = pin


def propagate_gate_slack(
    gate: Gate, from_pin: Pin | None, acc_hpwl: float, displacement_delay: float
) -> float:
    """Push a new arrival length ``acc_hpwl`` on ``from_pin`` through ``gate``.

    Returns the total slack degradation of the flip-flop D pins reached.
    """
    if acc_hpwl <= gate.new_critical_path_hpwl:
        if from_pin is not gate.critical_pin:
            return 0.0
        # The critical path may have moved to another input.
        _recompute_gate(gate, displacement_delay)
    else:
        gate.new_critical_path_hpwl = acc_hpwl
        gate.critical_pin = from_pin

    degraded = 0.0
    for out in gate.out_pins:
        if out.net is None:
            continue
        for target in out.net.sinks:
            if target.kind is PinKind.GATE:
                new_acc = gate.new_critical_path_hpwl + _hpwl(out.x, out.y, target.x, target.y)
                degraded += propagate_gate_slack(
                    target.gate, target, new_acc, displacement_delay
                )
            elif target.kind is PinKind.FLIP_FLOP:
                if target.calculating_slack:
                    target.visited = True
                ori = _pin_slack(target, displacement_delay)
                target.new_critical_path_hpwl = gate.new_critical_path_hpwl + _hpwl(
                    out.x, out.y, target.new_x, target.new_y
                )
                degraded += _degradation(ori, _pin_slack(target, displacement_delay))
    return degraded


def propagate_pin_slack(pin: Pin, displacement_delay: float) -> float:
    """Push the new position of Q pin ``pin`` to everything its net drives.

    Returns the total slack degradation of the flip-flop D pins reached.
    """
    if pin.net is None:
        return 0.0
    delay = pin.new_ff.cell.qpin_delay / displacement_delay
    degraded = 0.0
    for target in pin.net.sinks:
        if target.kind is PinKind.GATE:
            acc = _hpwl(pin.new_x, pin.new_y, target.x, target.y) + delay
            degraded += propagate_gate_slack(target.gate, target, acc, displacement_delay)
        elif target.kind is PinKind.FLIP_FLOP:
            if target.calculating_slack:
                target.visited = True
            ori = _pin_slack(target, displacement_delay)
            target.new_critical_path_hpwl = (
                _hpwl(pin.new_x, pin.new_y, target.new_x, target.new_y) + delay
            )
            degraded += _degradation(ori, _pin_slack(target, displacement_delay))
    return degraded


def timing_degradation(ff: FlipFlop, displacement_delay: float) -> float:
    """Slack degradation caused by moving the pins of ``ff`` to their new positions.

    The pins' new positions must be up to date before this is called.
    """
    degraded = 0.0
    for d_pin, q_pin in zip(ff.d_pins, ff.q_pins):
        d_pin.calculating_slack = True
        d_pin.visited = False
        degraded += propagate_pin_slack(q_pin, displacement_delay)
        d_pin.calculating_slack = False

        if d_pin.visited:
            d_pin.visited = False
            continue

        source = _driver(d_pin)
        if source is None:
            continue
        ori = _pin_slack(d_pin, displacement_delay)
        if source.kind is PinKind.FLIP_FLOP:
            d_pin.new_critical_path_hpwl = (
                _hpwl(d_pin.new_x, d_pin.new_y, source.new_x, source.new_y)
                + source.new_ff.cell.qpin_delay / displacement_delay
            )
        elif source.kind is PinKind.GATE:
            d_pin.new_critical_path_hpwl = source.gate.new_critical_path_hpwl + _hpwl(
                d_pin.new_x, d_pin.new_y, source.x, source.y
            )
        else:
            d_pin.new_critical_path_hpwl = _hpwl(d_pin.new_x, d_pin.new_y, source.x, source.y)
        degraded += _degradation(ori, _pin_slack(d_pin, displacement_delay))
    return degraded