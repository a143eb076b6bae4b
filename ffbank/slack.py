"""Slack distribution over the netlist and slack-aware pin assignment."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import NamedTuple

from .instances import Design, Gate, Net, Pin, PinKind
from .library import FlipFlopCell


def critical_slack(net: Net) -> float:
    """Smallest slack reachable downstream of ``net``.

    Gates met on the way are marked visited with their own critical slack;
    gates already being traced are skipped.
    """
    result = math.inf
    for pin in net.sinks:
        if pin.kind is PinKind.GATE:
            gate = pin.gate
            if gate.visited:
                value = gate.critical_slack
            elif gate.is_tracking:
                continue
            else:
                gate.is_tracking = True
                value = math.inf
                for out in gate.out_pins:
                    if out.net is not None:
                        value = min(value, critical_slack(out.net))
                gate.visit(value)
            result = min(result, value)
        elif pin.kind is PinKind.FLIP_FLOP:
            result = min(result, pin.dispensed_slack)
        elif pin.kind is not PinKind.DIE:
            raise ValueError(f"pin {pin.name!r} has no known kind")
    return result


def min_critical_slack(gate: Gate) -> float:
    """Smallest critical slack among ``gate`` and the gates feeding it.

    Tracing stops at a gate that is fed directly by a flip-flop.
    """
    if gate.visited:
        return gate.min_cs
    if gate.is_tracking:
        return math.inf

    gate.is_tracking = True
    gate.min_cs = gate.critical_slack

    drivers = [p.net.driver for p in gate.in_pins if p.net is not None]
    drivers = [d for d in drivers if d is not None]
    if any(d.kind is PinKind.FLIP_FLOP for d in drivers):
        gate.visited = True
        return gate.min_cs

    for driver in drivers:
        if driver.kind is PinKind.GATE:
            gate.min_cs = min(gate.min_cs, min_critical_slack(driver.gate))
    gate.visited = True
    return gate.min_cs


def dispense_slack(design: Design) -> None:
    """Share each flip-flop's slack between its Q and D pins."""
    for ff in design.flip_flops.values():
        for d_pin, q_pin in zip(ff.d_pins, ff.q_pins):
            if q_pin.net is None:
                continue
            q_pin.dispensed_slack = critical_slack(q_pin.net)
            if q_pin.dispensed_slack == math.inf:
                q_pin.dispensed_slack = d_pin.slack

    for gate in design.gates.values():
        gate.visited = False
        gate.is_tracking = False

    for ff in design.flip_flops.values():
        for pin in ff.d_pins:
            if pin.net is None or pin.net.driver is None:
                continue
            driver = pin.net.driver
            if driver.kind is PinKind.GATE:
                min_cs = min_critical_slack(driver.gate)
                if min_cs == math.inf:
                    pin.dispensed_slack = pin.slack
                elif pin.dispensed_slack > min_cs:
                    pin.dispensed_slack += pin.dispensed_slack - min_cs
                    pin.dispensed_slack = min(pin.dispensed_slack, pin.slack)
            elif driver.kind is PinKind.DIE:
                pin.dispensed_slack = pin.slack


def _hpwl(ax: float, ay: float, bx: float, by: float) -> float:
    return abs(ax - bx) + abs(ay - by)


def pin_tns(
    pin: Pin, x: float, y: float, is_d: bool, new_type: FlipFlopCell, coeff: float
) -> float:
    """Estimated slack of ``pin`` moved to (x, y) on a cell of ``new_type``.

    Returns 1 when no slack is negative, 0 for an unconnected pin.
    """
    if pin.net is None:
        return 0
    slack = 0.0
    if is_d:
        source = pin.net.driver
        if source is None:
            return 0
        if source.kind is PinKind.FLIP_FLOP:
            ax = (pin.x + source.x) / 2
            ay = (pin.y + source.y) / 2
        else:
            ax, ay = source.x, source.y
        ori = _hpwl(pin.x, pin.y, ax, ay)
        new = _hpwl(x, y, ax, ay)
        slack = pin.dispensed_slack - (new - ori) * coeff
    else:
        delay_change = new_type.qpin_delay - pin.ff.cell.qpin_delay
        for target in pin.net.sinks:
            value = 0.0
            if target.kind is PinKind.FLIP_FLOP:
                ax = (pin.x + target.x) / 2
                ay = (pin.y + target.y) / 2
                ori = _hpwl(pin.x, pin.y, ax, ay)
                new = _hpwl(x, y, ax, ay)
                value = pin.dispensed_slack - (new - ori) * coeff - delay_change
                if value >= pin.dispensed_slack:
                    value = 0.0
            elif target.kind is PinKind.GATE:
                gate_slack = target.gate.critical_slack
                if gate_slack != math.inf:
                    ori = _hpwl(pin.x, pin.y, target.x, target.y)
                    new = _hpwl(x, y, target.x, target.y)
                    value = gate_slack - (new - ori) * coeff - delay_change
                    if value >= gate_slack:
                        value = 0.0
            if value < 0:
                slack += value
    return 1 if slack >= 0 else slack


class TnsResult(NamedTuple):
    """Total negative slack of the best assignment and the pin order per port."""

    total_slack: float
    d_order: list[Pin]
    q_order: list[Pin]


@dataclass(eq=False)
class _PinPair:
    dpin: Pin
    qpin: Pin
    preferences: list[tuple[int, float]] = field(default_factory=list)


@dataclass(eq=False)
class _Port:
    slack: float = 0.0
    partner: _PinPair | None = None
    choices: list[tuple[float, _PinPair]] = field(default_factory=list)


def tns_test(dpins, qpins, cell: FlipFlopCell, coeff: float) -> TnsResult:
    """Assign D/Q pin pairs to the bits of ``cell`` by stable matching.

    The cell is centred on the centroid of the given pins; each pair ranks
    the bits by its estimated slack there and the bits accept the pair with
    the largest slack.
    """
    dpins = list(dpins)
    qpins = list(qpins)
    bit_num = len(dpins)
    if bit_num == 0:
        return TnsResult(0.0, [], [])

    all_pins = dpins + qpins
    cen_x = sum(p.x for p in all_pins) / (bit_num * 2)
    cen_y = sum(p.y for p in all_pins) / (bit_num * 2)
    offsets = list(zip(cell.d_pins[:bit_num], cell.q_pins[:bit_num]))
    if len(offsets) < bit_num:
        raise ValueError(f"cell {cell.name} has fewer than {bit_num} bits")
    rel_x = sum(d.x + q.x for d, q in offsets) / (bit_num * 2)
    rel_y = sum(d.y + q.y for d, q in offsets) / (bit_num * 2)
    origin_x = cen_x - rel_x
    origin_y = cen_y - rel_y

    pending = [_PinPair(d, q) for d, q in zip(dpins, qpins)]
    for pair in pending:
        for idx, (d_off, q_off) in enumerate(offsets):
            d_slack = pin_tns(
                pair.dpin, origin_x + d_off.x, origin_y + d_off.y, True, cell, coeff
            )
            q_slack = pin_tns(
                pair.qpin, origin_x + q_off.x, origin_y + q_off.y, False, cell, coeff
            )
            if d_slack < 0 and q_slack < 0:
                total = d_slack + q_slack
            elif d_slack < 0:
                total = d_slack
            elif q_slack < 0:
                total = q_slack
            else:
                total = d_slack + q_slack
            pair.preferences.append((idx, total))
        pair.preferences.sort(key=lambda item: item[1], reverse=True)

    ports = [_Port() for _ in range(bit_num)]
    remaining = len(pending)
    while remaining > 0:
        for pair in pending:
            if not pair.preferences:
                raise RuntimeError("pin pair ran out of bits to propose to")
            idx, value = pair.preferences.pop(0)
            ports[idx].choices.append((value, pair))

        for port in ports:
            best: _PinPair | None = None
            best_slack = -math.inf
            for value, pair in port.choices:
                if best_slack < value:
                    best_slack = value
                    best = pair
            if best is None:
                continue
            if port.partner is None:
                port.slack = best_slack
                port.partner = best
                pending.remove(best)
                remaining -= 1
            elif port.slack < best_slack:
                pending.append(port.partner)
                port.slack = best_slack
                port.partner = best
                pending.remove(best)
            port.choices.clear()

    total = sum(port.slack for port in ports if port.slack < 0)
    return TnsResult(
        total,
        [port.partner.dpin for port in ports],
        [port.partner.qpin for port in ports],
    )