"""Nets and die I/O pins, connecting the pins of placed instances."""

from __future__ import annotations

from .instances import Design, Net, Pin, PinKind


class NetlistError(Exception):
    """Raised when a net refers to an instance or pin that does not exist."""


class Netlist:
    """All nets of a design together with the die's I/O pins."""

    def __init__(self) -> None:
        self.nets: list[Net] = []
        self.current: Net | None = None
        self.die_pins: dict[str, Pin] = {}
        self.input_count = 0

    def add_net(self, name: str) -> Net:
        """Start a new net; following pins are attached to it."""
        net = Net(name)
        self.nets.append(net)
        self.current = net
        return net

    def add_input_pin(self, name: str, x: float, y: float) -> Pin:
        """Register a die input pin; the first pin of a name is kept."""
        self.input_count += 1
        pin = Pin(name=name, kind=PinKind.DIE, x=x, y=y, is_output=False)
        return self.die_pins.setdefault(name, pin)

    def add_output_pin(self, name: str, x: float, y: float) -> Pin:
        """Register a die output pin; the first pin of a name is kept."""
        pin = Pin(name=name, kind=PinKind.DIE, x=x, y=y, is_output=True)
        return self.die_pins.setdefault(name, pin)

    def add_pin(self, spec: str, design: Design) -> Pin:
        """Attach ``inst/pin`` or a die pin name to the current net."""
        net = self.current
        if net is None:
            raise NetlistError(f"pin {spec!r} given before any net")

        inst_name, slash, pin_name = spec.partition("/")
        if not slash:
            pin = self.die_pins.get(spec)
            if pin is None:
                raise NetlistError(f"cannot find die pin: {spec}")
            pin.net = net
            (net.sinks if pin.is_output else net.drivers).append(pin)
            return pin

        is_gate = design.is_gate.get(inst_name)
        if is_gate is None:
            raise NetlistError(f"cannot find instance: {inst_name}")
        if is_gate:
            return self._add_gate_pin(design, inst_name, pin_name, net)
        return self._add_ff_pin(design, inst_name, pin_name, net)

    @staticmethod
    def _add_gate_pin(design: Design, inst_name: str, pin_name: str, net: Net) -> Pin:
        gate = design.gates.get(inst_name)
        if gate is None:
            raise NetlistError(f"cannot find gate: {inst_name}")
        index = gate.cell.pin_index(pin_name)
        if "IN" in pin_name:
            pins, targets = gate.in_pins, net.sinks
        else:
            pins, targets = gate.out_pins, net.drivers
        try:
            pin = pins[index]
        except IndexError:
            raise NetlistError(f"gate {inst_name} has no pin {pin_name}") from None
        pin.net = net
        targets.append(pin)
        return pin

    @staticmethod
    def _add_ff_pin(design: Design, inst_name: str, pin_name: str, net: Net) -> Pin:
        ff = design.flip_flops.get(inst_name)
        if ff is None:
            raise NetlistError(f"cannot find flip-flop: {inst_name}")

        if "D" in pin_name or "Q" in pin_name:
            is_d = "D" in pin_name
            pins = ff.d_pins if is_d else ff.q_pins
            try:
                pin = pins[ff.cell.pin_index(pin_name)]
            except IndexError:
                raise NetlistError(f"flip-flop {inst_name} has no pin {pin_name}") from None
            pin.net = net
            pin.is_d = is_d
            (net.sinks if is_d else net.drivers).append(pin)
            return pin

        clk = ff.clk_pin
        if clk is None:
            raise NetlistError(f"flip-flop {inst_name} has no clock pin")
        clk.net = net
        net.sinks.append(clk)
        groups = design.ffs_ori
        if groups and groups[-1][-1].clk_pin.net is net:
            groups[-1].append(ff)
        else:
            groups.append([ff])
        return clk