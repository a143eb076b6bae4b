"""Die geometry, cost weights and bin settings of a design."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class DieInfo:
    """Global parameters of the die read from the design file."""

    alpha: float = 0.0  # TNS weight
    beta: float = 0.0  # power weight
    gamma: float = 0.0  # area weight
    lambda_: float = 0.0  # density weight

    die_width: float = 0.0
    die_height: float = 0.0
    cenx: float = 0.0
    ceny: float = 0.0

    displacement_delay: float = 0.0

    bin_width: float = 0.0
    bin_height: float = 0.0
    bin_util: float = 0.0

    def set_size(self, width: float, height: float) -> None:
        """Set the die size and recompute its centre."""
        self.die_width = width
        self.die_height = height
        self.cenx = width / 2
        self.ceny = height / 2