"""The set of placement rows of a die and the placement of cells onto them."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from .rows import PlacementRow

if TYPE_CHECKING:
    from .die import DieInfo
    from .instances import Design, FlipFlop, Gate
    from .library import Library


class Placement:
    """Placement rows sorted bottom-up, with gate blocking and flip-flop legalisation."""

    def __init__(self, library: Library, design: Design, die: DieInfo) -> None:
        self.library = library
        self.design = design
        self.die = die
        self.rows: list[PlacementRow] = []
        self._added: list[PlacementRow] = []

    def add_row(
        self,
        start_x: float,
        start_y: float,
        site_width: float,
        site_height: float,
        site_num: int,
    ) -> PlacementRow:
        """Register a row; it takes effect after :meth:`initialize`."""
        row = PlacementRow(start_x, start_y, site_width, site_height, site_num)
        self._added.append(row)
        return row

    def initialize(self) -> None:
        """Sort the rows by (y, x), link neighbours vertically and number them."""
        self.rows = sorted(self._added, key=lambda r: (r.start_y, r.start_x))
        previous: PlacementRow | None = None
        for index, row in enumerate(self.rows):
            row.idx = index
            if previous is not None:
                previous.up_row = row
                row.down_row = previous
            previous = row

    def _require_rows(self) -> list[PlacementRow]:
        if not self.rows:
            raise ValueError("no placement rows; add rows and call initialize() first")
        return self.rows

    @staticmethod
    def _row_cost(row: PlacementRow, x: float, y_diff: float) -> float:
        if row.x_inrange(x, x):
            return y_diff
        if x < row.start_x:
            return y_diff + (row.start_x - x)
        return y_diff + (x - (row.start_x + row.site_num * row.site_w))

    def closest_row_index(self, x: float, y: float) -> int:
        """Index of the row nearest to (x, y) in Manhattan distance."""
        rows = self._require_rows()
        first = rows[0]
        estimate = int((y - first.start_y) / first.site_h)
        estimate = min(max(estimate, 0), len(rows) - 1)

        idx = estimate
        min_y_diff = math.inf
        for i in range(estimate, len(rows)):
            y_diff = abs(rows[i].start_y - y)
            if y_diff >= min_y_diff:
                break
            idx, min_y_diff = i, y_diff
        for i in range(estimate - 1, -1, -1):
            y_diff = abs(rows[i].start_y - y)
            if y_diff >= min_y_diff:
                break
            idx, min_y_diff = i, y_diff

        if rows[idx].x_inrange(x, x):
            return idx
        min_cost = self._row_cost(rows[idx], x, min_y_diff)

        nearest_y = idx
        for i in range(nearest_y, len(rows)):
            y_diff = abs(rows[i].start_y - y)
            if y_diff >= min_cost:
                break
            cost = self._row_cost(rows[i], x, y_diff)
            if cost < min_cost:
                idx, min_cost = i, cost
        for i in range(nearest_y - 1, -1, -1):
            y_diff = abs(rows[i].start_y - y)
            if y_diff >= min_cost:
                break
            cost = self._row_cost(rows[i], x, y_diff)
            if cost < min_cost:
                idx, min_cost = i, cost
        return idx

    def place_gates(self) -> None:
        """Block the sites under every gate, then drop gaps too narrow for any flip-flop."""
        for gate in self.design.gates.values():
            self.place_gate(gate, gate.x, gate.y, gate.cell.size_x, gate.cell.size_y)

        min_width = min(
            (cell.size_x for table in self.library.ff_table_cost for cell in table),
            default=math.inf,
        )
        if math.isinf(min_width):
            return
        for row in self.rows:
            row.fill_gap(min_width)

    def place_gate(
        self, gate: Gate, x: float, y: float, width: float, height: float
    ) -> None:
        """Block the rectangle (x, y, width, height) in every row it overlaps."""
        rows = self._require_rows()
        xmin, xmax = x, x + width
        ymin, ymax = y, y + height
        closest = self.closest_row_index(x, y)

        for idx in range(closest, len(rows)):
            row = rows[idx]
            if row.start_y > ymax:
                break
            if self._block_in_row(gate, row, xmin, xmax, ymin, ymax, width, height):
                return
        for idx in range(closest - 1, -1, -1):
            row = rows[idx]
            if row.ymax < ymin:
                break
            if self._block_in_row(gate, row, xmin, xmax, ymin, ymax, width, height):
                return

    def _block_in_row(
        self,
        gate: Gate,
        row: PlacementRow,
        xmin: float,
        xmax: float,
        ymin: float,
        ymax: float,
        width: float,
        height: float,
    ) -> bool:
        overlaps, _ = row.x_overlapped(xmin, xmax)
        if not (overlaps and row.y_overlapped(ymin, ymax)):
            return False

        x_in = row.x_inrange(xmin, xmax)
        y_in = row.y_inrange(ymin, ymax)
        row.add_block_anyway(xmin, xmax)
        if x_in and y_in:
            return True
        if not x_in:
            if xmin < row.start_x:
                self.place_gate(gate, xmin, ymin, row.start_x - xmin, height)
            if xmax > row.xmax:
                self.place_gate(gate, row.xmax, ymin, xmax - row.xmax, height)
            if y_in:
                return True
            xmin = max(xmin, row.start_x)
        if ymin < row.start_y:
            self.place_gate(gate, xmin, ymin, width, row.start_y - ymin)
        if ymax > row.ymax:
            self.place_gate(gate, xmin, row.ymax, width, ymax - row.ymax)
        return True

    @staticmethod
    def _tighten(ff: FlipFlop, cost: float, set_constrain: bool) -> None:
        if not set_constrain or (ff.y_allow_dis > cost and ff.x_allow_dis > cost):
            ff.x_allow_dis = cost
            ff.y_allow_dis = cost

    def place_flip_flop(
        self, ff: FlipFlop, set_constrain: bool, displace_constrain: float
    ) -> bool:
        """Move ``ff`` to the free site with least displacement and occupy it.

        With ``set_constrain`` the allowed displacement is limited to
        ``displace_constrain`` percent of the cell's mean side. Returns
        whether a site was found.
        """
        rows = self._require_rows()
        closest = self.closest_row_index(ff.x, ff.y)

        if set_constrain:
            displace = (ff.cell.size_x + ff.cell.size_y) / 2
            ff.x_allow_dis = displace * (displace_constrain / 100)
            ff.y_allow_dis = displace * (displace_constrain / 100)
        else:
            ff.x_allow_dis = math.inf
            ff.y_allow_dis = math.inf

        global_min_cost = math.inf
        best_pos = 0
        best: tuple[int, int] | None = None

        for idx in range(closest, len(rows)):
            row = rows[idx]
            if row.start_y - ff.y > ff.y_allow_dis:
                break
            if ff.y - row.start_y > ff.y_allow_dis:
                continue
            found, best_pos, row_cost = row.try_place(
                ff, best_pos, global_min_cost, set_constrain
            )
            if found and global_min_cost >= row_cost:
                global_min_cost = row_cost
                best = (idx, best_pos)
                self._tighten(ff, global_min_cost, set_constrain)

        for idx in range(closest - 1, -1, -1):
            row = rows[idx]
            if ff.y - row.start_y > ff.y_allow_dis:
                break
            if row.start_y - ff.y > ff.y_allow_dis:
                continue
            found, best_pos, row_cost = row.try_place(
                ff, best_pos, global_min_cost, set_constrain
            )
            if found and global_min_cost > row_cost:
                global_min_cost = row_cost
                best = (idx, best_pos)
                self._tighten(ff, global_min_cost, set_constrain)
                if global_min_cost == 0:
                    break

        if best is None:
            return False
        row_index, site_index = best
        row = rows[row_index]
        start = row.start_x + site_index * row.site_w
        ff.x = start
        ff.y = row.start_y
        ff.update_pin_locations()
        row.add_ff(start, start + ff.cell.size_x, ff.cell.size_y)
        ff.index_to_placement_row = row_index
        ff.index_to_site = site_index
        return True

    def _placed_row(self, ff: FlipFlop) -> PlacementRow:
        index = getattr(ff, "index_to_placement_row", -1)
        if index is None or not 0 <= index < len(self.rows):
            raise ValueError(f"flip-flop {ff.name} has not been placed")
        return self.rows[index]

    def delete_flip_flop(self, ff: FlipFlop) -> None:
        """Free the sites occupied by a placed flip-flop."""
        row = self._placed_row(ff)
        row.delete_ff(ff.x, ff.x + ff.cell.size_x, ff.cell.size_y)

    def place_back_flip_flop(self, ff: FlipFlop) -> None:
        """Occupy again the site a flip-flop was last placed on."""
        row = self._placed_row(ff)
        start = row.start_x + ff.index_to_site * row.site_w
        row.add_ff(start, start + ff.cell.size_x, ff.cell.size_y)

    def fill_dummy(self, min_width: float) -> int:
        """Set aside free ranges narrower than ``min_width`` in every row; return the count."""
        return sum(row.fill_dummy(min_width) for row in self.rows)

    def clear_dummy(self) -> None:
        """Give back the ranges set aside by :meth:`fill_dummy`."""
        for row in self.rows:
            row.clear_dummy()