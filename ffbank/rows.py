"""Placement rows: free-site bookkeeping and legal-location search."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, NamedTuple

if TYPE_CHECKING:
    from .die import DieInfo
    from .instances import FlipFlop, Gate


class SlotSearch(NamedTuple):
    """Outcome of a site search: whether a better site was found, the best
    site index so far and its displacement cost."""

    found: bool
    site_index: int
    cost: float


class RowChoice(NamedTuple):
    """Best row and site found so far, with its displacement cost."""

    row_index: int
    site_index: int
    cost: float


def _round_half_away(value: float) -> int:
    rounded = math.floor(abs(value) + 0.5)
    return int(rounded if value >= 0 else -rounded)


class PlacementRow:
    """A row of equally sized sites with a sorted list of free site ranges.

    ``space_list`` holds inclusive ``(first, last)`` site index ranges that
    are still free, sorted and disjoint.
    """

    def __init__(
        self,
        start_x: float,
        start_y: float,
        site_w: float,
        site_h: float,
        site_num: int,
    ) -> None:
        self.idx = 0
        self.is_tested = False
        self.is_visited = False
        self.start_x = start_x
        self.start_y = start_y
        self.site_w = site_w
        self.site_h = site_h
        self.site_num = site_num
        self.xmax = start_x + site_w * site_num
        self.ymax = start_y + site_h
        self.up_row: PlacementRow | None = None
        self.down_row: PlacementRow | None = None
        self.right_row: PlacementRow | None = None
        self.gates: list[Gate] = []
        self.space_list: list[tuple[int, int]] = [(0, site_num - 1)]
        self._dummies: list[tuple[int, int]] = []

    def __repr__(self) -> str:
        return (
            f"PlacementRow(idx={self.idx}, x={self.start_x}, y={self.start_y}, "
            f"sites={self.site_num})"
        )

    def _site_span(self, start: float, end: float) -> tuple[int, int]:
        first = int((start - self.start_x) / self.site_w)
        last = first + math.ceil((end - start) / self.site_w) - 1
        return first, last

    # ------------------------------------------------------------------
    # Blocking and freeing sites
    # ------------------------------------------------------------------

    def add_block_anyway(self, start: float, end: float) -> None:
        """Mark every site touched by [start, end) as used, clipped to the row."""
        start = max(start, self.start_x)
        end = min(end, self.xmax)
        si, ei = self._site_span(start, end)

        remaining: list[tuple[int, int]] = []
        for first, last in self.space_list:
            if first > ei or si > last:
                remaining.append((first, last))
                continue
            if first <= si - 1:
                remaining.append((first, min(last, si - 1)))
            if ei + 1 <= last:
                remaining.append((max(first, ei + 1), last))
        self.space_list = remaining

    def add_fblock(self, start: float, end: float) -> None:
        """Occupy the sites of a flip-flop lying inside one free range."""
        si, ei = self._site_span(start, end)
        for pos, (first, last) in reversed(list(enumerate(self.space_list))):
            if not first <= si <= last:
                continue
            if si == first and ei == last:
                del self.space_list[pos]
            elif si == first and ei < last:
                self.space_list[pos] = (ei + 1, last)
            elif si > first and ei < last:
                self.space_list[pos] = (first, si - 1)
                self.space_list.insert(pos + 1, (ei + 1, last))
            elif si > first and ei == last:
                self.space_list[pos] = (first, si - 1)
            return

    def delete_fblock(self, start: float, end: float) -> None:
        """Free the sites of a removed flip-flop, merging adjacent ranges."""
        si, ei = self._site_span(start, end)
        spaces = self.space_list

        if not spaces:
            spaces.append((si, ei))
            return
        head_first, head_last = spaces[0]
        if ei < head_first:
            if ei == head_first - 1:
                spaces[0] = (si, head_last)
            else:
                spaces.insert(0, (si, ei))
            return
        tail_first, tail_last = spaces[-1]
        if si > tail_last:
            if si == tail_last + 1:
                spaces[-1] = (tail_first, ei)
            else:
                spaces.append((si, ei))
            return

        for pos, (prev, cur) in enumerate(zip(spaces, spaces[1:]), start=1):
            front = prev[1]
            back = cur[0]
            if not (si > front and ei < back):
                continue
            if si == front + 1 and ei == back - 1:
                spaces[pos - 1] = (prev[0], cur[1])
                del spaces[pos]
            elif si == front + 1:
                spaces[pos - 1] = (prev[0], ei)
            elif ei == back - 1:
                spaces[pos] = (si, cur[1])
            else:
                spaces.insert(pos, (si, ei))
            return

    def add_ff(self, start: float, end: float, height: float) -> None:
        """Occupy [start, end) in this row and in as many rows above as needed."""
        self.add_fblock(start, end)
        if height > self.site_h and self.up_row is not None:
            self.up_row.add_ff(start, end, height - self.site_h)

    def delete_ff(self, start: float, end: float, height: float) -> None:
        """Free [start, end) in this row and the rows above it that it spans."""
        self.delete_fblock(start, end)
        if height > self.site_h and self.up_row is not None:
            self.up_row.delete_ff(start, end, height - self.site_h)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def check_available(self, start: float, end: float, height: float) -> bool:
        """Whether [start, end) is free here and in the rows the height spans.

        A span past the row end continues into the right neighbour row.
        """
        if start < self.start_x:
            return False
        if end > self.xmax:
            if self.right_row is not None and not self.right_row.check_available(
                self.xmax, end, height
            ):
                return False
            end = self.xmax

        si, ei = self._site_span(start, end)
        for first, last in self.space_list:
            if last < si:
                continue
            if first > ei:
                return False
            if first <= si and last >= ei:
                if height > self.site_h:
                    if self.up_row is None:
                        return True
                    return self.up_row.check_available(start, end, height - self.site_h)
                return True
            return False
        return False

    def height_available(self, height: float) -> bool:
        """Whether enough rows are stacked above to hold ``height``."""
        if height <= self.site_h:
            return True
        if self.up_row is not None:
            return self.up_row.height_available(height - self.site_h)
        return False

    def x_overlapped(self, x1: float, x2: float) -> tuple[bool, bool]:
        """Return (overlaps, fits exactly) for the span [x1, x2]."""
        if x1 == self.start_x and x2 == self.xmax:
            return True, True
        if self.start_x >= x2 or self.xmax <= x1:
            return False, False
        return True, False

    def y_overlapped(self, y1: float, y2: float) -> bool:
        return not (self.start_y >= y2 or self.ymax <= y1)

    def x_inrange(self, x1: float, x2: float) -> bool:
        return x1 >= self.start_x and x2 <= self.xmax

    def y_inrange(self, y1: float, y2: float) -> bool:
        return y1 >= self.start_y and y2 <= self.ymax

    def closest_x(self, x: float) -> float:
        """Clamp ``x`` to the horizontal extent of the row."""
        end = self.start_x + self.site_num * self.site_w
        if x < self.start_x:
            return self.start_x
        if x > end:
            return end
        return x

    # ------------------------------------------------------------------
    # Gap handling
    # ------------------------------------------------------------------

    def fill_gap(self, gap_width: float) -> None:
        """Drop interior free ranges narrower than ``gap_width``."""
        if len(self.space_list) <= 2:
            return
        min_w = math.ceil(gap_width / self.site_w)
        head, *middle, tail = self.space_list
        kept = [(a, b) for a, b in middle if b - a + 1 >= min_w]
        self.space_list = [head, *kept, tail]

    def fill_dummy(self, width: float) -> int:
        """Set aside every free range narrower than ``width``; return how many."""
        min_w = math.ceil(width / self.site_w)
        self._dummies = [(a, b) for a, b in self.space_list if b - a + 1 < min_w]
        self.space_list = [(a, b) for a, b in self.space_list if b - a + 1 >= min_w]
        return len(self._dummies)

    def clear_dummy(self) -> None:
        """Return the ranges set aside by :meth:`fill_dummy` to the free list."""
        if not self._dummies:
            return
        self.space_list = sorted(self.space_list + self._dummies)
        self._dummies = []

    def describe_space_list(self) -> str:
        """A readable listing of the free site ranges."""
        ranges = "".join(f"[{a}, {b}] -> " for a, b in self.space_list)
        return f"\nSpace List: {len(self.space_list)}\n{ranges}\n\n"

    # ------------------------------------------------------------------
    # Site search
    # ------------------------------------------------------------------

    @staticmethod
    def _tighten(ff: FlipFlop, cost: float, set_constrain: bool) -> None:
        if not set_constrain or (ff.y_allow_dis > cost and ff.x_allow_dis > cost):
            ff.x_allow_dis = cost
            ff.y_allow_dis = cost

    def segment_min_cost(
        self,
        ff: FlipFlop,
        ds: int,
        de: int,
        dw: int,
        best_pos_idx: int,
        min_cost: float,
        reverse: bool,
        set_constrain: bool,
    ) -> SlotSearch:
        """Scan sites ds..de for the first free one, left to right or reversed.

        A site found only counts if it beats ``min_cost``; the flip-flop's
        allowed displacement is then tightened to the new cost.
        """
        if de - ds + 1 < dw:
            return SlotSearch(False, best_pos_idx, min_cost)

        width = ff.cell.size_x
        height = ff.cell.size_y
        sites = range(de - dw + 1, ds - 1, -1) if reverse else range(ds, de - dw + 2)
        for i in sites:
            s = self.start_x + i * self.site_w
            dist = (ff.x - s) if reverse else (s - ff.x)
            if min_cost <= dist or ff.x_allow_dis <= dist:
                break
            if not self.check_available(s, s + width, height):
                continue
            if abs(ff.x - s) > ff.x_allow_dis:
                break
            cost = abs(ff.x - s) + abs(ff.y - self.start_y)
            if cost < min_cost:
                self._tighten(ff, cost, set_constrain)
                return SlotSearch(True, i, cost)
            break
        return SlotSearch(False, best_pos_idx, min_cost)

    def try_place(
        self,
        ff: FlipFlop,
        best_pos_idx: int,
        global_min_cost: float,
        set_constrain: bool,
    ) -> SlotSearch:
        """Search this row for the site closest to the flip-flop's location."""
        available = False
        best = best_pos_idx
        min_cost = global_min_cost
        dw = math.ceil(ff.cell.size_x / self.site_w)
        nearest = _round_half_away((ff.x - self.start_x) / self.site_w)
        dx = min(max(nearest, 0), self.site_num - 1)

        for first, last in list(self.space_list):
            if last - first + 1 < dw:
                continue
            if first > dx:
                if abs(ff.x - (self.start_x + first * self.site_w)) > ff.x_allow_dis:
                    break
                if available and abs(best - dx) < abs(first - dx):
                    break
                found, best, min_cost = self.segment_min_cost(
                    ff, first, last, dw, best, min_cost, False, set_constrain
                )
                if found:
                    available = True
                    break
            elif first <= dx <= last:
                de = min(dx + dw - 1, last)
                found, best, min_cost = self.segment_min_cost(
                    ff, first, de, dw, best, min_cost, True, set_constrain
                )
                available = available or found
                found, best, min_cost = self.segment_min_cost(
                    ff, dx, last, dw, best, min_cost, False, set_constrain
                )
                if found:
                    available = True
                    break
            else:
                segment_end = self.start_x + (last + 1) * self.site_w
                if abs(ff.x + ff.cell.size_x - segment_end) > ff.x_allow_dis:
                    continue
                found, best, min_cost = self.segment_min_cost(
                    ff, first, last, dw, best, min_cost, True, set_constrain
                )
                available = available or found
        return SlotSearch(available, best, min_cost)

    def _segment_bounds(self, pos: int, is_last: bool, die: DieInfo) -> tuple[float, float]:
        first, last = self.space_list[pos]
        space_start = self.start_x + first * self.site_w
        space_end = self.start_x + (last + 1) * self.site_w
        if is_last and space_end == self.xmax:
            right = self.right_row
            if right is not None:
                if right.space_list and right.space_list[0][0] == 0:
                    space_end = right.start_x + self.site_w * (right.space_list[0][1] + 1)
            else:
                space_end = (
                    self.xmax
                    + math.floor((die.die_width - self.xmax) / self.site_w) * self.site_w
                )
        return space_start, space_end

    def find_space_or_jump(
        self,
        ideal_x: float,
        ideal_y: float,
        global_min_cost: float,
        ask_x: float,
        ask_y: float,
        width: float,
        height: float,
        forward: bool,
        die: DieInfo,
    ) -> float | None:
        """Find the nearest x from ``ask_x`` where a cell of the given size fits.

        Searches rightwards when ``forward`` is true, leftwards otherwise,
        jumping over occupied ranges and checking the rows above for taller
        cells. Returns None once the displacement reaches ``global_min_cost``
        or no space is left.
        """
        if forward and ask_x == self.xmax - self.site_w:
            return None
        if not forward and ask_x == self.start_x:
            return None

        find = False
        count = len(self.space_list)
        pos = 0 if forward else count - 1
        step = 1 if forward else -1
        while 0 <= pos < len(self.space_list):
            displacement = abs(ask_x - ideal_x) + abs(ask_y - ideal_y)
            if displacement >= global_min_cost:
                return None
            is_last = pos == len(self.space_list) - 1
            space_start, space_end = self._segment_bounds(pos, is_last, die)

            have_space = False
            if forward:
                if ask_x >= space_end:
                    pos += step
                    continue
                if space_start > ask_x:
                    find = False
                    ask_x = space_start
                    continue
                if space_end - ask_x >= width:
                    have_space = True
            else:
                if ask_x + width <= space_start:
                    pos += step
                    continue
                if space_end < ask_x + width:
                    find = False
                    ask_x = space_end - math.ceil(width / self.site_w) * self.site_w
                    continue
                if space_start <= ask_x:
                    have_space = True

            if not have_space:
                pos += step
                continue
            if find:
                return ask_x
            if height - self.site_h > 0:
                if self.up_row is None:
                    return ask_x
                reply = self.up_row.find_space_or_jump(
                    ideal_x,
                    ideal_y,
                    global_min_cost,
                    ask_x,
                    ask_y,
                    width,
                    height - self.site_h,
                    forward,
                    die,
                )
                if reply is None:
                    return None
                if reply == ask_x:
                    return reply
                ask_x = reply
                find = True
                continue
            return ask_x
        return None

    def search_placement(
        self,
        ff: FlipFlop,
        best_row_index: int,
        best_site_index: int,
        global_min_cost: float,
        die: DieInfo,
    ) -> RowChoice:
        """Look left then right of the flip-flop for a legal site in this row.

        Returns the given best choice, improved if this row offers a site
        with lower displacement.
        """
        ideal_x, ideal_y = ff.x, ff.y
        width = ff.cell.size_x
        height = ff.cell.size_y
        ask_x = self.start_x + math.floor((ideal_x - self.start_x) / self.site_w) * self.site_w
        ask_y = self.start_y
        ask_x = min(ask_x, self.xmax - self.site_w)

        for forward in (False, True):
            reply = self.find_space_or_jump(
                ideal_x, ideal_y, global_min_cost, ask_x, ask_y, width, height, forward, die
            )
            if reply is not None:
                global_min_cost = abs(ideal_x - reply) + abs(ideal_y - self.start_y)
                best_row_index = self.idx
                best_site_index = int((reply - self.start_x) / self.site_w)
        return RowChoice(best_row_index, best_site_index, global_min_cost)