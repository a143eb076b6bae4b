"""Overlap checker for a list of placed rectangular cells."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Box:
    """A placed cell: lower-left corner and size."""

    name: str
    x: float
    y: float
    width: float
    height: float

    @property
    def min_x(self) -> float:
        return self.x

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def max_y(self) -> float:
        return self.y + self.height


def _fmt(value: float) -> str:
    return f"{value:g}"


def read_boxes(path) -> list[Box]:
    """Read ``<title> <count>`` followed by ``name x y w h`` records."""
    tokens = Path(path).read_text().split()
    if len(tokens) < 2:
        raise ValueError(f"{path}: missing header")
    try:
        count = int(tokens[1])
    except ValueError as exc:
        raise ValueError(f"{path}: bad cell count {tokens[1]!r}") from exc
    body = tokens[2:]
    if len(body) < 5 * count:
        raise ValueError(f"{path}: expected {count} cells, file is truncated")
    boxes = []
    for i in range(count):
        name, *numbers = body[5 * i : 5 * i + 5]
        try:
            x, y, w, h = map(float, numbers)
        except ValueError as exc:
            raise ValueError(f"{path}: bad numbers for cell {name}") from exc
        boxes.append(Box(name, x, y, w, h))
    return boxes


def find_overlaps(boxes: list[Box]) -> list[tuple[Box, Box]]:
    """Return every overlapping pair, found by a left-to-right sweep.

    Each pair is (already active box, newly entering box). Boxes that only
    touch along an edge do not overlap.
    """
    edges = []
    for index, box in enumerate(boxes):
        edges.append((box.min_x, 0, index))
        edges.append((box.max_x, 1, index))
    # At equal coordinates, closing edges come before opening ones.
    edges.sort(key=lambda edge: (edge[0], -edge[1]))

    active: dict[int, Box] = {}
    closed: set[int] = set()
    pairs: list[tuple[Box, Box]] = []
    for _, kind, index in edges:
        if kind == 0:
            if index in closed:
                continue
            new = boxes[index]
            for other in active.values():
                if not (other.min_y >= new.max_y or new.min_y >= other.max_y):
                    pairs.append((other, new))
            active[index] = new
        elif active.pop(index, None) is None:
            closed.add(index)
    return pairs


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Check a placement for overlapping cells.")
    parser.add_argument("layout", help="file listing the placed cells")
    args = parser.parse_args(argv)

    print("start checking ... ")
    try:
        boxes = read_boxes(args.layout)
    except OSError:
        print(f"{args.layout} CANNOT OPEN -")
        return 0
    print(f"{args.layout} is OPEN ...")
    print("Read file done ...")
    print(f"Cell num {len(boxes)}")

    for a, b in find_overlaps(boxes):
        print()
        print(f"ERROR: {a.name} overlap with {b.name}")
        print(f"{a.name} min x{_fmt(a.min_x)}")
        print(f"{a.name} MAX x{_fmt(a.max_x)}")
        print("-------------------------------")
        print(f"{b.name} min x{_fmt(b.min_x)}")
        print(f"{b.name} MAX x{_fmt(b.max_x)}")

    print("Check Done - Legal solution, no overlapped!")
    return 0