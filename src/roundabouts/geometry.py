"""Grid geometry for the Roundabouts board.

Coordinates are zero-based ``(row, column)`` tuples with row 0 at the top.
Helpers for algebraic-style strings (e.g. "A1", column letter then row
number) are provided for API friendliness.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

LINEAR_SIZE = 6
AREAL_SIZE = LINEAR_SIZE * LINEAR_SIZE
COLUMNS = "ABCDEF"
Coord = Tuple[int, int]  # (row, column), zero-based


class Orientation(str, Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    UNDEFINED = "undefined"

    def opposite(self) -> "Orientation":
        return _OPPOSITES[self]

    @property
    def delta(self) -> Coord:
        return _DELTAS[self]


_OPPOSITES = {
    Orientation.UP: Orientation.DOWN,
    Orientation.DOWN: Orientation.UP,
    Orientation.LEFT: Orientation.RIGHT,
    Orientation.RIGHT: Orientation.LEFT,
    Orientation.UNDEFINED: Orientation.UNDEFINED,
}

_DELTAS = {
    Orientation.UP: (-1, 0),
    Orientation.DOWN: (1, 0),
    Orientation.LEFT: (0, -1),
    Orientation.RIGHT: (0, 1),
    Orientation.UNDEFINED: (0, 0),
}


class Circuit(str, Enum):
    """Color of a grid line, by the loop circuit it belongs to."""

    INNER = "inner"
    MIDDLE = "middle"
    OUTER = "outer"


# Line colors by distance from the origin (upper-left corner).
COLOR_BY_LINE = (
    Circuit.OUTER,
    Circuit.MIDDLE,
    Circuit.INNER,
    Circuit.INNER,
    Circuit.MIDDLE,
    Circuit.OUTER,
)


def line_in_bounds(line: int) -> bool:
    return 0 <= line < LINEAR_SIZE


def coord_in_bounds(row: int, column: int) -> bool:
    return line_in_bounds(row) and line_in_bounds(column)


def is_edge_point(row: int, column: int) -> bool:
    last = LINEAR_SIZE - 1
    return row in (0, last) or column in (0, last)


def is_corner_point(row: int, column: int) -> bool:
    last = LINEAR_SIZE - 1
    return row in (0, last) and column in (0, last)


def is_edge_but_not_corner_point(row: int, column: int) -> bool:
    return is_edge_point(row, column) and not is_corner_point(row, column)


def loop_orientation_at(row: int, column: int) -> Orientation:
    """Outward direction in which an edge point connects to its loop.

    Rows take precedence over columns, so corners resolve to UP or DOWN.
    """
    last = LINEAR_SIZE - 1
    if row == 0:
        return Orientation.UP
    if row == last:
        return Orientation.DOWN
    if column == 0:
        return Orientation.LEFT
    if column == last:
        return Orientation.RIGHT
    return Orientation.UNDEFINED


def inward_perpendicular(row: int, column: int) -> Orientation:
    """Direction pointing into the board from an edge point."""
    return loop_orientation_at(row, column).opposite()


def step(coord: Coord, direction: Orientation) -> Coord:
    d_row, d_column = direction.delta
    return (coord[0] + d_row, coord[1] + d_column)


def chebyshev_distance(a: Coord, b: Coord) -> int:
    return max(abs(a[0] - b[0]), abs(a[1] - b[1]))


def nearest_corner_to(row: int, column: int) -> Optional[Coord]:
    if not coord_in_bounds(row, column):
        return None
    half = LINEAR_SIZE // 2
    last = LINEAR_SIZE - 1
    return (0 if row < half else last, 0 if column < half else last)


def nearest_integral_corner_distance(row: int, column: int) -> int:
    """Signed sum of row and column offsets from the point to its nearest corner.

    (1, 1) is -2 away from (0, 0); (4, 4) is 2 away from (5, 5).
    """
    corner = nearest_corner_to(row, column)
    if corner is None:
        raise ValueError(f"Out of bounds coordinate: ({row}, {column})")
    return (corner[0] - row) + (corner[1] - column)


def color_of(line: int) -> Optional[Circuit]:
    """Circuit color of the line ``line`` steps from the origin, None if off-board."""
    if not line_in_bounds(line):
        return None
    return COLOR_BY_LINE[line]


def color_coordinates(row: int, column: int) -> Tuple[Optional[Circuit], Optional[Circuit]]:
    return color_of(row), color_of(column)


def coord_to_notation(coord: Coord) -> str:
    row, column = coord
    return f"{COLUMNS[column]}{row + 1}"


def notation_to_coord(token: str) -> Coord:
    if len(token) < 2:
        raise ValueError(f"Invalid coordinate token: {token}")
    column_char, row_str = token[0].upper(), token[1:]
    if column_char not in COLUMNS:
        raise ValueError(f"Invalid column: {column_char}")
    try:
        row = int(row_str) - 1
    except ValueError as exc:
        raise ValueError(f"Invalid row: {row_str}") from exc
    coord = (row, COLUMNS.index(column_char))
    if not coord_in_bounds(*coord):
        raise ValueError(f"Out of bounds coordinate: {token}")
    return coord
