"""Board state for Roundabouts: points, loop connectors and movement rules.

Corners are addressed by index, ordered upper-left, upper-right,
bottom-right and bottom-left (0 to 3). Each corner has one inner-circuit
loop joining the edge points one step from it and one outer-circuit loop
joining the edge points two steps from it.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from .events import (
    BoardChangeEvent,
    BoardChangeListener,
    CaptureEvent,
    MoveEvent,
    PlaceEvent,
)
from .geometry import (
    LINEAR_SIZE,
    Coord,
    Orientation,
    chebyshev_distance,
    coord_in_bounds,
    is_edge_point,
    loop_orientation_at,
)
from .player import Piece

logger = logging.getLogger(__name__)

INNER_CIRCUIT_ENDPOINTS: Sequence[Tuple[Coord, Coord]] = (
    ((1, 0), (0, 1)),
    ((0, 4), (1, 5)),
    ((4, 5), (5, 4)),
    ((5, 1), (4, 0)),
)
OUTER_CIRCUIT_ENDPOINTS: Sequence[Tuple[Coord, Coord]] = (
    ((2, 0), (0, 2)),
    ((0, 3), (2, 5)),
    ((3, 5), (5, 3)),
    ((5, 2), (3, 0)),
)


class Point:
    """A cell on the grid.

    ``connector`` is an index into the owning board's connector table and
    can be bound only once.
    """

    __slots__ = ("piece", "_connector")

    def __init__(self, piece: Optional[Piece] = None) -> None:
        self.piece = piece
        self._connector: Optional[int] = None

    @property
    def connector(self) -> Optional[int]:
        return self._connector

    def bind_connector(self, index: int) -> None:
        if self._connector is None:
            self._connector = index

    def is_empty(self) -> bool:
        return self.piece is None


class Connector:
    """A loop joining two edge points that are not spatially adjacent."""

    def __init__(self, row0: int, column0: int, row1: int, column1: int) -> None:
        if (row0, column0) == (row1, column1):
            raise ValueError("Connector endpoints must be distinct")
        for row, column in ((row0, column0), (row1, column1)):
            if not (coord_in_bounds(row, column) and is_edge_point(row, column)):
                raise ValueError(f"Connector endpoint ({row}, {column}) is not an edge point")
        self.row0 = row0
        self.column0 = column0
        self.row1 = row1
        self.column1 = column1
        self._link0 = Orientation.UNDEFINED
        self._link1 = Orientation.UNDEFINED

    def __repr__(self) -> str:
        return (
            f"Connector(({self.row0}, {self.column0}) {self._link0.value}, "
            f"({self.row1}, {self.column1}) {self._link1.value})"
        )

    @property
    def endpoint0(self) -> Coord:
        return (self.row0, self.column0)

    @property
    def endpoint1(self) -> Coord:
        return (self.row1, self.column1)

    @property
    def link0(self) -> Orientation:
        return self._link0

    @property
    def link1(self) -> Orientation:
        return self._link1

    def set_link0(self, link: Orientation) -> None:
        if self._link0 is Orientation.UNDEFINED:
            self._link0 = link

    def set_link1(self, link: Orientation) -> None:
        if self._link1 is Orientation.UNDEFINED:
            self._link1 = link

    def has_endpoint(self, row: int, column: int) -> bool:
        return (row, column) in (self.endpoint0, self.endpoint1)

    def other_end(self, row: int, column: int) -> Coord:
        if (row, column) == self.endpoint0:
            return self.endpoint1
        if (row, column) == self.endpoint1:
            return self.endpoint0
        raise ValueError(f"({row}, {column}) is not an endpoint of {self!r}")

    def links(self, source: Coord, target: Coord) -> bool:
        """Whether source and target are the two ends of this loop."""
        return self.has_endpoint(*source) and self.other_end(*source) == target

    def activable_with(self, endpoint: int, row: int, column: int, adjust: int = 0) -> bool:
        """Whether (row, column) lies beyond ``endpoint`` along its outward link.

        Front-ends use this to accept a drag that leaves the board through
        the loop. ``adjust`` shifts the given coordinates first, for callers
        whose grid has a margin around the board.
        """
        row -= adjust
        column -= adjust
        if endpoint == 0:
            link, end_row, end_column = self._link0, self.row0, self.column0
        elif endpoint == 1:
            link, end_row, end_column = self._link1, self.row1, self.column1
        else:
            raise ValueError(f"Connector endpoint index must be 0 or 1, got {endpoint}")

        if link is Orientation.UP:
            return row < end_row and column == end_column
        if link is Orientation.DOWN:
            return row > end_row and column == end_column
        if link is Orientation.LEFT:
            return row == end_row and column < end_column
        if link is Orientation.RIGHT:
            return row == end_row and column > end_column
        return False

    def move_through_connector(self, board: "Board", forward: bool) -> bool:
        """Move the piece from one end of this loop to the other.

        No legality check beyond ``Board.move_piece`` is made; callers must
        ensure the destination is free.
        """
        if forward:
            return board.move_piece(self.row0, self.column0, self.row1, self.column1)
        return board.move_piece(self.row1, self.column1, self.row0, self.column0)


class Board:
    def __init__(self) -> None:
        self._grid: List[List[Point]] = [
            [Point() for _ in range(LINEAR_SIZE)] for _ in range(LINEAR_SIZE)
        ]
        self._listeners: List[BoardChangeListener] = []
        self._inner_circuits: Tuple[Connector, ...] = tuple(
            Connector(a[0], a[1], b[0], b[1]) for a, b in INNER_CIRCUIT_ENDPOINTS
        )
        self._outer_circuits: Tuple[Connector, ...] = tuple(
            Connector(a[0], a[1], b[0], b[1]) for a, b in OUTER_CIRCUIT_ENDPOINTS
        )
        self._connectors: Tuple[Connector, ...] = self._inner_circuits + self._outer_circuits

    @classmethod
    def filled_instance(cls) -> "Board":
        """Create a board with every loop connector linked to its points.

        Placing the pieces is left to the game controller.
        """
        board = cls()
        for index in range(len(board._connectors)):
            board._link_connector(index)
        return board

    def _link_connector(self, index: int) -> None:
        connector = self._connectors[index]
        self._grid[connector.row0][connector.column0].bind_connector(index)
        connector.set_link0(loop_orientation_at(connector.row0, connector.column0))
        self._grid[connector.row1][connector.column1].bind_connector(index)
        connector.set_link1(loop_orientation_at(connector.row1, connector.column1))

    def _fire_event(self, event: BoardChangeEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    @property
    def connectors(self) -> Tuple[Connector, ...]:
        return self._connectors

    def point_at(self, row: int, column: int) -> Optional[Point]:
        if not coord_in_bounds(row, column):
            return None
        return self._grid[row][column]

    def external_connector_at(self, row: int, column: int) -> Optional[Connector]:
        point = self.point_at(row, column)
        if point is None or point.connector is None:
            return None
        return self._connectors[point.connector]

    def inner_circuit(self, index: int) -> Connector:
        return self._inner_circuits[index]

    def outer_circuit(self, index: int) -> Connector:
        return self._outer_circuits[index]

    def piece_at(self, row: int, column: int) -> Optional[Piece]:
        """Piece at the coordinates; None if empty or off the board."""
        point = self.point_at(row, column)
        return point.piece if point is not None else None

    def is_empty(self, row: int, column: int) -> bool:
        return self.piece_at(row, column) is None

    def occupied(self) -> List[Tuple[Coord, Piece]]:
        return [
            ((row, column), point.piece)
            for row, line in enumerate(self._grid)
            for column, point in enumerate(line)
            if point.piece is not None
        ]

    def place_piece(self, piece: Piece, row: int, column: int) -> bool:
        """Place an unplaced piece on an empty point.

        The caller must make sure the piece is not already on this board.
        """
        point = self.point_at(row, column)
        if point is None or not point.is_empty():
            return False
        point.piece = piece
        self._fire_event(PlaceEvent(target_row=row, target_column=column, piece=piece))
        return True

    def move_piece(
        self, source_row: int, source_column: int, target_row: int, target_column: int
    ) -> bool:
        """Move a piece one step in any direction, or across a loop.

        A piece may land on an enemy piece (capturing it) but never on a
        piece of its own side. Forbidding adjacent captures is left to
        front-ends that want the stricter rule.
        """
        source = self.point_at(source_row, source_column)
        target = self.point_at(target_row, target_column)
        if source is None or target is None or source.piece is None:
            return False

        mover = source.piece
        victim = target.piece
        if victim is not None and victim.owner is mover.owner:
            return False

        source_coord = (source_row, source_column)
        target_coord = (target_row, target_column)
        loop = self.external_connector_at(source_row, source_column)
        through_loop = loop is not None and loop.links(source_coord, target_coord)
        if not through_loop and chebyshev_distance(source_coord, target_coord) != 1:
            return False

        target.piece = mover
        source.piece = None
        if through_loop:
            logger.debug("Piece %r crossed loop %r", mover, loop)

        if victim is None:
            event: BoardChangeEvent = MoveEvent(
                source_row=source_row,
                source_column=source_column,
                target_row=target_row,
                target_column=target_column,
                piece=mover,
            )
        else:
            event = CaptureEvent(
                source_row=source_row,
                source_column=source_column,
                target_row=target_row,
                target_column=target_column,
                piece=mover,
                victim=victim,
            )
        self._fire_event(event)
        return True

    def add_board_change_listener(self, listener: BoardChangeListener) -> BoardChangeListener:
        self._listeners.append(listener)
        return listener

    def remove_board_change_listener(self, listener: BoardChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)
