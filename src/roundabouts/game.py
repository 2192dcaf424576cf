"""Game controller: turn arbitration and the "long" move stepper.

A piece sent through a loop keeps travelling in a straight line from the
far end of the loop, one point per tick, capturing any enemy pieces it runs
into. Reaching the edge again sends it through the next loop, which the
front-end animates before calling back into ``notify_loop_input``.
"""
from __future__ import annotations

import logging
import os
import threading
import time
from typing import Optional, Protocol

from .board import Board, Connector
from .events import BoardChangeListener
from .geometry import (
    LINEAR_SIZE,
    Coord,
    Orientation,
    coord_in_bounds,
    inward_perpendicular,
    step,
)
from .player import Piece, Player

logger = logging.getLogger(__name__)

STEP_INTERVAL = float(os.getenv("ROUNDABOUTS_STEP_INTERVAL", "0.5"))
MAX_START_OVERLAPS = 2


class StructuralError(RuntimeError):
    """The board is not linked the way the rules expect."""


class MisconfigurationError(RuntimeError):
    """The game was wired up incorrectly by its front-end."""


class MissingUIAdapterError(MisconfigurationError):
    pass


class UIAdapter(Protocol):
    def request_loop_animation(self, row: int, column: int) -> None:
        """Animate the piece at (row, column) going through its loop.

        Once the animation is over the front-end must call
        ``game.notify_loop_input(row, column)`` to resume the long move.
        """


class LongMoveTicker:
    """Background thread that advances a long move one step per interval."""

    def __init__(self, game: "Game", interval: float) -> None:
        self._game = game
        self._interval = max(0.0, interval)
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="roundabouts-long-move", daemon=True
        )
        self.error: Optional[BaseException] = None

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        if threading.current_thread() is self._thread:
            return False
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                if not self._game._tick(self):
                    return
            except Exception as exc:
                self.error = exc
                logger.exception("Long move aborted")
                self._game._abort_long_move(self)
                return
            self._stop.wait(self._interval)


class Game:
    def __init__(
        self,
        ui_adapter: Optional[UIAdapter] = None,
        step_interval: Optional[float] = None,
    ) -> None:
        self.board = Board.filled_instance()
        self.ui_adapter = ui_adapter
        self.step_interval = STEP_INTERVAL if step_interval is None else step_interval
        self._starter_player: Optional[Player] = None
        self._other_player: Optional[Player] = None
        self._active_player: Optional[Player] = None

        self._lock = threading.RLock()
        self._ticker: Optional[LongMoveTicker] = None
        self._move_locked = False
        self._move_repeating = False

        self._start_cell: Optional[Coord] = None
        self._current_cell: Optional[Coord] = None
        self._direction = Orientation.UNDEFINED
        self._overlap_count = 0
        self._tripping_opponent = False

    @classmethod
    def double_user_game(
        cls,
        ui_adapter: Optional[UIAdapter] = None,
        step_interval: Optional[float] = None,
    ) -> "Game":
        """A game between two players sharing one front-end."""
        game = cls(ui_adapter=ui_adapter, step_interval=step_interval)
        game.set_starter_player(Player("starter"))
        game.set_other_player(Player("other"))
        return game

    @property
    def starter_player(self) -> Optional[Player]:
        return self._starter_player

    @property
    def other_player(self) -> Optional[Player]:
        return self._other_player

    @property
    def active_player(self) -> Optional[Player]:
        return self._active_player

    @property
    def move_locked(self) -> bool:
        return self._move_locked

    @property
    def move_repeating(self) -> bool:
        return self._move_repeating

    @property
    def start_cell(self) -> Optional[Coord]:
        return self._start_cell

    @property
    def current_cell(self) -> Optional[Coord]:
        return self._current_cell

    @property
    def direction(self) -> Orientation:
        return self._direction

    @property
    def overlap_count(self) -> int:
        return self._overlap_count

    @property
    def tripping_opponent(self) -> bool:
        return self._tripping_opponent

    def set_starter_player(self, player: Player) -> bool:
        """Register the player who moves first. A player cannot be replaced."""
        with self._lock:
            if self._starter_player is not None:
                logger.warning("Game player change attempt while already set (starter)")
                return False
            self._starter_player = player
            self._active_player = player
            return True

    def set_other_player(self, player: Player) -> bool:
        with self._lock:
            if self._other_player is not None:
                logger.warning("Game player change attempt while already set (other)")
                return False
            self._other_player = player
            return True

    def opponent_of(self, player: Optional[Player]) -> Optional[Player]:
        if player is self._starter_player:
            return self._other_player
        return self._starter_player

    def piece_at(self, row: int, column: int) -> Optional[Piece]:
        return self.board.piece_at(row, column)

    def external_connector_at(self, row: int, column: int) -> Optional[Connector]:
        return self.board.external_connector_at(row, column)

    def inner_circuit(self, index: int) -> Connector:
        return self.board.inner_circuit(index)

    def outer_circuit(self, index: int) -> Connector:
        return self.board.outer_circuit(index)

    def add_board_change_listener(self, listener: BoardChangeListener) -> BoardChangeListener:
        return self.board.add_board_change_listener(listener)

    def remove_board_change_listener(self, listener: BoardChangeListener) -> None:
        self.board.remove_board_change_listener(listener)

    def place_all_pieces(self) -> None:
        """Put both players' pieces on their two home rows."""
        if self._starter_player is None or self._other_player is None:
            raise MisconfigurationError("Both players must be registered before placing pieces")
        with self._lock:
            self._place_rows(self._starter_player, range(0, 2))
            self._place_rows(self._other_player, range(LINEAR_SIZE - 2, LINEAR_SIZE))

    def _place_rows(self, player: Player, rows: range) -> None:
        pieces = iter(player.pieces)
        for row in rows:
            for column in range(LINEAR_SIZE):
                self.board.place_piece(next(pieces), row, column)

    def notify_input(
        self, source_row: int, source_column: int, target_row: int, target_column: int
    ) -> bool:
        """Apply a direct move by the active player.

        Ignored while a long move is in progress. Front-ends learn about the
        change through their board-change listeners.
        """
        with self._lock:
            if self._move_locked:
                return False
            piece = self.board.piece_at(source_row, source_column)
            if piece is None or piece.owner is not self._active_player:
                return False
            moved = False
            try:
                moved = self.board.move_piece(
                    source_row, source_column, target_row, target_column
                )
            finally:
                # Listeners run after the board changed; a failing one must not
                # leave the mover with a second turn.
                if self.board.piece_at(target_row, target_column) is piece and self.board.is_empty(
                    source_row, source_column
                ):
                    self._active_player = self.opponent_of(piece.owner)
            if not moved:
                logger.debug(
                    "Rejected move (%d, %d) -> (%d, %d)",
                    source_row,
                    source_column,
                    target_row,
                    target_column,
                )
            return moved

    def notify_loop_input(self, source_row: int, source_column: int) -> bool:
        """Send the piece at the source through its loop and start a long move.

        Also the callback a front-end makes once a loop animation requested
        through ``request_loop_animation`` is over. The turn passes only when
        the long move is fully resolved.
        """
        with self._lock:
            if self._move_locked and not self._move_repeating:
                return False
            resuming = self._move_repeating
            source = (source_row, source_column)
            if resuming:
                if source != self._current_cell:
                    return False
            else:
                piece = self.board.piece_at(source_row, source_column)
                if piece is None or piece.owner is not self._active_player:
                    return False

            loop = self.board.external_connector_at(source_row, source_column)
            if loop is None:
                if resuming:
                    raise StructuralError(f"No connector found at {source}")
                return False

            destination = loop.other_end(source_row, source_column)
            if not self.board.is_empty(*destination):
                logger.warning(
                    "Loop destination %s is occupied, cannot move from %s", destination, source
                )
                if resuming:
                    self._resolve_long_move()
                return False

            if not loop.move_through_connector(self.board, source == loop.endpoint0):
                return False
            self._start_path(destination, inward_perpendicular(*destination))
            return True

    def wait_for_long_move(self, timeout: Optional[float] = None) -> bool:
        """Block until the stepper stops; True if the long move is resolved.

        Returns False on timeout or while a loop animation is pending.
        Re-raises the failure that aborted the stepper, if any.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                ticker = self._ticker
            if ticker is None:
                break
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            if not ticker.join(remaining):
                return False
            if ticker.error is not None:
                error, ticker.error = ticker.error, None
                raise error
            with self._lock:
                if self._ticker is ticker:
                    break
        return not self._move_locked

    def close(self) -> None:
        """Cancel any in-flight stepper."""
        with self._lock:
            ticker = self._ticker
            if ticker is not None:
                ticker.cancel()
        if ticker is not None:
            ticker.join(1.0)

    def _start_path(self, cell: Coord, direction: Orientation) -> None:
        if self.board.is_empty(*cell):
            return
        if self._move_repeating:
            self._move_repeating = False
        else:
            self._start_cell = cell
            self._overlap_count = 0
            self._tripping_opponent = False
        self._current_cell = cell
        self._direction = direction
        self._move_locked = True
        logger.debug("Long move from %s heading %s", cell, direction.value)

        if self._ticker is not None:
            self._ticker.cancel()
        self._ticker = LongMoveTicker(self, self.step_interval)
        self._ticker.start()

    def _tick(self, ticker: LongMoveTicker) -> bool:
        with self._lock:
            if ticker is not self._ticker or ticker.cancelled:
                return False
            if self._advance():
                return True
            self._finish_long_move(ticker)
            return False

    def _advance(self) -> bool:
        """Take one step of the long move; False when it should stop."""
        if self._current_cell is None:
            raise StructuralError("Long move stepped without a current cell")
        if self._current_cell == self._start_cell:
            self._overlap_count += 1
        if self._overlap_count >= MAX_START_OVERLAPS:
            return False

        next_cell = step(self._current_cell, self._direction)
        if not coord_in_bounds(*next_cell):
            return self._loop_long_move()

        if not self.board.is_empty(*next_cell):
            self._tripping_opponent = True
        elif self._tripping_opponent:
            return False

        if not self.board.move_piece(*self._current_cell, *next_cell):
            return False
        self._current_cell = next_cell
        return True

    def _loop_long_move(self) -> bool:
        """Hand the piece at the edge over to the front-end for its loop animation."""
        row, column = self._current_cell
        loop = self.board.external_connector_at(row, column)
        if loop is None:
            raise StructuralError(f"No connector found at ({row}, {column})")
        if not self.board.is_empty(*loop.other_end(row, column)):
            return False
        if self.ui_adapter is None:
            raise MissingUIAdapterError(
                "A loop animation was needed but the front-end registered no UI adapter"
            )
        self._move_repeating = True
        self.ui_adapter.request_loop_animation(row, column)
        return False

    def _finish_long_move(self, ticker: LongMoveTicker) -> None:
        # A synchronous adapter may already have resumed on a new ticker.
        if ticker is not self._ticker:
            return
        if self._move_repeating:
            logger.debug("Long move paused at %s for loop animation", self._current_cell)
            return
        self._resolve_long_move()

    def _abort_long_move(self, ticker: LongMoveTicker) -> None:
        with self._lock:
            if ticker is self._ticker:
                self._resolve_long_move()

    def _resolve_long_move(self) -> None:
        self._move_locked = False
        self._move_repeating = False
        self._active_player = self.opponent_of(self._active_player)
        logger.info("Long move ended at %s", self._current_cell)
