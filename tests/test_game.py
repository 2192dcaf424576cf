import logging
import threading

import pytest

from roundabouts.events import CaptureEvent, MoveEvent
from roundabouts.game import Game, MissingUIAdapterError, StructuralError
from roundabouts.geometry import Orientation
from roundabouts.player import Player

WAIT = 5.0


class RecordingAdapter:
    """Front-end stand-in that remembers requested loop animations."""

    def __init__(self) -> None:
        self.requests = []

    def request_loop_animation(self, row: int, column: int) -> None:
        self.requests.append((row, column))


class ImmediateAdapter(RecordingAdapter):
    def __init__(self) -> None:
        super().__init__()
        self.game = None

    def request_loop_animation(self, row: int, column: int) -> None:
        super().request_loop_animation(row, column)
        self.game.notify_loop_input(row, column)


def make_game(adapter=None, step_interval: float = 0.0) -> Game:
    game = Game.double_user_game(ui_adapter=adapter, step_interval=step_interval)
    if isinstance(adapter, ImmediateAdapter):
        adapter.game = game
    return game


def record(game: Game):
    events = []
    game.add_board_change_listener(events.append)
    return events


def test_double_user_game_registers_players_once(caplog):
    game = make_game()
    starter = game.starter_player
    assert starter is not None and game.other_player is not None
    assert game.active_player is starter
    with caplog.at_level(logging.WARNING):
        assert not game.set_starter_player(Player("intruder"))
        assert not game.set_other_player(Player("intruder"))
    assert game.starter_player is starter
    assert "already set" in caplog.text


def test_opponent_of():
    game = make_game()
    assert game.opponent_of(game.starter_player) is game.other_player
    assert game.opponent_of(game.other_player) is game.starter_player


def test_place_all_pieces_fills_home_rows():
    game = make_game()
    game.place_all_pieces()
    starter, other = game.starter_player, game.other_player
    assert game.piece_at(0, 0) is starter.piece(0)
    assert game.piece_at(1, 5) is starter.piece(11)
    assert game.piece_at(4, 0) is other.piece(0)
    assert game.piece_at(5, 5) is other.piece(11)
    for row in (2, 3):
        for column in range(6):
            assert game.piece_at(row, column) is None


def test_direct_capture_passes_turn():
    game = make_game()
    starter, other = game.starter_player, game.other_player
    game.board.place_piece(starter.piece(0), 2, 2)
    game.board.place_piece(other.piece(0), 2, 3)
    events = record(game)

    assert game.notify_input(2, 2, 2, 3)
    assert game.piece_at(2, 2) is None
    assert game.piece_at(2, 3) is starter.piece(0)
    assert len(events) == 1 and isinstance(events[0], CaptureEvent)
    assert events[0].victim is other.piece(0)
    assert game.active_player is other


def test_same_owner_overlap_rejected_without_event():
    game = make_game()
    starter = game.starter_player
    game.board.place_piece(starter.piece(0), 2, 2)
    game.board.place_piece(starter.piece(1), 2, 3)
    events = record(game)

    assert not game.notify_input(2, 2, 2, 3)
    assert events == []
    assert game.piece_at(2, 2) is starter.piece(0)
    assert game.active_player is starter


def test_wrong_turn_and_empty_source_are_ignored():
    game = make_game()
    other = game.other_player
    game.board.place_piece(other.piece(0), 3, 3)
    assert not game.notify_input(3, 3, 3, 4)
    assert not game.notify_input(2, 2, 2, 3)
    assert not game.notify_loop_input(3, 0)
    assert game.piece_at(3, 3) is other.piece(0)
    assert game.active_player is game.starter_player


def test_turns_alternate_on_direct_moves():
    game = make_game()
    game.place_all_pieces()
    starter, other = game.starter_player, game.other_player
    assert game.notify_input(1, 2, 2, 2)
    assert game.active_player is other
    assert not game.notify_input(2, 2, 3, 2)
    assert game.notify_input(4, 3, 3, 3)
    assert game.active_player is starter


def test_loop_input_from_cell_without_connector_is_ignored():
    game = make_game()
    game.board.place_piece(game.starter_player.piece(0), 2, 2)
    assert not game.notify_loop_input(2, 2)
    assert not game.move_locked


def test_loop_input_with_occupied_destination_is_refused(caplog):
    game = make_game()
    starter, other = game.starter_player, game.other_player
    game.board.place_piece(starter.piece(0), 1, 0)
    game.board.place_piece(other.piece(0), 0, 1)
    with caplog.at_level(logging.WARNING):
        assert not game.notify_loop_input(1, 0)
    assert game.piece_at(1, 0) is starter.piece(0)
    assert not game.move_locked
    assert game.active_player is starter
    assert "occupied" in caplog.text


def test_loop_traversal_locks_until_resolved():
    game = make_game(step_interval=30.0)
    starter = game.starter_player
    piece = starter.piece(0)
    game.board.place_piece(piece, 1, 0)
    events = record(game)
    try:
        assert game.notify_loop_input(1, 0)
        assert game.move_locked
        assert game.start_cell == (0, 1)
        assert game.direction is Orientation.DOWN
        assert events[0] == MoveEvent(
            source_row=1, source_column=0, target_row=0, target_column=1, piece=piece
        )
        assert game.active_player is starter
        assert not game.notify_input(1, 1, 2, 1)
        assert not game.notify_loop_input(0, 1)
        assert not game.wait_for_long_move(timeout=0.2)
    finally:
        game.close()


def test_capture_chain_stops_on_first_empty_cell():
    game = make_game(RecordingAdapter())
    starter, other = game.starter_player, game.other_player
    game.board.place_piece(starter.piece(0), 1, 0)
    game.board.place_piece(other.piece(0), 2, 1)
    game.board.place_piece(other.piece(1), 3, 1)
    events = record(game)

    assert game.notify_loop_input(1, 0)
    assert game.wait_for_long_move(timeout=WAIT)

    assert game.piece_at(3, 1) is starter.piece(0)
    assert game.piece_at(2, 1) is None
    assert game.piece_at(4, 1) is None
    kinds = [type(e) for e in events]
    assert kinds == [MoveEvent, MoveEvent, CaptureEvent, CaptureEvent]
    assert game.tripping_opponent
    assert not game.move_locked
    assert game.active_player is other


def test_long_move_blocked_by_own_piece():
    game = make_game(RecordingAdapter())
    starter, other = game.starter_player, game.other_player
    game.board.place_piece(starter.piece(0), 2, 0)
    game.board.place_piece(starter.piece(1), 3, 2)
    events = record(game)

    assert game.notify_loop_input(2, 0)
    assert game.wait_for_long_move(timeout=WAIT)

    # (2, 0) -> (0, 2) through the loop, then down column 2 until (3, 2) blocks it.
    assert game.piece_at(2, 2) is starter.piece(0)
    assert game.piece_at(3, 2) is starter.piece(1)
    assert len(events) == 3
    assert game.active_player is other


def test_long_move_pauses_for_animation_and_resumes():
    adapter = RecordingAdapter()
    game = make_game(adapter)
    starter = game.starter_player
    game.board.place_piece(starter.piece(0), 1, 0)

    assert game.notify_loop_input(1, 0)
    assert not game.wait_for_long_move(timeout=WAIT)
    assert adapter.requests == [(5, 1)]
    assert game.move_locked and game.move_repeating
    assert game.piece_at(5, 1) is starter.piece(0)
    assert game.active_player is starter

    # Only the resuming callback gets through while paused.
    assert not game.notify_input(5, 1, 4, 1)
    assert not game.notify_loop_input(1, 0)

    assert game.notify_loop_input(5, 1)
    assert not game.move_repeating
    assert game.piece_at(5, 1) is None
    assert not game.wait_for_long_move(timeout=WAIT)
    assert adapter.requests == [(5, 1), (4, 5)]
    assert game.active_player is starter
    game.close()


def test_full_circuit_stops_at_start_cell():
    adapter = ImmediateAdapter()
    game = make_game(adapter)
    starter, other = game.starter_player, game.other_player
    game.board.place_piece(starter.piece(0), 1, 0)

    assert game.notify_loop_input(1, 0)
    assert game.wait_for_long_move(timeout=WAIT)

    assert adapter.requests == [(5, 1), (4, 5), (0, 4), (1, 0)]
    assert game.piece_at(0, 1) is starter.piece(0)
    assert game.overlap_count == 2
    assert not game.move_locked
    assert game.active_player is other


def test_outer_circuit_capture_across_loops():
    adapter = ImmediateAdapter()
    game = make_game(adapter)
    starter, other = game.starter_player, game.other_player
    game.board.place_piece(starter.piece(0), 0, 2)
    game.board.place_piece(other.piece(0), 3, 1)
    game.board.place_piece(other.piece(1), 3, 2)

    assert game.notify_loop_input(0, 2)
    assert game.wait_for_long_move(timeout=WAIT)

    # (0, 2) -> (2, 0), right along row 2 to (2, 5), loop to (0, 3), down
    # column 3 to (5, 3), loop to (3, 5), left along row 3 capturing at (3, 2)
    # and (3, 1), then stopping before the empty (3, 0).
    assert adapter.requests == [(2, 5), (5, 3)]
    assert game.piece_at(3, 1) is starter.piece(0)
    assert game.piece_at(3, 2) is None
    assert game.active_player is other


def test_loop_blocked_at_far_end_ends_long_move():
    adapter = RecordingAdapter()
    game = make_game(adapter)
    starter, other = game.starter_player, game.other_player
    game.board.place_piece(starter.piece(0), 1, 0)
    game.board.place_piece(starter.piece(1), 4, 0)

    assert game.notify_loop_input(1, 0)
    assert game.wait_for_long_move(timeout=WAIT)
    assert adapter.requests == []
    assert game.piece_at(5, 1) is starter.piece(0)
    assert game.active_player is other


def test_missing_adapter_fails_loudly_and_releases_lock():
    game = make_game()
    starter = game.starter_player
    game.board.place_piece(starter.piece(0), 1, 0)

    assert game.notify_loop_input(1, 0)
    with pytest.raises(MissingUIAdapterError):
        game.wait_for_long_move(timeout=WAIT)
    assert not game.move_locked
    assert not game.move_repeating


def test_adapter_failure_surfaces_from_wait():
    class Broken:
        def request_loop_animation(self, row, column):
            raise StructuralError("front-end lost its loop path")

    game = make_game(Broken())
    game.board.place_piece(game.starter_player.piece(0), 1, 0)
    assert game.notify_loop_input(1, 0)
    with pytest.raises(StructuralError):
        game.wait_for_long_move(timeout=WAIT)
    assert not game.move_locked


def test_long_move_events_arrive_on_stepper_thread():
    game = make_game(RecordingAdapter())
    starter, other = game.starter_player, game.other_player
    game.board.place_piece(starter.piece(0), 1, 0)
    game.board.place_piece(other.piece(0), 1, 1)
    threads = []
    game.add_board_change_listener(lambda e: threads.append(threading.current_thread()))

    assert game.notify_loop_input(1, 0)
    assert game.wait_for_long_move(timeout=WAIT)
    assert threads[0] is threading.current_thread()
    assert all(t is not threading.current_thread() for t in threads[1:])
    assert len(threads) == 2


def test_failing_listener_still_passes_turn_after_direct_move():
    game = make_game()
    starter, other = game.starter_player, game.other_player
    game.board.place_piece(starter.piece(0), 2, 2)

    def broken_listener(event):
        raise RuntimeError("front-end redraw failed")

    game.add_board_change_listener(broken_listener)
    with pytest.raises(RuntimeError):
        game.notify_input(2, 2, 2, 3)
    assert game.piece_at(2, 3) is starter.piece(0)
    assert game.active_player is other
    assert not game.notify_input(2, 3, 2, 4)


def test_missing_connector_at_edge_fails_long_move(monkeypatch):
    game = make_game(RecordingAdapter())
    starter = game.starter_player
    game.board.place_piece(starter.piece(0), 1, 0)
    lookup = game.board.external_connector_at

    def unlinked_bottom_edge(row, column):
        if (row, column) == (5, 1):
            return None
        return lookup(row, column)

    monkeypatch.setattr(game.board, "external_connector_at", unlinked_bottom_edge)
    assert game.notify_loop_input(1, 0)
    with pytest.raises(StructuralError):
        game.wait_for_long_move(timeout=WAIT)
    assert game.piece_at(5, 1) is starter.piece(0)
    assert not game.move_locked


def test_missing_connector_on_resume_is_reported(monkeypatch):
    game = make_game(RecordingAdapter())
    game.board.place_piece(game.starter_player.piece(0), 1, 0)
    assert game.notify_loop_input(1, 0)
    assert not game.wait_for_long_move(timeout=WAIT)
    assert game.move_repeating

    monkeypatch.setattr(game.board, "external_connector_at", lambda row, column: None)
    with pytest.raises(StructuralError):
        game.notify_loop_input(5, 1)
