"""Simple CLI entrypoint for roundabouts."""
import argparse
import logging
import os
from typing import Optional

from . import __version__
from .events import BoardChangeEvent, CaptureEvent, PlaceEvent
from .game import Game
from .geometry import coord_to_notation

LOG_LEVEL = os.getenv("ROUNDABOUTS_LOG_LEVEL", "INFO").upper()


class _ImmediateLoops:
    """UI adapter for headless play: loops complete without animation."""

    def __init__(self) -> None:
        self.game = None

    def request_loop_animation(self, row: int, column: int) -> None:
        print(f"  loop at {coord_to_notation((row, column))}")
        self.game.notify_loop_input(row, column)


def _describe(event: BoardChangeEvent) -> str:
    target = coord_to_notation((event.target_row, event.target_column))
    if isinstance(event, PlaceEvent):
        return f"  place {event.piece!r} on {target}"
    source = coord_to_notation((event.source_row, event.source_column))
    if isinstance(event, CaptureEvent):
        return f"  {event.piece!r} {source} x {target} captures {event.victim!r}"
    return f"  {event.piece!r} {source} -> {target}"


def run_demo(step_interval: Optional[float] = None) -> int:
    """Play a scripted loop capture and print every board change."""
    adapter = _ImmediateLoops()
    game = Game.double_user_game(ui_adapter=adapter, step_interval=step_interval)
    adapter.game = game
    game.add_board_change_listener(lambda event: print(_describe(event)))

    starter, other = game.starter_player, game.other_player
    game.board.place_piece(starter.piece(0), 1, 0)
    game.board.place_piece(other.piece(0), 2, 1)
    game.board.place_piece(other.piece(1), 3, 1)

    print(f"{starter.name} sends A2 through its loop")
    if not game.notify_loop_input(1, 0):
        print("loop move rejected")
        return 1
    try:
        game.wait_for_long_move(timeout=60.0)
    finally:
        game.close()
    print(f"turn: {game.active_player.name}")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="roundabouts")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--serve", action="store_true", help="Run FastAPI server")
    parser.add_argument("--host", default="127.0.0.1", help="Server host")
    parser.add_argument("--port", type=int, default=8000, help="Server port")
    parser.add_argument("--demo", action="store_true", help="Play a scripted loop capture")
    parser.add_argument(
        "--step-interval",
        type=float,
        default=None,
        help="Seconds between long move steps in the demo (default: ROUNDABOUTS_STEP_INTERVAL or 0.5).",
    )
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Logging level (default: INFO)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.version:
        print(__version__)
        return 0

    if args.demo:
        return run_demo(args.step_interval)

    if args.serve:
        try:
            from uvicorn import run
            from roundabouts.api import create_app
        except ImportError:
            print("uvicorn and fastapi are required to serve the API. Install extras.")
            return 1

        run(create_app(), host=args.host, port=args.port, reload=False)
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
