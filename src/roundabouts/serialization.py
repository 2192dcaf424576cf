"""JSON-friendly snapshots of a game for front-ends."""
from __future__ import annotations

from typing import Dict, Optional

from .board import Connector
from .game import Game
from .geometry import coord_to_notation
from .player import Player


def _player_name(player: Optional[Player]) -> Optional[str]:
    return player.name if player is not None else None


def serialize_connector(connector: Connector) -> Dict:
    return {
        "ends": [
            {"coord": coord_to_notation(connector.endpoint0), "link": connector.link0.value},
            {"coord": coord_to_notation(connector.endpoint1), "link": connector.link1.value},
        ]
    }


def serialize_game(game: Game) -> Dict:
    """Serialize the observable state of a game to a JSON-friendly dict."""
    current = game.current_cell
    return {
        "turn": _player_name(game.active_player),
        "players": [_player_name(game.starter_player), _player_name(game.other_player)],
        "move_locked": game.move_locked,
        "move_repeating": game.move_repeating,
        "long_move": {
            "cell": coord_to_notation(current) if current is not None else None,
            "direction": game.direction.value,
            "tripping": game.tripping_opponent,
        },
        "board": [
            {
                "coord": coord_to_notation(coord),
                "piece": {"owner": piece.owner.name, "index": piece.index},
            }
            for coord, piece in game.board.occupied()
        ],
        "connectors": [serialize_connector(c) for c in game.board.connectors],
    }
