"""roundabouts package."""

from .board import Board, Connector, Point  # noqa: F401
from .events import (  # noqa: F401
    BoardChangeKind,
    CaptureEvent,
    MoveEvent,
    PlaceEvent,
    serialize_event,
)
from .game import (  # noqa: F401
    Game,
    MisconfigurationError,
    MissingUIAdapterError,
    StructuralError,
    UIAdapter,
)
from .geometry import Orientation, coord_to_notation, notation_to_coord  # noqa: F401
from .player import Piece, Player  # noqa: F401
from .serialization import serialize_game  # noqa: F401

__all__ = [
    "__version__",
    "Board",
    "Connector",
    "Point",
    "BoardChangeKind",
    "PlaceEvent",
    "MoveEvent",
    "CaptureEvent",
    "serialize_event",
    "Game",
    "UIAdapter",
    "StructuralError",
    "MisconfigurationError",
    "MissingUIAdapterError",
    "Orientation",
    "coord_to_notation",
    "notation_to_coord",
    "Piece",
    "Player",
    "serialize_game",
    "create_app",
]

__version__ = "0.1.0"


def create_app():
    """Lazy import to avoid requiring FastAPI unless requested."""
    from roundabouts.api import create_app as factory

    return factory()
