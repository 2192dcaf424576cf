"""Board change events delivered to presentation listeners.

Each event kind is its own frozen dataclass; listeners dispatch on
``event.kind`` or with ``isinstance``.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, ClassVar, Dict, Union

from .geometry import coord_to_notation
from .player import Piece


class BoardChangeKind(str, Enum):
    PLACE = "place"
    MOVE = "move"
    CAPTURE = "capture"


@dataclass(frozen=True)
class PlaceEvent:
    kind: ClassVar[BoardChangeKind] = BoardChangeKind.PLACE

    target_row: int
    target_column: int
    piece: Piece


@dataclass(frozen=True)
class MoveEvent:
    kind: ClassVar[BoardChangeKind] = BoardChangeKind.MOVE

    source_row: int
    source_column: int
    target_row: int
    target_column: int
    piece: Piece


@dataclass(frozen=True)
class CaptureEvent:
    kind: ClassVar[BoardChangeKind] = BoardChangeKind.CAPTURE

    source_row: int
    source_column: int
    target_row: int
    target_column: int
    piece: Piece
    victim: Piece


BoardChangeEvent = Union[PlaceEvent, MoveEvent, CaptureEvent]
BoardChangeListener = Callable[[BoardChangeEvent], None]


def _serialize_piece(piece: Piece) -> Dict:
    return {"owner": piece.owner.name, "index": piece.index}


def serialize_event(event: BoardChangeEvent) -> Dict:
    """Serialize a board change event to a JSON-friendly dict."""
    payload: Dict = {
        "type": event.kind.value,
        "target": coord_to_notation((event.target_row, event.target_column)),
        "piece": _serialize_piece(event.piece),
    }
    if isinstance(event, (MoveEvent, CaptureEvent)):
        payload["source"] = coord_to_notation((event.source_row, event.source_column))
    if isinstance(event, CaptureEvent):
        payload["victim"] = _serialize_piece(event.victim)
    return payload
