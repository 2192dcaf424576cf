"""Players and the pieces they own."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple

from .geometry import LINEAR_SIZE

PIECE_SET_SIZE = LINEAR_SIZE * 2


@dataclass(frozen=True, eq=False)
class Piece:
    """A single piece. Its position is wherever a board point holds it."""

    owner: "Player"
    index: int

    def __repr__(self) -> str:
        return f"Piece({self.owner.name}#{self.index})"


class Player:
    def __init__(self, name: str) -> None:
        self.name = name
        self._pieces: Tuple[Piece, ...] = tuple(
            Piece(owner=self, index=idx) for idx in range(PIECE_SET_SIZE)
        )

    @property
    def pieces(self) -> Tuple[Piece, ...]:
        return self._pieces

    def piece(self, index: int) -> Piece:
        return self._pieces[index]

    def __iter__(self) -> Iterator[Piece]:
        return iter(self._pieces)

    def __len__(self) -> int:
        return len(self._pieces)

    def __repr__(self) -> str:
        return f"Player({self.name!r})"
