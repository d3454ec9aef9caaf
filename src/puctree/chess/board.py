"""GameState backed by a chess engine."""

from __future__ import annotations

import threading
from typing import Protocol

import chess

from puctree.mcts.action import Action
from puctree.mcts.state import GameState

DEFAULT_NUM_MOVES = 20


class ChessEngine(Protocol):
    """Protocol for engines that generate and score moves for ChessBoard.

    Implemented by UCIEngine.
    """

    def best_moves(self, fen: str, num_moves: int) -> list[Action]:
        """The `num_moves` best moves with their values, best first."""
        ...

    def evaluate(self, fen: str) -> float:
        """Value of the position for the side to move."""
        ...

    def make_move(self, fen: str, move: str) -> str:
        """The position reached by playing `move` in `fen`."""
        ...

    def pretty_print(self, fen: str) -> str:
        """A human readable rendering of the position."""
        ...


class ChessBoard(GameState):
    """A chess position whose candidate moves come from an engine.

    Only the engine's `num_moves` best moves are considered, so the search
    tree stays narrow. The move list is requested once per instance and
    cached, which keeps its ordering stable for the tree's statistics.
    """

    def __init__(
        self,
        engine: ChessEngine,
        fen: str = chess.STARTING_FEN,
        num_moves: int = DEFAULT_NUM_MOVES,
    ) -> None:
        self.engine = engine
        self.fen = fen
        self.num_moves = num_moves
        self._actions: tuple[Action, ...] | None = None
        self._lock = threading.Lock()

    def actions(self) -> tuple[Action, ...]:
        if self._actions is None:
            with self._lock:
                if self._actions is None:
                    self._actions = tuple(self.engine.best_moves(self.fen, self.num_moves))
        return self._actions

    def make_move(self, action: Action) -> ChessBoard:
        return ChessBoard(self.engine, self.engine.make_move(self.fen, action.encoding), self.num_moves)

    def value(self) -> float:
        """Value of the best move, or the engine's evaluation of a finished game."""
        actions = self.actions()
        return actions[0].value if actions else self.engine.evaluate(self.fen)

    def as_string(self) -> str:
        return self.fen

    def __str__(self) -> str:
        return self.engine.pretty_print(self.fen)

    def __repr__(self) -> str:
        return f"ChessBoard({self.fen!r})"
