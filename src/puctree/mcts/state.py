"""Game state contract consumed by the search tree."""

from __future__ import annotations

import abc
from collections.abc import Sequence

from puctree.mcts.action import Action


class GameState(abc.ABC):
    """State of a two-player, zero-sum, alternating-turn game.

    Implementations must be immutable: the tree indexes its statistics by
    position in `actions()`, so the returned ordering has to be stable for
    the lifetime of the instance.
    """

    @abc.abstractmethod
    def actions(self) -> Sequence[Action]:
        """Return the available actions. An empty sequence marks a terminal state."""

    @abc.abstractmethod
    def make_move(self, action: Action) -> GameState:
        """Return the state reached by taking `action`. Must not mutate self."""

    @abc.abstractmethod
    def value(self) -> float:
        """Return the value of the state for the player to move."""

    @abc.abstractmethod
    def as_string(self) -> str:
        """Return the state encoded as a string."""

    def is_terminal(self) -> bool:
        """Whether the state has no available actions."""
        return len(self.actions()) == 0
