"""MCTS node data structure."""

from __future__ import annotations

import math
import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np
from loguru import logger

from puctree.mcts.stats import ActionStats

if TYPE_CHECKING:
    from puctree.mcts.action import Action
    from puctree.mcts.state import GameState
    from puctree.mcts.stats import SearchStats

# c_puct from "Mastering the game of Go with deep neural networks and tree search"
DEFAULT_C_PUCT = 5.0
DEFAULT_SOFTMAX_TEMP = 1.0


class NodeStateError(RuntimeError):
    """Raised when a node operation is called in a state that does not allow it."""

    pass


def softmax(values: Sequence[float] | np.ndarray, temperature: float = DEFAULT_SOFTMAX_TEMP) -> np.ndarray:
    """Normalize values to probabilities, P ~ exp(v / temperature).

    Args:
        values: Non-empty sequence of values.
        temperature: Softmax temperature.

    Returns:
        Probabilities summing to 1. Equal values give a uniform distribution.
    """
    logits = np.asarray(values, dtype=np.float64) / temperature
    logits = logits - np.max(logits)  # Numerical stability
    exp_logits = np.exp(logits)
    return exp_logits / np.sum(exp_logits)


class Node:
    """A node in the search tree. Holds a GameState and the MCTS statistics.

    The statistics of a node describe its children, one entry per action
    of its game state:
        N: Visit count.
        W: Total backed-up value.
        Q: Mean value, W/N (0 for unvisited actions).
        P: Prior probability, softmax of the action values.
        V: Outstanding virtual loss (only non-zero during parallel search).

    A node's own visit count lives in its parent's arrays at `child_index`.
    All arrays are allocated once by `expand()` and never resized.
    """

    def __init__(
        self,
        game_state: GameState,
        parent: Node | None = None,
        child_index: int = -1,
    ) -> None:
        """Initialize the node.

        Args:
            game_state: The position this node represents.
            parent: Parent node, or None for a root.
            child_index: Index of this node in its parent's children.
                Ignored (set to -1) if parent is None.
        """
        self.game_state = game_state
        self.parent = parent
        self.child_index = child_index if parent is not None else -1
        # informational
        self.depth = 0 if parent is None else parent.depth + 1

        self.actions: tuple[Action, ...] = ()
        self.children: list[Node | None] | None = None
        self.N: np.ndarray | None = None
        self.W: np.ndarray | None = None
        self.Q: np.ndarray | None = None
        self.P: np.ndarray | None = None
        self.V: np.ndarray | None = None
        self.sum_n = 0
        self.expanded = False

        self._lock = threading.Lock()

    def is_expanded(self) -> bool:
        return self.expanded

    def is_terminal(self) -> bool:
        return len(self.game_state.actions()) == 0

    def orphan(self) -> None:
        """Detach from the parent, making this node a root."""
        self.parent = None

    def child(self, index: int) -> Node | None:
        """Return the materialized child at `index`, if any."""
        if self.children is None:
            return None
        return self.children[index]

    # -------------------------------------------------------------------------
    # Search operations
    # -------------------------------------------------------------------------

    def expand(self, temperature: float = DEFAULT_SOFTMAX_TEMP) -> None:
        """Allocate statistics for every action and compute the priors.

        No-op if the node is already expanded or terminal.
        """
        if self.expanded:
            return

        with self._lock:
            if self.expanded:
                return

            actions = tuple(self.game_state.actions())
            if not actions:
                return

            n = len(actions)
            self.actions = actions
            self.N = np.zeros(n, dtype=np.int64)
            self.W = np.zeros(n, dtype=np.float64)
            self.Q = np.zeros(n, dtype=np.float64)
            self.V = np.zeros(n, dtype=np.float64)
            self.P = softmax([a.value for a in actions], temperature)
            self.children = [None] * n
            self.expanded = True

        logger.trace(f"Expanded node at depth {self.depth} with {n} actions")

    def ucb(self, c_puct: float = DEFAULT_C_PUCT) -> np.ndarray:
        """Upper confidence bound for every action.

            UCB[i] = Q[i] + c_puct * sqrt(sum_n + 1) * P[i] / (1 + N[i])

        The +1 under the square root keeps the exploration term non-zero
        before the first visit (the AlphaGo paper uses sum_n).

        Edges with outstanding virtual loss count it as lost visits:
        Q is replaced by (W - V) / (N + V) and N by N + V.
        """
        self._require_expanded("ucb")
        exploration = c_puct * math.sqrt(self.sum_n + 1) * self.P

        pending = self.V > 0
        if not pending.any():
            return self.Q + exploration / (1 + self.N)

        visits = self.N + self.V
        q = np.divide(self.W - self.V, visits, out=self.Q.copy(), where=pending)
        return q + exploration / (1 + visits)

    def select(
        self,
        stats: SearchStats | None = None,
        *,
        c_puct: float = DEFAULT_C_PUCT,
        virtual_loss: float = 0.0,
    ) -> Node:
        """Return the child with the highest UCB, creating it on first visit.

        Ties go to the lowest action index.

        Args:
            stats: Session counters to record newly created children in.
            c_puct: Exploration constant.
            virtual_loss: Provisional lost visits to add to the chosen edge.
                Reverted by `backup` with the same amount.

        Raises:
            NodeStateError: If the node is unexpanded or terminal.
        """
        self._require_expanded("select")

        with self._lock:
            index = int(np.argmax(self.ucb(c_puct)))
            if virtual_loss:
                self.V[index] += virtual_loss
            child = self.children[index]

        if child is not None:
            return child

        try:
            candidate = Node(self.game_state.make_move(self.actions[index]), self, index)
        except Exception:
            if virtual_loss:
                self.revert_virtual_loss(index, virtual_loss)
            raise

        with self._lock:
            child = self.children[index]
            if child is None:
                self.children[index] = child = candidate

        if child is candidate and stats is not None:
            stats.record_node()
        return child

    def backup(self, virtual_loss: float = 0.0) -> None:
        """Propagate this node's value to every ancestor.

        The value is negated first: `value()` is from the point of view of
        the player to move here, the opponent of the player who selected
        this node. It flips again at every level above.

        Args:
            virtual_loss: Virtual loss applied to each edge of the path by
                `select`, to be reverted.
        """
        value = -self.game_state.value()
        node = self
        parent = node.parent
        while parent is not None:
            parent._record(node.child_index, value, virtual_loss)
            value = -value
            node = parent
            parent = node.parent

    def _record(self, index: int, value: float, virtual_loss: float) -> None:
        with self._lock:
            self.sum_n += 1
            self.N[index] += 1
            self.W[index] += value
            self.Q[index] = self.W[index] / self.N[index]
            if virtual_loss:
                self.V[index] -= virtual_loss

    def revert_virtual_loss(self, index: int, virtual_loss: float) -> None:
        """Withdraw virtual loss added by `select` for a simulation that failed."""
        with self._lock:
            self.V[index] -= virtual_loss

    def _require_expanded(self, operation: str) -> None:
        if not self.expanded:
            state = "terminal" if self.is_terminal() else "unexpanded"
            msg = f"{operation}() requires an expanded, non-terminal node; node is {state}"
            raise NodeStateError(msg)

    # -------------------------------------------------------------------------
    # Analysis methods
    # -------------------------------------------------------------------------

    def best_index(self) -> int | None:
        """Index of the most visited action (ties: higher Q, then lower index)."""
        if not self.expanded:
            return None
        return max(range(len(self.actions)), key=lambda i: (self.N[i], self.Q[i], -i))

    def best_action(self) -> Action | None:
        index = self.best_index()
        return None if index is None else self.actions[index]

    def best_child(self) -> Node | None:
        index = self.best_index()
        return None if index is None else self.children[index]

    def visit_distribution(self) -> dict[str, float]:
        """Normalized visit counts keyed by action encoding."""
        if not self.expanded:
            return {}
        if self.sum_n == 0:
            return {a.encoding: 0.0 for a in self.actions}
        return {a.encoding: float(n) / self.sum_n for a, n in zip(self.actions, self.N)}

    def principal_variation(self, max_depth: int = 10) -> list[Action]:
        """Most visited line from this node."""
        pv: list[Action] = []
        node: Node | None = self
        while node is not None and len(pv) < max_depth:
            if not node.expanded or node.sum_n == 0:
                break
            index = node.best_index()
            pv.append(node.actions[index])
            node = node.children[index]
        return pv

    def action_stats(self, c_puct: float = DEFAULT_C_PUCT) -> list[ActionStats]:
        """Per-action statistics sorted by descending Q."""
        if not self.expanded:
            return []
        ucb = self.ucb(c_puct)
        stats = [
            ActionStats(
                index=i,
                action=action,
                prior=float(self.P[i]),
                q=float(self.Q[i]),
                visits=int(self.N[i]),
                ucb=float(ucb[i]),
            )
            for i, action in enumerate(self.actions)
        ]
        stats.sort(key=lambda s: -s.q)
        return stats

    def __str__(self) -> str:
        if not self.expanded:
            return repr(self)
        lines = [f"\n{'action(raw/exp)':>21} {'P':>10} {'Q':>10} {'N':>10} {'Q+U':>10}"]
        for s in self.action_stats():
            lines.append(f"{str(s.action):>21} {s.prior:10,.3f} {s.q:10,.3f} {s.visits:10,d} {s.ucb:10,.3f}")
        return "\n".join(lines) + "\n"

    def __repr__(self) -> str:
        return (
            f"Node(depth={self.depth}, child_index={self.child_index}, "
            f"expanded={self.expanded}, sum_n={self.sum_n})"
        )
