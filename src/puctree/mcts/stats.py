"""Per-search diagnostics."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from puctree.mcts.action import Action


@dataclass(frozen=True)
class ActionStats:
    """Statistics of one action at an expanded node."""

    index: int
    action: Action
    prior: float
    q: float
    visits: int
    ucb: float

    def to_dict(self) -> dict[str, float | int | str]:
        return {
            "action": self.action.encoding,
            "raw_value": self.action.raw_value,
            "value": self.action.value,
            "P": self.prior,
            "Q": self.q,
            "N": self.visits,
            "Q+U": self.ucb,
        }


@dataclass
class SearchStats:
    """Counters for a single search session.

    One instance is created per call to `MCTS.search` and handed down to
    `Node.select`, so concurrent searches on different trees never share
    counters. The search algorithm never reads these values.
    """

    simulations: int = 0
    node_count: int = 0
    max_depth: int = 0
    started_at: float = field(default_factory=time.monotonic)
    elapsed: float | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_node(self) -> None:
        """Count a newly constructed node."""
        with self._lock:
            self.node_count += 1

    def record_depth(self, depth: int) -> None:
        """Track the deepest ply below the search root reached by a simulation."""
        with self._lock:
            if depth > self.max_depth:
                self.max_depth = depth

    def try_claim(self, limit: int | None = None) -> bool:
        """Reserve one simulation, unless `limit` simulations were already claimed."""
        with self._lock:
            if limit is not None and self.simulations >= limit:
                return False
            self.simulations += 1
            return True

    def finish(self) -> float:
        """Freeze the elapsed time and return it in seconds."""
        if self.elapsed is None:
            self.elapsed = time.monotonic() - self.started_at
        return self.elapsed
