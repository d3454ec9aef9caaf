"""Time-bounded MCTS driver."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from puctree.mcts.action import Action
from puctree.mcts.config import MCTSConfig
from puctree.mcts.node import Node
from puctree.mcts.stats import ActionStats, SearchStats


@dataclass
class SearchReport:
    """Diagnostics of one call to `MCTS.search`."""

    simulations: int
    elapsed_ms: float
    node_count: int
    max_depth: int
    root_stats: list[ActionStats] = field(default_factory=list)
    best_action: Action | None = None

    @property
    def simulations_per_second(self) -> float:
        return 1000.0 * self.simulations / self.elapsed_ms if self.elapsed_ms > 0 else 0.0

    @property
    def nodes_per_second(self) -> float:
        return 1000.0 * self.node_count / self.elapsed_ms if self.elapsed_ms > 0 else 0.0

    def summary(self) -> str:
        """Header line and value line, column aligned."""
        header = (
            f"{'sims':>10} {'millis':>10} {'sims/sec':>10} "
            f"{'nodes':>10} {'nodes/sec':>10} {'max depth':>10}"
        )
        values = (
            f"{self.simulations:10,d} {int(self.elapsed_ms):10,d} {int(self.simulations_per_second):10,d} "
            f"{self.node_count:10,d} {int(self.nodes_per_second):10,d} {self.max_depth:10,d}"
        )
        return f"{header}\n{values}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "simulations": self.simulations,
            "elapsed_ms": self.elapsed_ms,
            "simulations_per_second": self.simulations_per_second,
            "node_count": self.node_count,
            "nodes_per_second": self.nodes_per_second,
            "max_depth": self.max_depth,
            "best_action": self.best_action.encoding if self.best_action else None,
            "root_stats": [s.to_dict() for s in self.root_stats],
        }


class MCTS:
    """Monte Carlo Tree Search with PUCT selection and a wall-clock budget.

    Each simulation has three phases:
        1. SELECT: walk down from the root while the node is expanded and
           not terminal, taking the child with the highest UCB.
        2. EXPAND: allocate statistics and priors for the reached node
           (no-op if terminal).
        3. BACKUP: propagate the node's value to every ancestor, flipping
           its sign at each level.

    With `num_workers > 1` simulations run concurrently on the shared tree.
    Selection then applies a virtual loss to each traversed edge so the
    workers spread over different branches; backup reverts it.
    """

    def __init__(self, config: MCTSConfig | None = None) -> None:
        self.config = config or MCTSConfig()
        logger.debug(
            f"MCTS initialized with move_time_ms={self.config.move_time_ms}, "
            f"c_puct={self.config.c_puct}, num_workers={self.config.num_workers}"
        )

    @property
    def name(self) -> str:
        """Return the engine name."""
        return f"MCTS(movetime={self.config.move_time_ms}ms, workers={self.config.num_workers})"

    def search(self, node: Node, cancel: threading.Event | None = None) -> SearchReport:
        """Search from `node` until the move time elapses.

        The node is detached from its parent first, so a subtree from a
        previous search can be reused while the rest of that tree is dropped.

        Args:
            node: The root of the search.
            cancel: Optional event; once set, no new simulation is started.
                Simulations already running always complete.

        Returns:
            Diagnostics of the search.
        """
        # discard the parent tree, if any
        node.orphan()
        stats = SearchStats()
        deadline = stats.started_at + self.config.move_time_ms / 1000.0
        stop = threading.Event()

        if self.config.num_workers == 1:
            self._search_loop(node, stats, deadline, cancel, stop, virtual_loss=0.0)
        else:
            with ThreadPoolExecutor(
                max_workers=self.config.num_workers, thread_name_prefix="mcts-worker"
            ) as pool:
                futures = [
                    pool.submit(
                        self._search_loop, node, stats, deadline, cancel, stop, self.config.virtual_loss
                    )
                    for _ in range(self.config.num_workers)
                ]
                for future in futures:
                    future.result()

        elapsed = stats.finish()
        report = SearchReport(
            simulations=stats.simulations,
            elapsed_ms=1000.0 * elapsed,
            node_count=stats.node_count,
            max_depth=stats.max_depth,
            root_stats=node.action_stats(self.config.c_puct),
            best_action=node.best_action(),
        )
        logger.info(f"Search finished\n{report.summary()}")
        logger.info(str(node))
        return report

    def _search_loop(
        self,
        node: Node,
        stats: SearchStats,
        deadline: float,
        cancel: threading.Event | None,
        stop: threading.Event,
        virtual_loss: float,
    ) -> None:
        while time.monotonic() < deadline and not stop.is_set():
            if cancel is not None and cancel.is_set():
                logger.debug("Search cancelled")
                break
            if not stats.try_claim(self.config.num_simulations):
                break
            try:
                self.run_simulation(node, stats, virtual_loss=virtual_loss)
            except Exception:
                stop.set()
                raise

    def run_simulation(
        self,
        node: Node,
        stats: SearchStats | None = None,
        *,
        virtual_loss: float = 0.0,
    ) -> None:
        """Run one select / expand / backup cycle starting at `node`.

        Args:
            node: Where the descent starts (the search root).
            stats: Session counters, if any.
            virtual_loss: Virtual loss applied to every traversed edge.
                If the simulation fails, it is withdrawn from the whole path
                before the error propagates.
        """
        path: list[Node] = []
        try:
            while node.is_expanded() and not node.is_terminal():
                node = node.select(stats, c_puct=self.config.c_puct, virtual_loss=virtual_loss)
                path.append(node)

            if not node.is_expanded():
                node.expand(self.config.temperature)

            node.backup(virtual_loss)
        except Exception:
            if virtual_loss:
                for child in path:
                    child.parent.revert_virtual_loss(child.child_index, virtual_loss)
            raise

        if stats is not None:
            stats.record_depth(len(path))
