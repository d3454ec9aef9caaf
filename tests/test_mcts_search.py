"""Tests for the MCTS driver."""

import threading

import numpy as np
import pytest
from stubs import CountdownState, ExplodingState, StubState, bandit

from puctree.mcts import MCTS, Action, MCTSConfig, Node, SearchStats

# Large enough that tests bounded by num_simulations never hit the deadline
LONG_MOVE_TIME_MS = 60_000


def assert_tree_invariants(root: Node, walk_tree) -> None:
    for node in walk_tree(root):
        if not node.is_expanded():
            assert node.N is None
            continue
        assert node.sum_n == node.N.sum()
        visited = node.N > 0
        np.testing.assert_allclose(node.Q[visited], node.W[visited] / node.N[visited])
        assert np.all(node.Q[~visited] == 0.0)
        assert node.P.sum() == pytest.approx(1.0)
        assert np.all(node.V == 0.0)


class TestMCTSConfig:
    """Tests for MCTSConfig validation."""

    def test_defaults(self) -> None:
        config = MCTSConfig()
        assert config.c_puct == 5.0
        assert config.temperature == 1.0
        assert config.virtual_loss == 3.0
        assert config.num_workers == 1
        assert config.num_simulations is None

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"move_time_ms": 0},
            {"temperature": 0.0},
            {"virtual_loss": -1.0},
            {"num_workers": 0},
            {"num_simulations": -5},
        ],
    )
    def test_invalid_values_are_rejected(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            MCTSConfig(**kwargs)


class TestSearchStats:
    """Tests for the per-search counters."""

    def test_try_claim_respects_limit(self) -> None:
        stats = SearchStats()
        assert all(stats.try_claim(3) for _ in range(3))
        assert not stats.try_claim(3)
        assert stats.simulations == 3

    def test_try_claim_without_limit(self) -> None:
        stats = SearchStats()
        for _ in range(10):
            assert stats.try_claim()
        assert stats.simulations == 10

    def test_record_node_counts_installs(self) -> None:
        stats = SearchStats()
        for _ in range(4):
            stats.record_node()
        assert stats.node_count == 4

    def test_record_depth_keeps_maximum(self) -> None:
        stats = SearchStats()
        for depth in (2, 5, 3):
            stats.record_depth(depth)
        assert stats.max_depth == 5

    def test_finish_freezes_elapsed_time(self) -> None:
        stats = SearchStats()
        elapsed = stats.finish()
        assert elapsed >= 0.0
        assert stats.finish() == elapsed


class TestRunSimulation:
    """Tests for a single select / expand / backup cycle."""

    def test_first_simulation_expands_root(self, bandit_state: StubState) -> None:
        root = Node(bandit_state)
        MCTS().run_simulation(root)

        assert root.is_expanded()
        assert root.sum_n == 0

    def test_second_simulation_backs_up_a_leaf(self, bandit_state: StubState) -> None:
        root = Node(bandit_state)
        mcts = MCTS()
        stats = SearchStats()

        mcts.run_simulation(root, stats)
        mcts.run_simulation(root, stats)

        assert root.sum_n == 1
        assert root.Q[0] == pytest.approx(0.5)
        assert stats.node_count == 1
        assert stats.max_depth == 1

    def test_terminal_root_is_a_no_op(self) -> None:
        root = Node(StubState("end", 1.0))
        MCTS().run_simulation(root)
        assert not root.is_expanded()

    def test_failure_below_the_root_withdraws_virtual_loss(self) -> None:
        root = Node(StubState("root", 0.0, [(Action("a", 0.0), ExplodingState())]))
        mcts = MCTS()

        mcts.run_simulation(root, virtual_loss=3.0)
        mcts.run_simulation(root, virtual_loss=3.0)
        with pytest.raises(ValueError, match="illegal move"):
            mcts.run_simulation(root, virtual_loss=3.0)

        child = root.children[0]
        assert root.N[0] == 1
        assert root.V[0] == 0.0
        assert np.all(child.V == 0.0)
        assert child.children == [None, None]


class TestSearch:
    """Tests for MCTS.search()."""

    def test_simulation_cap(self, countdown: CountdownState, walk_tree) -> None:
        mcts = MCTS(MCTSConfig(move_time_ms=LONG_MOVE_TIME_MS, num_simulations=50))
        root = Node(countdown)

        report = mcts.search(root)

        assert report.simulations == 50
        # The first simulation only expands the root
        assert root.sum_n == 49
        assert_tree_invariants(root, walk_tree)

    def test_time_budget_bounds_search(self, countdown: CountdownState) -> None:
        mcts = MCTS(MCTSConfig(move_time_ms=50))
        report = mcts.search(Node(countdown))

        assert report.simulations > 0
        assert report.elapsed_ms >= 50
        assert report.elapsed_ms < 5_000

    def test_search_detaches_root_from_previous_tree(self, countdown: CountdownState) -> None:
        mcts = MCTS(MCTSConfig(move_time_ms=LONG_MOVE_TIME_MS, num_simulations=100))
        root = Node(countdown)
        mcts.search(root)
        child = root.best_child()
        parent_visits = root.sum_n

        mcts.search(child)

        assert child.parent is None
        assert root.sum_n == parent_visits

    def test_reused_subtree_keeps_its_statistics(self, countdown: CountdownState) -> None:
        mcts = MCTS(MCTSConfig(move_time_ms=LONG_MOVE_TIME_MS, num_simulations=200))
        root = Node(countdown)
        mcts.search(root)
        child = root.best_child()
        before = child.sum_n

        mcts.search(child)

        assert child.sum_n == before + 200

    def test_cancelled_search_runs_no_simulation(self, countdown: CountdownState) -> None:
        cancel = threading.Event()
        cancel.set()
        mcts = MCTS(MCTSConfig(move_time_ms=LONG_MOVE_TIME_MS))

        report = mcts.search(Node(countdown), cancel=cancel)

        assert report.simulations == 0

    def test_terminal_root_reports_nothing_to_play(self) -> None:
        mcts = MCTS(MCTSConfig(move_time_ms=LONG_MOVE_TIME_MS, num_simulations=5))
        report = mcts.search(Node(StubState("end", -1.0)))

        assert report.simulations == 5
        assert report.best_action is None
        assert report.root_stats == []

    def test_search_finds_winning_move(self, walk_tree) -> None:
        # From a pile of 7 the only winning move leaves 6
        mcts = MCTS(MCTSConfig(move_time_ms=LONG_MOVE_TIME_MS, num_simulations=400))
        root = Node(CountdownState(7))

        report = mcts.search(root)

        assert report.best_action.encoding == "take1"
        assert report.max_depth > 1
        assert_tree_invariants(root, walk_tree)

    def test_collaborator_errors_propagate(self) -> None:
        mcts = MCTS(MCTSConfig(move_time_ms=LONG_MOVE_TIME_MS, num_simulations=10))
        with pytest.raises(ValueError, match="illegal move"):
            mcts.search(Node(ExplodingState()))

    def test_name(self) -> None:
        assert MCTS(MCTSConfig(move_time_ms=250)).name == "MCTS(movetime=250ms, workers=1)"


class TestBanditEndToEnd:
    """Three actions with values [0.5, -0.2, 0.1] leading to terminal leaves."""

    @pytest.fixture
    def searched(self, bandit_state: StubState) -> tuple[Node, object]:
        root = Node(bandit_state)
        root.expand()
        mcts = MCTS(MCTSConfig(move_time_ms=LONG_MOVE_TIME_MS, num_simulations=100))
        return root, mcts.search(root)

    def test_every_simulation_is_backed_up(self, searched) -> None:
        root, report = searched
        assert report.simulations == 100
        assert root.N.sum() == 100
        assert root.sum_n == 100

    def test_all_actions_explored(self, searched) -> None:
        root, _ = searched
        assert np.all(root.N > 0)

    def test_mean_values_match_action_values(self, searched) -> None:
        root, _ = searched
        np.testing.assert_allclose(root.Q, [0.5, -0.2, 0.1])

    def test_best_action_has_highest_input_value(self, searched) -> None:
        root, report = searched
        assert int(np.argmax(root.Q)) == 0
        assert report.best_action.encoding == "a0"
        assert report.root_stats[0].action.encoding == "a0"

    def test_report(self, searched) -> None:
        _, report = searched
        summary = report.summary().splitlines()
        assert summary[0].split() == ["sims", "millis", "sims/sec", "nodes", "nodes/sec", "max", "depth"]
        assert summary[1].split()[0] == "100"
        assert report.node_count == 3
        assert report.max_depth == 1

        data = report.to_dict()
        assert data["simulations"] == 100
        assert data["best_action"] == "a0"
        assert [row["action"] for row in data["root_stats"]] == ["a0", "a2", "a1"]


class TestParallelSearch:
    """Tests for multi-threaded search with virtual loss."""

    def test_workers_share_the_simulation_budget(self, walk_tree) -> None:
        mcts = MCTS(MCTSConfig(move_time_ms=LONG_MOVE_TIME_MS, num_simulations=300, num_workers=4))
        root = Node(CountdownState(15))
        root.expand()

        report = mcts.search(root)

        assert report.simulations == 300
        assert root.sum_n == 300
        assert_tree_invariants(root, walk_tree)

    def test_each_slot_gets_one_child(self, walk_tree) -> None:
        mcts = MCTS(MCTSConfig(move_time_ms=LONG_MOVE_TIME_MS, num_simulations=200, num_workers=8))
        root = Node(CountdownState(20))

        report = mcts.search(root)

        nodes = list(walk_tree(root))
        assert report.node_count == len(nodes) - 1
        for node in nodes:
            if node.parent is not None:
                assert node.parent.children[node.child_index] is node

    def test_parallel_search_is_time_bounded(self) -> None:
        mcts = MCTS(MCTSConfig(move_time_ms=50, num_workers=3))
        report = mcts.search(Node(CountdownState(30)))
        assert report.simulations > 0
        assert report.elapsed_ms < 5_000

    def test_worker_errors_propagate(self) -> None:
        mcts = MCTS(MCTSConfig(move_time_ms=LONG_MOVE_TIME_MS, num_workers=4))
        with pytest.raises(ValueError, match="illegal move"):
            mcts.search(Node(ExplodingState()))

    def test_failed_search_leaves_no_virtual_loss(self, walk_tree) -> None:
        root = Node(StubState("root", 0.0, [(Action("a", 0.0), ExplodingState())]))
        mcts = MCTS(MCTSConfig(move_time_ms=LONG_MOVE_TIME_MS, num_simulations=20, num_workers=2))

        with pytest.raises(ValueError, match="illegal move"):
            mcts.search(root)

        for node in walk_tree(root):
            if node.is_expanded():
                assert np.all(node.V == 0.0)
        assert root.V[0] == 0.0

    def test_parallel_search_finds_winning_move(self) -> None:
        mcts = MCTS(MCTSConfig(move_time_ms=LONG_MOVE_TIME_MS, num_simulations=400, num_workers=4))
        root = Node(CountdownState(8))

        report = mcts.search(root)

        # 8 - 2 leaves 6, a lost pile for the opponent
        assert report.best_action.encoding == "take2"
