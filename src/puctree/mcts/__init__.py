"""PUCT Monte Carlo Tree Search over abstract two-player games."""

from puctree.mcts.action import Action
from puctree.mcts.config import MCTSConfig
from puctree.mcts.node import Node, NodeStateError, softmax
from puctree.mcts.search import MCTS, SearchReport
from puctree.mcts.state import GameState
from puctree.mcts.stats import ActionStats, SearchStats

__all__ = [
    "MCTS",
    "Action",
    "ActionStats",
    "GameState",
    "MCTSConfig",
    "Node",
    "NodeStateError",
    "SearchReport",
    "SearchStats",
    "softmax",
]
