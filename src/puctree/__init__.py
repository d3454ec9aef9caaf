"""puctree: PUCT Monte Carlo Tree Search for two-player games.

The search core lives in `puctree.mcts` and only depends on the abstract
`GameState` contract. `puctree.chess` provides a chess implementation that
scores candidate moves with an external UCI engine.

- `from puctree.mcts import MCTS, Node`
- `from puctree.chess import ChessBoard, UCIEngine`
- `from puctree.core import setup_logging, load_config`
"""

__version__ = "0.1.0"

from puctree.core import load_config, save_config, setup_logging
from puctree.mcts import MCTS, Action, GameState, MCTSConfig, Node

__all__ = [
    "MCTS",
    "Action",
    "GameState",
    "MCTSConfig",
    "Node",
    "__version__",
    "load_config",
    "save_config",
    "setup_logging",
]
