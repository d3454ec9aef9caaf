"""Chess game state backed by a UCI engine."""

from puctree.chess.board import DEFAULT_NUM_MOVES, ChessBoard, ChessEngine
from puctree.chess.uci_engine import (
    InfoLine,
    UCIEngine,
    UCIEngineError,
    parse_info_line,
    parse_multipv,
    score_to_value,
    terminal_value,
)

__all__ = [
    "DEFAULT_NUM_MOVES",
    "ChessBoard",
    "ChessEngine",
    "InfoLine",
    "UCIEngine",
    "UCIEngineError",
    "parse_info_line",
    "parse_multipv",
    "score_to_value",
    "terminal_value",
]
