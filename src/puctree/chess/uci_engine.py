"""UCI engine wrapper used to generate and score candidate moves.

The engine binary (e.g. Stockfish) is started once and kept running for the
whole search. Communication goes through pexpect, which handles PTY
allocation and buffering correctly.

Scores are converted to expected values in [-1, 1] with a logistic model
of the win probability:

    p(win) = 1 / (1 + exp(-scale * cp))

where cp is the score in centipawns. The default scale gives
p(win | cp=200) = 0.8. Draws are not modelled explicitly.
"""

from __future__ import annotations

import math
import shutil
import threading
from dataclasses import dataclass
from pathlib import Path

import chess
import pexpect
from loguru import logger

from puctree.mcts.action import Action

DEFAULT_MOVE_TIME_MS = 25
DEFAULT_HASH_MB = 128
DEFAULT_LOGISTIC_SCALE = -math.log(0.25) / 200.0

# halfmove clock at which the 50-move rule ends the game
FIFTY_MOVE_HALFMOVES = 100


class UCIEngineError(Exception):
    """Raised when UCI communication fails."""

    pass


@dataclass(frozen=True)
class InfoLine:
    """The fields of a UCI `info ... multipv ...` line used for move scoring."""

    multipv: int
    kind: str  # "cp" or "mate"
    score: int
    move: str


def score_to_value(kind: str, score: int, scale: float = DEFAULT_LOGISTIC_SCALE) -> float:
    """Convert a UCI score to an expected value in [-1, 1].

    Args:
        kind: "cp" for centipawns, "mate" for a distance to mate.
        score: The raw score. Positive favours the side to move.
        scale: Logistic scale for centipawn scores.

    Returns:
        2 * p(win) - 1.
    """
    if kind == "cp":
        pwin = 1.0 / (1.0 + math.exp(-scale * score))
    elif kind == "mate":
        pwin = (1.0 + (score > 0) - (score < 0)) / 2.0
    else:
        msg = f"Unknown score type: {kind!r}"
        raise ValueError(msg)
    return 2.0 * pwin - 1.0


def parse_info_line(line: str) -> InfoLine | None:
    """Parse a UCI info line carrying a multipv score and a principal variation.

    e.g.:
        info depth 10 seldepth 17 multipv 1 score cp 0 nodes 35812 nps 1377384 tbhits 0 time 26 pv e4c3 d7d5
        info depth 10 seldepth 17 multipv 1 score cp 0 upperbound nodes 35812 nps 1377384 time 26 pv e4c3

    Returns:
        The parsed line, or None for any other line.
    """
    tokens = line.split()
    if not tokens or tokens[0] != "info":
        return None
    if "multipv" not in tokens or "score" not in tokens or "pv" not in tokens:
        return None

    try:
        multipv = int(tokens[tokens.index("multipv") + 1])
        score_at = tokens.index("score")
        kind = tokens[score_at + 1]
        score = int(tokens[score_at + 2])
        move = tokens[tokens.index("pv") + 1]
    except (IndexError, ValueError):
        return None

    if kind not in ("cp", "mate"):
        return None
    return InfoLine(multipv=multipv, kind=kind, score=score, move=move)


def parse_multipv(lines: list[str], scale: float = DEFAULT_LOGISTIC_SCALE) -> list[Action]:
    """Extract the scored moves of the last complete multipv iteration.

    Lines are walked backwards from `bestmove`; the block ends as soon as the
    multipv rank stops decreasing (the previous iteration).

    Returns:
        Actions ordered by rank, best first.
    """
    moves: list[Action] = []
    last_rank = math.inf
    for line in reversed(lines):
        info = parse_info_line(line)
        if info is None:
            continue
        if info.multipv >= last_rank:
            # previous iteration
            break
        value = score_to_value(info.kind, info.score, scale)
        moves.append(Action(info.move, value, info.score / 100.0))
        last_rank = info.multipv
    moves.reverse()
    return moves


def terminal_value(board: chess.Board) -> float:
    """Value of a finished game for the side to move: -1 if mated, else a draw."""
    return -1.0 if board.is_checkmate() else 0.0


def is_game_over(board: chess.Board) -> bool:
    """Whether no move should be searched from `board`."""
    return board.halfmove_clock >= FIFTY_MOVE_HALFMOVES or board.is_game_over()


class UCIEngine:
    """UCI protocol wrapper around a long-lived chess engine process.

    Example:
        engine = UCIEngine("stockfish")
        moves = engine.best_moves(chess.STARTING_FEN, 5)
        engine.close()

    Or as a context manager:
        with UCIEngine("stockfish") as engine:
            value = engine.evaluate(fen)

    Every request/response exchange holds a lock, so one engine can serve
    several search threads.
    """

    def __init__(
        self,
        binary_path: str | Path = "stockfish",
        *,
        move_time_ms: int = DEFAULT_MOVE_TIME_MS,
        hash_mb: int = DEFAULT_HASH_MB,
        logistic_scale: float = DEFAULT_LOGISTIC_SCALE,
        timeout: float = 60.0,
    ) -> None:
        """Initialize and start the UCI engine.

        Args:
            binary_path: Path or name (looked up on PATH) of the engine executable.
            move_time_ms: Time the engine may think about each position.
            hash_mb: Size of the engine's hash table.
            logistic_scale: Scale of the centipawn to win probability model.
            timeout: Timeout in seconds for UCI responses.
        """
        self._child: pexpect.spawn | None = None
        self._lock = threading.Lock()

        resolved = shutil.which(str(binary_path))
        if resolved is None:
            raise FileNotFoundError(f"Engine binary not found: {binary_path}")

        self.binary_path = Path(resolved)
        self.move_time_ms = move_time_ms
        self.hash_mb = hash_mb
        self.logistic_scale = logistic_scale
        self.timeout = timeout

        self._start_engine()

    def _start_engine(self) -> None:
        """Start the UCI engine subprocess."""
        cmd = str(self.binary_path)
        logger.debug(f"Starting UCI engine: {cmd}")

        self._child = pexpect.spawn(
            cmd,
            encoding="utf-8",
            timeout=self.timeout,
            echo=False,
        )

        self._send_command("uci")
        self._read_response("uciok")
        self._set_option("Hash", self.hash_mb)
        self._wait_for_ready()

        logger.debug("UCI engine initialized")

    def _send_command(self, command: str) -> None:
        """Send a command to the engine."""
        if self._child is None:
            raise UCIEngineError("Engine not running")

        logger.trace(f"UCI send: {command}")
        self._child.sendline(command)

    def _read_line(self) -> str:
        if self._child is None:
            raise UCIEngineError("Engine not running")

        try:
            self._child.expect(r"\r?\n", timeout=self.timeout)
        except pexpect.TIMEOUT:
            raise UCIEngineError("Timeout waiting for engine output")
        except pexpect.EOF:
            raise UCIEngineError("Engine process terminated unexpectedly")

        line = (self._child.before or "").rstrip()
        logger.trace(f"UCI recv: {line}")
        return line

    def _read_response(self, expected: str) -> list[str]:
        """Read lines up to and including the first one starting with `expected`."""
        lines: list[str] = []
        while True:
            line = self._read_line()
            lines.append(line)
            if line.startswith(expected):
                return lines

    def _wait_for_ready(self) -> None:
        self._send_command("isready")
        self._read_response("readyok")

    def _set_option(self, name: str, value: int | str) -> None:
        self._send_command(f"setoption name {name} value {value}")

    def best_moves(self, fen: str, num_moves: int) -> list[Action]:
        """The `num_moves` best moves in a position, with their values.

        Args:
            fen: Position in FEN notation.
            num_moves: Number of moves to return (MultiPV).

        Returns:
            Actions ordered best first. Empty if the game is over, including
            by the 50-move rule.
        """
        board = chess.Board(fen)
        if is_game_over(board):
            return []

        with self._lock:
            self._wait_for_ready()
            self._set_option("MultiPV", num_moves)
            self._wait_for_ready()
            self._send_command(f"position fen {fen}")
            self._wait_for_ready()
            self._send_command(f"go movetime {self.move_time_ms}")
            response = self._read_response("bestmove")

        return parse_multipv(response, self.logistic_scale)[:num_moves]

    def evaluate(self, fen: str) -> float:
        """Value of a position for the side to move, in [-1, 1].

        Finished games are valued locally: -1 for the mated side, 0 for
        any draw. Otherwise the value of the engine's best move.

        Raises:
            UCIEngineError: If the engine reports no scored move.
        """
        board = chess.Board(fen)
        if is_game_over(board):
            return terminal_value(board)

        moves = self.best_moves(fen, 1)
        if not moves:
            raise UCIEngineError(f"No valid score for position: {fen}")
        return moves[0].value

    def make_move(self, fen: str, move: str) -> str:
        """Play `move` (UCI notation) in `fen` and return the new FEN.

        Raises:
            ValueError: If the move is malformed or illegal in the position.
        """
        board = chess.Board(fen)
        board.push_uci(move)
        return board.fen()

    def pretty_print(self, fen: str) -> str:
        return str(chess.Board(fen))

    def reset(self) -> str:
        """Start a new game and return the starting position."""
        with self._lock:
            self._send_command("ucinewgame")
            self._wait_for_ready()
        return chess.STARTING_FEN

    def close(self) -> None:
        """Ask the engine to quit and reap it. Calling it again does nothing."""
        with self._lock:
            child, self._child = self._child, None
        if child is None:
            return

        logger.debug(f"Stopping UCI engine {self.binary_path.name}")
        try:
            child.sendline("quit")
            child.wait()
        except (pexpect.ExceptionPexpect, OSError) as e:
            logger.warning(f"UCI engine did not quit ({e}), killing it")
            child.terminate(force=True)

    def __enter__(self) -> UCIEngine:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __del__(self) -> None:
        # constructor may have failed before the lock existed
        if getattr(self, "_lock", None) is not None:
            self.close()

    @property
    def name(self) -> str:
        """Return the engine name."""
        return f"UCI({self.binary_path.name})"
