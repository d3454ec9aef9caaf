"""Strongly-typed configuration schemas for puctree.

These dataclasses provide validation, IDE support, and serve as the
single source of truth for all configuration options.
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from puctree.chess.board import DEFAULT_NUM_MOVES
from puctree.chess.uci_engine import DEFAULT_HASH_MB, DEFAULT_MOVE_TIME_MS
from puctree.mcts.config import MCTSConfig


@dataclass
class EngineConfig:
    """Configuration for the UCI engine that scores candidate moves."""

    binary_path: str = "stockfish"
    move_time_ms: int = DEFAULT_MOVE_TIME_MS  # Engine think time per position
    hash_mb: int = DEFAULT_HASH_MB
    num_moves: int = DEFAULT_NUM_MOVES  # Candidate moves per position (MultiPV)
    timeout: float = 60.0

    def __post_init__(self) -> None:
        """Validate."""
        if self.num_moves < 1:
            msg = f"num_moves must be at least 1, got {self.num_moves}"
            raise ValueError(msg)


@dataclass
class SearchConfig:
    """Configuration for the tree search. Mirrors MCTSConfig."""

    move_time_ms: int = 1000
    c_puct: float = 5.0
    temperature: float = 1.0
    virtual_loss: float = 3.0
    num_workers: int = 1
    num_simulations: int | None = None

    def __post_init__(self) -> None:
        """Validate by building the MCTSConfig."""
        self.to_mcts_config()

    def to_mcts_config(self) -> MCTSConfig:
        return MCTSConfig(**asdict(self))


@dataclass
class LoggingConfig:
    """Configuration for loguru sinks."""

    level: str = "INFO"
    file: Path | None = None

    def __post_init__(self) -> None:
        """Convert string to Path if needed."""
        if isinstance(self.file, str):
            self.file = Path(self.file)


@dataclass
class AppConfig:
    """Top-level configuration combining all sub-configs."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    mcts: SearchConfig = field(default_factory=SearchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def config_from_dict(data: dict[str, Any]) -> AppConfig:
    """Create AppConfig from a dictionary (e.g., from OmegaConf).

    Args:
        data: Dictionary with configuration values.

    Returns:
        AppConfig instance.
    """
    return AppConfig(
        engine=EngineConfig(**data.get("engine", {})),
        mcts=SearchConfig(**data.get("mcts", {})),
        logging=LoggingConfig(**data.get("logging", {})),
    )


def config_to_dict(config: AppConfig) -> dict[str, Any]:
    """Convert AppConfig to a dictionary for serialization.

    Args:
        config: AppConfig instance.

    Returns:
        Dictionary representation.
    """
    result = asdict(config)
    # Convert Path objects to strings for YAML serialization
    if result["logging"]["file"] is not None:
        result["logging"]["file"] = str(result["logging"]["file"])
    return result
