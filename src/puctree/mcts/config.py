"""MCTS configuration."""

from dataclasses import dataclass


@dataclass(frozen=True)
class MCTSConfig:
    """Configuration for MCTS search.

    Attributes:
        move_time_ms: Wall-clock budget for each call to `MCTS.search`.
        c_puct: Exploration constant for the PUCT formula. 5.0 is the value
            used in "Mastering the game of Go with deep neural networks and
            tree search".
        temperature: Softmax temperature used to turn action values into priors.
        virtual_loss: Number of provisional lost visits applied to an edge
            while a simulation through it is in flight. Only used when
            num_workers > 1.
        num_workers: Number of threads running simulations on the shared tree.
        num_simulations: Optional cap on simulations per search. None means
            the search is bounded by move_time_ms only.
    """

    move_time_ms: int = 1000
    c_puct: float = 5.0
    temperature: float = 1.0
    virtual_loss: float = 3.0
    num_workers: int = 1
    num_simulations: int | None = None

    def __post_init__(self) -> None:
        """Validate."""
        if self.move_time_ms <= 0:
            msg = f"move_time_ms must be positive, got {self.move_time_ms}"
            raise ValueError(msg)
        if self.temperature <= 0:
            msg = f"temperature must be positive, got {self.temperature}"
            raise ValueError(msg)
        if self.virtual_loss < 0:
            msg = f"virtual_loss must be non-negative, got {self.virtual_loss}"
            raise ValueError(msg)
        if self.num_workers < 1:
            msg = f"num_workers must be at least 1, got {self.num_workers}"
            raise ValueError(msg)
        if self.num_simulations is not None and self.num_simulations < 0:
            msg = f"num_simulations must be non-negative, got {self.num_simulations}"
            raise ValueError(msg)
