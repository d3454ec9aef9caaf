"""Action value type."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Action:
    """An available action in a GameState.

    Attributes:
        encoding: The action encoded as a string (UCI long algebraic for chess).
        value: Expected value of the game if the action is taken, from the
            perspective of the player taking it. Feeds the prior softmax.
        raw_value: The same estimate on the domain's native scale (pawns for
            chess). Display only; defaults to `value`.
    """

    encoding: str
    value: float
    raw_value: float | None = None

    def __post_init__(self) -> None:
        if self.raw_value is None:
            object.__setattr__(self, "raw_value", self.value)

    def __str__(self) -> str:
        return f"{self.encoding:>4}({self.raw_value:+3.2f}/{self.value:+3.2f})"
