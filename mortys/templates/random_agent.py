from typing import Any

from .epsilon_greedy import EpsilonGreedy


class Random(EpsilonGreedy):
    """An agent that always sends a random split, as a baseline for the greedy agents."""

    EPSILON = 1.0

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        # always explores, whatever exploration rate was configured
        kwargs.pop("epsilon", None)
        super().__init__(*args, **kwargs)
