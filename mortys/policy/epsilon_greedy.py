from __future__ import annotations

import logging
import random
from typing import Iterable, Optional

from .contracts import CHANNEL_COUNT, Action, ChannelOutcome
from .table import ActionTable

logger = logging.getLogger(__name__)

EXPLORE_MIN_COUNT = 1
EXPLORE_MAX_COUNT = 3
# Below one morty per portal the whole remainder goes through the first portal.
MIN_SPLIT_CAPACITY = CHANNEL_COUNT


def compute_reward(outcomes: Iterable[ChannelOutcome]) -> float:
    """Fraction of the morties sent in one step that survived; 0.0 when none were sent."""
    sent = 0
    survived = 0
    for outcome in outcomes:
        sent += outcome.sent
        survived += outcome.survived_count
    if sent == 0:
        return 0.0
    return survived / sent


def clamp_to_capacity(action: Action, remaining_capacity: int) -> Action:
    if remaining_capacity < MIN_SPLIT_CAPACITY:
        return Action(max(remaining_capacity, 0), 0, 0)
    return action


class EpsilonGreedyPolicy:
    """Epsilon-greedy selection over the actions seen so far in an episode."""

    epsilon: float
    table: ActionTable
    rng: random.Random
    last_mode: str

    def __init__(
        self,
        table: ActionTable,
        epsilon: float,
        rng: Optional[random.Random] = None,
    ) -> None:
        if not 0.0 < epsilon <= 1.0:
            raise ValueError(f"epsilon must be in (0, 1], got {epsilon}")
        self.table = table
        self.epsilon = float(epsilon)
        self.rng = rng or random.Random()
        self.last_mode = ""

    def random_action(self) -> Action:
        return Action(
            *(
                self.rng.randint(EXPLORE_MIN_COUNT, EXPLORE_MAX_COUNT)
                for _ in range(CHANNEL_COUNT)
            )
        )

    def choose(self, remaining_capacity: int) -> Action:
        chance = self.rng.random()
        if chance < self.epsilon:
            self.last_mode = "explore"
            action = self.random_action()
        else:
            best = self.table.best()
            if best is None:
                # nothing learned yet, exploit has no candidate
                self.last_mode = "fallback"
                action = self.random_action()
            else:
                self.last_mode = "exploit"
                action = best

        clamped = clamp_to_capacity(action, remaining_capacity)
        if clamped != action:
            logger.debug(
                f"capacity {remaining_capacity} below {MIN_SPLIT_CAPACITY}, "
                f"replacing {action} with {clamped}"
            )
            self.last_mode = f"{self.last_mode}+clamp"
        logger.debug(f"chance {chance:.3f} epsilon {self.epsilon}: {self.last_mode} {clamped}")
        return clamped

    def update(self, action: Action, outcomes: Iterable[ChannelOutcome]) -> float:
        reward = compute_reward(outcomes)
        self.table.upsert(action, reward)
        return reward
