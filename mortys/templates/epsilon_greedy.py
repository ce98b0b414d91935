import logging
import random
from typing import Any, Optional

from ..agent import Agent
from ..policy import Action, ActionTable, ChannelOutcome, EpsilonGreedyPolicy

logger = logging.getLogger()


class EpsilonGreedy(Agent):
    """An agent that mostly repeats its best-scoring split and sometimes tries a random one."""

    EPSILON: float = 0.4

    table: ActionTable
    policy: EpsilonGreedyPolicy

    def __init__(
        self,
        *args: Any,
        epsilon: Optional[float] = None,
        rng: Optional[random.Random] = None,
        **kwargs: Any,
    ) -> None:
        # the policy must exist before the base class names the recording
        self.table = ActionTable.seeded()
        self.policy = EpsilonGreedyPolicy(
            self.table,
            self.EPSILON if epsilon is None else epsilon,
            rng=rng,
        )
        super().__init__(*args, **kwargs)

    @property
    def name(self) -> str:
        return f"{super().name}.{self.policy.epsilon}"

    def choose_action(self, remaining: int) -> Action:
        return self.policy.choose(remaining)

    def observe_outcome(self, action: Action, outcomes: list[ChannelOutcome]) -> float:
        reward = self.policy.update(action, outcomes)
        stats = self.table.get(action)
        if stats is not None:
            logger.debug(
                f"{action} reward {reward:.3f}, avg {stats.avg_reward:.3f} over {len(stats.history)} tries"
            )
        return reward

    def summary(self) -> dict[str, Any]:
        return {**super().summary(), "actions_table": self.table.to_dict()}

    def step_metadata(self) -> dict[str, Any]:
        return {"mode": self.policy.last_mode, "known_actions": len(self.table)}

    def cleanup(self) -> None:
        if self._cleanup:
            best = self.table.best()
            if best is not None:
                stats = self.table.get(best)
                logger.info(
                    f"best known action {best} with avg reward {stats.avg_reward:.3f} "
                    f"({len(self.table)} actions tried)"
                )
        super().cleanup()
