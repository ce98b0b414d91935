from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

from .contracts import Action, ActionStats, observe

logger = logging.getLogger(__name__)

# The seed gives the exploit branch a candidate before anything has been observed.
BOOTSTRAP_ACTION = Action(2, 2, 2)
BOOTSTRAP_REWARD = 0.1


class ActionTable:
    """Everything learned during one episode, keyed by action.

    Entries are only ever added or appended to. Iteration follows insertion
    order, which is also the tie-break order used by :meth:`best`.
    """

    def __init__(self) -> None:
        self._entries: dict[Action, ActionStats] = {}

    @classmethod
    def seeded(
        cls,
        action: Action = BOOTSTRAP_ACTION,
        reward: float = BOOTSTRAP_REWARD,
    ) -> ActionTable:
        table = cls()
        table.upsert(action, reward)
        return table

    def get(self, action: Action) -> Optional[ActionStats]:
        return self._entries.get(action)

    def upsert(self, action: Action, reward: float) -> ActionStats:
        stats = self._entries.get(action)
        if stats is None:
            stats = ActionStats(history=[float(reward)], avg_reward=float(reward))
            self._entries[action] = stats
            return stats
        return observe(stats, reward)

    def best(self) -> Optional[Action]:
        """Action with the strictly highest average reward, or None when empty."""
        best_action: Optional[Action] = None
        best_reward: Optional[float] = None
        for action, stats in self._entries.items():
            if best_reward is None or stats.avg_reward > best_reward:
                best_action = action
                best_reward = stats.avg_reward
        logger.debug(f"best action {best_action} with avg reward {best_reward}")
        return best_action

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, action: object) -> bool:
        return action in self._entries

    def __iter__(self) -> Iterator[Action]:
        return iter(self._entries)

    def items(self) -> Iterator[tuple[Action, ActionStats]]:
        return iter(self._entries.items())

    def to_dict(self) -> dict[str, Any]:
        return {str(action): stats.to_dict() for (action, stats) in self.items()}
