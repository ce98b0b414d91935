from .contracts import Action, ActionStats, ChannelOutcome, average, observe
from .epsilon_greedy import EpsilonGreedyPolicy, clamp_to_capacity, compute_reward
from .table import BOOTSTRAP_ACTION, BOOTSTRAP_REWARD, ActionTable

__all__ = [
    "Action",
    "ActionStats",
    "ActionTable",
    "BOOTSTRAP_ACTION",
    "BOOTSTRAP_REWARD",
    "ChannelOutcome",
    "EpsilonGreedyPolicy",
    "average",
    "clamp_to_capacity",
    "compute_reward",
    "observe",
]
