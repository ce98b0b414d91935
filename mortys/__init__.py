from typing import Type, cast

from .agent import Agent
from .client import MalformedResponse, MortyClient, TransportError
from .models import EpisodeStatus, Planet, PortalResult
from .recorder import Recorder
from .templates.epsilon_greedy import EpsilonGreedy
from .templates.random_agent import Random

AVAILABLE_AGENTS: dict[str, Type[Agent]] = {
    cls.__name__.lower(): cast(Type[Agent], cls) for cls in Agent.__subclasses__()
}

# Random derives from EpsilonGreedy, so it is not a direct Agent subclass
AVAILABLE_AGENTS["random"] = Random

DEFAULT_AGENT = "epsilongreedy"

__all__ = [
    "Agent",
    "EpsilonGreedy",
    "Random",
    "MortyClient",
    "TransportError",
    "MalformedResponse",
    "EpisodeStatus",
    "PortalResult",
    "Planet",
    "Recorder",
    "AVAILABLE_AGENTS",
    "DEFAULT_AGENT",
]
