from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator

CHANNEL_COUNT = 3


@dataclass(slots=True, frozen=True)
class Action:
    """How many morties go through each of the three portals in one step."""

    on_a_cob: int
    cronenberg: int
    purge: int

    def __post_init__(self) -> None:
        for count in self.counts:
            if isinstance(count, bool) or not isinstance(count, int) or count < 0:
                raise ValueError(f"Action counts must be non-negative ints, got {self.counts}")

    @classmethod
    def of(cls, counts: tuple[int, int, int] | list[int]) -> Action:
        if len(counts) != CHANNEL_COUNT:
            raise ValueError(f"Action needs {CHANNEL_COUNT} counts, got {len(counts)}")
        return cls(*counts)

    @property
    def counts(self) -> tuple[int, int, int]:
        return (self.on_a_cob, self.cronenberg, self.purge)

    @property
    def total(self) -> int:
        return sum(self.counts)

    def __iter__(self) -> Iterator[int]:
        return iter(self.counts)

    def __str__(self) -> str:
        return str(self.counts)

    def to_dict(self) -> dict[str, Any]:
        return {"counts": list(self.counts), "total": self.total}


@dataclass(slots=True, frozen=True)
class ChannelOutcome:
    channel: int
    sent: int
    survived: bool

    @property
    def survived_count(self) -> int:
        return self.sent if self.survived else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": int(self.channel),
            "sent": int(self.sent),
            "survived": bool(self.survived),
        }


@dataclass(slots=True)
class ActionStats:
    history: list[float] = field(default_factory=list)
    avg_reward: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "avg_reward": float(self.avg_reward),
            "observations": len(self.history),
        }


def average(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def observe(stats: ActionStats, reward: float) -> ActionStats:
    """Append one reward to ``stats`` and refresh its running mean in place."""
    stats.history.append(float(reward))
    stats.avg_reward = average(stats.history)
    return stats
