from __future__ import annotations

from enum import IntEnum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Planet(IntEnum):
    ON_A_COB = 0
    CRONENBERG_WORLD = 1
    PURGE_PLANET = 2


class EpisodeStatus(BaseModel):
    """Episode counters as reported by the start and status endpoints."""

    model_config = ConfigDict(extra="ignore")

    morties_in_citadel: int
    morties_on_planet_jessica: int = 0
    morties_lost: int = 0
    steps_taken: int = 0
    status_message: Optional[str] = None

    @property
    def remaining(self) -> int:
        return self.morties_in_citadel

    @property
    def delivered(self) -> int:
        return self.morties_on_planet_jessica

    @property
    def is_finished(self) -> bool:
        return self.morties_in_citadel <= 0


class PortalRequest(BaseModel):
    planet: Planet
    morty_count: int = Field(ge=0)


class PortalResult(BaseModel):
    """Outcome of sending one group of morties through one portal."""

    model_config = ConfigDict(extra="ignore")

    morties_sent: int
    survived: bool
    morties_in_citadel: int
    morties_on_planet_jessica: int = 0
    morties_lost: int = 0
    steps_taken: int = 0
