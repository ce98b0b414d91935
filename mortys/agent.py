import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any, Optional

from .client import DEFAULT_TIMEOUT_SECONDS, MortyClient, TransportError
from .models import EpisodeStatus, Planet, PortalResult
from .policy import Action, ChannelOutcome
from .recorder import Recorder

logger = logging.getLogger()

# how often a step waiting on its portal sends checks for cancellation
CANCEL_POLL_SECONDS = 0.05


class Agent(ABC):
    """Interface for an agent that plays one Morty Express episode."""

    MAX_ACTIONS: int = 5000  # to avoid looping forever if the citadel never empties

    action_counter: int = 0
    timer: float = 0
    agent_name: str
    client: MortyClient
    timeout_seconds: float

    initial_status: Optional[EpisodeStatus]
    latest_status: Optional[EpisodeStatus]
    recorder: Recorder

    def __init__(
        self,
        client: MortyClient,
        agent_name: str,
        record: bool = False,
        recordings_dir: str = "recordings",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.client = client
        self.agent_name = agent_name
        self.timeout_seconds = float(timeout_seconds)
        self.initial_status = None
        self.latest_status = None
        self._stop = threading.Event()
        self._cleanup = True
        self._pool: Optional[ThreadPoolExecutor] = None
        if record:
            self.start_recording(recordings_dir)

    def main(self) -> Optional[EpisodeStatus]:
        """The main agent loop. Sends morties until the citadel is empty, then exits."""
        self.timer = time.time()
        try:
            self.append_status(self.client.start())
            logger.info(
                f"{self.name} - episode started with {self.initial_pool} morties in the citadel"
            )
            while not self.is_done() and self.action_counter < self.MAX_ACTIONS:
                action = self.choose_action(self.remaining)
                outcomes = self.take_action(action)
                if outcomes is None:
                    break
                reward = self.observe_outcome(action, outcomes)
                self.action_counter += 1

                status = self.client.status()
                self.append_status(status)
                self.record_step(action, outcomes, reward, status)
                logger.info(
                    f"{self.name} - {action}: reward {reward:.3f}, count {self.action_counter}, "
                    f"citadel {status.morties_in_citadel}, jessica {status.morties_on_planet_jessica}, "
                    f"lost {status.morties_lost}, rate {self.delivery_rate:.3f}"
                )
        except TransportError as e:
            logger.error(f"{self.name} - aborting episode after {self.action_counter} actions: {e}")
            raise
        finally:
            self.cleanup()

        return self.latest_status

    @property
    def remaining(self) -> int:
        if self.latest_status is None:
            return 0
        return self.latest_status.remaining

    @property
    def initial_pool(self) -> int:
        if self.initial_status is None:
            return 0
        return self.initial_status.remaining

    @property
    def delivery_rate(self) -> float:
        """Share of the starting pool that reached planet Jessica so far."""
        if self.latest_status is None or self.initial_pool <= 0:
            return 0.0
        return self.latest_status.delivered / self.initial_pool

    @property
    def seconds(self) -> float:
        return (time.time() - self.timer) * 100 // 1 / 100

    @property
    def fps(self) -> float:
        if self.action_counter == 0:
            return 0.0
        elapsed_time = max(self.seconds, 0.1)
        return round(self.action_counter / elapsed_time, 2)

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    @property
    def name(self) -> str:
        return self.__class__.__name__.lower()

    def cancel(self) -> None:
        """Ask the loop to stop; the step in flight is dropped, not learned from."""
        self._stop.set()

    def is_done(self) -> bool:
        if self.cancelled:
            return True
        return self.latest_status is not None and self.latest_status.is_finished

    def start_recording(self, recordings_dir: str) -> None:
        self.recorder = Recorder(root_dir=recordings_dir, agent_name=self.name)
        logger.info(f"created new recording for {self.name} into {self.recorder.filename}")

    def append_status(self, status: EpisodeStatus) -> None:
        if self.initial_status is None:
            self.initial_status = status
        self.latest_status = status

    def record_step(
        self,
        action: Action,
        outcomes: list[ChannelOutcome],
        reward: float,
        status: EpisodeStatus,
    ) -> None:
        if not hasattr(self, "recorder"):
            return
        self.recorder.record(
            {
                "event": "step",
                "step": self.action_counter,
                "action": action,
                "outcomes": outcomes,
                "reward": reward,
                "status": status,
                **self.step_metadata(),
            }
        )

    def step_metadata(self) -> dict[str, Any]:
        return {}

    def take_action(self, action: Action) -> Optional[list[ChannelOutcome]]:
        """Sends every non-empty portal of ``action`` at once and waits for all of them.

        Returns None as soon as the agent is cancelled, without waiting for the
        sends still in flight; their results are never learned from.
        """
        outcomes = {
            planet: ChannelOutcome(channel=int(planet), sent=0, survived=False)
            for planet in Planet
        }
        pending = [(planet, count) for (planet, count) in zip(Planet, action) if count > 0]
        if pending:
            futures: dict[Future[PortalResult], tuple[Planet, int]] = {
                self.portal_pool.submit(self.client.send, planet, count): (planet, count)
                for (planet, count) in pending
            }
            deadline = time.monotonic() + self.timeout_seconds
            not_done = set(futures)
            while not_done:
                if self.cancelled:
                    break
                time_left = deadline - time.monotonic()
                if time_left <= 0:
                    for future in not_done:
                        future.cancel()
                    raise TransportError(
                        f"{len(not_done)} portal send(s) did not finish within {self.timeout_seconds}s"
                    )
                done, not_done = wait(
                    not_done,
                    timeout=min(CANCEL_POLL_SECONDS, time_left),
                    return_when=FIRST_COMPLETED,
                )
                for future in done:
                    planet, count = futures[future]
                    result = future.result()
                    outcomes[planet] = ChannelOutcome(
                        channel=int(planet), sent=count, survived=result.survived
                    )

        if self.cancelled:
            logger.info(f"{self.name} - cancelled during {action}, discarding its results")
            return None
        return [outcomes[planet] for planet in Planet]

    @property
    def portal_pool(self) -> ThreadPoolExecutor:
        """One worker per portal, kept for the whole episode."""
        if self._pool is None:
            self._pool = ThreadPoolExecutor(max_workers=len(Planet), thread_name_prefix="portal")
        return self._pool

    def summary(self) -> dict[str, Any]:
        status = self.latest_status
        return {
            "actions": self.action_counter,
            "seconds": self.seconds,
            "initial_pool": self.initial_pool,
            "remaining": self.remaining,
            "delivered": status.delivered if status else 0,
            "lost": status.morties_lost if status else 0,
            "delivery_rate": self.delivery_rate,
            "cancelled": self.cancelled,
        }

    def cleanup(self) -> None:
        """Called after main loop is finished."""
        if self._cleanup:
            self._cleanup = False  # only cleanup once per agent
            if self._pool is not None:
                # sends abandoned by a cancel or timeout finish in the background
                self._pool.shutdown(wait=False, cancel_futures=True)
                self._pool = None
            summary = self.summary()
            if hasattr(self, "recorder"):
                self.recorder.close(summary)
                logger.info(f"recording for {self.name} is available in {self.recorder.filename}")
            if self.action_counter >= self.MAX_ACTIONS:
                logger.info(
                    f"Exiting: agent reached MAX_ACTIONS of {self.MAX_ACTIONS}, took {self.seconds} seconds ({self.fps} average fps)"
                )
            else:
                logger.info(
                    f"Finishing: agent took {self.action_counter} actions, took {self.seconds} seconds ({self.fps} average fps)"
                )
            logger.info(
                f"delivered {summary['delivered']}, lost {summary['lost']}, rate {summary['delivery_rate']:.3f}"
            )

    @abstractmethod
    def choose_action(self, remaining: int) -> Action:
        """Choose how many morties go through each portal this step."""
        raise NotImplementedError

    @abstractmethod
    def observe_outcome(self, action: Action, outcomes: list[ChannelOutcome]) -> float:
        """Learn from the per-portal outcomes of ``action`` and return its reward."""
        raise NotImplementedError
