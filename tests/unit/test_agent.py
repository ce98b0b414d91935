import os
import random
import threading
import time
from types import SimpleNamespace
from typing import Optional

import pytest

from mortys import AVAILABLE_AGENTS, EpsilonGreedy, Random, Recorder, TransportError
from mortys.models import EpisodeStatus, Planet, PortalResult
from mortys.policy import Action


class FakeClient:
    """In-memory stand-in for the challenge service."""

    def __init__(
        self,
        pool: int = 30,
        survives: Optional[dict[Planet, bool]] = None,
        fail_on_send: int = 0,
        send_delay: float = 0.0,
    ) -> None:
        self.citadel = pool
        self.jessica = 0
        self.lost = 0
        self.steps = 0
        self.survives = survives or {planet: True for planet in Planet}
        self.fail_on_send = fail_on_send
        self.send_delay = send_delay
        self.sends: list[tuple[Planet, int]] = []
        self.closed = False
        self._lock = threading.Lock()

    def _status(self) -> EpisodeStatus:
        return EpisodeStatus(
            morties_in_citadel=self.citadel,
            morties_on_planet_jessica=self.jessica,
            morties_lost=self.lost,
            steps_taken=self.steps,
        )

    def start(self) -> EpisodeStatus:
        return self._status()

    def status(self) -> EpisodeStatus:
        return self._status()

    def send(self, planet: Planet, morty_count: int) -> PortalResult:
        if self.send_delay:
            time.sleep(self.send_delay)
        with self._lock:
            self.sends.append((planet, morty_count))
            if self.fail_on_send and len(self.sends) >= self.fail_on_send:
                raise TransportError("portal unavailable")
            survived = self.survives[planet]
            sent = min(morty_count, self.citadel)
            self.citadel -= sent
            self.steps += 1
            if survived:
                self.jessica += sent
            else:
                self.lost += sent
            return PortalResult(
                morties_sent=sent,
                survived=survived,
                morties_in_citadel=self.citadel,
                morties_on_planet_jessica=self.jessica,
                morties_lost=self.lost,
                steps_taken=self.steps,
            )

    def close(self) -> None:
        self.closed = True


@pytest.mark.unit
def test_registry_exposes_both_strategies() -> None:
    assert AVAILABLE_AGENTS["epsilongreedy"] is EpsilonGreedy
    assert AVAILABLE_AGENTS["random"] is Random


@pytest.mark.unit
def test_episode_runs_until_citadel_is_empty() -> None:
    client = FakeClient(pool=50)
    agent = EpsilonGreedy(client=client, agent_name="epsilongreedy", rng=random.Random(5))

    final = agent.main()

    assert final is not None
    assert final.morties_in_citadel == 0
    assert final.morties_on_planet_jessica == 50
    assert agent.delivery_rate == 1.0
    assert all(count > 0 for (_, count) in client.sends)


@pytest.mark.unit
def test_initial_pool_of_two_sends_everything_through_first_portal() -> None:
    client = FakeClient(pool=2)
    agent = EpsilonGreedy(client=client, agent_name="epsilongreedy", rng=random.Random(0))

    agent.main()

    assert client.sends == [(Planet.ON_A_COB, 2)]
    assert agent.action_counter == 1
    outcome_stats = agent.table.get(Action(2, 0, 0))
    assert outcome_stats is not None
    assert outcome_stats.history == [1.0]


@pytest.mark.unit
def test_rewards_reflect_portal_survival() -> None:
    client = FakeClient(
        pool=6,
        survives={
            Planet.ON_A_COB: True,
            Planet.CRONENBERG_WORLD: False,
            Planet.PURGE_PLANET: False,
        },
    )
    agent = EpsilonGreedy(client=client, agent_name="epsilongreedy", epsilon=0.01)
    agent.policy.rng = SimpleNamespace(random=lambda: 0.99, randint=lambda a, b: a)

    agent.main()

    # first step exploits the (2, 2, 2) seed: only the first portal survives
    stats = agent.table.get(Action(2, 2, 2))
    assert stats is not None
    assert stats.history == [0.1, pytest.approx(1 / 3)]
    assert agent.latest_status.morties_lost == 4


@pytest.mark.unit
def test_transport_error_aborts_without_learning_the_step() -> None:
    client = FakeClient(pool=100, fail_on_send=1)
    agent = EpsilonGreedy(client=client, agent_name="epsilongreedy", rng=random.Random(2))

    with pytest.raises(TransportError):
        agent.main()

    assert agent.action_counter == 0
    assert list(agent.table) == [Action(2, 2, 2)]
    assert agent.table.get(Action(2, 2, 2)).history == [0.1]


@pytest.mark.unit
def test_slow_portal_hits_the_step_timeout() -> None:
    client = FakeClient(pool=100, send_delay=0.5)
    agent = EpsilonGreedy(
        client=client,
        agent_name="epsilongreedy",
        timeout_seconds=0.05,
        rng=random.Random(2),
    )

    with pytest.raises(TransportError, match="did not finish"):
        agent.main()
    assert agent.action_counter == 0


@pytest.mark.unit
def test_cancel_during_step_discards_partial_results() -> None:
    client = FakeClient(pool=100)
    agent = EpsilonGreedy(client=client, agent_name="epsilongreedy", rng=random.Random(9))
    original_send = client.send

    def send_then_cancel(planet: Planet, morty_count: int) -> PortalResult:
        agent.cancel()
        return original_send(planet, morty_count)

    client.send = send_then_cancel  # type: ignore[method-assign]

    final = agent.main()

    assert agent.cancelled
    assert agent.action_counter == 0
    assert list(agent.table) == [Action(2, 2, 2)]
    assert final is not None and final.morties_in_citadel > 0


@pytest.mark.unit
def test_cancel_before_start_of_loop_sends_nothing() -> None:
    client = FakeClient(pool=10)
    agent = Random(client=client, agent_name="random")
    agent.cancel()

    agent.main()

    assert client.sends == []


@pytest.mark.unit
def test_random_agent_ignores_configured_epsilon() -> None:
    agent = Random(client=FakeClient(), agent_name="random", epsilon=0.2)
    assert agent.policy.epsilon == 1.0


@pytest.mark.unit
def test_delivery_rate_uses_initial_pool() -> None:
    client = FakeClient(
        pool=10,
        survives={planet: planet is Planet.ON_A_COB for planet in Planet},
    )
    agent = Random(client=client, agent_name="random", rng=random.Random(4))

    agent.main()

    assert agent.initial_pool == 10
    assert agent.delivery_rate == pytest.approx(client.jessica / 10)


@pytest.mark.unit
def test_recording_has_one_line_per_step(tmp_path) -> None:
    client = FakeClient(pool=12)
    agent = EpsilonGreedy(
        client=client,
        agent_name="epsilongreedy",
        record=True,
        recordings_dir=str(tmp_path),
        rng=random.Random(8),
    )

    agent.main()

    records = Recorder.read(agent.recorder.filename)
    assert records[0]["event"] == "episode_start"
    assert records[-1]["event"] == "episode_end"
    steps = [r for r in records if r["event"] == "step"]
    assert len(steps) == agent.action_counter
    assert steps[0]["action"]["total"] > 0
    assert steps[-1]["status"]["morties_in_citadel"] == 0
    assert records[-1]["summary"]["delivered"] == 12
    assert {"mode", "known_actions", "reward", "outcomes"} <= set(steps[0])


@pytest.mark.unit
@pytest.mark.parametrize("timeout_seconds", [3.0, 0.5])
def test_cancel_during_slow_send_returns_without_waiting(timeout_seconds: float) -> None:
    client = FakeClient(pool=100, send_delay=1.0)
    agent = EpsilonGreedy(
        client=client,
        agent_name="epsilongreedy",
        timeout_seconds=timeout_seconds,
        rng=random.Random(6),
    )
    threading.Timer(0.1, agent.cancel).start()

    started = time.monotonic()
    final = agent.main()
    elapsed = time.monotonic() - started

    assert elapsed < 0.45
    assert agent.cancelled
    assert agent.action_counter == 0
    assert list(agent.table) == [Action(2, 2, 2)]
    assert final is not None and final.morties_in_citadel == 100


@pytest.mark.unit
def test_end_record_carries_the_learned_table(tmp_path) -> None:
    client = FakeClient(pool=2)
    agent = EpsilonGreedy(
        client=client,
        agent_name="epsilongreedy",
        record=True,
        recordings_dir=str(tmp_path),
        rng=random.Random(1),
    )

    agent.main()

    summary = Recorder.read(agent.recorder.filename)[-1]["summary"]
    assert summary["actions_table"] == {
        "(2, 2, 2)": {"avg_reward": 0.1, "observations": 1},
        "(2, 0, 0)": {"avg_reward": 1.0, "observations": 1},
    }
    assert summary["remaining"] == 0
    assert summary["delivered"] == 2


@pytest.mark.unit
def test_random_agent_can_record(tmp_path) -> None:
    agent = Random(
        client=FakeClient(pool=3),
        agent_name="random",
        record=True,
        recordings_dir=str(tmp_path),
    )

    agent.main()

    assert os.path.dirname(agent.recorder.filename) == str(tmp_path)
    assert os.path.basename(agent.recorder.filename).startswith("random.1.0.")
