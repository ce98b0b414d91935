# ruff: noqa: E402
import os

from dotenv import load_dotenv

# Preserve explicit runtime environment overrides (e.g. MORTY_EPSILON=0.2 python main.py)
# before loading dotenv files.
_RUNTIME_ENV_OVERRIDES = {
    key: os.environ[key]
    for key in (
        "AUTH_HEADER",
        "MORTY_BASE_URL",
        "MORTY_EPSILON",
        "MORTY_TIMEOUT_SECONDS",
        "RECORDINGS_DIR",
        "DEBUG",
    )
    if key in os.environ
}

load_dotenv(dotenv_path=".env.example")
load_dotenv(dotenv_path=".env", override=True)

import argparse
import logging
import signal
import sys
import threading
from functools import partial
from types import FrameType
from typing import Any, Optional

from mortys import AVAILABLE_AGENTS, DEFAULT_AGENT, Agent, MortyClient, TransportError
from mortys.client import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECONDS

# Re-apply runtime overrides after imports so explicit shell vars keep highest precedence.
os.environ.update(_RUNTIME_ENV_OVERRIDES)

logger = logging.getLogger()


def _configure_logging() -> None:
    log_level = logging.INFO
    if os.environ.get("DEBUG", "False") == "True":
        log_level = logging.DEBUG

    logger.setLevel(log_level)
    formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(log_level)
    stdout_handler.setFormatter(formatter)

    file_handler = logging.FileHandler("logs.log", mode="w")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)

    logger.addHandler(file_handler)
    logger.addHandler(stdout_handler)

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)


def _read_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Morty Express agents")
    parser.add_argument(
        "-a",
        "--agent",
        choices=AVAILABLE_AGENTS.keys(),
        default=DEFAULT_AGENT,
        help="Choose which agent to run.",
    )
    parser.add_argument(
        "--no-record",
        action="store_true",
        help="Do not write a JSONL recording of the episode.",
    )
    return parser.parse_args(argv)


def build_agent(agent_name: str, record: bool = True) -> Agent:
    auth_header = os.environ.get("AUTH_HEADER", "").strip()
    if not auth_header:
        raise ValueError("AUTH_HEADER must be set to the challenge credential")

    timeout_seconds = _read_float("MORTY_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)
    client = MortyClient(
        auth_header,
        base_url=os.environ.get("MORTY_BASE_URL", "").strip() or DEFAULT_BASE_URL,
        timeout_seconds=timeout_seconds,
    )

    kwargs: dict[str, Any] = {}
    if os.environ.get("MORTY_EPSILON", "").strip():
        kwargs["epsilon"] = _read_float("MORTY_EPSILON", 0.0)

    return AVAILABLE_AGENTS[agent_name](
        client=client,
        agent_name=agent_name,
        record=record,
        recordings_dir=os.environ.get("RECORDINGS_DIR", "recordings"),
        timeout_seconds=timeout_seconds,
        **kwargs,
    )


def run_agent(agent: Agent, errors: list[BaseException]) -> None:
    try:
        agent.main()
    except TransportError as e:
        errors.append(e)
    except Exception as e:
        logger.exception(f"Unexpected error in agent thread: {e}")
        errors.append(e)
    finally:
        agent.client.close()


def cleanup(
    agent: Agent,
    signum: Optional[int],
    frame: Optional[FrameType],
) -> None:
    logger.info("Received SIGINT, stopping the episode...")
    agent.cancel()


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)

    try:
        agent = build_agent(args.agent, record=not args.no_record)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    errors: list[BaseException] = []
    agent_thread = threading.Thread(target=partial(run_agent, agent, errors))
    agent_thread.daemon = True  # die when the main thread dies
    agent_thread.start()

    previous_handler = signal.signal(signal.SIGINT, partial(cleanup, agent))
    try:
        # Wait for the agent thread to complete
        while agent_thread.is_alive():
            agent_thread.join(timeout=5)  # Check every 5 second
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received in main thread")
        agent.cancel()
        agent_thread.join()
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if errors:
        logger.error(f"Episode failed: {errors[0]}")
        return 1
    return 0


def run() -> None:
    _configure_logging()
    sys.exit(main())


if __name__ == "__main__":
    run()
