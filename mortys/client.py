from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from .models import EpisodeStatus, Planet, PortalRequest, PortalResult

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://challenge.sphinxhq.com"
DEFAULT_TIMEOUT_SECONDS = 10.0

START_ENDPOINT = "/api/mortys/start/"
PORTAL_ENDPOINT = "/api/mortys/portal/"
STATUS_ENDPOINT = "/api/mortys/status/"

ModelT = TypeVar("ModelT", bound=BaseModel)


class TransportError(Exception):
    """A call to the challenge service failed; the episode cannot continue."""


class MalformedResponse(TransportError):
    """The service answered with something that does not match its schema."""


class MortyClient:
    """HTTP access to the start, portal and status endpoints.

    The credential is attached to every request as the ``Authorization``
    header. Each calling thread gets its own ``requests.Session`` from
    ``session_factory``, since the portal sends of one step run concurrently
    and a session is not safe to share between threads.
    """

    base_url: str
    timeout_seconds: float
    headers: dict[str, str]

    def __init__(
        self,
        auth_header: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = float(timeout_seconds)
        self.headers = {
            "Authorization": auth_header,
            "Accept": "application/json",
        }
        self.session_factory = session_factory
        self._local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()

    def start(self) -> EpisodeStatus:
        logger.debug("Starting episode")
        return self._request("POST", START_ENDPOINT, EpisodeStatus)

    def send(self, planet: Planet, morty_count: int) -> PortalResult:
        body = PortalRequest(planet=planet, morty_count=morty_count)
        return self._request(
            "POST", PORTAL_ENDPOINT, PortalResult, body=body.model_dump(mode="json")
        )

    def status(self) -> EpisodeStatus:
        logger.debug("Episode status")
        return self._request("GET", STATUS_ENDPOINT, EpisodeStatus)

    @property
    def session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = self.session_factory()
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    def close(self) -> None:
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()

    def _request(
        self,
        method: str,
        endpoint: str,
        model: Type[ModelT],
        body: Optional[dict[str, Any]] = None,
    ) -> ModelT:
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.request(
                method,
                url,
                json=body,
                headers=self.headers,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise TransportError(f"{method} {endpoint} failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponse(
                f"{method} {endpoint} returned a non-JSON body: {response.text[:200]!r}"
            ) from e

        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise MalformedResponse(
                f"{method} {endpoint} returned an unexpected body: {e}"
            ) from e
