from __future__ import annotations

import json
import os
import time
import uuid
from typing import Any


def _jsonable(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return _jsonable(value.to_dict())
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for (k, v) in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class Recorder:
    """Append-only JSONL log of one episode, one record per step."""

    def __init__(self, *, root_dir: str, agent_name: str) -> None:
        safe_agent_name = agent_name.replace("/", "_")
        os.makedirs(root_dir, exist_ok=True)
        self.filename = os.path.join(
            root_dir,
            f"{safe_agent_name}.{int(time.time())}.{uuid.uuid4().hex[:12]}.recording.jsonl",
        )
        self._fp = open(self.filename, "w", encoding="utf-8")
        self.record(
            {
                "event": "episode_start",
                "started_at_unix_seconds": int(time.time()),
                "agent_name": agent_name,
            }
        )

    def record(self, data: dict[str, Any]) -> None:
        payload = _jsonable(data)
        self._fp.write(json.dumps(payload, ensure_ascii=True) + "\n")
        self._fp.flush()

    def close(self, summary: dict[str, Any] | None = None) -> None:
        if self._fp.closed:
            return
        self.record(
            {
                "event": "episode_end",
                "ended_at_unix_seconds": int(time.time()),
                "summary": summary or {},
            }
        )
        self._fp.close()

    @staticmethod
    def read(filename: str) -> list[dict[str, Any]]:
        with open(filename, encoding="utf-8") as fp:
            return [json.loads(line) for line in fp if line.strip()]
