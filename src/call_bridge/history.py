"""Append-only persistence for completed utterances."""

from __future__ import annotations

import json
import logging
from collections import deque
from pathlib import Path
from typing import Protocol

from call_bridge.models import Utterance

logger = logging.getLogger("call_bridge.history")


class HistorySink(Protocol):
    """Persistence contract for completed utterances of a session."""

    def append(self, session_id: str, utterance: Utterance) -> None:
        """Persist a completed utterance."""


class InMemoryHistorySink:
    """Bounded in-memory history sink."""

    def __init__(self, max_entries: int = 1_000) -> None:
        self._entries: deque[tuple[str, Utterance]] = deque(maxlen=max_entries)

    def append(self, session_id: str, utterance: Utterance) -> None:
        self._entries.appendleft((session_id, utterance))

    def list_recent(self, limit: int = 20, session_id: str | None = None) -> list[Utterance]:
        return [
            utterance
            for owner, utterance in self._entries
            if session_id is None or owner == session_id
        ][:limit]


class JsonlHistorySink:
    """Simple JSONL-backed utterance history."""

    def __init__(self, file_path: str | Path) -> None:
        self._path = Path(file_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def append(self, session_id: str, utterance: Utterance) -> None:
        payload = {"session_id": session_id, **utterance.to_dict()}
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, ensure_ascii=False) + "\n")

    def list_recent(self, limit: int = 20, session_id: str | None = None) -> list[Utterance]:
        if not self._path.exists():
            return []

        utterances: list[Utterance] = []
        with self._path.open("r", encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, start=1):
                if not line.strip():
                    continue
                try:
                    payload = json.loads(line)
                except json.JSONDecodeError:
                    # A crash mid-write leaves a truncated final line.
                    logger.warning("history_line_skipped", extra={"path": str(self._path), "line_number": line_number})
                    continue
                if session_id is not None and payload.get("session_id") != session_id:
                    continue
                utterances.append(Utterance.from_dict(payload))

        utterances.reverse()
        return utterances[:limit]
