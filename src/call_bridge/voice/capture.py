"""Speech capture events, errors, and the queue-backed capture base class."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum


class CaptureErrorKind(str, Enum):
    """Failure conditions reported by a speech capture engine."""

    NO_SPEECH = "no_speech"
    NOT_ALLOWED = "not_allowed"
    ABORTED = "aborted"
    UNAVAILABLE = "unavailable"


class CaptureError(RuntimeError):
    """Raised when speech capture cannot produce a transcript."""

    def __init__(self, kind: CaptureErrorKind, message: str | None = None) -> None:
        super().__init__(message or kind.value)
        self.kind = kind


@dataclass(slots=True)
class TranscriptEvent:
    """Interim or final recognition result."""

    text: str
    confidence: float = 0.0
    is_final: bool = False
    audio: bytes | None = None


class QueuedSpeechCapture:
    """Runs recognition in a background task and queues its events.

    Subclasses implement ``_recognize`` for one utterance. In single-shot mode
    listening ends after the first final event; in continuous mode it runs until
    ``stop_listening``.
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("call_bridge.voice.capture")
        self._queue: asyncio.Queue[TranscriptEvent | CaptureError] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None
        self._listening = False
        self._language: str | None = None
        self._last_final: TranscriptEvent | None = None

    @property
    def listening(self) -> bool:
        return self._listening

    @property
    def language(self) -> str | None:
        return self._language

    @property
    def last_final(self) -> TranscriptEvent | None:
        return self._last_final

    def start_listening(self, language: str, *, continuous: bool = False) -> None:
        if self._listening:
            raise CaptureError(CaptureErrorKind.UNAVAILABLE, "Capture is already listening")

        self._drain()
        self._language = language
        self._listening = True
        self._task = asyncio.get_running_loop().create_task(
            self._listen_loop(language, continuous),
            name="speech-capture",
        )
        self._logger.info("capture_started", extra={"language": language, "continuous": continuous})

    def stop_listening(self) -> None:
        was_listening = self._listening
        self._listening = False
        if self._task and not self._task.done():
            self._task.cancel()
        self._task = None
        self._release()
        if was_listening:
            self._drain()
            self._queue.put_nowait(CaptureError(CaptureErrorKind.ABORTED, "Capture stopped"))
            self._logger.info("capture_stopped", extra={"language": self._language})

    def reset_transcript(self) -> None:
        self._last_final = None

    async def next_event(self) -> TranscriptEvent:
        if not self._listening and self._queue.empty():
            raise CaptureError(CaptureErrorKind.ABORTED, "Capture is not listening")

        item = await self._queue.get()
        if isinstance(item, CaptureError):
            raise item
        return item

    async def _listen_loop(self, language: str, continuous: bool) -> None:
        try:
            while self._listening:
                event = await self._recognize(language)
                if not self._listening:
                    return
                self._queue.put_nowait(event)
                if event.is_final:
                    self._last_final = event
                    if not continuous:
                        self._listening = False
                        self._release()
                        return
        except CaptureError as exc:
            self._listening = False
            self._release()
            self._logger.warning("capture_failed", extra={"language": language, "kind": exc.kind.value})
            self._queue.put_nowait(exc)

    def _drain(self) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()

    def _release(self) -> None:
        """Hook for subclasses holding a device outside ``_recognize``."""

    async def _recognize(self, language: str) -> TranscriptEvent:
        raise NotImplementedError


class KeyboardSpeechCapture(QueuedSpeechCapture):
    """Typed-text stand-in for a microphone, used by the CLI demo and tests."""

    def __init__(self, *, prompt: str = "> ", reader=input, logger: logging.Logger | None = None) -> None:
        super().__init__(logger=logger)
        self._prompt = prompt
        self._reader = reader

    async def _recognize(self, language: str) -> TranscriptEvent:
        try:
            text = await asyncio.to_thread(self._reader, self._prompt.format(language=language))
        except EOFError as exc:
            raise CaptureError(CaptureErrorKind.ABORTED, "Input closed") from exc

        text = text.strip()
        if not text:
            raise CaptureError(CaptureErrorKind.NO_SPEECH, "Nothing was typed")
        return TranscriptEvent(text=text, confidence=1.0, is_final=True)
