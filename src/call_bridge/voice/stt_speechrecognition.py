"""Speech capture backend powered by ``speech_recognition``."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable

from call_bridge.languages import speech_locale

from .capture import CaptureError, CaptureErrorKind, QueuedSpeechCapture, TranscriptEvent


class SpeechRecognitionCapture(QueuedSpeechCapture):
    """Capture microphone utterances and recognize them with the Google Web Speech API.

    The microphone is held by the library's background listener for as long as
    capture is armed. ``stop_listening`` waits for that listener to close the
    device before it returns.
    """

    def __init__(
        self,
        *,
        phrase_time_limit: float | None = 10.0,
        timeout: float | None = 10.0,
        sample_rate: int = 16_000,
        chunk_size: int = 1024,
        adjust_noise_seconds: float = 0.2,
        device_index: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(logger=logger)
        try:
            import speech_recognition as sr
        except ImportError as exc:  # pragma: no cover - import guard
            raise RuntimeError(
                "Speech capture backend unavailable. Install extras with: pip install 'call-bridge[voice]'"
            ) from exc
        self._sr = sr
        self._recognizer = sr.Recognizer()
        self._sample_rate = sample_rate
        self._chunk_size = chunk_size
        self._device_index = device_index
        self._phrase_time_limit = phrase_time_limit
        self._timeout = timeout
        self._adjust_noise_seconds = max(0.0, adjust_noise_seconds)

        self._phrases: asyncio.Queue[tuple[int, Any]] = asyncio.Queue()
        # Guards the background listener against a concurrent stop.
        self._listener_lock = threading.Lock()
        self._stop_background: Callable[..., None] | None = None
        self._session = 0
        self._active_session: int | None = None

    def start_listening(self, language: str, *, continuous: bool = False) -> None:
        super().start_listening(language, continuous=continuous)
        with self._listener_lock:
            self._session += 1
            self._active_session = self._session
        while not self._phrases.empty():
            self._phrases.get_nowait()

    async def _recognize(self, language: str) -> TranscriptEvent:
        session = self._session
        if self._stop_background is None:
            await asyncio.to_thread(self._open_listener, session, asyncio.get_running_loop())

        wait_seconds = None if self._timeout is None else self._timeout + (self._phrase_time_limit or 0.0)
        try:
            audio = await asyncio.wait_for(self._next_phrase(session), timeout=wait_seconds)
        except asyncio.TimeoutError as exc:
            raise CaptureError(CaptureErrorKind.NO_SPEECH, "No speech detected") from exc

        return await asyncio.to_thread(self._transcribe, audio, speech_locale(language))

    def _release(self) -> None:
        with self._listener_lock:
            self._active_session = None
            stop_background, self._stop_background = self._stop_background, None
        if stop_background is not None:
            stop_background(wait_for_stop=True)
            self._logger.info("microphone_released", extra={"language": self.language})

    def _open_listener(self, session: int, loop: asyncio.AbstractEventLoop) -> None:
        sr = self._sr
        try:
            microphone = sr.Microphone(
                device_index=self._device_index,
                sample_rate=self._sample_rate,
                chunk_size=self._chunk_size,
            )
        except AttributeError as exc:
            # speech_recognition raises AttributeError when PyAudio is missing.
            raise CaptureError(CaptureErrorKind.UNAVAILABLE, str(exc)) from exc

        try:
            with microphone as source:
                if self._adjust_noise_seconds > 0:
                    self._recognizer.adjust_for_ambient_noise(source, duration=self._adjust_noise_seconds)
        except OSError as exc:
            raise CaptureError(CaptureErrorKind.NOT_ALLOWED, f"Microphone unavailable: {exc}") from exc

        def _on_phrase(recognizer: Any, audio: Any) -> None:
            try:
                loop.call_soon_threadsafe(self._phrases.put_nowait, (session, audio))
            except RuntimeError:
                self._logger.debug("capture_phrase_dropped", extra={"reason": "event_loop_closed"})

        with self._listener_lock:
            if self._active_session != session:
                return
            self._stop_background = self._recognizer.listen_in_background(
                microphone,
                _on_phrase,
                phrase_time_limit=self._phrase_time_limit,
            )

    async def _next_phrase(self, session: int) -> Any:
        while True:
            owner, audio = await self._phrases.get()
            if owner == session:
                return audio

    def _transcribe(self, audio: Any, locale: str) -> TranscriptEvent:
        sr = self._sr
        try:
            result = self._recognizer.recognize_google(audio, language=locale, show_all=True)
        except sr.UnknownValueError as exc:
            raise CaptureError(CaptureErrorKind.NO_SPEECH, "Speech was not understood") from exc
        except sr.RequestError as exc:
            raise CaptureError(
                CaptureErrorKind.UNAVAILABLE,
                "Speech recognition service request failed. Check internet access.",
            ) from exc

        text, confidence = _best_alternative(result)
        if not text:
            raise CaptureError(CaptureErrorKind.NO_SPEECH, "Speech was not understood")
        return TranscriptEvent(text=text, confidence=confidence, is_final=True, audio=audio.get_raw_data())


def _best_alternative(result: object) -> tuple[str, float]:
    """Pick the top transcript from a ``show_all=True`` Google response."""
    if not isinstance(result, dict):
        return "", 0.0

    alternatives = result.get("alternative") or []
    if not alternatives:
        return "", 0.0

    best = max(alternatives, key=lambda alt: alt.get("confidence", 0.0))
    text = (best.get("transcript") or alternatives[0].get("transcript") or "").strip()
    # Google only scores the top alternative; unscored results are still usable.
    confidence = float(best.get("confidence", 0.8))
    return text, max(0.0, min(1.0, confidence))
