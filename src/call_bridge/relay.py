"""Turn-based relay: capture one party, translate, speak to the other party."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, NoReturn, Protocol
from uuid import uuid4

from call_bridge.history import HistorySink
from call_bridge.languages import VoiceGender, normalize_language, same_language
from call_bridge.limits import UsageLimiter, UsageLimitExceeded
from call_bridge.models import Party, TranslationResult, Utterance
from call_bridge.quality import TextQualityEstimator
from call_bridge.voice.capture import CaptureError, TranscriptEvent
from call_bridge.voice.interfaces import SpeechCapture
from call_bridge.voice.output import PlaybackHandle
from call_bridge.voice.voices import detect_speaker_gender


class RelayState(str, Enum):
    """Lifecycle states of the relay for one utterance."""

    IDLE = "idle"
    ARMED = "armed_for_capture"
    TRANSLATING = "translating"
    SPEAKING = "speaking"


class TurnPolicy(str, Enum):
    """How the turn moves once translated audio finishes playing."""

    MANUAL = "manual"
    AUTO_ADVANCE = "auto_advance"


class RelayProtocolError(RuntimeError):
    """Raised when the relay is driven out of order (e.g. ``start`` while busy)."""


class SessionConfigError(ValueError):
    """Raised when a session's language pair cannot be bridged."""


class Translator(Protocol):
    async def translate(self, text: str, source_language: str, target_language: str) -> TranslationResult: ...


class Speaker(Protocol):
    def speak(self, text: str, language: str, voice_hint: VoiceGender | str | None = None) -> PlaybackHandle: ...

    def stop(self) -> None: ...


class Session:
    """One bridged conversation between party A and party B."""

    def __init__(self, language_a: str, language_b: str, *, session_id: str | None = None) -> None:
        self.id = session_id or uuid4().hex
        self.language_a = normalize_language(language_a)
        self.language_b = normalize_language(language_b)
        self.current_turn = Party.A
        self.active = False
        self._history: list[Utterance] = []

    @property
    def history(self) -> tuple[Utterance, ...]:
        return tuple(self._history)

    def language_of(self, party: Party) -> str:
        return self.language_a if party is Party.A else self.language_b

    def validate(self) -> None:
        if not self.language_a or not self.language_b:
            raise SessionConfigError("Both parties need a language")
        if same_language(self.language_a, self.language_b):
            raise SessionConfigError(f"Both parties are set to {self.language_a}; choose two different languages")

    def _append(self, utterance: Utterance) -> None:
        self._history.append(utterance)


class TurnRelay:
    """State machine serializing capture, translation, and playback of one utterance at a time.

    All transitions run on the event loop thread. ``start`` is only accepted from
    ``IDLE``, which keeps at most one utterance in flight; ``stop`` is accepted from
    any state and discards whatever is still pending.
    """

    def __init__(
        self,
        session: Session,
        *,
        capture: SpeechCapture,
        translator: Translator,
        synthesizer: Speaker,
        history_sink: HistorySink | None = None,
        quality_estimator: TextQualityEstimator | None = None,
        usage_limiter: UsageLimiter | None = None,
        usage_key: str = "default",
        turn_policy: TurnPolicy = TurnPolicy.MANUAL,
        continuous: bool = False,
        infer_voice_gender: bool = False,
        playback_timeout_seconds: float | None = 60.0,
        logger: logging.Logger | None = None,
    ) -> None:
        self._session = session
        self._capture = capture
        self._translator = translator
        self._synthesizer = synthesizer
        self._history_sink = history_sink
        self._quality_estimator = quality_estimator
        self._usage_limiter = usage_limiter
        self._usage_key = usage_key
        self._turn_policy = turn_policy
        self._continuous = continuous
        self._infer_voice_gender = infer_voice_gender
        self._playback_timeout_seconds = playback_timeout_seconds
        self._logger = logger or logging.getLogger("call_bridge.relay")

        self._state = RelayState.IDLE
        self._speaker: Party | None = None
        self._in_flight: Utterance | None = None
        self._playback: PlaybackHandle | None = None
        self._last_processed: str | None = None
        self._generation = 0

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> RelayState:
        return self._state

    @property
    def turn_policy(self) -> TurnPolicy:
        return self._turn_policy

    @property
    def in_flight(self) -> Utterance | None:
        return self._in_flight

    @property
    def playback(self) -> PlaybackHandle | None:
        return self._playback

    def configure_languages(self, language_a: str, language_b: str) -> None:
        if self._state is not RelayState.IDLE:
            raise RelayProtocolError(f"Cannot change languages while {self._state.value}")
        self._session.language_a = normalize_language(language_a)
        self._session.language_b = normalize_language(language_b)
        self._session.validate()

    def start(self, speaker: Party) -> None:
        """Arm capture for ``speaker`` in their language."""
        if self._state is not RelayState.IDLE:
            raise RelayProtocolError(f"Cannot start a turn while {self._state.value}")

        self._session.validate()
        if not self._session.active:
            self._activate()

        source_language = self._session.language_of(speaker)
        self._session.current_turn = speaker
        self._speaker = speaker
        self._state = RelayState.ARMED
        try:
            self._capture.start_listening(source_language, continuous=self._continuous)
        except CaptureError:
            self._state = RelayState.IDLE
            self._speaker = None
            raise

        self._logger.info(
            "relay_armed",
            extra={"session_id": self._session.id, "speaker": speaker.value, "language": source_language},
        )

    async def handle_final_transcript(
        self,
        text: str,
        confidence: float,
        *,
        audio_sample: bytes | None = None,
    ) -> Utterance | None:
        """Translate a final transcript and start speaking it.

        Returns the completed utterance, or ``None`` when the event was ignored
        (wrong state, empty text, duplicate) or the relay was stopped meanwhile.
        """
        normalized = text.strip()
        if self._state is not RelayState.ARMED or self._speaker is None:
            self._logger.info(
                "final_transcript_ignored",
                extra={"session_id": self._session.id, "state": self._state.value, "reason": "not_armed"},
            )
            return None
        if not normalized:
            return None
        if normalized == self._last_processed:
            self._logger.info(
                "final_transcript_ignored",
                extra={"session_id": self._session.id, "state": self._state.value, "reason": "duplicate"},
            )
            return None

        self._last_processed = normalized
        speaker = self._speaker
        generation = self._generation
        utterance = Utterance(
            speaker=speaker,
            source_text=normalized,
            source_language=self._session.language_of(speaker),
            target_language=self._session.language_of(speaker.other),
            confidence=max(0.0, min(1.0, confidence)),
        )
        if self._quality_estimator is not None:
            utterance.quality_flags = list(self._quality_estimator.estimate(normalized).flags)

        self._in_flight = utterance
        self._state = RelayState.TRANSLATING
        self._capture.stop_listening()
        self._logger.info(
            "relay_translating",
            extra={
                "session_id": self._session.id,
                "utterance_id": utterance.id,
                "source_language": utterance.source_language,
                "target_language": utterance.target_language,
            },
        )

        try:
            result = await self._translator.translate(
                utterance.source_text,
                utterance.source_language,
                utterance.target_language,
            )
        except Exception:
            if generation == self._generation:
                self._reset_to_idle()
            raise
        if generation != self._generation:
            self._logger.info(
                "translation_discarded",
                extra={"session_id": self._session.id, "utterance_id": utterance.id},
            )
            return None

        utterance.attach_translation(result)
        self._session._append(utterance)
        self._record(utterance)

        voice_hint = None
        if self._infer_voice_gender and audio_sample:
            voice_hint = detect_speaker_gender(audio_sample)

        self._state = RelayState.SPEAKING
        self._playback = self._synthesizer.speak(utterance.translated_text, utterance.target_language, voice_hint)
        self._logger.info(
            "relay_speaking",
            extra={
                "session_id": self._session.id,
                "utterance_id": utterance.id,
                "translation_tier": result.tier,
                "translation_confidence": result.confidence,
            },
        )
        return utterance

    def handle_playback_complete(self) -> None:
        if self._state is not RelayState.SPEAKING:
            self._logger.info(
                "playback_complete_ignored",
                extra={"session_id": self._session.id, "state": self._state.value},
            )
            return

        if self._turn_policy is TurnPolicy.AUTO_ADVANCE and self._speaker is not None:
            self._session.current_turn = self._speaker.other

        self._reset_to_idle()
        self._logger.info(
            "relay_idle",
            extra={"session_id": self._session.id, "next_turn": self._session.current_turn.value},
        )

    def handle_capture_error(self, error: CaptureError) -> NoReturn:
        """Return to idle without advancing the turn, then surface ``error``."""
        self._capture.stop_listening()
        self._reset_to_idle()
        self._logger.warning(
            "capture_error",
            extra={"session_id": self._session.id, "kind": error.kind.value},
        )
        raise error

    def stop(self) -> None:
        """Cancel whatever is in flight and return to idle."""
        self._generation += 1
        self._capture.stop_listening()
        self._synthesizer.stop()
        previous = self._state
        self._reset_to_idle()
        if previous is not RelayState.IDLE:
            self._logger.info("relay_stopped", extra={"session_id": self._session.id, "state": previous.value})

    def close(self) -> None:
        self.stop()
        self._session.active = False

    def reset_transcript(self) -> None:
        self._last_processed = None
        self._capture.reset_transcript()

    async def run_turn(
        self,
        speaker: Party,
        *,
        on_interim: Callable[[TranscriptEvent], None] | None = None,
    ) -> Utterance | None:
        """Run one full turn for ``speaker`` and return its utterance.

        Returns ``None`` if the relay is stopped before a translation completes.
        Capture failures are raised after the relay has returned to idle.
        """
        self.start(speaker)
        generation = self._generation

        utterance: Utterance | None = None
        while utterance is None:
            try:
                event = await self._capture.next_event()
            except CaptureError as exc:
                if generation != self._generation:
                    return None
                self.handle_capture_error(exc)

            if generation != self._generation:
                return None
            if not event.is_final:
                if on_interim is not None:
                    on_interim(event)
                continue

            utterance = await self.handle_final_transcript(event.text, event.confidence, audio_sample=event.audio)
            if generation != self._generation:
                return None
            if utterance is None and self._state is RelayState.ARMED and not self._capture.listening:
                # Ignored final from a single-shot capture: listen again for the same speaker.
                self._capture.start_listening(self._session.language_of(speaker), continuous=self._continuous)

        await self._await_playback(generation)
        if generation == self._generation:
            self.handle_playback_complete()
        return utterance

    async def converse(
        self,
        first_speaker: Party,
        *,
        max_turns: int | None = None,
        on_interim: Callable[[TranscriptEvent], None] | None = None,
    ) -> list[Utterance]:
        """Alternate turns automatically until stopped or ``max_turns`` is reached."""
        if self._turn_policy is not TurnPolicy.AUTO_ADVANCE:
            raise RelayProtocolError("converse() requires the auto-advance turn policy")

        generation = self._generation
        completed: list[Utterance] = []
        speaker = first_speaker
        while max_turns is None or len(completed) < max_turns:
            utterance = await self.run_turn(speaker, on_interim=on_interim)
            if utterance is None or generation != self._generation:
                break
            completed.append(utterance)
            speaker = self._session.current_turn
        return completed

    async def _await_playback(self, generation: int) -> None:
        handle = self._playback
        if handle is None:
            return
        try:
            if self._playback_timeout_seconds is None:
                await handle.wait()
            else:
                await asyncio.wait_for(handle.wait(), timeout=self._playback_timeout_seconds)
        except asyncio.TimeoutError:
            self._logger.warning(
                "playback_timeout",
                extra={"session_id": self._session.id, "timeout_seconds": self._playback_timeout_seconds},
            )
            if generation == self._generation:
                handle.stop()

    def _activate(self) -> None:
        if self._usage_limiter is not None:
            allowance = self._usage_limiter.check(self._usage_key)
            if not allowance.allowed:
                raise UsageLimitExceeded(allowance.reason or "Usage limit reached")
            self._usage_limiter.record(self._usage_key)
        self._session.active = True
        self._logger.info(
            "session_activated",
            extra={
                "session_id": self._session.id,
                "language_a": self._session.language_a,
                "language_b": self._session.language_b,
            },
        )

    def _record(self, utterance: Utterance) -> None:
        if self._history_sink is None:
            return
        try:
            self._history_sink.append(self._session.id, utterance)
        except Exception:  # noqa: BLE001
            self._logger.exception(
                "history_append_failed",
                extra={"session_id": self._session.id, "utterance_id": utterance.id},
            )

    def _reset_to_idle(self) -> None:
        self._state = RelayState.IDLE
        self._speaker = None
        self._in_flight = None
        self._playback = None
