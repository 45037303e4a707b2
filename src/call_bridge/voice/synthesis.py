"""Speech synthesis client with a single active stream and local fallback."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from call_bridge.languages import VoiceGender

from .interfaces import AudioOutputDevice, SpeechSynthesizer
from .output import PlaybackHandle, PlaybackStatus
from .voices import VoiceSelector


@dataclass(slots=True)
class VoiceBackend:
    """A synthesizer paired with the device able to play its output."""

    name: str
    synthesizer: SpeechSynthesizer
    output_device: AudioOutputDevice


class SpeechSynthesisClient:
    """Speaks translated text, stopping any previous stream first.

    Synthesis failures on the primary backend fall through to the local
    fallback backend; the handle is then marked ``degraded``.
    """

    def __init__(
        self,
        *,
        fallback: VoiceBackend,
        primary: VoiceBackend | None = None,
        voice_selector: VoiceSelector | None = None,
        max_chars: int = 1_000,
        logger: logging.Logger | None = None,
    ) -> None:
        self._primary = primary
        self._fallback = fallback
        self._voice_selector = voice_selector or VoiceSelector()
        self._max_chars = max_chars
        self._logger = logger or logging.getLogger("call_bridge.voice.synthesis")
        self._active: PlaybackHandle | None = None

    @property
    def active(self) -> PlaybackHandle | None:
        if self._active is not None and self._active.done:
            self._active = None
        return self._active

    def speak(self, text: str, language: str, voice_hint: VoiceGender | str | None = None) -> PlaybackHandle:
        """Start speaking ``text`` and return its playback handle immediately."""
        self.stop()

        normalized = " ".join(text.split())[: self._max_chars]
        voice_id = self._voice_selector.select(language, voice_hint)
        handle = PlaybackHandle(text=normalized, language=language, voice_id=voice_id)
        self._active = handle

        if not normalized:
            handle._finish(PlaybackStatus.COMPLETED)
            return handle

        task = asyncio.get_running_loop().create_task(self._perform(handle), name="speech-playback")
        handle._attach(task)
        return handle

    def stop(self) -> None:
        handle, self._active = self._active, None
        if handle is not None and not handle.done:
            handle.stop()
            self._logger.info("synthesis_stopped", extra={"backend": handle.backend_name})

    async def _perform(self, handle: PlaybackHandle) -> None:
        try:
            if self._primary is not None and await self._play_primary(handle):
                handle._finish(PlaybackStatus.COMPLETED)
                return

            audio = await asyncio.to_thread(
                self._fallback.synthesizer.synthesize,
                handle.text,
                handle.language,
                None,
            )
            await self._play(handle, self._fallback, audio, degraded=self._primary is not None)
        except asyncio.CancelledError:
            handle._finish(PlaybackStatus.STOPPED)
            raise
        except Exception as exc:  # noqa: BLE001 - playback failures end the stream, not the session.
            self._logger.exception(
                "synthesis_failed",
                extra={"backend": handle.backend_name, "language": handle.language},
            )
            handle._finish(PlaybackStatus.FAILED, error=f"{type(exc).__name__}: {exc}")
            return

        handle._finish(PlaybackStatus.COMPLETED)

    async def _play_primary(self, handle: PlaybackHandle) -> bool:
        """Synthesize and play on the primary backend; ``False`` means use the fallback."""
        primary = self._primary
        try:
            audio = await asyncio.to_thread(
                primary.synthesizer.synthesize,
                handle.text,
                handle.language,
                handle.voice_id,
            )
        except Exception as exc:  # noqa: BLE001
            self._logger.warning(
                "synthesis_primary_failed",
                extra={"backend": primary.name, "error": f"{type(exc).__name__}: {exc}"},
            )
            return False
        if not audio:
            self._logger.warning("synthesis_empty_audio", extra={"backend": primary.name})
            return False

        try:
            await self._play(handle, primary, audio, degraded=False)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning(
                "playback_primary_failed",
                extra={"backend": primary.name, "error": f"{type(exc).__name__}: {exc}"},
            )
            return False
        return True

    async def _play(self, handle: PlaybackHandle, backend: VoiceBackend, audio: bytes, *, degraded: bool) -> None:
        handle._playing_on(backend.name, backend.output_device.stop, degraded=degraded)
        await asyncio.to_thread(_play_unless_stopped, handle, backend.output_device, audio)


def _play_unless_stopped(handle: PlaybackHandle, device: AudioOutputDevice, audio: bytes) -> None:
    if handle.done:
        return
    device.play(audio)
