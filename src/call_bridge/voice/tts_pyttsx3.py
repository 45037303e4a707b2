"""Local text-to-speech backend powered by ``pyttsx3``."""

from __future__ import annotations

import json

from .interfaces import AudioOutputDevice, SpeechSynthesizer


class Pyttsx3SpeechSynthesizer(SpeechSynthesizer):
    """Prepare a text payload for local pyttsx3 playback.

    pyttsx3 renders and plays in one step, so the payload carries the text and
    language through to ``Pyttsx3AudioOutputDevice``. Provider voice ids are
    meaningless to the local engine and are ignored.
    """

    def __init__(self) -> None:
        try:
            import pyttsx3  # noqa: F401
        except ImportError as exc:  # pragma: no cover - import guard
            raise RuntimeError(
                "Local TTS backend unavailable. Install extras with: pip install 'call-bridge[voice]'"
            ) from exc

    def synthesize(self, text: str, language: str, voice_id: str | None = None) -> bytes:
        return json.dumps({"text": text, "language": language}).encode("utf-8")


class Pyttsx3AudioOutputDevice(AudioOutputDevice):
    """Speaker playback using a local pyttsx3 engine instance."""

    def __init__(self, *, rate: int | None = None, volume: float | None = None) -> None:
        try:
            import pyttsx3
        except ImportError as exc:  # pragma: no cover - import guard
            raise RuntimeError(
                "Audio output backend unavailable. Install extras with: pip install 'call-bridge[voice]'"
            ) from exc

        self._engine = pyttsx3.init()
        if rate is not None:
            self._engine.setProperty("rate", rate)
        if volume is not None:
            self._engine.setProperty("volume", max(0.0, min(1.0, volume)))
        self._voices = list(self._engine.getProperty("voices") or [])

    def play(self, audio_bytes: bytes) -> None:
        payload = json.loads(audio_bytes.decode("utf-8", errors="ignore") or "{}")
        text = (payload.get("text") or "").strip()
        if not text:
            return

        voice_id = self._voice_for(payload.get("language") or "")
        if voice_id:
            self._engine.setProperty("voice", voice_id)
        self._engine.say(text)
        self._engine.runAndWait()

    def stop(self) -> None:
        self._engine.stop()

    def _voice_for(self, language: str) -> str | None:
        prefix = language.split("-")[0].lower()
        if not prefix:
            return None
        for voice in self._voices:
            tags = [_language_tag(tag) for tag in (getattr(voice, "languages", None) or [])]
            haystack = " ".join([*tags, str(voice.id).lower(), str(getattr(voice, "name", "")).lower()])
            if prefix in tags or f"{prefix}_" in haystack or f"{prefix}-" in haystack:
                return voice.id
        return None


def _language_tag(tag: object) -> str:
    # espeak reports tags as bytes with a leading priority byte, e.g. b"\x05en".
    if isinstance(tag, bytes):
        tag = tag.decode("utf-8", errors="ignore")
    return "".join(ch for ch in str(tag) if ch.isprintable()).strip().lower()
