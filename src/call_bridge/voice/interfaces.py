"""Contracts for speech capture, synthesis, and playback."""

from __future__ import annotations

from typing import Protocol

from .capture import TranscriptEvent


class SpeechCapture(Protocol):
    """Arms a recognizer for one language and yields transcript events."""

    @property
    def listening(self) -> bool:
        """Whether the microphone is currently held for recognition."""

    def start_listening(self, language: str, *, continuous: bool = False) -> None:
        """Acquire the microphone and start recognizing ``language``."""

    def stop_listening(self) -> None:
        """Stop recognition and release the microphone."""

    def reset_transcript(self) -> None:
        """Forget the last final transcript."""

    async def next_event(self) -> TranscriptEvent:
        """Wait for the next interim or final event; raises ``CaptureError`` on failure."""


class SpeechSynthesizer(Protocol):
    """Converts text into audio for one output device."""

    def synthesize(self, text: str, language: str, voice_id: str | None = None) -> bytes:
        """Return playable audio bytes for the given text."""


class AudioOutputDevice(Protocol):
    """Interface for a speaker/audio sink."""

    def play(self, audio_bytes: bytes) -> None:
        """Play audio bytes to completion (blocking)."""

    def stop(self) -> None:
        """Interrupt playback, if any."""
