"""Synthesis voice selection from the static voice tables."""

from __future__ import annotations

import random
from array import array

from call_bridge.languages import DEFAULT_VOICE_ID, GENDER_VOICES, LANGUAGE_VOICES, VoiceGender, normalize_language

# Typical fundamental frequency boundary between lower and higher voices.
GENDER_PITCH_THRESHOLD_HZ = 150.0
_MIN_SAMPLES = 400


class VoiceSelector:
    """Picks a provider voice id for a language and optional hint."""

    def __init__(
        self,
        *,
        language_voices: dict[str, str] | None = None,
        gender_voices: dict[VoiceGender, tuple[str, ...]] | None = None,
        default_voice: str = DEFAULT_VOICE_ID,
        rng: random.Random | None = None,
    ) -> None:
        self._language_voices = dict(LANGUAGE_VOICES if language_voices is None else language_voices)
        self._gender_voices = dict(GENDER_VOICES if gender_voices is None else gender_voices)
        self._default_voice = default_voice
        self._rng = rng or random.Random()

    def select(self, language: str, hint: VoiceGender | str | None = None) -> str:
        if isinstance(hint, VoiceGender):
            candidates = self._gender_voices.get(hint)
            if candidates:
                return self._rng.choice(candidates)
        elif hint:
            return hint

        return self._language_voices.get(normalize_language(language), self._default_voice)


def detect_speaker_gender(pcm_bytes: bytes, sample_rate: int = 16_000) -> VoiceGender | None:
    """Classify a 16-bit mono PCM sample by its zero-crossing pitch estimate."""
    usable = len(pcm_bytes) - (len(pcm_bytes) % 2)
    samples = array("h")
    samples.frombytes(pcm_bytes[:usable])
    if len(samples) < _MIN_SAMPLES:
        return None

    crossings = sum(1 for prev, cur in zip(samples, samples[1:]) if (prev >= 0) != (cur >= 0))
    estimated_hz = crossings * sample_rate / (2 * len(samples))
    return VoiceGender.FEMALE if estimated_hz > GENDER_PITCH_THRESHOLD_HZ else VoiceGender.MALE
