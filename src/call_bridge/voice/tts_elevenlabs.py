"""Text-to-speech backend powered by the ElevenLabs HTTP API."""

from __future__ import annotations

import httpx

from call_bridge.languages import LANGUAGE_VOICES, DEFAULT_VOICE_ID, normalize_language

from .interfaces import SpeechSynthesizer

ELEVENLABS_TTS_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}"


class SynthesisError(RuntimeError):
    """Raised when a synthesis provider returns no playable audio."""


class ElevenLabsSynthesizer(SpeechSynthesizer):
    """Request MP3 audio from ElevenLabs for a voice id."""

    def __init__(
        self,
        api_key: str | None,
        *,
        model: str = "eleven_turbo_v2_5",
        timeout_seconds: float = 30.0,
        client: httpx.Client | None = None,
        url_template: str = ELEVENLABS_TTS_URL,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._model = model
        self._timeout_seconds = timeout_seconds
        self._client = client
        self._url_template = url_template

    def synthesize(self, text: str, language: str, voice_id: str | None = None) -> bytes:
        if not self._api_key:
            raise SynthesisError("ElevenLabs API key not configured")

        voice = voice_id or LANGUAGE_VOICES.get(normalize_language(language), DEFAULT_VOICE_ID)
        url = self._url_template.format(voice_id=voice)
        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self._api_key,
        }
        body = {
            "text": text,
            "model_id": self._model,
            "voice_settings": {
                "stability": 0.5,
                "similarity_boost": 0.75,
                "style": 0.0,
                "use_speaker_boost": True,
            },
        }

        if self._client is not None:
            response = self._client.post(url, headers=headers, json=body)
        else:
            with httpx.Client(timeout=self._timeout_seconds) as client:
                response = client.post(url, headers=headers, json=body)

        if response.status_code == 401:
            raise SynthesisError("ElevenLabs rejected the API key")
        if response.status_code == 402:
            raise SynthesisError("ElevenLabs character quota exhausted")
        response.raise_for_status()
        if not response.content:
            raise SynthesisError("ElevenLabs returned no audio")
        return response.content
