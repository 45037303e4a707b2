"""Translation providers reached over HTTP, plus the offline phrase table."""

from __future__ import annotations

import re
from typing import Any, Protocol

import httpx

from call_bridge.languages import normalize_language, provider_code

GOOGLE_TRANSLATE_URL = "https://translate.googleapis.com/translate_a/single"
MYMEMORY_URL = "https://api.mymemory.translated.net/get"


class TranslationProviderError(RuntimeError):
    """Raised when a provider returns no usable translation."""


class TranslationProvider(Protocol):
    """External service that translates one piece of text."""

    name: str

    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        """Return translated text or raise on any provider failure."""


class _HttpProvider:
    name = "http"

    def __init__(self, *, client: httpx.AsyncClient | None = None, timeout_seconds: float = 5.0) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds

    async def _get_json(self, url: str, params: dict[str, str]) -> Any:
        if self._client is not None:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            return response.json()

        async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()


class GoogleTranslateProvider(_HttpProvider):
    """Public gtx endpoint of Google Translate."""

    name = "google"

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 5.0,
        url: str = GOOGLE_TRANSLATE_URL,
    ) -> None:
        super().__init__(client=client, timeout_seconds=timeout_seconds)
        self._url = url

    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        data = await self._get_json(
            self._url,
            {
                "client": "gtx",
                "sl": provider_code(source_language),
                "tl": provider_code(target_language),
                "dt": "t",
                "q": text,
            },
        )
        # Payload shape: [[["translated", "original", ...], ...], ...]
        try:
            parts = [segment[0] for segment in data[0] if segment and segment[0]]
        except (TypeError, IndexError, KeyError) as exc:
            raise TranslationProviderError(f"Malformed payload from {self.name}") from exc
        translated = "".join(parts).strip()
        if not translated:
            raise TranslationProviderError(f"Empty translation from {self.name}")
        return translated


class MyMemoryProvider(_HttpProvider):
    """MyMemory translation memory API."""

    name = "mymemory"

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 5.0,
        url: str = MYMEMORY_URL,
        contact_email: str | None = None,
    ) -> None:
        super().__init__(client=client, timeout_seconds=timeout_seconds)
        self._url = url
        self._contact_email = contact_email

    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        params = {
            "q": text,
            "langpair": f"{normalize_language(source_language)}|{normalize_language(target_language)}",
        }
        if self._contact_email:
            params["de"] = self._contact_email

        data = await self._get_json(self._url, params)
        if not isinstance(data, dict):
            raise TranslationProviderError(f"Malformed payload from {self.name}")
        status = data.get("responseStatus")
        if status not in (200, "200"):
            raise TranslationProviderError(f"{self.name} responded with status {status}")
        translated = ((data.get("responseData") or {}).get("translatedText") or "").strip()
        if not translated:
            raise TranslationProviderError(f"Empty translation from {self.name}")
        return translated


DEFAULT_PHRASES: dict[tuple[str, str], dict[str, str]] = {
    ("en", "es"): {
        "how are you": "cómo estás",
        "thank you": "gracias",
        "hello": "hola",
        "no cap": "en serio",
        "fire": "increíble",
        "lit": "genial",
        "bussin": "delicioso",
        "fr": "de verdad",
        "vibe": "ambiente",
        "mood": "estado de ánimo",
        "salty": "molesto",
        "sus": "sospechoso",
        "fam": "amigo",
    },
    ("en", "pt-BR"): {
        "how are you": "como vai",
        "thank you": "obrigado",
        "hello": "olá",
    },
    ("en", "fr"): {
        "how are you": "comment allez-vous",
        "thank you": "merci",
        "hello": "bonjour",
        "no cap": "sérieusement",
        "fire": "incroyable",
        "lit": "génial",
        "vibe": "ambiance",
        "mood": "humeur",
    },
    ("es", "en"): {
        "cómo estás": "how are you",
        "gracias": "thank you",
        "hola": "hello",
    },
    ("pt-BR", "en"): {
        "como vai": "how are you",
        "obrigado": "thank you",
        "olá": "hello",
    },
}


class PhraseTable:
    """Fixed phrase substitutions keyed by language pair."""

    name = "phrase_table"

    def __init__(self, phrases: dict[tuple[str, str], dict[str, str]] | None = None) -> None:
        self._tables: dict[tuple[str, str], list[tuple[re.Pattern[str], str]]] = {}
        for (source, target), entries in (DEFAULT_PHRASES if phrases is None else phrases).items():
            # Longest phrases first so "how are you" wins over any shorter overlap.
            ordered = sorted(entries.items(), key=lambda item: len(item[0]), reverse=True)
            self._tables[(normalize_language(source), normalize_language(target))] = [
                (re.compile(rf"(?<!\w){re.escape(phrase)}(?!\w)", re.IGNORECASE), replacement)
                for phrase, replacement in ordered
            ]

    def lookup(self, text: str, source_language: str, target_language: str) -> str | None:
        """Return text with known phrases substituted, or ``None`` when nothing matched."""
        table = self._tables.get((normalize_language(source_language), normalize_language(target_language)))
        if not table:
            return None

        result = text
        matched = False
        for pattern, replacement in table:
            result, count = pattern.subn(replacement, result)
            matched = matched or count > 0
        return result if matched else None
