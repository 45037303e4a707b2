"""Tiered translation client that degrades instead of failing."""

from __future__ import annotations

import asyncio
import logging
from typing import Sequence

from call_bridge.languages import normalize_language, passthrough_marker, same_language
from call_bridge.models import TranslationResult
from call_bridge.translation.providers import PhraseTable, TranslationProvider

DEFAULT_PROVIDER_CONFIDENCES: tuple[float, ...] = (0.9, 0.8)
PHRASE_TABLE_CONFIDENCE = 0.6
PASSTHROUGH_CONFIDENCE = 0.3


class TranslationClient:
    """Translates through providers in order, then the phrase table, then passthrough.

    The client never raises for provider trouble; every failure moves one tier down
    and the returned confidence reflects the tier that produced the text.
    """

    def __init__(
        self,
        providers: Sequence[TranslationProvider],
        *,
        phrase_table: PhraseTable | None = None,
        provider_confidences: Sequence[float] = DEFAULT_PROVIDER_CONFIDENCES,
        phrase_table_confidence: float = PHRASE_TABLE_CONFIDENCE,
        passthrough_confidence: float = PASSTHROUGH_CONFIDENCE,
        timeout_seconds: float | None = 5.0,
        logger: logging.Logger | None = None,
    ) -> None:
        if len(provider_confidences) < len(providers):
            raise ValueError("Each provider needs a confidence value")

        confidences = [*provider_confidences[: len(providers)], phrase_table_confidence, passthrough_confidence]
        if any(later > earlier for earlier, later in zip(confidences, confidences[1:])):
            raise ValueError(f"Tier confidences must not increase: {confidences}")
        if any(not 0.0 <= value <= 1.0 for value in confidences):
            raise ValueError(f"Tier confidences must lie in [0, 1]: {confidences}")

        self._providers = list(providers)
        self._phrase_table = phrase_table if phrase_table is not None else PhraseTable()
        self._tier_confidences = confidences
        self._timeout_seconds = timeout_seconds
        self._logger = logger or logging.getLogger("call_bridge.translation")

    @property
    def tier_confidences(self) -> tuple[float, ...]:
        return tuple(self._tier_confidences)

    async def translate(self, text: str, source_language: str, target_language: str) -> TranslationResult:
        if not text or not text.strip():
            raise ValueError("No text to translate")

        if same_language(source_language, target_language):
            return TranslationResult(translated_text=text, confidence=1.0, tier=0, source_name="identity")

        for tier, provider in enumerate(self._providers):
            try:
                translated = await self._call_provider(provider, text, source_language, target_language)
            except asyncio.TimeoutError:
                self._logger.warning(
                    "translation_provider_timeout",
                    extra={"provider": provider.name, "tier": tier, "timeout_seconds": self._timeout_seconds},
                )
                continue
            except Exception as exc:  # noqa: BLE001 - any provider failure moves to the next tier.
                self._logger.warning(
                    "translation_provider_failed",
                    extra={"provider": provider.name, "tier": tier, "error": f"{type(exc).__name__}: {exc}"},
                )
                continue

            return TranslationResult(
                translated_text=translated,
                confidence=self._tier_confidences[tier],
                tier=tier,
                source_name=provider.name,
            )

        phrase_tier = len(self._providers)
        substituted = self._phrase_table.lookup(text, source_language, target_language)
        if substituted:
            self._logger.info(
                "translation_phrase_table_used",
                extra={"source_language": source_language, "target_language": target_language},
            )
            return TranslationResult(
                translated_text=substituted,
                confidence=self._tier_confidences[phrase_tier],
                tier=phrase_tier,
                source_name=self._phrase_table.name,
            )

        self._logger.warning(
            "translation_passthrough",
            extra={"source_language": source_language, "target_language": normalize_language(target_language)},
        )
        return TranslationResult(
            translated_text=f"{passthrough_marker(target_language)} {text}",
            confidence=self._tier_confidences[phrase_tier + 1],
            tier=phrase_tier + 1,
            source_name="passthrough",
        )

    async def _call_provider(
        self,
        provider: TranslationProvider,
        text: str,
        source_language: str,
        target_language: str,
    ) -> str:
        call = provider.translate(text, source_language, target_language)
        if self._timeout_seconds is None:
            translated = await call
        else:
            translated = await asyncio.wait_for(call, timeout=self._timeout_seconds)
        if not translated or not translated.strip():
            raise ValueError("empty translation")
        return translated.strip()
