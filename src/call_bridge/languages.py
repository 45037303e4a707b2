"""Static language and voice tables shared by capture, translation, and synthesis."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class VoiceGender(str, Enum):
    """Speaker attribute used to narrow synthesis voice selection."""

    FEMALE = "female"
    MALE = "male"


@dataclass(frozen=True, slots=True)
class Language:
    code: str
    name: str
    speech_locale: str


SUPPORTED_LANGUAGES: dict[str, Language] = {
    lang.code: lang
    for lang in (
        Language("en", "English", "en-US"),
        Language("es", "Spanish", "es-ES"),
        Language("fr", "French", "fr-FR"),
        Language("de", "German", "de-DE"),
        Language("it", "Italian", "it-IT"),
        Language("pt", "Portuguese", "pt-PT"),
        Language("pt-BR", "Brazilian Portuguese", "pt-BR"),
        Language("ru", "Russian", "ru-RU"),
        Language("zh", "Chinese", "zh-CN"),
        Language("ja", "Japanese", "ja-JP"),
        Language("ko", "Korean", "ko-KR"),
    )
}

# Codes understood by the gtx translate endpoint when they differ from ours.
PROVIDER_LANGUAGE_CODES: dict[str, str] = {
    "pt-BR": "pt",
}

DEFAULT_VOICE_ID = "EXAVITQu4vr4xnSDxMaL"  # Sarah

LANGUAGE_VOICES: dict[str, str] = {
    "en": "EXAVITQu4vr4xnSDxMaL",  # Sarah
    "es": "pFZP5JQG7iQjIQuC4Bku",  # Lily
    "fr": "XB0fDUnXU5powFXDhCwa",  # Charlotte
    "de": "CwhRBWXzGAHq8TQ4Fs17",  # Roger
    "it": "FGY2WhTYpPnrIDTdsKH5",  # Laura
    "pt": "cgSgspJ2msm6clMCkdW9",  # Jessica
    "pt-BR": "cgSgspJ2msm6clMCkdW9",  # Jessica
    "ru": "N2lVS1w4EtoT3dr4eOWO",  # Callum
    "zh": "SAz9YHcvj6GT2YYXdXww",  # River
    "ja": "TX3LPaxmHKxFdv7VOQHJ",  # Liam
    "ko": "bIHbv24MWmeRgasZH58o",  # Will
}

# Multilingual voices, so one set serves every language.
GENDER_VOICES: dict[VoiceGender, tuple[str, ...]] = {
    VoiceGender.FEMALE: (
        "EXAVITQu4vr4xnSDxMaL",  # Sarah
        "9BWtsMINqrJLrRacOk9x",  # Aria
        "FGY2WhTYpPnrIDTdsKH5",  # Laura
        "XB0fDUnXU5powFXDhCwa",  # Charlotte
        "Xb7hH8MSUJpSbSDYk0k2",  # Alice
        "cgSgspJ2msm6clMCkdW9",  # Jessica
        "pFZP5JQG7iQjIQuC4Bku",  # Lily
    ),
    VoiceGender.MALE: (
        "CwhRBWXzGAHq8TQ4Fs17",  # Roger
        "IKne3meq5aSn9XLyUdCD",  # Charlie
        "JBFqnCBsd6RMkjVDRZzb",  # George
        "TX3LPaxmHKxFdv7VOQHJ",  # Liam
        "bIHbv24MWmeRgasZH58o",  # Will
        "cjVigY5qzO86Huf0OWal",  # Eric
        "iP95p4xoKVk53GoZ742B",  # Chris
        "onwK4e9ZLuTAKqWW03F9",  # Daniel
    ),
}


def normalize_language(code: str) -> str:
    """Return the canonical spelling of a language tag (``PT-br`` -> ``pt-BR``)."""
    cleaned = code.strip().replace("_", "-")
    for known in SUPPORTED_LANGUAGES:
        if known.lower() == cleaned.lower():
            return known
    return cleaned


def same_language(left: str, right: str) -> bool:
    return normalize_language(left).lower() == normalize_language(right).lower()


def speech_locale(code: str) -> str:
    language = SUPPORTED_LANGUAGES.get(normalize_language(code))
    return language.speech_locale if language else code


def provider_code(code: str) -> str:
    normalized = normalize_language(code)
    return PROVIDER_LANGUAGE_CODES.get(normalized, normalized)


def language_name(code: str) -> str:
    language = SUPPORTED_LANGUAGES.get(normalize_language(code))
    return language.name if language else code


def passthrough_marker(code: str) -> str:
    return f"[{normalize_language(code).upper()}]"
