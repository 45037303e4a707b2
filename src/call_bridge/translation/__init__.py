"""Text translation with provider fallback."""

from .client import TranslationClient
from .providers import (
    GoogleTranslateProvider,
    MyMemoryProvider,
    PhraseTable,
    TranslationProvider,
    TranslationProviderError,
)

__all__ = [
    "GoogleTranslateProvider",
    "MyMemoryProvider",
    "PhraseTable",
    "TranslationClient",
    "TranslationProvider",
    "TranslationProviderError",
]
