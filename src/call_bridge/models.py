from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4


class Party(str, Enum):
    """The two participant roles of a bridged conversation."""

    A = "a"
    B = "b"

    @property
    def other(self) -> Party:
        return Party.B if self is Party.A else Party.A


@dataclass(slots=True)
class TranslationResult:
    translated_text: str
    confidence: float
    tier: int = 0
    source_name: str = "identity"

    @property
    def degraded(self) -> bool:
        return self.tier > 0


@dataclass(slots=True)
class QualityEstimate:
    confidence: float
    flags: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Utterance:
    """One finalized spoken turn and, once attached, its translation."""

    speaker: Party
    source_text: str
    source_language: str
    target_language: str
    confidence: float
    id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    translated_text: str = ""
    translation_confidence: float | None = None
    translation_tier: int | None = None
    quality_flags: list[str] = field(default_factory=list)

    @property
    def translated(self) -> bool:
        return self.translation_confidence is not None

    def attach_translation(self, result: TranslationResult) -> None:
        if self.translated:
            raise ValueError(f"Utterance {self.id} already has a translation")
        self.translated_text = result.translated_text
        self.translation_confidence = result.confidence
        self.translation_tier = result.tier

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "speaker": self.speaker.value,
            "source_text": self.source_text,
            "source_language": self.source_language,
            "target_language": self.target_language,
            "translated_text": self.translated_text,
            "confidence": self.confidence,
            "translation_confidence": self.translation_confidence,
            "translation_tier": self.translation_tier,
            "quality_flags": list(self.quality_flags),
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Utterance:
        return cls(
            id=payload["id"],
            speaker=Party(payload["speaker"]),
            source_text=payload["source_text"],
            source_language=payload["source_language"],
            target_language=payload["target_language"],
            confidence=float(payload.get("confidence", 0.0)),
            timestamp=datetime.fromisoformat(payload["timestamp"]),
            translated_text=payload.get("translated_text", ""),
            translation_confidence=payload.get("translation_confidence"),
            translation_tier=payload.get("translation_tier"),
            quality_flags=list(payload.get("quality_flags") or []),
        )
