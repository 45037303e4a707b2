"""Pluggable source-text quality estimation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Protocol

from call_bridge.models import QualityEstimate


class TextQualityEstimator(Protocol):
    """Scores how reliably a transcript is likely to translate."""

    def estimate(self, text: str) -> QualityEstimate:
        """Return a confidence in [0, 1] and any flagged terms."""


@dataclass(frozen=True, slots=True)
class SlangPattern:
    pattern: re.Pattern[str]
    description: str


SLANG_PATTERNS: tuple[SlangPattern, ...] = (
    SlangPattern(re.compile(r"\b(fire|lit|bussin|slaps|hits different)\b", re.IGNORECASE),
                 "modern slang for 'excellent' or 'amazing'"),
    SlangPattern(re.compile(r"\b(no cap|fr|ngl|periodt)\b", re.IGNORECASE),
                 "emphasis or truth-telling expressions"),
    SlangPattern(re.compile(r"\b(vibe|vibes|mood|big mood)\b", re.IGNORECASE),
                 "feeling or atmosphere expressions"),
    SlangPattern(re.compile(r"\b(salty|pressed|triggered|sus)\b", re.IGNORECASE),
                 "emotional state or suspicion"),
    SlangPattern(re.compile(r"\b(fam|bro|bestie|queen|king)\b", re.IGNORECASE),
                 "informal address terms"),
)


class SlangQualityEstimator:
    """Lowers confidence as the share of slang terms in a transcript grows."""

    def __init__(self, patterns: tuple[SlangPattern, ...] = SLANG_PATTERNS) -> None:
        self._patterns = patterns

    def detect(self, text: str) -> list[str]:
        found: list[str] = []
        for slang in self._patterns:
            found.extend(match.group(0) for match in slang.pattern.finditer(text) if len(match.group(0)) > 2)
        return found

    def estimate(self, text: str) -> QualityEstimate:
        flags = self.detect(text)
        words = max(1, len(text.split()))
        ratio = len(flags) / words

        if ratio > 0.3:
            confidence = 0.4
        elif ratio > 0.15:
            confidence = 0.6
        elif flags:
            confidence = 0.75
        else:
            confidence = 0.9
        return QualityEstimate(confidence=confidence, flags=flags)


def clarification_message(flags: list[str]) -> str:
    if not flags:
        return "I'm having trouble with that phrase. Could you rephrase it?"
    return (
        f"I detected slang terms ({', '.join(flags)}). "
        "Could you use more standard language for better translation?"
    )
