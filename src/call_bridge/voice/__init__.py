"""Speech capture and synthesis module boundaries."""

from .capture import CaptureError, CaptureErrorKind, KeyboardSpeechCapture, QueuedSpeechCapture, TranscriptEvent
from .interfaces import AudioOutputDevice, SpeechCapture, SpeechSynthesizer
from .output import CommandAudioPlayer, PlaybackHandle, PlaybackStatus
from .synthesis import SpeechSynthesisClient, VoiceBackend
from .voices import VoiceSelector, detect_speaker_gender

__all__ = [
    "AudioOutputDevice",
    "CaptureError",
    "CaptureErrorKind",
    "CommandAudioPlayer",
    "KeyboardSpeechCapture",
    "PlaybackHandle",
    "PlaybackStatus",
    "QueuedSpeechCapture",
    "SpeechCapture",
    "SpeechSynthesisClient",
    "SpeechSynthesizer",
    "TranscriptEvent",
    "VoiceBackend",
    "VoiceSelector",
    "detect_speaker_gender",
]
