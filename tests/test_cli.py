from __future__ import annotations

import importlib
import sys
import types

import httpx
import pytest

from call_bridge.history import JsonlHistorySink
from call_bridge.models import Party, TranslationResult, Utterance
from call_bridge.translation import TranslationClient


class StubProvider:
    name = "stub"

    def __init__(self, translations: dict[str, str] | None = None) -> None:
        self.translations = translations or {}

    async def translate(self, text: str, source_language: str, target_language: str) -> str:
        if text not in self.translations:
            raise httpx.ConnectError("network unreachable")
        return self.translations[text]


def _stub_translation(monkeypatch, translations: dict[str, str] | None = None) -> None:
    from call_bridge import main

    monkeypatch.setattr(main, "_build_translation_client", lambda: TranslationClient([StubProvider(translations)]))


def _fake_local_voice(monkeypatch) -> list[tuple[str, str]]:
    spoken: list[tuple[str, str]] = []
    fake_tts = types.ModuleType("call_bridge.voice.tts_pyttsx3")

    class _Synthesizer:
        def synthesize(self, text: str, language: str, voice_id: str | None = None) -> bytes:
            spoken.append((text, language))
            return text.encode("utf-8")

    class _Device:
        def play(self, audio_bytes: bytes) -> None:
            return None

        def stop(self) -> None:
            return None

    fake_tts.Pyttsx3SpeechSynthesizer = _Synthesizer
    fake_tts.Pyttsx3AudioOutputDevice = _Device
    monkeypatch.setitem(sys.modules, "call_bridge.voice.tts_pyttsx3", fake_tts)
    return spoken


def test_console_entrypoint_exposes_app() -> None:
    pytest.importorskip("typer")

    module = importlib.import_module("call_bridge.main")

    assert hasattr(module, "app")
    assert module.app is not None


def test_languages_lists_supported_codes() -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from call_bridge.main import app

    result = typer_testing.CliRunner().invoke(app, ["languages"])

    assert result.exit_code == 0
    assert "pt-BR" in result.stdout
    assert "Japanese" in result.stdout


def test_translate_reports_passthrough_tier(monkeypatch) -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from call_bridge.main import app

    _stub_translation(monkeypatch)

    result = typer_testing.CliRunner().invoke(app, ["translate", "bonjour", "--source", "fr", "--target", "en"])

    assert result.exit_code == 0
    assert "[EN] bonjour" in result.stdout
    assert "passthrough" in result.stdout


def test_bridge_reports_actionable_error_when_voice_backends_missing(monkeypatch) -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from call_bridge.main import app

    fake_stt = types.ModuleType("call_bridge.voice.stt_speechrecognition")
    fake_tts = types.ModuleType("call_bridge.voice.tts_pyttsx3")

    class _MissingBackend:
        def __init__(self, *args, **kwargs) -> None:
            raise RuntimeError("Install call-bridge[voice]")

    fake_stt.SpeechRecognitionCapture = _MissingBackend
    fake_tts.Pyttsx3SpeechSynthesizer = _MissingBackend
    fake_tts.Pyttsx3AudioOutputDevice = _MissingBackend

    monkeypatch.setitem(sys.modules, "call_bridge.voice.stt_speechrecognition", fake_stt)
    monkeypatch.setitem(sys.modules, "call_bridge.voice.tts_pyttsx3", fake_tts)

    result = typer_testing.CliRunner().invoke(app, ["bridge"], catch_exceptions=False)

    assert result.exit_code == 1
    assert "call-bridge[voice]" in result.stdout


def test_bridge_rejects_identical_languages(monkeypatch) -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from call_bridge.main import app

    _fake_local_voice(monkeypatch)

    result = typer_testing.CliRunner().invoke(app, ["bridge", "--typed", "--language-a", "en", "--language-b", "EN"])

    assert result.exit_code != 0


def test_typed_bridge_alternates_speakers(monkeypatch) -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from call_bridge.main import app

    spoken = _fake_local_voice(monkeypatch)
    _stub_translation(monkeypatch, {"hello": "hola", "gracias": "thanks"})

    result = typer_testing.CliRunner().invoke(
        app,
        ["bridge", "--typed", "--auto-advance", "--language-a", "en", "--language-b", "es"],
        input="hello\ngracias\n",
    )

    assert result.exit_code == 0
    assert spoken == [("hola", "es"), ("thanks", "en")]
    assert "'utterances': 2" in result.stdout


def test_history_prints_recorded_utterances(tmp_path) -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from call_bridge.main import app

    path = tmp_path / "history.jsonl"
    utterance = Utterance(
        speaker=Party.A,
        source_text="hello",
        source_language="en",
        target_language="es",
        confidence=0.9,
    )
    utterance.attach_translation(TranslationResult("hola", 0.9, 0, "google"))
    JsonlHistorySink(path).append("session-1", utterance)

    result = typer_testing.CliRunner().invoke(app, ["history", "--path", str(path)])

    assert result.exit_code == 0
    assert "hola" in result.stdout


def test_typed_bridge_accepts_same_phrase_from_each_party(monkeypatch) -> None:
    typer_testing = pytest.importorskip("typer.testing")
    from call_bridge.main import app

    spoken = _fake_local_voice(monkeypatch)
    _stub_translation(monkeypatch)

    result = typer_testing.CliRunner().invoke(
        app,
        ["bridge", "--typed", "--auto-advance", "--language-a", "en", "--language-b", "es"],
        input="ok\nok\n",
    )

    assert result.exit_code == 0
    assert len(spoken) == 2
    assert "'utterances': 2" in result.stdout
