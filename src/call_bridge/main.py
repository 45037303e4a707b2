"""CLI entrypoint for call-bridge."""

from __future__ import annotations

import asyncio

import typer
from rich import print

from call_bridge.config import settings
from call_bridge.history import JsonlHistorySink
from call_bridge.languages import SUPPORTED_LANGUAGES, LANGUAGE_VOICES, normalize_language
from call_bridge.limits import DailyUsageLimiter, UsageLimitExceeded
from call_bridge.models import Party, Utterance
from call_bridge.quality import SlangQualityEstimator, clarification_message
from call_bridge.relay import RelayProtocolError, Session, SessionConfigError, TurnPolicy, TurnRelay
from call_bridge.telemetry.logging import configure_logging
from call_bridge.translation import GoogleTranslateProvider, MyMemoryProvider, TranslationClient
from call_bridge.voice import CaptureError, CaptureErrorKind, KeyboardSpeechCapture, TranscriptEvent

app = typer.Typer(help="Turn-based spoken translation relay")


@app.callback()
def _main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log relay events at DEBUG level")) -> None:
    configure_logging("DEBUG" if verbose else settings.log_level)


def _build_translation_client() -> TranslationClient:
    return TranslationClient(
        [
            GoogleTranslateProvider(timeout_seconds=settings.translation_timeout_seconds),
            MyMemoryProvider(
                timeout_seconds=settings.translation_timeout_seconds,
                contact_email=settings.mymemory_contact_email,
            ),
        ],
        timeout_seconds=settings.translation_timeout_seconds,
    )


def _build_synthesis_client():
    from call_bridge.voice import CommandAudioPlayer, SpeechSynthesisClient, VoiceBackend
    from call_bridge.voice.tts_elevenlabs import ElevenLabsSynthesizer
    from call_bridge.voice.tts_pyttsx3 import Pyttsx3AudioOutputDevice, Pyttsx3SpeechSynthesizer

    fallback = VoiceBackend(
        name="pyttsx3",
        synthesizer=Pyttsx3SpeechSynthesizer(),
        output_device=Pyttsx3AudioOutputDevice(),
    )
    primary = None
    if settings.elevenlabs_api_key:
        primary = VoiceBackend(
            name="elevenlabs",
            synthesizer=ElevenLabsSynthesizer(settings.elevenlabs_api_key, model=settings.elevenlabs_model),
            output_device=CommandAudioPlayer(settings.audio_player_command),
        )
    return SpeechSynthesisClient(primary=primary, fallback=fallback)


def _build_capture(typed: bool):
    if typed:
        return KeyboardSpeechCapture(prompt="[{language}] > ")

    from call_bridge.voice.stt_speechrecognition import SpeechRecognitionCapture

    return SpeechRecognitionCapture(
        phrase_time_limit=settings.phrase_time_limit,
        timeout=settings.listen_timeout,
    )


def _describe(utterance: Utterance) -> dict:
    described = {
        "speaker": utterance.speaker.value.upper(),
        "heard": utterance.source_text,
        "translated": utterance.translated_text,
        "direction": f"{utterance.source_language} -> {utterance.target_language}",
        "capture_confidence": round(utterance.confidence, 2),
        "translation_confidence": utterance.translation_confidence,
        "translation_tier": utterance.translation_tier,
    }
    if utterance.quality_flags:
        described["clarification"] = clarification_message(utterance.quality_flags)
    return described


@app.command()
def start() -> None:
    """Show runtime configuration."""
    print(
        {
            "app_name": settings.app_name,
            "language_a": settings.language_a,
            "language_b": settings.language_b,
            "turn_policy": settings.turn_policy,
            "continuous_capture": settings.continuous_capture,
            "elevenlabs_configured": bool(settings.elevenlabs_api_key),
            "history_path": settings.history_path,
            "daily_session_limit": settings.daily_session_limit,
        }
    )


@app.command()
def languages() -> None:
    """List supported languages with their recognition locale and default voice."""
    print(
        [
            {
                "code": lang.code,
                "name": lang.name,
                "speech_locale": lang.speech_locale,
                "voice_id": LANGUAGE_VOICES.get(lang.code),
            }
            for lang in SUPPORTED_LANGUAGES.values()
        ]
    )


@app.command()
def translate(
    text: str,
    source: str = typer.Option(None, help="Source language tag (defaults to language A)"),
    target: str = typer.Option(None, help="Target language tag (defaults to language B)"),
) -> None:
    """Translate one piece of text through the fallback chain."""
    if not text.strip():
        raise typer.BadParameter("Provide some text to translate")

    client = _build_translation_client()
    result = asyncio.run(
        client.translate(text, normalize_language(source or settings.language_a), normalize_language(target or settings.language_b))
    )
    print(
        {
            "translated": result.translated_text,
            "confidence": result.confidence,
            "tier": result.tier,
            "source": result.source_name,
        }
    )


@app.command()
def speak(
    text: str,
    language: str = typer.Option(None, help="Language tag of the text (defaults to language B)"),
) -> None:
    """Synthesize and play text, falling back to the local voice when needed."""
    try:
        synthesizer = _build_synthesis_client()
    except RuntimeError as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)

    async def _run() -> dict:
        handle = synthesizer.speak(text, normalize_language(language or settings.language_b))
        status = await handle.wait()
        return {"status": status.value, "backend": handle.backend_name, "degraded": handle.degraded, "error": handle.error}

    print(asyncio.run(_run()))


@app.command()
def bridge(
    typed: bool = typer.Option(False, help="Type utterances instead of speaking them"),
    auto_advance: bool = typer.Option(None, help="Alternate speakers automatically after each turn"),
    language_a: str = typer.Option(None, help="Language of party A"),
    language_b: str = typer.Option(None, help="Language of party B"),
) -> None:
    """Run an interactive turn-based translation bridge."""
    try:
        capture = _build_capture(typed)
        synthesizer = _build_synthesis_client()
    except RuntimeError as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)

    use_auto = auto_advance if auto_advance is not None else settings.turn_policy == TurnPolicy.AUTO_ADVANCE.value
    session = Session(language_a or settings.language_a, language_b or settings.language_b)
    try:
        session.validate()
    except SessionConfigError as exc:
        raise typer.BadParameter(str(exc))

    relay = TurnRelay(
        session,
        capture=capture,
        translator=_build_translation_client(),
        synthesizer=synthesizer,
        history_sink=JsonlHistorySink(settings.history_path) if settings.history_path else None,
        quality_estimator=SlangQualityEstimator(),
        usage_limiter=DailyUsageLimiter(settings.daily_session_limit) if settings.daily_session_limit is not None else None,
        turn_policy=TurnPolicy.AUTO_ADVANCE if use_auto else TurnPolicy.MANUAL,
        continuous=settings.continuous_capture,
        infer_voice_gender=settings.infer_voice_gender,
        playback_timeout_seconds=settings.playback_timeout_seconds,
    )

    def _interim(event: TranscriptEvent) -> None:
        print({"interim": event.text})

    last_speaker: Party | None = None

    async def _turn(speaker: Party) -> Utterance | None:
        nonlocal last_speaker
        # The same phrase from the other party is a new utterance, not a duplicate.
        if last_speaker is not None and last_speaker is not speaker:
            relay.reset_transcript()
        last_speaker = speaker
        return await relay.run_turn(speaker, on_interim=_interim)

    async def _run() -> None:
        try:
            while use_auto:
                try:
                    utterance = await _turn(session.current_turn)
                except CaptureError as exc:
                    print({"capture_error": exc.kind.value, "message": str(exc)})
                    if exc.kind is CaptureErrorKind.NO_SPEECH:
                        continue
                    return
                if utterance is None:
                    return
                print(_describe(utterance))

            while True:
                choice = (await asyncio.to_thread(input, "Who speaks next? [a/b, q to quit] ")).strip().lower()
                if choice in ("q", "quit", "exit"):
                    return
                if choice not in ("a", "b"):
                    continue
                try:
                    utterance = await _turn(Party(choice))
                except CaptureError as exc:
                    print({"capture_error": exc.kind.value, "message": str(exc), "hint": "Choose the speaker to retry."})
                    continue
                if utterance is not None:
                    print(_describe(utterance))
        finally:
            relay.close()

    print(
        {
            "bridge": "started",
            "session_id": session.id,
            "language_a": session.language_a,
            "language_b": session.language_b,
            "turn_policy": relay.turn_policy.value,
        }
    )
    try:
        asyncio.run(_run())
    except (UsageLimitExceeded, RelayProtocolError) as exc:
        print({"error": str(exc)})
        raise typer.Exit(code=1)
    except (KeyboardInterrupt, EOFError):
        pass
    print({"bridge": "stopped", "utterances": len(session.history)})


@app.command()
def history(
    limit: int = typer.Option(20, help="How many utterances to show"),
    session_id: str = typer.Option(None, help="Only show one session"),
    path: str = typer.Option(None, help="JSONL history file (defaults to CALL_BRIDGE_HISTORY_PATH)"),
) -> None:
    """Show recently recorded utterances."""
    history_path = path or settings.history_path
    if not history_path:
        raise typer.BadParameter("Provide --path or set CALL_BRIDGE_HISTORY_PATH")

    sink = JsonlHistorySink(history_path)
    print([_describe(utterance) for utterance in sink.list_recent(limit=limit, session_id=session_id)])


if __name__ == "__main__":
    app()
