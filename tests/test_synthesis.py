from __future__ import annotations

import asyncio
import random
import threading

import httpx
import pytest

from call_bridge.languages import GENDER_VOICES, LANGUAGE_VOICES, VoiceGender
from call_bridge.voice import CommandAudioPlayer, PlaybackStatus, SpeechSynthesisClient, VoiceBackend, VoiceSelector
from call_bridge.voice.tts_elevenlabs import ElevenLabsSynthesizer, SynthesisError


class StubSynthesizer:
    def __init__(self, *, audio: bytes = b"audio", fail: bool = False) -> None:
        self.audio = audio
        self.fail = fail
        self.calls: list[tuple[str, str, str | None]] = []

    def synthesize(self, text: str, language: str, voice_id: str | None = None) -> bytes:
        self.calls.append((text, language, voice_id))
        if self.fail:
            raise RuntimeError("provider down")
        return self.audio


class StubDevice:
    def __init__(self, *, block: bool = False, fail: bool = False) -> None:
        self.played: list[bytes] = []
        self.stops = 0
        self.fail = fail
        self._release = threading.Event()
        if not block:
            self._release.set()

    def play(self, audio_bytes: bytes) -> None:
        self.played.append(audio_bytes)
        if self.fail:
            raise OSError("no audio device")
        self._release.wait(timeout=2)

    def stop(self) -> None:
        self.stops += 1
        self._release.set()


def _backend(name: str, synthesizer: StubSynthesizer | None = None, device: StubDevice | None = None) -> VoiceBackend:
    return VoiceBackend(name=name, synthesizer=synthesizer or StubSynthesizer(), output_device=device or StubDevice())


async def _until_playing(handle) -> None:
    for _ in range(200):
        if handle.status is PlaybackStatus.PLAYING:
            return
        await asyncio.sleep(0.005)


def test_primary_backend_speaks_with_language_voice() -> None:
    primary_synth = StubSynthesizer(audio=b"mp3")
    primary_device = StubDevice()
    client = SpeechSynthesisClient(primary=_backend("elevenlabs", primary_synth, primary_device), fallback=_backend("local"))
    completed = []

    async def _run():
        handle = client.speak("  hola   amigo ", "es")
        handle.on_complete(completed.append)
        return handle, await handle.wait()

    handle, status = asyncio.run(_run())

    assert status is PlaybackStatus.COMPLETED
    assert handle.backend_name == "elevenlabs"
    assert handle.degraded is False
    assert primary_synth.calls == [("hola amigo", "es", LANGUAGE_VOICES["es"])]
    assert primary_device.played == [b"mp3"]
    assert completed == [handle]
    assert client.active is None


def test_primary_failure_falls_back_and_marks_degraded() -> None:
    fallback_synth = StubSynthesizer(audio=b"local")
    client = SpeechSynthesisClient(
        primary=_backend("elevenlabs", StubSynthesizer(fail=True)),
        fallback=_backend("pyttsx3", fallback_synth),
    )

    async def _run():
        handle = client.speak("hola", "es")
        await handle.wait()
        return handle

    handle = asyncio.run(_run())

    assert handle.status is PlaybackStatus.COMPLETED
    assert handle.backend_name == "pyttsx3"
    assert handle.degraded is True
    assert fallback_synth.calls == [("hola", "es", None)]


def test_empty_primary_audio_falls_back() -> None:
    client = SpeechSynthesisClient(
        primary=_backend("elevenlabs", StubSynthesizer(audio=b"")),
        fallback=_backend("pyttsx3"),
    )

    async def _run():
        handle = client.speak("hola", "es")
        await handle.wait()
        return handle

    handle = asyncio.run(_run())

    assert handle.backend_name == "pyttsx3"
    assert handle.degraded is True


def test_fallback_only_client_is_not_degraded() -> None:
    client = SpeechSynthesisClient(fallback=_backend("pyttsx3"))

    async def _run():
        handle = client.speak("hola", "es")
        await handle.wait()
        return handle

    handle = asyncio.run(_run())

    assert handle.status is PlaybackStatus.COMPLETED
    assert handle.degraded is False


def test_playback_failure_reports_error() -> None:
    client = SpeechSynthesisClient(fallback=_backend("pyttsx3", device=StubDevice(fail=True)))
    failures = []

    async def _run():
        handle = client.speak("hola", "es")
        handle.on_error(failures.append)
        await handle.wait()
        return handle

    handle = asyncio.run(_run())

    assert handle.status is PlaybackStatus.FAILED
    assert "no audio device" in (handle.error or "")
    assert failures == [handle]


def test_new_speak_stops_previous_stream() -> None:
    device = StubDevice(block=True)
    client = SpeechSynthesisClient(fallback=_backend("pyttsx3", device=device))

    async def _run():
        first = client.speak("first", "en")
        await _until_playing(first)
        second = client.speak("second", "en")
        await second.wait()
        return first, second

    first, second = asyncio.run(_run())

    assert first.status is PlaybackStatus.STOPPED
    assert second.status is PlaybackStatus.COMPLETED
    assert device.stops >= 1
    assert device.played[-1] == b"audio"


def test_stop_is_idempotent() -> None:
    device = StubDevice(block=True)
    client = SpeechSynthesisClient(fallback=_backend("pyttsx3", device=device))

    async def _run():
        client.stop()
        handle = client.speak("hola", "es")
        await _until_playing(handle)
        client.stop()
        client.stop()
        handle.stop()
        return handle, await handle.wait()

    handle, status = asyncio.run(_run())

    assert status is PlaybackStatus.STOPPED
    assert device.stops == 1
    assert client.active is None


def test_blank_text_completes_without_audio() -> None:
    fallback_synth = StubSynthesizer()
    client = SpeechSynthesisClient(fallback=_backend("pyttsx3", fallback_synth))

    async def _run():
        return await client.speak("   ", "en").wait()

    assert asyncio.run(_run()) is PlaybackStatus.COMPLETED
    assert fallback_synth.calls == []


def test_voice_selector_prefers_explicit_then_gender_then_language() -> None:
    selector = VoiceSelector(rng=random.Random(7))

    assert selector.select("es", "custom-voice") == "custom-voice"
    assert selector.select("fr", VoiceGender.MALE) in GENDER_VOICES[VoiceGender.MALE]
    assert selector.select("pt-br") == LANGUAGE_VOICES["pt-BR"]
    assert selector.select("xx") == selector.select("en")


def test_elevenlabs_posts_text_for_voice() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"ID3audio")

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        audio = ElevenLabsSynthesizer("secret", client=client).synthesize("hola", "es")

    assert audio == b"ID3audio"
    assert seen[0].url.path.endswith(LANGUAGE_VOICES["es"])
    assert seen[0].headers["xi-api-key"] == "secret"


def test_elevenlabs_requires_api_key_and_audio() -> None:
    with pytest.raises(SynthesisError):
        ElevenLabsSynthesizer(None).synthesize("hola", "es")

    def quota(request: httpx.Request) -> httpx.Response:
        return httpx.Response(402)

    with httpx.Client(transport=httpx.MockTransport(quota)) as client:
        with pytest.raises(SynthesisError):
            ElevenLabsSynthesizer("secret", client=client).synthesize("hola", "es")

    def empty(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"")

    with httpx.Client(transport=httpx.MockTransport(empty)) as client:
        with pytest.raises(SynthesisError):
            ElevenLabsSynthesizer("secret", client=client).synthesize("hola", "es")


def test_primary_device_failure_falls_back_to_local_voice() -> None:
    local_device = StubDevice()
    client = SpeechSynthesisClient(
        primary=_backend("elevenlabs", StubSynthesizer(audio=b"mp3"), StubDevice(fail=True)),
        fallback=_backend("pyttsx3", StubSynthesizer(audio=b"local"), local_device),
    )

    async def _run():
        handle = client.speak("hola", "es")
        await handle.wait()
        return handle

    handle = asyncio.run(_run())

    assert handle.status is PlaybackStatus.COMPLETED
    assert handle.backend_name == "pyttsx3"
    assert handle.degraded is True
    assert local_device.played == [b"local"]


def test_primary_and_fallback_device_failures_report_failed() -> None:
    client = SpeechSynthesisClient(
        primary=_backend("elevenlabs", device=StubDevice(fail=True)),
        fallback=_backend("pyttsx3", device=StubDevice(fail=True)),
    )

    async def _run():
        handle = client.speak("hola", "es")
        await handle.wait()
        return handle

    handle = asyncio.run(_run())

    assert handle.status is PlaybackStatus.FAILED
    assert handle.backend_name == "pyttsx3"


class _SpawnRecorder:
    def __init__(self) -> None:
        self.spawned: list[list[str]] = []

    def __call__(self, args, **kwargs):
        self.spawned.append(list(args))
        return _FinishedProcess()


class _FinishedProcess:
    def wait(self) -> int:
        return 0

    def poll(self) -> int:
        return 0


class _GatedPlayer(CommandAudioPlayer):
    """Blocks while writing the temp file until the test releases it."""

    def __init__(self) -> None:
        super().__init__(["player"])
        self.writing = threading.Event()
        self.release = threading.Event()

    def _write_temp(self, audio_bytes: bytes):
        self.writing.set()
        self.release.wait(timeout=2)
        return super()._write_temp(audio_bytes)


def test_player_stopped_while_writing_never_spawns(monkeypatch) -> None:
    recorder = _SpawnRecorder()
    monkeypatch.setattr("call_bridge.voice.output.subprocess.Popen", recorder)
    player = _GatedPlayer()

    worker = threading.Thread(target=player.play, args=(b"mp3",))
    worker.start()
    assert player.writing.wait(timeout=2)
    player.stop()
    player.release.set()
    worker.join(timeout=2)

    assert recorder.spawned == []

    player.release.set()
    player.play(b"mp3")
    assert len(recorder.spawned) == 1


def test_stop_before_player_starts_keeps_stream_silent(monkeypatch) -> None:
    recorder = _SpawnRecorder()
    monkeypatch.setattr("call_bridge.voice.output.subprocess.Popen", recorder)
    player = _GatedPlayer()
    client = SpeechSynthesisClient(fallback=VoiceBackend(name="ffplay", synthesizer=StubSynthesizer(), output_device=player))

    async def _run():
        first = client.speak("first", "en")
        await _until_playing(first)
        await asyncio.to_thread(player.writing.wait, 2)
        client.stop()
        player.release.set()
        return first, await first.wait()

    first, status = asyncio.run(_run())

    assert status is PlaybackStatus.STOPPED
    assert recorder.spawned == []


def test_new_speak_before_player_starts_plays_only_latest(monkeypatch) -> None:
    recorder = _SpawnRecorder()
    monkeypatch.setattr("call_bridge.voice.output.subprocess.Popen", recorder)
    player = _GatedPlayer()
    client = SpeechSynthesisClient(fallback=VoiceBackend(name="ffplay", synthesizer=StubSynthesizer(), output_device=player))

    async def _run():
        first = client.speak("first", "en")
        await _until_playing(first)
        await asyncio.to_thread(player.writing.wait, 2)
        second = client.speak("second", "en")
        await asyncio.sleep(0.05)
        player.release.set()
        return first, await second.wait()

    first, second_status = asyncio.run(_run())

    assert first.status is PlaybackStatus.STOPPED
    assert second_status is PlaybackStatus.COMPLETED
    assert len(recorder.spawned) == 1
