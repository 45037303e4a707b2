"""Playback handles and audio output devices."""

from __future__ import annotations

import asyncio
import shlex
import subprocess
import tempfile
import threading
from enum import Enum
from pathlib import Path
from typing import Callable


class PlaybackStatus(str, Enum):
    """Lifecycle states of one synthesized audio stream."""

    PENDING = "pending"
    PLAYING = "playing"
    COMPLETED = "completed"
    STOPPED = "stopped"
    FAILED = "failed"


_TERMINAL = {PlaybackStatus.COMPLETED, PlaybackStatus.STOPPED, PlaybackStatus.FAILED}


class PlaybackHandle:
    """Tracks one audio stream from synthesis through playback."""

    def __init__(self, *, text: str, language: str, voice_id: str | None) -> None:
        self.text = text
        self.language = language
        self.voice_id = voice_id
        self.status = PlaybackStatus.PENDING
        self.backend_name: str | None = None
        self.degraded = False
        self.error: str | None = None
        self._task: asyncio.Task[None] | None = None
        self._stop_device: Callable[[], None] | None = None
        self._done = asyncio.Event()
        self._complete_callbacks: list[Callable[[PlaybackHandle], None]] = []
        self._error_callbacks: list[Callable[[PlaybackHandle], None]] = []

    @property
    def done(self) -> bool:
        return self.status in _TERMINAL

    def on_complete(self, callback: Callable[[PlaybackHandle], None]) -> None:
        if self.status is PlaybackStatus.COMPLETED:
            callback(self)
        else:
            self._complete_callbacks.append(callback)

    def on_error(self, callback: Callable[[PlaybackHandle], None]) -> None:
        if self.status is PlaybackStatus.FAILED:
            callback(self)
        else:
            self._error_callbacks.append(callback)

    async def wait(self) -> PlaybackStatus:
        await self._done.wait()
        return self.status

    def stop(self) -> None:
        if self.done:
            return
        if self._stop_device is not None:
            self._stop_device()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._finish(PlaybackStatus.STOPPED)

    def _attach(self, task: asyncio.Task[None]) -> None:
        self._task = task

    def _playing_on(self, backend_name: str, stop_device: Callable[[], None], *, degraded: bool) -> None:
        self.backend_name = backend_name
        self.degraded = degraded
        self._stop_device = stop_device
        self.status = PlaybackStatus.PLAYING

    def _finish(self, status: PlaybackStatus, error: str | None = None) -> None:
        if self.done:
            return
        self.status = status
        self.error = error
        self._done.set()
        callbacks = self._complete_callbacks if status is PlaybackStatus.COMPLETED else []
        if status is PlaybackStatus.FAILED:
            callbacks = self._error_callbacks
        for callback in callbacks:
            callback(self)


class CommandAudioPlayer:
    """Plays encoded audio (e.g. MP3) through an external player command."""

    def __init__(self, command: str | list[str] = "ffplay -nodisp -autoexit -loglevel quiet", *, suffix: str = ".mp3") -> None:
        self._command = shlex.split(command) if isinstance(command, str) else list(command)
        if not self._command:
            raise ValueError("Audio player command must not be empty")
        self._suffix = suffix
        self._process: subprocess.Popen[bytes] | None = None
        self._stop_generation = 0
        self._lock = threading.Lock()

    def play(self, audio_bytes: bytes) -> None:
        if not audio_bytes:
            return

        with self._lock:
            generation = self._stop_generation
        path = self._write_temp(audio_bytes)

        process: subprocess.Popen[bytes] | None = None
        try:
            with self._lock:
                # A ``stop`` issued while the file was being written cancels this play.
                if generation != self._stop_generation:
                    return
                process = subprocess.Popen(
                    [*self._command, str(path)],
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
                self._process = process
            returncode = process.wait()
            # Negative codes mean the player was terminated by ``stop``.
            if returncode > 0:
                raise RuntimeError(f"Audio player exited with code {returncode}")
        finally:
            with self._lock:
                if self._process is process:
                    self._process = None
            path.unlink(missing_ok=True)

    def stop(self) -> None:
        with self._lock:
            self._stop_generation += 1
            process = self._process
        if process is not None and process.poll() is None:
            process.terminate()

    def _write_temp(self, audio_bytes: bytes) -> Path:
        with tempfile.NamedTemporaryFile(suffix=self._suffix, delete=False) as handle:
            handle.write(audio_bytes)
            return Path(handle.name)
