#!/usr/bin/env python3
"""
TARTARUS Audio — microphone capture and one-shot playback for the terminal client.

  Recorder.start()  open the mic, buffer PCM frames on a background thread
  Recorder.stop()   stop the reader thread (it releases the device), return WAV bytes
  play_mp3(data)    pipe MP3 bytes through an external player (mpg123 by default)

Dependencies:
  pip install pyaudio
  sudo apt install portaudio19-dev mpg123
"""
from __future__ import annotations

import io
import os
import shlex
import subprocess
import sys
import threading
import wave

# ── Config ────────────────────────────────────────────────────────────────────
SAMPLE_RATE = 16000   # 16 kHz mono for Whisper
CHANNELS    = 1
SAMPLE_WIDTH = 2      # 16-bit PCM
CHUNK       = 1024
PLAYER_CMD  = shlex.split(os.getenv("TARTARUS_PLAYER", "mpg123 -q -"))
PLAY_TIMEOUT_SEC = int(os.getenv("TARTARUS_PLAY_TIMEOUT_SEC", "120"))
STOP_TIMEOUT_SEC = 2.0  # wait for the mic reader on stop()


def encode_wav(frames: list[bytes], rate: int = SAMPLE_RATE,
               channels: int = CHANNELS, sample_width: int = SAMPLE_WIDTH) -> bytes:
    """Wrap raw PCM frames in a WAV container."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(rate)
        wf.writeframes(b"".join(frames))
    return buf.getvalue()


class Recorder:
    """
    Push-to-talk microphone capture.
    start() returns immediately; frames are read on a daemon thread until stop().
    The device is released by that thread once its last read returns, so a
    stream is never closed under a live reader.
    """

    def __init__(self, rate: int = SAMPLE_RATE, chunk: int = CHUNK,
                 stop_timeout: float = STOP_TIMEOUT_SEC) -> None:
        self.rate = rate
        self.chunk = chunk
        self.stop_timeout = stop_timeout
        self._frames: list[bytes] = []
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_recording(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_recording:
            return
        try:
            import pyaudio
        except ImportError as e:
            raise RuntimeError(f"Missing dependency: {e}. Run: pip install pyaudio") from e

        pa = pyaudio.PyAudio()
        try:
            stream = pa.open(
                rate=self.rate,
                channels=CHANNELS,
                format=pyaudio.paInt16,
                input=True,
                frames_per_buffer=self.chunk,
            )
        except Exception:
            pa.terminate()
            raise

        self._frames = []
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._worker,
            args=(pa, stream, self._frames, self._stop),
            daemon=True,
            name="tartarus-mic",
        )
        self._thread.start()

    def _worker(self, pa, stream, frames: list[bytes], stop: threading.Event) -> None:
        try:
            while not stop.is_set():
                try:
                    frames.append(stream.read(self.chunk, exception_on_overflow=False))
                except OSError as e:
                    print(f"[audio] mic read error: {e}", file=sys.stderr, flush=True)
                    break
        finally:
            try:
                stream.stop_stream()
                stream.close()
            finally:
                pa.terminate()

    def stop(self) -> bytes:
        """Finalize the buffer and return WAV bytes.

        Waits up to stop_timeout for the reader to exit. A reader still
        blocked in read() keeps the device until that read returns.
        """
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.join(timeout=self.stop_timeout)
            if thread.is_alive():
                print(f"[audio] mic reader still busy after {self.stop_timeout}s; "
                      "device will be released when it returns",
                      file=sys.stderr, flush=True)
        frames, self._frames = list(self._frames), []
        return encode_wav(frames, rate=self.rate)


def play_mp3(data: bytes) -> None:
    """Play MP3 bytes once. Blocks until the player exits."""
    subprocess.run(
        PLAYER_CMD,
        input=data,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        timeout=PLAY_TIMEOUT_SEC,
        check=True,
    )
