"""
TARTARUS Session Controller — owns the transcript, the pending flag and
the capture lifecycle.

  Idle → submit_text → Pending → Idle           (errors become an assistant turn)
  Idle → begin_capture → Recording → end_capture → Transcribing → Idle

The service is stateless, so every completion call carries the full
transcript, system turn first.
"""
from __future__ import annotations

import asyncio
import sys
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

from tartarus import (
    FALLBACK_REPLY,
    PERSONA,
    SynthesisError,
    TranscriptionError,
    UpstreamError,
)


def _log(msg: str) -> None:
    print(f"[session] {msg}", file=sys.stderr, flush=True)


def _fresh_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


@dataclass(frozen=True)
class Turn:
    role: str
    content: str
    id: str
    timestamp: Optional[float] = None

    def to_message(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class SessionState:
    transcript: list[Turn]
    pending_request: bool = False
    recording: bool = False
    input_text: str = ""

    @classmethod
    def new(cls, persona: str = PERSONA) -> "SessionState":
        return cls(transcript=[Turn(role="system", content=persona, id="system-prompt")])

    @property
    def system_turn(self) -> Turn:
        return self.transcript[0]

    def messages(self) -> list[dict]:
        return [t.to_message() for t in self.transcript]


class Recorder(Protocol):
    def start(self) -> None: ...
    def stop(self) -> bytes: ...


class GatewayClientLike(Protocol):
    async def complete(self, messages: list[dict]) -> dict: ...
    async def transcribe(self, audio: bytes, filename: str = ..., content_type: str = ...) -> str: ...
    async def synthesize(self, text: str) -> bytes: ...


@dataclass
class SessionController:
    client: GatewayClientLike
    state: SessionState = field(default_factory=SessionState.new)
    recorder: Optional[Recorder] = None
    player: Optional[Callable[[bytes], None]] = None
    notify: Callable[[str], None] = lambda msg: None

    def _append(self, role: str, content: str, prefix: str) -> Turn:
        turn = Turn(role=role, content=content, id=_fresh_id(prefix), timestamp=time.time())
        self.state.transcript.append(turn)
        return turn

    def reset(self) -> None:
        """Start a new conversation with the same persona."""
        self.state = SessionState.new(self.state.system_turn.content)

    # ── Chat ─────────────────────────────────────────────────────────────────
    async def submit_text(self, text: str) -> Optional[Turn]:
        """Append a user turn, fetch the reply, return the assistant turn.

        Blank input, or a call while another request is pending, is rejected
        with no change to the state and returns None.
        """
        text = (text or "").strip()
        if not text:
            return None
        if self.state.pending_request:
            _log("submit rejected: a request is already pending")
            return None

        self._append("user", text, "user")
        self.state.input_text = ""
        self.state.pending_request = True
        try:
            reply = await self.client.complete(self.state.messages())
            return self._append("assistant", reply["content"], "assistant")
        except UpstreamError as e:
            _log(f"completion failed: {e}")
            return self._append("assistant", FALLBACK_REPLY, "error")
        finally:
            self.state.pending_request = False

    # ── Capture ──────────────────────────────────────────────────────────────
    async def begin_capture(self) -> bool:
        if self.state.recording or self.state.pending_request or self.recorder is None:
            return False
        try:
            await asyncio.to_thread(self.recorder.start)
        except Exception as e:
            _log(f"error accessing microphone: {e}")
            return False
        self.state.recording = True
        return True

    async def end_capture(self) -> Optional[str]:
        """Stop recording and transcribe into input_text (not submitted)."""
        if not self.state.recording or self.recorder is None:
            return None
        self.state.recording = False
        self.state.pending_request = True
        try:
            audio = await asyncio.to_thread(self.recorder.stop)
            text = await self.client.transcribe(audio, "audio.wav", "audio/wav")
        except (TranscriptionError, OSError, RuntimeError) as e:
            _log(f"error transcribing audio: {e}")
            self.notify(str(e) or "Failed to transcribe audio")
            return None
        finally:
            self.state.pending_request = False
        self.state.input_text = text
        return text

    # ── Speech ───────────────────────────────────────────────────────────────
    async def synthesize(self, text: str) -> bool:
        """Speak text once. Independent of the transcript."""
        try:
            audio = await self.client.synthesize(text)
        except SynthesisError as e:
            _log(f"error generating speech ({e.cause}): {e}")
            self.notify(str(e) or "Failed to generate speech")
            return False
        if self.player is not None:
            try:
                await asyncio.to_thread(self.player, audio)
            except Exception as e:
                _log(f"error playing audio: {e}")
        return True
