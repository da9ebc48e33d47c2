#!/usr/bin/env python3
"""
TARTARUS Gateways — stateless relays to the hosted provider.

  complete(messages)   full transcript → one assistant reply
  transcribe(audio)    audio bytes     → text
  synthesize(text)     text            → MP3 bytes

Every provider fault is logged here and re-raised as a GatewayError subclass
carrying a generic message. Raw provider errors never reach the caller.
"""
from __future__ import annotations

import re
import sys
from typing import Dict, List

import tartarus
from tartarus import (
    MODEL,
    ROLES,
    STT_MODEL,
    TTS_MAX_CHARS,
    TTS_MODEL,
    TTS_VOICE,
    SynthesisError,
    TranscriptionError,
    UpstreamError,
)


def _log(msg: str) -> None:
    print(f"[gateway] {msg}", file=sys.stderr, flush=True)


# ---------------------------------------------------------------------------
# Transcript validation
# ---------------------------------------------------------------------------
def validate_messages(messages: object) -> List[Dict[str, str]]:
    """Check a transcript and return it as plain {role, content} dicts.

    Raises ValueError describing the first problem found.
    """
    if not isinstance(messages, list) or not messages:
        raise ValueError("messages must be a non-empty list")
    out: List[Dict[str, str]] = []
    for i, msg in enumerate(messages):
        if not isinstance(msg, dict):
            raise ValueError(f"messages[{i}] must be an object")
        role = msg.get("role")
        content = msg.get("content")
        if role not in ROLES:
            raise ValueError(f"messages[{i}].role must be one of {', '.join(ROLES)}")
        if not isinstance(content, str):
            raise ValueError(f"messages[{i}].content must be a string")
        out.append({"role": role, "content": content})
    if out[0]["role"] != "system":
        raise ValueError("first message must be the system prompt")
    return out


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------
def complete(messages: List[Dict[str, str]]) -> Dict[str, str]:
    """Send the whole transcript and return {"role": "assistant", "content": ...}."""
    try:
        completion = tartarus.get_client().chat.completions.create(
            model=MODEL,
            messages=messages,
            stream=False,
        )
        content = completion.choices[0].message.content
    except Exception as e:
        _log(f"chat completion failed: {e!r}")
        raise UpstreamError("Failed to process your request") from e

    if not isinstance(content, str):
        _log(f"chat completion returned no text content: {content!r}")
        raise UpstreamError("Failed to process your request")
    return {"role": "assistant", "content": content}


# ---------------------------------------------------------------------------
# Speech
# ---------------------------------------------------------------------------
def transcribe(audio: bytes, filename: str = "audio.webm",
               content_type: str = "audio/webm") -> str:
    """Transcribe an uploaded recording. Returns stripped text, possibly empty."""
    if not audio:
        raise TranscriptionError("Audio file is empty")
    try:
        result = tartarus.get_client().audio.transcriptions.create(
            model=STT_MODEL,
            file=(filename, audio, content_type),
        )
    except Exception as e:
        _log(f"transcription failed: {e!r}")
        raise TranscriptionError("Failed to transcribe audio") from e
    return (getattr(result, "text", "") or "").strip()


def clean_for_speech(text: str) -> str:
    """Strip markdown/code/URLs and cap length for the TTS endpoint."""
    text = re.sub(r'```.*?```', '', text, flags=re.DOTALL)
    text = re.sub(r'`[^`]+`', '', text)
    text = re.sub(r'\*{1,2}([^*]+)\*{1,2}', r'\1', text)
    text = re.sub(r'https?://\S+', '', text)
    text = re.sub(r'\s+', ' ', text).strip()
    return text[:TTS_MAX_CHARS]


def synthesize(text: str) -> bytes:
    """Synthesize MP3 audio for text.

    The provider response must declare an audio/* content type and carry a
    non-empty body; either violation is a SynthesisError.
    """
    clean = clean_for_speech(text)
    if not clean:
        raise SynthesisError("No speakable text provided", cause="input")
    try:
        response = tartarus.get_client().audio.speech.create(
            model=TTS_MODEL,
            voice=TTS_VOICE,
            input=clean,
            response_format="mp3",
        )
        audio = response.content
        content_type = response.response.headers.get("content-type", "")
    except Exception as e:
        _log(f"speech synthesis failed: {e!r}")
        raise SynthesisError("Failed to generate speech", cause="upstream") from e

    if not content_type.startswith("audio/"):
        _log(f"speech synthesis returned content-type {content_type!r}")
        raise SynthesisError("Response was not audio format", cause="content_type")
    if not audio:
        _log("speech synthesis returned an empty body")
        raise SynthesisError("Empty audio received from API", cause="empty")
    return audio
