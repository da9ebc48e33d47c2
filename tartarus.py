#!/usr/bin/env python3
"""
TARTARUS — shared configuration, persona and error types.
Imported by the web server, the gateways and the terminal client.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(os.getenv("TARTARUS_ENV_FILE", ".env")))

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
OPENAI_API_KEY     = os.getenv("OPENAI_API_KEY", "")
OPENAI_TIMEOUT_SEC = float(os.getenv("OPENAI_TIMEOUT_SEC", "60"))

# Fine-tuned persona model. Not caller-supplied.
MODEL = "ft:gpt-4o-mini-2024-07-18:personal:adversarial-grandpa:BXVBIS13"

STT_MODEL = os.getenv("TARTARUS_STT_MODEL", "whisper-1")
TTS_MODEL = os.getenv("TARTARUS_TTS_MODEL", "tts-1")
TTS_VOICE = os.getenv("TARTARUS_TTS_VOICE", "onyx")
TTS_MAX_CHARS = 4096

WEB_HOST     = os.getenv("TARTARUS_WEB_HOST", "0.0.0.0")
WEB_PORT     = int(os.getenv("TARTARUS_WEB_PORT", "3000"))
TARTARUS_URL = os.getenv("TARTARUS_URL", f"http://127.0.0.1:{WEB_PORT}")

PERSONA = (
    "You are an adversarial grandfather, responding with condescension, "
    "skepticism, and mild disappointment at the new generation."
)
FALLBACK_REPLY = "Sorry, I encountered an error. Please try again."

ROLES = ("system", "user", "assistant")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class GatewayError(Exception):
    """A hosted-provider call failed. The message is safe to show a user."""


class UpstreamError(GatewayError):
    """Chat completion failed."""


class TranscriptionError(GatewayError):
    """Audio → text failed."""


class SynthesisError(GatewayError):
    """Text → audio failed.

    cause is "input" when nothing speakable is left after cleaning; otherwise
    "upstream", "content_type" or "empty", which callers report the same way.
    """

    def __init__(self, message: str, cause: str = "upstream") -> None:
        super().__init__(message)
        self.cause = cause


# ---------------------------------------------------------------------------
# Hosted provider
# ---------------------------------------------------------------------------
_client = None


def get_client():
    """Return the shared OpenAI client, created on first use."""
    global _client
    if _client is None:
        from openai import OpenAI
        if not OPENAI_API_KEY:
            print("[tartarus] OPENAI_API_KEY is not set", file=sys.stderr, flush=True)
        _client = OpenAI(api_key=OPENAI_API_KEY or None, timeout=OPENAI_TIMEOUT_SEC)
    return _client


def check_config() -> dict:
    return {
        "model":      MODEL,
        "stt_model":  STT_MODEL,
        "tts_model":  TTS_MODEL,
        "tts_voice":  TTS_VOICE,
        "configured": bool(OPENAI_API_KEY),
    }


if __name__ == "__main__":
    print("TARTARUS Config:")
    for k, v in check_config().items():
        print(f"  {k}: {v}")
