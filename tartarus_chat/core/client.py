"""
TARTARUS Chat Client — talks to the /chat and /speech relay endpoints.
Every failure surfaces as a GatewayError subclass; nothing else escapes.
"""
from __future__ import annotations

import httpx

from tartarus import TARTARUS_URL, SynthesisError, TranscriptionError, UpstreamError


def _error_text(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return ""
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return ""


class GatewayClient:
    def __init__(
        self,
        base_url: str = TARTARUS_URL,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def complete(self, messages: list[dict]) -> dict:
        """POST the transcript, return {"role", "content"}."""
        try:
            resp = await self._http.post("/chat", json={"messages": messages})
        except httpx.HTTPError as e:
            raise UpstreamError("Failed to get response") from e
        if resp.status_code != 200:
            raise UpstreamError("Failed to get response")
        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError("Failed to get response") from e
        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, str):
            raise UpstreamError("Failed to get response")
        return {"role": data.get("role", "assistant"), "content": content}

    async def transcribe(self, audio: bytes, filename: str = "audio.wav",
                         content_type: str = "audio/wav") -> str:
        try:
            resp = await self._http.post(
                "/speech", files={"file": (filename, audio, content_type)}
            )
        except httpx.HTTPError as e:
            raise TranscriptionError("Failed to transcribe audio") from e
        if resp.status_code != 200:
            raise TranscriptionError(_error_text(resp) or "Failed to transcribe audio")
        try:
            text = resp.json().get("text")
        except (ValueError, AttributeError) as e:
            raise TranscriptionError("Failed to transcribe audio") from e
        if not isinstance(text, str) or not text:
            raise TranscriptionError("Failed to transcribe audio")
        return text

    async def synthesize(self, text: str) -> bytes:
        """POST text, return MP3 bytes. Validates content type and size."""
        try:
            resp = await self._http.post("/speech", json={"text": text})
        except httpx.HTTPError as e:
            raise SynthesisError("Failed to generate speech", cause="upstream") from e
        if resp.status_code != 200:
            raise SynthesisError(
                _error_text(resp) or f"Failed to generate speech: {resp.status_code}",
                cause="upstream",
            )
        if "audio/mpeg" not in resp.headers.get("content-type", ""):
            raise SynthesisError(
                _error_text(resp) or "Response was not audio format",
                cause="content_type",
            )
        if not resp.content:
            raise SynthesisError("Empty audio received from API", cause="empty")
        return resp.content
