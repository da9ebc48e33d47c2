import os
from types import SimpleNamespace

import pytest

os.environ.setdefault("OPENAI_API_KEY", "test-key")

import tartarus  # noqa: E402


class FakeCompletions:
    def __init__(self, content="Back in my day...", exc=None):
        self.content = content
        self.exc = exc
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.exc:
            raise self.exc
        message = SimpleNamespace(role="assistant", content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeTranscriptions:
    def __init__(self, text="hello grampy", exc=None):
        self.text = text
        self.exc = exc
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.exc:
            raise self.exc
        return SimpleNamespace(text=self.text)


class FakeSpeech:
    def __init__(self, audio=b"ID3fake-mp3", content_type="audio/mpeg", exc=None):
        self.audio = audio
        self.content_type = content_type
        self.exc = exc
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.exc:
            raise self.exc
        raw = SimpleNamespace(headers={"content-type": self.content_type})
        return SimpleNamespace(content=self.audio, response=raw)


@pytest.fixture
def fake_provider(monkeypatch):
    """Replace the hosted provider client with in-memory fakes."""
    client = SimpleNamespace(
        chat=SimpleNamespace(completions=FakeCompletions()),
        audio=SimpleNamespace(transcriptions=FakeTranscriptions(), speech=FakeSpeech()),
    )
    monkeypatch.setattr(tartarus, "get_client", lambda: client)
    return client
