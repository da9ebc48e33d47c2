import asyncio

from tartarus import (
    FALLBACK_REPLY,
    PERSONA,
    SynthesisError,
    TranscriptionError,
    UpstreamError,
)
from tartarus_chat.core.session import SessionController, SessionState, Turn


class StubClient:
    def __init__(self, reply="Why did the chicken...", complete_exc=None,
                 text="speak up", transcribe_exc=None,
                 audio=b"ID3", synth_exc=None):
        self.reply = reply
        self.complete_exc = complete_exc
        self.text = text
        self.transcribe_exc = transcribe_exc
        self.audio = audio
        self.synth_exc = synth_exc
        self.sent: list[list[dict]] = []
        self.uploads: list[bytes] = []
        self.states_seen: list[bool] = []
        self.controller = None

    async def complete(self, messages):
        self.sent.append(messages)
        if self.controller is not None:
            self.states_seen.append(self.controller.state.pending_request)
        if self.complete_exc:
            raise self.complete_exc
        return {"role": "assistant", "content": self.reply}

    async def transcribe(self, audio, filename="audio.wav", content_type="audio/wav"):
        self.uploads.append(audio)
        if self.transcribe_exc:
            raise self.transcribe_exc
        return self.text

    async def synthesize(self, text):
        if self.synth_exc:
            raise self.synth_exc
        return self.audio


class StubRecorder:
    def __init__(self, start_exc=None):
        self.start_exc = start_exc
        self.started = 0
        self.stopped = 0

    def start(self):
        if self.start_exc:
            raise self.start_exc
        self.started += 1

    def stop(self):
        self.stopped += 1
        return b"RIFFwav"


def _controller(client=None, **kwargs):
    client = client or StubClient()
    controller = SessionController(client=client, **kwargs)
    client.controller = controller
    return controller


def test_new_state_starts_with_system_turn():
    state = SessionState.new()
    assert len(state.transcript) == 1
    assert state.system_turn == Turn(role="system", content=PERSONA, id="system-prompt")
    assert state.pending_request is False
    assert state.recording is False


def test_round_trip_tell_me_a_joke():
    controller = _controller()
    turn = asyncio.run(controller.submit_text("Tell me a joke"))

    transcript = controller.state.transcript
    assert [t.role for t in transcript] == ["system", "user", "assistant"]
    assert [t.content for t in transcript] == [PERSONA, "Tell me a joke", "Why did the chicken..."]
    assert turn is transcript[-1]
    assert controller.state.pending_request is False


def test_every_submit_adds_two_turns_and_sends_full_transcript():
    client = StubClient()
    controller = _controller(client)

    async def _test():
        for i in range(3):
            before = len(controller.state.transcript)
            await controller.submit_text(f"message {i}")
            assert len(controller.state.transcript) == before + 2
            assert controller.state.transcript[0].id == "system-prompt"

    asyncio.run(_test())
    assert [len(m) for m in client.sent] == [2, 4, 6]
    assert all(m[0] == {"role": "system", "content": PERSONA} for m in client.sent)
    assert all(set(msg) == {"role", "content"} for m in client.sent for msg in m)
    assert client.states_seen == [True, True, True]


def test_turn_ids_are_unique():
    controller = _controller()

    async def _test():
        for _ in range(5):
            await controller.submit_text("again")

    asyncio.run(_test())
    ids = [t.id for t in controller.state.transcript]
    assert len(ids) == len(set(ids))
    assert all(t.timestamp is not None for t in controller.state.transcript[1:])


def test_blank_submit_changes_nothing():
    client = StubClient()
    controller = _controller(client)

    for text in ("", "   ", "\n\t"):
        assert asyncio.run(controller.submit_text(text)) is None

    assert len(controller.state.transcript) == 1
    assert controller.state.pending_request is False
    assert client.sent == []


def test_submit_while_pending_is_rejected():
    client = StubClient()
    controller = _controller(client)
    controller.state.pending_request = True

    assert asyncio.run(controller.submit_text("hello?")) is None
    assert len(controller.state.transcript) == 1
    assert client.sent == []


def test_concurrent_submits_only_one_goes_through():
    class SlowClient(StubClient):
        async def complete(self, messages):
            await self.release.wait()
            return await super().complete(messages)

    async def _test():
        client = SlowClient()
        client.release = asyncio.Event()
        controller = _controller(client)
        first = asyncio.create_task(controller.submit_text("first"))
        await asyncio.sleep(0)
        second = await controller.submit_text("second")
        client.release.set()
        return controller, await first, second

    controller, first, second = asyncio.run(_test())
    assert second is None
    assert first.role == "assistant"
    assert [t.content for t in controller.state.transcript[1:]] == ["first", "Why did the chicken..."]


def test_completion_failure_appends_fallback_turn():
    controller = _controller(StubClient(complete_exc=UpstreamError("Failed to get response")))
    turn = asyncio.run(controller.submit_text("hello"))

    assert len(controller.state.transcript) == 3
    assert turn.role == "assistant"
    assert turn.content == FALLBACK_REPLY
    assert turn.id.startswith("error-")
    assert controller.state.pending_request is False


def test_submit_clears_pending_input():
    controller = _controller()
    controller.state.input_text = "hello"
    asyncio.run(controller.submit_text("hello"))
    assert controller.state.input_text == ""


def test_capture_fills_input_without_submitting():
    client = StubClient(text="get off my lawn")
    recorder = StubRecorder()
    controller = _controller(client, recorder=recorder)

    async def _test():
        assert await controller.begin_capture() is True
        assert controller.state.recording is True
        return await controller.end_capture()

    text = asyncio.run(_test())
    assert text == "get off my lawn"
    assert controller.state.input_text == "get off my lawn"
    assert controller.state.recording is False
    assert controller.state.pending_request is False
    assert len(controller.state.transcript) == 1
    assert client.uploads == [b"RIFFwav"]
    assert recorder.started == recorder.stopped == 1


def test_begin_capture_twice_is_noop():
    recorder = StubRecorder()
    controller = _controller(recorder=recorder)

    async def _test():
        await controller.begin_capture()
        return await controller.begin_capture()

    assert asyncio.run(_test()) is False
    assert recorder.started == 1


def test_begin_capture_device_failure_stays_idle():
    controller = _controller(recorder=StubRecorder(start_exc=OSError("no mic")))
    assert asyncio.run(controller.begin_capture()) is False
    assert controller.state.recording is False


def test_end_capture_when_not_recording():
    controller = _controller(recorder=StubRecorder())
    assert asyncio.run(controller.end_capture()) is None


def test_transcription_failure_alerts_then_resets():
    alerts = []
    controller = _controller(
        StubClient(transcribe_exc=TranscriptionError("No speech detected")),
        recorder=StubRecorder(),
    )
    controller.notify = lambda msg: alerts.append((msg, controller.state.pending_request))
    controller.state.input_text = "unchanged"

    async def _test():
        await controller.begin_capture()
        return await controller.end_capture()

    assert asyncio.run(_test()) is None
    assert alerts == [("No speech detected", True)]
    assert controller.state.pending_request is False
    assert controller.state.input_text == "unchanged"


def test_synthesize_plays_once():
    played = []
    controller = _controller(player=played.append)

    assert asyncio.run(controller.synthesize("hello")) is True
    assert played == [b"ID3"]
    assert len(controller.state.transcript) == 1


def test_synthesize_failure_notifies_and_skips_playback():
    played, alerts = [], []
    controller = _controller(
        StubClient(synth_exc=SynthesisError("Response was not audio format", cause="content_type")),
        player=played.append,
        notify=alerts.append,
    )

    assert asyncio.run(controller.synthesize("hello")) is False
    assert played == []
    assert alerts == ["Response was not audio format"]


def test_reset_keeps_persona():
    controller = _controller()
    asyncio.run(controller.submit_text("hi"))
    controller.reset()
    assert len(controller.state.transcript) == 1
    assert controller.state.system_turn.content == PERSONA
