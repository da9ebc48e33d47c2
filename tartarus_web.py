#!/usr/bin/env python3
"""
TARTARUS Web Interface
FastAPI relay for chat completions and speech, plus the single-page chat UI.
"""
from __future__ import annotations

import asyncio
import json
import sys
import time

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException

from tartarus import (
    FALLBACK_REPLY,
    MODEL,
    PERSONA,
    STT_MODEL,
    TTS_MODEL,
    WEB_HOST,
    WEB_PORT,
    SynthesisError,
    TranscriptionError,
    UpstreamError,
    check_config,
)
from tartarus_gateway import complete, synthesize, transcribe, validate_messages

app = FastAPI(title="TARTARUS")


def _log(msg: str) -> None:
    print(f"[web] {msg}", file=sys.stderr, flush=True)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


# ---------------------------------------------------------------------------
# Chat UI HTML
# ---------------------------------------------------------------------------
_HTML = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>TARTARUS CHAT</title>
<style>
  *, *::before, *::after { box-sizing: border-box; margin: 0; padding: 0; }
  body { background: #0a0000; color: #fcd9a8; font-family: sans-serif; }
  .wrap { max-width: 900px; margin: 32px auto; border: 2px solid #dc2626;
          border-radius: 8px; height: 700px; display: flex; flex-direction: column; }
  header { padding: 16px; background: linear-gradient(90deg, #7f1d1d, #9a3412);
           border-bottom: 2px solid #dc2626; }
  header h1 { letter-spacing: .2em; color: #fca5a5; }
  header p { font-style: italic; font-size: 13px; color: #fcd34d; }
  #messages { flex: 1; overflow-y: auto; padding: 16px; }
  .row { display: flex; flex-direction: column; margin-bottom: 18px; }
  .row.user { align-items: flex-end; }
  .row.assistant { align-items: flex-start; }
  .bubble { max-width: 70%; padding: 12px 16px; border-radius: 8px; white-space: pre-wrap; }
  .user .bubble { background: #1e3a8a; color: #dbeafe; border: 1px solid #60a5fa; }
  .assistant .bubble { background: #7f1d1d; color: #ffedd5; border: 1px solid #ef4444; }
  .meta { font-size: 11px; color: #9ca3af; margin-top: 4px; font-style: italic; }
  .speak { background: none; border: none; color: #f59e0b; cursor: pointer; margin-top: 4px; }
  .typing .bubble { opacity: .7; }
  form { display: flex; gap: 8px; padding: 16px; border-top: 2px solid #dc2626; }
  #msg { flex: 1; padding: 12px; background: #000; color: #fde68a;
         border: 2px solid #b91c1c; border-radius: 8px; }
  button.ctl { padding: 12px 16px; border-radius: 8px; border: 2px solid #dc2626;
               background: #111; color: #f87171; cursor: pointer; }
  button.ctl.recording { background: #dc2626; color: #fff; }
  button:disabled { opacity: .5; cursor: not-allowed; }
</style>
</head>
<body>
<div class="wrap">
  <header>
    <h1>TARTARUS CHAT</h1>
    <p>Speak with Grampy, the tormentor of souls</p>
  </header>
  <div id="messages"></div>
  <form id="chatForm">
    <input id="msg" type="text" placeholder="Speak your sins..." autocomplete="off">
    <button id="recBtn" class="ctl" type="button" title="Record">&#127908;</button>
    <button id="sendBtn" class="ctl" type="submit" title="Send">&#10148;</button>
  </form>
</div>
<script>
const PERSONA = __PERSONA__;
const FALLBACK_REPLY = __FALLBACK__;

// ---- session state (owned by the page, passed to every operation) ----
function newSession() {
  return {
    transcript: [{role: "system", content: PERSONA, id: "system-prompt"}],
    pendingRequest: false,
    recording: false,
    recorder: null,
    chunks: [],
  };
}

function freshId(prefix) {
  const rand = (crypto.randomUUID ? crypto.randomUUID() : String(Math.random()).slice(2));
  return prefix + "-" + rand;
}

function appendTurn(session, role, content, prefix) {
  const turn = Object.freeze({role, content, timestamp: Date.now(), id: freshId(prefix)});
  session.transcript.push(turn);
  return turn;
}

// ---- view ----
const msgs    = document.getElementById("messages");
const input   = document.getElementById("msg");
const sendBtn = document.getElementById("sendBtn");
const recBtn  = document.getElementById("recBtn");
const form    = document.getElementById("chatForm");

function render(session) {
  msgs.innerHTML = "";
  for (const turn of session.transcript.slice(1)) {
    const row = document.createElement("div");
    row.className = "row " + turn.role;
    const bub = document.createElement("div");
    bub.className = "bubble";
    bub.textContent = turn.content;
    row.appendChild(bub);
    if (turn.role === "assistant") {
      const btn = document.createElement("button");
      btn.className = "speak";
      btn.title = "Text to speech";
      btn.textContent = "\u{1F50A}";
      btn.addEventListener("click", () => synthesize(session, turn.content));
      row.appendChild(btn);
    }
    if (turn.timestamp) {
      const meta = document.createElement("span");
      meta.className = "meta";
      meta.textContent = new Date(turn.timestamp).toLocaleTimeString();
      row.appendChild(meta);
    }
    msgs.appendChild(row);
  }
  if (session.pendingRequest) {
    const row = document.createElement("div");
    row.className = "row assistant typing";
    row.innerHTML = '<div class="bubble">Grampy is muttering...</div>';
    msgs.appendChild(row);
  }
  input.disabled = session.pendingRequest;
  recBtn.disabled = session.pendingRequest;
  recBtn.classList.toggle("recording", session.recording);
  sendBtn.disabled = session.pendingRequest || !input.value.trim();
  msgs.scrollTop = msgs.scrollHeight;
}

// ---- operations ----
async function submitText(session, text) {
  text = (text || "").trim();
  if (!text || session.pendingRequest) return;

  appendTurn(session, "user", text, "user");
  input.value = "";
  session.pendingRequest = true;
  render(session);

  try {
    const resp = await fetch("/chat", {
      method: "POST",
      headers: {"Content-Type": "application/json"},
      body: JSON.stringify({
        messages: session.transcript.map(t => ({role: t.role, content: t.content})),
      }),
    });
    if (!resp.ok) throw new Error("Failed to get response");
    const reply = await resp.json();
    appendTurn(session, "assistant", reply.content, "assistant");
  } catch (err) {
    console.error("Error getting completion:", err);
    appendTurn(session, "assistant", FALLBACK_REPLY, "error");
  } finally {
    session.pendingRequest = false;
    render(session);
  }
}

async function beginCapture(session) {
  if (session.recording || session.pendingRequest) return;
  try {
    const stream = await navigator.mediaDevices.getUserMedia({audio: true});
    session.chunks = [];
    session.recorder = new MediaRecorder(stream);
    session.recorder.ondataavailable = e => session.chunks.push(e.data);
    session.recorder.onstop = async () => {
      stream.getTracks().forEach(t => t.stop());
      const blob = new Blob(session.chunks, {type: "audio/webm"});
      await transcribe(session, blob);
    };
    session.recorder.start();
    session.recording = true;
  } catch (err) {
    console.error("Error accessing microphone:", err);
  }
  render(session);
}

function endCapture(session) {
  if (!session.recording || !session.recorder) return;
  session.recorder.stop();
  session.recording = false;
  render(session);
}

async function transcribe(session, blob) {
  session.pendingRequest = true;
  render(session);
  try {
    const body = new FormData();
    body.append("file", new File([blob], "audio.webm", {type: "audio/webm"}));
    const resp = await fetch("/speech", {method: "POST", body});
    const data = await resp.json().catch(() => ({}));
    if (!resp.ok) throw new Error(data.error || "Failed to transcribe audio");
    input.value = data.text;
  } catch (err) {
    console.error("Error transcribing audio:", err);
    alert(err.message || "Failed to transcribe audio");
  } finally {
    session.pendingRequest = false;
    render(session);
  }
}

async function synthesize(session, text) {
  try {
    const resp = await fetch("/speech", {
      method: "POST",
      headers: {"Content-Type": "application/json"},
      body: JSON.stringify({text}),
    });
    if (!resp.ok) {
      const data = await resp.json().catch(() => ({}));
      throw new Error(data.error || "Failed to generate speech: " + resp.status);
    }
    const ctype = resp.headers.get("Content-Type") || "";
    if (!ctype.includes("audio/mpeg")) {
      const data = await resp.json().catch(() => ({}));
      throw new Error(data.error || "Response was not audio format");
    }
    const blob = await resp.blob();
    if (blob.size === 0) throw new Error("Empty audio received from API");
    const audio = new Audio(URL.createObjectURL(blob));
    audio.onerror = e => console.error("Error playing audio:", e);
    audio.play();
  } catch (err) {
    console.error("Error generating speech:", err);
    alert(err.message || "Failed to generate speech");
  }
}

// ---- wiring ----
const session = newSession();
form.addEventListener("submit", e => { e.preventDefault(); submitText(session, input.value); });
input.addEventListener("input", () => render(session));
recBtn.addEventListener("click", () => session.recording ? endCapture(session) : beginCapture(session));
render(session);
</script>
</body>
</html>
"""


def _build_html() -> str:
    return (
        _HTML
        .replace("__PERSONA__", json.dumps(PERSONA))
        .replace("__FALLBACK__", json.dumps(FALLBACK_REPLY))
    )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/", response_class=HTMLResponse)
async def index() -> HTMLResponse:
    return HTMLResponse(_build_html())


@app.get("/status")
async def status() -> JSONResponse:
    cfg = check_config()
    return JSONResponse({
        "status": "ok",
        "model": MODEL,
        "speech": {"stt": STT_MODEL, "tts": TTS_MODEL},
        "configured": cfg["configured"],
        "timestamp": time.time(),
    })


@app.post("/chat")
async def chat_endpoint(request: Request) -> JSONResponse:
    """Relay the full transcript and return one assistant message."""
    try:
        body = await request.json()
    except ValueError:
        return _error("invalid JSON", 400)
    if not isinstance(body, dict):
        return _error("invalid JSON", 400)

    try:
        messages = validate_messages(body.get("messages"))
    except ValueError as e:
        return _error(str(e), 400)

    loop = asyncio.get_running_loop()
    try:
        reply = await loop.run_in_executor(None, lambda: complete(messages))
    except UpstreamError:
        return _error("Failed to process your request", 500)
    return JSONResponse(reply)


@app.post("/speech")
async def speech_endpoint(request: Request) -> Response:
    """One endpoint, two operations, chosen by the declared Content-Type."""
    ctype = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if ctype == "multipart/form-data":
        return await _transcription(request)
    if ctype == "application/json":
        return await _synthesis(request)
    return _error(f"Unsupported content type: {ctype or 'none'}", 415)


async def _transcription(request: Request) -> JSONResponse:
    try:
        form = await request.form()
    except (HTTPException, MultiPartException) as e:
        _log(f"bad multipart body: {e}")
        return _error("Malformed multipart body", 400)
    upload = form.get("file")
    if not isinstance(upload, UploadFile):
        return _error("No audio file provided", 400)

    data = await upload.read()
    if not data:
        return _error("Audio file is empty", 400)

    filename = upload.filename or "audio.webm"
    content_type = upload.content_type or "audio/webm"
    loop = asyncio.get_running_loop()
    try:
        text = await loop.run_in_executor(
            None, lambda: transcribe(data, filename, content_type)
        )
    except TranscriptionError as e:
        return _error(str(e), 500)

    if not text:
        _log(f"no speech detected in {filename} ({len(data)} bytes)")
        return _error("No speech detected", 422)
    return JSONResponse({"text": text})


async def _synthesis(request: Request) -> Response:
    try:
        body = await request.json()
    except ValueError:
        return _error("invalid JSON", 400)
    text = body.get("text") if isinstance(body, dict) else None
    if not isinstance(text, str) or not text.strip():
        return _error("No text provided", 400)

    loop = asyncio.get_running_loop()
    try:
        audio = await loop.run_in_executor(None, lambda: synthesize(text))
    except SynthesisError as e:
        return _error(str(e), 400 if e.cause == "input" else 502)
    return Response(content=audio, media_type="audio/mpeg")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main() -> None:
    import uvicorn
    uvicorn.run(app, host=WEB_HOST, port=WEB_PORT, log_level="info")


if __name__ == "__main__":
    main()
