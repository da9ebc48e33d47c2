#!/usr/bin/env python3
"""
TARTARUS Chat — terminal client for the TARTARUS relay.
Usage: tartarus-chat [--url URL] [--no-voice] [-c MESSAGE]
"""
from __future__ import annotations
import argparse
import asyncio
from pathlib import Path

from tartarus import TARTARUS_URL
from tartarus_chat.core.client import GatewayClient
from tartarus_chat.core.session import SessionController, Turn
from tartarus_chat.ui.renderer import (
    console, print_header, print_turn, print_transcript,
    print_notice, print_error, print_help,
)

try:
    from prompt_toolkit import PromptSession
    from prompt_toolkit.history import FileHistory
    from prompt_toolkit.styles import Style
    HAS_PROMPT_TOOLKIT = True
except ImportError:
    HAS_PROMPT_TOOLKIT = False


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        prog="tartarus-chat",
        description="TARTARUS Chat — talk to Grampy from the terminal"
    )
    p.add_argument("--url", default=TARTARUS_URL,
                   help=f"Relay base URL (default: {TARTARUS_URL})")
    p.add_argument("--no-voice", action="store_true",
                   help="Disable microphone capture and playback")
    p.add_argument("-c", "--command", type=str, default="",
                   help="Send a single message non-interactively")
    return p.parse_args(argv)


def pick_reply(transcript: list[Turn], arg: str = "") -> Turn | None:
    """Resolve /speak's argument to an assistant turn.

    n counts from 1 over the visible turns (system turn excluded);
    no argument means the latest assistant turn.
    """
    visible = transcript[1:]
    if not arg:
        for turn in reversed(visible):
            if turn.role == "assistant":
                return turn
        return None
    try:
        n = int(arg)
    except ValueError:
        return None
    if not 1 <= n <= len(visible):
        return None
    turn = visible[n - 1]
    return turn if turn.role == "assistant" else None


async def get_input(session=None, prompt_str: str = "❯ ", default: str = "") -> str:
    if session and HAS_PROMPT_TOOLKIT:
        try:
            return await session.prompt_async(prompt_str, default=default)
        except (EOFError, KeyboardInterrupt):
            return "/exit"
    try:
        return await asyncio.to_thread(input, prompt_str)
    except (EOFError, KeyboardInterrupt):
        return "/exit"


def make_controller(client: GatewayClient, voice: bool) -> SessionController:
    recorder = player = None
    if voice:
        from tartarus_audio import Recorder, play_mp3
        recorder, player = Recorder(), play_mp3
    return SessionController(client=client, recorder=recorder, player=player, notify=print_notice)


async def send(controller: SessionController, text: str) -> None:
    with console.status("[tartarus.dim]Grampy is muttering...[/]"):
        reply = await controller.submit_text(text)
    if reply is not None:
        for turn in controller.state.transcript[-2:]:
            print_turn(turn)


async def run(args) -> None:
    async with GatewayClient(base_url=args.url) as client:
        controller = make_controller(client, voice=not args.no_voice)

        if args.command:
            await send(controller, args.command)
            return

        print_header(args.url)

        session = None
        if HAS_PROMPT_TOOLKIT:
            session = PromptSession(
                history=FileHistory(str(Path.home() / ".tartarus_chat_history")),
                style=Style.from_dict({"prompt": "#ff6600 bold"}),
            )

        while True:
            state = controller.state
            prompt_str = "● rec ❯ " if state.recording else "❯ "
            user_input = (await get_input(session, prompt_str, default=state.input_text)).strip()
            state.input_text = ""

            if not user_input:
                continue

            if user_input.startswith("/"):
                parts = user_input.split(maxsplit=1)
                cmd = parts[0].lower()
                arg = parts[1].strip() if len(parts) > 1 else ""

                if cmd in ("/exit", "/quit", "/q"):
                    if state.recording:
                        await controller.end_capture()
                    console.print("[tartarus.flame]Begone.[/]")
                    break

                elif cmd == "/help":
                    print_help()

                elif cmd == "/clear":
                    controller.reset()
                    console.print("[tartarus.dim]Conversation cleared.[/]")

                elif cmd == "/transcript":
                    print_transcript(controller.state.transcript)

                elif cmd == "/record":
                    if controller.recorder is None:
                        print_error("voice is disabled (--no-voice)")
                    elif not state.recording:
                        if await controller.begin_capture():
                            console.print("[tartarus.dim]Recording... /record again to stop.[/]")
                        else:
                            print_error("could not start recording")
                    else:
                        with console.status("[tartarus.dim]Transcribing...[/]"):
                            text = await controller.end_capture()
                        if text:
                            console.print("[tartarus.dim]Transcribed. Edit and press Enter to send.[/]")

                elif cmd == "/speak":
                    turn = pick_reply(controller.state.transcript, arg)
                    if turn is None:
                        print_error("no such reply")
                    else:
                        await controller.synthesize(turn.content)

                else:
                    print_error(f"Unknown command: {cmd}")
                continue

            await send(controller, user_input)


def main(argv=None):
    args = parse_args(argv)
    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        console.print("\n[tartarus.dim](interrupted)[/]")


if __name__ == "__main__":
    main()
