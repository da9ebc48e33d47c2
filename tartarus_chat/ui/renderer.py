"""
TARTARUS Chat UI — Rich terminal rendering.
"""
from __future__ import annotations
from datetime import datetime

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.theme import Theme

TARTARUS_THEME = Theme({
    "tartarus.flame":  "bold #ff6600",
    "tartarus.dim":    "#8a4a2a",
    "tartarus.grampy": "#ffd7a8",
    "tartarus.user":   "bold #93c5fd",
    "tartarus.error":  "bold red",
    "tartarus.notice": "bold yellow",
})

console = Console(theme=TARTARUS_THEME, highlight=False)


def print_header(url: str):
    console.print(Panel(
        "[tartarus.flame]TARTARUS CHAT[/]\n"
        "[tartarus.dim]Speak with Grampy, the tormentor of souls[/]\n"
        f"[tartarus.dim]Relay: {url} | Type [bold]/help[/] for commands[/]",
        border_style="#dc2626",
        box=box.HEAVY,
    ))


def _stamp(turn) -> str:
    if turn.timestamp is None:
        return ""
    return datetime.fromtimestamp(turn.timestamp).strftime("%H:%M:%S")


def print_turn(turn, index: int | None = None):
    label = f"[{index}] " if index is not None else ""
    if turn.role == "user":
        console.print(f"[tartarus.user]{label}You[/] [tartarus.dim]{_stamp(turn)}[/]")
        console.print(f"  {turn.content}", style="tartarus.user", markup=False)
    else:
        console.print(f"[tartarus.flame]{label}Grampy[/] [tartarus.dim]{_stamp(turn)}[/]")
        console.print(f"  {turn.content}", style="tartarus.grampy", markup=False)
    console.print()


def print_transcript(transcript):
    """Everything but the system turn, numbered for /speak."""
    turns = transcript[1:]
    if not turns:
        console.print("[tartarus.dim](nothing said yet)[/]")
        return
    for i, turn in enumerate(turns, start=1):
        print_turn(turn, index=i)


def print_notice(msg: str):
    """Blocking user notification (the terminal's alert())."""
    console.print(Panel(msg, border_style="yellow", box=box.ROUNDED, title="Notice"))


def print_error(msg: str):
    console.print(f"[tartarus.error]Error: {msg}[/]")


def print_help():
    console.print(Panel(
        "[tartarus.flame]TARTARUS Commands[/]\n\n"
        "  [bold]/help[/]          Show this help\n"
        "  [bold]/record[/]        Start recording; run again to stop and transcribe\n"
        "  [bold]/speak [n][/]     Speak reply n (default: the latest reply)\n"
        "  [bold]/transcript[/]    Show the conversation so far\n"
        "  [bold]/clear[/]         Start a new conversation\n"
        "  [bold]/exit[/]          Exit\n\n"
        "Anything else is sent to Grampy. A transcription fills the\n"
        "next prompt so you can edit it before sending.",
        border_style="#dc2626",
        box=box.ROUNDED,
        title="Help",
    ))
