from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.markup import escape

console = Console(stderr=True, highlight=False)

LogEntry = dict[str, Any]


def format_cmd(cmd: str) -> str:
    lines = cmd.splitlines() or [""]
    head = f"[bold green]$[/bold green] {escape(lines[0])}"
    rest = [f"[green]>[/green] {escape(line)}" for line in lines[1:]]
    return "\n".join([head, *rest])


def log(entry: LogEntry) -> None:
    """Default log sink: render engine events on stderr."""
    kind = entry.get("kind")
    if kind == "cmd":
        if not entry.get("verbose"):
            return
        console.print(format_cmd(entry["cmd"]))
    elif kind in ("stdout", "stderr"):
        if not entry.get("verbose"):
            return
        console.out(entry["data"], end="", highlight=False)
    elif kind == "retry":
        if not entry.get("verbose"):
            return
        console.print(f"[red]{escape(entry['error'])}[/red]")
