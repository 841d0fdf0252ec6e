from __future__ import annotations

import re
import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from shproc.exec.output import Failure, ProcessOutput, Success
from shproc.util.errors import MalformedCommandError, ProcessFailure

PLACEHOLDER = "{}"
ESCAPED_PLACEHOLDER = "{{}}"
_PLACEHOLDERS = re.compile(r"\{\{\}\}|\{\}")
_PACKAGE_ROOT = Path(__file__).resolve().parent.parent


def call_site() -> str:
    """Return file:line of the first frame outside this package."""
    frame = sys._getframe(1)
    while frame is not None:
        filename = frame.f_code.co_filename
        try:
            inside = Path(filename).resolve().is_relative_to(_PACKAGE_ROOT)
        except (OSError, ValueError):
            inside = False
        if not inside:
            return f"{filename}:{frame.f_lineno}"
        frame = frame.f_back
    return "<unknown>"


def split_template(
    template: str | Sequence[str | None], values: Sequence[Any] = ()
) -> list[str | None]:
    """Cut a string template on its placeholders.

    A string with no values is plain shell text and stays one fragment, so
    ``find . -exec echo {} +`` runs as written. With values, ``{{}}`` is a
    literal ``{}``.
    """
    if not isinstance(template, str):
        return list(template)
    if not values:
        return [template]
    fragments: list[str | None] = []
    current: list[str] = []
    pos = 0
    for match in _PLACEHOLDERS.finditer(template):
        current.append(template[pos : match.start()])
        if match.group() == ESCAPED_PLACEHOLDER:
            current.append(PLACEHOLDER)
        else:
            fragments.append("".join(current))
            current = []
        pos = match.end()
    current.append(template[pos:])
    fragments.append("".join(current))
    return fragments


def substitute(value: Any) -> str:
    if isinstance(value, (Success, Failure, ProcessFailure)):
        value = value.output
    if isinstance(value, ProcessOutput):
        return value.stdout.removesuffix("\n")
    return f"{value}"


def build_command(
    fragments: Sequence[str | None],
    values: Sequence[Any],
    quote: Callable[[str], str],
    *,
    origin: str | None = None,
) -> str:
    if not fragments or any(fragment is None for fragment in fragments):
        raise MalformedCommandError(f"Malformed command at {origin or call_site()}")
    if len(values) != len(fragments) - 1:
        raise MalformedCommandError(
            f"Malformed command at {origin or call_site()}: "
            f"{len(fragments) - 1} placeholders for {len(values)} values"
        )
    parts = [fragments[0]]
    for value, fragment in zip(values, fragments[1:]):
        if isinstance(value, (list, tuple)):
            parts.append(" ".join(quote(substitute(item)) for item in value))
        else:
            parts.append(quote(substitute(value)))
        parts.append(fragment)
    return "".join(parts)  # type: ignore[arg-type]
