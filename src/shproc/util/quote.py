from __future__ import annotations

import re

_POSIX_SAFE = re.compile(r"^[A-Za-z0-9/_.\-@:=]+$")
_POWERSHELL_SAFE = re.compile(r"^[A-Za-z0-9/_.\-]+$")
_POSIX_ESCAPES = {
    "\\": "\\\\",
    "'": "\\'",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
    "\0": "\\0",
}


def quote(arg: str) -> str:
    """Quote for bash using ANSI-C quoting when the argument is not plain."""
    if _POSIX_SAFE.fullmatch(arg):
        return arg
    return "$'" + "".join(_POSIX_ESCAPES.get(ch, ch) for ch in arg) + "'"


def quote_posix(arg: str) -> str:
    """Quote for a plain POSIX sh, which has no ANSI-C quoting."""
    if _POSIX_SAFE.fullmatch(arg):
        return arg
    return "'" + arg.replace("'", "'\\''") + "'"


def quote_powershell(arg: str) -> str:
    if _POWERSHELL_SAFE.fullmatch(arg):
        return arg
    return "'" + arg.replace("'", "''") + "'"


def no_quote(arg: str) -> str:
    raise RuntimeError("no quote function is defined for the active shell")
