from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, ClassVar

from shproc.util.exit_codes import exit_code_info


@dataclass(frozen=True, slots=True)
class ProcessOutput:
    exit_code: int | None
    signal: str | None
    stdout: str = ""
    stderr: str = ""
    combined: str = ""
    message: str = ""

    def __str__(self) -> str:
        return self.combined.strip()

    def __repr__(self) -> str:
        info = exit_code_info(self.exit_code)
        code = f"{self.exit_code} ({info})" if info else f"{self.exit_code}"
        return (
            "ProcessOutput(\n"
            f"    stdout={self.stdout!r},\n"
            f"    stderr={self.stderr!r},\n"
            f"    signal={self.signal!r},\n"
            f"    exit_code={code},\n"
            ")"
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class Success:
    output: ProcessOutput
    ok: ClassVar[bool] = True


@dataclass(frozen=True, slots=True)
class Failure:
    output: ProcessOutput
    ok: ClassVar[bool] = False


Result = Success | Failure
