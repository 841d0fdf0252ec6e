from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shproc.config.context import get_context, scoped
from shproc.config.loader import load_overrides
from shproc.exec.kill import to_signal
from shproc.exec.output import ProcessOutput
from shproc.exec.retry import exp_backoff, retry
from shproc.sh import sh
from shproc.util.duration import parse_duration
from shproc.util.errors import ConfigError, ProcessFailure

app = typer.Typer(help="Run shell commands through the shproc engine")
console = Console()
err_console = Console(stderr=True)


def _exit_code_for_output(output: ProcessOutput) -> int:
    if output.exit_code is not None:
        return output.exit_code
    if output.signal is not None:
        try:
            return 128 + int(to_signal(output.signal))
        except ValueError:
            return 1
    return 1


def _resolve_overrides(
    config: Path | None,
    *,
    cwd: Path | None = None,
    shell: str | None = None,
    prefix: str | None = None,
    verbose: bool | None = None,
) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if config is not None:
        try:
            overrides = load_overrides(config)
        except ConfigError as exc:
            err_console.print(f"[red]Config error:[/red] {exc}")
            raise typer.Exit(2) from exc
    if "env" in overrides:
        overrides["env"] = {**get_context().env, **overrides["env"]}
    if cwd is not None:
        if not cwd.is_dir():
            err_console.print(f"[red]Invalid cwd:[/red] {cwd}")
            raise typer.Exit(2)
        overrides["cwd"] = str(cwd.resolve())
    if shell is not None:
        overrides["shell"] = shell
    if prefix is not None:
        overrides["prefix"] = prefix
    if verbose is not None:
        overrides["verbose"] = verbose
    return overrides


def _validate_duration_or_exit(name: str, value: str | None) -> None:
    if value is None:
        return
    try:
        parse_duration(value)
    except ValueError as exc:
        err_console.print(f"[red]Invalid {name}:[/red] {value}")
        raise typer.Exit(2) from exc


async def _run_command(
    command: str,
    *,
    overrides: dict[str, Any],
    timeout: str | None,
    signal: str,
    retries: int,
    delay: str | None,
    backoff: str | None,
    nothrow: bool,
    quiet: bool,
) -> ProcessOutput:
    def attempt() -> Any:
        task = sh([command])
        if timeout is not None:
            task.timeout(timeout, signal)
        if nothrow:
            task.nothrow()
        if quiet:
            task.quiet()
        return task

    with scoped(**overrides):
        if retries <= 0:
            return await attempt()
        if backoff is not None:
            return await retry(retries + 1, exp_backoff(backoff), attempt)
        if delay is not None:
            return await retry(retries + 1, delay, attempt)
        return await retry(retries + 1, attempt)


@app.command()
def run(
    command: Annotated[str, typer.Argument(help="Shell command line to execute")],
    cwd: Annotated[Path | None, typer.Option("--cwd")] = None,
    shell: Annotated[str | None, typer.Option("--shell")] = None,
    prefix: Annotated[str | None, typer.Option("--prefix")] = None,
    config: Annotated[Path | None, typer.Option("--config")] = None,
    timeout: Annotated[str | None, typer.Option("--timeout")] = None,
    signal: Annotated[str, typer.Option("--signal")] = "SIGTERM",
    retries: Annotated[int, typer.Option("--retries", min=0)] = 0,
    delay: Annotated[str | None, typer.Option("--delay")] = None,
    backoff: Annotated[str | None, typer.Option("--backoff")] = None,
    nothrow: Annotated[bool, typer.Option("--nothrow")] = False,
    quiet: Annotated[bool, typer.Option("--quiet")] = False,
    verbose: Annotated[bool, typer.Option("--verbose")] = False,
    as_json: Annotated[bool, typer.Option("--json")] = False,
) -> None:
    if delay is not None and backoff is not None:
        err_console.print("[red]--delay and --backoff are mutually exclusive[/red]")
        raise typer.Exit(2)
    for name, value in (("timeout", timeout), ("delay", delay), ("backoff", backoff)):
        _validate_duration_or_exit(name, value)
    try:
        to_signal(signal)
    except ValueError as exc:
        err_console.print(f"[red]Invalid signal:[/red] {signal}")
        raise typer.Exit(2) from exc
    overrides = _resolve_overrides(
        config, cwd=cwd, shell=shell, prefix=prefix, verbose=True if verbose else None
    )

    try:
        output = asyncio.run(
            _run_command(
                command,
                overrides=overrides,
                timeout=timeout,
                signal=signal,
                retries=retries,
                delay=delay,
                backoff=backoff,
                nothrow=nothrow,
                quiet=quiet,
            )
        )
        failed = False
    except ProcessFailure as exc:
        output = exc.output
        failed = True

    if as_json:
        typer.echo(json.dumps(output.to_dict(), ensure_ascii=False, indent=2))
    else:
        if output.stdout:
            typer.echo(output.stdout, nl=False)
        if failed:
            err_console.print(f"[red]Command failed:[/red] {escape(output.message.strip())}")
    raise typer.Exit(_exit_code_for_output(output))


@app.command()
def context(
    config: Annotated[Path | None, typer.Option("--config")] = None,
) -> None:
    overrides = _resolve_overrides(config)
    with scoped(**overrides) as ctx:
        table = Table(title="Execution Context")
        table.add_column("key")
        table.add_column("value")
        table.add_row("cwd", ctx.cwd or "(inherit)")
        table.add_row("shell", ctx.shell or "(system default)")
        table.add_row("prefix", ctx.prefix or "-")
        table.add_row("verbose", str(ctx.verbose))
        table.add_row("quote", getattr(ctx.quote, "__name__", repr(ctx.quote)))
        table.add_row("env", f"{len(ctx.env)} variables")
        console.print(table)


if __name__ == "__main__":
    app()
