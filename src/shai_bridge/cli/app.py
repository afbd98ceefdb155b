"""Typer CLI entrypoints."""

from __future__ import annotations

import base64
import sys
from pathlib import Path
from typing import Annotated

import rich
import typer
from loguru import logger
from rich.markup import escape

from shai_bridge.cli.interactive import InteractivePrompt
from shai_bridge.config.settings import BridgeSettings, load_settings, split_names
from shai_bridge.editors.memory import MemoryLineEditor
from shai_bridge.exchange.coordinator import BufferExchangeCoordinator
from shai_bridge.exchange.process import INTERRUPT_EXIT_STATUS, SubprocessRunner
from shai_bridge.exchange.types import ExchangeOutcome, ExchangeReport, Mode, ShellKind
from shai_bridge.logging_utils import configure_logging
from shai_bridge.shells.keys import KeyChord
from shai_bridge.shells.snippets import DEFAULT_BRIDGE, SnippetOptions, render_snippet

app = typer.Typer(name="shai-bridge", help="Hand the shell buffer to the shai assistant and back", add_completion=False)

EXIT_FAILED = 1
EXIT_CANCELLED = INTERRUPT_EXIT_STATUS
# Buffers come from argv as surrogate-escaped bytes and go back out the same way.
REPLY_ERRORS = "surrogateescape"

ModelOption = Annotated[str | None, typer.Option("--model", help="Assistant model identifier.")]
OsOption = Annotated[str | None, typer.Option("--operating-system", help="Operating system hint.")]
PwdOption = Annotated[bool | None, typer.Option("--pwd/--no-pwd", help="Send the working directory.")]
DepthOption = Annotated[int | None, typer.Option("--depth", min=1, help="Directory listing depth.")]
EnvironmentOption = Annotated[
    list[str] | None,
    typer.Option("--environment", help="Environment variable names (repeatable or comma-separated)."),
]
ProgramsOption = Annotated[
    list[str] | None,
    typer.Option("--programs", help="Programs the answer may use (repeatable or comma-separated)."),
]
BinaryOption = Annotated[str | None, typer.Option("--binary", help="Assistant executable.")]


def _apply_overrides(
    settings: BridgeSettings,
    *,
    model: str | None = None,
    shell: ShellKind | None = None,
    operating_system: str | None = None,
    pwd: bool | None = None,
    depth: int | None = None,
    environment: list[str] | None = None,
    programs: list[str] | None = None,
    binary: str | None = None,
    temp_dir: Path | None = None,
) -> BridgeSettings:
    update: dict[str, object] = {}
    if model:
        update["model"] = model
    if shell is not None:
        update["shell"] = shell
    if operating_system:
        update["operating_system"] = operating_system
    if pwd is not None:
        update["pwd"] = pwd
    if depth is not None:
        update["depth"] = depth
    if environment:
        update["environment"] = split_names(environment)
    if programs:
        update["programs"] = split_names(programs)
    if binary:
        update["binary"] = binary
    if temp_dir is not None:
        update["temp_dir"] = temp_dir
    if not update:
        return settings
    return settings.model_copy(update=update)


def _read_buffer(buffer: str | None, buffer_base64: str | None) -> str:
    if buffer_base64 is None:
        return buffer or ""
    if buffer is not None:
        raise typer.BadParameter("use either --buffer or --buffer-base64", param_hint="--buffer-base64")
    try:
        return base64.b64decode(buffer_base64, validate=True).decode("utf-8", REPLY_ERRORS)
    except ValueError as exc:
        raise typer.BadParameter(f"not valid base64: {exc}", param_hint="--buffer-base64") from exc


def _write_reply(reply: str, output_file: Path | None) -> None:
    data = reply.encode("utf-8", REPLY_ERRORS)
    if output_file is not None:
        output_file.write_bytes(data)
        return
    sys.stdout.flush()
    sys.stdout.buffer.write(data)
    sys.stdout.buffer.flush()


def _exit_code(report: ExchangeReport) -> int:
    if report.committed:
        return 0
    if report.result.outcome is ExchangeOutcome.CANCELLED:
        return EXIT_CANCELLED
    return EXIT_FAILED


@app.command()
def exchange(
    mode: Annotated[Mode, typer.Argument(help="ask: generate a command, explain: explain the buffer.")],
    buffer: Annotated[str | None, typer.Option("--buffer", help="Current shell buffer.")] = None,
    buffer_base64: Annotated[
        str | None, typer.Option("--buffer-base64", help="Current shell buffer as base64-encoded UTF-8.")
    ] = None,
    cursor: Annotated[int | None, typer.Option("--cursor", help="Cursor offset in the buffer.")] = None,
    shell: Annotated[ShellKind | None, typer.Option("--shell", help="Calling shell.")] = None,
    model: ModelOption = None,
    operating_system: OsOption = None,
    pwd: PwdOption = None,
    depth: DepthOption = None,
    environment: EnvironmentOption = None,
    programs: ProgramsOption = None,
    binary: BinaryOption = None,
    temp_dir: Annotated[Path | None, typer.Option("--temp-dir", help="Directory for the transient file.")] = None,
    output_file: Annotated[
        Path | None, typer.Option("--output-file", help="Write the committed reply here instead of stdout.")
    ] = None,
) -> None:
    """Run one buffer exchange and print ``<cursor>\\n<buffer>`` when it commits."""

    configure_logging()
    text = _read_buffer(buffer, buffer_base64)
    settings = _apply_overrides(
        load_settings(),
        model=model,
        shell=shell,
        operating_system=operating_system,
        pwd=pwd,
        depth=depth,
        environment=environment,
        programs=programs,
        binary=binary,
        temp_dir=temp_dir,
    )
    config = settings.to_exchange_config()
    editor = MemoryLineEditor(text, cursor)
    coordinator = BufferExchangeCoordinator(
        editor,
        runner=SubprocessRunner(attach_tty=settings.attach_tty),
        temp_dir=settings.resolve_temp_dir(),
    )
    logger.info(
        "exchange.start mode={} shell={} model={}",
        mode.value,
        config.shell.value if config.shell else "<none>",
        config.model,
    )

    report = coordinator.exchange(mode, config)
    if report.committed:
        try:
            _write_reply(f"{report.buffer.cursor}\n{report.buffer.text}", output_file)
        except OSError as exc:
            rich.print(f"[red]shai:[/red] cannot write reply: {escape(str(exc))}", file=sys.stderr)
            raise typer.Exit(EXIT_FAILED) from exc
    elif report.diagnostic:
        rich.print(f"[red]shai:[/red] {escape(report.diagnostic)}", file=sys.stderr)
    raise typer.Exit(_exit_code(report))


@app.command()
def init(
    shell: Annotated[ShellKind, typer.Argument(help="Shell to print the integration snippet for.")],
    ask_key: Annotated[str | None, typer.Option("--ask-key", help="Key chord for ask, e.g. alt+s.")] = None,
    explain_key: Annotated[str | None, typer.Option("--explain-key", help="Key chord for explain.")] = None,
    bridge: Annotated[str, typer.Option("--bridge", help="Bridge executable the snippet calls.")] = DEFAULT_BRIDGE,
    model: ModelOption = None,
    operating_system: OsOption = None,
    pwd: PwdOption = None,
    depth: DepthOption = None,
    environment: EnvironmentOption = None,
    programs: ProgramsOption = None,
    binary: BinaryOption = None,
) -> None:
    """Print the key-binding snippet for a shell, e.g. ``eval "$(shai-bridge init bash)"``."""

    configure_logging()
    settings = _apply_overrides(
        load_settings(),
        model=model,
        operating_system=operating_system,
        pwd=pwd,
        depth=depth,
        environment=environment,
        programs=programs,
        binary=binary,
    )
    try:
        options = SnippetOptions(
            config=settings.to_exchange_config(),
            bridge=bridge,
            ask_key=KeyChord.parse(ask_key or settings.ask_key),
            explain_key=KeyChord.parse(explain_key or settings.explain_key),
        )
        snippet = render_snippet(shell, options)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    logger.info("init.render shell={} bridge={}", shell.value, bridge)
    typer.echo(snippet, nl=False)


@app.command()
def prompt(
    initial: Annotated[str, typer.Option("--initial", help="Initial buffer text.")] = "",
    model: ModelOption = None,
    operating_system: OsOption = None,
    binary: BinaryOption = None,
) -> None:
    """Read one line with the assistant keys bound and print it."""

    configure_logging(profile="interactive")
    settings = _apply_overrides(
        load_settings(),
        model=model,
        operating_system=operating_system,
        binary=binary,
    )
    line = InteractivePrompt(settings).run(initial)
    if line is None:
        raise typer.Exit(EXIT_FAILED)
    typer.echo(line)


if __name__ == "__main__":
    app()
