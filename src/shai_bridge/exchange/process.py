"""Assistant process invocation."""

from __future__ import annotations

import contextlib
import shutil
import signal
import subprocess
import sys
import threading
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import IO, Any, Protocol

from loguru import logger

from shai_bridge.exchange.errors import ProcessLaunchError, ProcessRuntimeError, UserCancellation
from shai_bridge.exchange.types import ExchangeConfig, Mode

TERMINAL_DEVICE = "/dev/tty"
CONSOLE_INPUT = "CONIN$"
CONSOLE_OUTPUT = "CONOUT$"
INTERRUPT_EXIT_STATUS = 128 + signal.SIGINT
_WINDOWS = sys.platform == "win32"
_HOST_TERMINATION_SIGNALS = tuple(
    sig for sig in (getattr(signal, "SIGTERM", None), getattr(signal, "SIGHUP", None)) if sig is not None
)


class ProcessRunner(Protocol):
    """Runs the assistant to completion and returns its exit status."""

    def run(self, argv: Sequence[str]) -> int: ...


def build_command(mode: Mode, config: ExchangeConfig, path: Path) -> list[str]:
    """Build the assistant argument vector for one exchange."""
    argv = [config.binary, mode.value, "--model", config.model]
    if config.shell is not None:
        argv += ["--shell", config.shell.value]
    if config.operating_system:
        argv += ["--operating-system", config.operating_system]

    context = config.context
    if context.pwd:
        argv.append("--pwd")
    if context.depth is not None:
        argv += ["--depth", str(context.depth)]
    for name in context.environment:
        argv += ["--environment", name]
    if context.programs:
        if mode is Mode.ASK:
            for program in context.programs:
                argv += ["--programs", program]
        else:
            logger.debug("command.programs.skip mode={}", mode.value)

    argv += ["--edit-file", str(path)]
    return argv


def check_returncode(returncode: int) -> None:
    """Raise the matching exchange error for a non-zero exit status."""
    if returncode == 0:
        return
    if returncode in (-signal.SIGINT, INTERRUPT_EXIT_STATUS):
        raise UserCancellation(returncode=returncode)
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = f"signal {-returncode}"
        raise ProcessRuntimeError(f"assistant was killed by {name}", returncode=returncode)
    raise ProcessRuntimeError(f"assistant exited with status {returncode}", returncode=returncode)


class SubprocessRunner:
    """Run the assistant as a child process and block until it exits."""

    def __init__(self, *, attach_tty: bool = True, terminate_timeout: float = 3.0) -> None:
        self._attach_tty = attach_tty
        self._terminate_timeout = terminate_timeout

    def run(self, argv: Sequence[str]) -> int:
        binary, *args = argv
        executable = shutil.which(binary)
        if executable is None:
            raise ProcessLaunchError(binary, "not found or not executable")

        with contextlib.ExitStack() as stack:
            streams = self._streams(stack)
            try:
                process = subprocess.Popen([executable, *args], **streams)  # noqa: S603
            except OSError as exc:
                raise ProcessLaunchError(binary, exc.strerror or str(exc)) from exc
            logger.info("process.start pid={} binary={}", process.pid, executable)

            with _raise_on_host_termination():
                try:
                    returncode = process.wait()
                except KeyboardInterrupt:
                    self._stop(process)
                    raise UserCancellation(returncode=process.returncode) from None
                except BaseException:
                    self._stop(process)
                    raise

        logger.info("process.exit pid={} returncode={}", process.pid, returncode)
        return returncode

    def _streams(self, stack: contextlib.ExitStack) -> dict[str, Any]:
        if not self._attach_tty or _isatty(sys.stdout):
            return {}
        input_device, output_device = _console_devices()
        try:
            stdin = stack.enter_context(open(input_device, "rb", buffering=0))  # noqa: SIM115
            stdout = stack.enter_context(open(output_device, "wb", buffering=0))  # noqa: SIM115
        except OSError as exc:
            logger.debug("process.tty.unavailable error={}", exc)
            return {}
        return {"stdin": stdin, "stdout": stdout}

    def _stop(self, process: subprocess.Popen[bytes]) -> None:
        if process.poll() is not None:
            return
        logger.info("process.terminate pid={}", process.pid)
        process.terminate()
        try:
            process.wait(timeout=self._terminate_timeout)
        except subprocess.TimeoutExpired:
            logger.warning("process.kill pid={}", process.pid)
            process.kill()
            process.wait()


def _console_devices() -> tuple[str, str]:
    """Input and output device of the controlling terminal."""
    if _WINDOWS:
        return CONSOLE_INPUT, CONSOLE_OUTPUT
    return TERMINAL_DEVICE, TERMINAL_DEVICE


def _isatty(stream: IO[Any] | None) -> bool:
    try:
        return stream is not None and stream.isatty()
    except ValueError:
        return False


@contextlib.contextmanager
def _raise_on_host_termination() -> Iterator[None]:
    """Turn SIGTERM/SIGHUP into an exception so cleanup blocks run."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum: int, _frame: object) -> None:
        raise ProcessRuntimeError(f"interrupted by {signal.Signals(signum).name}")

    previous: dict[int, Any] = {}
    for sig in _HOST_TERMINATION_SIGNALS:
        try:
            previous[sig] = signal.signal(sig, _handler)
        except (ValueError, OSError):
            continue
    try:
        yield
    finally:
        for sig, handler in previous.items():
            with contextlib.suppress(ValueError, OSError):
                signal.signal(sig, handler)
