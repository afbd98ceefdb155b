"""Exchange error taxonomy."""

from __future__ import annotations


class ExchangeError(Exception):
    """Base class for failures of one buffer exchange."""

    #: Whether the failure should be shown to the user.
    reportable = True


class SessionActiveError(ExchangeError):
    """A session was requested while another one is still running."""

    def __init__(self, state: str) -> None:
        self.state = state
        super().__init__(f"an exchange is already in progress (state={state})")


class TransientStorageError(ExchangeError):
    """Allocating, writing or reading the transient file failed."""


class ProcessLaunchError(ExchangeError):
    """The assistant binary could not be started."""

    def __init__(self, binary: str, reason: str) -> None:
        self.binary = binary
        self.reason = reason
        super().__init__(f"cannot launch {binary!r}: {reason}")


class ProcessRuntimeError(ExchangeError):
    """The assistant started but did not run to completion."""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        self.returncode = returncode
        super().__init__(message)


class UserCancellation(ExchangeError):
    """The user interrupted the assistant. Handled as a silent rollback."""

    reportable = False

    def __init__(self, message: str = "cancelled by user", returncode: int | None = None) -> None:
        self.returncode = returncode
        super().__init__(message)
