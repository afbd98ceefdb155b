"""Buffer exchange protocol."""

from shai_bridge.exchange.coordinator import BufferExchangeCoordinator, current_session
from shai_bridge.exchange.errors import (
    ExchangeError,
    ProcessLaunchError,
    ProcessRuntimeError,
    SessionActiveError,
    TransientStorageError,
    UserCancellation,
)
from shai_bridge.exchange.process import ProcessRunner, SubprocessRunner, build_command
from shai_bridge.exchange.storage import TransientSlot
from shai_bridge.exchange.types import (
    Buffer,
    ContextFlags,
    ExchangeConfig,
    ExchangeOutcome,
    ExchangeReport,
    ExchangeResult,
    ExchangeSession,
    Mode,
    SessionState,
    ShellKind,
)

__all__ = [
    "Buffer",
    "BufferExchangeCoordinator",
    "ContextFlags",
    "ExchangeConfig",
    "ExchangeError",
    "ExchangeOutcome",
    "ExchangeReport",
    "ExchangeResult",
    "ExchangeSession",
    "Mode",
    "ProcessLaunchError",
    "ProcessRunner",
    "ProcessRuntimeError",
    "SessionActiveError",
    "SessionState",
    "ShellKind",
    "SubprocessRunner",
    "TransientSlot",
    "TransientStorageError",
    "UserCancellation",
    "build_command",
    "current_session",
]
