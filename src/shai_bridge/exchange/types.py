"""Exchange data types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

from shai_bridge.exchange.errors import ExchangeError, UserCancellation

if TYPE_CHECKING:
    from shai_bridge.exchange.storage import TransientSlot

DEFAULT_MODEL = "open-aigpt35turbo"
DEFAULT_BINARY = "shai"


class Mode(StrEnum):
    """What the assistant is asked to do with the buffer."""

    ASK = "ask"
    EXPLAIN = "explain"


class ShellKind(StrEnum):
    BASH = "bash"
    ZSH = "zsh"
    FISH = "fish"
    NUSHELL = "nushell"
    POWERSHELL = "powershell"
    OTHER = "other"


class SessionState(StrEnum):
    IDLE = "idle"
    CAPTURING = "capturing"
    EXCHANGING = "exchanging"
    COMMITTING = "committing"
    ROLLING_BACK = "rolling_back"


class ExchangeOutcome(StrEnum):
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Buffer:
    """Line editor content with a cursor offset into it."""

    text: str
    cursor: int

    def __post_init__(self) -> None:
        if not 0 <= self.cursor <= len(self.text):
            raise ValueError(f"cursor {self.cursor} outside buffer of length {len(self.text)}")

    @classmethod
    def clamp(cls, text: str, cursor: int | None) -> Buffer:
        if cursor is None:
            return cls(text, len(text))
        return cls(text, max(0, min(cursor, len(text))))

    @classmethod
    def at_end(cls, text: str) -> Buffer:
        return cls(text, len(text))


class ContextFlags(BaseModel):
    """Optional context the assistant may gather. Everything is off by default."""

    model_config = ConfigDict(frozen=True)

    pwd: bool = Field(default=False, description="Send the working directory")
    depth: int | None = Field(default=None, ge=1, description="Directory listing depth")
    environment: tuple[str, ...] = Field(default=(), description="Environment variable names")
    programs: tuple[str, ...] = Field(default=(), description="Programs the answer may use")


class ExchangeConfig(BaseModel):
    """Explicit invocation parameters for one exchange."""

    model_config = ConfigDict(frozen=True)

    model: str = Field(default=DEFAULT_MODEL, min_length=1)
    shell: ShellKind | None = Field(default=None)
    operating_system: str | None = Field(default=None)
    context: ContextFlags = Field(default_factory=ContextFlags)
    binary: str = Field(default=DEFAULT_BINARY, min_length=1)


@dataclass
class ExchangeSession:
    """One capture -> invoke -> commit-or-rollback unit of work."""

    session_id: str
    mode: Mode
    config: ExchangeConfig
    original: Buffer
    slot: TransientSlot

    @property
    def cursor(self) -> int:
        return self.original.cursor


@dataclass(frozen=True)
class ExchangeResult:
    """What came back from the assistant process."""

    outcome: ExchangeOutcome
    content: str | None = None
    returncode: int | None = None
    error: ExchangeError | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is ExchangeOutcome.COMPLETED and self.content is not None

    @classmethod
    def completed(cls, content: str, returncode: int = 0) -> ExchangeResult:
        return cls(ExchangeOutcome.COMPLETED, content=content, returncode=returncode)

    @classmethod
    def failed(cls, error: ExchangeError, *, content: str | None = None) -> ExchangeResult:
        returncode = getattr(error, "returncode", None)
        if isinstance(error, UserCancellation):
            return cls(ExchangeOutcome.CANCELLED, content=content, returncode=returncode, error=error)
        return cls(ExchangeOutcome.FAILED, content=content, returncode=returncode, error=error)


@dataclass(frozen=True)
class ExchangeReport:
    """Final state of a full exchange lifecycle."""

    buffer: Buffer
    result: ExchangeResult
    committed: bool
    cursor_restored: bool = True

    @property
    def diagnostic(self) -> str | None:
        error = self.result.error
        if error is None or not error.reportable:
            return None
        return str(error)
