"""Bridge settings."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from shai_bridge.exchange.types import DEFAULT_BINARY, DEFAULT_MODEL, ContextFlags, ExchangeConfig, ShellKind
from shai_bridge.shells.keys import KeyChord
from shai_bridge.shells.snippets import DEFAULT_ASK_KEY, DEFAULT_EXPLAIN_KEY


class BridgeSettings(BaseSettings):
    """Defaults for exchanges and snippets, read from ``SHAI_*`` variables.

    Only the command-line edge reads these. The coordinator receives the
    resulting ``ExchangeConfig`` explicitly.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SHAI_",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
    )

    binary: str = Field(default=DEFAULT_BINARY)
    model: str = Field(default=DEFAULT_MODEL)
    shell: ShellKind | None = Field(default=None)
    operating_system: str | None = Field(default=None)
    pwd: bool = Field(default=False)
    depth: int | None = Field(default=None, ge=1)
    environment: Annotated[list[str], NoDecode] = Field(default_factory=list)
    programs: Annotated[list[str], NoDecode] = Field(default_factory=list)
    temp_dir: Path | None = Field(default=None)
    attach_tty: bool = Field(default=True)
    ask_key: str = Field(default=DEFAULT_ASK_KEY)
    explain_key: str = Field(default=DEFAULT_EXPLAIN_KEY)

    @field_validator("environment", "programs", mode="before")
    @classmethod
    def _split_names(cls, value: Any) -> Any:
        if isinstance(value, str):
            return split_names([value])
        return value

    @field_validator("ask_key", "explain_key")
    @classmethod
    def _check_chord(cls, value: str) -> str:
        KeyChord.parse(value)
        return value

    def resolve_temp_dir(self) -> Path | None:
        if self.temp_dir is None:
            return None
        return self.temp_dir.expanduser().resolve()

    def to_exchange_config(self) -> ExchangeConfig:
        return ExchangeConfig(
            model=self.model,
            shell=self.shell,
            operating_system=self.operating_system or None,
            binary=self.binary,
            context=ContextFlags(
                pwd=self.pwd,
                depth=self.depth,
                environment=tuple(self.environment),
                programs=tuple(self.programs),
            ),
        )


def split_names(values: list[str] | None) -> list[str]:
    """Flatten repeatable, comma-separated name lists."""
    if not values:
        return []

    names: list[str] = []
    for raw in values:
        for part in raw.split(","):
            name = part.strip()
            if name and name not in names:
                names.append(name)
    return names


def load_settings() -> BridgeSettings:
    return BridgeSettings()
