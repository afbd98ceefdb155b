"""In-memory line editor."""

from __future__ import annotations

from shai_bridge.exchange.types import Buffer


class MemoryLineEditor:
    """Buffer held in process memory.

    Used by the shell bridge, where the real buffer lives in the calling
    shell and travels in on the command line.
    """

    def __init__(self, text: str = "", cursor: int | None = None, *, supports_cursor: bool = True) -> None:
        self._buffer = Buffer.clamp(text, cursor)
        self.supports_cursor = supports_cursor
        self.history: list[Buffer] = []

    @property
    def buffer(self) -> Buffer:
        return self._buffer

    def snapshot(self) -> Buffer:
        return self._buffer

    def replace(self, buffer: Buffer) -> None:
        self.history.append(buffer)
        self._buffer = buffer
