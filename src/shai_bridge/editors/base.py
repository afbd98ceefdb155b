"""Line editor protocol."""

from __future__ import annotations

from typing import Protocol

from shai_bridge.exchange.types import Buffer


class LineEditor(Protocol):
    """The host editor whose buffer takes part in an exchange."""

    #: False when the host can only append at end of text.
    supports_cursor: bool

    def snapshot(self) -> Buffer:
        """Return the current buffer content and cursor."""
        ...

    def replace(self, buffer: Buffer) -> None:
        """Replace the whole buffer and move the cursor."""
        ...
