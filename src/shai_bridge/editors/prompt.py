"""prompt_toolkit line editor adapter and key bindings."""

from __future__ import annotations

import weakref
from collections.abc import Callable
from pathlib import Path

from loguru import logger
from prompt_toolkit.application import run_in_terminal
from prompt_toolkit.buffer import Buffer as PromptBuffer
from prompt_toolkit.document import Document
from prompt_toolkit.key_binding import KeyBindings, KeyPressEvent

from shai_bridge.exchange.coordinator import BufferExchangeCoordinator
from shai_bridge.exchange.process import ProcessRunner
from shai_bridge.exchange.types import Buffer, ExchangeConfig, ExchangeReport, Mode
from shai_bridge.shells.keys import KeyChord


class PromptToolkitLineEditor:
    """Expose a prompt_toolkit ``Buffer`` as a line editor."""

    supports_cursor = True

    def __init__(self, buffer: PromptBuffer) -> None:
        self._buffer = buffer

    def snapshot(self) -> Buffer:
        document = self._buffer.document
        return Buffer(document.text, document.cursor_position)

    def replace(self, buffer: Buffer) -> None:
        self._buffer.set_document(Document(buffer.text, buffer.cursor), bypass_readonly=True)


def install_exchange_bindings(
    key_bindings: KeyBindings,
    config: ExchangeConfig,
    *,
    ask_key: KeyChord,
    explain_key: KeyChord,
    runner: ProcessRunner | None = None,
    temp_dir: Path | None = None,
    on_report: Callable[[ExchangeReport], None] | None = None,
) -> None:
    """Bind the ask/explain keys to an exchange on the focused buffer."""
    coordinators: weakref.WeakKeyDictionary[PromptBuffer, BufferExchangeCoordinator] = weakref.WeakKeyDictionary()

    def _coordinator_for(buffer: PromptBuffer) -> BufferExchangeCoordinator:
        coordinator = coordinators.get(buffer)
        if coordinator is None:
            coordinator = BufferExchangeCoordinator(PromptToolkitLineEditor(buffer), runner=runner, temp_dir=temp_dir)
            coordinators[buffer] = coordinator
        return coordinator

    def _start(event: KeyPressEvent, mode: Mode) -> None:
        coordinator = _coordinator_for(event.current_buffer)

        def _exchange() -> None:
            report = coordinator.exchange(mode, config)
            logger.debug("prompt.exchange mode={} outcome={}", mode.value, report.result.outcome.value)
            if on_report is not None:
                on_report(report)

        run_in_terminal(_exchange)

    @key_bindings.add(*ask_key.prompt_toolkit(), eager=True)
    def _ask(event: KeyPressEvent) -> None:
        _start(event, Mode.ASK)

    @key_bindings.add(*explain_key.prompt_toolkit(), eager=True)
    def _explain(event: KeyPressEvent) -> None:
        _start(event, Mode.EXPLAIN)
