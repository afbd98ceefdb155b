"""Interactive prompt with the assistant keys bound."""

from __future__ import annotations

from pathlib import Path

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import FormattedText
from prompt_toolkit.key_binding import KeyBindings
from rich import get_console
from rich.markup import escape

from shai_bridge.config.settings import BridgeSettings
from shai_bridge.editors.prompt import install_exchange_bindings
from shai_bridge.exchange.process import SubprocessRunner
from shai_bridge.exchange.types import ExchangeReport
from shai_bridge.shells.keys import KeyChord


class InteractivePrompt:
    """Single-line prompt; the accepted line is the caller's to run."""

    def __init__(self, settings: BridgeSettings) -> None:
        self._settings = settings
        self._console = get_console()
        self._ask_key = KeyChord.parse(settings.ask_key)
        self._explain_key = KeyChord.parse(settings.explain_key)
        self._session = self._build_prompt()

    def run(self, initial: str = "") -> str | None:
        try:
            return self._session.prompt(self._prompt_message(), default=initial)
        except (KeyboardInterrupt, EOFError):
            return None

    def _build_prompt(self) -> PromptSession[str]:
        kb = KeyBindings()
        install_exchange_bindings(
            kb,
            self._settings.to_exchange_config(),
            ask_key=self._ask_key,
            explain_key=self._explain_key,
            runner=SubprocessRunner(attach_tty=False),
            temp_dir=self._settings.resolve_temp_dir(),
            on_report=self._show_report,
        )
        return PromptSession(key_bindings=kb, bottom_toolbar=self._render_bottom_toolbar)

    def _show_report(self, report: ExchangeReport) -> None:
        if report.diagnostic:
            self._console.print(f"[red]shai:[/red] {escape(report.diagnostic)}")

    def _prompt_message(self) -> FormattedText:
        return FormattedText([("bold", f"{Path.cwd().name} $ ")])

    def _render_bottom_toolbar(self) -> FormattedText:
        return FormattedText(
            [("", f"{self._ask_key}: ask  {self._explain_key}: explain  model:{self._settings.model}")]
        )
