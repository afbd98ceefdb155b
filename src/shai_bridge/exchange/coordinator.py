"""Buffer exchange coordinator."""

from __future__ import annotations

import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from shai_bridge.exchange.errors import (
    ExchangeError,
    ProcessLaunchError,
    ProcessRuntimeError,
    SessionActiveError,
    TransientStorageError,
)
from shai_bridge.exchange.process import ProcessRunner, SubprocessRunner, build_command, check_returncode
from shai_bridge.exchange.storage import TransientSlot
from shai_bridge.exchange.types import (
    Buffer,
    ExchangeConfig,
    ExchangeReport,
    ExchangeResult,
    ExchangeSession,
    Mode,
    SessionState,
)

if TYPE_CHECKING:
    from shai_bridge.editors.base import LineEditor

_current_session: ContextVar[str] = ContextVar("current_session", default="-")


def current_session() -> str:
    """Identifier of the exchange running in this context, for log records."""
    return _current_session.get()


class BufferExchangeCoordinator:
    """Hand the editor buffer to the assistant and bring the answer back.

    One coordinator serves one line editor and runs at most one session at
    a time: ``idle -> capturing -> exchanging -> committing|rolling_back -> idle``.
    """

    def __init__(
        self,
        editor: LineEditor,
        *,
        runner: ProcessRunner | None = None,
        temp_dir: Path | None = None,
    ) -> None:
        self._editor = editor
        self._runner = runner or SubprocessRunner()
        self._temp_dir = temp_dir
        self._state = SessionState.IDLE
        self._session: ExchangeSession | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def editor(self) -> LineEditor:
        return self._editor

    def begin_session(self, mode: Mode, config: ExchangeConfig) -> ExchangeSession:
        if self._state is not SessionState.IDLE:
            raise SessionActiveError(self._state.value)

        self._state = SessionState.CAPTURING
        try:
            original = self._editor.snapshot()
            slot = TransientSlot.create(original.text, directory=self._temp_dir)
        except BaseException:
            self._state = SessionState.IDLE
            raise

        session = ExchangeSession(
            session_id=uuid.uuid4().hex[:8],
            mode=mode,
            config=config,
            original=original,
            slot=slot,
        )
        self._session = session
        self._state = SessionState.EXCHANGING
        logger.info(
            "exchange.begin session={} mode={} model={} chars={} cursor={}",
            session.session_id,
            mode.value,
            config.model,
            len(original.text),
            original.cursor,
        )
        return session

    def run_exchange(self, session: ExchangeSession) -> ExchangeResult:
        self._require_active(session, SessionState.EXCHANGING)
        token = _current_session.set(session.session_id)
        try:
            argv = build_command(session.mode, session.config, session.slot.path)
            logger.debug("exchange.command argv={}", argv)
            try:
                returncode = self._runner.run(argv)
                check_returncode(returncode)
            except ProcessLaunchError as exc:
                logger.info("exchange.launch_failed session={} reason={}", session.session_id, exc)
                return ExchangeResult.failed(exc)
            except ExchangeError as exc:
                # The process has exited; the slot is ours again.
                partial = session.slot.read_partial()
                logger.info("exchange.failed session={} kind={} reason={}", session.session_id, type(exc).__name__, exc)
                return ExchangeResult.failed(exc, content=partial)

            try:
                content = session.slot.read()
            except TransientStorageError as exc:
                logger.warning("exchange.read_failed session={} reason={}", session.session_id, exc)
                return ExchangeResult.failed(exc)
            logger.info("exchange.completed session={} chars={}", session.session_id, len(content))
            return ExchangeResult.completed(content, returncode)
        finally:
            _current_session.reset(token)

    def end_session(self, session: ExchangeSession, result: ExchangeResult) -> Buffer:
        self._require_active(session, SessionState.EXCHANGING)
        try:
            if result.ok:
                self._state = SessionState.COMMITTING
                return self._commit(session, result.content or "")
            self._state = SessionState.ROLLING_BACK
            return self._rollback(session)
        finally:
            session.slot.release()
            self._session = None
            self._state = SessionState.IDLE
            logger.debug("exchange.end session={} outcome={}", session.session_id, result.outcome.value)

    def exchange(self, mode: Mode, config: ExchangeConfig) -> ExchangeReport:
        """Run a full session. Exchange errors are reported, never raised."""
        try:
            session = self.begin_session(mode, config)
        except ExchangeError as exc:
            logger.warning("exchange.abort reason={}", exc)
            return ExchangeReport(
                buffer=self._editor.snapshot(),
                result=ExchangeResult.failed(exc),
                committed=False,
            )

        result = ExchangeResult.failed(ProcessRuntimeError("exchange did not finish"))
        try:
            result = self.run_exchange(session)
        finally:
            buffer = self.end_session(session, result)

        committed = buffer is not session.original
        cursor_restored = not committed or self._editor.supports_cursor
        return ExchangeReport(buffer=buffer, result=result, committed=committed, cursor_restored=cursor_restored)

    def _commit(self, session: ExchangeSession, content: str) -> Buffer:
        if self._editor.supports_cursor:
            updated = Buffer.clamp(content, session.cursor)
        else:
            updated = Buffer.at_end(content)
            logger.info("exchange.cursor_at_end session={} reason=editor has no cursor positioning", session.session_id)
        try:
            self._editor.replace(updated)
        except Exception:
            logger.exception("exchange.commit_failed session={}", session.session_id)
            self._state = SessionState.ROLLING_BACK
            return self._rollback(session)
        return updated

    def _rollback(self, session: ExchangeSession) -> Buffer:
        self._editor.replace(session.original)
        return session.original

    def _require_active(self, session: ExchangeSession, state: SessionState) -> None:
        if self._session is not session or self._state is not state:
            raise SessionActiveError(self._state.value)
