"""Transient file used to pass the buffer to the assistant and back."""

from __future__ import annotations

import contextlib
import os
import tempfile
import weakref
from pathlib import Path

from loguru import logger

from shai_bridge.exchange.errors import TransientStorageError

SLOT_PREFIX = "shai-"
SLOT_SUFFIX = ".txt"
# Shell buffers are bytes; undecodable ones survive the round trip as surrogates.
SLOT_ERRORS = "surrogateescape"


def _unlink_quietly(path: Path) -> None:
    with contextlib.suppress(FileNotFoundError):
        path.unlink()


class TransientSlot:
    """A uniquely named file owned by exactly one exchange session.

    The coordinator writes it, the assistant process rewrites it, the
    coordinator reads it back. Access strictly alternates, so no locking.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._released = False
        # Backstop for interpreter exit with the slot still held.
        self._finalizer = weakref.finalize(self, _unlink_quietly, path)

    @classmethod
    def create(cls, text: str, *, directory: Path | None = None) -> TransientSlot:
        """Allocate a fresh slot and write ``text`` into it, flushed to disk."""
        try:
            fd, name = tempfile.mkstemp(prefix=SLOT_PREFIX, suffix=SLOT_SUFFIX, dir=directory)
        except OSError as exc:
            raise TransientStorageError(f"cannot allocate transient file: {exc.strerror or exc}") from exc

        slot = cls(Path(name))
        try:
            with os.fdopen(fd, "w", encoding="utf-8", errors=SLOT_ERRORS, newline="") as handle:
                handle.write(text)
                handle.flush()
                os.fsync(handle.fileno())
        except OSError as exc:
            slot.release()
            raise TransientStorageError(f"cannot write transient file: {exc.strerror or exc}") from exc
        except UnicodeError as exc:
            slot.release()
            raise TransientStorageError(f"cannot encode buffer: {exc}") from exc
        logger.debug("slot.create path={} chars={}", str(slot.path), len(text))
        return slot

    @property
    def released(self) -> bool:
        return self._released

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> str:
        """Return the slot content verbatim."""
        if self._released:
            raise TransientStorageError(f"transient file already released: {self.path}")
        try:
            with self.path.open("r", encoding="utf-8", errors=SLOT_ERRORS, newline="") as handle:
                return handle.read()
        except FileNotFoundError as exc:
            raise TransientStorageError(f"transient file disappeared: {self.path}") from exc
        except OSError as exc:
            raise TransientStorageError(f"cannot read transient file: {exc.strerror or exc}") from exc

    def read_partial(self) -> str | None:
        """Best-effort read used on failure paths."""
        try:
            return self.read()
        except TransientStorageError as exc:
            logger.debug("slot.read_partial.skip path={} reason={}", str(self.path), exc)
            return None

    def release(self) -> bool:
        """Delete the file. Returns True only for the call that released it."""
        if self._released:
            return False
        self._released = True
        self._finalizer.detach()
        try:
            self.path.unlink()
        except FileNotFoundError:
            logger.debug("slot.release.missing path={}", str(self.path))
        except OSError as exc:
            logger.warning("slot.release.error path={} error={}", str(self.path), exc)
        else:
            logger.debug("slot.release path={}", str(self.path))
        return True
