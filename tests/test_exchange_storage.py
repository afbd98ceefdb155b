import gc
from pathlib import Path

import pytest

from shai_bridge.exchange import TransientSlot, TransientStorageError


def test_create_writes_text_verbatim(tmp_path: Path) -> None:
    slot = TransientSlot.create("echo 'a'\r\nprintf é", directory=tmp_path)

    assert slot.path.parent == tmp_path
    assert slot.path.name.startswith("shai-")
    assert slot.path.read_bytes() == "echo 'a'\r\nprintf é".encode()
    assert slot.read() == "echo 'a'\r\nprintf é"
    slot.release()


def test_release_is_idempotent(tmp_path: Path) -> None:
    slot = TransientSlot.create("ls", directory=tmp_path)

    assert slot.release() is True
    assert slot.release() is False
    assert not slot.path.exists()


def test_release_tolerates_already_deleted_file(tmp_path: Path) -> None:
    slot = TransientSlot.create("ls", directory=tmp_path)
    slot.path.unlink()

    assert slot.release() is True
    assert slot.released is True


def test_read_after_release_is_an_error(tmp_path: Path) -> None:
    slot = TransientSlot.create("ls", directory=tmp_path)
    slot.release()

    with pytest.raises(TransientStorageError, match="released"):
        slot.read()


def test_undecodable_bytes_round_trip(tmp_path: Path) -> None:
    slot = TransientSlot.create("echo caf\udce9", directory=tmp_path)
    try:
        assert slot.path.read_bytes() == b"echo caf\xe9"
        slot.path.write_bytes(b"\xff\xfe ls")
        assert slot.read() == "\udcff\udcfe ls"
    finally:
        slot.release()


def test_unencodable_text_is_a_storage_error(tmp_path: Path) -> None:
    with pytest.raises(TransientStorageError, match="encode"):
        TransientSlot.create("ls \ud800", directory=tmp_path)

    assert list(tmp_path.iterdir()) == []


def test_allocation_failure(tmp_path: Path) -> None:
    with pytest.raises(TransientStorageError, match="allocate"):
        TransientSlot.create("ls", directory=tmp_path / "missing")


def test_slot_names_are_unique(tmp_path: Path) -> None:
    slots = [TransientSlot.create("", directory=tmp_path) for _ in range(100)]
    try:
        assert len({slot.path for slot in slots}) == 100
    finally:
        for slot in slots:
            slot.release()


def test_forgotten_slot_is_removed_by_finalizer(tmp_path: Path) -> None:
    path = TransientSlot.create("ls", directory=tmp_path).path
    gc.collect()

    assert not path.exists()
