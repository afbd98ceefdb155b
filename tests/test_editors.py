import importlib
from pathlib import Path
from types import SimpleNamespace

import pytest
from fake_assistant import ScriptedRunner
from prompt_toolkit.buffer import Buffer as PromptBuffer
from prompt_toolkit.document import Document
from prompt_toolkit.key_binding import KeyBindings

from shai_bridge.editors.memory import MemoryLineEditor
from shai_bridge.editors.prompt import PromptToolkitLineEditor, install_exchange_bindings
from shai_bridge.exchange import Buffer, BufferExchangeCoordinator, ExchangeConfig, ExchangeReport, Mode
from shai_bridge.shells.keys import KeyChord

prompt_module = importlib.import_module("shai_bridge.editors.prompt")


def test_memory_editor_defaults_cursor_to_end() -> None:
    editor = MemoryLineEditor("git log")
    assert editor.snapshot() == Buffer("git log", 7)


def test_memory_editor_clamps_out_of_range_cursor() -> None:
    assert MemoryLineEditor("ls", cursor=99).snapshot() == Buffer("ls", 2)
    assert MemoryLineEditor("ls", cursor=-4).snapshot() == Buffer("ls", 0)


def test_buffer_rejects_cursor_outside_text() -> None:
    with pytest.raises(ValueError, match="outside"):
        Buffer("ls", 3)


def test_prompt_toolkit_editor_round_trip() -> None:
    prompt_buffer = PromptBuffer(document=Document("list files", 4))
    editor = PromptToolkitLineEditor(prompt_buffer)

    assert editor.snapshot() == Buffer("list files", 4)
    editor.replace(Buffer("ls -la", 2))
    assert prompt_buffer.text == "ls -la"
    assert prompt_buffer.cursor_position == 2


def test_prompt_toolkit_buffer_takes_part_in_exchange(tmp_path: Path) -> None:
    prompt_buffer = PromptBuffer(document=Document("show disk usage", 15))
    coordinator = BufferExchangeCoordinator(
        PromptToolkitLineEditor(prompt_buffer),
        runner=ScriptedRunner(write="df -h"),
        temp_dir=tmp_path,
    )

    report = coordinator.exchange(Mode.ASK, ExchangeConfig())

    assert report.committed is True
    assert prompt_buffer.text == "df -h"
    assert prompt_buffer.cursor_position == 5
    assert list(tmp_path.iterdir()) == []


def test_install_exchange_bindings_registers_both_keys() -> None:
    kb = KeyBindings()
    install_exchange_bindings(
        kb,
        ExchangeConfig(),
        ask_key=KeyChord.parse("alt+s"),
        explain_key=KeyChord.parse("ctrl+g"),
    )

    keys = [tuple(binding.keys) for binding in kb.bindings]
    assert ("escape", "s") in keys
    assert ("c-g",) in keys


def _handler_for(kb: KeyBindings, keys: tuple[str, ...]):
    return next(binding.handler for binding in kb.bindings if tuple(binding.keys) == keys)


def test_ask_key_exchanges_the_focused_buffer(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(prompt_module, "run_in_terminal", lambda func: func())
    runner = ScriptedRunner(write="du -sh .")
    reports: list[ExchangeReport] = []
    kb = KeyBindings()
    install_exchange_bindings(
        kb,
        ExchangeConfig(),
        ask_key=KeyChord.parse("alt+s"),
        explain_key=KeyChord.parse("ctrl+g"),
        runner=runner,
        temp_dir=tmp_path,
        on_report=reports.append,
    )
    prompt_buffer = PromptBuffer(document=Document("disk usage", 4))

    _handler_for(kb, ("escape", "s"))(SimpleNamespace(current_buffer=prompt_buffer))

    assert prompt_buffer.text == "du -sh ."
    assert prompt_buffer.cursor_position == 4
    assert runner.calls[0][1] == "ask"
    assert reports[0].committed is True
    assert list(tmp_path.iterdir()) == []


def test_explain_key_failure_keeps_the_buffer(monkeypatch, tmp_path: Path) -> None:
    deferred: list = []
    monkeypatch.setattr(prompt_module, "run_in_terminal", deferred.append)
    runner = ScriptedRunner(write="junk", returncode=2)
    reports: list[ExchangeReport] = []
    kb = KeyBindings()
    install_exchange_bindings(
        kb,
        ExchangeConfig(),
        ask_key=KeyChord.parse("alt+s"),
        explain_key=KeyChord.parse("ctrl+g"),
        runner=runner,
        temp_dir=tmp_path,
        on_report=reports.append,
    )
    prompt_buffer = PromptBuffer(document=Document("tar xzf a.tgz", 3))

    _handler_for(kb, ("c-g",))(SimpleNamespace(current_buffer=prompt_buffer))
    assert runner.calls == []
    deferred[0]()

    assert runner.calls[0][1] == "explain"
    assert prompt_buffer.text == "tar xzf a.tgz"
    assert prompt_buffer.cursor_position == 3
    assert reports[0].committed is False
    assert reports[0].diagnostic == "assistant exited with status 2"
    assert list(tmp_path.iterdir()) == []
