import importlib
import os
import shutil
import subprocess
import sys
from pathlib import Path

import pytest
from fake_assistant import write_assistant_script

from shai_bridge.exchange import ContextFlags, ExchangeConfig, ShellKind
from shai_bridge.shells import KeyChord, SnippetOptions, bridge_options, render_snippet, supported_shells


def test_every_named_shell_but_other_has_a_snippet() -> None:
    assert set(supported_shells()) == set(ShellKind) - {ShellKind.OTHER}
    for shell in supported_shells():
        snippet = render_snippet(shell)
        assert "@@" not in snippet
        assert f"--shell {shell.value}" in snippet
        assert "shai-bridge" in snippet


def test_other_shell_is_rejected() -> None:
    with pytest.raises(ValueError, match="other"):
        render_snippet(ShellKind.OTHER)


def test_bridge_options_reproduce_config() -> None:
    config = ExchangeConfig(
        model="m1",
        operating_system="Linux",
        binary="shai",
        context=ContextFlags(pwd=True, depth=3, environment=("HOME",), programs=("jq",)),
    )
    assert bridge_options(config) == [
        "--model",
        "m1",
        "--binary",
        "shai",
        "--operating-system",
        "Linux",
        "--pwd",
        "--depth",
        "3",
        "--environment",
        "HOME",
        "--programs",
        "jq",
    ]


def test_bash_snippet_binds_keys_and_quotes_values() -> None:
    options = SnippetOptions(
        config=ExchangeConfig(operating_system="Ubuntu 24.04"),
        ask_key=KeyChord.parse("alt+s"),
        explain_key=KeyChord.parse("ctrl+g"),
    )
    snippet = render_snippet(ShellKind.BASH, options)

    assert "bind -x '\"\\es\": _shai_ask'" in snippet
    assert "bind -x '\"\\C-g\": _shai_explain'" in snippet
    assert "--operating-system 'Ubuntu 24.04'" in snippet
    assert '"--buffer=$READLINE_LINE"' in snippet
    assert 'READLINE_POINT="${out%%"$nl"*}"' in snippet


def test_zsh_snippet_uses_zle_widgets() -> None:
    snippet = render_snippet(ShellKind.ZSH)

    assert "zle -N _shai_ask" in snippet
    assert "bindkey '^[s' _shai_ask" in snippet
    assert "bindkey '^[e' _shai_explain" in snippet
    assert '"--buffer=$BUFFER"' in snippet


def test_fish_snippet_escapes_single_quotes() -> None:
    options = SnippetOptions(config=ExchangeConfig(model="it's"))
    snippet = render_snippet(ShellKind.FISH, options)

    assert "--model 'it\\'s'" in snippet
    assert "bind \\es '__shai_exchange ask'" in snippet
    assert "commandline --replace" in snippet


def test_nushell_snippet_keybinding_records() -> None:
    options = SnippetOptions(explain_key=KeyChord.parse("ctrl+alt+e"))
    snippet = render_snippet(ShellKind.NUSHELL, options)

    assert "modifier: alt" in snippet
    assert "keycode: char_s" in snippet
    assert "modifier: control_alt" in snippet
    assert 'cmd: "__shai_exchange explain"' in snippet
    assert "^shai-bridge exchange" in snippet
    assert "try { do {" in snippet
    assert 'catch { {exit_code: 1, stdout: "", stderr: ""} }' in snippet


def test_powershell_snippet_doubles_single_quotes() -> None:
    options = SnippetOptions(config=ExchangeConfig(operating_system="Windows 'Home'"), bridge="C:\\Tools\\shai-bridge.exe")
    snippet = render_snippet(ShellKind.POWERSHELL, options)

    assert "& 'C:\\Tools\\shai-bridge.exe' exchange" in snippet
    assert "--operating-system 'Windows ''Home'''" in snippet
    assert "Set-PSReadLineKeyHandler -Chord 'Alt+s'" in snippet
    assert "Set-PSReadLineKeyHandler -Chord 'Alt+e'" in snippet
    assert '"--buffer-base64=$encoded"' in snippet
    assert '"--output-file=$reply"' in snippet
    assert "-join" not in snippet


def _write_bridge(directory: Path) -> Path:
    src = Path(importlib.import_module("shai_bridge.cli.app").__file__).resolve().parents[2]
    bridge = directory / "bridge"
    bridge.write_text(
        f"#!{sys.executable}\n"
        "import sys\n"
        f"sys.path.insert(0, {str(src)!r})\n"
        "from shai_bridge.cli.app import app\n"
        "app(prog_name='shai-bridge')\n",
        encoding="utf-8",
    )
    bridge.chmod(0o755)
    return bridge


def _run_bash_exchange(tmp_path: Path, assistant_body: str, line: str | bytes, point: int) -> bytes:
    slots = tmp_path / "slots"
    slots.mkdir()
    assistant = write_assistant_script(tmp_path, assistant_body)
    options = SnippetOptions(config=ExchangeConfig(binary=str(assistant)), bridge=str(_write_bridge(tmp_path)))
    snippet = tmp_path / "shai.bash"
    snippet.write_text(render_snippet(ShellKind.BASH, options), encoding="utf-8")
    env = {
        **os.environ,
        "LC_ALL": "C",
        "SHAI_TEMP_DIR": str(slots),
        "SHAI_ATTACH_TTY": "false",
        "SHAI_LOG_FILTER": "error",
    }
    script = (
        'source "$1" 2>/dev/null\n'
        'READLINE_LINE="$2"\n'
        'READLINE_POINT="$3"\n'
        "_shai_exchange ask\n"
        'printf "%s|%s" "$READLINE_POINT" "$READLINE_LINE"\n'
    )
    completed = subprocess.run(
        ["bash", "-c", script, "bash", str(snippet), line, str(point)],
        capture_output=True,
        env=env,
        cwd=tmp_path,
        timeout=60,
        check=True,
    )
    assert list(slots.iterdir()) == []
    return completed.stdout


bash_only = pytest.mark.skipif(shutil.which("bash") is None, reason="bash is not installed")


@bash_only
def test_bash_snippet_commits_answer_with_trailing_newline(tmp_path: Path) -> None:
    body = 'path.write_text("ls -la\\n", encoding="utf-8")\n'
    assert _run_bash_exchange(tmp_path, body, "list files", 0) == b"0|ls -la\n"


@bash_only
def test_bash_snippet_keeps_buffer_when_assistant_fails(tmp_path: Path) -> None:
    body = 'path.write_text("junk", encoding="utf-8")\nsys.exit(3)\n'
    assert _run_bash_exchange(tmp_path, body, "-rf /", 2) == b"2|-rf /"


@bash_only
def test_bash_snippet_round_trips_multibyte_text(tmp_path: Path) -> None:
    body = 'path.write_text(path.read_text(encoding="utf-8").upper(), encoding="utf-8")\n'
    assert _run_bash_exchange(tmp_path, body, "echo héllo", 4) == "4|ECHO HÉLLO".encode()


@bash_only
def test_bash_snippet_round_trips_undecodable_bytes(tmp_path: Path) -> None:
    assert _run_bash_exchange(tmp_path, "pass\n", b"echo caf\xe9", 9) == b"9|echo caf\xe9"
