"""Shell integration snippets.

Every snippet binds two keys to the same round trip: the shell passes its
buffer and cursor to ``shai-bridge exchange``; the bridge runs the exchange
and, only when it commits, prints ``<cursor>\\n<text>`` and exits 0. Empty
output leaves the shell buffer as it was.
"""

from __future__ import annotations

import json
import shlex
from collections.abc import Callable
from dataclasses import dataclass, field
from string import Template

from shai_bridge.exchange.types import ExchangeConfig, ShellKind
from shai_bridge.shells.keys import KeyChord

DEFAULT_BRIDGE = "shai-bridge"
DEFAULT_ASK_KEY = "alt+s"
DEFAULT_EXPLAIN_KEY = "alt+e"


class _SnippetTemplate(Template):
    delimiter = "@@"


@dataclass(frozen=True)
class SnippetOptions:
    """Values baked into a rendered snippet."""

    config: ExchangeConfig = field(default_factory=ExchangeConfig)
    bridge: str = DEFAULT_BRIDGE
    ask_key: KeyChord = field(default_factory=lambda: KeyChord.parse(DEFAULT_ASK_KEY))
    explain_key: KeyChord = field(default_factory=lambda: KeyChord.parse(DEFAULT_EXPLAIN_KEY))


def bridge_options(config: ExchangeConfig) -> list[str]:
    """Bridge command-line options reproducing ``config``, minus the shell hint."""
    options = ["--model", config.model, "--binary", config.binary]
    if config.operating_system:
        options += ["--operating-system", config.operating_system]
    context = config.context
    if context.pwd:
        options.append("--pwd")
    if context.depth is not None:
        options += ["--depth", str(context.depth)]
    for name in context.environment:
        options += ["--environment", name]
    for program in context.programs:
        options += ["--programs", program]
    return options


def _fish_quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _nu_quote(value: str) -> str:
    if "'" not in value:
        return f"'{value}'"
    return json.dumps(value)


def _pwsh_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _option_text(config: ExchangeConfig, quote: Callable[[str], str]) -> str:
    return "".join(f" {token if token.startswith('--') else quote(token)}" for token in bridge_options(config))


_BASH = _SnippetTemplate(
    r"""# shai-bridge integration for bash
_shai_exchange() {
    local out nl=$'\n'
    out="$(command @@bridge exchange "$1" --shell bash --cursor "$READLINE_POINT"@@options "--buffer=$READLINE_LINE" && printf x)" || return 0
    out="${out%x}"
    [[ -n "$out" ]] || return 0
    READLINE_LINE="${out#*"$nl"}"
    READLINE_POINT="${out%%"$nl"*}"
}
_shai_ask() { _shai_exchange ask; }
_shai_explain() { _shai_exchange explain; }
bind -x '"@@ask_key": _shai_ask'
bind -x '"@@explain_key": _shai_explain'
"""
)

_ZSH = _SnippetTemplate(
    r"""# shai-bridge integration for zsh
_shai_exchange() {
    local out nl=$'\n'
    out="$(command @@bridge exchange "$1" --shell zsh --cursor "$CURSOR"@@options "--buffer=$BUFFER" </dev/tty && printf x)"
    if [[ $? -eq 0 && -n "${out%x}" ]]; then
        out="${out%x}"
        BUFFER="${out#*$nl}"
        CURSOR="${out%%$nl*}"
    fi
    zle reset-prompt
}
_shai_ask() { _shai_exchange ask; }
_shai_explain() { _shai_exchange explain; }
zle -N _shai_ask
zle -N _shai_explain
bindkey '@@ask_key' _shai_ask
bindkey '@@explain_key' _shai_explain
"""
)

_FISH = _SnippetTemplate(
    r"""# shai-bridge integration for fish
function __shai_exchange --argument-names mode
    set -l out (command @@bridge exchange $mode --shell fish --cursor (commandline --cursor)@@options --buffer=(commandline | string collect --allow-empty) | string collect -N)
    if test -n "$out"
        commandline --replace -- (string replace -r '^[^\n]*\n' '' -- $out | string collect -N --allow-empty)
        commandline --cursor -- (string match -r '^[^\n]*' -- $out)
    end
    commandline -f repaint
end
bind @@ask_key '__shai_exchange ask'
bind @@explain_key '__shai_exchange explain'
"""
)

_NUSHELL = _SnippetTemplate(
    r"""# shai-bridge integration for nushell
def --env __shai_exchange [mode: string] {
    let buffer = (commandline)
    let result = (try { do { ^@@bridge exchange $mode --shell nushell --cursor (commandline get-cursor)@@options $"--buffer=($buffer)" } | complete } catch { {exit_code: 1, stdout: "", stderr: ""} })
    if ($result.stderr | is-not-empty) { print -e $result.stderr }
    if $result.exit_code == 0 and ($result.stdout | is-not-empty) {
        let parts = ($result.stdout | split row -n 2 (char newline))
        let text = (if ($parts | length) > 1 { $parts | get 1 } else { "" })
        commandline edit --replace $text
        commandline set-cursor ($parts | first | into int)
    }
}
$env.config.keybindings = ($env.config.keybindings | append [
    {
        name: shai_ask
        modifier: @@ask_modifier
        keycode: @@ask_keycode
        mode: [emacs vi_normal vi_insert]
        event: { send: executehostcommand, cmd: "__shai_exchange ask" }
    }
    {
        name: shai_explain
        modifier: @@explain_modifier
        keycode: @@explain_keycode
        mode: [emacs vi_normal vi_insert]
        event: { send: executehostcommand, cmd: "__shai_exchange explain" }
    }
])
"""
)

_POWERSHELL = _SnippetTemplate(
    r"""# shai-bridge integration for PowerShell (PSReadLine)
function Invoke-ShaiExchange {
    param([string]$Mode)
    $line = $null
    $cursor = $null
    [Microsoft.PowerShell.PSConsoleReadLine]::GetBufferState([ref]$line, [ref]$cursor)
    $encoded = [Convert]::ToBase64String([Text.Encoding]::UTF8.GetBytes($line))
    $reply = [System.IO.Path]::GetTempFileName()
    try {
        & @@bridge exchange $Mode --shell powershell --cursor $cursor@@options "--buffer-base64=$encoded" "--output-file=$reply"
        $out = [System.IO.File]::ReadAllText($reply, [Text.Encoding]::UTF8)
        if ($LASTEXITCODE -eq 0 -and $out) {
            $parts = $out -split "`n", 2
            $text = if ($parts.Count -gt 1) { $parts[1] } else { '' }
            [Microsoft.PowerShell.PSConsoleReadLine]::Replace(0, $line.Length, $text)
            [Microsoft.PowerShell.PSConsoleReadLine]::SetCursorPosition([int]$parts[0])
        }
    } finally {
        Remove-Item -LiteralPath $reply -ErrorAction SilentlyContinue
    }
    [Microsoft.PowerShell.PSConsoleReadLine]::InvokePrompt()
}
Set-PSReadLineKeyHandler -Chord '@@ask_key' -ScriptBlock { Invoke-ShaiExchange -Mode ask }
Set-PSReadLineKeyHandler -Chord '@@explain_key' -ScriptBlock { Invoke-ShaiExchange -Mode explain }
"""
)


def _render_bash(options: SnippetOptions) -> str:
    return _BASH.substitute(
        bridge=shlex.quote(options.bridge),
        options=_option_text(options.config, shlex.quote),
        ask_key=options.ask_key.bash(),
        explain_key=options.explain_key.bash(),
    )


def _render_zsh(options: SnippetOptions) -> str:
    return _ZSH.substitute(
        bridge=shlex.quote(options.bridge),
        options=_option_text(options.config, shlex.quote),
        ask_key=options.ask_key.zsh(),
        explain_key=options.explain_key.zsh(),
    )


def _render_fish(options: SnippetOptions) -> str:
    return _FISH.substitute(
        bridge=_fish_quote(options.bridge),
        options=_option_text(options.config, _fish_quote),
        ask_key=options.ask_key.fish(),
        explain_key=options.explain_key.fish(),
    )


def _render_nushell(options: SnippetOptions) -> str:
    ask_modifier, ask_keycode = options.ask_key.nushell()
    explain_modifier, explain_keycode = options.explain_key.nushell()
    return _NUSHELL.substitute(
        bridge=options.bridge if "'" not in options.bridge and " " not in options.bridge else _nu_quote(options.bridge),
        options=_option_text(options.config, _nu_quote),
        ask_modifier=ask_modifier,
        ask_keycode=ask_keycode,
        explain_modifier=explain_modifier,
        explain_keycode=explain_keycode,
    )


def _render_powershell(options: SnippetOptions) -> str:
    return _POWERSHELL.substitute(
        bridge=_pwsh_quote(options.bridge),
        options=_option_text(options.config, _pwsh_quote),
        ask_key=options.ask_key.powershell(),
        explain_key=options.explain_key.powershell(),
    )


_RENDERERS: dict[ShellKind, Callable[[SnippetOptions], str]] = {
    ShellKind.BASH: _render_bash,
    ShellKind.ZSH: _render_zsh,
    ShellKind.FISH: _render_fish,
    ShellKind.NUSHELL: _render_nushell,
    ShellKind.POWERSHELL: _render_powershell,
}


def supported_shells() -> list[ShellKind]:
    return list(_RENDERERS)


def render_snippet(shell: ShellKind, options: SnippetOptions | None = None) -> str:
    """Return the integration snippet for ``shell``."""
    renderer = _RENDERERS.get(shell)
    if renderer is None:
        raise ValueError(f"no integration snippet for shell {shell.value!r}")
    return renderer(options or SnippetOptions())
