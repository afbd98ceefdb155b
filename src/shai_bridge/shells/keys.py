"""Key chord notation shared by every shell integration."""

from __future__ import annotations

from dataclasses import dataclass

_MODIFIER_ALIASES = {
    "alt": "alt",
    "meta": "alt",
    "esc": "alt",
    "ctrl": "ctrl",
    "control": "ctrl",
}


@dataclass(frozen=True)
class KeyChord:
    """A single key with optional ctrl/alt modifiers, e.g. ``alt+s``."""

    key: str
    ctrl: bool = False
    alt: bool = False

    @classmethod
    def parse(cls, raw: str) -> KeyChord:
        parts = [part.strip().lower() for part in raw.split("+")]
        if not parts or any(not part for part in parts):
            raise ValueError(f"invalid key chord: {raw!r}")

        *modifiers, key = parts
        if len(key) != 1 or not (key.isalnum() or key in "[]\\/,.;'-=`"):
            raise ValueError(f"key chord must end in a single character: {raw!r}")

        ctrl = alt = False
        for modifier in modifiers:
            resolved = _MODIFIER_ALIASES.get(modifier)
            if resolved is None:
                raise ValueError(f"unknown modifier {modifier!r} in {raw!r}")
            if resolved == "ctrl":
                ctrl = True
            else:
                alt = True
        if not (ctrl or alt):
            raise ValueError(f"key chord needs ctrl or alt: {raw!r}")
        if ctrl and not key.isalpha():
            raise ValueError(f"ctrl chords need a letter: {raw!r}")
        return cls(key=key, ctrl=ctrl, alt=alt)

    def __str__(self) -> str:
        modifiers = [name for name, on in (("ctrl", self.ctrl), ("alt", self.alt)) if on]
        return "+".join([*modifiers, self.key])

    def bash(self) -> str:
        """readline ``bind -x`` key sequence."""
        key = f"\\C-{self.key}" if self.ctrl else self.key
        return f"\\e{key}" if self.alt else key

    def zsh(self) -> str:
        """``bindkey`` caret notation."""
        key = f"^{self.key.upper()}" if self.ctrl else self.key
        return f"^[{key}" if self.alt else key

    def fish(self) -> str:
        """``bind`` escape notation."""
        key = f"\\c{self.key}" if self.ctrl else self.key
        return f"\\e{key}" if self.alt else key

    def nushell(self) -> tuple[str, str]:
        """``(modifier, keycode)`` for a reedline keybinding record."""
        if self.ctrl and self.alt:
            modifier = "control_alt"
        elif self.ctrl:
            modifier = "control"
        else:
            modifier = "alt"
        return modifier, f"char_{self.key}"

    def powershell(self) -> str:
        """PSReadLine ``-Chord`` notation."""
        modifiers = [name for name, on in (("Ctrl", self.ctrl), ("Alt", self.alt)) if on]
        return "+".join([*modifiers, self.key])

    def prompt_toolkit(self) -> tuple[str, ...]:
        """Key sequence for ``KeyBindings.add``."""
        key = f"c-{self.key}" if self.ctrl else self.key
        return ("escape", key) if self.alt else (key,)
