"""Shell integration snippets."""

from shai_bridge.shells.keys import KeyChord
from shai_bridge.shells.snippets import SnippetOptions, bridge_options, render_snippet, supported_shells

__all__ = ["KeyChord", "SnippetOptions", "bridge_options", "render_snippet", "supported_shells"]
