"""Host line editors."""

from shai_bridge.editors.base import LineEditor
from shai_bridge.editors.memory import MemoryLineEditor

__all__ = ["LineEditor", "MemoryLineEditor"]
