"""HTTP and tool-dispatch surfaces for the backup engine."""

from .dispatch import ToolDispatcher

__all__ = ["ToolDispatcher"]
