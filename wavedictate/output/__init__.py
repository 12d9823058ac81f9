"""Output adapters: clipboard and paste at cursor."""

from .clipboard import ClipboardWriter, CursorPaster

__all__ = ["ClipboardWriter", "CursorPaster"]
