"""Terminal-safe Console wrapper for the Rich library.

Report text contains tree glyphs and arrows; on terminals that can't render
UTF-8 they are swapped for ASCII before printing.
"""
from typing import Any

from rich.console import Console

from .logger import sanitize_for_terminal, is_utf8_capable


class SafeConsole(Console):
    """Console that sanitizes plain-string output on non-UTF-8 terminals.

    Rich renderables (tables, trees) are passed through; their box drawing
    falls back on its own when ``legacy_windows`` is set.
    """

    def __init__(self, *args, **kwargs):
        self._needs_sanitization = not is_utf8_capable()
        if self._needs_sanitization:
            kwargs.setdefault('legacy_windows', True)
        super().__init__(*args, **kwargs)

    def print(self, *objects: Any, **kwargs) -> None:
        if self._needs_sanitization:
            objects = tuple(sanitize_for_terminal(obj) if isinstance(obj, str) else obj
                            for obj in objects)
        super().print(*objects, **kwargs)
