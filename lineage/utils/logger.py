"""Logging setup and terminal-safe text handling.

Detects terminal encoding and provides ASCII alternatives for the glyphs the
report uses, and installs a Rich log handler for the CLI.
"""
import sys
import locale
import logging

from rich.console import Console
from rich.logging import RichHandler


# Unicode to ASCII mapping for terminals that can't render UTF-8
ICON_MAP = {
    '✓': '[OK]',
    '✗': '[FAIL]',
    '⚠': '[WARN]',
    '→': '->',
    '←': '<-',
    '↑': '^',
    '│': '|',
    '─': '-',
    '└': '+',
    '├': '+',
    '…': '...',
    '•': '*',
}


def detect_terminal_encoding() -> str:
    """Detect the terminal's encoding capability.

    Returns:
        str: Terminal encoding ('utf-8', 'cp1252', 'ascii', etc.)
    """
    if hasattr(sys.stdout, 'encoding') and sys.stdout.encoding:
        return sys.stdout.encoding.lower()

    try:
        return locale.getpreferredencoding().lower()
    except (LookupError, ValueError):
        return 'ascii'


def is_utf8_capable() -> bool:
    """Check if the terminal can handle UTF-8 Unicode characters."""
    return detect_terminal_encoding().replace('_', '-') in ('utf-8', 'utf8')


def sanitize_for_terminal(text: str) -> str:
    """Replace Unicode glyphs with ASCII equivalents if terminal doesn't support UTF-8.

    Args:
        text: Text potentially containing Unicode glyphs

    Returns:
        str: Sanitized text safe for current terminal
    """
    if is_utf8_capable():
        return text

    sanitized = text
    for unicode_char, ascii_replacement in ICON_MAP.items():
        sanitized = sanitized.replace(unicode_char, ascii_replacement)
    return sanitized


def configure_logging(level: str = "WARNING") -> None:
    """Route the package's loggers through a Rich handler on stderr.

    Args:
        level: Log level name, e.g. 'DEBUG' or 'INFO'
    """
    logger = logging.getLogger("lineage")
    logger.setLevel(level.upper())
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    handler = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
