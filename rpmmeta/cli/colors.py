"""Color output support for rpmmeta CLI.

Color palette:
  - Red: errors
  - Green: success
  - Bold: counts
"""

import os
import sys

# ANSI color codes
_COLORS = {
    'reset': '\033[0m',
    'bold': '\033[1m',
    'red': '\033[91m',
    'green': '\033[92m',
}

# Global state
_colors_enabled = True


def init(nocolor: bool = False, stream=None):
    """Initialize color support.

    Args:
        nocolor: If True, disable colors unconditionally
        stream: Stream checked for a terminal (default: stdout)
    """
    global _colors_enabled

    if stream is None:
        stream = sys.stdout

    if nocolor:
        _colors_enabled = False
    elif os.environ.get('NO_COLOR'):
        # Respect NO_COLOR environment variable (https://no-color.org/)
        _colors_enabled = False
    elif not stream.isatty():
        _colors_enabled = False
    else:
        _colors_enabled = True


def _wrap(text: str, color: str) -> str:
    if not _colors_enabled:
        return text
    return f"{_COLORS.get(color, '')}{text}{_COLORS['reset']}"


def error(text: str) -> str:
    """Format text as error (red)."""
    return _wrap(text, 'red')


def success(text: str) -> str:
    """Format text as success (green)."""
    return _wrap(text, 'green')


def bold(text: str) -> str:
    return _wrap(text, 'bold')


def count(n: int) -> str:
    """Format a count number."""
    return bold(str(n))
