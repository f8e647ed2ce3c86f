"""Terminal color utilities for template error messages.

Provides ANSI color codes with automatic TTY detection and NO_COLOR support.
"""

from __future__ import annotations

import os
import sys
from typing import Literal

# ANSI color codes
_COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "bright_red": "\033[91m",
    "bright_blue": "\033[94m",
}

ColorName = Literal[
    "reset", "bold", "dim",
    "red", "green", "yellow", "cyan",
    "bright_red", "bright_blue",
]

def _should_use_colors() -> bool:
    """Check if terminal supports colors and user allows them.

    Respects:
        - NO_COLOR environment variable (https://no-color.org/)
        - FORCE_COLOR environment variable (overrides NO_COLOR)
        - sys.stdout.isatty() for TTY detection
    """
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


# Cache the color decision
_USE_COLORS = _should_use_colors()


def colorize(text: str, *colors: ColorName) -> str:
    """Apply ANSI color codes to text.

    Returns the text unchanged when colors are disabled or no known
    color name is given.

    Example:
        >>> colorize("Error", "red", "bold")
        '\\033[31m\\033[1mError\\033[0m'  # if colors supported
    """
    if not _USE_COLORS or not colors:
        return text

    prefix = "".join(_COLORS.get(color, "") for color in colors)
    if not prefix:
        return text

    return f"{prefix}{text}{_COLORS['reset']}"


def error_code(text: str) -> str:
    """Color text as an error code (bright red + bold)."""
    return colorize(text, "bright_red", "bold")


def location(text: str) -> str:
    """Color text as a file location (cyan)."""
    return colorize(text, "cyan")


def line_number(text: str) -> str:
    """Color text as a line number (yellow)."""
    return colorize(text, "yellow")


def error_line(text: str) -> str:
    """Color text as an error line (bright red)."""
    return colorize(text, "bright_red")


def hint(text: str) -> str:
    """Color text as a hint (green)."""
    return colorize(text, "green")


def dim_text(text: str) -> str:
    """Color text as dimmed/secondary (dim)."""
    return colorize(text, "dim")


def docs_hint(text: str) -> str:
    """Color text as an error code's fix-it hint (bright_blue)."""
    return colorize(text, "bright_blue")


def format_error_header(code: str | None, message: str) -> str:
    """Format error header with optional code.

    Example:
        >>> format_error_header("I-RUN-001", "Undefined name")
        '\\033[91m\\033[1mI-RUN-001\\033[0m: Undefined name'
    """
    if code:
        return f"{error_code(code)}: {message}"
    return message


def format_source_line(
    lineno: int,
    content: str,
    is_error: bool = False,
    show_marker: bool = True,
) -> str:
    """Format a source line with colors.

    Args:
        lineno: Line number
        content: Line content
        is_error: True if this is the error line
        show_marker: True to show '>' marker for error line

    Returns:
        Formatted line, e.g. ``'>  6 |   <p>#{fail()}</p>'``
    """
    marker = ">" if (is_error and show_marker) else " "
    num_colored = line_number(f"{marker}{lineno:>3}")

    if is_error:
        content_colored = error_line(content)
    else:
        content_colored = dim_text(content)

    return f"{num_colored} | {content_colored}"
