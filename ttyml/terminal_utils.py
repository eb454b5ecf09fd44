"""
Terminal Utilities Module.

Provides:
- Terminal size detection for the Tty-Columns / Tty-Lines request headers
- Line input through the readline line editor where the platform has one
- The standard error console used for user-facing diagnostics
"""

import logging
import os
import re
import sys
from dataclasses import dataclass
from typing import Final, Optional, TextIO

from rich.console import Console

logger = logging.getLogger(__name__)

# readline hooks into input() for line editing and history; it is missing
# on some platforms (e.g. Windows without pyreadline)
try:
    import readline  # noqa: F401

    HAS_READLINE = True
except ImportError:
    HAS_READLINE = False

_SGR_SEQUENCE_RE: Final[re.Pattern[str]] = re.compile(r"\x1b\[[0-9;]*m")

# readline counts every prompt character towards the cursor column unless
# non-printing runs are bracketed by these markers
RL_PROMPT_START_IGNORE: Final[str] = "\x01"
RL_PROMPT_END_IGNORE: Final[str] = "\x02"


@dataclass(frozen=True)
class TerminalSize:
    columns: int
    lines: int


def get_terminal_size(stream: Optional[TextIO] = None) -> Optional[TerminalSize]:
    """
    Query the size of the terminal attached to stream (stdout by default).

    Best-effort: returns None when stream is not a terminal or the size
    cannot be determined. Zero dimensions are reported as-is; callers decide
    whether to use them.
    """
    if stream is None:
        stream = sys.stdout
    try:
        size = os.get_terminal_size(stream.fileno())
    except (AttributeError, OSError, ValueError) as e:
        logger.debug(f"Terminal size unavailable: {e}")
        return None
    return TerminalSize(columns=size.columns, lines=size.lines)


def read_line(prompt: str) -> Optional[str]:
    """
    Read one line from the terminal, displaying prompt.

    The prompt may contain ANSI escape sequences. They reach the line editor
    intact, bracketed as zero-width when readline is driving a terminal.

    Returns:
        The line without its trailing newline, or None at end of input
    """
    if HAS_READLINE and sys.stdin.isatty():
        prompt = readline_prompt(prompt)
    try:
        return input(prompt)
    except EOFError:
        logger.debug("End of input while reading a prompt")
        return None


def readline_prompt(prompt: str) -> str:
    """Mark escape sequences in prompt as zero-width for readline."""
    return _SGR_SEQUENCE_RE.sub(
        lambda m: f"{RL_PROMPT_START_IGNORE}{m.group(0)}{RL_PROMPT_END_IGNORE}",
        prompt,
    )


def make_error_console() -> Console:
    """
    Console for one-line diagnostics on standard error.

    Markup, emoji and highlighting are off so server-supplied text such as
    filter messages is printed verbatim.
    """
    return Console(stderr=True, highlight=False, emoji=False, soft_wrap=True)
