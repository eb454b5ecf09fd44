"""
Styled terminal output for TTYML documents.

Provides:
- Style: foreground/background color and bold flag, neutral default (9, 9, off)
- parse_color() / parse_bold() / overlay_style() for <style> attributes
- transition_sequence(): the minimal ANSI CSI sequence between two styles
- Writer with its style stack, plus the two sinks: StdoutWriter and PromptWriter

Color values 0-9 map to SGR 30-39 (foreground) and 40-49 (background);
9 is the terminal default. Values above 9 are accepted but never emitted.
"""

import logging
import sys
from dataclasses import dataclass
from typing import Final, List, Mapping, Optional, TextIO

from .error_handler import BadAttributeError, OutputError, TtymlLogicError

logger = logging.getLogger(__name__)

ESC: Final[str] = "\033"
DEFAULT_COLOR: Final[int] = 9
MAX_COLOR: Final[int] = 9
SGR_BOLD: Final[str] = "1"
SGR_NORMAL_INTENSITY: Final[str] = "22"
SGR_FOREGROUND_BASE: Final[int] = 30
SGR_BACKGROUND_BASE: Final[int] = 40


@dataclass(frozen=True)
class Style:
    """Text attributes in effect for a span of characters."""

    fg: int = DEFAULT_COLOR
    bg: int = DEFAULT_COLOR
    bold: bool = False


NEUTRAL_STYLE: Final[Style] = Style()


def parse_color(value: str, attribute: str = "color") -> int:
    """
    Parse a color attribute: "default" or a non-negative decimal integer.

    Raises:
        BadAttributeError: for anything else
    """
    if value == "default":
        return DEFAULT_COLOR
    if not value or not value.isascii() or not value.isdigit():
        raise BadAttributeError(f"invalid value for '{attribute}' attribute: '{value}'")
    return int(value)


def parse_bold(value: str) -> bool:
    if value == "1":
        return True
    if value == "0":
        return False
    raise BadAttributeError(f"invalid value for 'bold' attribute: '{value}'")


def overlay_style(base: Style, attrs: Mapping[str, str]) -> Style:
    """
    Derive a new style from base and the optional fg/bg/bold attributes.

    Absent attributes leave the corresponding field unchanged.
    """
    fg = parse_color(attrs["fg"], "fg") if "fg" in attrs else base.fg
    bg = parse_color(attrs["bg"], "bg") if "bg" in attrs else base.bg
    bold = parse_bold(attrs["bold"]) if "bold" in attrs else base.bold
    return Style(fg=fg, bg=bg, bold=bold)


def transition_sequence(old: Style, new: Style) -> str:
    """
    Return the escape sequence that switches the terminal from old to new.

    Equal styles need no sequence. Returning to the neutral style is a plain
    reset (ESC [ m). Otherwise only the attributes that changed are emitted.
    """
    if old == new:
        return ""

    if new == NEUTRAL_STYLE:
        return f"{ESC}[m"

    params: List[str] = []
    if old.bold != new.bold:
        params.append(SGR_BOLD if new.bold else SGR_NORMAL_INTENSITY)
    if old.fg != new.fg and new.fg <= MAX_COLOR:
        params.append(str(SGR_FOREGROUND_BASE + new.fg))
    if old.bg != new.bg and new.bg <= MAX_COLOR:
        params.append(str(SGR_BACKGROUND_BASE + new.bg))

    return f"{ESC}[{';'.join(params)}m"


class Writer:
    """
    Output sink with a stack of styles.

    The bottom of the stack is always the neutral style. Subclasses only
    decide where text goes (put); style bookkeeping is shared.
    """

    def __init__(self) -> None:
        self.style_stack: List[Style] = [NEUTRAL_STYLE]

    @property
    def current_style(self) -> Style:
        return self.style_stack[-1]

    def put(self, text: str) -> None:
        raise NotImplementedError("Subclasses must implement put()")

    def transition(self, old: Style, new: Style) -> None:
        sequence = transition_sequence(old, new)
        if sequence:
            self.put(sequence)

    def push_style(self, style: Style) -> None:
        self.transition(self.current_style, style)
        self.style_stack.append(style)

    def pop_style(self) -> None:
        if len(self.style_stack) < 2:
            # The neutral base style is never popped
            raise TtymlLogicError("style stack underflow")
        self.transition(self.style_stack[-1], self.style_stack[-2])
        self.style_stack.pop()

    @property
    def is_balanced(self) -> bool:
        return len(self.style_stack) == 1


class StdoutWriter(Writer):
    """Writes text and escape sequences straight to the terminal."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        super().__init__()
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        if self._stream is not None:
            return self._stream
        return sys.stdout

    def put(self, text: str) -> None:
        write_stdout(self.stream, text)


class PromptWriter(Writer):
    """Accumulates text and escape sequences into a caller-owned buffer."""

    def __init__(self, buffer: List[str]) -> None:
        super().__init__()
        self.buffer = buffer

    def put(self, text: str) -> None:
        self.buffer.append(text)


def write_stdout(stream: TextIO, text: str) -> None:
    """Write to standard output, turning OS failures into OutputError."""
    try:
        stream.write(text)
    except OSError as e:
        raise OutputError("write to standard output failed") from e
