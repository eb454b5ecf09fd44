"""
Centralized error classification for TTYML.

Provides:
- ErrorCategory enum for classifying failures
- TtymlError exception hierarchy, one subclass per category
- RECOVERABLE_CATEGORIES table deciding which failures the session loop retries
- DeferredError slot for errors raised inside transport and parser callbacks

DESIGN NOTES:
- Recoverable errors abort only the current request; the session loop re-reads
  the form and tries again. Everything else is fatal at the entry point.
- The first error raised inside a callback wins; later callbacks become no-ops
  until the error is re-raised at the post-transport checkpoint.

DO NOT:
- Hardcode category checks elsewhere - use is_recoverable_error()
- Swallow exceptions silently - capture them in a DeferredError or propagate
"""

import logging
from enum import Enum, auto
from typing import Any, Callable, Dict, Final, Optional

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """
    Classification of error kinds.

    Each category maps to a class of failure with its own recovery profile.
    """

    USAGE = auto()  # Bad command line arguments or configuration
    TRANSPORT = auto()  # Request failed to complete
    BAD_STATUS = auto()  # Status line unparseable
    UNSUPPORTED_MEDIA_TYPE = auto()  # Server returned a non-TTYML body
    MALFORMED_DOCUMENT = auto()  # XML error or missing required attribute
    BAD_ATTRIBUTE = auto()  # bold/fg/bg with a non-conforming value
    LOGIC = auto()  # Internal invariant violation
    IO = auto()  # Write to standard output failed


ERROR_DESCRIPTIONS: Final[Dict[ErrorCategory, str]] = {
    ErrorCategory.USAGE: "Invalid command line usage",
    ErrorCategory.TRANSPORT: "HTTP request failed",
    ErrorCategory.BAD_STATUS: "Invalid HTTP status line",
    ErrorCategory.UNSUPPORTED_MEDIA_TYPE: "Server returned an unsupported media type",
    ErrorCategory.MALFORMED_DOCUMENT: "Malformed TTYML document",
    ErrorCategory.BAD_ATTRIBUTE: "Invalid style attribute value",
    ErrorCategory.LOGIC: "Internal error",
    ErrorCategory.IO: "Output error",
}

# Categories that abort only the current request. The session loop reports
# them and lets the user re-enter the form.
RECOVERABLE_CATEGORIES: Final[frozenset[ErrorCategory]] = frozenset(
    {
        ErrorCategory.TRANSPORT,
        ErrorCategory.BAD_STATUS,
        ErrorCategory.UNSUPPORTED_MEDIA_TYPE,
        ErrorCategory.MALFORMED_DOCUMENT,
        ErrorCategory.BAD_ATTRIBUTE,
    }
)


def is_recoverable_error(category: ErrorCategory) -> bool:
    """
    Check if an error category represents a recoverable error.

    Uses centralized RECOVERABLE_CATEGORIES - DO NOT hardcode checks.
    """
    return category in RECOVERABLE_CATEGORIES


def get_error_description(category: ErrorCategory) -> str:
    """Get a human-readable description for an error category."""
    return ERROR_DESCRIPTIONS.get(category, "Unknown error")


class TtymlError(Exception):
    """Base class for all errors raised by the TTYML client."""

    category: ErrorCategory = ErrorCategory.LOGIC

    @property
    def recoverable(self) -> bool:
        return is_recoverable_error(self.category)


class UsageError(TtymlError):
    category = ErrorCategory.USAGE


class TransportError(TtymlError):
    category = ErrorCategory.TRANSPORT


class BadStatusError(TtymlError):
    category = ErrorCategory.BAD_STATUS


class UnsupportedMediaTypeError(TtymlError):
    category = ErrorCategory.UNSUPPORTED_MEDIA_TYPE


class MalformedDocumentError(TtymlError):
    category = ErrorCategory.MALFORMED_DOCUMENT


class BadAttributeError(TtymlError):
    category = ErrorCategory.BAD_ATTRIBUTE


class TtymlLogicError(TtymlError):
    category = ErrorCategory.LOGIC


class OutputError(TtymlError):
    category = ErrorCategory.IO


class DeferredError:
    """
    Holds at most one error raised from inside a callback.

    The transport and the XML producer call back into the context but do not
    expect those callbacks to raise. Callbacks run through call(); the first
    exception is captured, every later call is skipped, and the owner
    re-raises the captured error with raise_if_set() once control returns.
    """

    def __init__(self) -> None:
        self._error: Optional[BaseException] = None

    @property
    def is_set(self) -> bool:
        return self._error is not None

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def capture(self, error: BaseException) -> None:
        """Store error unless an earlier one is already held (first wins)."""
        if self._error is None:
            logger.debug(f"Deferring {type(error).__name__}: {error}")
            self._error = error
        else:
            logger.debug(
                f"Dropping {type(error).__name__} after earlier "
                f"{type(self._error).__name__}"
            )

    def call(self, func: Callable[..., Any], *args: Any) -> bool:
        """
        Run func(*args), capturing any exception it raises.

        Returns:
            False if an error is (now) held, True if func ran cleanly
        """
        if self._error is not None:
            return False
        try:
            func(*args)
        except Exception as e:
            self.capture(e)
            return False
        return True

    def raise_if_set(self) -> None:
        if self._error is not None:
            raise self._error
