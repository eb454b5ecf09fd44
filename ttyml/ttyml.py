"""
TTYML command line client.

Fetches a TTYML document, renders its lines on standard output, reads the
form prompts from the terminal and submits them, hopping from document to
document until a document has no prompts or input ends.

Provides:
- configure_logging(): handlers for the ttyml logger hierarchy
- run_session(): the fetch / prompt / submit loop
- main(): argparse entry point (console script ``ttyml``)

DESIGN NOTES:
- Standard output carries the rendered document only. Logs and diagnostics
  go to standard error.
- Recoverable errors after the first document are handled inside
  Context.next_context(); anything reaching main() is fatal.

Exit codes:
    0    session ended normally
    1    usage error or fatal error
    130  interrupted (Ctrl-C)
"""

import argparse
import logging
import sys
from typing import Any, Dict, List, NoReturn, Optional, TextIO

from rich.console import Console
from rich.logging import RichHandler

from ._version import version as __version__
from .config import ClientConfig, load_config
from .context import Context, LineReader, TransportFactory
from .error_handler import TtymlError, UsageError
from .terminal_utils import make_error_console

logger = logging.getLogger(__name__)

APP_NAME = "ttyml"
VERSION = __version__

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

LOG_FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


# ============================
# Logging
# ============================


def configure_logging(level: str = "WARNING", log_file: Optional[str] = None) -> None:
    """
    Install handlers on the package logger.

    Logs go to standard error through rich, and additionally to log_file when
    one is given. Calling this again replaces the handlers installed before.

    Raises:
        OSError: if log_file cannot be opened
    """
    package_logger = logging.getLogger(APP_NAME)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    package_logger.setLevel(level)

    stderr_handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )
    package_logger.addHandler(stderr_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FILE_FORMAT))
        package_logger.addHandler(file_handler)

    logger.debug(f"Logging configured: level={level}, file={log_file}")


# ============================
# Session loop
# ============================


def run_session(
    url: str,
    *,
    config: Optional[ClientConfig] = None,
    transport_factory: Optional[TransportFactory] = None,
    stdout: Optional[TextIO] = None,
    line_reader: Optional[LineReader] = None,
    console: Optional[Console] = None,
) -> int:
    """
    Run one session starting at url.

    The first document is fetched with GET. Every error while fetching it is
    fatal; errors of later submissions are reported and the form re-read.

    Returns:
        EXIT_OK once a document without prompts is reached or input ends

    Raises:
        TtymlError: on a fatal error
    """
    context: Optional[Context] = Context(
        url,
        config=config,
        transport_factory=transport_factory,
        stdout=stdout,
        line_reader=line_reader,
        console=console,
    )
    hops = 1
    while context is not None and context.has_prompt:
        context = context.next_context()
        if context is not None:
            hops += 1

    logger.debug(f"Session finished after {hops} document(s)")
    return EXIT_OK


# ============================
# Command line
# ============================


class TtymlArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that exits with status 1 and points at --help on bad usage."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(
            EXIT_FAILURE,
            f"{self.prog}: {message}\n"
            f"Try `{self.prog} --help' for more information\n",
        )


def build_parser() -> TtymlArgumentParser:
    parser = TtymlArgumentParser(
        prog=APP_NAME,
        description="TTYML terminal client: browse TTYML documents served over HTTP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
EXAMPLES:
  Open a document:
    ttyml https://example.com/menu.ttyml

  Debug logging to a file as well as the terminal:
    ttyml --debug --log-file ttyml.log https://example.com/

  Using configuration file:
    ttyml --config ttyml_config.yaml https://example.com/

ENVIRONMENT:
  TTYML_TIMEOUT, TTYML_USER_AGENT, TTYML_VERIFY_TLS and TTYML_LOG_LEVEL
  override the configuration file; command line options override both.
""",
    )

    parser.add_argument(
        "url",
        type=str,
        help="URL of the first TTYML document",
        metavar="URL",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=str,
        default=None,
        help="Path to YAML/JSON configuration file",
        metavar="FILE",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Log debug detail to standard error",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write the log to FILE",
        metavar="FILE",
    )
    parser.add_argument(
        "--no-tty-size",
        action="store_true",
        default=False,
        help="Do not send the Tty-Columns and Tty-Lines request headers",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        default=False,
        help="Do not verify TLS certificates",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"{APP_NAME} {VERSION}",
    )
    return parser


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    # Unset flags stay out so the config file and environment take precedence
    cli_overrides = {
        "log_level": "DEBUG" if args.debug else None,
        "log_file": args.log_file,
        "send_terminal_size": False if args.no_tty_size else None,
        "verify_tls": False if args.insecure else None,
    }
    return {k: v for k, v in cli_overrides.items() if v is not None}


def _setup(args: argparse.Namespace) -> ClientConfig:
    """
    Load the configuration and install logging.

    Raises:
        UsageError: if the configuration or the log file is unusable
    """
    try:
        config = load_config(config_path=args.config, cli_overrides=_cli_overrides(args))
    except (OSError, ValueError) as e:
        raise UsageError(str(e)) from e

    try:
        configure_logging(config.log_level, config.log_file)
    except OSError as e:
        raise UsageError(f"cannot open log file: {e}") from e
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the ttyml CLI."""
    args = build_parser().parse_args(argv)
    console = make_error_console()

    try:
        config = _setup(args)
    except UsageError as e:
        console.print(f"Error: {e}", markup=False)
        return EXIT_FAILURE

    try:
        return run_session(args.url, config=config, console=console)
    except KeyboardInterrupt:
        logger.debug("Interrupted by user")
        console.print()
        return EXIT_INTERRUPTED
    except TtymlError as e:
        logger.debug(f"Fatal {e.category.name} error", exc_info=True)
        console.print(f"Fatal error: {e}", markup=False)
        return EXIT_FAILURE
    except Exception as e:
        logger.debug("Unexpected error", exc_info=True)
        console.print(f"Fatal error: {e}", markup=False)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
