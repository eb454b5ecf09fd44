"""
Document context: the state for one fetched TTYML document.

A Context is built from (url, method, body). Construction performs the
request, streams the body through the session parser (rendering lines as
they close), and leaves the collected form behind. The session loop then
asks for next_context(), which reads the prompts from the terminal, submits
the form and returns the successor Context.

Callback error discipline:
    The transport and the XML producer call back into the context. Every
    callback runs through one DeferredError slot: the first exception is
    kept, later callbacks are skipped (the transport stops reading), and the
    error is re-raised once perform() returns. A transport failure that
    follows a captured error reports the captured error instead.

DO NOT:
- Share a Context, its transport or its parser between hops - the successor
  is built from plain strings after this context has released everything
"""

import logging
import sys
from typing import Callable, Dict, Optional, TextIO

from rich.console import Console

from .config import (
    DEFAULT_METHOD,
    TTY_COLUMNS_HEADER,
    TTY_LINES_HEADER,
    TTYML_MEDIA_TYPE,
    ClientConfig,
)
from .error_handler import (
    DeferredError,
    OutputError,
    TransportError,
    TtymlError,
    TtymlLogicError,
)
from .form import Form, Prompt, clean_input
from .headers import ResponseHeaders
from .http_client import HttpRequest, HttpTransport, Transport
from .session_parser import DocumentFeed, SessionParser
from .terminal_utils import get_terminal_size, make_error_console, read_line
from .url_utils import append_key_value, build_submission

logger = logging.getLogger(__name__)

TransportFactory = Callable[[ClientConfig], Transport]
LineReader = Callable[[str], Optional[str]]


class Context:
    """
    One hop of a TTYML session.

    Args:
        url: Document URL; also the XML base URI and the default form action
        method: Request method
        body: Form-encoded request body (empty for none)
        config: Client configuration
        transport_factory: Builds the transport used for this request
        stdout: Stream that receives rendered lines (sys.stdout by default)
        line_reader: Reads one line of user input for a prompt label;
            returns None at end of input
        console: Console for diagnostics on standard error

    Raises:
        TtymlError: if the request or the document fails
    """

    def __init__(
        self,
        url: str,
        method: str = DEFAULT_METHOD,
        body: str = "",
        *,
        config: Optional[ClientConfig] = None,
        transport_factory: Optional[TransportFactory] = None,
        stdout: Optional[TextIO] = None,
        line_reader: Optional[LineReader] = None,
        console: Optional[Console] = None,
    ) -> None:
        self.url = url
        self.method = method
        self.body = body

        self.config = config or ClientConfig()
        self._transport_factory: TransportFactory = transport_factory or HttpTransport
        self._stdout = stdout
        self._line_reader: LineReader = line_reader or read_line
        self._console = console or make_error_console()

        self.deferred = DeferredError()
        self.response = ResponseHeaders()
        self.form = Form(action=url)
        self.parser = SessionParser(
            self.form, self.deferred, stdout=stdout, base_url=url
        )
        self._feed: Optional[DocumentFeed] = None

        self._fetch()

    @property
    def stdout(self) -> TextIO:
        return self._stdout if self._stdout is not None else sys.stdout

    @property
    def has_prompt(self) -> bool:
        return bool(self.form.prompts)

    # ------------------------------------------------------------------
    # Request
    # ------------------------------------------------------------------

    def request_headers(self) -> Dict[str, str]:
        headers = {"Accept": TTYML_MEDIA_TYPE}
        if self.config.send_terminal_size:
            size = get_terminal_size(self.stdout)
            if size is not None:
                if size.columns > 0:
                    headers[TTY_COLUMNS_HEADER] = str(size.columns)
                if size.lines > 0:
                    headers[TTY_LINES_HEADER] = str(size.lines)
        return headers

    def _fetch(self) -> None:
        request = HttpRequest(
            url=self.url,
            method=self.method,
            body=self.body,
            headers=self.request_headers(),
        )
        logger.info(f"Fetching {request.method} {request.url}")

        transport = self._transport_factory(self.config)
        try:
            transport.perform(request, self._on_header, self._on_body)
        except TransportError:
            self.deferred.raise_if_set()
            raise
        finally:
            transport.close()

        self.deferred.raise_if_set()

        if self._feed is not None:
            self.deferred.call(self._feed.close)
            self.deferred.raise_if_set()
            if not self.parser.is_balanced:
                raise TtymlLogicError("element stack not empty at end of document")

        try:
            self.stdout.flush()
        except OSError as e:
            raise OutputError("write to standard output failed") from e

        logger.debug(
            f"Document done: {len(self.form.variables)} variables, "
            f"{len(self.form.prompts)} prompts, action={self.form.action}"
        )

    def _on_header(self, line: str) -> bool:
        return self.deferred.call(self.response.put_line, line)

    def _on_body(self, chunk: bytes) -> bool:
        return self.deferred.call(self._put_body, chunk)

    def _put_body(self, chunk: bytes) -> None:
        if self._feed is None:
            self._feed = DocumentFeed(self.parser, self.response.charset)
        self._feed.feed(chunk)

    # ------------------------------------------------------------------
    # Form submission
    # ------------------------------------------------------------------

    def next_context(self) -> Optional["Context"]:
        """
        Prompt the user, submit the form and return the successor context.

        Recoverable failures of the submission are reported and the whole
        form is read again. Fatal failures propagate.

        Returns:
            The next Context, or None when there is nothing to submit or the
            user ended input
        """
        if not self.has_prompt:
            return None

        while True:
            body = self.form.encode_variables()
            for prompt in self.form.prompts:
                value = self._read_prompt(prompt)
                if value is None:
                    return None
                body = append_key_value(body, prompt.name, value)

            url, method, body = build_submission(
                self.form.action, self.url, self.form.method, body
            )

            try:
                return Context(
                    url,
                    method,
                    body,
                    config=self.config,
                    transport_factory=self._transport_factory,
                    stdout=self._stdout,
                    line_reader=self._line_reader,
                    console=self._console,
                )
            except TtymlError as e:
                if not e.recoverable:
                    raise
                logger.info(f"Submission to {url} failed: {e}")
                self._report(f"Error: {e}")

    def _read_prompt(self, prompt: Prompt) -> Optional[str]:
        """Read input for prompt until it passes the filter; None at end of input."""
        while True:
            line = self._line_reader(prompt.label)
            if line is None:
                return None

            value = clean_input(line)
            if prompt.accepts(value):
                return value

            logger.debug(f"Input for '{prompt.name}' rejected by filter")
            if value:
                self._report(prompt.rejection_message())

    def _report(self, message: str) -> None:
        self._console.print(message, markup=False)
