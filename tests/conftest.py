"""
Pytest configuration for TTYML tests.

This conftest.py provides:
1. An in-memory TTYML server (FakeServer) whose transports replay canned
   responses through the header and body callbacks and record every request
2. A scripted line reader standing in for the terminal
3. A recording rich Console for standard error diagnostics
"""

import io
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import List, Optional, Union

import pytest
from rich.console import Console

from ttyml.config import ClientConfig
from ttyml.http_client import BodyCallback, HeaderCallback, HttpRequest

TTYML_NS = "https://ttyml.org/2018/05/26"


def ttyml_document(inner: str) -> str:
    """Wrap inner markup in a TTYML root element."""
    return f'<ttyml xmlns="{TTYML_NS}">{inner}</ttyml>'


@dataclass
class FakeResponse:
    """Canned response: raw header lines (status line first) and body chunks."""

    header_lines: List[str]
    body_chunks: List[bytes] = field(default_factory=list)


def make_response(
    body: Union[str, bytes] = b"",
    status: str = "HTTP/1.1 200 OK",
    content_type: Optional[str] = "text/ttyml; charset=utf-8",
    chunk_size: Optional[int] = None,
) -> FakeResponse:
    """Build a FakeResponse, optionally splitting the body into small chunks."""
    data = body.encode("utf-8") if isinstance(body, str) else body
    header_lines = [status]
    if content_type is not None:
        header_lines.append(f"Content-Type: {content_type}")
    header_lines.append("")

    if not data:
        chunks: List[bytes] = []
    elif chunk_size is None:
        chunks = [data]
    else:
        chunks = [data[i : i + chunk_size] for i in range(0, len(data), chunk_size)]
    return FakeResponse(header_lines=header_lines, body_chunks=chunks)


class FakeTransport:
    """Transport that asks its FakeServer for the next canned response."""

    def __init__(self, server: "FakeServer") -> None:
        self.server = server
        self.closed = False
        self.header_calls = 0
        self.body_calls = 0

    def perform(
        self, request: HttpRequest, on_header: HeaderCallback, on_body: BodyCallback
    ) -> None:
        self.server.requests.append(request)
        response = self.server.next_response()
        if isinstance(response, Exception):
            raise response

        for line in response.header_lines:
            self.header_calls += 1
            if not on_header(line):
                return
        for chunk in response.body_chunks:
            self.body_calls += 1
            if not on_body(chunk):
                return

    def close(self) -> None:
        self.closed = True


class FakeServer:
    """Serves responses in order; an Exception entry is raised by perform()."""

    def __init__(self, responses: Iterable[Union[FakeResponse, Exception]]) -> None:
        self.responses = list(responses)
        self.requests: List[HttpRequest] = []
        self.transports: List[FakeTransport] = []
        self.configs: List[ClientConfig] = []

    def factory(self, config: ClientConfig) -> FakeTransport:
        self.configs.append(config)
        transport = FakeTransport(self)
        self.transports.append(transport)
        return transport

    def next_response(self) -> Union[FakeResponse, Exception]:
        if not self.responses:
            raise AssertionError("FakeServer ran out of responses")
        return self.responses.pop(0)


class ScriptedInput:
    """Line reader returning scripted answers, then None (end of input)."""

    def __init__(self, lines: Iterable[str]) -> None:
        self.lines = list(lines)
        self.labels: List[str] = []

    def __call__(self, label: str) -> Optional[str]:
        self.labels.append(label)
        if not self.lines:
            return None
        return self.lines.pop(0)


@pytest.fixture  # type: ignore[misc]
def make_server() -> Callable[..., FakeServer]:
    """Factory fixture: make_server(response, ...) -> FakeServer."""

    def _make(*responses: Union[FakeResponse, Exception]) -> FakeServer:
        return FakeServer(responses)

    return _make


@pytest.fixture  # type: ignore[misc]
def scripted_input() -> Callable[..., ScriptedInput]:
    """Factory fixture: scripted_input("answer", ...) -> line reader."""

    def _make(*lines: str) -> ScriptedInput:
        return ScriptedInput(lines)

    return _make


@pytest.fixture  # type: ignore[misc]
def stdout() -> io.StringIO:
    """Stream standing in for standard output."""
    return io.StringIO()


@pytest.fixture  # type: ignore[misc]
def error_console() -> Console:
    """Console recording diagnostics; read them with error_console.file.getvalue()."""
    return Console(
        file=io.StringIO(),
        width=200,
        highlight=False,
        emoji=False,
        soft_wrap=True,
        color_system=None,
    )


@pytest.fixture  # type: ignore[misc]
def config() -> ClientConfig:
    """Configuration that never sends terminal size headers."""
    return ClientConfig(send_terminal_size=False)


@pytest.fixture  # type: ignore[misc]
def ttyml_response() -> Callable[..., FakeResponse]:
    """Factory fixture for canned responses (see make_response)."""
    return make_response


@pytest.fixture  # type: ignore[misc]
def document() -> Callable[[str], str]:
    """Factory fixture wrapping markup in the TTYML root element."""
    return ttyml_document
