"""
HTTP transport for the TTYML client.

Performs exactly one request per call and streams the response back through
two callbacks: one receives raw header lines (status line first), the other
receives body byte chunks after content-encoding has been undone.

Callbacks return True to keep receiving data and False to stop the transfer
early; the transport then closes the response without raising. Transport
failures are surfaced as TransportError.

DO NOT:
- Raise from inside the callbacks and expect the transport to recover - the
  caller is responsible for capturing callback errors (see DeferredError)
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, Optional, Protocol

import requests

from .config import ACCEPT_ENCODING, BODY_CHUNK_SIZE, FORM_CONTENT_TYPE, ClientConfig
from .error_handler import TransportError

logger = logging.getLogger(__name__)

HeaderCallback = Callable[[str], bool]
BodyCallback = Callable[[bytes], bool]


@dataclass
class HttpRequest:
    """One outbound request."""

    url: str
    method: str = "GET"
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)


class Transport(Protocol):
    def perform(
        self, request: HttpRequest, on_header: HeaderCallback, on_body: BodyCallback
    ) -> None: ...

    def close(self) -> None: ...


def _status_line(response: requests.Response) -> str:
    # urllib3 reports the protocol version as 10 or 11
    version = getattr(response.raw, "version", None)
    if not isinstance(version, int) or version <= 0:
        version = 11
    return f"HTTP/{version // 10}.{version % 10} {response.status_code} {response.reason or ''}"


def iter_header_lines(response: requests.Response) -> Iterator[str]:
    """Yield the response head as raw lines, status line first."""
    yield _status_line(response)
    for key, value in response.headers.items():
        yield f"{key}: {value}"


class HttpTransport:
    """
    requests-based transport.

    Owns a requests.Session for the lifetime of one document context; call
    close() (or use as a context manager) to release its connections.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.config = config or ClientConfig()
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "User-Agent": self.config.user_agent,
                "Accept-Encoding": ACCEPT_ENCODING,
            }
        )

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self._session.close()

    def perform(
        self, request: HttpRequest, on_header: HeaderCallback, on_body: BodyCallback
    ) -> None:
        """
        Send request and stream the response through the callbacks.

        A non-empty body is sent as a form-encoded POST regardless of the
        requested method.

        Raises:
            TransportError: if the request could not be completed
        """
        method = request.method.upper()
        headers = dict(request.headers)
        data: Optional[bytes] = None
        if request.body:
            method = "POST"
            data = request.body.encode("utf-8")
            headers.setdefault("Content-Type", FORM_CONTENT_TYPE)

        logger.debug(f"{method} {request.url} headers={headers}")

        try:
            response = self._session.request(
                method,
                request.url,
                headers=headers,
                data=data,
                timeout=self.config.timeout,
                verify=self.config.verify_tls,
                stream=True,
            )
        except requests.RequestException as e:
            raise TransportError(f"request failed: {e}") from e

        try:
            for line in iter_header_lines(response):
                if not on_header(line):
                    logger.debug("Header callback stopped the transfer")
                    return

            received = 0
            for chunk in response.iter_content(chunk_size=BODY_CHUNK_SIZE):
                if not chunk:
                    continue
                received += len(chunk)
                if not on_body(chunk):
                    logger.debug("Body callback stopped the transfer")
                    return
            logger.debug(f"Received {received} body bytes from {request.url}")
        except requests.RequestException as e:
            raise TransportError(f"request failed: {e}") from e
        finally:
            response.close()
