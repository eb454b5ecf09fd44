"""
HTTP response header parsing.

The transport hands over raw header lines one at a time. The first
non-empty line must be the status line; every later line is "key: value".
Only content-type influences the client: it must name the TTYML media type
and may carry the charset of the body.
"""

import logging
import re
from dataclasses import dataclass
from typing import Final, Optional

from .config import ASCII_WHITESPACE, DEFAULT_CHARSET, TTYML_MEDIA_TYPE
from .error_handler import BadStatusError, UnsupportedMediaTypeError
from .url_utils import ascii_lower

logger = logging.getLogger(__name__)

_STATUS_LINE_RE: Final[re.Pattern[str]] = re.compile(
    r"HTTP/(\d+)\.(\d+)[ \t]+(\d+)(?:[ \t]+(.*))?\Z", re.DOTALL
)
_CHARSET_PREFIX: Final[str] = "charset="


@dataclass
class ResponseHeaders:
    """Metadata of one HTTP response, filled in line by line."""

    http_version_major: int = 1
    http_version_minor: int = 0
    status_code: int = 0
    status_message: str = ""
    mime_type: str = ""
    charset: str = DEFAULT_CHARSET
    status_seen: bool = False

    def put_line(self, line: str) -> None:
        """
        Consume one raw header line.

        Raises:
            BadStatusError: if the first non-empty line is not a status line
            UnsupportedMediaTypeError: if content-type is not text/ttyml
        """
        line = line.rstrip(ASCII_WHITESPACE)
        if not line:
            return

        if not self.status_seen:
            self._parse_status_line(line)
            return

        key, _, value = line.partition(":")
        key = ascii_lower(key)
        value = value.lstrip(ASCII_WHITESPACE)

        if key == "content-type":
            self._parse_content_type(value)

    def _parse_status_line(self, line: str) -> None:
        match = _STATUS_LINE_RE.match(line)
        if not match:
            raise BadStatusError(f"invalid status header: '{line}'")

        self.http_version_major = int(match.group(1))
        self.http_version_minor = int(match.group(2))
        self.status_code = int(match.group(3))
        self.status_message = match.group(4) or ""
        self.status_seen = True

        logger.debug(
            f"Status: HTTP/{self.http_version_major}.{self.http_version_minor} "
            f"{self.status_code} {self.status_message}"
        )
        if not 200 <= self.status_code < 300:
            logger.info(
                f"Server responded with status {self.status_code} {self.status_message}"
            )

    def _parse_content_type(self, value: str) -> None:
        params = [part.strip(ASCII_WHITESPACE) for part in value.split(";")]

        self.mime_type = ascii_lower(params[0])
        for param in params[1:]:
            param = ascii_lower(param)
            if param.startswith(_CHARSET_PREFIX):
                self.charset = param[len(_CHARSET_PREFIX) :].strip('"')

        if self.mime_type != TTYML_MEDIA_TYPE:
            raise UnsupportedMediaTypeError(
                f"server responded with unsupported content type '{value}'"
            )

    @property
    def status_line(self) -> Optional[str]:
        if not self.status_seen:
            return None
        return (
            f"HTTP/{self.http_version_major}.{self.http_version_minor} "
            f"{self.status_code} {self.status_message}"
        ).rstrip()
