"""
URL parsing, resolution and form encoding.

A URL is split into four raw string parts that concatenate back into it:

    scheme    "http:"              (trailing colon kept, ASCII-lowercased)
    host      "//user@example.org" (leading slashes kept, may hold userinfo)
    path      "/a/b?q=1"           (query included)
    fragment  "#frag"              (leading hash kept)

Only the pieces of RFC 3986 that the client needs are implemented: relative
resolution against the document URL and percent-encoding of form fields.
"""

import logging
from dataclasses import dataclass
from typing import Final, Iterable, List, Tuple

logger = logging.getLogger(__name__)

_HEX_DIGITS: Final[str] = "0123456789ABCDEF"
_UNRESERVED: Final[frozenset[int]] = frozenset(
    b"0123456789"
    b"ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    b"abcdefghijklmnopqrstuvwxyz"
    b"-_()"
)

_ASCII_UPPER: Final[str] = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_ASCII_LOWER_TABLE: Final[dict[int, int]] = str.maketrans(
    _ASCII_UPPER, _ASCII_UPPER.lower()
)


def ascii_lower(text: str) -> str:
    """Lowercase A-Z only, leaving every other character untouched."""
    return text.translate(_ASCII_LOWER_TABLE)


@dataclass(frozen=True)
class UrlParts:
    scheme: str = ""
    host: str = ""
    path: str = ""
    fragment: str = ""

    def __str__(self) -> str:
        return f"{self.scheme}{self.host}{self.path}{self.fragment}"


def _split_fragment(text: str) -> Tuple[str, str]:
    index = text.find("#")
    if index == -1:
        return text, ""
    return text[:index], text[index:]


def _lower_host(host: str) -> str:
    # Userinfo before "@" keeps its case
    auth_end = max(host.find("@"), 0)
    return host[:auth_end] + ascii_lower(host[auth_end:])


def parse_url(url: str) -> UrlParts:
    """
    Parse a URL into its parts.

    If the path component is implicitly "/", as in <http://www.example.org>,
    the result carries that path even though the URL itself does not.
    """
    scheme = ""
    host = ""
    pos = 0

    scheme_end = url.find(":")
    if scheme_end != -1:
        scheme = ascii_lower(url[: scheme_end + 1])
        pos = scheme_end + 1

    if url.startswith("//", pos):
        host_end = url.find("/", pos + 2)
        if host_end == -1:
            host, fragment = _split_fragment(url[pos:])
            return UrlParts(scheme, _lower_host(host), "/", fragment)

        host = _lower_host(url[pos:host_end])
        pos = host_end

    path, fragment = _split_fragment(url[pos:])
    return UrlParts(scheme, host, path, fragment)


def normalize_path(path: str) -> str:
    """
    Collapse ".", ".." and duplicate "/" segments.

    A trailing "/" is preserved; ".." never climbs above the first segment.
    """
    ends_with_slash = path.endswith("/")

    result: List[str] = []
    for part in path.split("/"):
        if part == ".":
            continue
        if result and not part:
            continue
        if part == "..":
            if result:
                result.pop()
        else:
            result.append(part)

    if ends_with_slash:
        result.append("")

    return "/".join(result)


def normalize_url(url: str, base: str) -> str:
    """
    Compute the absolute URL for an optionally relative url against base.

    Args:
        url: Absolute or relative URL (e.g. a form action)
        base: Absolute URL of the current document

    Returns:
        The resolved URL; an already absolute url is returned unchanged
    """
    base_parts = parse_url(base)
    url_parts = parse_url(url)

    if not url_parts.path:
        return f"{base_parts.scheme}{base_parts.host}{base_parts.path}{url_parts.fragment}"

    path = url_parts.path
    if not path.startswith("/"):
        path = f"{base_parts.path}/{path}"
        if path.endswith("/.") or path.endswith("/.."):
            path += "/"
        path = normalize_path(path)

    if not url_parts.host:
        return f"{base_parts.scheme}{base_parts.host}{path}{url_parts.fragment}"

    if not url_parts.scheme:
        return f"{base_parts.scheme}{url_parts.host}{path}{url_parts.fragment}"

    return url


def escape(value: str) -> str:
    """
    Percent-encode value as UTF-8.

    Digits, ASCII letters and "-_()" pass through; every other byte becomes
    %HH with upper-case hex digits.
    """
    out: List[str] = []
    for byte in value.encode("utf-8"):
        if byte in _UNRESERVED:
            out.append(chr(byte))
        else:
            out.append("%" + _HEX_DIGITS[byte >> 4] + _HEX_DIGITS[byte & 15])
    return "".join(out)


def append_key_value(body: str, key: str, value: str) -> str:
    """Return body with "key=value" appended, "&"-separated."""
    pair = f"{escape(key)}={escape(value)}"
    return f"{body}&{pair}" if body else pair


def encode_form(pairs: Iterable[Tuple[str, str]]) -> str:
    body = ""
    for key, value in pairs:
        body = append_key_value(body, key, value)
    return body


def build_submission(
    action: str, base: str, method: str, body: str
) -> Tuple[str, str, str]:
    """
    Compute the request for submitting a form.

    The action is resolved against base. For any method other than POST a
    non-empty body moves into the query string (replacing an existing one)
    and the body sent over the wire becomes empty.

    Returns:
        (target_url, method, body)
    """
    target = normalize_url(action, base)
    method = method.upper()

    if method != "POST" and body:
        without_fragment, fragment = _split_fragment(target)
        query_start = without_fragment.find("?")
        if query_start != -1:
            without_fragment = without_fragment[:query_start]
        target = f"{without_fragment}?{body}{fragment}"
        body = ""

    logger.debug(f"Submission resolved to {method} {target} ({len(body)} body bytes)")
    return target, method, body
