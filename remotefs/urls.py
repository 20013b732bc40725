"""Construction and parsing of the URIs handed to connectors.

Supported URL formats:
    - ftp://[user[:pass]@]host[:port][/path]
    - ftps://[user[:pass]@]host[:port][/path]
    - sftp://[user[:pass]@]host[:port][/path]
"""

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, unquote, urlparse

from remotefs.exceptions import ConfigError

DEFAULT_PORT = -1

_INVALID_HOST = re.compile(r"[/@?#\s]")


@dataclass
class ParsedURL:
    """Parsed components of a remote file URL."""

    protocol: str
    host: str
    port: Optional[int]
    username: Optional[str]
    password: Optional[str]
    path: str


def build_url(
    protocol: str,
    host: str,
    port: int,
    username: Optional[str],
    password: Optional[str],
    path: str,
) -> str:
    """Assemble ``protocol://[user[:password]@]host[:port]/path``.

    User-info and path are percent-encoded. A port of -1 is left out so the
    connector falls back to the protocol's well-known port.

    Raises:
        ConfigError: If a component cannot be placed in a URI
    """
    try:
        netloc = _format_host(host)
        if port != DEFAULT_PORT:
            if not isinstance(port, int) or not 0 <= port <= 65535:
                raise ValueError(f"port out of range: {port!r}")
            netloc = f"{netloc}:{port}"

        userinfo = _format_userinfo(username, password)
        if userinfo:
            netloc = f"{userinfo}@{netloc}"

        path = path or ""
        if not path.startswith("/"):
            path = "/" + path
    except (AttributeError, TypeError, ValueError) as e:
        raise ConfigError("URI construction failed") from e

    return f"{protocol}://{netloc}{quote(path, safe='/')}"


def _format_host(host: str) -> str:
    if not host:
        raise ValueError("host is empty")
    if ":" in host and not host.startswith("["):
        # IPv6 literal
        return f"[{host}]"
    if _INVALID_HOST.search(host):
        raise ValueError(f"invalid host: {host!r}")
    return host


def _format_userinfo(username: Optional[str], password: Optional[str]) -> str:
    if not username:
        return ""
    if password is None:
        return quote(username, safe="")
    return f"{quote(username, safe='')}:{quote(password, safe='')}"


def parse_url(url: str) -> ParsedURL:
    """Parse a remote file URL into its components."""
    parsed = urlparse(url)

    # Extract credentials if present
    username = unquote(parsed.username) if parsed.username else None
    password = unquote(parsed.password) if parsed.password is not None else None

    return ParsedURL(
        protocol=parsed.scheme.lower(),
        host=parsed.hostname or "",
        port=parsed.port,
        username=username,
        password=password,
        path=unquote(parsed.path) or "/",
    )
