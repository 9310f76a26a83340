"""
Gerrit server endpoint resolution.

Derives the web base URI and the REST API base URI from the server URL a
user configured. Both are produced from one parse of the input.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from .errors import MalformedEndpoint

# Gerrit serves authenticated REST calls under this prefix
AUTH_PREFIX = "/a"

SUPPORTED_SCHEMES = ("http", "https")

# RFC 3986 reg-name: unreserved, sub-delims and percent-encoded octets
_REG_NAME = re.compile(r"(?:[A-Za-z0-9\-._~!$&'()*+,;=]|%[0-9A-Fa-f]{2})+")

_BRACKETED_AUTHORITY = re.compile(r"\[[^\[\]]+\](?::[0-9]*)?")

# Characters allowed in a path, query or fragment
_URI_COMPONENT = re.compile(r"(?:[A-Za-z0-9\-._~!$&'()*+,;=:@/?]|%[0-9A-Fa-f]{2})*")


def _check_host(server_url: str, host: str, bracketed: bool) -> str:
    """Validate a lower-cased host and return it as it appears in a URI."""
    if bracketed:
        try:
            ipaddress.IPv6Address(host)
        except ValueError as e:
            raise MalformedEndpoint(server_url, f"invalid IPv6 host: {e}") from e
        return f"[{host}]"

    try:
        ipaddress.IPv4Address(host)
        return host
    except ValueError:
        pass

    try:
        ascii_host = host.encode("idna").decode("ascii")
    except UnicodeError as e:
        raise MalformedEndpoint(server_url, f"invalid host {host!r}") from e
    if not _REG_NAME.fullmatch(ascii_host):
        raise MalformedEndpoint(server_url, f"invalid host {host!r}")
    return host


@dataclass(frozen=True)
class ServerEndpoint:
    """Resolved addresses of one Gerrit server."""
    server_url: str
    web_uri: str
    api_uri: str

    def rest_uri(self, authenticated: bool) -> str:
        """Base URI for REST calls, with or without the auth prefix."""
        return self.api_uri if authenticated else self.web_uri

    def project_uri(self, project_name: str, authenticated: bool = False) -> str:
        """Clone URL of a project hosted on this server."""
        return f"{self.rest_uri(authenticated)}/{project_name}"


def resolve(server_url: str | None) -> ServerEndpoint:
    """
    Resolve a server URL into a ServerEndpoint.

    Args:
        server_url: URL of the Gerrit server, e.g. "https://review.example.org/gerrit"

    Returns:
        The resolved endpoint

    Raises:
        MalformedEndpoint: If the URL is blank or not a syntactically valid
            URI, carries user info, lacks a scheme or host, or uses a scheme
            the REST API is not served on
    """
    if server_url is None or not server_url.strip():
        raise MalformedEndpoint(server_url, "server URL is blank")

    raw = server_url.strip()
    # urlsplit silently drops tabs and newlines, so check before parsing
    if any(ch.isspace() or not ch.isprintable() for ch in raw):
        raise MalformedEndpoint(server_url, "contains whitespace or control characters")

    try:
        parts = urlsplit(raw)
        port = parts.port
    except ValueError as e:
        raise MalformedEndpoint(server_url, str(e)) from e

    scheme = parts.scheme.lower()
    if not scheme:
        raise MalformedEndpoint(server_url, "missing scheme")
    if scheme not in SUPPORTED_SCHEMES:
        raise MalformedEndpoint(
            server_url, f"unsupported scheme {scheme!r}, expected http or https"
        )

    if "@" in parts.netloc:
        raise MalformedEndpoint(server_url, "user info is not allowed in the server URL")

    host = parts.hostname
    if not host:
        raise MalformedEndpoint(server_url, "missing host")
    bracketed = "[" in parts.netloc
    if bracketed and not _BRACKETED_AUTHORITY.fullmatch(parts.netloc):
        raise MalformedEndpoint(server_url, "invalid IPv6 host")
    host = _check_host(server_url, host, bracketed)

    authority = host if port is None else f"{host}:{port}"

    for label, component in (
        ("path", parts.path),
        ("query", parts.query),
        ("fragment", parts.fragment),
    ):
        if not _URI_COMPONENT.fullmatch(component):
            raise MalformedEndpoint(server_url, f"invalid character in {label}")

    path = parts.path.rstrip("/")
    # "https://host/gerrit/a" and "https://host/gerrit" name the same server
    if path.endswith(AUTH_PREFIX):
        path = path[: -len(AUTH_PREFIX)].rstrip("/")

    web_uri = f"{scheme}://{authority}{path}"
    return ServerEndpoint(
        server_url=raw,
        web_uri=web_uri,
        api_uri=web_uri + AUTH_PREFIX,
    )


def check_server_url(value: str | None) -> str | None:
    """Return an error message for an unusable server URL, or None if it resolves."""
    try:
        resolve(value)
    except MalformedEndpoint as e:
        return e.reason
    return None
