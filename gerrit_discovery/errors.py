"""
Error taxonomy for Gerrit project discovery.

All failures raised by a scan derive from GerritDiscoveryError, except
ScanCancelled which marks a cooperative early termination.
"""

from __future__ import annotations


class GerritDiscoveryError(Exception):
    """Base exception for discovery failures."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class MalformedEndpoint(GerritDiscoveryError, ValueError):
    """Raised when a server URL cannot be turned into a REST endpoint."""

    def __init__(self, server_url: str | None, reason: str):
        super().__init__(f"Malformed Gerrit server URL {server_url!r}: {reason}")
        self.server_url = server_url
        self.reason = reason


class ResolutionFailure(GerritDiscoveryError):
    """Raised by a scan whose configured server URL does not resolve."""


class ConnectionFailure(GerritDiscoveryError):
    """Raised when the API client cannot be built or the first page fails."""


class PageFetchFailure(GerritDiscoveryError):
    """Raised when a page of the project listing cannot be fetched or decoded."""

    def __init__(
        self,
        message: str,
        page: int,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause)
        self.page = page
        self.status_code = status_code


class PaginationLimitExceeded(GerritDiscoveryError):
    """Raised when the server keeps reporting more projects past the page cap."""

    def __init__(self, max_pages: int):
        super().__init__(
            f"Server still reports more projects after {max_pages} pages"
        )
        self.max_pages = max_pages


class ScanCancelled(Exception):
    """Raised when a scan is cancelled between two projects."""

    def __init__(self, projects_seen: int):
        super().__init__(f"Discovery cancelled after {projects_seen} projects")
        self.projects_seen = projects_seen
