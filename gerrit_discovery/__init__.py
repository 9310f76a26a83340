"""
Gerrit Discovery - Lists the projects of a Gerrit server as candidate sources.

Read-only: only GET requests are sent to the server.
"""

__version__ = "0.1.0"

from .endpoint import ServerEndpoint, resolve
from .errors import (
    ConnectionFailure,
    GerritDiscoveryError,
    MalformedEndpoint,
    PageFetchFailure,
    PaginationLimitExceeded,
    ResolutionFailure,
    ScanCancelled,
)
from .gerrit_client import GerritClient
from .navigator import DiscoveryResult, GerritNavigator
from .observer import CallbackObserver, CollectingObserver
from .pager import ProjectPager, RemoteProject

__all__ = [
    "GerritNavigator",
    "DiscoveryResult",
    "GerritClient",
    "ProjectPager",
    "RemoteProject",
    "ServerEndpoint",
    "resolve",
    "CallbackObserver",
    "CollectingObserver",
    "GerritDiscoveryError",
    "MalformedEndpoint",
    "ResolutionFailure",
    "ConnectionFailure",
    "PageFetchFailure",
    "PaginationLimitExceeded",
    "ScanCancelled",
    "__version__",
]
