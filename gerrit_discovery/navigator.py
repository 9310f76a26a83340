"""
Navigator - discovers every project of a Gerrit server.

Resolves the endpoint, builds the API client, then streams the server's
projects to an observer as candidate sources, one page at a time.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Iterable

from .credentials import Credential, CredentialStore
from .endpoint import ServerEndpoint, resolve
from .errors import (
    ConnectionFailure,
    MalformedEndpoint,
    PageFetchFailure,
    ResolutionFailure,
    ScanCancelled,
)
from .gerrit_client import GerritClient
from .logging_config import scan_logger
from .observer import SourceObserver
from .pager import ProjectPager
from .session import DiscoverySession
from .sources import CandidateSourceBuilder, ConnectionSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscoveryResult:
    """Summary of a finished scan."""
    navigator_id: str
    endpoint: ServerEndpoint
    projects_seen: int
    pages_fetched: int
    stopped_early: bool
    api_calls: int


class GerritNavigator:
    """
    Discovers the code projects of one Gerrit server.

    A navigator holds configuration only. Every call to discover() is an
    independent scan with its own client, session and credential lookup, so
    one navigator can serve concurrent scans.

    Usage:
        navigator = GerritNavigator("https://review.example.org", credentials_id="ci-bot",
                                    credential_store=store)
        observer = CollectingObserver(include=["platform/*"])
        result = navigator.discover(observer)
    """

    def __init__(
        self,
        server_url: str | None,
        insecure_https: bool = False,
        credentials_id: str | None = None,
        traits: Iterable[Any] = (),
        credential_store: CredentialStore | None = None,
        page_size: int = ProjectPager.DEFAULT_PAGE_SIZE,
        max_pages: int = ProjectPager.DEFAULT_MAX_PAGES,
        timeout: int = GerritClient.DEFAULT_TIMEOUT,
        max_retries: int = GerritClient.MAX_RETRIES,
    ):
        self.server_url = (server_url or "").strip() or None
        self.insecure_https = insecure_https
        self.credentials_id = (credentials_id or "").strip() or None
        self.traits = tuple(traits or ())
        self.credential_store = credential_store if credential_store is not None else CredentialStore()
        self.page_size = page_size
        self.max_pages = max_pages
        self.timeout = timeout
        self.max_retries = max_retries

    @property
    def id(self) -> str:
        """Identity of this navigator, the prefix of every source id."""
        attributes = {
            "server-url": self.server_url,
            "credentials-id": self.credentials_id,
        }
        return "::".join(
            f"{key}={'null' if value is None else value}"
            for key, value in attributes.items()
        )

    def lookup_credential(self) -> Credential | None:
        """Resolve the configured credential for the server URL."""
        if self.credentials_id is None or self.server_url is None:
            return None
        return self.credential_store.lookup(self.server_url, self.credentials_id)

    def _connect(
        self,
        settings: ConnectionSettings,
    ) -> GerritClient:
        try:
            return GerritClient(
                settings.endpoint,
                credential=settings.credential,
                insecure_https=settings.insecure_https,
                timeout=self.timeout,
                max_retries=self.max_retries,
                log=settings.logger,
            )
        except Exception as e:
            raise ConnectionFailure(
                f"Cannot create Gerrit client for {settings.endpoint.api_uri}: {e}", cause=e
            ) from e

    def discover(
        self,
        observer: SourceObserver,
        cancel_event: threading.Event | None = None,
    ) -> DiscoveryResult:
        """
        Scan the server and submit every project to the observer.

        Args:
            observer: Receives each project; returns True to stop the scan
            cancel_event: Checked after each project; when set, the scan stops
                with ScanCancelled

        Returns:
            Summary of the scan

        Raises:
            ResolutionFailure: The server URL does not resolve
            ConnectionFailure: The client cannot be built or the first page fails
            PageFetchFailure: A later page fails; projects already observed stay observed
            PaginationLimitExceeded: The server never stops reporting more projects
            ScanCancelled: cancel_event was set during the scan
        """
        navigator_id = self.id
        log = scan_logger(getattr(observer, "logger", None) or logger, navigator_id)

        try:
            endpoint = resolve(self.server_url)
        except MalformedEndpoint as e:
            log.error(f"Cannot resolve Gerrit server URL: {e.reason}")
            raise ResolutionFailure(str(e), cause=e) from e

        settings = ConnectionSettings(
            endpoint=endpoint,
            insecure_https=self.insecure_https,
            credential=self.lookup_credential(),
            logger=log,
        )
        if settings.credential is not None:
            log.debug(
                f"Authenticating as {settings.credential.username} "
                f"(password ending {settings.credential.password_last4})"
            )
        elif self.credentials_id:
            log.warning(
                f"Credential {self.credentials_id!r} not found, scanning anonymously"
            )

        client = self._connect(settings)
        pager = ProjectPager(client, page_size=self.page_size, max_pages=self.max_pages)
        builder = CandidateSourceBuilder(
            navigator_id, settings, self.credentials_id, self.traits
        )

        log.info(f"Discovering projects at {client.base_url}")

        with DiscoverySession(navigator_id, observer, client, self.traits, log) as session:
            try:
                for project in pager:
                    if session.process(project.name, builder.factory(project.name)):
                        break
                    if cancel_event is not None and cancel_event.is_set():
                        log.warning(f"Discovery cancelled after {session.projects_seen} projects")
                        raise ScanCancelled(session.projects_seen)
            except PageFetchFailure as e:
                if e.page == 1:
                    raise ConnectionFailure(
                        f"Cannot list projects at {client.base_url}: {e}", cause=e
                    ) from e
                log.error(f"{e} after {session.projects_seen} projects")
                raise

            result = DiscoveryResult(
                navigator_id=navigator_id,
                endpoint=endpoint,
                projects_seen=session.projects_seen,
                pages_fetched=pager.pages_fetched,
                stopped_early=session.stopped_early,
                api_calls=client.stats.total_calls,
            )

        log.info(
            f"Discovery finished: {result.projects_seen} projects in "
            f"{result.pages_fetched} pages"
        )
        return result
