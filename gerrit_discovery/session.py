"""Scoped context of one discovery scan."""

from __future__ import annotations

import logging
from typing import Any

from .gerrit_client import GerritClient
from .observer import SourceObserver
from .sources import CandidateFactory


class DiscoverySession:
    """
    Wraps one scan: forwards projects to the observer and owns the client.

    The client is closed when the session exits, however the scan ends.

    Usage:
        with DiscoverySession(navigator_id, observer, client) as session:
            stop = session.process("tools/gerrit", factory)
    """

    def __init__(
        self,
        navigator_id: str,
        observer: SourceObserver,
        client: GerritClient,
        traits: tuple[Any, ...] = (),
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.navigator_id = navigator_id
        self.observer = observer
        self.client = client
        self.traits = tuple(traits)
        self.log = log or client.log
        self.projects_seen = 0
        self.stopped_early = False
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def process(self, project_name: str, candidate_factory: CandidateFactory) -> bool:
        """
        Submit one project to the observer.

        Returns:
            True if the observer asked to stop the scan
        """
        if not self._open:
            raise RuntimeError("Discovery session is not open")

        self.projects_seen += 1
        stop = bool(self.observer.observe(project_name, candidate_factory, self))
        if stop:
            self.stopped_early = True
            self.log.info(
                f"Observer stopped discovery after {project_name}",
                extra={"project": project_name},
            )
        return stop

    def __enter__(self) -> "DiscoverySession":
        self._open = True
        self.log.debug("Discovery session opened")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._open = False
        self.client.close()
        if exc_type is None:
            self.log.debug(f"Discovery session closed after {self.projects_seen} projects")
        else:
            self.log.debug(
                f"Discovery session closed after {self.projects_seen} projects "
                f"({exc_type.__name__})"
            )
