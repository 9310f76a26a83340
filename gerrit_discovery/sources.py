"""
Candidate sources produced by a discovery scan.

A candidate source is everything needed to later clone one project: its
identity, the server endpoint, TLS setting and the credential id.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from .credentials import Credential
from .endpoint import ServerEndpoint

# Separator between the scan identity and the project name in source ids
ID_SEPARATOR = "::"


@dataclass(frozen=True)
class ConnectionSettings:
    """Connection context of one scan. Never shared between scans."""
    endpoint: ServerEndpoint
    insecure_https: bool = False
    credential: Credential | None = field(default=None, repr=False)
    logger: logging.Logger | logging.LoggerAdapter = field(
        default_factory=lambda: logging.getLogger("gerrit_discovery"),
        repr=False,
        compare=False,
    )

    @property
    def authenticated(self) -> bool:
        return self.credential is not None


@dataclass(frozen=True)
class CandidateSource:
    """A discovered project, ready to be accepted by the observer."""
    id: str
    project_name: str
    endpoint: ServerEndpoint
    insecure_https: bool = False
    credentials_id: str | None = None
    authenticated: bool = False
    traits: tuple[Any, ...] = ()

    @property
    def remote_url(self) -> str:
        """URL the project is cloned from."""
        return self.endpoint.project_uri(self.project_name, self.authenticated)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_name": self.project_name,
            "remote_url": self.remote_url,
            "insecure_https": self.insecure_https,
            "credentials_id": self.credentials_id,
            "traits": list(self.traits),
        }


CandidateFactory = Callable[[], CandidateSource]


class CandidateSourceBuilder:
    """
    Builds the candidate source of one project.

    Usage:
        builder = CandidateSourceBuilder(navigator_id, settings, "ci-bot", traits)
        source = builder.build("platform/build")
    """

    def __init__(
        self,
        navigator_id: str,
        settings: ConnectionSettings,
        credentials_id: str | None = None,
        traits: tuple[Any, ...] = (),
    ):
        self.navigator_id = navigator_id
        self.settings = settings
        self.credentials_id = credentials_id
        self.traits = tuple(traits)

    def source_id(self, project_name: str) -> str:
        return f"{self.navigator_id}{ID_SEPARATOR}{project_name}"

    def build(self, project_name: str) -> CandidateSource:
        return CandidateSource(
            id=self.source_id(project_name),
            project_name=project_name,
            endpoint=self.settings.endpoint,
            insecure_https=self.settings.insecure_https,
            credentials_id=self.credentials_id,
            authenticated=self.settings.authenticated,
            traits=self.traits,
        )

    def factory(self, project_name: str) -> CandidateFactory:
        """Return a zero-argument callable building the project's candidate."""
        return lambda: self.build(project_name)
