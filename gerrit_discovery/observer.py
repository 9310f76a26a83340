"""
Observers receive the projects found by a scan.

An observer decides which candidates it accepts and tells the scan when
to stop. It also provides the logger the scan writes diagnostics to.
"""

from __future__ import annotations

import logging
from fnmatch import fnmatchcase
from typing import Any, Callable, Iterable, Protocol, runtime_checkable

from .sources import CandidateFactory, CandidateSource

logger = logging.getLogger(__name__)


@runtime_checkable
class SourceObserver(Protocol):
    """Receives one call per discovered project."""

    logger: logging.Logger | logging.LoggerAdapter

    def observe(self, project_name: str, candidate_factory: CandidateFactory, context: Any) -> bool:
        """
        Handle a discovered project.

        Args:
            project_name: Name of the project on the server
            candidate_factory: Builds the project's candidate source on demand
            context: The discovery session the project belongs to

        Returns:
            True to stop the scan after this project
        """
        ...


class CallbackObserver:
    """Adapts a plain function with the observe() signature."""

    def __init__(
        self,
        callback: Callable[[str, CandidateFactory, Any], bool],
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self.callback = callback
        self.logger = log or logger

    def observe(self, project_name: str, candidate_factory: CandidateFactory, context: Any) -> bool:
        return bool(self.callback(project_name, candidate_factory, context))


class CollectingObserver:
    """
    Keeps the candidates whose project names pass include/exclude patterns.

    Patterns are shell-style globs matched against the full project name.
    An empty include list accepts every name. Exclusion wins over inclusion.
    When limit is set, the scan is stopped once that many candidates have
    been accepted.
    """

    def __init__(
        self,
        include: Iterable[str] = (),
        exclude: Iterable[str] = (),
        limit: int | None = None,
        log: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        if limit is not None and limit < 1:
            raise ValueError("limit must be at least 1")
        self.include = tuple(include)
        self.exclude = tuple(exclude)
        self.limit = limit
        self.logger = log or logger
        self.sources: list[CandidateSource] = []
        self.skipped: list[str] = []

    def accepts(self, project_name: str) -> bool:
        if any(fnmatchcase(project_name, pattern) for pattern in self.exclude):
            return False
        if not self.include:
            return True
        return any(fnmatchcase(project_name, pattern) for pattern in self.include)

    def observe(self, project_name: str, candidate_factory: CandidateFactory, context: Any) -> bool:
        if not self.accepts(project_name):
            self.skipped.append(project_name)
            self.logger.debug(f"Skipping {project_name}", extra={"project": project_name})
            return False

        self.sources.append(candidate_factory())
        self.logger.debug(f"Accepted {project_name}", extra={"project": project_name})
        return self.limit is not None and len(self.sources) >= self.limit
