"""
Lazy pagination over the projects hosted on a Gerrit server.

Gerrit lists projects as a JSON object keyed by project name. When the
listing is truncated, the last project of the page carries
"_more_projects": true. Pages are requested with a limit ("n") and the
number of projects to skip ("S").
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator

from .errors import PageFetchFailure, PaginationLimitExceeded
from .gerrit_client import GerritClient, GerritClientError

PROJECTS_PATH = "/projects/"
MORE_PROJECTS_FLAG = "_more_projects"


@dataclass(frozen=True)
class RemoteProject:
    """A project as returned by the Gerrit project listing."""
    name: str
    id: str | None = None
    state: str | None = None
    description: str | None = None
    web_links: tuple[dict[str, Any], ...] = field(default=(), compare=False)

    @classmethod
    def from_info(cls, name: str, info: dict[str, Any]) -> "RemoteProject":
        """Build from a name and its ProjectInfo entry."""
        return cls(
            name=name,
            id=info.get("id"),
            state=info.get("state"),
            description=info.get("description"),
            web_links=tuple(info.get("web_links") or ()),
        )


class ProjectPager:
    """
    Iterable over every project of a server, fetched page by page.

    Each call to iter() starts a new traversal from the first page; nothing
    is cached between traversals. The "_more_projects" flag is the only
    signal that another page exists.

    Usage:
        pager = ProjectPager(client, page_size=50)
        for project in pager:
            print(project.name)
    """

    DEFAULT_PAGE_SIZE = 100
    DEFAULT_MAX_PAGES = 10_000

    def __init__(
        self,
        client: GerritClient,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_pages: int = DEFAULT_MAX_PAGES,
        project_type: str | None = "CODE",
    ):
        """
        Initialize pager.

        Args:
            client: Client bound to the server's REST base
            page_size: Projects requested per page
            max_pages: Page fetches allowed per traversal
            project_type: Gerrit project type filter, None for all projects
        """
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        if max_pages < 1:
            raise ValueError("max_pages must be at least 1")

        self.client = client
        self.page_size = page_size
        self.max_pages = max_pages
        self.project_type = project_type
        self.pages_fetched = 0

    def _page_params(self, skip: int) -> dict[str, Any]:
        params: dict[str, Any] = {"n": self.page_size, "S": skip, "d": ""}
        if self.project_type:
            params["type"] = self.project_type
        return params

    def fetch_page(self, page: int, skip: int) -> tuple[list[RemoteProject], bool]:
        """
        Fetch one page of the listing.

        Args:
            page: 1-based page index, for error reporting
            skip: Number of projects to skip

        Returns:
            Tuple of (projects in server order, whether more pages exist)

        Raises:
            PageFetchFailure: On transport errors, error statuses or bodies
                that are not a project map
        """
        try:
            status_code, data, _ = self.client.get(PROJECTS_PATH, self._page_params(skip))
        except GerritClientError as e:
            raise PageFetchFailure(
                f"Fetching project page {page} failed: {e}", page=page, cause=e
            ) from e

        if not 200 <= status_code < 300:
            raise PageFetchFailure(
                f"Fetching project page {page} failed with status {status_code}",
                page=page,
                status_code=status_code,
            )

        if not isinstance(data, dict):
            raise PageFetchFailure(
                f"Project page {page} is not a JSON object",
                page=page,
                status_code=status_code,
            )

        projects = []
        more = False
        for name, info in data.items():
            if not isinstance(info, dict):
                raise PageFetchFailure(
                    f"Project page {page} has a malformed entry for {name!r}",
                    page=page,
                    status_code=status_code,
                )
            projects.append(RemoteProject.from_info(name, info))
            if info.get(MORE_PROJECTS_FLAG):
                more = True

        return projects, more

    def __iter__(self) -> Iterator[RemoteProject]:
        self.pages_fetched = 0
        skip = 0

        while True:
            if self.pages_fetched >= self.max_pages:
                raise PaginationLimitExceeded(self.max_pages)

            page = self.pages_fetched + 1
            projects, more = self.fetch_page(page, skip)
            self.pages_fetched = page
            self.client.log.debug(
                f"Fetched project page {page}: {len(projects)} projects, more={more}",
                extra={"page": page},
            )

            for project in projects:
                yield project
                skip += 1

            if not more:
                return
