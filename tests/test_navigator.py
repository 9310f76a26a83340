"""
Tests for the discovery navigator.
"""

import threading
from unittest.mock import Mock, patch

import pytest

from conftest import make_response, project_page
from gerrit_discovery.credentials import CredentialStore
from gerrit_discovery.errors import (
    ConnectionFailure,
    MalformedEndpoint,
    PageFetchFailure,
    PaginationLimitExceeded,
    ResolutionFailure,
    ScanCancelled,
)
from gerrit_discovery.navigator import GerritNavigator
from gerrit_discovery.observer import CallbackObserver, CollectingObserver
from gerrit_discovery.session import DiscoverySession


class RecordingObserver:
    """Observer building every candidate and stopping on request."""

    def __init__(self, stop_after=None, on_observe=None):
        self.stop_after = stop_after
        self.on_observe = on_observe
        self.sources = []
        self.contexts = []

    def observe(self, project_name, candidate_factory, context):
        self.sources.append(candidate_factory())
        self.contexts.append(context)
        if self.on_observe:
            self.on_observe(project_name)
        return self.stop_after is not None and len(self.sources) >= self.stop_after

    @property
    def names(self):
        return [source.project_name for source in self.sources]


def three_projects_two_pages():
    return [
        make_response(200, project_page(["a", "b"], more=True)),
        make_response(200, project_page(["c"])),
    ]


def make_navigator(**kwargs):
    kwargs.setdefault("page_size", 2)
    kwargs.setdefault("max_retries", 1)
    return GerritNavigator("https://example.org/gerrit", **kwargs)


class TestNavigatorId:
    """Tests for the navigator identity."""

    def test_id_with_credentials(self):
        navigator = GerritNavigator("https://example.org", credentials_id="ci-bot")
        assert navigator.id == "server-url=https://example.org::credentials-id=ci-bot"

    def test_id_without_credentials(self):
        navigator = GerritNavigator("https://example.org")
        assert navigator.id == "server-url=https://example.org::credentials-id=null"

    def test_blank_values_normalized(self):
        navigator = GerritNavigator("  https://example.org ", credentials_id="  ")
        assert navigator.server_url == "https://example.org"
        assert navigator.credentials_id is None


class TestDiscover:
    """Tests for GerritNavigator.discover."""

    def test_scenario(self, mock_session):
        """Projects a, b, c over two pages become three candidates, in order."""
        mock_session.get.side_effect = three_projects_two_pages()
        observer = RecordingObserver()

        result = make_navigator().discover(observer)

        assert observer.names == ["a", "b", "c"]
        assert mock_session.get.call_count == 2
        assert result.projects_seen == 3
        assert result.pages_fetched == 2
        assert result.stopped_early is False
        assert result.api_calls == 2
        mock_session.close.assert_called_once()

    def test_candidate_contents(self, mock_session):
        mock_session.get.return_value = make_response(200, project_page(["tools/build"]))
        observer = RecordingObserver()
        traits = [{"type": "branch-discovery"}, {"type": "refspecs"}]

        make_navigator(insecure_https=True, traits=traits).discover(observer)

        source = observer.sources[0]
        assert source.id == (
            "server-url=https://example.org/gerrit::credentials-id=null::tools/build"
        )
        assert source.project_name == "tools/build"
        assert source.endpoint.api_uri == "https://example.org/gerrit/a"
        assert source.insecure_https is True
        assert source.credentials_id is None
        assert source.remote_url == "https://example.org/gerrit/tools/build"
        assert list(source.traits) == traits

    def test_context_is_open_session(self, mock_session):
        mock_session.get.return_value = make_response(200, project_page(["a"]))
        observer = RecordingObserver()
        states = []
        observer.on_observe = lambda name: states.append(observer.contexts[-1].is_open)

        make_navigator().discover(observer)

        assert isinstance(observer.contexts[0], DiscoverySession)
        assert states == [True]
        assert observer.contexts[0].is_open is False

    def test_observer_stop(self, mock_session):
        """Stopping after project 2 fetches no further page."""
        mock_session.get.side_effect = three_projects_two_pages()
        observer = RecordingObserver(stop_after=2)

        result = make_navigator().discover(observer)

        assert observer.names == ["a", "b"]
        assert mock_session.get.call_count == 1
        assert result.stopped_early is True
        mock_session.close.assert_called_once()

    def test_observer_stop_on_first_project(self, mock_session):
        mock_session.get.side_effect = three_projects_two_pages()
        observer = RecordingObserver(stop_after=1)

        make_navigator().discover(observer)

        assert observer.names == ["a"]

    def test_cancellation(self, mock_session):
        """Cancelling after project k ends the scan with exactly k observed."""
        mock_session.get.side_effect = three_projects_two_pages()
        cancel_event = threading.Event()
        observer = RecordingObserver(
            on_observe=lambda name: cancel_event.set() if name == "b" else None
        )

        with pytest.raises(ScanCancelled) as exc_info:
            make_navigator().discover(observer, cancel_event)

        assert observer.names == ["a", "b"]
        assert exc_info.value.projects_seen == 2
        assert mock_session.get.call_count == 1
        mock_session.close.assert_called_once()

    def test_stop_wins_over_cancellation(self, mock_session):
        """A stop request ends the scan normally even if cancelled meanwhile."""
        mock_session.get.side_effect = three_projects_two_pages()
        cancel_event = threading.Event()
        observer = RecordingObserver(stop_after=1, on_observe=lambda name: cancel_event.set())

        result = make_navigator().discover(observer, cancel_event)

        assert result.stopped_early is True

    def test_failure_on_later_page(self, mock_session):
        """Failure on page 2 of 3 keeps page-1 projects observed."""
        mock_session.get.side_effect = [
            make_response(200, project_page(["a", "b"], more=True)),
            make_response(500, text="Internal error"),
            make_response(200, project_page(["e"])),
        ]
        observer = RecordingObserver()

        with pytest.raises(PageFetchFailure) as exc_info:
            make_navigator().discover(observer)

        assert observer.names == ["a", "b"]
        assert exc_info.value.page == 2
        assert mock_session.get.call_count == 2
        mock_session.close.assert_called_once()

    def test_failure_on_first_page(self, mock_session):
        """A failing first contact is a connection failure."""
        mock_session.get.return_value = make_response(401, text="Unauthorized")
        observer = RecordingObserver()

        with pytest.raises(ConnectionFailure) as exc_info:
            make_navigator().discover(observer)

        assert observer.sources == []
        assert isinstance(exc_info.value.__cause__, PageFetchFailure)
        mock_session.close.assert_called_once()

    def test_pagination_limit(self, mock_session):
        mock_session.get.side_effect = [
            make_response(200, project_page([f"p{i}"], more=True)) for i in range(2)
        ]
        observer = RecordingObserver()

        with pytest.raises(PaginationLimitExceeded):
            make_navigator(page_size=1, max_pages=2).discover(observer)

        assert observer.names == ["p0", "p1"]
        mock_session.close.assert_called_once()

    def test_observer_error_closes_session(self, mock_session):
        mock_session.get.return_value = make_response(200, project_page(["a"]))
        observer = CallbackObserver(Mock(side_effect=RuntimeError("observer broke")))

        with pytest.raises(RuntimeError):
            make_navigator().discover(observer)

        mock_session.close.assert_called_once()

    def test_malformed_url(self):
        """An unresolvable URL fails before any client is built."""
        navigator = GerritNavigator("review.example.org")

        with patch("gerrit_discovery.gerrit_client.requests.Session") as session_class:
            with pytest.raises(ResolutionFailure):
                navigator.discover(RecordingObserver())

        session_class.assert_not_called()

    @pytest.mark.parametrize("url", [
        "https://exa mple.org",
        "https://ho<st>.org",
        "https://host\t.org/x",
        "https://h@@ost",
    ])
    def test_invalid_uri_never_reaches_network(self, url):
        """Syntactically invalid URLs are rejected, not rewritten into another server."""
        navigator = GerritNavigator(url)

        with patch("gerrit_discovery.gerrit_client.requests.Session") as session_class:
            with pytest.raises(ResolutionFailure) as exc_info:
                navigator.discover(RecordingObserver())

        assert isinstance(exc_info.value.cause, MalformedEndpoint)
        session_class.assert_not_called()

    def test_missing_url(self):
        with pytest.raises(ResolutionFailure):
            GerritNavigator(None).discover(RecordingObserver())

    def test_client_construction_failure(self):
        with patch("gerrit_discovery.navigator.GerritClient", side_effect=RuntimeError("boom")):
            with pytest.raises(ConnectionFailure):
                make_navigator().discover(RecordingObserver())

    def test_each_scan_refetches(self, mock_session):
        """Scans never reuse earlier results."""
        mock_session.get.side_effect = three_projects_two_pages() + three_projects_two_pages()
        navigator = make_navigator()

        first = RecordingObserver()
        second = RecordingObserver()
        navigator.discover(first)
        navigator.discover(second)

        assert first.names == second.names == ["a", "b", "c"]
        assert mock_session.get.call_count == 4
        assert mock_session.close.call_count == 2

    def test_collecting_observer(self, mock_session):
        mock_session.get.side_effect = three_projects_two_pages()
        observer = CollectingObserver(exclude=["b"])

        make_navigator().discover(observer)

        assert [s.project_name for s in observer.sources] == ["a", "c"]
        assert observer.skipped == ["b"]


class TestDiscoverCredentials:
    """Tests for credential handling during discovery."""

    def test_authenticated_scan(self, mock_session):
        store = CredentialStore()
        store.add("ci-bot", "bot", "secret", url="https://example.org/gerrit")
        mock_session.get.return_value = make_response(200, project_page(["a"]))
        observer = RecordingObserver()

        make_navigator(credentials_id="ci-bot", credential_store=store).discover(observer)

        assert mock_session.get.call_args[0][0] == "https://example.org/gerrit/a/projects/"
        assert mock_session.auth.username == "bot"
        source = observer.sources[0]
        assert source.credentials_id == "ci-bot"
        assert source.remote_url == "https://example.org/gerrit/a/a"

    def test_credential_looked_up_once(self, mock_session):
        store = Mock(wraps=CredentialStore())
        mock_session.get.side_effect = three_projects_two_pages()

        make_navigator(credentials_id="ci-bot", credential_store=store).discover(
            RecordingObserver()
        )

        store.lookup.assert_called_once_with("https://example.org/gerrit", "ci-bot")

    def test_unknown_credential_scans_anonymously(self, mock_session):
        mock_session.get.return_value = make_response(200, project_page(["a"]))

        make_navigator(credentials_id="missing").discover(RecordingObserver())

        assert mock_session.get.call_args[0][0] == "https://example.org/gerrit/projects/"

    def test_out_of_scope_credential_not_sent(self, mock_session):
        store = CredentialStore()
        store.add("ci-bot", "bot", "secret", url="https://other.example.org")
        mock_session.get.return_value = make_response(200, project_page(["a"]))

        make_navigator(credentials_id="ci-bot", credential_store=store).discover(
            RecordingObserver()
        )

        assert mock_session.get.call_args[0][0] == "https://example.org/gerrit/projects/"
