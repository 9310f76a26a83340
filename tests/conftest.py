"""Test configuration and fixtures"""

import json
from unittest.mock import Mock, patch

import pytest

ENV_VARS = (
    "GERRIT_SERVER_URL",
    "GERRIT_INSECURE_HTTPS",
    "GERRIT_CREDENTIALS_ID",
    "GERRIT_CREDENTIALS_FILE",
    "GERRIT_USERNAME",
    "GERRIT_PASSWORD",
    "GERRIT_TRAITS",
    "PAGE_SIZE",
    "MAX_PAGES",
    "TIMEOUT",
    "MAX_RETRIES",
    "OUTPUT_DIR",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep the developer's environment and .env file out of the tests."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("gerrit_discovery.config.load_dotenv", lambda *a, **k: False)
    monkeypatch.setattr("gerrit_discovery.credentials.load_dotenv", lambda *a, **k: False)


def make_response(status_code=200, payload=None, text=None, headers=None):
    """Build a mock requests response carrying a Gerrit JSON body."""
    response = Mock()
    response.status_code = status_code
    response.headers = headers or {}
    if text is None:
        text = ")]}'\n" + json.dumps(payload if payload is not None else {})
    response.text = text
    return response


def project_page(names, more=False):
    """Build a Gerrit project listing page, flagging truncation on the last entry."""
    page = {name: {"id": name.replace("/", "%2F"), "state": "ACTIVE"} for name in names}
    if more and names:
        page[names[-1]]["_more_projects"] = True
    return page


@pytest.fixture
def mock_session():
    """Patch requests.Session inside the client module."""
    with patch("gerrit_discovery.gerrit_client.requests.Session") as mock:
        session = mock.return_value
        session.headers = {}
        yield session


@pytest.fixture
def no_sleep():
    """Skip backoff delays."""
    with patch("gerrit_discovery.gerrit_client.time.sleep") as sleep:
        yield sleep
