"""
Tests for configuration loading.
"""

import pytest

from gerrit_discovery.config import DiscoveryConfig, ensure_output_dir


class TestDiscoveryConfig:
    """Tests for DiscoveryConfig."""

    def test_defaults(self):
        config = DiscoveryConfig(server_url="https://example.org")
        assert config.insecure_https is False
        assert config.credentials_id is None
        assert config.traits == []
        assert config.page_size == 100
        assert config.max_pages == 10_000

    def test_server_url_required(self):
        with pytest.raises(ValueError, match="server_url is required"):
            DiscoveryConfig(server_url="   ")

    def test_server_url_validated(self):
        with pytest.raises(ValueError, match="missing scheme"):
            DiscoveryConfig(server_url="example.org")

    def test_blank_credentials_id(self):
        config = DiscoveryConfig(server_url="https://example.org", credentials_id="  ")
        assert config.credentials_id is None

    def test_invalid_page_size(self):
        with pytest.raises(ValueError, match="page_size"):
            DiscoveryConfig(server_url="https://example.org", page_size=0)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("GERRIT_SERVER_URL", "https://example.org/gerrit")
        monkeypatch.setenv("GERRIT_INSECURE_HTTPS", "true")
        monkeypatch.setenv("GERRIT_CREDENTIALS_ID", "ci-bot")
        monkeypatch.setenv("GERRIT_TRAITS", '[{"type": "branch-discovery"}]')
        monkeypatch.setenv("PAGE_SIZE", "25")

        config = DiscoveryConfig.from_env()

        assert config.server_url == "https://example.org/gerrit"
        assert config.insecure_https is True
        assert config.credentials_id == "ci-bot"
        assert config.traits == [{"type": "branch-discovery"}]
        assert config.page_size == 25

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("GERRIT_SERVER_URL", "https://example.org")
        monkeypatch.setenv("PAGE_SIZE", "25")

        config = DiscoveryConfig.from_env(
            server_url="https://other.example.org",
            page_size=None,
        )

        assert config.server_url == "https://other.example.org"
        assert config.page_size == 25

    def test_missing_server_url(self):
        with pytest.raises(ValueError):
            DiscoveryConfig.from_env()

    def test_bad_integer(self, monkeypatch):
        monkeypatch.setenv("GERRIT_SERVER_URL", "https://example.org")
        monkeypatch.setenv("MAX_PAGES", "many")
        with pytest.raises(ValueError, match="MAX_PAGES"):
            DiscoveryConfig.from_env()

    @pytest.mark.parametrize("value", ["not json", '{"type": "x"}'])
    def test_bad_traits(self, monkeypatch, value):
        monkeypatch.setenv("GERRIT_SERVER_URL", "https://example.org")
        monkeypatch.setenv("GERRIT_TRAITS", value)
        with pytest.raises(ValueError, match="GERRIT_TRAITS"):
            DiscoveryConfig.from_env()

    def test_ensure_output_dir(self, tmp_path):
        config = DiscoveryConfig(
            server_url="https://example.org",
            output_dir=str(tmp_path / "nested" / "out"),
        )
        path = ensure_output_dir(config)
        assert path.is_dir()
