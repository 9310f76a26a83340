"""Configuration management for Gerrit discovery."""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from .endpoint import check_server_url


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _parse_traits(value: str) -> list[Any]:
    if not value.strip():
        return []
    try:
        traits = json.loads(value)
    except ValueError as e:
        raise ValueError(f"GERRIT_TRAITS is not valid JSON: {e}") from e
    if not isinstance(traits, list):
        raise ValueError("GERRIT_TRAITS must be a JSON list")
    return traits


@dataclass
class DiscoveryConfig:
    """Configuration for a Gerrit discovery scan."""

    # Required settings
    server_url: str

    # Connection
    insecure_https: bool = False
    credentials_id: Optional[str] = None
    credentials_file: Optional[str] = None

    # Passed through to every candidate source unmodified
    traits: list[Any] = field(default_factory=list)

    # Paging and transport
    page_size: int = 100
    max_pages: int = 10_000
    timeout: int = 30
    max_retries: int = 3

    # Output
    output_dir: str = "./output"
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.server_url = (self.server_url or "").strip()
        if not self.server_url:
            raise ValueError("server_url is required")

        problem = check_server_url(self.server_url)
        if problem:
            raise ValueError(f"server_url {self.server_url!r} is invalid: {problem}")

        # Normalize empty strings to None
        if not self.credentials_id or not self.credentials_id.strip():
            self.credentials_id = None
        if not self.credentials_file:
            self.credentials_file = None

        for name in ("page_size", "max_pages", "timeout", "max_retries"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")

        self.output_dir = os.path.expanduser(self.output_dir)

        self.log_level = self.log_level.upper()
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"Unknown log level {self.log_level!r}")

    @classmethod
    def from_env(cls, **overrides) -> "DiscoveryConfig":
        """Create configuration from environment variables with optional overrides."""
        load_dotenv()

        config_dict = {
            "server_url": os.getenv("GERRIT_SERVER_URL", ""),
            "insecure_https": _env_bool("GERRIT_INSECURE_HTTPS"),
            "credentials_id": os.getenv("GERRIT_CREDENTIALS_ID") or None,
            "credentials_file": os.getenv("GERRIT_CREDENTIALS_FILE") or None,
            "traits": _parse_traits(os.getenv("GERRIT_TRAITS", "")),
            "page_size": _env_int("PAGE_SIZE", 100),
            "max_pages": _env_int("MAX_PAGES", 10_000),
            "timeout": _env_int("TIMEOUT", 30),
            "max_retries": _env_int("MAX_RETRIES", 3),
            "output_dir": os.getenv("OUTPUT_DIR", "./output"),
            "log_level": os.getenv("LOG_LEVEL", "INFO"),
        }

        # Apply overrides (filter out None values from CLI)
        for key, value in overrides.items():
            if value is not None:
                config_dict[key] = value

        return cls(**config_dict)


def ensure_output_dir(config: DiscoveryConfig) -> Path:
    """
    Ensure the output directory exists and return it as a Path.

    Args:
        config: Discovery configuration

    Returns:
        Path object for the output directory
    """
    output_path = Path(config.output_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    return output_path
