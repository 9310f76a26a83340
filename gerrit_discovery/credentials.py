"""
Credential lookup for Gerrit servers.

Credentials are username / HTTP password pairs registered under an id and
optionally scoped to a server URL. A scan looks its credential up once,
before any network call.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable
from urllib.parse import urlsplit

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_ENV_CREDENTIALS_ID = "env"


@dataclass(frozen=True)
class Credential:
    """Username / HTTP password pair used for basic authentication."""
    username: str
    password: str = field(repr=False)

    @property
    def password_last4(self) -> str:
        """Last four characters of the password, for diagnostics."""
        return self.password[-4:] if len(self.password) >= 4 else "****"


@dataclass(frozen=True)
class StoredCredential:
    """A credential registered in the store, with its id and URL scope."""
    credentials_id: str
    credential: Credential
    url: str | None = None

    def matches(self, server_url: str) -> bool:
        """
        Check whether this credential applies to a server URL.

        An unscoped credential applies everywhere. A scoped one requires the
        same scheme and host, the same port when the scope names one, and a
        path under the scope's path.
        """
        if not self.url:
            return True

        try:
            scope = urlsplit(self.url)
            target = urlsplit(server_url)
            scope_port = scope.port
            target_port = target.port
        except ValueError:
            return False

        if scope.scheme.lower() != target.scheme.lower():
            return False
        if (scope.hostname or "") != (target.hostname or ""):
            return False
        if scope_port is not None and scope_port != target_port:
            return False

        scope_path = scope.path.rstrip("/")
        target_path = target.path.rstrip("/")
        return target_path == scope_path or target_path.startswith(scope_path + "/")


class CredentialStore:
    """
    In-memory credential store.

    Usage:
        store = CredentialStore.from_file("credentials.json")
        credential = store.lookup("https://review.example.org", "ci-bot")
    """

    def __init__(self, entries: Iterable[StoredCredential] = ()):
        self._entries: list[StoredCredential] = list(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def add(
        self,
        credentials_id: str,
        username: str,
        password: str,
        url: str | None = None,
    ) -> None:
        """Register a credential."""
        self._entries.append(
            StoredCredential(credentials_id, Credential(username, password), url)
        )

    def lookup(self, server_url: str, credentials_id: str | None) -> Credential | None:
        """
        Find the credential with an id that applies to a server URL.

        Args:
            server_url: Server the credential will be sent to
            credentials_id: Id of the credential, or None for anonymous access

        Returns:
            The first matching credential, or None
        """
        if credentials_id is None:
            return None

        for entry in self._entries:
            if entry.credentials_id == credentials_id and entry.matches(server_url):
                return entry.credential

        logger.debug(f"No credential {credentials_id!r} applies to {server_url}")
        return None

    @classmethod
    def from_records(cls, records: Iterable[dict[str, Any]]) -> "CredentialStore":
        """Build a store from dicts with id, username, password and optional url."""
        store = cls()
        for index, record in enumerate(records):
            missing = [key for key in ("id", "username", "password") if not record.get(key)]
            if missing:
                raise ValueError(
                    f"Credential record {index} is missing {', '.join(missing)}"
                )
            store.add(
                record["id"],
                record["username"],
                record["password"],
                record.get("url") or None,
            )
        return store

    @classmethod
    def from_file(cls, path: str | Path) -> "CredentialStore":
        """
        Load credentials from a JSON file.

        The file holds a list of objects:
            [{"id": "ci-bot", "username": "bot", "password": "...",
              "url": "https://review.example.org"}]
        """
        with open(path, "r", encoding="utf-8") as f:
            records = json.load(f)
        if not isinstance(records, list):
            raise ValueError(f"Credential file {path} must contain a JSON list")
        store = cls.from_records(records)
        logger.debug(f"Loaded {len(store)} credentials from {path}")
        return store

    @classmethod
    def from_env(cls) -> "CredentialStore":
        """
        Load a single unscoped credential from GERRIT_USERNAME / GERRIT_PASSWORD.

        It is registered under GERRIT_CREDENTIALS_ID, or "env" when unset.
        """
        load_dotenv()

        store = cls()
        username = os.getenv("GERRIT_USERNAME", "")
        password = os.getenv("GERRIT_PASSWORD", "")
        if username and password:
            credentials_id = os.getenv("GERRIT_CREDENTIALS_ID") or DEFAULT_ENV_CREDENTIALS_ID
            store.add(credentials_id, username, password)
        return store

    def merged(self, other: "CredentialStore") -> "CredentialStore":
        """Return a store holding this store's entries followed by other's."""
        return CredentialStore([*self._entries, *other._entries])
