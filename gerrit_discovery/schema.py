"""
JSON Schema definitions for the discovery report.

Defines the structure of the discovered_sources.json output file.
"""

from __future__ import annotations

from typing import Any

from jsonschema import Draft7Validator

from .sources import CandidateSource

# JSON Schema for the discovery report
REPORT_SCHEMA: dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Gerrit Discovery Report",
    "description": "Candidate sources discovered on one Gerrit server",
    "type": "object",
    "required": ["run", "sources"],
    "additionalProperties": False,
    "properties": {
        "run": {
            "type": "object",
            "description": "Metadata about the discovery run",
            "required": [
                "started_at",
                "finished_at",
                "navigator_id",
                "server_url",
                "web_uri",
                "api_uri",
                "stopped_early",
                "stats",
            ],
            "additionalProperties": False,
            "properties": {
                "started_at": {
                    "type": "string",
                    "format": "date-time",
                    "description": "ISO8601 timestamp when discovery started",
                },
                "finished_at": {
                    "type": "string",
                    "format": "date-time",
                    "description": "ISO8601 timestamp when discovery finished",
                },
                "navigator_id": {
                    "type": "string",
                    "minLength": 1,
                    "description": "Identity of the scan, prefix of every source id",
                },
                "server_url": {
                    "type": "string",
                    "description": "Server URL as configured",
                },
                "web_uri": {
                    "type": "string",
                    "description": "Resolved web base URI",
                },
                "api_uri": {
                    "type": "string",
                    "description": "Resolved REST API base URI",
                },
                "stopped_early": {
                    "type": "boolean",
                    "description": "Whether the observer stopped the scan",
                },
                "stats": {
                    "type": "object",
                    "description": "Summary statistics",
                    "required": ["projects_seen", "sources", "pages_fetched", "api_calls"],
                    "additionalProperties": False,
                    "properties": {
                        "projects_seen": {
                            "type": "integer",
                            "minimum": 0,
                            "description": "Projects listed by the server",
                        },
                        "sources": {
                            "type": "integer",
                            "minimum": 0,
                            "description": "Candidate sources accepted",
                        },
                        "pages_fetched": {
                            "type": "integer",
                            "minimum": 0,
                            "description": "Listing pages fetched",
                        },
                        "api_calls": {
                            "type": "integer",
                            "minimum": 0,
                            "description": "Total API calls made",
                        },
                    },
                },
            },
        },
        "sources": {
            "type": "array",
            "description": "Accepted candidate sources in server order",
            "items": {
                "type": "object",
                "required": ["id", "project_name", "remote_url", "traits"],
                "additionalProperties": True,
                "properties": {
                    "id": {
                        "type": "string",
                        "description": "Navigator id and project name joined by '::'",
                    },
                    "project_name": {
                        "type": "string",
                        "minLength": 1,
                    },
                    "remote_url": {
                        "type": "string",
                        "description": "Clone URL of the project",
                    },
                    "insecure_https": {
                        "type": "boolean",
                    },
                    "credentials_id": {
                        "type": ["string", "null"],
                    },
                    "traits": {
                        "type": "array",
                        "description": "Trait configurations, passed through unmodified",
                    },
                },
            },
        },
    },
}


def validate_report(data: dict[str, Any]) -> tuple[bool, list[str]]:
    """
    Validate report data against the schema.

    Args:
        data: Report dictionary

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    validator = Draft7Validator(REPORT_SCHEMA)
    errors = list(validator.iter_errors(data))

    if not errors:
        return True, []

    error_messages = []
    for error in errors:
        path = ".".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
        error_messages.append(f"{path}: {error.message}")

    return False, error_messages


class ReportBuilder:
    """Helper class to build a valid report structure."""

    def __init__(self):
        self.sources: list[dict[str, Any]] = []

    def add_source(self, source: CandidateSource) -> None:
        """Add an accepted candidate source, keeping discovery order."""
        self.sources.append(source.to_dict())

    def build(
        self,
        started_at: str,
        finished_at: str,
        navigator_id: str,
        server_url: str,
        web_uri: str,
        api_uri: str,
        projects_seen: int,
        pages_fetched: int,
        api_calls: int,
        stopped_early: bool = False,
    ) -> dict[str, Any]:
        """
        Build the final report structure.

        Returns:
            Complete report dictionary ready for serialization
        """
        return {
            "run": {
                "started_at": started_at,
                "finished_at": finished_at,
                "navigator_id": navigator_id,
                "server_url": server_url,
                "web_uri": web_uri,
                "api_uri": api_uri,
                "stopped_early": stopped_early,
                "stats": {
                    "projects_seen": projects_seen,
                    "sources": len(self.sources),
                    "pages_fetched": pages_fetched,
                    "api_calls": api_calls,
                },
            },
            "sources": list(self.sources),
        }
