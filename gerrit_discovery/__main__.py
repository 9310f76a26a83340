#!/usr/bin/env python3
"""
CLI entry point for Gerrit discovery.

Usage:
    # Discover every code project of a server:
    python -m gerrit_discovery --server-url https://review.example.org --out ./out

    # Check how a server URL resolves:
    python -m gerrit_discovery check-url https://review.example.org/gerrit

Or with environment variables in .env file:
    python -m gerrit_discovery
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from . import __version__
from .config import DiscoveryConfig, ensure_output_dir
from .credentials import CredentialStore
from .endpoint import resolve
from .errors import GerritDiscoveryError, MalformedEndpoint, ScanCancelled
from .logging_config import setup_structured_logging
from .navigator import GerritNavigator
from .observer import CollectingObserver
from .schema import ReportBuilder, validate_report

REPORT_FILENAME = "discovered_sources.json"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="gerrit_discovery",
        description="Gerrit Discovery - List the projects of a Gerrit server as candidate sources",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Discover all code projects anonymously
  python -m gerrit_discovery --server-url https://review.example.org --out ./output

  # Authenticated scan, only projects under platform/
  python -m gerrit_discovery --server-url https://review.example.org \\
      --credentials-id ci-bot --credentials-file creds.json --include 'platform/*'

  # Using .env file (create .env with GERRIT_SERVER_URL, GERRIT_USERNAME, GERRIT_PASSWORD)
  python -m gerrit_discovery

Environment Variables (can be set in .env):
  GERRIT_SERVER_URL               Gerrit server URL
  GERRIT_INSECURE_HTTPS           Skip TLS verification (default: false)
  GERRIT_CREDENTIALS_ID           Id of the credential to use
  GERRIT_CREDENTIALS_FILE         JSON file with credentials
  GERRIT_USERNAME                 Username registered under GERRIT_CREDENTIALS_ID (or "env")
  GERRIT_PASSWORD                 HTTP password for GERRIT_USERNAME
  GERRIT_TRAITS                   JSON list of trait configurations
  PAGE_SIZE                       Projects per page (default: 100)
  MAX_PAGES                       Maximum pages per scan (default: 10000)
  OUTPUT_DIR                      Output directory (default: ./output)
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # Connection settings
    parser.add_argument(
        "--server-url",
        metavar="URL",
        help="Gerrit server URL (e.g., https://review.example.org)",
    )
    parser.add_argument(
        "--insecure-https",
        action="store_true",
        default=None,
        help="Skip TLS certificate verification",
    )
    parser.add_argument(
        "--credentials-id",
        metavar="ID",
        help="Id of the credential to authenticate with",
    )
    parser.add_argument(
        "--credentials-file",
        metavar="FILE",
        help="JSON file holding credentials",
    )

    # Paging
    parser.add_argument(
        "--page-size",
        metavar="N",
        type=int,
        help="Projects requested per page (default: 100)",
    )
    parser.add_argument(
        "--max-pages",
        metavar="N",
        type=int,
        help="Maximum pages fetched per scan (default: 10000)",
    )

    # Filtering
    parser.add_argument(
        "--include",
        metavar="PATTERN",
        action="append",
        default=[],
        help="Only keep projects matching this glob (repeatable)",
    )
    parser.add_argument(
        "--exclude",
        metavar="PATTERN",
        action="append",
        default=[],
        help="Drop projects matching this glob (repeatable)",
    )
    parser.add_argument(
        "--limit",
        metavar="N",
        type=int,
        help="Stop after accepting N projects",
    )

    # Output settings
    parser.add_argument(
        "--out",
        metavar="DIR",
        type=Path,
        help=f"Output directory for {REPORT_FILENAME} (default: ./output)",
    )

    # Logging
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines",
    )
    parser.add_argument(
        "--log-file",
        metavar="FILE",
        help="Also write logs to FILE",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all output except errors",
    )

    return parser.parse_args(argv)


def write_report(path: Path, data: dict[str, Any]) -> None:
    """Write the discovery report as indented UTF-8 JSON."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def build_credential_store(config: DiscoveryConfig) -> CredentialStore:
    """Credentials from the environment, then from the configured file."""
    store = CredentialStore.from_env()
    if config.credentials_file:
        store = store.merged(CredentialStore.from_file(config.credentials_file))
    return store


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    if args.quiet:
        log_level = logging.ERROR
    elif args.verbose:
        log_level = logging.DEBUG
    else:
        log_level = logging.INFO

    setup_structured_logging(
        level=log_level,
        json_format=args.json_logs,
        log_file=args.log_file,
    )
    logger = logging.getLogger("gerrit_discovery")

    try:
        config = DiscoveryConfig.from_env(
            server_url=args.server_url,
            insecure_https=args.insecure_https,
            credentials_id=args.credentials_id,
            credentials_file=args.credentials_file,
            page_size=args.page_size,
            max_pages=args.max_pages,
            output_dir=str(args.out) if args.out else None,
        )
        store = build_credential_store(config)
        observer = CollectingObserver(
            include=args.include,
            exclude=args.exclude,
            limit=args.limit,
            log=logger,
        )
    except (OSError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        logger.error("Please provide required settings via CLI arguments or .env file")
        return 1

    if not (args.quiet or args.verbose):
        logging.getLogger().setLevel(config.log_level)
        logger.setLevel(config.log_level)

    navigator = GerritNavigator(
        config.server_url,
        insecure_https=config.insecure_https,
        credentials_id=config.credentials_id,
        traits=config.traits,
        credential_store=store,
        page_size=config.page_size,
        max_pages=config.max_pages,
        timeout=config.timeout,
        max_retries=config.max_retries,
    )

    cancel_event = threading.Event()
    previous_handler = None
    if threading.current_thread() is threading.main_thread():
        previous_handler = signal.signal(
            signal.SIGTERM, lambda signum, frame: cancel_event.set()
        )

    started_at = datetime.now(timezone.utc).isoformat()
    try:
        result = navigator.discover(observer, cancel_event)

    except (KeyboardInterrupt, ScanCancelled):
        logger.warning("Discovery interrupted")
        return 130

    except GerritDiscoveryError as e:
        logger.error(f"Discovery failed: {e}")
        return 1

    finally:
        if previous_handler is not None:
            signal.signal(signal.SIGTERM, previous_handler)

    report = ReportBuilder()
    for source in observer.sources:
        report.add_source(source)
    data = report.build(
        started_at=started_at,
        finished_at=datetime.now(timezone.utc).isoformat(),
        navigator_id=result.navigator_id,
        server_url=result.endpoint.server_url,
        web_uri=result.endpoint.web_uri,
        api_uri=result.endpoint.api_uri,
        projects_seen=result.projects_seen,
        pages_fetched=result.pages_fetched,
        api_calls=result.api_calls,
        stopped_early=result.stopped_early,
    )

    is_valid, errors = validate_report(data)
    if not is_valid:
        for error in errors:
            logger.error(f"Report validation error: {error}")
        return 1

    output_path = ensure_output_dir(config) / REPORT_FILENAME
    write_report(output_path, data)

    logger.info(
        f"Discovery complete: {len(observer.sources)} sources from "
        f"{result.projects_seen} projects, written to {output_path}"
    )
    return 0


def check_url(argv: list[str] | None = None) -> int:
    """Report how a server URL resolves."""
    parser = argparse.ArgumentParser(
        prog="gerrit_discovery check-url",
        description="Check that a Gerrit server URL resolves to REST endpoints",
    )
    parser.add_argument("url", help="Gerrit server URL")
    args = parser.parse_args(argv)

    try:
        endpoint = resolve(args.url)
    except MalformedEndpoint as e:
        print(f"invalid: {e.reason}", file=sys.stderr)
        return 1

    print(f"web: {endpoint.web_uri}")
    print(f"api: {endpoint.api_uri}")
    return 0


def run() -> None:
    """Console script entry point."""
    # Check for subcommands
    if len(sys.argv) > 1 and sys.argv[1] == "check-url":
        sys.exit(check_url(sys.argv[2:]))
    sys.exit(main())


if __name__ == "__main__":
    run()
