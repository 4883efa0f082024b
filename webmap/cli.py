"""Command-line interface: map the link structure of one host."""

from __future__ import annotations

import argparse
import asyncio
import logging
import shutil
import sys
from typing import List, Optional

from dotenv import load_dotenv

from .auth import AuthConfig, load_auth_from_env, load_auth_from_file
from .cli_config import load_config
from .config import BACKENDS, RunConfigOverrides, load_settings
from .mapper import SiteMapper, build_fetcher
from .models import InsertOutcome, InsertStatus
from .report import render, write_output

_SUCCESS_STATES = frozenset({InsertStatus.EXTRACTED, InsertStatus.ALREADY_VISITED})


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="webmap",
        description="Fetch pages of a host and print the graph of their links and resources.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # Map the front page
  webmap https://example.com

  # Several roots, JSON output to a file
  webmap https://example.com / /about /blog/ --json -o site.json

  # Render with a headless browser for script-built pages
  webmap https://spa.example.com --backend browser --wait-until networkidle
""",
    )
    parser.add_argument("host", help="Host URL to register and resolve paths against")
    parser.add_argument(
        "paths",
        nargs="*",
        default=["/"],
        help="Paths (or absolute URLs) to crawl as roots (default: /)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Write output to this file instead of stdout",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Output the full graph as JSON",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Fetch timeout in seconds (default: WEBMAP_FETCH_TIMEOUT or 30)",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Roots fetched concurrently (default: WEBMAP_CONCURRENCY or 3)",
    )
    parser.add_argument(
        "--backend",
        choices=list(BACKENDS),
        default=None,
        help="Fetch backend (default: WEBMAP_BACKEND or http)",
    )
    parser.add_argument(
        "--global-identity",
        action="store_true",
        help="Key pages by URL alone instead of by (host, URL)",
    )
    parser.add_argument(
        "--auth-file",
        type=str,
        default=None,
        help="JSON file with 'cookies', 'headers' and/or 'storage_state'",
    )

    browser_group = parser.add_argument_group("browser backend")
    browser_group.add_argument(
        "--wait-until",
        type=str,
        default=None,
        choices=["load", "domcontentloaded", "networkidle", "commit"],
        help="Page load event to wait for before reading the DOM",
    )
    browser_group.add_argument(
        "--delay",
        type=float,
        default=None,
        help="Seconds to wait after page load before reading the DOM",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(argv)


def _build_auth(args: argparse.Namespace) -> Optional[AuthConfig]:
    if args.auth_file:
        return load_auth_from_file(args.auth_file)
    return load_auth_from_env()


def _build_mapper(args: argparse.Namespace) -> SiteMapper:
    settings = load_settings(
        fetch_timeout=args.timeout,
        concurrency=args.concurrency,
        backend=args.backend,
        host_scoped_identity=False if args.global_identity else None,
    )
    overrides = RunConfigOverrides(
        wait_until=args.wait_until,
        delay_before_return_html=args.delay,
    )
    fetcher = build_fetcher(settings, auth=_build_auth(args), overrides=overrides)
    return SiteMapper(fetcher=fetcher, settings=settings)


def _exit_code(outcomes: List[InsertOutcome]) -> int:
    return 0 if all(o.status in _SUCCESS_STATES for o in outcomes) else 1


async def _run_async(args: argparse.Namespace, mapper: SiteMapper) -> int:
    async with mapper.session():
        if not await mapper.register_host_async(args.host):
            logging.error("Could not register host %s", args.host)
            return 1
        logging.info("Mapping %d path(s) under %s", len(args.paths), args.host)
        outcomes = await mapper.insert_roots_async(
            [(args.host, path) for path in args.paths]
        )

    for outcome in outcomes:
        if outcome.status not in _SUCCESS_STATES:
            logging.error("%s: %s (%s)", outcome.url, outcome.status.value, outcome.error)

    write_output(
        render(mapper.graph, outcomes, json_output=args.json_output),
        args.output,
    )
    return _exit_code(outcomes)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = _parse_args(argv)
    _setup_logging(args.verbose)
    load_config(load_env=load_dotenv, copy_file=shutil.copy)

    try:
        mapper = _build_mapper(args)
    except ValueError as exc:  # includes AuthConfigError
        logging.error("Configuration error: %s", exc)
        return 2

    try:
        return asyncio.run(_run_async(args, mapper))
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 130
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1


if __name__ == "__main__":
    sys.exit(main())
