# main.py

"""Entry point for listing_watch (one-shot runs or the scheduler)."""

import argparse
import asyncio
import logging
import sys

from listing_watch.config.logging_config import setup_logging
from listing_watch.config.settings import Settings

logger = logging.getLogger("listing_watch.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="listing_watch",
        description="Marketplace listing watcher with change detection.",
        epilog=(
            "Examples: main.py \"BMW Z3\" | main.py \"BMW Z3\" craigslist"
            " | main.py --all | main.py --continuous"
        ),
    )
    parser.add_argument(
        "search",
        nargs="?",
        default=None,
        help="Name of the search to run once.",
    )
    parser.add_argument(
        "site",
        nargs="?",
        default=None,
        help="Restrict the run to one configured site.",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--all",
        action="store_true",
        default=False,
        dest="run_all",
        help="Run every enabled search once.",
    )
    mode.add_argument(
        "--continuous",
        action="store_true",
        default=False,
        help="Run the scheduler until interrupted.",
    )
    mode.add_argument(
        "--list",
        action="store_true",
        default=False,
        dest="list_searches",
        help="List configured searches.",
    )
    mode.add_argument(
        "--summary",
        metavar="SEARCH",
        default=None,
        help="Show the change summary for SEARCH.",
    )
    mode.add_argument(
        "--cleanup",
        metavar="DAYS",
        type=int,
        nargs="?",
        const=Settings.HISTORY_RETENTION_DAYS,
        default=None,
        help=(
            "Drop history older than DAYS "
            f"(default: {Settings.HISTORY_RETENTION_DAYS})."
        ),
    )
    mode.add_argument(
        "--validate",
        action="store_true",
        default=False,
        help="Validate every site configuration.",
    )
    parser.add_argument(
        "--hours",
        type=float,
        default=Settings.SUMMARY_WINDOW_HOURS,
        help=(
            "Window for --summary in hours "
            f"(default: {Settings.SUMMARY_WINDOW_HOURS})."
        ),
    )
    return parser


def _dispatch(
    args: argparse.Namespace, parser: argparse.ArgumentParser,
) -> int:
    from listing_watch.cli import runner

    if args.list_searches:
        return runner.list_searches()
    if args.validate:
        return runner.validate_sites()
    if args.summary is not None:
        return runner.show_summary(args.summary, args.hours)
    if args.cleanup is not None:
        return runner.run_cleanup(args.cleanup)
    if args.run_all:
        return asyncio.run(runner.run_all_cli())
    if args.continuous:
        return asyncio.run(runner.run_continuous())
    if args.search is None:
        parser.print_help(sys.stderr)
        return 2
    return asyncio.run(runner.run_search_cli(args.search, args.site))


def main() -> None:
    """Parse arguments, set up logging and run the selected command."""
    parser = _build_parser()
    args = parser.parse_args()

    log_file = setup_logging()
    logger.info("listing_watch starting, log file: %s", log_file)

    try:
        exit_code = _dispatch(args, parser)
    except Exception:
        logger.critical("Fatal error", exc_info=True)
        raise
    finally:
        logger.info("listing_watch shutting down")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
