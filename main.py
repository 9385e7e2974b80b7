# main.py

"""Entry point for the baybot headless feed runner."""

import argparse
import asyncio
import logging
import sys

from src.config.logging_config import setup_logging
from src.models.listing import ItemType

logger = logging.getLogger("baybot.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="baybot",
        description="AI-curated eBay deals and auctions.",
    )
    parser.add_argument(
        "query",
        nargs="?",
        default="",
        help="Search query. Omit for the curated feed.",
    )
    parser.add_argument(
        "-t",
        "--type",
        choices=[t.value for t in ItemType],
        default=ItemType.DEAL.value,
        dest="item_type",
        help="Listing type (default: deal).",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        default=False,
        help="Use the built-in sample catalogue instead of eBay.",
    )
    parser.add_argument(
        "--analyze",
        default=None,
        dest="analyze_id",
        metavar="ID",
        help="Run the AI risk/rarity analysis on one listing id.",
    )
    return parser


def main() -> None:
    """Parse arguments and run one feed load."""
    log_file = setup_logging()
    logger.info("baybot starting, log file: %s", log_file)

    args = _build_parser().parse_args()

    from src.cli.runner import cli_feed

    try:
        exit_code = asyncio.run(
            cli_feed(
                query=args.query,
                item_type=ItemType(args.item_type),
                output_format=args.output_format,
                offline=args.offline,
                analyze_id=args.analyze_id,
            )
        )
    except Exception:
        logger.critical("Fatal error during feed run", exc_info=True)
        raise
    finally:
        logger.info("baybot shutting down")
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
