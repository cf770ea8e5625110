# src/trimatrix/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState (restoring the task list), then runs
the console REPL on an asyncio event loop.
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="trimatrix", description="Three-matrix task prioritizer.")
    parser.add_argument(
        "--restore",
        metavar="LINK",
        default=None,
        help="Restore the task list from a share link (or its #fragment) instead of the local save.",
    )
    return parser.parse_args(argv)


async def _run(settings, fragment: str | None) -> None:
    state = create_initial_state(settings=settings, fragment=fragment)
    await run_console_loop(state)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s... (full log: %s)", settings.app_name, log_file)
    try:
        asyncio.run(_run(settings, args.restore))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
