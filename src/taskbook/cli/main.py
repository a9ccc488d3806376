# src/taskbook/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the SessionContext, optionally signs in the
configured user, then runs the console connector until /exit.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_session
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.errors import ValidationError
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    ctx = create_session(settings=settings)
    try:
        if settings.user_id:
            try:
                ctx.coordinator.sign_in(settings.user_id)
            except ValidationError:
                logger.warning("Ignoring invalid TASKBOOK_USER_ID.")
            else:
                await ctx.coordinator.load_projects()

        await run_console_loop(ctx)
    finally:
        await ctx.aclose()


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (log file: %s)...", settings.app_name, log_file)

    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
