# src/taskflow/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, signs in the configured user, registers
them on the team roster and loads their profile, then runs the console REPL on
the event loop. Signing out on exit cancels the live subscriptions and the
timer tick.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import configured_user, create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.errors import TaskflowError
from ..logging_setup import setup_logging_from_settings

logger = logging.getLogger(__name__)


async def run(settings) -> None:
    state = create_initial_state(settings=settings)
    session = state.sign_in(configured_user(settings))
    try:
        try:
            await session.join()
        except TaskflowError as e:
            # Tasks and tracking still work; /team and /profile show what is missing.
            logger.warning("Could not load team or profile: %s", e)
        await run_console_loop(state)
    finally:
        state.sign_out()


def main() -> None:
    settings = get_settings()

    setup_logging_from_settings(settings)

    logger.info("Starting %s...", getattr(settings, "app_name", "taskflow"))
    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
