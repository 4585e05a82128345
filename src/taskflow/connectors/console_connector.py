# src/taskflow/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.errors import TaskflowError
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


async def run_console_loop(state: AppState) -> None:
    """
    Read commands from stdin until /exit or EOF.

    input() runs in a worker thread so the event loop keeps delivering snapshots
    and timer ticks while the prompt waits.
    """
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    def emit(text: str) -> None:
        # Immediate user-visible feedback for long operations (e.g. uploads)
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            user_input = "/add " + user_input

        try:
            reply = await command_registry.handle(state, user_input, emit=emit)
        except (TaskflowError, ValueError, OSError) as e:
            # Expected failures (validation, remote write, upload, bad input): show, don't crash.
            logger.info("Command failed: %s: %s", type(e).__name__, e)
            reply = f"Error: {e}"
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is not None:
            _print_ts(reply)

        # Let the snapshot triggered by a write land before the next prompt.
        await asyncio.sleep(0)

    logger.info("Console connector finished.")
