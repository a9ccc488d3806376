# src/taskbook/connectors/console_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import SessionContext

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def read_line(loop: asyncio.AbstractEventLoop, prompt: str) -> asyncio.Future[str | None]:
    """
    Read one stdin line on a daemon thread.

    The future resolves to None on EOF. Cancelling it leaves the thread
    blocked in input() but never keeps the process alive.
    """
    fut: asyncio.Future[str | None] = loop.create_future()

    def deliver(line: str | None, exc: BaseException | None) -> None:
        if fut.done():
            return
        if exc is not None:
            fut.set_exception(exc)
        else:
            fut.set_result(line)

    def worker() -> None:
        line: str | None = None
        exc: BaseException | None = None
        try:
            line = input(prompt)
        except EOFError:
            line = None
        except Exception as e:
            exc = e
        # loop already closed: nobody is waiting for this line
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(deliver, line, exc)

    threading.Thread(target=worker, name="console-stdin", daemon=True).start()
    return fut


async def run_console_loop(ctx: SessionContext) -> None:
    """
    Interactive REPL over the command registry.

    stdin is read off the event loop so background notifications keep
    flowing while the prompt waits. Cancellation (Ctrl-C under
    asyncio.run) propagates after a clean log line.
    """
    logger.info("Console connector started (user=%s).", ctx.coordinator.active_user)
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    loop = asyncio.get_running_loop()

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            line = await read_line(loop, ">>> ")
        except asyncio.CancelledError:
            logger.info("Console interrupted, exiting.")
            print()
            raise

        if line is None:
            logger.info("Console EOF received, exiting.")
            break

        user_input = line.strip()
        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            _print_ts("Commands start with '/'. Use /help to list them.")
            continue

        try:
            reply = await command_registry.handle(ctx, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is not None:
            _print_ts(reply)

    logger.info("Console connector finished.")
