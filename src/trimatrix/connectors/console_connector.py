# src/trimatrix/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.session import SubmitOutcome
from ..core.state import AppState

logger = logging.getLogger(__name__)

DEFAULT_SHUTDOWN_TIMEOUT_SECONDS = 30.0


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def shutdown_timeout(settings) -> float:
    """
    How long exit waits for in-flight batches.

    Giving up cancels only the awaiting coroutines. A classifier call already
    running in a worker thread keeps going and asyncio.run() still joins it,
    so the LLM read timeout is the real bound on exit.
    """
    read_timeout = getattr(settings, "llm_read_timeout", None)
    if read_timeout is None:
        return DEFAULT_SHUTDOWN_TIMEOUT_SECONDS
    return float(read_timeout)


async def run_console_loop(state: AppState) -> None:
    """
    Interactive console front-end.

    input() runs in a worker thread so the event loop keeps firing debounce
    timers and merging batches while the user is typing.
    """
    session = state.session
    logger.info("Console connector started (offline=%s).", state.offline)
    _print_ts("[CONSOLE] Type a task to add it. Use /help for commands. Use /exit to quit.\n")

    session.set_notifier(_print_ts)

    while True:
        try:
            user_input = (await asyncio.to_thread(input, f"[{session.active_matrix.value}] > ")).strip()
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

        try:
            reply = await command_registry.handle(state, user_input, emit=_print_ts)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is not None:
            _print_ts(reply)
            continue

        outcome = session.submit(user_input)
        if outcome is SubmitOutcome.CACHED:
            _print_ts(f"Added from cache: {user_input}")
        elif outcome is SubmitOutcome.QUEUED:
            _print_ts(f"Queued for classification ({len(session.queue.pending)} pending).")
        elif outcome is SubmitOutcome.ALREADY_QUEUED:
            _print_ts("Already queued.")

    if session.queue.pending or session.is_loading:
        _print_ts("Finishing pending classifications...")
    timeout = shutdown_timeout(state.settings)
    try:
        await asyncio.wait_for(session.close(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Gave up waiting for in-flight classifications after %.0fs", timeout)

    logger.info("Console connector finished.")
