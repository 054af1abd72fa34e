"""Shared entry point used by every sample program."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Awaitable, Callable, Optional

from azure.servicebus import parse_connection_string

from messaging_samples.core.config import settings
from messaging_samples.core.logging import configure_logging
from messaging_samples.modules.servicebus.console import console

logger = logging.getLogger(__name__)

SampleCallable = Callable[[str], Awaitable[None]]


def resolve_connection_string(connection_string: Optional[str] = None) -> str:
    """Return the explicit connection string or the configured one."""
    connection = (connection_string or settings.AZURE_SERVICEBUS_CONNECTION_STRING or "").strip()
    if not connection:
        raise RuntimeError(
            "A Service Bus connection string is required. Pass --connection-string"
            " or set AZURE_SERVICEBUS_CONNECTION_STRING."
        )

    # Fail early on malformed input instead of inside the AMQP handshake.
    parse_connection_string(connection)
    return connection


async def wait_for_shutdown() -> None:
    """Block until SIGINT or SIGTERM is received."""
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:  # pragma: no cover - Windows fallback
            pass

    await stop_event.wait()


def run_sample(sample: SampleCallable, connection_string: Optional[str] = None) -> int:
    """Run ``sample`` to completion and translate the outcome into an exit code."""
    configure_logging()
    try:
        connection = resolve_connection_string(connection_string)
        asyncio.run(sample(connection))
    except KeyboardInterrupt:
        logger.info("Sample interrupted")
        return 130
    except Exception as exc:
        logger.debug("Sample failed", exc_info=True)
        console.print(f"Unexpected exception {exc!r}", style="red", markup=False)
        return 1
    return 0
