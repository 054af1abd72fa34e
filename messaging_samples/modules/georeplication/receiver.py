"""Receive from a primary and a secondary queue and forward each message once."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional

from messaging_samples.core.config import settings
from messaging_samples.core.runner import wait_for_shutdown
from messaging_samples.modules.servicebus.console import console
from messaging_samples.modules.servicebus.deduplication import DuplicateFilter
from messaging_samples.modules.servicebus.listener import ServiceBusQueueListener
from messaging_samples.modules.servicebus.models import ServiceBusEnvelope

logger = logging.getLogger(__name__)

MessageCallback = Callable[[ServiceBusEnvelope], Awaitable[None]]


async def print_message_id(envelope: ServiceBusEnvelope) -> None:
    console.print(envelope.message_id, markup=False)


def _log_listener_error(exc: BaseException) -> None:
    logger.error("Exception: %s", exc)


def register_message_handler(
    connection_string: str,
    primary_queue: str,
    secondary_queue: str,
    handler: MessageCallback,
    *,
    max_deduplication_list_length: int = 256,
    duplicate_filter: Optional[DuplicateFilter] = None,
) -> List[ServiceBusQueueListener]:
    """Create one listener per queue; both share a single duplicate filter."""
    duplicates = duplicate_filter or DuplicateFilter(max_deduplication_list_length)
    forward_unique = duplicates.wrap(handler)
    return [
        ServiceBusQueueListener(
            connection_string=connection_string,
            queue_name=queue_name,
            handler=forward_unique,
            max_message_count=1,
            auto_complete=True,
            on_error=_log_listener_error,
        )
        for queue_name in (primary_queue, secondary_queue)
    ]


async def run(connection_string: str) -> None:
    listeners = register_message_handler(
        connection_string,
        settings.BASIC_QUEUE_NAME,
        settings.BASIC_QUEUE2_NAME,
        print_message_id,
        max_deduplication_list_length=settings.GEO_DEDUPLICATION_LIST_LENGTH,
    )
    for listener in listeners:
        await listener.start()
    console.print("Waiting for messages, press Ctrl+C to exit.\n")

    try:
        await wait_for_shutdown()
    finally:
        for listener in listeners:
            await listener.stop()
        logger.info("Geo-replication receiver stopped.")


if __name__ == "__main__":  # pragma: no cover - manual execution
    from messaging_samples.core.runner import run_sample

    raise SystemExit(run_sample(run))
