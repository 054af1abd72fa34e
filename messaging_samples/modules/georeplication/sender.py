"""Send each message to a primary and a secondary queue at the same time.

A message only counts as lost when both sends fail; the receiver side
suppresses the second copy.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Optional

from messaging_samples.core.config import settings
from messaging_samples.modules.servicebus.console import console
from messaging_samples.modules.servicebus.errors import SampleError
from messaging_samples.modules.servicebus.models import OutgoingMessage
from messaging_samples.modules.servicebus.sender import ServiceBusQueueSender

logger = logging.getLogger(__name__)

MESSAGE_COUNT = 5


@dataclass(frozen=True)
class SendOutcome:
    message_id: str
    primary_error: Optional[BaseException] = None
    secondary_error: Optional[BaseException] = None

    @property
    def failed(self) -> bool:
        return self.primary_error is not None and self.secondary_error is not None


def build_message(index: int) -> OutgoingMessage:
    return OutgoingMessage(
        body=f"Message{index}",
        message_id=str(index),
        time_to_live=timedelta(minutes=2),
    )


def _report(message: OutgoingMessage, queue_label: str, error: Optional[BaseException]) -> None:
    if error is None:
        console.print(
            f"Message {message.message_id} sent to {queue_label} queue: Body = {message.body_text}",
            markup=False,
        )
    else:
        console.print(
            f"Unable to send message {message.message_id} to {queue_label} queue: Exception {error!r}",
            style="red",
            markup=False,
        )


async def send_replicated(
    primary: ServiceBusQueueSender,
    secondary: ServiceBusQueueSender,
    message: OutgoingMessage,
) -> SendOutcome:
    """Send ``message`` to both queues concurrently and report each result."""
    primary_result, secondary_result = await asyncio.gather(
        primary.send_message(message),
        secondary.send_message(message),
        return_exceptions=True,
    )
    primary_error = primary_result if isinstance(primary_result, BaseException) else None
    secondary_error = secondary_result if isinstance(secondary_result, BaseException) else None

    _report(message, "primary", primary_error)
    _report(message, "secondary", secondary_error)

    outcome = SendOutcome(
        message_id=message.message_id or "",
        primary_error=primary_error,
        secondary_error=secondary_error,
    )
    if outcome.failed:
        raise SampleError("Send Failure")
    return outcome


async def run(connection_string: str, count: int = MESSAGE_COUNT) -> List[SendOutcome]:
    outcomes: List[SendOutcome] = []
    async with ServiceBusQueueSender(
        connection_string=connection_string, queue_name=settings.BASIC_QUEUE_NAME
    ) as primary, ServiceBusQueueSender(
        connection_string=connection_string, queue_name=settings.BASIC_QUEUE2_NAME
    ) as secondary:
        console.print("\nSending messages to primary and secondary queues...\n")
        for index in range(1, count + 1):
            outcomes.append(await send_replicated(primary, secondary, build_message(index)))
    return outcomes


if __name__ == "__main__":  # pragma: no cover - manual execution
    from messaging_samples.core.runner import run_sample

    raise SystemExit(run_sample(run))
