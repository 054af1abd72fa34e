"""Send to a topic and a queue, then read both messages back from the queue.

The source topic's subscription is configured to auto-forward into the
target queue, so the message sent to the topic shows up there next to the
one sent to the queue directly.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from azure.servicebus.aio import ServiceBusClient

from messaging_samples.core.config import settings
from messaging_samples.modules.servicebus.console import console, print_received_message
from messaging_samples.modules.servicebus.errors import SampleError
from messaging_samples.modules.servicebus.models import OutgoingMessage, ServiceBusEnvelope
from messaging_samples.modules.servicebus.sender import ServiceBusQueueSender

logger = logging.getLogger(__name__)

RECEIVE_WAIT_SECONDS = 10
EXPECTED_MESSAGES = 2


def create_message(label: str) -> OutgoingMessage:
    return OutgoingMessage(
        body=f'This is the body of message "{label}".',
        subject=label,
        time_to_live=timedelta(seconds=90),
        application_properties={"Priority": 1, "Importance": "High"},
    )


async def run(connection_string: str) -> None:
    source_topic = settings.AUTOFORWARD_SOURCE_TOPIC_NAME
    target_queue = settings.AUTOFORWARD_TARGET_QUEUE_NAME

    console.print("\nSending messages\n")
    async with ServiceBusQueueSender(connection_string=connection_string, topic_name=source_topic) as topic_sender:
        await topic_sender.send_message(create_message("M1"))
    async with ServiceBusQueueSender(connection_string=connection_string, queue_name=target_queue) as queue_sender:
        await queue_sender.send_message(create_message("M1"))

    console.print("\nReceiving messages\n")
    client = ServiceBusClient.from_connection_string(conn_str=connection_string)
    async with client:
        receiver = client.get_queue_receiver(queue_name=target_queue)
        async with receiver:
            for _ in range(EXPECTED_MESSAGES):
                messages = await receiver.receive_messages(max_message_count=1, max_wait_time=RECEIVE_WAIT_SECONDS)
                if not messages:
                    raise SampleError("Expected message not received.")
                message = messages[0]
                print_received_message(ServiceBusEnvelope.from_message(message))
                await receiver.complete_message(message)
    logger.debug("Auto-forward sample finished")


if __name__ == "__main__":  # pragma: no cover - manual execution
    from messaging_samples.core.runner import run_sample

    raise SystemExit(run_sample(run))
