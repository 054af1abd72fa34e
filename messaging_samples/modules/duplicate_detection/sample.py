"""Send the same message id twice to a queue with duplicate detection enabled.

The broker drops the second copy, so the receiver must see the id once.
"""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import List, Optional

from azure.servicebus import ServiceBusReceiveMode
from azure.servicebus.aio import ServiceBusClient

from messaging_samples.core.config import settings
from messaging_samples.modules.servicebus.console import console
from messaging_samples.modules.servicebus.errors import SampleError
from messaging_samples.modules.servicebus.models import OutgoingMessage
from messaging_samples.modules.servicebus.sender import ServiceBusQueueSender

logger = logging.getLogger(__name__)

RECEIVE_WAIT_SECONDS = 5


async def send(connection_string: str, queue_name: str, message_id: Optional[str] = None) -> str:
    message_id = message_id or str(uuid.uuid4())
    message = OutgoingMessage(message_id=message_id, time_to_live=timedelta(minutes=1))

    async with ServiceBusQueueSender(connection_string=connection_string, queue_name=queue_name) as sender:
        console.print(f"\tSending messages to {queue_name} ...")
        await sender.send_message(message)
        console.print(f"\t=> Sent a message with messageId {message_id}")

        await sender.send_message(message)
        console.print(f"\t=> Sent a duplicate message with messageId {message_id}")
    return message_id


async def receive(connection_string: str, queue_name: str) -> List[str]:
    received: List[str] = []
    previous_id = ""

    client = ServiceBusClient.from_connection_string(conn_str=connection_string)
    async with client:
        receiver = client.get_queue_receiver(queue_name=queue_name, receive_mode=ServiceBusReceiveMode.PEEK_LOCK)
        async with receiver:
            console.print(f"\n\tWaiting up to {RECEIVE_WAIT_SECONDS} seconds for messages from {queue_name} ...")
            while True:
                messages = await receiver.receive_messages(max_message_count=1, max_wait_time=RECEIVE_WAIT_SECONDS)
                if not messages:
                    break
                message = messages[0]
                message_id = message.message_id or ""
                console.print(f"\t<= Received a message with messageId {message_id}")
                await receiver.complete_message(message)
                if previous_id and previous_id.casefold() == message_id.casefold():
                    raise SampleError("Received a duplicate message")
                previous_id = message_id
                received.append(message_id)
            console.print(f"\tDone receiving messages from {queue_name}")
    return received


async def run(connection_string: str) -> None:
    queue_name = settings.DUPDETECT_QUEUE_NAME
    await send(connection_string, queue_name)
    await receive(connection_string, queue_name)


if __name__ == "__main__":  # pragma: no cover - manual execution
    from messaging_samples.core.runner import run_sample

    raise SystemExit(run_sample(run))
