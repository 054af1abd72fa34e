"""Process recipe steps in order even though they arrive shuffled.

The sender publishes the steps concurrently with small random delays, so the
queue order is arbitrary. The receiver handles the next expected step right
away, defers any step that arrives early and, once the queue is drained,
fetches the deferred steps back by sequence number in recipe order.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import random
from datetime import timedelta
from typing import Any, Dict, Optional, Sequence

from azure.servicebus import ServiceBusReceiveMode
from azure.servicebus.aio import ServiceBusClient

from messaging_samples.core.config import settings
from messaging_samples.modules.deferral.models import (
    JSON_CONTENT_TYPE,
    RECIPE,
    RECIPE_STEP_SUBJECT,
    RecipeStep,
    is_recipe_step,
)
from messaging_samples.modules.servicebus.console import console
from messaging_samples.modules.servicebus.errors import ServiceBusError, is_transient
from messaging_samples.modules.servicebus.models import OutgoingMessage, ServiceBusEnvelope
from messaging_samples.modules.servicebus.sender import ServiceBusQueueSender

logger = logging.getLogger(__name__)

RECEIVE_WAIT_SECONDS = 5
MAX_SEND_DELAY_MS = 30


class StepAction(enum.Enum):
    PROCESS = "process"
    DEFER = "defer"
    STALE = "stale"


class StepSequencer:
    """Tracks the last processed step and the sequence numbers of deferred steps."""

    def __init__(self) -> None:
        self.last_processed = 0
        self.deferred: Dict[int, int] = {}

    def classify(self, step: int) -> StepAction:
        if step == self.last_processed + 1:
            return StepAction.PROCESS
        if step <= self.last_processed or step in self.deferred:
            return StepAction.STALE
        return StepAction.DEFER

    def defer(self, step: int, sequence_number: int) -> None:
        self.deferred[step] = sequence_number

    def mark_processed(self, step: int) -> None:
        self.last_processed = step
        self.deferred.pop(step, None)

    def next_deferred(self) -> Optional[int]:
        """Sequence number of the next step if it is waiting in the deferred set."""
        return self.deferred.get(self.last_processed + 1)

    @property
    def has_deferred(self) -> bool:
        return bool(self.deferred)


def build_step_message(index: int, step: RecipeStep) -> OutgoingMessage:
    return OutgoingMessage(
        body=step.to_payload(),
        message_id=str(index),
        subject=RECIPE_STEP_SUBJECT,
        content_type=JSON_CONTENT_TYPE,
        time_to_live=timedelta(minutes=2),
    )


def print_step(envelope: ServiceBusEnvelope, step: RecipeStep) -> None:
    console.print(
        "\t\t\t\tMessage received: "
        f"\n\t\t\t\t\t\tMessageId = {envelope.message_id}, "
        f"\n\t\t\t\t\t\tSequenceNumber = {envelope.sequence_number}, "
        f"\n\t\t\t\t\t\tEnqueuedTimeUtc = {envelope.enqueued_time_utc}, "
        f"\n\t\t\t\t\t\tExpiresAtUtc = {envelope.expires_at_utc}, "
        f'\n\t\t\t\t\t\tContentType = "{envelope.content_type}", '
        f"\n\t\t\t\t\t\tSize = {envelope.size}, "
        f"\n\t\t\t\t\t\tContent: [ step = {step.step}, title = {step.title} ]",
        style="cyan",
        markup=False,
    )


async def send_messages(
    connection_string: str,
    queue_name: str,
    steps: Sequence[RecipeStep] = RECIPE,
    *,
    max_delay_ms: int = MAX_SEND_DELAY_MS,
) -> None:
    console.print("Sending messages to Queue...")
    rnd = random.Random()

    async with ServiceBusQueueSender(connection_string=connection_string, queue_name=queue_name) as sender:

        async def _send_later(message: OutgoingMessage, delay_ms: int) -> None:
            await asyncio.sleep(delay_ms / 1000)
            await sender.send_message(message)
            console.print(f"Message sent: Id = {message.message_id}", style="yellow", markup=False)

        await asyncio.gather(
            *(
                _send_later(build_step_message(index, step), rnd.randrange(max_delay_ms) if max_delay_ms > 0 else 0)
                for index, step in enumerate(steps)
            )
        )


async def _handle_message(receiver: Any, message: Any, sequencer: StepSequencer) -> None:
    envelope = ServiceBusEnvelope.from_message(message)
    if not is_recipe_step(envelope.subject, envelope.content_type):
        await receiver.dead_letter_message(
            message,
            reason="ProcessingError",
            error_description="Don't know what to do with this message",
        )
        return

    try:
        step = RecipeStep.from_payload(envelope.body)
    except ValueError as exc:
        await receiver.dead_letter_message(message, reason="ProcessingError", error_description=str(exc))
        return

    action = sequencer.classify(step.step)
    if action is StepAction.PROCESS:
        print_step(envelope, step)
        await receiver.complete_message(message)
        sequencer.mark_processed(step.step)
    elif action is StepAction.DEFER:
        sequencer.defer(step.step, envelope.sequence_number)
        await receiver.defer_message(message)
    else:
        logger.warning("Dead-lettering repeated recipe step %s (message %s)", step.step, envelope.message_id)
        await receiver.dead_letter_message(
            message,
            reason="DuplicateStep",
            error_description=f"Step {step.step} was already received",
        )


async def receive_messages(connection_string: str, queue_name: str) -> StepSequencer:
    sequencer = StepSequencer()
    client = ServiceBusClient.from_connection_string(conn_str=connection_string)
    async with client:
        receiver = client.get_queue_receiver(queue_name=queue_name, receive_mode=ServiceBusReceiveMode.PEEK_LOCK)
        async with receiver:
            console.print("Receiving message from Queue...")
            while True:
                try:
                    messages = await receiver.receive_messages(
                        max_message_count=1,
                        max_wait_time=RECEIVE_WAIT_SECONDS,
                    )
                    if not messages:
                        # no more messages in the queue
                        break
                    await _handle_message(receiver, messages[0], sequencer)
                except ServiceBusError as exc:
                    if not is_transient(exc):
                        console.print(str(exc), style="red", markup=False)
                        raise
                    logger.warning("Transient Service Bus error, receiving again: %s", exc)

            while sequencer.has_deferred:
                sequence_number = sequencer.next_deferred()
                if sequence_number is None:
                    logger.warning(
                        "Step %d never arrived; leaving deferred steps %s in the queue",
                        sequencer.last_processed + 1,
                        sorted(sequencer.deferred),
                    )
                    break
                deferred = await receiver.receive_deferred_messages(sequence_numbers=[sequence_number])
                message = deferred[0]
                envelope = ServiceBusEnvelope.from_message(message)
                step = RecipeStep.from_payload(envelope.body)
                print_step(envelope, step)
                await receiver.complete_message(message)
                sequencer.mark_processed(step.step)
    return sequencer


async def run(connection_string: str) -> None:
    queue_name = settings.BASIC_QUEUE_NAME
    await asyncio.gather(
        send_messages(connection_string, queue_name),
        receive_messages(connection_string, queue_name),
    )


if __name__ == "__main__":  # pragma: no cover - manual execution
    from messaging_samples.core.runner import run_sample

    raise SystemExit(run_sample(run))
