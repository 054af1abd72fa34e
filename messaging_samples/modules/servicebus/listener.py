"""Background listener for Azure Service Bus queues."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from azure.servicebus.aio import ServiceBusClient

from messaging_samples.modules.servicebus.errors import ServiceBusError, is_fatal, is_transient
from messaging_samples.modules.servicebus.models import ServiceBusEnvelope

logger = logging.getLogger(__name__)

MessageHandler = Callable[[ServiceBusEnvelope], Awaitable[None]]
ErrorCallback = Callable[[BaseException], None]


class ServiceBusQueueListener:
    """Consumes messages from a Service Bus queue and invokes an async handler.

    Messages are completed after the handler returns and abandoned when it
    raises. A message that cannot be settled is logged and skipped. Transient
    receive errors are retried with exponential backoff. Any other Service Bus
    error stops the listener and is reported to ``on_error``.
    """

    def __init__(
        self,
        *,
        connection_string: str,
        queue_name: str,
        handler: MessageHandler,
        max_message_count: int = 1,
        max_wait_time: float = 5.0,
        reconnect_backoff: float = 5.0,
        backoff_max: float = 60.0,
        auto_complete: bool = True,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        if not connection_string:
            raise ValueError("Service Bus connection string is required")
        if not queue_name:
            raise ValueError("Service Bus queue name is required")
        self._connection_string = connection_string
        self._queue_name = queue_name
        self._handler = handler
        self._max_message_count = max(1, max_message_count)
        self._max_wait_time = max_wait_time
        self._initial_backoff = max(1.0, reconnect_backoff)
        self._backoff_max = max(self._initial_backoff, backoff_max)
        self._auto_complete = auto_complete
        self._on_error = on_error
        self._shutdown_event = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def queue_name(self) -> str:
        return self._queue_name

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("ServiceBusQueueListener already started")
        self._shutdown_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name=f"servicebus-listener-{self._queue_name}")

    async def stop(self) -> None:
        self._shutdown_event.set()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run_loop(self) -> None:
        backoff = self._initial_backoff
        while not self._shutdown_event.is_set():
            try:
                await self._receive_once()
                backoff = self._initial_backoff
            except asyncio.CancelledError:
                raise
            except ServiceBusError as exc:
                if not is_transient(exc):
                    logger.error("Service Bus listener on %s stopped: %s", self._queue_name, exc)
                    if self._on_error is not None:
                        self._on_error(exc)
                    return
                logger.warning("Transient Service Bus error on %s, retrying in %.0fs: %s", self._queue_name, backoff, exc)
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, self._backoff_max)
            except Exception as exc:  # pragma: no cover - network error path
                logger.exception("Service Bus listener encountered an error: %s", exc)
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, self._backoff_max)

    async def _receive_once(self) -> None:
        client = ServiceBusClient.from_connection_string(conn_str=self._connection_string)
        async with client:
            receiver = client.get_queue_receiver(queue_name=self._queue_name, max_wait_time=self._max_wait_time)
            async with receiver:
                while not self._shutdown_event.is_set():
                    messages = await receiver.receive_messages(
                        max_message_count=self._max_message_count,
                        max_wait_time=self._max_wait_time,
                    )
                    if not messages:
                        continue
                    for message in messages:
                        envelope = ServiceBusEnvelope.from_message(message)
                        try:
                            await self._handler(envelope)
                        except Exception as exc:
                            logger.exception(
                                "Service Bus handler failed for message %s: %s",
                                message.message_id,
                                exc,
                            )
                            await self._settle(receiver.abandon_message, message)
                        else:
                            if self._auto_complete:
                                await self._settle(receiver.complete_message, message)

    async def _settle(self, settle, message) -> None:
        try:
            await settle(message)
        except ServiceBusError as exc:
            if is_fatal(exc):
                raise
            # The lock is gone or the link dropped; the broker redelivers the message.
            logger.warning(
                "Failed to settle message %s on %s: %s",
                message.message_id,
                self._queue_name,
                exc,
            )
