"""Lightweight helper for publishing messages to a Service Bus queue or topic."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from azure.servicebus.aio import ServiceBusClient

from messaging_samples.modules.servicebus.models import OutgoingMessage

logger = logging.getLogger(__name__)


class ServiceBusQueueSender:
    """Convenience wrapper that keeps one client/sender pair open per entity."""

    def __init__(
        self,
        *,
        connection_string: str,
        queue_name: Optional[str] = None,
        topic_name: Optional[str] = None,
    ) -> None:
        if not connection_string:
            raise ValueError("Service Bus connection string is required")
        if bool(queue_name) == bool(topic_name):
            raise ValueError("Exactly one of queue_name or topic_name is required")
        self._connection_string = connection_string
        self._queue_name = queue_name
        self._topic_name = topic_name
        self._client: Optional[ServiceBusClient] = None
        self._sender = None
        # SDK senders must not be shared between concurrently running coroutines.
        self._lock = asyncio.Lock()

    @property
    def entity_name(self) -> str:
        return self._queue_name or self._topic_name  # type: ignore[return-value]

    async def send(
        self,
        body: Any,
        *,
        application_properties: Optional[Dict[str, Any]] = None,
        message_id: Optional[str] = None,
        subject: Optional[str] = None,
        content_type: Optional[str] = None,
        time_to_live: Optional[timedelta] = None,
    ) -> OutgoingMessage:
        message = OutgoingMessage(
            body=body,
            message_id=message_id,
            subject=subject,
            content_type=content_type,
            time_to_live=time_to_live,
            application_properties=application_properties or {},
        )
        await self.send_message(message)
        return message

    async def send_message(self, message: OutgoingMessage) -> None:
        async with self._lock:
            sender = self._ensure_sender()
            await sender.send_messages(message.to_servicebus_message())
        logger.debug("Sent message %s to %s", message.message_id, self.entity_name)

    async def close(self) -> None:
        if self._sender is not None:
            await self._sender.close()
            self._sender = None
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def __aenter__(self) -> "ServiceBusQueueSender":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _ensure_sender(self):
        if self._sender is None:
            self._client = ServiceBusClient.from_connection_string(conn_str=self._connection_string)
            if self._queue_name:
                self._sender = self._client.get_queue_sender(queue_name=self._queue_name)
            else:
                self._sender = self._client.get_topic_sender(topic_name=self._topic_name)
        return self._sender
