"""Client proxy that invokes one-way operations by sending queue messages."""

from __future__ import annotations

import logging
from typing import Any, Optional

from messaging_samples.modules.oneway.host import ACTION_PROPERTY
from messaging_samples.modules.servicebus.models import OutgoingMessage
from messaging_samples.modules.servicebus.sender import ServiceBusQueueSender

logger = logging.getLogger(__name__)


class OnewayServiceClient:
    def __init__(self, *, connection_string: str, queue_name: str) -> None:
        self._sender = ServiceBusQueueSender(connection_string=connection_string, queue_name=queue_name)

    async def invoke(self, action: str, *args: Any, message_id: Optional[str] = None, **kwargs: Any) -> OutgoingMessage:
        """Send a call to ``action``; positional and keyword arguments cannot be mixed."""
        if args and kwargs:
            raise ValueError("Use either one positional argument or keyword arguments")
        if len(args) > 1:
            raise ValueError("One-way operations take at most one positional argument")
        body = kwargs if kwargs else (args[0] if args else None)
        message = OutgoingMessage(
            body=body,
            message_id=message_id,
            subject=action,
            content_type="application/json" if isinstance(body, (dict, list)) else None,
            application_properties={ACTION_PROPERTY: action},
        )
        await self._sender.send_message(message)
        logger.debug("Invoked %s on %s", action, self._sender.entity_name)
        return message

    async def send_message(self, text: str) -> OutgoingMessage:
        return await self.invoke("SendMessage", text)

    async def close(self) -> None:
        await self._sender.close()

    async def __aenter__(self) -> "OnewayServiceClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
