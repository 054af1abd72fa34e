"""Suppression of messages that arrive through more than one queue."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Awaitable, Callable, Deque

from messaging_samples.modules.servicebus.models import ServiceBusEnvelope

logger = logging.getLogger(__name__)


class DuplicateFilter:
    """Bounded list of recently received message ids shared by several receivers.

    A sender that replicates every message to two queues produces two copies
    with the same id. The first copy records the id; the second finds it,
    removes it and is reported as a duplicate. Ids whose twin never arrives
    are evicted oldest-first once ``max_length`` is exceeded.
    """

    def __init__(self, max_length: int = 256) -> None:
        if max_length < 1:
            raise ValueError("max_length must be at least 1")
        self._max_length = max_length
        self._seen: Deque[str] = deque()
        self._lock = asyncio.Lock()

    @property
    def max_length(self) -> int:
        return self._max_length

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._seen

    async def check_and_record(self, message_id: str) -> bool:
        """Return True if ``message_id`` was already received through another queue."""
        async with self._lock:
            if message_id in self._seen:
                self._seen.remove(message_id)
                return True
            self._seen.append(message_id)
            if len(self._seen) > self._max_length:
                self._seen.popleft()
            return False

    def wrap(
        self, handler: Callable[[ServiceBusEnvelope], Awaitable[None]]
    ) -> Callable[[ServiceBusEnvelope], Awaitable[None]]:
        """Return a handler that forwards only the first copy of each message."""

        async def _forward_unique(envelope: ServiceBusEnvelope) -> None:
            if envelope.message_id is None:
                await handler(envelope)
                return
            if await self.check_and_record(envelope.message_id):
                logger.debug("Dropping duplicate message %s", envelope.message_id)
                return
            await handler(envelope)

        return _forward_unique
