import asyncio
import itertools
import uuid
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Deque, Dict, List, Set

import pytest

from messaging_samples.modules.servicebus.models import body_bytes

CONNECTION_STRING = (
    "Endpoint=sb://example.servicebus.windows.net/;SharedAccessKeyName=test;SharedAccessKey=dummy"
)

# Broker waits are scaled down so a 5 second receive timeout lasts 100 ms.
WAIT_SCALE = 0.02

PATCHED_MODULES = [
    "messaging_samples.modules.servicebus.sender",
    "messaging_samples.modules.servicebus.listener",
    "messaging_samples.modules.autoforward.sample",
    "messaging_samples.modules.deferral.sample",
    "messaging_samples.modules.duplicate_detection.sample",
]


class FakeReceivedMessage:
    def __init__(self, outgoing, sequence_number: int):
        self.body = [body_bytes(outgoing)]
        self.message_id = outgoing.message_id
        self.subject = outgoing.subject
        self.content_type = outgoing.content_type
        self.correlation_id = None
        self.application_properties = dict(outgoing.application_properties or {})
        self.sequence_number = sequence_number
        self.lock_token = str(uuid.uuid4())
        self.enqueued_time_utc = datetime.now(timezone.utc)
        ttl = outgoing.time_to_live
        self.expires_at_utc = self.enqueued_time_utc + ttl if ttl else None

    @property
    def text(self) -> str:
        return b"".join(self.body).decode("utf-8")


class FakeBroker:
    """In-memory stand-in for a Service Bus namespace."""

    def __init__(self):
        self.queues: Dict[str, Deque[FakeReceivedMessage]] = defaultdict(deque)
        self.topics: Dict[str, List[FakeReceivedMessage]] = defaultdict(list)
        self.forwarding: Dict[str, str] = {}
        self.duplicate_detection: Set[str] = set()
        self.fail_sends: Dict[str, Exception] = {}
        self.receive_errors: List[Exception] = []
        self.settle_errors: List[Exception] = []
        self.deferred: Dict[int, FakeReceivedMessage] = {}
        self.completed: List[FakeReceivedMessage] = []
        self.dead_lettered: List[tuple] = []
        self.abandoned: List[FakeReceivedMessage] = []
        self.closed_clients = 0
        self._seen_ids: Dict[str, Set[str]] = defaultdict(set)
        self._sequence = itertools.count(1)

    def enqueue(self, entity: str, outgoing) -> None:
        target = self.forwarding.get(entity, entity)
        if target in self.duplicate_detection and outgoing.message_id:
            if outgoing.message_id in self._seen_ids[target]:
                return
            self._seen_ids[target].add(outgoing.message_id)
        self.queues[target].append(FakeReceivedMessage(outgoing, next(self._sequence)))

    def publish(self, topic: str, outgoing) -> None:
        if topic in self.forwarding:
            self.enqueue(topic, outgoing)
        else:
            self.topics[topic].append(FakeReceivedMessage(outgoing, next(self._sequence)))


class FakeSender:
    def __init__(self, broker: FakeBroker, entity: str, *, topic: bool = False):
        self._broker = broker
        self._entity = entity
        self._topic = topic
        self.closed = False

    async def send_messages(self, message) -> None:
        await asyncio.sleep(0)
        error = self._broker.fail_sends.get(self._entity)
        if error is not None:
            raise error
        if self._topic:
            self._broker.publish(self._entity, message)
        else:
            self._broker.enqueue(self._entity, message)

    async def close(self) -> None:
        self.closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
        return False


class FakeReceiver:
    def __init__(self, broker: FakeBroker, queue_name: str, **kwargs):
        self._broker = broker
        self._queue_name = queue_name
        self.options = kwargs

    async def receive_messages(self, max_message_count=1, max_wait_time=None):
        if self._broker.receive_errors:
            raise self._broker.receive_errors.pop(0)
        queue = self._broker.queues[self._queue_name]
        loop = asyncio.get_running_loop()
        deadline = loop.time() + (max_wait_time or 5) * WAIT_SCALE
        while not queue and loop.time() < deadline:
            await asyncio.sleep(0.005)
        batch = []
        while queue and len(batch) < (max_message_count or 1):
            batch.append(queue.popleft())
        return batch

    async def complete_message(self, message) -> None:
        if self._broker.settle_errors:
            raise self._broker.settle_errors.pop(0)
        self._broker.completed.append(message)

    async def abandon_message(self, message) -> None:
        self._broker.abandoned.append(message)

    async def defer_message(self, message) -> None:
        self._broker.deferred[message.sequence_number] = message

    async def dead_letter_message(self, message, reason=None, error_description=None) -> None:
        self._broker.dead_lettered.append((message, reason, error_description))

    async def receive_deferred_messages(self, sequence_numbers):
        return [self._broker.deferred.pop(number) for number in sequence_numbers]

    async def close(self) -> None:
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeServiceBusClient:
    broker: FakeBroker

    @classmethod
    def from_connection_string(cls, conn_str: str, **kwargs):
        assert conn_str
        return cls()

    def get_queue_sender(self, queue_name: str, **kwargs):
        return FakeSender(self.broker, queue_name)

    def get_topic_sender(self, topic_name: str, **kwargs):
        return FakeSender(self.broker, topic_name, topic=True)

    def get_queue_receiver(self, queue_name: str, **kwargs):
        return FakeReceiver(self.broker, queue_name, **kwargs)

    async def close(self) -> None:
        self.broker.closed_clients += 1

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
        return False


@pytest.fixture
def broker(monkeypatch):
    instance = FakeBroker()
    client_cls = type("BoundServiceBusClient", (FakeServiceBusClient,), {"broker": instance})
    for module in PATCHED_MODULES:
        monkeypatch.setattr(f"{module}.ServiceBusClient", client_cls)
    return instance


@pytest.fixture
def connection_string():
    return CONNECTION_STRING


async def wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)
