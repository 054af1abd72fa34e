import asyncio
from datetime import timedelta

import pytest
from azure.servicebus.exceptions import (
    MessageLockLostError,
    MessagingEntityNotFoundError,
    ServiceBusAuthorizationError,
    ServiceBusConnectionError,
)

from conftest import CONNECTION_STRING, wait_for
from messaging_samples.modules.servicebus.errors import SampleError, is_fatal, is_transient
from messaging_samples.modules.servicebus.listener import ServiceBusQueueListener
from messaging_samples.modules.servicebus.models import (
    OutgoingMessage,
    ServiceBusEnvelope,
    body_bytes,
    decode_body,
    encode_body,
)
from messaging_samples.modules.servicebus.sender import ServiceBusQueueSender


class _ReceivedMessageStub:
    def __init__(self, *, body, application_properties=None, message_id="mid-1"):
        self.body = body
        self.application_properties = application_properties or {}
        self.message_id = message_id
        self.correlation_id = None
        self.subject = None
        self.content_type = "application/json"
        self.enqueued_time_utc = None
        self.sequence_number = 42
        self.lock_token = "lock-1"


def _loop_run(coro):
    return asyncio.run(coro)


def test_decode_body_json():
    message = _ReceivedMessageStub(body=[b"{\"hello\": ", b"\"world\"}"])
    envelope = ServiceBusEnvelope.from_message(message)
    assert envelope.body == {"hello": "world"}
    assert envelope.size == len(b"{\"hello\": \"world\"}")


def test_decode_body_plain_text():
    message = _ReceivedMessageStub(body=[b"plain text"])
    assert ServiceBusEnvelope.from_message(message).body == "plain text"


def test_decode_body_empty_and_binary():
    assert decode_body(b"") is None
    assert decode_body(b"\xff\xfe") == b"\xff\xfe"


def test_body_bytes_joins_sections_and_rejects_other_bodies():
    assert body_bytes(_ReceivedMessageStub(body=(memoryview(b"ab"), b"c"))) == b"abc"
    assert body_bytes(_ReceivedMessageStub(body=None)) == b""
    with pytest.raises(TypeError):
        body_bytes(_ReceivedMessageStub(body=42))


def test_envelope_detaches_amqp_properties():
    message = _ReceivedMessageStub(
        body=b"x",
        application_properties={b"Importance": b"High", b"Priority": 1},
    )
    envelope = ServiceBusEnvelope.from_message(message)
    assert envelope.properties == {"Importance": "High", "Priority": 1}
    assert envelope.sequence_number == 42
    assert envelope.lock_token == "lock-1"


def test_encode_body():
    assert encode_body(None) == b""
    assert encode_body("Message1") == b"Message1"
    assert encode_body({"step": 1}) == b"{\"step\": 1}"


def test_outgoing_message_builds_fresh_sdk_messages():
    outgoing = OutgoingMessage(body="Message1", message_id="1", time_to_live=timedelta(minutes=2))
    first = outgoing.to_servicebus_message()
    second = outgoing.to_servicebus_message()
    assert first is not second
    assert first.message_id == second.message_id == "1"
    assert first.time_to_live == timedelta(minutes=2)


def test_is_transient():
    assert is_transient(ServiceBusConnectionError(message="blip"))
    assert not is_transient(MessagingEntityNotFoundError(message="missing"))
    assert not is_transient(SampleError("nope"))


def test_is_fatal():
    assert is_fatal(MessagingEntityNotFoundError(message="missing"))
    assert is_fatal(ServiceBusAuthorizationError(message="denied"))
    assert not is_fatal(MessageLockLostError(message="lock expired"))
    assert not is_fatal(ServiceBusConnectionError(message="blip"))


def test_sender_requires_exactly_one_entity():
    with pytest.raises(ValueError):
        ServiceBusQueueSender(connection_string=CONNECTION_STRING)
    with pytest.raises(ValueError):
        ServiceBusQueueSender(connection_string=CONNECTION_STRING, queue_name="q", topic_name="t")
    with pytest.raises(ValueError):
        ServiceBusQueueSender(connection_string="", queue_name="q")


def test_sender_sends_to_queue_and_topic(broker):
    async def _send():
        async with ServiceBusQueueSender(connection_string=CONNECTION_STRING, queue_name="orders") as sender:
            await sender.send({"id": 7}, message_id="a", subject="Order", content_type="application/json")
        async with ServiceBusQueueSender(connection_string=CONNECTION_STRING, topic_name="events") as sender:
            await sender.send("hello")

    _loop_run(_send())

    queued = broker.queues["orders"][0]
    assert queued.text == "{\"id\": 7}"
    assert queued.subject == "Order"
    assert queued.message_id == "a"
    assert broker.topics["events"][0].text == "hello"
    assert broker.closed_clients == 2


def test_listener_completes_handled_messages(broker):
    for index in range(3):
        broker.enqueue("work", OutgoingMessage(body={"n": index}, message_id=str(index)).to_servicebus_message())
    received = []

    async def handler(envelope):
        received.append(envelope.body["n"])

    async def _run():
        listener = ServiceBusQueueListener(connection_string=CONNECTION_STRING, queue_name="work", handler=handler)
        await listener.start()
        await wait_for(lambda: len(broker.completed) == 3)
        await listener.stop()
        assert not listener.running

    _loop_run(_run())
    assert received == [0, 1, 2]


def test_listener_abandons_when_handler_fails(broker, caplog):
    broker.enqueue("work", OutgoingMessage(body="bad", message_id="m-bad").to_servicebus_message())

    async def handler(envelope):
        raise RuntimeError("cannot handle")

    async def _run():
        listener = ServiceBusQueueListener(connection_string=CONNECTION_STRING, queue_name="work", handler=handler)
        await listener.start()
        await wait_for(lambda: len(broker.abandoned) == 1)
        await listener.stop()

    caplog.set_level("ERROR")
    _loop_run(_run())
    assert broker.completed == []
    assert any("m-bad" in record.getMessage() for record in caplog.records)


def test_listener_stops_on_fatal_error(broker):
    broker.receive_errors.append(MessagingEntityNotFoundError(message="queue is gone"))
    errors = []

    async def handler(envelope):  # pragma: no cover - never called
        raise AssertionError("no messages expected")

    async def _run():
        listener = ServiceBusQueueListener(
            connection_string=CONNECTION_STRING,
            queue_name="missing",
            handler=handler,
            on_error=errors.append,
        )
        await listener.start()
        await wait_for(lambda: not listener.running)
        await listener.stop()

    _loop_run(_run())
    assert len(errors) == 1
    assert isinstance(errors[0], MessagingEntityNotFoundError)


def test_listener_rejects_second_start(broker):
    async def handler(envelope):
        pass

    async def _run():
        listener = ServiceBusQueueListener(connection_string=CONNECTION_STRING, queue_name="work", handler=handler)
        await listener.start()
        try:
            with pytest.raises(RuntimeError):
                await listener.start()
        finally:
            await listener.stop()

    _loop_run(_run())


def test_listener_survives_lost_lock_on_completion(broker, caplog):
    broker.settle_errors.append(MessageLockLostError(message="lock expired"))
    for message_id in ("first", "second"):
        broker.enqueue("work", OutgoingMessage(body=message_id, message_id=message_id).to_servicebus_message())
    received = []

    async def handler(envelope):
        received.append(envelope.message_id)

    async def _run():
        listener = ServiceBusQueueListener(connection_string=CONNECTION_STRING, queue_name="work", handler=handler)
        await listener.start()
        await wait_for(lambda: len(broker.completed) == 1)
        assert listener.running
        await listener.stop()

    caplog.set_level("WARNING")
    _loop_run(_run())
    assert received == ["first", "second"]
    assert [message.message_id for message in broker.completed] == ["second"]
    assert any("Failed to settle message first" in record.getMessage() for record in caplog.records)


def test_listener_stops_when_settlement_is_unauthorized(broker):
    broker.settle_errors.append(ServiceBusAuthorizationError(message="listen claim revoked"))
    broker.enqueue("work", OutgoingMessage(body="x", message_id="m-1").to_servicebus_message())
    errors = []

    async def handler(envelope):
        pass

    async def _run():
        listener = ServiceBusQueueListener(
            connection_string=CONNECTION_STRING,
            queue_name="work",
            handler=handler,
            on_error=errors.append,
        )
        await listener.start()
        await wait_for(lambda: not listener.running)
        await listener.stop()

    _loop_run(_run())
    assert len(errors) == 1
    assert isinstance(errors[0], ServiceBusAuthorizationError)
    assert broker.completed == []
