"""Host that exposes a one-way service contract on a Service Bus queue.

Each message names the operation in its ``Action`` application property
(the subject is used when the property is missing) and carries the
arguments in its body: an object is passed as keyword arguments, any other
non-empty body as the single positional argument.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional

from azure.servicebus import parse_connection_string

from messaging_samples.modules.oneway.contract import operations_of
from messaging_samples.modules.servicebus.listener import ServiceBusQueueListener
from messaging_samples.modules.servicebus.models import ServiceBusEnvelope

logger = logging.getLogger(__name__)

ACTION_PROPERTY = "Action"

FaultedHandler = Callable[["OnewayServiceHost", BaseException], None]


class CommunicationState(enum.Enum):
    CREATED = "created"
    OPENING = "opening"
    OPENED = "opened"
    CLOSING = "closing"
    CLOSED = "closed"
    FAULTED = "faulted"


class OnewayServiceHost:
    """Dispatches queue messages to the operations of a service object."""

    def __init__(
        self,
        service: object,
        *,
        connection_string: str,
        queue_name: str,
        max_wait_time: float = 5.0,
    ) -> None:
        if not queue_name:
            raise ValueError("Service Bus queue name is required")
        self._service = service
        self._operations = operations_of(service)
        if not self._operations:
            raise ValueError(f"{type(service).__name__} exposes no one-way operations")
        self._connection_string = connection_string
        self._queue_name = queue_name
        self._max_wait_time = max_wait_time
        self._state = CommunicationState.CREATED
        self._listener: Optional[ServiceBusQueueListener] = None
        self._faulted_handlers: List[FaultedHandler] = []
        self._closed = asyncio.Event()
        self.fault: Optional[BaseException] = None
        self._abort_task: Optional[asyncio.Task[None]] = None

    @property
    def state(self) -> CommunicationState:
        return self._state

    @property
    def actions(self) -> List[str]:
        return sorted(self._operations)

    @property
    def endpoint(self) -> str:
        """Absolute runtime address of the queue the host listens on."""
        properties = parse_connection_string(self._connection_string)
        return f"sb://{properties.fully_qualified_namespace}/{self._queue_name}"

    def add_faulted_handler(self, handler: FaultedHandler) -> None:
        self._faulted_handlers.append(handler)

    async def open(self) -> None:
        if self._state is not CommunicationState.CREATED:
            raise RuntimeError(f"Cannot open a service host in state {self._state.value}")
        self._state = CommunicationState.OPENING
        self._listener = ServiceBusQueueListener(
            connection_string=self._connection_string,
            queue_name=self._queue_name,
            handler=self.dispatch,
            max_message_count=1,
            max_wait_time=self._max_wait_time,
            on_error=self._on_listener_error,
        )
        try:
            await self._listener.start()
        except Exception as exc:
            self._on_listener_error(exc)
            raise
        if self._state is CommunicationState.OPENING:
            self._state = CommunicationState.OPENED
            logger.info("Service host listening on %s", self._queue_name)

    async def close(self) -> None:
        if self._state in (CommunicationState.CLOSED, CommunicationState.CLOSING):
            return
        if self._state is CommunicationState.FAULTED:
            await self.abort()
            return
        self._state = CommunicationState.CLOSING
        await self._stop_listener()
        self._state = CommunicationState.CLOSED
        self._closed.set()
        logger.info("Service host on %s closed", self._queue_name)

    async def abort(self) -> None:
        if self._state is CommunicationState.CLOSED:
            return
        try:
            await self._stop_listener()
        finally:
            self._state = CommunicationState.CLOSED
            self._closed.set()
        logger.warning("Service host on %s aborted", self._queue_name)

    async def serve(self, until: Optional[Awaitable[Any]] = None) -> None:
        """Wait until ``until`` completes or the host is closed, whichever is first."""
        closed = asyncio.ensure_future(self._closed.wait())
        waiters = {closed}
        if until is not None:
            waiters.add(asyncio.ensure_future(until))
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()
            await asyncio.gather(*waiters, return_exceptions=True)

    async def dispatch(self, envelope: ServiceBusEnvelope) -> None:
        action = (envelope.properties or {}).get(ACTION_PROPERTY) or envelope.subject
        operation = self._operations.get(action) if action else None
        if operation is None:
            logger.warning("Dropping message %s with unknown action %r", envelope.message_id, action)
            return

        body = envelope.body
        if isinstance(body, dict):
            result = operation(**body)
        elif body is None:
            result = operation()
        else:
            result = operation(body)
        if inspect.isawaitable(result):
            await result

    async def __aenter__(self) -> "OnewayServiceHost":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _stop_listener(self) -> None:
        if self._listener is not None:
            listener, self._listener = self._listener, None
            await listener.stop()

    def _on_listener_error(self, exc: BaseException) -> None:
        if self._state in (CommunicationState.CLOSING, CommunicationState.CLOSED, CommunicationState.FAULTED):
            return
        self._state = CommunicationState.FAULTED
        self.fault = exc
        for handler in list(self._faulted_handlers):
            try:
                handler(self, exc)
            except Exception:
                logger.exception("Faulted handler raised")
        try:
            self._abort_task = asyncio.get_running_loop().create_task(self.abort())
            self._abort_task.add_done_callback(self._abort_finished)
        except RuntimeError:  # pragma: no cover - no loop while faulting
            self._state = CommunicationState.CLOSED
            self._closed.set()

    def _abort_finished(self, task: "asyncio.Task[None]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Aborting service host on %s failed: %r", self._queue_name, exc)
