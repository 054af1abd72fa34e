"""Error types shared by the samples."""

from __future__ import annotations

from azure.servicebus.exceptions import (
    MessagingEntityDisabledError,
    MessagingEntityNotFoundError,
    OperationTimeoutError,
    ServiceBusAuthenticationError,
    ServiceBusAuthorizationError,
    ServiceBusCommunicationError,
    ServiceBusConnectionError,
    ServiceBusError,
    ServiceBusServerBusyError,
)

TRANSIENT_ERRORS = (
    OperationTimeoutError,
    ServiceBusCommunicationError,
    ServiceBusConnectionError,
    ServiceBusServerBusyError,
)

# The entity or the credentials are unusable; receiving again cannot succeed.
FATAL_ERRORS = (
    MessagingEntityDisabledError,
    MessagingEntityNotFoundError,
    ServiceBusAuthenticationError,
    ServiceBusAuthorizationError,
)


class SampleError(Exception):
    """Raised when a sample observes an outcome the scenario does not allow."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


def is_transient(exc: BaseException) -> bool:
    """Return True for Service Bus errors the SDK's retry policy may recover from."""
    return isinstance(exc, TRANSIENT_ERRORS)


def is_fatal(exc: BaseException) -> bool:
    return isinstance(exc, FATAL_ERRORS)


__all__ = ["FATAL_ERRORS", "SampleError", "ServiceBusError", "TRANSIENT_ERRORS", "is_fatal", "is_transient"]
