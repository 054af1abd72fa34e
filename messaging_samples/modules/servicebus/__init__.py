"""Azure Service Bus helpers for producing and consuming messages."""

from .models import OutgoingMessage, ServiceBusEnvelope
from .errors import SampleError, is_fatal, is_transient
from .deduplication import DuplicateFilter
from .listener import ServiceBusQueueListener
from .sender import ServiceBusQueueSender

__all__ = [
    "DuplicateFilter",
    "OutgoingMessage",
    "SampleError",
    "ServiceBusEnvelope",
    "ServiceBusQueueListener",
    "ServiceBusQueueSender",
    "is_fatal",
    "is_transient",
]
