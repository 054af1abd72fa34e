"""Legacy one-way service host over a Service Bus queue."""

from .client import OnewayServiceClient
from .contract import OnewayService, oneway_operation, operations_of
from .host import ACTION_PROPERTY, CommunicationState, OnewayServiceHost

__all__ = [
    "ACTION_PROPERTY",
    "CommunicationState",
    "OnewayService",
    "OnewayServiceClient",
    "OnewayServiceHost",
    "oneway_operation",
    "operations_of",
]
