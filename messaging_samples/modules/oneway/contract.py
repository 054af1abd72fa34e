"""One-way service contracts: plain classes with marked operations."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, TypeVar

from messaging_samples.modules.servicebus.console import console

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

ACTION_ATTRIBUTE = "__oneway_action__"


def oneway_operation(action: str) -> Callable[[F], F]:
    """Mark a method as a one-way operation invoked by messages carrying ``action``."""
    if not action:
        raise ValueError("One-way operation action is required")

    def decorator(func: F) -> F:
        setattr(func, ACTION_ATTRIBUTE, action)
        return func

    return decorator


def operations_of(service: object) -> Dict[str, Callable[..., Any]]:
    """Return the bound one-way operations of ``service`` keyed by action."""
    operations: Dict[str, Callable[..., Any]] = {}
    for name, member in inspect.getmembers(type(service), callable):
        action = getattr(member, ACTION_ATTRIBUTE, None)
        if action is None:
            continue
        if action in operations:
            raise ValueError(f"Duplicate one-way action {action!r} on {type(service).__name__}")
        operations[action] = getattr(service, name)
    return operations


class OnewayService:
    """Sample service: prints every message it is sent."""

    def __init__(self) -> None:
        self.received: list[str] = []

    @oneway_operation("SendMessage")
    async def send_message(self, text: str) -> None:
        self.received.append(text)
        console.print(f"Received: {text}", style="green", markup=False)
