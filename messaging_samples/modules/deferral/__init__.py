"""Deferred-message processing sample."""

from .models import RECIPE, RecipeStep
from .sample import StepAction, StepSequencer, receive_messages, run, send_messages

__all__ = [
    "RECIPE",
    "RecipeStep",
    "StepAction",
    "StepSequencer",
    "receive_messages",
    "run",
    "send_messages",
]
