"""Auto-forwarding from a topic subscription into a queue."""

from .sample import create_message, run

__all__ = ["create_message", "run"]
