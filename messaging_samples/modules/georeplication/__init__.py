"""Active geo-replication: send every message to two queues, receive each once."""

from .receiver import register_message_handler
from .sender import SendOutcome, send_replicated

__all__ = ["SendOutcome", "register_message_handler", "send_replicated"]
