"""Models representing Service Bus payloads used by the samples."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Optional


def encode_body(body: Any) -> bytes:
    if body is None:
        return b""
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body).encode("utf-8")


def body_bytes(message: Any) -> bytes:
    """Join the body sections of an SDK message into a single bytes object."""
    sections = message.body
    if sections is None:
        return b""
    if isinstance(sections, (bytes, bytearray)):
        return bytes(sections)
    if isinstance(sections, str):
        return sections.encode("utf-8")
    return b"".join(
        section if isinstance(section, (bytes, bytearray)) else bytes(section)
        for section in sections
    )


def decode_body(raw: bytes) -> Optional[object]:
    if not raw:
        return None

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _text(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


@dataclass(frozen=True)
class OutgoingMessage:
    """Description of a message to send; builds a fresh SDK message on demand."""

    body: Any = None
    message_id: Optional[str] = None
    subject: Optional[str] = None
    content_type: Optional[str] = None
    time_to_live: Optional[timedelta] = None
    application_properties: Dict[str, Any] = field(default_factory=dict)

    def to_servicebus_message(self):
        from azure.servicebus import ServiceBusMessage

        return ServiceBusMessage(
            body=encode_body(self.body),
            application_properties=dict(self.application_properties) or None,
            message_id=self.message_id,
            subject=self.subject,
            content_type=self.content_type,
            time_to_live=self.time_to_live,
        )

    @property
    def body_text(self) -> str:
        return encode_body(self.body).decode("utf-8", errors="replace")


@dataclass(frozen=True)
class ServiceBusEnvelope:
    """Decoded Service Bus message with metadata."""

    body: Any
    properties: Optional[Dict[str, Any]]
    message_id: Optional[str]
    correlation_id: Optional[str]
    subject: Optional[str]
    content_type: Optional[str]
    enqueued_time_utc: Optional[datetime]
    expires_at_utc: Optional[datetime] = None
    sequence_number: Optional[int] = None
    lock_token: Optional[str] = None
    size: int = 0

    @classmethod
    def from_message(cls, message: Any) -> "ServiceBusEnvelope":
        raw = body_bytes(message)
        properties = None
        if getattr(message, "application_properties", None):
            # Convert to regular dict to detach from SDK object
            properties = {_text(key): _text(value) for key, value in message.application_properties.items()}
        lock_token = getattr(message, "lock_token", None)
        return cls(
            body=decode_body(raw),
            properties=properties,
            message_id=getattr(message, "message_id", None),
            correlation_id=getattr(message, "correlation_id", None),
            subject=getattr(message, "subject", None),
            content_type=getattr(message, "content_type", None),
            enqueued_time_utc=getattr(message, "enqueued_time_utc", None),
            expires_at_utc=getattr(message, "expires_at_utc", None),
            sequence_number=getattr(message, "sequence_number", None),
            lock_token=str(lock_token) if lock_token is not None else None,
            size=len(raw),
        )

    @property
    def body_text(self) -> str:
        if isinstance(self.body, (dict, list)):
            return json.dumps(self.body)
        if isinstance(self.body, bytes):
            return self.body.decode("utf-8", errors="replace")
        return "" if self.body is None else str(self.body)
