"""Console output shared by the samples."""

from __future__ import annotations

from rich.console import Console

from messaging_samples.modules.servicebus.models import ServiceBusEnvelope

console = Console(highlight=False)


def print_received_message(envelope: ServiceBusEnvelope, *, style: str = "yellow") -> None:
    """Print subject, body and application properties of a received message."""
    lines = [
        "Received message:",
        f"\tLabel:\t{envelope.subject}",
        f"\tBody:\t{envelope.body_text}",
    ]
    for key, value in (envelope.properties or {}).items():
        lines.append(f"\tProperty:\t{key} = {value}")
    console.print("\n".join(lines), style=style, markup=False)
