#!/usr/bin/env python3

from __future__ import annotations

from typing import Optional

import typer

from messaging_samples.core.runner import run_sample
from messaging_samples.modules.autoforward import sample as autoforward
from messaging_samples.modules.deferral import sample as deferral
from messaging_samples.modules.duplicate_detection import sample as duplicate_detection
from messaging_samples.modules.georeplication import receiver as geo_receiver
from messaging_samples.modules.georeplication import sender as geo_sender
from messaging_samples.modules.oneway import service as oneway

app = typer.Typer(help="Azure Service Bus samples")

ConnectionOption = typer.Option(
    None,
    "--connection-string",
    "-c",
    envvar="AZURE_SERVICEBUS_CONNECTION_STRING",
    help="Service Bus namespace connection string",
)


@app.command("auto-forward")
def auto_forward(connection_string: Optional[str] = ConnectionOption):
    """Send to a topic and a queue, receive both from the auto-forward target queue."""
    raise typer.Exit(run_sample(autoforward.run, connection_string))


@app.command("deferral")
def deferral_sample(connection_string: Optional[str] = ConnectionOption):
    """Receive shuffled recipe steps in order by deferring early ones."""
    raise typer.Exit(run_sample(deferral.run, connection_string))


@app.command("duplicate-detection")
def duplicate_detection_sample(connection_string: Optional[str] = ConnectionOption):
    """Send a message twice and check the broker delivers it once."""
    raise typer.Exit(run_sample(duplicate_detection.run, connection_string))


@app.command("geo-send")
def geo_send(
    connection_string: Optional[str] = ConnectionOption,
    count: int = typer.Option(geo_sender.MESSAGE_COUNT, min=1, help="Number of messages to replicate"),
):
    """Send every message to the primary and the secondary queue."""

    async def _run(connection: str) -> None:
        await geo_sender.run(connection, count)

    raise typer.Exit(run_sample(_run, connection_string))


@app.command("geo-receive")
def geo_receive(connection_string: Optional[str] = ConnectionOption):
    """Receive from both replicas and print each message id once."""
    raise typer.Exit(run_sample(geo_receiver.run, connection_string))


@app.command("oneway-service")
def oneway_service(connection_string: Optional[str] = ConnectionOption):
    """Host the one-way sample service on the basic queue."""
    raise typer.Exit(run_sample(oneway.run, connection_string))


@app.command("oneway-client")
def oneway_client(
    connection_string: Optional[str] = ConnectionOption,
    count: int = typer.Option(5, min=1, help="Number of messages to send"),
):
    """Call the one-way sample service."""

    async def _run(connection: str) -> None:
        await oneway.send(connection, count)

    raise typer.Exit(run_sample(_run, connection_string))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
