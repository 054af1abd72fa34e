"""Run the sample one-way service until interrupted or faulted."""

from __future__ import annotations

import logging

from messaging_samples.core.config import settings
from messaging_samples.core.runner import wait_for_shutdown
from messaging_samples.modules.oneway.client import OnewayServiceClient
from messaging_samples.modules.oneway.contract import OnewayService
from messaging_samples.modules.oneway.host import OnewayServiceHost
from messaging_samples.modules.servicebus.console import console

logger = logging.getLogger(__name__)


def service_host_faulted(host: OnewayServiceHost, exc: BaseException) -> None:
    console.print(f"Fault occurred. Aborting the service host object ... ({exc})", style="red", markup=False)


async def run(connection_string: str) -> None:
    queue_name = settings.BASIC_QUEUE_NAME
    host = OnewayServiceHost(OnewayService(), connection_string=connection_string, queue_name=queue_name)
    host.add_faulted_handler(service_host_faulted)

    console.print(f"Ready to receive messages from {queue_name}...")
    async with host:
        console.print(f"Listening on {host.endpoint}")
        console.print("\nPress Ctrl+C to close the service host.")
        await host.serve(until=wait_for_shutdown())
    if host.fault is not None:
        raise host.fault


async def send(connection_string: str, count: int = 5) -> None:
    async with OnewayServiceClient(connection_string=connection_string, queue_name=settings.BASIC_QUEUE_NAME) as client:
        for index in range(1, count + 1):
            await client.send_message(f"Message {index}")
            console.print(f"Sent: Message {index}", markup=False)


if __name__ == "__main__":  # pragma: no cover - manual execution
    from messaging_samples.core.runner import run_sample

    raise SystemExit(run_sample(run))
