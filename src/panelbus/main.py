"""panelbus — application entry point (asyncio composition root).

Wires together: Config → Logging → Transport → SessionAggregator.
Events are logged until SIGINT / SIGTERM, then every held lock is released
and the bus connections are closed.
"""

from __future__ import annotations

import asyncio
import logging as _logging
import signal

from panelbus.config.config_manager import load_config
from panelbus.core import events
from panelbus.core.aggregator import SessionAggregator
from panelbus.core.models.config import PanelConfig
from panelbus.core.models.event import Event
from panelbus.logging.logger import setup_logging
from panelbus.transport.factory import create_transport

_log = _logging.getLogger(__name__)


def _log_event(event: Event) -> None:
    _log.info("%s %s", event.kind, event.payload.model_dump_json(exclude_none=True))


async def run(config: PanelConfig) -> None:
    """Run the aggregator until a termination signal arrives."""
    transport = create_transport(config)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop.set)

    aggregator = SessionAggregator(config, transport)
    aggregator.bridge.subscribe(events.ALL, _log_event)
    async with aggregator:
        _log.info("panelbus running (transport=%s)", config.system.transport)
        await stop.wait()

    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.remove_signal_handler(signum)


def main() -> None:
    """Synchronous entry point: load config, set up logging, run."""
    config = load_config()
    log_file = setup_logging(config.system.log_level, config.system.log_dir)
    _log.info("Starting panelbus (log file: %s)", log_file or "none")

    asyncio.run(run(config))
    _log.info("panelbus stopped")


if __name__ == "__main__":
    main()
