# fritzlog/cli.py
"""
Standalone poller without the HTTP API.

Usage: fritz-log-poller            # poll forever, Ctrl+C / SIGTERM to stop
       fritz-log-poller --once     # single cycle, exit code 1 on failure
"""

import argparse
import asyncio
import signal
import sys

from fritzlog.database import create_tables
from fritzlog.exceptions import FritzLogError
from fritzlog.services.log_poller import LogPoller
from fritzlog.services.router_client import RouterClient
from fritzlog.utils.logger import get_logger

logger = get_logger(__name__)


async def _run(once: bool) -> int:
    create_tables()
    async with RouterClient() as client:
        poller = LogPoller.from_settings(client)

        if once:
            ok = await poller.poll_once()
            try:
                await poller.sessions.logout()
            except FritzLogError as e:
                logger.warning(f"⚠️  Logout failed: {e}")
            return 0 if ok and poller.status.last_error is None else 1

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        def _handle_shutdown():
            logger.info("Received shutdown signal, finishing current cycle")
            stop_event.set()

        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, _handle_shutdown)
            except NotImplementedError:
                signal.signal(sig, lambda s, f: _handle_shutdown())

        await poller.run(stop_event)
        return 1 if poller.status.fatal else 0


def main():
    parser = argparse.ArgumentParser(description="Poll the FRITZ!Box event log into the database")
    parser.add_argument("--once", action="store_true", help="run a single poll cycle and exit")
    args = parser.parse_args()
    sys.exit(asyncio.run(_run(args.once)))


if __name__ == "__main__":
    main()
