# fritzlog/services/log_fetcher.py
"""
Fetches the router's event log with an authenticated session.
The router answers newest entry first; that order is kept.
"""

from fritzlog.services.log_parser import LogEntry, parse_log_payload
from fritzlog.services.router_client import DATA_PATH, RouterClient
from fritzlog.services.session_manager import LoginSession
from fritzlog.utils.clock import DeviceClock, clock as default_clock
from fritzlog.utils.logger import get_logger

logger = get_logger(__name__)


class LogFetcher:
    def __init__(self, client: RouterClient, clock: DeviceClock = default_clock):
        self.client = client
        self.clock = clock

    async def fetch(self, session: LoginSession) -> list[LogEntry]:
        form = {
            "xhr": "1",
            "page": "log",
            "lang": "de",
            "filter": "0",
            "sid": session.token,
            "xhrId": "all",
        }
        body = await self.client.request("logs", "POST", DATA_PATH, data=form)
        entries = parse_log_payload(body, self.clock)
        logger.debug(f"📥 Fetched {len(entries)} log entries")
        return entries
