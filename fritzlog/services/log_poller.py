# fritzlog/services/log_poller.py
"""
Log polling service: pulls the event log from the FRITZ!Box on a fixed interval.

One cycle = acquire session → fetch snapshot → reconcile into the database.
Cycles never overlap. A stop request is honoured between cycles only, so a
running reconciliation always finishes (or rolls back) its transaction first.

Error handling per cycle:
  TransientNetwork / MalformedPayload → skip cycle, keep session
  StoreIOFailure                      → skip cycle, keep session, retried next cycle
  AuthRejected / AuthExhausted        → reported as fatal; polling continues
                                        unless STOP_ON_FATAL is set
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fritzlog.config import settings
from fritzlog.exceptions import AuthRejected, FritzLogError, MalformedPayload, StoreIOFailure, TransientNetwork
from fritzlog.services.log_fetcher import LogFetcher
from fritzlog.services.log_store import LogStore
from fritzlog.services.reconciler import Reconciler
from fritzlog.services.router_client import RouterClient
from fritzlog.services.session_manager import SessionManager
from fritzlog.utils.clock import DeviceClock
from fritzlog.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class PollStatus:
    cycles: int = 0
    last_cycle_at: Optional[datetime] = None
    last_upserted: Optional[int] = None
    last_error: Optional[str] = None
    fatal: bool = False


class LogPoller:
    def __init__(
        self,
        sessions: SessionManager,
        fetcher: LogFetcher,
        reconciler: Reconciler,
        store: LogStore,
        interval: float = None,
        stop_on_fatal: bool = None,
    ):
        self.sessions = sessions
        self.fetcher = fetcher
        self.reconciler = reconciler
        self.store = store
        self.interval = interval if interval is not None else settings.POLL_INTERVAL_SECONDS
        self.stop_on_fatal = settings.STOP_ON_FATAL if stop_on_fatal is None else stop_on_fatal
        self.status = PollStatus()

    @classmethod
    def from_settings(cls, client: RouterClient, store: LogStore = None) -> "LogPoller":
        store = store or LogStore()
        return cls(
            sessions=SessionManager(client),
            fetcher=LogFetcher(client),
            reconciler=Reconciler(store),
            store=store,
        )

    async def run_cycle(self) -> int:
        """One poll cycle. Errors propagate to poll_once()."""
        session = await self.sessions.acquire_session()
        entries = await self.fetcher.fetch(session)
        upserted = self.reconciler.reconcile(entries)

        try:
            self.store.record_update(upserted)
        except StoreIOFailure as e:
            logger.warning(f"⚠️  Couldn't record cycle history: {e}")

        logger.info(f"✅ Upserted {upserted} logs")
        return upserted

    async def poll_once(self) -> bool:
        """Run one cycle and absorb its errors. Returns False if polling should stop."""
        self.status.cycles += 1
        self.status.last_cycle_at = DeviceClock.utcnow()
        try:
            self.status.last_upserted = await self.run_cycle()
            self.status.last_error = None
            self.status.fatal = False
            return True
        except (TransientNetwork, MalformedPayload) as e:
            logger.warning(f"⚠️  Couldn't fetch logs: {e}")
            self.status.last_error = str(e)
        except StoreIOFailure as e:
            logger.error(f"❌ Couldn't store logs: {e}")
            self.status.last_error = str(e)
        except AuthRejected as e:
            logger.error(f"❌ FATAL: {e}")
            self.status.fatal = True
            self.status.last_error = str(e)
            return not self.stop_on_fatal
        except FritzLogError as e:
            logger.warning(f"⚠️  Cycle failed: {e}")
            self.status.last_error = str(e)
        except Exception as e:
            logger.error(f"❌ Unexpected error in poll cycle: {e}", exc_info=True)
            self.status.last_error = str(e)
        return True

    async def run(self, stop_event: asyncio.Event):
        """Poll until `stop_event` is set, then log out."""
        logger.info(f"🚀 Log polling started (every {self.interval}s)")
        while not stop_event.is_set():
            if not await self.poll_once():
                logger.error("🛑 Polling stopped after fatal error")
                break
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

        try:
            await self.sessions.logout()
        except FritzLogError as e:
            logger.warning(f"⚠️  Logout failed: {e}")
        logger.info("🛑 Log polling stopped")
