"""Tests for the poll loop: one cycle, error handling and shutdown."""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock
from fritzlog.exceptions import (
    AuthExhausted,
    AuthRejected,
    MalformedPayload,
    StoreIOFailure,
    TransientNetwork,
)
from fritzlog.services.log_fetcher import LogFetcher
from fritzlog.services.log_poller import LogPoller
from fritzlog.services.reconciler import Reconciler
from fritzlog.services.session_manager import SessionManager
from fritzlog.utils.clock import DeviceClock


def make_poller(stop_on_fatal=False):
    sessions = MagicMock()
    sessions.acquire_session = AsyncMock(return_value=MagicMock(token="0de8afc227e5abeb"))
    sessions.logout = AsyncMock()
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(return_value=[])
    reconciler = MagicMock()
    reconciler.reconcile.return_value = 2
    store = MagicMock()
    return LogPoller(sessions, fetcher, reconciler, store, interval=0.01, stop_on_fatal=stop_on_fatal)


class TestPollOnce:
    @pytest.mark.asyncio
    async def test_successful_cycle(self):
        poller = make_poller()
        assert await poller.poll_once() is True
        assert poller.status.last_upserted == 2
        assert poller.status.last_error is None
        poller.store.record_update.assert_called_once_with(2)

    @pytest.mark.asyncio
    async def test_network_error_skips_cycle(self):
        poller = make_poller()
        poller.fetcher.fetch.side_effect = TransientNetwork("timeout")
        assert await poller.poll_once() is True
        assert "timeout" in poller.status.last_error
        poller.reconciler.reconcile.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_payload_skips_cycle(self):
        poller = make_poller()
        poller.fetcher.fetch.side_effect = MalformedPayload("not json", name="logs")
        assert await poller.poll_once() is True
        assert poller.status.fatal is False

    @pytest.mark.asyncio
    async def test_store_failure_skips_cycle(self):
        poller = make_poller()
        poller.reconciler.reconcile.side_effect = StoreIOFailure("disk full")
        assert await poller.poll_once() is True
        assert "disk full" in poller.status.last_error
        poller.store.record_update.assert_not_called()

    @pytest.mark.asyncio
    async def test_history_failure_does_not_fail_cycle(self):
        poller = make_poller()
        poller.store.record_update.side_effect = StoreIOFailure("locked")
        assert await poller.poll_once() is True
        assert poller.status.last_error is None

    @pytest.mark.asyncio
    async def test_auth_rejected_is_fatal_but_keeps_polling(self):
        poller = make_poller()
        poller.sessions.acquire_session.side_effect = AuthRejected("user not listed")
        assert await poller.poll_once() is True
        assert poller.status.fatal is True

    @pytest.mark.asyncio
    async def test_stop_on_fatal(self):
        poller = make_poller(stop_on_fatal=True)
        poller.sessions.acquire_session.side_effect = AuthExhausted(5, 30)
        assert await poller.poll_once() is False

    @pytest.mark.asyncio
    async def test_unexpected_error_absorbed(self):
        poller = make_poller()
        poller.reconciler.reconcile.side_effect = RuntimeError("boom")
        assert await poller.poll_once() is True
        assert poller.status.last_error == "boom"

    @pytest.mark.asyncio
    async def test_recovery_clears_error(self):
        poller = make_poller()
        poller.fetcher.fetch.side_effect = [TransientNetwork("timeout"), []]
        await poller.poll_once()
        await poller.poll_once()
        assert poller.status.cycles == 2
        assert poller.status.last_error is None


class TestRun:
    @pytest.mark.asyncio
    async def test_stops_between_cycles_and_logs_out(self):
        poller = make_poller()
        stop_event = asyncio.Event()

        def reconcile(entries):
            if poller.status.cycles == 3:
                stop_event.set()
            return 0

        poller.reconciler.reconcile.side_effect = reconcile
        await asyncio.wait_for(poller.run(stop_event), timeout=5)

        assert poller.status.cycles == 3
        poller.sessions.logout.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stops_after_fatal_when_configured(self):
        poller = make_poller(stop_on_fatal=True)
        poller.sessions.acquire_session.side_effect = AuthRejected("bad password")
        await asyncio.wait_for(poller.run(asyncio.Event()), timeout=5)
        assert poller.status.cycles == 1
        assert poller.status.fatal is True

    @pytest.mark.asyncio
    async def test_not_started_when_already_stopped(self):
        poller = make_poller()
        stop_event = asyncio.Event()
        stop_event.set()
        await poller.run(stop_event)
        assert poller.status.cycles == 0


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_cycle_against_fake_router(self, router_client, fake_router, store):
        fake_router.log_rows = [
            ["21.10.23", "10:07:41", "Internetverbindung wurde erfolgreich hergestellt.", "23", "2", ""],
            ["21.10.23", "10:07:39", "WLAN-Gerät angemeldet", "24", "4", ""],
        ]
        sessions = SessionManager(
            router_client, username=fake_router.username, password=fake_router.password, max_attempts=1
        )
        poller = LogPoller(
            sessions,
            LogFetcher(router_client, DeviceClock("Europe/Berlin")),
            Reconciler(store, tail_window=50),
            store,
            interval=0,
            stop_on_fatal=False,
        )

        assert await poller.poll_once() is True
        assert poller.status.last_upserted == 2
        assert [r.message_id for r in store.read_tail(10)] == [24, 23]

        fake_router.log_rows.insert(0, ["21.10.23", "10:08:00", "WLAN-Gerät abgemeldet", "25", "4", ""])
        await poller.poll_once()
        assert poller.status.last_upserted == 1
        assert fake_router.logins == 1
