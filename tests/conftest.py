"""Shared fixtures: in-memory SQLite store, a fake FRITZ!Box and log entry builders."""

import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before fritzlog.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DEVICE_TIMEZONE", "Europe/Berlin")

import httpx
import pytest
from datetime import datetime
from urllib.parse import parse_qsl
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fritzlog.database import create_tables
from fritzlog.models.log import LogCategory
from fritzlog.services.challenge import make_response
from fritzlog.services.log_parser import LogEntry
from fritzlog.services.log_store import LogStore
from fritzlog.services.router_client import RouterClient
from fritzlog.utils.xml_parser import INVALID_SID


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return LogStore(session_factory)


def ts(hour, minute, second):
    return datetime(2023, 10, 21, hour, minute, second)


def make_entry(when, message_id, category=LogCategory.SYSTEM, message=None, repeat_count=None, repeat_since=None):
    return LogEntry(
        timestamp=when,
        message=message if message is not None else f"message {message_id}",
        message_id=message_id,
        category=category,
        repeat_count=repeat_count,
        repeat_since=repeat_since,
    )


# ── Fake FRITZ!Box ───────────────────────────────────────────────────────────

# Few iterations so tests stay fast
CHEAP_CHALLENGE = "2$10$d4949767019d1e6eed27c27f404c7aa7$10$4f3415a3b5396a9675d08906ee6a6933"


class FakeRouter:
    """Answers login_sid.lua and data.lua like a box would."""

    def __init__(self, username="fritz3713", password="secret", users=None):
        self.username = username
        self.password = password
        self.users = [username] if users is None else users
        self.challenge_block_times = []   # BlockTime for successive challenge requests
        self.failures = 0                 # next N login responses are refused
        self.lockout = 30
        self.sessions = set()
        self.logins = 0
        self.log_rows = []
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        form = dict(parse_qsl(request.content.decode())) if request.method == "POST" else {}
        self.requests.append((request.method, request.url.path, form))

        if request.url.path == "/data.lua":
            if form.get("sid") not in self.sessions:
                return httpx.Response(403)
            return httpx.Response(200, json={"pid": "log", "data": {"log": self.log_rows}})

        if "logout" in form:
            self.sessions.discard(form.get("sid"))
            return self._info(INVALID_SID)

        if "response" in form:
            if self.failures:
                self.failures -= 1
                return self._info(INVALID_SID, self.lockout)
            expected = make_response(CHEAP_CHALLENGE, self.password)
            if form.get("username") != self.username or form["response"] != expected:
                return self._info(INVALID_SID, self.lockout)
            self.logins += 1
            sid = f"{self.logins:016x}"
            self.sessions.add(sid)
            return self._info(sid)

        if "sid" in form:
            return self._info(form["sid"] if form["sid"] in self.sessions else INVALID_SID)

        block_time = self.challenge_block_times.pop(0) if self.challenge_block_times else 0
        return self._info(INVALID_SID, block_time)

    def _info(self, sid, block_time=0):
        users = "".join(f"<User>{u}</User>" for u in self.users)
        body = (
            '<?xml version="1.0" encoding="utf-8"?>'
            f"<SessionInfo><SID>{sid}</SID><Challenge>{CHEAP_CHALLENGE}</Challenge>"
            f"<BlockTime>{block_time}</BlockTime><Rights/><Users>{users}</Users></SessionInfo>"
        )
        return httpx.Response(200, content=body.encode())


@pytest.fixture
def fake_router():
    return FakeRouter()


@pytest.fixture
def router_client(fake_router):
    return RouterClient(
        base_url="https://fritz.box",
        timeout=5,
        save_response_path="",
        transport=httpx.MockTransport(fake_router.handler),
    )
