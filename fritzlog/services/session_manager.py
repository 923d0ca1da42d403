# fritzlog/services/session_manager.py
"""
Session manager: owns the FRITZ!Box login handshake and the current SID.

State machine:

    UNAUTHENTICATED ──challenge──▶ CHALLENGE_ISSUED ──valid SID──▶ AUTHENTICATED
                                        │
                                        └─ SID 0000…, BlockTime>0 ──▶ BLOCKED(retry_after)

A BlockTime does not tell us *who* failed to log in: another client on the
LAN, or this process with a wrong password. Either way we wait it out and try
again, up to MAX_LOGIN_ATTEMPTS, then give up with AuthExhausted.

The manager is the only writer of the session. It is created by the poller
and handed to the fetcher; nothing else touches the token.
"""

import asyncio
import enum
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fritzlog.config import settings
from fritzlog.exceptions import AuthBlocked, AuthExhausted, AuthRejected, MalformedPayload
from fritzlog.services.challenge import make_response
from fritzlog.services.router_client import LOGIN_PATH, RouterClient
from fritzlog.utils.clock import DeviceClock
from fritzlog.utils.logger import get_logger
from fritzlog.utils.xml_parser import SessionInfo, parse_session_info

logger = get_logger(__name__)


class SessionState(str, enum.Enum):
    UNAUTHENTICATED = "unauthenticated"
    CHALLENGE_ISSUED = "challenge_issued"
    AUTHENTICATED = "authenticated"
    BLOCKED = "blocked"


@dataclass
class LoginSession:
    token: str
    created_at: datetime


class SessionManager:
    def __init__(
        self,
        client: RouterClient,
        username: str = None,
        password: str = None,
        max_attempts: int = None,
        sleep=asyncio.sleep,
        monotonic=time.monotonic,
    ):
        self.client = client
        self.username = username or settings.FRITZBOX_USERNAME
        self.password = password or settings.FRITZBOX_PASSWORD
        self.max_attempts = max_attempts or settings.MAX_LOGIN_ATTEMPTS
        self._sleep = sleep
        self._monotonic = monotonic

        self.state = SessionState.UNAUTHENTICATED
        self.session: Optional[LoginSession] = None
        self.retry_after: Optional[float] = None   # monotonic deadline while BLOCKED

    # ── Public API ────────────────────────────────────────────────────────
    async def acquire_session(self) -> LoginSession:
        """Return a session the router still accepts, logging in if needed."""
        if self.state == SessionState.AUTHENTICATED and self.session is not None:
            if await self.probe(self.session):
                return self.session
            logger.info("🔑 Session no longer accepted by the router, logging in again")
            self.invalidate()

        last_blocktime = 0
        for attempt in range(1, self.max_attempts + 1):
            await self._wait_if_blocked()
            try:
                return await self._login()
            except AuthBlocked as e:
                last_blocktime = e.blocktime
                self._enter_blocked(e.blocktime)
                logger.warning(
                    f"🔒 Login attempt {attempt}/{self.max_attempts} blocked for {e.blocktime}s "
                    f"(another client or our own credentials)"
                )
            except Exception:
                self.invalidate()
                raise

        # Stay BLOCKED so the next cycle still honours the lockout
        raise AuthExhausted(self.max_attempts, last_blocktime)

    async def probe(self, session: LoginSession) -> bool:
        """Ask the router whether `session.token` is still valid."""
        body = await self.client.request("check-session-id", "POST", LOGIN_PATH, data={"sid": session.token})
        info = self._parse(body, "check-session-id")
        return info.has_valid_sid and info.sid == session.token

    def invalidate(self):
        self.session = None
        self.state = SessionState.UNAUTHENTICATED

    async def logout(self):
        """Destroy the session on the router, if we have one."""
        if self.session is None:
            self.invalidate()
            return
        token = self.session.token
        self.invalidate()
        await self.client.request("logout", "POST", LOGIN_PATH, data={"logout": "1", "sid": token})
        logger.info("👋 Logged out of the router")

    # ── Handshake ─────────────────────────────────────────────────────────
    async def _login(self) -> LoginSession:
        body = await self.client.request("login-challenge", "GET", LOGIN_PATH)
        challenge = self._parse(body, "login-challenge")
        self.state = SessionState.CHALLENGE_ISSUED

        if challenge.block_time > 0:
            # Someone failed recently; answering now would only extend the lockout
            raise AuthBlocked(challenge.block_time)

        if challenge.users and not challenge.has_user(self.username):
            raise AuthRejected(f"user {self.username!r} not in {challenge.users}")

        response = make_response(challenge.challenge, self.password)
        body = await self.client.request(
            "login-response", "POST", LOGIN_PATH,
            data={"username": self.username, "response": response},
        )
        result = self._parse(body, "login-response")

        if not result.has_valid_sid:
            # Zero SID always counts as a failed attempt; BlockTime 0 retries straight away
            raise AuthBlocked(result.block_time)

        self.session = LoginSession(token=result.sid, created_at=DeviceClock.utcnow())
        self.state = SessionState.AUTHENTICATED
        self.retry_after = None
        logger.info(f"✅ Logged in as {self.username}")
        return self.session

    def _enter_blocked(self, blocktime: int):
        self.session = None
        self.state = SessionState.BLOCKED
        self.retry_after = self._monotonic() + blocktime

    async def _wait_if_blocked(self):
        if self.state != SessionState.BLOCKED or self.retry_after is None:
            return
        remaining = self.retry_after - self._monotonic()
        if remaining > 0:
            logger.info(f"⏳ Waiting {remaining:.0f}s for login lockout to expire")
            await self._sleep(remaining)

    @staticmethod
    def _parse(body: bytes, name: str) -> SessionInfo:
        info = parse_session_info(body)
        if info is None:
            raise MalformedPayload("response is not a SessionInfo document", name=name)
        return info
