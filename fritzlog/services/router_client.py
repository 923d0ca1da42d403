# fritzlog/services/router_client.py
"""
HTTP client for the FRITZ!Box web interface.

Endpoints used:
  GET/POST https://{domain}/login_sid.lua?version=2   — session login / check / logout
  POST     https://{domain}/data.lua                  — event log (page=log)

Every request is timed and logged. When FRITZBOX_SAVE_RESPONSE_PATH is set,
raw response bodies are written there for diagnostics.
"""

import os
import time
from datetime import datetime

import httpx

from fritzlog.config import settings
from fritzlog.exceptions import TransientNetwork
from fritzlog.utils.logger import get_logger

logger = get_logger(__name__)

LOGIN_PATH = "/login_sid.lua?version=2"
DATA_PATH = "/data.lua"


def _resolve_verify(root_cert_path):
    """Trust the box's own certificate if we have it, otherwise skip verification."""
    if root_cert_path and os.path.isfile(root_cert_path):
        return root_cert_path
    if root_cert_path:
        logger.warning(f"⚠️  Root cert not found at {root_cert_path}, accepting invalid certs")
    else:
        logger.warning("⚠️  No FRITZBOX_ROOT_CERT_PATH configured, accepting invalid certs")
    return False


def _resolve_save_path(path):
    if not path:
        return None
    if os.path.exists(path) and not os.path.isdir(path):
        logger.warning(f"⚠️  FRITZBOX_SAVE_RESPONSE_PATH is not a folder: {path}")
        return None
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        logger.warning(f"⚠️  Couldn't create FRITZBOX_SAVE_RESPONSE_PATH {path}: {e}")
        return None
    return path


class RouterClient:
    def __init__(
        self,
        base_url: str = None,
        timeout: float = None,
        root_cert_path: str = None,
        save_response_path: str = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        self.base_url = base_url or settings.BASE_URL
        self.save_response_path = _resolve_save_path(
            save_response_path if save_response_path is not None else settings.FRITZBOX_SAVE_RESPONSE_PATH
        )
        verify = True if transport is not None else _resolve_verify(
            root_cert_path if root_cert_path is not None else settings.FRITZBOX_ROOT_CERT_PATH
        )
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.REQUEST_TIMEOUT_SECONDS,
            verify=verify,
            transport=transport,
        )

    async def close(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    def _save_response(self, name: str, body: bytes):
        if not self.save_response_path:
            return
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S.%f")[:-3]
        filepath = os.path.join(self.save_response_path, f"response_{timestamp}_{name}.txt")
        try:
            with open(filepath, "wb") as f:
                f.write(body)
        except OSError as e:
            logger.warning(f"[CAPTURE] Couldn't save {filepath}: {e}")

    async def request(self, name: str, method: str, path: str, data: dict = None) -> bytes:
        """
        Send one request and return the raw body.
        Raises TransientNetwork on transport errors and non-2xx responses.
        """
        url = f"{self.base_url}{path}"
        start = time.monotonic()
        try:
            response = await self._client.request(method, path, data=data)
        except httpx.HTTPError as e:
            duration = round((time.monotonic() - start) * 1000, 2)
            logger.warning(f"❌ {name} request to {url} ({method}) failed after {duration}ms: {e!r}")
            raise TransientNetwork(f"{name}: {e!r}", url=url) from e

        duration = round((time.monotonic() - start) * 1000, 2)
        logger.info(f"{name} request to {url} ({method} - {response.status_code}) took {duration}ms")

        if not response.is_success:
            raise TransientNetwork(
                f"{name} returned HTTP {response.status_code}", url=url, status_code=response.status_code
            )

        body = response.content
        self._save_response(name, body)
        return body
