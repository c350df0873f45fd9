"""
Sync Client - Connects the autopilot to the remote decision service
Reports board occupancy and receives the move to play.
"""
import asyncio
from typing import Optional
import logging

import httpx

from board_autopilot.shared.constants import Sentinels
from board_autopilot.shared.errors import SyncError
from board_autopilot.shared.models import Occupancy, Side

logger = logging.getLogger(__name__)


def is_actionable_move(reply: Optional[str]) -> bool:
    """A reply becomes a pending move only if it is non-empty and not a sentinel."""
    return bool(reply and reply.strip()) and not Sentinels.matches(reply)


class SyncClient:
    """
    HTTP client for the remote decision service.

    All bodies are text/plain:
    - POST /start    "white" | "black"          -> "" or a move
    - POST /move     "white:a1,..;black:a7,.."  -> "", a move, or a sentinel
    - GET  /getmove                             -> "", a move, or a sentinel
    """

    DEFAULT_TIMEOUT = 30.0  # seconds
    MAX_RETRIES = 1
    RETRY_DELAY = 1.0  # seconds

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize sync client.

        Args:
            base_url: Base address of the decision service.
            timeout: Request timeout in seconds.
            max_retries: Extra attempts after a failed request.
            retry_delay: Delay between retries in seconds.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._transport = transport

        self._client: Optional[httpx.AsyncClient] = None
        self._headers = {"Content-Type": "text/plain"}

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def connect(self):
        """Initialize HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self._headers,
                transport=self._transport
            )
            logger.info(f"[SYNC] Connected to {self.base_url}")

    async def close(self):
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("[SYNC] Client closed")

    async def _request(self, method: str, path: str, body: Optional[str] = None) -> str:
        """
        Send a request with best-effort retry.

        Args:
            method: HTTP method.
            path: Endpoint path.
            body: Optional text/plain body.

        Returns:
            Trimmed response text.

        Raises:
            SyncError: After all attempts fail.
        """
        if self._client is None:
            await self.connect()

        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries + 1):
            try:
                response = await self._client.request(
                    method,
                    path,
                    content=body.encode("utf-8") if body is not None else None
                )
                response.raise_for_status()
                return response.text.strip()

            except httpx.HTTPStatusError as e:
                logger.error(f"[SYNC] {path} failed: HTTP {e.response.status_code}")
                last_error = e

            except httpx.TimeoutException as e:
                logger.warning(f"[SYNC] {path} timed out: {e}")
                last_error = e

            except httpx.HTTPError as e:
                logger.error(f"[SYNC] {path} network error: {e}")
                last_error = e

            # Wait before retry
            if attempt < self.max_retries:
                await asyncio.sleep(self.retry_delay)

        raise SyncError(
            f"{method} {path} failed after {self.max_retries + 1} attempts: {last_error}"
        ) from last_error

    async def start_session(self, side: Side) -> str:
        """
        Announce the side whose home rows are at the bottom of the screen.

        Args:
            side: Bottom side.

        Returns:
            Empty string or a move.
        """
        logger.info(f"[SYNC] Starting session as {side.value}")
        reply = await self._request("POST", "/start", side.value)
        logger.debug(f"[SYNC] /start replied {reply!r}")
        return reply

    async def report_occupancy(self, occupancy: Occupancy) -> str:
        """
        Report the squares held by both sides.

        Args:
            occupancy: Current board occupancy.

        Returns:
            Empty string, a move, or a sentinel.
        """
        body = occupancy.to_wire()
        logger.debug(f"[SYNC] Sending positions: {body}")
        reply = await self._request("POST", "/move", body)
        logger.debug(f"[SYNC] /move replied {reply!r}")
        return reply

    async def fetch_move(self) -> str:
        """
        Ask for the currently pending move.

        Returns:
            Empty string, a move, or a sentinel.
        """
        reply = await self._request("GET", "/getmove")
        logger.debug(f"[SYNC] /getmove replied {reply!r}")
        return reply
