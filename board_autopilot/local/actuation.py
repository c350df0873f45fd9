"""
Actuation Loop - The Consumer
Polls the shared store for a pending move and replays it as taps.
"""
import asyncio
import time
from dataclasses import dataclass
from typing import Optional
import logging

from board_autopilot.shared.constants import StoreKeys
from board_autopilot.shared.errors import MoveParseError, SyncError
from board_autopilot.shared.models import Move, Orientation
from board_autopilot.shared.store import StateStore
from board_autopilot.local.actuator import Actuator
from board_autopilot.local.client import SyncClient, is_actionable_move
from board_autopilot.local.config import ActuationConfig
from board_autopilot.local.debug import SessionJournal

logger = logging.getLogger(__name__)


@dataclass
class ActuationStats:
    """Statistics for the actuation loop."""
    polls: int = 0
    moves_executed: int = 0
    moves_failed: int = 0
    moves_discarded: int = 0
    start_time: float = 0.0


class ActuationLoop:
    """
    Idle -> Executing -> Idle.

    A pending move is cleared only after both taps succeed, so a failed
    execution is retried on the next poll (at-least-once). Malformed moves
    are discarded since retrying them can never succeed.
    """

    def __init__(
        self,
        store: StateStore,
        actuator: Actuator,
        config: Optional[ActuationConfig] = None,
        client: Optional[SyncClient] = None,
        pull_mode: bool = False,
        journal: Optional[SessionJournal] = None
    ):
        """
        Initialize actuation loop.

        Args:
            store: Shared state store.
            actuator: Executes moves as taps.
            config: Poll timings.
            client: Decision service client, used only in pull mode.
            pull_mode: Fetch moves out-of-band when none is pending.
            journal: Optional session journal.
        """
        self.store = store
        self.actuator = actuator
        self.config = config or ActuationConfig()
        self.client = client
        self.pull_mode = pull_mode
        self.journal = journal

        self.running = False
        self._stop_event = asyncio.Event()

        self.stats = ActuationStats(start_time=time.time())

    async def poll_once(self) -> float:
        """
        Run one poll of the shared store.

        Returns:
            Seconds to wait before the next poll.
        """
        self.stats.polls += 1

        if not self.store.get_flag(StoreKeys.SERVICE_ACTIVE.value):
            logger.debug("[ACTUATION] Perception loop not active, idling")
            return self.config.idle_interval

        orientation = Orientation.parse(self.store.get(StoreKeys.ORIENTATION.value))
        if orientation is None:
            logger.debug("[ACTUATION] Waiting for orientation")
            return self.config.idle_interval

        pending = self.store.get_str(StoreKeys.PENDING_MOVE.value).strip()
        if not pending:
            if self.pull_mode and self.client is not None:
                await self._fetch_move()
            return self.config.poll_interval

        await self._execute_pending(pending, orientation)
        return self.config.poll_interval

    async def _fetch_move(self):
        """Pull a move from the decision service (pull delivery only)."""
        try:
            reply = await self.client.fetch_move()
        except SyncError as e:
            logger.error(f"[ACTUATION] Move fetch failed: {e}")
            return

        if not is_actionable_move(reply):
            logger.debug(f"[ACTUATION] No actionable move: {reply!r}")
            return

        self.store.set(StoreKeys.PENDING_MOVE.value, reply.strip())
        logger.info(f"[ACTUATION] Fetched move: {reply.strip()}")

        if self.journal:
            self.journal.record_move(reply.strip(), "pending", "actuation")

    async def _execute_pending(self, pending: str, orientation: Orientation):
        """Execute the pending move with the executing flag raised."""
        logger.info(f"[ACTUATION] Found pending move: {pending}")
        self.store.set_flag(StoreKeys.MOVE_EXECUTING.value, True)

        try:
            try:
                move = Move.parse(pending)
            except MoveParseError as e:
                logger.error(f"[ACTUATION] Discarding malformed move: {e}")
                self.store.remove(StoreKeys.PENDING_MOVE.value)
                self.stats.moves_discarded += 1
                if self.journal:
                    self.journal.record_move(pending, "discarded", "actuation", error=str(e))
                return

            if await self.actuator.execute_move(move, orientation):
                self.store.remove(StoreKeys.PENDING_MOVE.value)
                self.stats.moves_executed += 1
                logger.info(f"[ACTUATION] Cleared pending move {move} after execution")
                if self.journal:
                    self.journal.record_move(str(move), "executed", "actuation")
            else:
                # Left in place so the next poll retries it
                self.stats.moves_failed += 1
                logger.warning(f"[ACTUATION] Move {move} failed, will retry next poll")
                if self.journal:
                    self.journal.record_move(str(move), "failed", "actuation")

        finally:
            self.store.set_flag(StoreKeys.MOVE_EXECUTING.value, False)

    async def _sleep(self, seconds: float):
        """Sleep that returns early on stop()."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run(self):
        """Poll until stop() is called."""
        self.running = True
        # A crash mid-move can leave the flag set and perception paused
        if self.store.get_flag(StoreKeys.MOVE_EXECUTING.value):
            logger.warning("[ACTUATION] Clearing stale move_executing flag")
            self.store.set_flag(StoreKeys.MOVE_EXECUTING.value, False)
        logger.info("[ACTUATION] Started polling for moves")

        try:
            while self.running:
                try:
                    delay = await self.poll_once()
                except Exception as e:
                    logger.exception(f"[ACTUATION] Error in polling loop: {e}")
                    delay = self.config.error_backoff

                if self.running:
                    await self._sleep(delay)
        finally:
            logger.info(f"[ACTUATION] Stopped. Stats: {self.stats}")

    def stop(self):
        """Request shutdown; an in-progress move runs to completion."""
        self.running = False
        self._stop_event.set()
