"""
Perception Loop - The Producer
Captures the board, classifies it, reports changes to the decision service
and hands the returned move to the actuation loop through the shared store.
"""
import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional
import logging

from board_autopilot.shared.constants import Sentinels, StoreKeys
from board_autopilot.shared.errors import ClassificationError, SyncError
from board_autopilot.shared.models import Occupancy, Orientation
from board_autopilot.shared.store import StateStore
from board_autopilot.local.capture import CellExtractor, FrameSource
from board_autopilot.local.client import SyncClient
from board_autopilot.local.config import PerceptionConfig
from board_autopilot.local.debug import SessionJournal
from board_autopilot.local.mapper import map_occupancy
from board_autopilot.local.orientation import OrientationResolver
from board_autopilot.local.vision import ClassifierPool

logger = logging.getLogger(__name__)


class PerceptionPhase(Enum):
    WAITING_FOR_ORIENTATION = "waiting_for_orientation"
    POLLING = "polling"


class CycleOutcome(Enum):
    """What a single perception cycle did."""
    PAUSED = "paused"                  # move pending or executing
    NO_FRAME = "no_frame"              # transient capture miss
    NO_BOARD = "no_board"              # frame does not cover the board
    SYNC_IN_FLIGHT = "sync_in_flight"  # previous report still awaiting reply
    UNCHANGED = "unchanged"            # same occupancy as last sent
    MOVE_POLLED = "move_polled"        # unchanged, still waiting on a move
    SYNC_STARTED = "sync_started"


@dataclass
class PerceptionStats:
    """Statistics for the perception loop."""
    cycles: int = 0
    frames_classified: int = 0
    classification_failures: int = 0
    reports_sent: int = 0
    sync_failures: int = 0
    moves_queued: int = 0
    start_time: float = 0.0


class PerceptionLoop:
    """
    WaitingForOrientation -> Polling.

    Each cycle captures one frame and, when the board changed since the last
    successful report, starts a background sync. The loop writes the pending
    move but never overwrites one, and pauses while a move is outstanding.
    """

    def __init__(
        self,
        store: StateStore,
        frame_source: FrameSource,
        extractor: CellExtractor,
        pool: ClassifierPool,
        resolver: OrientationResolver,
        client: SyncClient,
        config: Optional[PerceptionConfig] = None,
        journal: Optional[SessionJournal] = None
    ):
        """
        Initialize perception loop.

        Args:
            store: Shared state store.
            frame_source: Produces screen frames.
            extractor: Cuts frames into 64 cells.
            pool: Classifier pool.
            resolver: Session orientation resolver.
            client: Decision service client.
            config: Timings and move delivery mode.
            journal: Optional session journal.
        """
        self.store = store
        self.frame_source = frame_source
        self.extractor = extractor
        self.pool = pool
        self.resolver = resolver
        self.client = client
        self.config = config or PerceptionConfig()
        self.journal = journal

        # Per-instance session state (not persisted)
        self.session_start_sent = False
        self.last_sent: Optional[Occupancy] = None
        self.awaiting_move = False

        self.running = False
        self._stop_event = asyncio.Event()
        self._sync_task: Optional[asyncio.Task] = None

        self.stats = PerceptionStats(start_time=time.time())

    @property
    def phase(self) -> PerceptionPhase:
        if self.resolver.is_resolved:
            return PerceptionPhase.POLLING
        return PerceptionPhase.WAITING_FOR_ORIENTATION

    @property
    def pull_mode(self) -> bool:
        return self.config.move_delivery == "pull"

    def _move_outstanding(self) -> bool:
        pending = self.store.get_str(StoreKeys.PENDING_MOVE.value).strip()
        return bool(pending) or self.store.get_flag(StoreKeys.MOVE_EXECUTING.value)

    async def run_cycle(self) -> CycleOutcome:
        """
        Run one capture/classify/report cycle.

        Returns:
            Outcome of the cycle.

        Raises:
            ClassificationError: A classifier worker failed; nothing was written.
        """
        self.stats.cycles += 1

        # The board on screen may not reflect the pending move yet
        if self._move_outstanding():
            logger.debug("[PERCEPTION] Move outstanding, capture paused")
            return CycleOutcome.PAUSED

        loop = asyncio.get_running_loop()

        # 1. Capture frame
        frame = await loop.run_in_executor(None, self.frame_source.grab)
        if frame is None:
            return CycleOutcome.NO_FRAME

        # 2. Extract cells
        cells = await loop.run_in_executor(None, self.extractor.extract, frame)
        if cells is None:
            return CycleOutcome.NO_BOARD

        # 3. Classify all 64 cells
        try:
            labels = await loop.run_in_executor(None, self.pool.classify, cells)
        except ClassificationError:
            self.stats.classification_failures += 1
            raise
        self.stats.frames_classified += 1

        # 4. Resolve orientation once per session
        orientation = self.resolver.resolve(labels)

        # 5. Map to occupancy
        occupancy = map_occupancy(labels, orientation)

        # 6. Report only changes, one report at a time
        if self._sync_task is not None and not self._sync_task.done():
            outcome = CycleOutcome.SYNC_IN_FLIGHT
        elif occupancy == self.last_sent:
            if self.awaiting_move and not self.pull_mode:
                self._sync_task = asyncio.create_task(self._poll_move())
                outcome = CycleOutcome.MOVE_POLLED
            else:
                logger.debug("[PERCEPTION] Occupancy unchanged, report suppressed")
                outcome = CycleOutcome.UNCHANGED
        else:
            self._sync_task = asyncio.create_task(self._sync(occupancy, orientation))
            outcome = CycleOutcome.SYNC_STARTED

        if self.journal:
            self.journal.record_board(orientation, occupancy, outcome.value)
        return outcome

    async def _sync(self, occupancy: Occupancy, orientation: Orientation):
        """Report occupancy and queue the returned move, if any."""
        try:
            start_reply = ""
            if not self.session_start_sent:
                start_reply = await self.client.start_session(orientation.bottom_side)
                self.session_start_sent = True

            reply = await self.client.report_occupancy(occupancy)
            self.stats.reports_sent += 1

            # Snapshot is stored only after the service accepted it
            side_a, side_b = occupancy.store_values()
            self.store.set(StoreKeys.OCCUPANCY_SIDE_A.value, side_a)
            self.store.set(StoreKeys.OCCUPANCY_SIDE_B.value, side_b)
            self.last_sent = occupancy

            logger.info(
                f"[PERCEPTION] Board reported: {len(occupancy.side_a)} A / "
                f"{len(occupancy.side_b)} B pieces"
            )
            if self.journal:
                self.journal.record_sync("reported", reply=reply, start_reply=start_reply)

            if self.pull_mode:
                return

            # Until a move is queued, unchanged cycles keep asking for one
            self.awaiting_move = True
            candidate = reply or start_reply
            if not candidate:
                candidate = await self.client.fetch_move()

            self._take_reply(candidate)

        except SyncError as e:
            self.stats.sync_failures += 1
            logger.error(f"[PERCEPTION] Sync failed, will retry next cycle: {e}")
            if self.journal:
                self.journal.record_sync("error", error=str(e))
        except Exception as e:
            self.stats.sync_failures += 1
            logger.exception(f"[PERCEPTION] Unexpected sync error: {e}")

    async def _poll_move(self):
        """Ask for the move again for a board that was already reported."""
        try:
            reply = await self.client.fetch_move()
            self._take_reply(reply)
        except SyncError as e:
            self.stats.sync_failures += 1
            logger.warning(f"[PERCEPTION] Move fetch failed, will retry next cycle: {e}")
            if self.journal:
                self.journal.record_sync("error", error=str(e))
        except Exception as e:
            self.stats.sync_failures += 1
            logger.exception(f"[PERCEPTION] Unexpected move fetch error: {e}")

    def _take_reply(self, reply: str):
        """Offer a reply and stop waiting once a move is queued or the game ended."""
        game_over = reply.strip().lower() == Sentinels.GAME_OVER.value
        if self._offer_move(reply) or game_over:
            self.awaiting_move = False

    def _offer_move(self, reply: str) -> bool:
        """
        Write a reply as the pending move unless it is empty, a sentinel, or one is pending.

        Returns:
            True if the reply was queued.
        """
        move = reply.strip()
        if not move:
            logger.debug("[PERCEPTION] No move available yet")
            return False

        if Sentinels.matches(move):
            logger.info(f"[PERCEPTION] Decision service replied {move!r}, no move queued")
            if self.journal:
                self.journal.record_sync("sentinel", reply=move)
            return False

        pending = self.store.get_str(StoreKeys.PENDING_MOVE.value).strip()
        if pending:
            logger.warning(f"[PERCEPTION] Move {pending!r} still pending, dropping {move!r}")
            return False

        self.store.set(StoreKeys.PENDING_MOVE.value, move)
        self.stats.moves_queued += 1
        logger.info(f"[PERCEPTION] Queued move: {move}")

        if self.journal:
            self.journal.record_move(move, "pending", "perception")
        return True

    async def flush(self):
        """Wait for an in-flight sync to finish."""
        if self._sync_task is not None:
            await self._sync_task
            self._sync_task = None

    async def _sleep(self, seconds: float):
        """Sleep that returns early on stop()."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run(self):
        """Run cycles until stop() is called."""
        self.running = True
        self.store.set_flag(StoreKeys.SERVICE_ACTIVE.value, True)
        logger.info(f"[PERCEPTION] Started, warming up for {self.config.warmup_delay}s")

        try:
            await self._sleep(self.config.warmup_delay)

            while self.running:
                delay = self.config.cycle_interval
                try:
                    outcome = await self.run_cycle()
                    logger.debug(f"[PERCEPTION] Cycle {self.stats.cycles}: {outcome.value}")
                except ClassificationError as e:
                    logger.error(f"[PERCEPTION] Classification failed, cycle abandoned: {e}")
                    delay = self.config.error_backoff
                except Exception as e:
                    logger.exception(f"[PERCEPTION] Unexpected error in cycle: {e}")
                    delay = self.config.error_backoff

                if self.running:
                    await self._sleep(delay)

        finally:
            self.store.set_flag(StoreKeys.SERVICE_ACTIVE.value, False)
            await self.flush()
            logger.info(f"[PERCEPTION] Stopped. Stats: {self.stats}")

    def stop(self):
        """Request shutdown; the current cycle and in-flight sync run to completion."""
        self.running = False
        self._stop_event.set()
