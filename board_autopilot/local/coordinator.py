"""
Autopilot Coordinator - Main Orchestration Module
Builds the perception and actuation loops from configuration and runs them
as independent tasks that meet only in the shared state store.
"""
import asyncio
import time
from typing import Any, Dict, List, Optional
import logging

from board_autopilot.shared.store import InMemoryStateStore, SQLiteStateStore, StateStore
from board_autopilot.local.actuation import ActuationLoop
from board_autopilot.local.actuator import Actuator, PyAutoGuiTapInjector, TapInjector
from board_autopilot.local.capture import CellExtractor, FrameSource, ScreenCapture
from board_autopilot.local.client import SyncClient
from board_autopilot.local.config import AutopilotConfig
from board_autopilot.local.debug import SessionJournal
from board_autopilot.local.orientation import OrientationResolver
from board_autopilot.local.perception import PerceptionLoop
from board_autopilot.local.vision import ClassifierPool, build_oracle_factory

logger = logging.getLogger(__name__)


def build_store(config: AutopilotConfig) -> StateStore:
    """Open the configured shared store."""
    if config.store.path:
        return SQLiteStateStore(config.store.path)

    logger.warning("[COORDINATOR] No STORE_PATH set, shared state is process-local")
    return InMemoryStateStore()


class AutopilotCoordinator:
    """
    Owns component lifecycles for one process.

    Either loop can be enabled on its own so that perception and actuation
    may run as separate processes sharing a sqlite store.
    """

    def __init__(
        self,
        config: Optional[AutopilotConfig] = None,
        store: Optional[StateStore] = None,
        frame_source: Optional[FrameSource] = None,
        injector: Optional[TapInjector] = None
    ):
        """
        Initialize coordinator.

        Args:
            config: Configuration object. If None, uses defaults.
            store: Shared store override. If None, built from config.
            frame_source: Frame source override. If None, captures the screen.
            injector: Tap primitive override. If None, uses pyautogui.
        """
        self.config = config or AutopilotConfig()
        self.store = store
        self.frame_source = frame_source
        self.injector = injector

        self.pool: Optional[ClassifierPool] = None
        self.resolver: Optional[OrientationResolver] = None
        self.client: Optional[SyncClient] = None
        self.perception: Optional[PerceptionLoop] = None
        self.actuation: Optional[ActuationLoop] = None
        self.journal: Optional[SessionJournal] = None

        self._tasks: List[asyncio.Task] = []
        self.start_time = time.time()

    def reset_session(self):
        """Clear all shared state before either loop's first poll."""
        if self.store is None:
            self.store = build_store(self.config)
        self.store.reset()
        if self.resolver is not None:
            self.resolver.forget()

    async def initialize(
        self,
        enable_perception: bool = True,
        enable_actuation: bool = True,
        reset: bool = True
    ):
        """
        Initialize subsystems.

        Args:
            enable_perception: Build the perception loop.
            enable_actuation: Build the actuation loop.
            reset: Clear the shared store first (new session).
        """
        logger.info("[COORDINATOR] Initializing autopilot...")

        if self.store is None:
            self.store = build_store(self.config)
        if reset:
            self.reset_session()

        if self.config.debug_mode:
            self.journal = SessionJournal(log_file=self.config.debug_log_file)
            logger.info(f"[COORDINATOR] Session journal: {self.journal.log_file}")

        if enable_perception or self.config.pull_mode:
            self.client = SyncClient(
                base_url=self.config.sync.base_url,
                timeout=self.config.sync.timeout,
                max_retries=self.config.sync.max_retries,
                retry_delay=self.config.sync.retry_delay
            )
            await self.client.connect()

        if enable_perception:
            self._initialize_perception()
            logger.info("[COORDINATOR] Perception loop initialized")

        if enable_actuation:
            self._initialize_actuation()
            logger.info("[COORDINATOR] Actuation loop initialized")

    def _initialize_perception(self):
        vision = self.config.vision
        capture = self.config.capture

        frame_source = self.frame_source or ScreenCapture(monitor_index=capture.monitor_index)
        extractor = CellExtractor(capture.board_rect, capture.cell_size)

        self.pool = ClassifierPool(
            build_oracle_factory(vision.model_path, vision.label_map(), vision.device),
            workers=vision.pool_workers,
            batch_size=vision.batch_size
        )
        self.resolver = OrientationResolver(self.store)

        self.perception = PerceptionLoop(
            store=self.store,
            frame_source=frame_source,
            extractor=extractor,
            pool=self.pool,
            resolver=self.resolver,
            client=self.client,
            config=self.config.perception,
            journal=self.journal
        )

    def _initialize_actuation(self):
        actuation = self.config.actuation

        injector = self.injector or PyAutoGuiTapInjector(
            move_duration=actuation.move_duration,
            jitter=actuation.tap_jitter
        )
        actuator = Actuator(
            injector=injector,
            board_rect=self.config.capture.board_rect,
            tap_attempts=actuation.tap_attempts,
            tap_retry_delay=actuation.tap_retry_delay,
            inter_tap_delay=actuation.inter_tap_delay
        )

        self.actuation = ActuationLoop(
            store=self.store,
            actuator=actuator,
            config=actuation,
            client=self.client if self.config.pull_mode else None,
            pull_mode=self.config.pull_mode,
            journal=self.journal
        )

    async def start(self):
        """Run the enabled loops until both finish."""
        if self.perception:
            self._tasks.append(asyncio.create_task(self.perception.run(), name="perception"))
        if self.actuation:
            self._tasks.append(asyncio.create_task(self.actuation.run(), name="actuation"))

        logger.info(f"[COORDINATOR] Running {len(self._tasks)} loop(s)")
        await asyncio.gather(*self._tasks)

    async def stop(self):
        """Stop loops and release resources."""
        logger.info("[COORDINATOR] Stopping...")

        if self.perception:
            self.perception.stop()
        if self.actuation:
            self.actuation.stop()

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
            self._tasks = []

        if self.pool:
            self.pool.close()

        if self.client:
            await self.client.close()

        if self.journal:
            export_path = self.journal.export()
            logger.info(f"[COORDINATOR] Debug session exported to {export_path}")

        logger.info(f"[COORDINATOR] Stopped. Stats: {self.get_stats()}")

    def get_stats(self) -> Dict[str, Any]:
        """Get coordinator statistics."""
        stats: Dict[str, Any] = {"uptime": time.time() - self.start_time}

        if self.perception:
            perception = self.perception.stats
            stats["perception"] = {
                "phase": self.perception.phase.value,
                "cycles": perception.cycles,
                "frames_classified": perception.frames_classified,
                "classification_failures": perception.classification_failures,
                "reports_sent": perception.reports_sent,
                "sync_failures": perception.sync_failures,
                "moves_queued": perception.moves_queued
            }

        if self.actuation:
            actuation = self.actuation.stats
            stats["actuation"] = {
                "polls": actuation.polls,
                "moves_executed": actuation.moves_executed,
                "moves_failed": actuation.moves_failed,
                "moves_discarded": actuation.moves_discarded
            }

        return stats
