"""
Actuator Layer - The Muscles
Replays moves into the foreign application as screen taps.
"""
import asyncio
import random
from typing import Optional, Tuple
import logging

from board_autopilot.shared.models import BoardRect, Move, Orientation
from board_autopilot.local.mapper import square_to_coordinate

logger = logging.getLogger(__name__)


class TapInjector:
    """Issues a single momentary touch; reports completion (True) or cancellation (False)."""

    async def tap(self, x: int, y: int) -> bool:
        raise NotImplementedError


class PyAutoGuiTapInjector(TapInjector):
    """
    Taps with pyautogui clicks.

    Moving the pointer into a screen corner trips pyautogui's fail-safe,
    which is reported as a cancelled tap.
    """

    def __init__(self, move_duration: float = 0.0, jitter: float = 0.0):
        """
        Initialize tap injector.

        Args:
            move_duration: Seconds to glide to the target before clicking.
            jitter: Maximum random pixel offset applied to each tap.
        """
        # Imported here: pyautogui needs a display at import time
        import pyautogui

        self._gui = pyautogui
        self.move_duration = move_duration
        self.jitter = jitter

    def _click(self, x: int, y: int) -> bool:
        if self.jitter > 0:
            x += int(round(random.uniform(-self.jitter, self.jitter)))
            y += int(round(random.uniform(-self.jitter, self.jitter)))

        try:
            if self.move_duration > 0:
                self._gui.moveTo(x, y, duration=self.move_duration)
            self._gui.click(x, y)
            return True
        except self._gui.FailSafeException:
            logger.warning(f"[ACTUATOR] Tap at ({x}, {y}) cancelled by fail-safe")
            return False

    async def tap(self, x: int, y: int) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._click, x, y)


class Actuator:
    """
    Executes moves as a from-tap followed by a to-tap.
    """

    def __init__(
        self,
        injector: TapInjector,
        board_rect: BoardRect,
        tap_attempts: int = 3,
        tap_retry_delay: float = 0.15,
        inter_tap_delay: float = 0.3
    ):
        """
        Initialize actuator.

        Args:
            injector: Tap primitive.
            board_rect: Board rectangle on screen.
            tap_attempts: Attempts per tap before giving up.
            tap_retry_delay: Seconds between tap attempts.
            inter_tap_delay: Seconds between the from-tap and the to-tap.
        """
        self.injector = injector
        self.board_rect = board_rect
        self.tap_attempts = tap_attempts
        self.tap_retry_delay = tap_retry_delay
        self.inter_tap_delay = inter_tap_delay

    async def tap(self, x: int, y: int) -> bool:
        """
        Tap with bounded retry.

        Args:
            x: Screen X coordinate.
            y: Screen Y coordinate.

        Returns:
            True on success, False once all attempts are exhausted.
        """
        for attempt in range(1, self.tap_attempts + 1):
            try:
                if await self.injector.tap(x, y):
                    logger.debug(f"[ACTUATOR] Tap success at ({x}, {y}) | attempt {attempt}")
                    return True
                logger.warning(f"[ACTUATOR] Tap cancelled at ({x}, {y}) | attempt {attempt}")
            except Exception as e:
                logger.error(f"[ACTUATOR] Tap error at ({x}, {y}) | attempt {attempt}: {e}")

            if attempt < self.tap_attempts:
                await asyncio.sleep(self.tap_retry_delay)

        logger.error(f"[ACTUATOR] Tap failed permanently after {self.tap_attempts} attempts at ({x}, {y})")
        return False

    def move_coordinates(
        self,
        move: Move,
        orientation: Orientation
    ) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        """Screen coordinates of a move's from and to squares."""
        return (
            square_to_coordinate(move.from_square, orientation, self.board_rect),
            square_to_coordinate(move.to_square, orientation, self.board_rect)
        )

    async def execute_move(self, move: Move, orientation: Orientation) -> bool:
        """
        Execute a move as two sequential taps.

        Args:
            move: Parsed move.
            orientation: Frozen session orientation.

        Returns:
            True only if both taps succeeded.
        """
        start, end = self.move_coordinates(move, orientation)
        logger.info(f"[ACTUATOR] Executing move: {move.from_square} -> {move.to_square}")

        if not await self.tap(*start):
            logger.error(f"[ACTUATOR] First tap could not be completed for {move}")
            return False

        await asyncio.sleep(self.inter_tap_delay)

        if not await self.tap(*end):
            logger.error(f"[ACTUATOR] Second tap could not be completed for {move}")
            return False

        logger.info(f"[ACTUATOR] Move executed: {move}")
        return True
