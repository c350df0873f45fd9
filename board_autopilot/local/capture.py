"""
Screen Capture Module - The Eyes
Grabs frames of the foreign application and cuts the board into 64 cells.
"""
from typing import List, Optional, Tuple
import logging

import cv2
import mss
import numpy as np

from board_autopilot.shared.constants import BOARD_SIZE
from board_autopilot.shared.models import BoardRect

logger = logging.getLogger(__name__)


class FrameSource:
    """Produces one frame per request, or None when no frame is available."""

    def grab(self) -> Optional[np.ndarray]:
        raise NotImplementedError


class ScreenCapture(FrameSource):
    """Captures frames from a monitor with mss."""

    def __init__(self, monitor_index: int = 1):
        """
        Initialize screen capture.

        Args:
            monitor_index: mss monitor index (1 = primary, 0 = all monitors).
        """
        self.monitor_index = monitor_index
        self.frame_count = 0

    def grab(self) -> Optional[np.ndarray]:
        """
        Capture a single frame from the monitor.

        A new mss handle is opened per call because grabs run on executor
        threads and mss handles are bound to their creating thread.

        Returns:
            np.ndarray: BGR image, or None if capture failed.
        """
        try:
            with mss.mss() as sct:
                monitors = sct.monitors
                if self.monitor_index >= len(monitors):
                    logger.warning(f"[CAPTURE] Monitor {self.monitor_index} not available")
                    return None

                screenshot = sct.grab(monitors[self.monitor_index])

            frame = np.array(screenshot)

            # Remove alpha channel (BGRA -> BGR)
            if frame.ndim == 3 and frame.shape[2] == 4:
                frame = cv2.cvtColor(frame, cv2.COLOR_BGRA2BGR)

            self.frame_count += 1
            return frame

        except mss.ScreenShotError as e:
            logger.debug(f"[CAPTURE] No frame available: {e}")
            return None


def cell_bounds(rect: BoardRect) -> List[Tuple[int, int, int, int]]:
    """
    Pixel bounds of the 64 cells in row-major order (row 0 = visually topmost).

    Args:
        rect: Board rectangle in frame coordinates.

    Returns:
        List of (x1, y1, x2, y2) tuples.
    """
    xs = [rect.left + (i * rect.width) // BOARD_SIZE for i in range(BOARD_SIZE + 1)]
    ys = [rect.top + (i * rect.height) // BOARD_SIZE for i in range(BOARD_SIZE + 1)]

    return [
        (xs[col], ys[row], xs[col + 1], ys[row + 1])
        for row in range(BOARD_SIZE)
        for col in range(BOARD_SIZE)
    ]


class CellExtractor:
    """Cuts the board sub-region of a frame into fixed-size cell images."""

    def __init__(self, rect: BoardRect, cell_size: int = 96):
        """
        Initialize cell extractor.

        Args:
            rect: Board rectangle in frame coordinates.
            cell_size: Side length each cell is resized to.
        """
        self.rect = rect
        self.cell_size = cell_size
        self._bounds = cell_bounds(rect)

    def extract(self, frame: np.ndarray) -> Optional[List[np.ndarray]]:
        """
        Extract 64 cell images.

        Args:
            frame: Full BGR frame.

        Returns:
            64 images of cell_size x cell_size, or None if the frame does not
            cover the board rectangle.
        """
        height, width = frame.shape[:2]
        if self.rect.right > width or self.rect.bottom > height:
            logger.warning(
                f"[CAPTURE] Frame {width}x{height} does not cover board "
                f"({self.rect.right}, {self.rect.bottom})"
            )
            return None

        size = (self.cell_size, self.cell_size)
        return [
            cv2.resize(frame[y1:y2, x1:x2], size, interpolation=cv2.INTER_AREA)
            for x1, y1, x2, y2 in self._bounds
        ]

    def draw_grid(self, frame: np.ndarray) -> np.ndarray:
        """
        Draw the board rectangle and cell grid for calibration.

        Args:
            frame: Input frame.

        Returns:
            Copy of the frame with the grid drawn in red.
        """
        vis_frame = frame.copy()
        red = (0, 0, 255)

        cv2.rectangle(
            vis_frame,
            (self.rect.left, self.rect.top),
            (self.rect.right, self.rect.bottom),
            red,
            4
        )

        for x1, y1, x2, y2 in self._bounds:
            cv2.rectangle(vis_frame, (x1, y1), (x2, y2), red, 1)

        return vis_frame
