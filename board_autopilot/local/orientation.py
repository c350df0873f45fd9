"""
Orientation Resolver
Decides once per session which side's home rows are at the visual bottom.
"""
from typing import Optional, Sequence
import logging

from board_autopilot.shared.constants import BOTTOM_ROWS, StoreKeys
from board_autopilot.shared.models import CellLabel, Orientation
from board_autopilot.shared.store import StateStore

logger = logging.getLogger(__name__)


def detect_orientation(labels: Sequence[CellLabel]) -> Orientation:
    """
    Orientation implied by the visually-bottom two rows.

    Args:
        labels: 64 cell labels in row-major order.

    Returns:
        NORMAL when side A holds at least as many bottom cells as side B.
    """
    count_a = sum(1 for i in BOTTOM_ROWS if labels[i] is CellLabel.A)
    count_b = sum(1 for i in BOTTOM_ROWS if labels[i] is CellLabel.B)
    return Orientation.NORMAL if count_a >= count_b else Orientation.REVERSED


class OrientationResolver:
    """
    Unresolved -> Resolved, exactly once per session.

    The first completed classification freezes the orientation in the store;
    later classifications never recompute it, since edge cells can briefly
    misclassify mid-game.
    """

    def __init__(self, store: StateStore):
        self.store = store
        self._resolved: Optional[Orientation] = None

    def current(self) -> Optional[Orientation]:
        """Resolved orientation, or None while unresolved."""
        if self._resolved is None:
            self._resolved = Orientation.parse(self.store.get(StoreKeys.ORIENTATION.value))
        return self._resolved

    @property
    def is_resolved(self) -> bool:
        return self.current() is not None

    def resolve(self, labels: Sequence[CellLabel]) -> Orientation:
        """
        Return the session orientation, resolving it from labels if needed.

        Args:
            labels: 64 cell labels of a completed classification.

        Returns:
            The frozen orientation.
        """
        existing = self.current()
        if existing is not None:
            return existing

        orientation = detect_orientation(labels)
        self.store.set(StoreKeys.ORIENTATION.value, orientation.value)
        self._resolved = orientation

        logger.info(
            f"[ORIENTATION] First detection: {orientation.bottom_side.value} at bottom, "
            f"orientation {orientation.value}"
        )
        return orientation

    def forget(self):
        """Drop the cached value (after a session reset)."""
        self._resolved = None
