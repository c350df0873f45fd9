"""
Shared constants for board_autopilot.
"""
from enum import Enum


BOARD_SIZE = 8
CELL_COUNT = BOARD_SIZE * BOARD_SIZE

# Visually-bottom two rows of the row-major cell array
BOTTOM_ROWS = range(48, 64)

FILES = "abcdefgh"
RANKS = "12345678"

# Cell index -> square label, side A at the bottom (row 0 = rank 8)
SQUARES_NORMAL = tuple(
    f"{file}{rank}"
    for rank in reversed(RANKS)
    for file in FILES
)

# Cell index -> square label, side B at the bottom (exact 180 degree rotation)
SQUARES_REVERSED = tuple(reversed(SQUARES_NORMAL))


class StoreKeys(Enum):
    """Keys of the shared state store (contract between the two loops)."""
    ORIENTATION = "orientation"
    OCCUPANCY_SIDE_A = "occupancy_side_a"
    OCCUPANCY_SIDE_B = "occupancy_side_b"
    PENDING_MOVE = "pending_move"
    MOVE_EXECUTING = "move_executing"
    SERVICE_ACTIVE = "service_active"


class Sentinels(Enum):
    """Decision service replies that never become a pending move."""
    NONE = "none"
    INVALID = "invalid"
    GAME_OVER = "game over"

    @classmethod
    def matches(cls, reply: str) -> bool:
        """Check whether a reply is one of the sentinels (case-insensitive)."""
        normalized = reply.strip().lower()
        return any(member.value == normalized for member in cls)


class Timings(Enum):
    """Default loop timings in seconds."""
    PERCEPTION_WARMUP = 15.0
    PERCEPTION_INTERVAL = 3.0
    PERCEPTION_ERROR_BACKOFF = 5.0
    ACTUATION_POLL = 2.0
    ACTUATION_IDLE = 3.0
    ACTUATION_ERROR_BACKOFF = 5.0
    INTER_TAP_DELAY = 0.3
    TAP_RETRY_DELAY = 0.15


class Defaults(Enum):
    """Default geometry and pool sizing."""
    BOARD_LEFT = 11
    BOARD_TOP = 505
    BOARD_RIGHT = 709
    BOARD_BOTTOM = 1201
    CELL_INPUT_SIZE = 96
    POOL_WORKERS = 8
    POOL_BATCH_SIZE = 8
    TAP_ATTEMPTS = 3
