"""
Shared package for board_autopilot.
"""
from .models import (
    Side,
    CellLabel,
    Orientation,
    BoardRect,
    Occupancy,
    Move,
    parse_square
)
from .constants import (
    StoreKeys,
    Sentinels,
    Timings,
    Defaults,
    SQUARES_NORMAL,
    SQUARES_REVERSED
)
from .errors import (
    AutopilotError,
    ClassificationError,
    SyncError,
    MoveParseError,
    StoreError
)
from .store import StateStore, InMemoryStateStore, SQLiteStateStore

__all__ = [
    'Side',
    'CellLabel',
    'Orientation',
    'BoardRect',
    'Occupancy',
    'Move',
    'parse_square',
    'StoreKeys',
    'Sentinels',
    'Timings',
    'Defaults',
    'SQUARES_NORMAL',
    'SQUARES_REVERSED',
    'AutopilotError',
    'ClassificationError',
    'SyncError',
    'MoveParseError',
    'StoreError',
    'StateStore',
    'InMemoryStateStore',
    'SQLiteStateStore'
]
