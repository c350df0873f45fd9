"""
Session Journal Module
Appends what both loops saw and did (boards, syncs, moves) to a JSONL file
and keeps a bounded in-memory tail for inspection.
"""
import json
import threading
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional
import logging

from board_autopilot.shared.models import Occupancy, Orientation

logger = logging.getLogger(__name__)


class EntryKind(Enum):
    BOARD = "board"  # a classified frame
    SYNC = "sync"    # a decision service exchange
    MOVE = "move"    # a pending move changing hands


@dataclass
class JournalEntry:
    """One line of the journal."""
    kind: EntryKind
    loop: str  # "perception" or "actuation"
    outcome: str
    detail: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "loop": self.loop,
            "outcome": self.outcome,
            "detail": self.detail,
            "timestamp": self.timestamp,
            "time_str": datetime.fromtimestamp(self.timestamp).isoformat()
        }


class SessionJournal:
    """
    Thread-safe journal of one autopilot session.

    Every entry is written through to the JSONL file immediately; only the
    last `max_entries` stay in memory.
    """

    def __init__(self, log_file: Optional[str] = None, max_entries: int = 5000):
        """
        Initialize the journal.

        Args:
            log_file: JSONL path (default: logs/journal_YYYYMMDD.jsonl).
            max_entries: In-memory tail length.
        """
        self.session_start = time.time()
        self.session_id = datetime.now().strftime("%Y%m%d_%H%M%S")

        if log_file is None:
            log_file = str(Path("logs") / f"journal_{datetime.now():%Y%m%d}.jsonl")
        self.log_file = log_file
        Path(self.log_file).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._entries: Deque[JournalEntry] = deque(maxlen=max_entries)
        self._counts: Counter = Counter()

    def _append(self, entry: JournalEntry):
        with self._lock:
            self._entries.append(entry)
            self._counts[f"{entry.kind.value}_{entry.outcome}"] += 1

        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        try:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            logger.warning(f"[DEBUG] Journal write failed: {e}")

    def record_board(self, orientation: Orientation, occupancy: Occupancy, outcome: str):
        """Record a classified frame and what the cycle did with it."""
        self._append(JournalEntry(
            kind=EntryKind.BOARD,
            loop="perception",
            outcome=outcome,
            detail={
                "orientation": orientation.value,
                "side_a": list(occupancy.side_a),
                "side_b": list(occupancy.side_b)
            }
        ))

    def record_sync(self, outcome: str, **detail: Any):
        """Record a decision service exchange ("reported", "sentinel", "error")."""
        self._append(JournalEntry(EntryKind.SYNC, "perception", outcome, detail))

    def record_move(self, move: str, outcome: str, loop: str, **detail: Any):
        """Record a move as "pending", "executed", "failed" or "discarded"."""
        self._append(JournalEntry(EntryKind.MOVE, loop, outcome, {"move": move, **detail}))

    def entries(
        self,
        kind: Optional[EntryKind] = None,
        outcome: Optional[str] = None,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        """Most recent entries first, optionally filtered by kind and outcome."""
        with self._lock:
            selected = [
                e for e in reversed(self._entries)
                if (kind is None or e.kind is kind) and (outcome is None or e.outcome == outcome)
            ]
        return [e.to_dict() for e in selected[:limit]]

    def summary(self) -> Dict[str, Any]:
        """Per kind/outcome counts for the whole session."""
        with self._lock:
            counts = dict(self._counts)
            held = len(self._entries)

        return {
            "session_id": self.session_id,
            "duration_sec": round(time.time() - self.session_start, 1),
            "entries_in_memory": held,
            "counts": counts
        }

    def export(self, output_path: Optional[str] = None) -> str:
        """
        Dump the summary and in-memory tail to a JSON file.

        Args:
            output_path: Destination (default: session_<id>.json beside the journal).

        Returns:
            Path written.
        """
        if output_path is None:
            output_path = str(Path(self.log_file).parent / f"session_{self.session_id}.json")

        with self._lock:
            tail = [e.to_dict() for e in self._entries]

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump({"summary": self.summary(), "entries": tail}, f, indent=2)

        logger.info(f"[DEBUG] Session exported to {output_path}")
        return output_path
