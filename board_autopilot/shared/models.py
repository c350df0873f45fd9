"""
Shared data models between the perception loop and the actuation loop.
"""
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple
from enum import Enum

from .constants import FILES, RANKS
from .errors import MoveParseError


class Side(Enum):
    """The two parties on the board, valued by their wire label."""
    A = "white"
    B = "black"


class CellLabel(Enum):
    """Classification result for a single board cell."""
    A = "A"
    B = "B"
    EMPTY = "EMPTY"

    @classmethod
    def from_class_name(cls, name: str, class_names: Dict[str, "CellLabel"]) -> "CellLabel":
        """Convert a classifier class name to a CellLabel, case-insensitive."""
        label = class_names.get(name.strip().lower())
        if label is None:
            raise ValueError(f"Unknown classifier class: {name!r}")
        return label


class Orientation(Enum):
    """Which side's home rows appear at the visual bottom of the frame."""
    NORMAL = "normal"      # side A at the bottom
    REVERSED = "reversed"  # side B at the bottom

    @property
    def bottom_side(self) -> Side:
        """Side whose home rows are at the visual bottom."""
        return Side.A if self is Orientation.NORMAL else Side.B

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Orientation"]:
        """Parse a stored orientation; empty or unknown values read as unresolved."""
        if not value:
            return None
        for member in cls:
            if member.value == value.strip().lower():
                return member
        return None


@dataclass(frozen=True)
class BoardRect:
    """Pixel rectangle of the board on screen."""
    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def cell_width(self) -> int:
        return self.width // 8

    @property
    def cell_height(self) -> int:
        return self.height // 8

    @classmethod
    def from_dict(cls, data: Dict[str, int]) -> "BoardRect":
        """Create from a {left, top, right, bottom} mapping."""
        return cls(
            left=int(data["left"]),
            top=int(data["top"]),
            right=int(data["right"]),
            bottom=int(data["bottom"])
        )


@dataclass(frozen=True)
class Occupancy:
    """Squares held by each side, each list sorted lexicographically."""
    side_a: Tuple[str, ...] = field(default_factory=tuple)
    side_b: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def of(cls, side_a: Iterable[str], side_b: Iterable[str]) -> "Occupancy":
        """Build a normalized (sorted) snapshot."""
        return cls(side_a=tuple(sorted(side_a)), side_b=tuple(sorted(side_b)))

    @classmethod
    def from_store_values(cls, side_a: Optional[str], side_b: Optional[str]) -> "Occupancy":
        """Rebuild a snapshot from the comma-joined store values."""
        def split(value: Optional[str]) -> Tuple[str, ...]:
            if not value:
                return ()
            return tuple(s.strip() for s in value.split(",") if s.strip())

        return cls.of(split(side_a), split(side_b))

    def store_values(self) -> Tuple[str, str]:
        """Comma-joined values for the occupancy store keys."""
        return ",".join(self.side_a), ",".join(self.side_b)

    def to_wire(self) -> str:
        """Body of an occupancy report: 'white:a1,a2;black:a7,a8'."""
        side_a, side_b = self.store_values()
        return f"{Side.A.value}:{side_a};{Side.B.value}:{side_b}"

    def is_empty(self) -> bool:
        return not self.side_a and not self.side_b


def parse_square(square: str) -> Tuple[int, int]:
    """
    Split a square label into zero-based file and rank indices.

    Args:
        square: Two-character label such as "e2".

    Returns:
        (file_index, rank_index) tuple.
    """
    if len(square) != 2 or square[0] not in FILES or square[1] not in RANKS:
        raise MoveParseError(f"Invalid square: {square!r}")
    return FILES.index(square[0]), RANKS.index(square[1])


@dataclass(frozen=True)
class Move:
    """A from/to square pair parsed from 4-character notation."""
    from_square: str
    to_square: str

    @classmethod
    def parse(cls, notation: str) -> "Move":
        """
        Parse 4-character move notation such as "e2e4".

        Args:
            notation: Move string from the decision service.

        Returns:
            Parsed Move.

        Raises:
            MoveParseError: If the string is not exactly two valid squares.
        """
        text = notation.strip()
        if len(text) != 4:
            raise MoveParseError(f"Move must be 4 characters, got {notation!r}")

        from_square, to_square = text[:2], text[2:]
        parse_square(from_square)
        parse_square(to_square)
        return cls(from_square=from_square, to_square=to_square)

    def __str__(self) -> str:
        return f"{self.from_square}{self.to_square}"
