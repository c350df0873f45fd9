"""
Board Mapper
Translates between cell indices, square labels and screen coordinates.
"""
from typing import List, Sequence, Tuple

from board_autopilot.shared.constants import (
    BOARD_SIZE, CELL_COUNT, SQUARES_NORMAL, SQUARES_REVERSED
)
from board_autopilot.shared.models import (
    BoardRect, CellLabel, Occupancy, Orientation, parse_square
)


def squares_for(orientation: Orientation) -> Tuple[str, ...]:
    """Coordinate table (cell index -> square label) for an orientation."""
    return SQUARES_NORMAL if orientation is Orientation.NORMAL else SQUARES_REVERSED


def map_occupancy(labels: Sequence[CellLabel], orientation: Orientation) -> Occupancy:
    """
    Convert 64 cell labels into sorted per-side square lists.

    Args:
        labels: Cell labels in row-major order.
        orientation: Frozen session orientation.

    Returns:
        Occupancy with each side's squares sorted lexicographically.
    """
    if len(labels) != CELL_COUNT:
        raise ValueError(f"Need exactly {CELL_COUNT} labels, got {len(labels)}")

    table = squares_for(orientation)
    side_a: List[str] = []
    side_b: List[str] = []

    for index, label in enumerate(labels):
        if label is CellLabel.A:
            side_a.append(table[index])
        elif label is CellLabel.B:
            side_b.append(table[index])

    return Occupancy.of(side_a, side_b)


def square_to_cell(square: str, orientation: Orientation) -> Tuple[int, int]:
    """
    Visual (column, row) of a square; row 0 is the top of the frame.

    Args:
        square: Square label such as "e2".
        orientation: Frozen session orientation.

    Returns:
        (column, row) tuple.
    """
    file_index, rank_index = parse_square(square)
    last = BOARD_SIZE - 1

    if orientation is Orientation.NORMAL:
        return file_index, last - rank_index
    return last - file_index, rank_index


def square_to_coordinate(
    square: str,
    orientation: Orientation,
    rect: BoardRect
) -> Tuple[int, int]:
    """
    Pixel centre of a square on screen.

    Args:
        square: Square label such as "e2".
        orientation: Frozen session orientation.
        rect: Board rectangle on screen.

    Returns:
        (x, y) pixel coordinates.
    """
    column, row = square_to_cell(square, orientation)
    cell_width = rect.cell_width
    cell_height = rect.cell_height

    x = rect.left + column * cell_width + cell_width // 2
    y = rect.top + row * cell_height + cell_height // 2
    return x, y
