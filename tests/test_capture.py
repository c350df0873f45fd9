import numpy as np

from board_autopilot.shared.models import CellLabel
from board_autopilot.local.capture import CellExtractor, cell_bounds

from conftest import SCREEN_RECT, SMALL_RECT, paint_frame, starting_labels


def test_cell_bounds_tile_the_board():
    bounds = cell_bounds(SCREEN_RECT)

    assert len(bounds) == 64
    assert bounds[0] == (11, 505, 98, 592)
    assert bounds[63][2:] == (709, 1201)

    # Row-major: second entry is one column to the right
    assert bounds[1][0] == bounds[0][2]
    assert bounds[8][1] == bounds[0][3]


def test_extract_returns_64_resized_cells():
    extractor = CellExtractor(SMALL_RECT, cell_size=12)
    cells = extractor.extract(paint_frame(starting_labels()))

    assert len(cells) == 64
    assert all(cell.shape == (12, 12, 3) for cell in cells)
    assert int(cells[0].mean()) == 0      # side B on top
    assert int(cells[63].mean()) == 255   # side A at the bottom
    assert int(cells[30].mean()) == 128


def test_extract_rejects_frame_smaller_than_board():
    extractor = CellExtractor(SCREEN_RECT)
    assert extractor.extract(np.zeros((600, 400, 3), dtype=np.uint8)) is None


def test_draw_grid_leaves_input_untouched():
    frame = paint_frame([CellLabel.EMPTY] * 64)
    original = frame.copy()

    drawn = CellExtractor(SMALL_RECT).draw_grid(frame)

    assert np.array_equal(frame, original)
    assert not np.array_equal(drawn, original)
    assert tuple(drawn[0, 0]) == (0, 0, 255)
