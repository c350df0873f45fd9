import numpy as np
import pytest

from board_autopilot.shared.errors import ClassificationError
from board_autopilot.shared.models import CellLabel
from board_autopilot.local.vision import (
    ClassifierPool, ColorHeuristicClassifier, build_oracle_factory
)

from conftest import PAINT, FailingOracle, MeanOracle


def uniform_cells(labels):
    return [np.full((16, 16, 3), PAINT[label], dtype=np.uint8) for label in labels]


def mixed_labels():
    cycle = [CellLabel.A, CellLabel.B, CellLabel.EMPTY, CellLabel.EMPTY, CellLabel.B]
    return [cycle[i % len(cycle)] for i in range(64)]


def test_pool_preserves_cell_order(mean_pool):
    labels = mixed_labels()
    assert mean_pool.classify(uniform_cells(labels)) == labels


@pytest.mark.parametrize("workers, batch_size", [(1, 64), (3, 5), (8, 8), (16, 1)])
def test_pool_order_independent_of_sizing(workers, batch_size):
    pool = ClassifierPool(MeanOracle, workers=workers, batch_size=batch_size)
    try:
        labels = mixed_labels()
        assert pool.classify(uniform_cells(labels)) == labels
    finally:
        pool.close()


def test_one_worker_failure_fails_the_call():
    pool = ClassifierPool(FailingOracle, workers=4, batch_size=8)
    try:
        labels = [CellLabel.EMPTY] * 64
        labels[40] = CellLabel.B
        with pytest.raises(ClassificationError) as excinfo:
            pool.classify(uniform_cells(labels))
        assert isinstance(excinfo.value.__cause__, RuntimeError)
    finally:
        pool.close()


def test_wrong_cell_count_is_rejected(mean_pool):
    with pytest.raises(ClassificationError):
        mean_pool.classify(uniform_cells([CellLabel.EMPTY] * 63))


def test_closed_pool_is_rejected():
    pool = ClassifierPool(MeanOracle, workers=2)
    pool.close()
    with pytest.raises(ClassificationError):
        pool.classify(uniform_cells([CellLabel.EMPTY] * 64))


def test_pool_builds_one_oracle_per_worker():
    built = []

    def factory():
        built.append(MeanOracle())
        return built[-1]

    pool = ClassifierPool(factory, workers=5)
    pool.close()
    assert len(built) == 5


def test_pool_rejects_non_positive_sizing():
    with pytest.raises(ValueError):
        ClassifierPool(MeanOracle, workers=0)


class TestColorHeuristic:
    @staticmethod
    def cell(piece_value=None):
        image = np.full((96, 96, 3), 120, dtype=np.uint8)
        if piece_value is not None:
            image[36:60, 36:60] = piece_value
        return image

    def test_flat_cell_is_empty(self):
        assert ColorHeuristicClassifier().classify(self.cell()) is CellLabel.EMPTY

    def test_light_piece_is_side_a(self):
        assert ColorHeuristicClassifier().classify(self.cell(230)) is CellLabel.A

    def test_dark_piece_is_side_b(self):
        assert ColorHeuristicClassifier().classify(self.cell(10)) is CellLabel.B

    def test_faint_pattern_is_empty(self):
        # Contrast above the centre threshold but no pixel far from the square colour
        image = self.cell()
        image[24:72:2, 24:72] = 150
        assert ColorHeuristicClassifier().classify(image) is CellLabel.EMPTY


def test_factory_without_model_uses_heuristic():
    factory = build_oracle_factory(None, {})
    assert isinstance(factory(), ColorHeuristicClassifier)
