"""
Vision System - Cell Classification
Labels each board cell as held by side A, side B, or empty.
"""
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Dict, List, Optional, Sequence
import logging

import cv2
import numpy as np

from board_autopilot.shared.constants import CELL_COUNT
from board_autopilot.shared.errors import ClassificationError
from board_autopilot.shared.models import CellLabel

logger = logging.getLogger(__name__)


class ClassifierOracle:
    """Classifies one fixed-size cell image."""

    def classify(self, image: np.ndarray) -> CellLabel:
        raise NotImplementedError


class YOLOCellClassifier(ClassifierOracle):
    """Ultralytics classification model over single cell images."""

    def __init__(
        self,
        model_path: str,
        class_names: Dict[str, CellLabel],
        device: str = "cpu"
    ):
        """
        Initialize YOLO cell classifier.

        Args:
            model_path: Path to a YOLO classification checkpoint.
            class_names: Lower-cased model class name -> CellLabel.
            device: Device to run inference on ("cpu" or "cuda").
        """
        from ultralytics import YOLO

        self.model = YOLO(model_path)
        self.model.to(device)
        self.class_names = class_names
        self.device = device

    def classify(self, image: np.ndarray) -> CellLabel:
        results = self.model(image, verbose=False)
        probs = results[0].probs
        if probs is None:
            raise ClassificationError("Model is not a classification model")

        name = results[0].names[int(probs.top1)]
        return CellLabel.from_class_name(name, self.class_names)


class ColorHeuristicClassifier(ClassifierOracle):
    """
    Model-free fallback classifier.

    An empty square is nearly flat; a piece adds contrast in the middle of the
    cell. The piece's side is decided by whether its pixels are lighter or
    darker than the square around it.
    """

    def __init__(self, contrast_threshold: float = 18.0, deviation_threshold: float = 40.0):
        """
        Initialize heuristic classifier.

        Args:
            contrast_threshold: Min grayscale std-dev of the centre for a piece.
            deviation_threshold: Min distance from the square colour for a
                pixel to count as part of the piece.
        """
        self.contrast_threshold = contrast_threshold
        self.deviation_threshold = deviation_threshold

    def classify(self, image: np.ndarray) -> CellLabel:
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY) if image.ndim == 3 else image
        gray = gray.astype(np.float32)

        h, w = gray.shape[:2]
        centre = gray[h // 4: 3 * h // 4, w // 4: 3 * w // 4]
        if centre.std() < self.contrast_threshold:
            return CellLabel.EMPTY

        # Square colour sampled from the cell border
        border = np.concatenate([gray[0, :], gray[-1, :], gray[:, 0], gray[:, -1]])
        background = float(np.median(border))

        deviation = centre - background
        piece = deviation[np.abs(deviation) > self.deviation_threshold]
        if piece.size == 0:
            return CellLabel.EMPTY

        return CellLabel.A if float(piece.mean()) > 0 else CellLabel.B


class ClassifierPool:
    """
    Fixed-size pool of classifier workers.

    Cells are split into contiguous batches; every batch runs on a worker
    thread with its own oracle and the call returns only after all batches
    finish. One failing batch fails the whole call.
    """

    def __init__(
        self,
        oracle_factory: Callable[[], ClassifierOracle],
        workers: int = 8,
        batch_size: int = 8
    ):
        """
        Initialize classifier pool.

        Args:
            oracle_factory: Builds one oracle per worker.
            workers: Number of worker threads and oracle instances.
            batch_size: Cells per dispatched batch.
        """
        if workers < 1 or batch_size < 1:
            raise ValueError("workers and batch_size must be positive")

        self.workers = workers
        self.batch_size = batch_size
        self._oracles = [oracle_factory() for _ in range(workers)]
        self._locks = [threading.Lock() for _ in range(workers)]
        self._executor: Optional[ThreadPoolExecutor] = ThreadPoolExecutor(
            max_workers=workers,
            thread_name_prefix="classifier"
        )

        logger.info(f"[POOL] Initialized {workers} classifier workers (batch size {batch_size})")

    def _classify_batch(self, worker: int, cells: Sequence[np.ndarray]) -> List[CellLabel]:
        with self._locks[worker]:
            oracle = self._oracles[worker]
            return [oracle.classify(cell) for cell in cells]

    def classify(self, cells: Sequence[np.ndarray]) -> List[CellLabel]:
        """
        Classify all 64 cells.

        Args:
            cells: Cell images in row-major order (row 0 = visually topmost).

        Returns:
            64 labels; index i corresponds to cells[i].

        Raises:
            ClassificationError: Wrong cell count, closed pool, or any worker failure.
        """
        if len(cells) != CELL_COUNT:
            raise ClassificationError(f"Need exactly {CELL_COUNT} cells, got {len(cells)}")
        if self._executor is None:
            raise ClassificationError("Classifier pool is closed")

        futures = []
        for batch_index, start in enumerate(range(0, CELL_COUNT, self.batch_size)):
            worker = batch_index % self.workers
            batch = cells[start:start + self.batch_size]
            futures.append((start, self._executor.submit(self._classify_batch, worker, batch)))

        # Join barrier: every batch completes before results are read
        wait([future for _, future in futures])

        labels: List[Optional[CellLabel]] = [None] * CELL_COUNT
        for start, future in futures:
            error = future.exception()
            if error is not None:
                raise ClassificationError(f"Worker failed on cells {start}+: {error}") from error

            batch_labels = future.result()
            labels[start:start + len(batch_labels)] = batch_labels

        logger.debug(f"[POOL] Classified {CELL_COUNT} cells")
        return labels

    def close(self):
        """Shut down worker threads."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
            logger.info("[POOL] Classifier pool closed")


def build_oracle_factory(
    model_path: Optional[str],
    class_names: Dict[str, CellLabel],
    device: str = "cpu"
) -> Callable[[], ClassifierOracle]:
    """
    Choose the oracle implementation for the pool.

    Args:
        model_path: YOLO classification weights. None uses the color heuristic.
        class_names: Lower-cased class name -> CellLabel.
        device: Inference device.

    Returns:
        Factory building one oracle per call.
    """
    if model_path is None:
        logger.warning("[VISION] No model path provided. Using color heuristic classifier.")
        return ColorHeuristicClassifier

    return lambda: YOLOCellClassifier(model_path, class_names, device)
