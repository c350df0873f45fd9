"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures and fakes shared by the perception and actuation tests.
"""
from typing import Callable, Dict, Generator, List, Optional, Sequence

import httpx
import numpy as np
import pytest

from board_autopilot.shared.constants import StoreKeys
from board_autopilot.shared.models import BoardRect, CellLabel
from board_autopilot.shared.store import InMemoryStateStore, StateStore
from board_autopilot.local.actuator import TapInjector
from board_autopilot.local.capture import FrameSource, cell_bounds
from board_autopilot.local.client import SyncClient
from board_autopilot.local.vision import ClassifierOracle, ClassifierPool

# Board rectangle used throughout the coordinate scenarios
SCREEN_RECT = BoardRect(left=11, top=505, right=709, bottom=1201)

# Small board for frame-based tests: 20px cells
SMALL_RECT = BoardRect(left=0, top=0, right=160, bottom=160)

PAINT = {CellLabel.A: 255, CellLabel.B: 0, CellLabel.EMPTY: 128}


def starting_labels(bottom: CellLabel = CellLabel.A) -> List[CellLabel]:
    """Row-major labels of a starting position with `bottom` in the last two rows."""
    top = CellLabel.B if bottom is CellLabel.A else CellLabel.A
    return [top] * 16 + [CellLabel.EMPTY] * 32 + [bottom] * 16


def paint_frame(labels: Sequence[CellLabel], rect: BoardRect = SMALL_RECT) -> np.ndarray:
    """Frame whose cells are uniform fills encoding the given labels."""
    frame = np.full((rect.bottom + 8, rect.right + 8, 3), 128, dtype=np.uint8)
    for (x1, y1, x2, y2), label in zip(cell_bounds(rect), labels):
        frame[y1:y2, x1:x2] = PAINT[label]
    return frame


class MeanOracle(ClassifierOracle):
    """Decodes the fills written by paint_frame."""

    def classify(self, image: np.ndarray) -> CellLabel:
        mean = float(image.mean())
        if mean > 200:
            return CellLabel.A
        if mean < 50:
            return CellLabel.B
        return CellLabel.EMPTY


class FailingOracle(ClassifierOracle):
    """Fails on side B cells."""

    def classify(self, image: np.ndarray) -> CellLabel:
        if float(image.mean()) < 50:
            raise RuntimeError("inference crashed")
        return CellLabel.EMPTY


class StaticFrameSource(FrameSource):
    """Returns the same frame on every grab and counts grabs."""

    def __init__(self, frame: Optional[np.ndarray]):
        self.frame = frame
        self.grabs = 0

    def grab(self) -> Optional[np.ndarray]:
        self.grabs += 1
        return self.frame


class FakeInjector(TapInjector):
    """
    Tap primitive with scripted results.

    Each tap pops the next scripted result (True when the script runs out);
    an Exception instance in the script is raised instead.
    """

    def __init__(self, results: Optional[list] = None, store: Optional[StateStore] = None):
        self.results = list(results or [])
        self.store = store
        self.taps: List[tuple] = []
        self.executing_seen: List[bool] = []

    async def tap(self, x: int, y: int) -> bool:
        self.taps.append((x, y))
        if self.store is not None:
            self.executing_seen.append(self.store.get_flag(StoreKeys.MOVE_EXECUTING.value))

        result = self.results.pop(0) if self.results else True
        if isinstance(result, Exception):
            raise result
        return result


class DecisionService:
    """
    In-process stand-in for the decision service behind httpx.MockTransport.

    Replies are configured per path; a list is consumed one entry per request
    and an int entry is returned as that HTTP status with an empty body.
    """

    def __init__(self, replies: Optional[Dict[str, object]] = None):
        self.replies: Dict[str, object] = {"/start": "", "/move": "", "/getmove": ""}
        self.replies.update(replies or {})
        self.requests: List[httpx.Request] = []

    def calls(self, path: str) -> List[str]:
        """Bodies of the requests sent to a path."""
        return [r.content.decode("utf-8") for r in self.requests if r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.replies.get(request.url.path, "")
        if isinstance(reply, list):
            reply = reply.pop(0) if reply else ""
        if isinstance(reply, int):
            return httpx.Response(reply, text="")
        return httpx.Response(200, text=reply)


@pytest.fixture
def store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def active_store() -> InMemoryStateStore:
    """Store as the actuation loop sees it once perception is up and oriented."""
    return InMemoryStateStore({
        StoreKeys.SERVICE_ACTIVE.value: "true",
        StoreKeys.ORIENTATION.value: "normal",
    })


@pytest.fixture
def service() -> DecisionService:
    return DecisionService()


@pytest.fixture
def make_client() -> Callable[[DecisionService], SyncClient]:
    """Build a client wired to a DecisionService without network access."""
    def factory(service: DecisionService, max_retries: int = 0) -> SyncClient:
        return SyncClient(
            base_url="http://decision.test",
            max_retries=max_retries,
            retry_delay=0,
            transport=httpx.MockTransport(service.handler)
        )
    return factory


@pytest.fixture
def mean_pool() -> Generator[ClassifierPool, None, None]:
    pool = ClassifierPool(MeanOracle, workers=4, batch_size=8)
    try:
        yield pool
    finally:
        pool.close()
