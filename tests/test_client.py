import asyncio

import pytest

from board_autopilot.shared.errors import SyncError
from board_autopilot.shared.models import Occupancy, Side
from board_autopilot.local.client import is_actionable_move

from conftest import DecisionService


def test_start_session_posts_side(make_client):
    service = DecisionService({"/start": "e2e4\n"})

    async def scenario():
        async with make_client(service) as client:
            return await client.start_session(Side.B)

    assert asyncio.run(scenario()) == "e2e4"
    assert service.calls("/start") == ["black"]
    assert service.requests[0].method == "POST"
    assert service.requests[0].headers["content-type"] == "text/plain"


def test_report_occupancy_sends_wire_body(make_client):
    service = DecisionService({"/move": "d7d5"})
    occupancy = Occupancy.of(["e4", "a2"], ["d7"])

    async def scenario():
        async with make_client(service) as client:
            return await client.report_occupancy(occupancy)

    assert asyncio.run(scenario()) == "d7d5"
    assert service.calls("/move") == ["white:a2,e4;black:d7"]


def test_fetch_move_uses_get(make_client):
    service = DecisionService({"/getmove": "none"})

    async def scenario():
        async with make_client(service) as client:
            return await client.fetch_move()

    assert asyncio.run(scenario()) == "none"
    assert service.requests[0].method == "GET"
    assert service.requests[0].url.path == "/getmove"


def test_http_error_raises_sync_error_after_retries(make_client):
    service = DecisionService({"/move": [500, 503]})

    async def scenario():
        async with make_client(service, max_retries=1) as client:
            await client.report_occupancy(Occupancy.of(["e2"], []))

    with pytest.raises(SyncError):
        asyncio.run(scenario())
    assert len(service.calls("/move")) == 2


def test_retry_recovers_from_transient_failure(make_client):
    service = DecisionService({"/move": [502, "e7e5"]})

    async def scenario():
        async with make_client(service, max_retries=1) as client:
            return await client.report_occupancy(Occupancy.of(["e4"], ["e7"]))

    assert asyncio.run(scenario()) == "e7e5"
    assert len(service.calls("/move")) == 2


@pytest.mark.parametrize("reply, expected", [
    ("e2e4", True),
    (" g1f3 ", True),
    ("", False),
    (None, False),
    ("none", False),
    ("INVALID", False),
    ("game over", False),
])
def test_is_actionable_move(reply, expected):
    assert is_actionable_move(reply) is expected
