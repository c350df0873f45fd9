import json

from board_autopilot.shared.models import Occupancy, Orientation
from board_autopilot.local.debug import EntryKind, SessionJournal


def read_lines(path):
    with open(path, encoding="utf-8") as f:
        return [json.loads(line) for line in f]


def test_entries_are_written_through(tmp_path):
    log_file = tmp_path / "logs" / "journal.jsonl"
    journal = SessionJournal(log_file=str(log_file))

    journal.record_board(Orientation.NORMAL, Occupancy.of(["e2"], ["e7"]), "sync_started")
    journal.record_move("e2e4", "pending", "perception")
    journal.record_move("e2e4", "executed", "actuation")

    lines = read_lines(log_file)
    assert [line["kind"] for line in lines] == ["board", "move", "move"]
    assert lines[0]["detail"] == {"orientation": "normal", "side_a": ["e2"], "side_b": ["e7"]}
    assert lines[2]["loop"] == "actuation"
    assert lines[2]["detail"]["move"] == "e2e4"


def test_entries_filter_newest_first(tmp_path):
    journal = SessionJournal(log_file=str(tmp_path / "journal.jsonl"))
    journal.record_sync("reported", reply="")
    journal.record_sync("error", error="timeout")
    journal.record_move("e2e4", "failed", "actuation")
    journal.record_move("e2e4", "executed", "actuation")

    assert [e["outcome"] for e in journal.entries(kind=EntryKind.MOVE)] == ["executed", "failed"]
    assert journal.entries(outcome="error")[0]["detail"] == {"error": "timeout"}

    counts = journal.summary()["counts"]
    assert counts["sync_reported"] == 1
    assert counts["move_executed"] == 1


def test_in_memory_tail_is_bounded(tmp_path):
    journal = SessionJournal(log_file=str(tmp_path / "journal.jsonl"), max_entries=2)
    for i in range(5):
        journal.record_sync("reported", n=i)

    assert [e["detail"]["n"] for e in journal.entries()] == [4, 3]
    assert journal.summary()["counts"]["sync_reported"] == 5
    assert len(read_lines(journal.log_file)) == 5


def test_export(tmp_path):
    journal = SessionJournal(log_file=str(tmp_path / "journal.jsonl"))
    journal.record_move("g1f3", "discarded", "actuation", error="bad")

    path = journal.export()

    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    assert data["summary"]["session_id"] == journal.session_id
    assert data["entries"][0]["detail"] == {"move": "g1f3", "error": "bad"}
