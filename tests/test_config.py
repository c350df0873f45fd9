import pytest

from board_autopilot.shared.models import BoardRect, CellLabel
from board_autopilot.local.config import (
    DEFAULT_BOARD_RECT, AutopilotConfig, VisionConfig, get_config, load_board_profile
)

ENV_VARS = [
    "BOARD_PROFILE", "MOVE_DELIVERY", "SYNC_BASE_URL", "STORE_PATH",
    "PERCEPTION_INTERVAL", "ACTUATION_TAP_ATTEMPTS", "VISION_MODEL_PATH", "DEBUG_MODE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = AutopilotConfig.from_env()

    assert config.capture.board_rect == BoardRect(11, 505, 709, 1201)
    assert config.perception.warmup_delay == 15.0
    assert config.perception.cycle_interval == 3.0
    assert config.actuation.poll_interval == 2.0
    assert config.actuation.tap_attempts == 3
    assert config.vision.model_path is None
    assert config.store.path is None
    assert not config.pull_mode


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SYNC_BASE_URL", "http://decision:8080/")
    monkeypatch.setenv("MOVE_DELIVERY", "PULL")
    monkeypatch.setenv("PERCEPTION_INTERVAL", "1.5")
    monkeypatch.setenv("ACTUATION_TAP_ATTEMPTS", "5")
    monkeypatch.setenv("STORE_PATH", "/tmp/state.db")
    monkeypatch.setenv("DEBUG_MODE", "True")

    config = AutopilotConfig.from_env()

    assert config.sync.base_url == "http://decision:8080"
    assert config.pull_mode
    assert config.perception.cycle_interval == 1.5
    assert config.actuation.tap_attempts == 5
    assert config.store.path == "/tmp/state.db"
    assert config.debug_mode


def test_invalid_move_delivery_falls_back_to_defaults(monkeypatch):
    monkeypatch.setenv("MOVE_DELIVERY", "carrier-pigeon")

    with pytest.raises(ValueError):
        AutopilotConfig.from_env()
    assert get_config().perception.move_delivery == "push"


def test_board_profile(monkeypatch, tmp_path):
    profile = tmp_path / "tablet.yaml"
    profile.write_text(
        "name: tablet\n"
        "board: {left: 0, top: 100, right: 800, bottom: 900}\n"
        "class_names: [light, dark, blank]\n"
        "model_path: models/cells.pt\n",
        encoding="utf-8"
    )
    monkeypatch.setenv("BOARD_PROFILE", str(profile))

    config = AutopilotConfig.from_env()

    assert config.capture.board_rect == BoardRect(0, 100, 800, 900)
    assert config.vision.model_path == "models/cells.pt"
    assert config.vision.label_map() == {
        "light": CellLabel.A, "dark": CellLabel.B, "blank": CellLabel.EMPTY
    }


def test_missing_profile_is_ignored(tmp_path):
    assert load_board_profile(str(tmp_path / "missing.yaml")) == {}
    assert load_board_profile(None) == {}


def test_default_label_map():
    assert VisionConfig().label_map()["white"] is CellLabel.A
    assert AutopilotConfig().capture.board_rect is DEFAULT_BOARD_RECT
