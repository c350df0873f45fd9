"""
Autopilot Configuration
Centralized configuration for the perception and actuation loops.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any, Tuple
import logging
import os

import yaml

from board_autopilot.shared.constants import Defaults, Timings
from board_autopilot.shared.models import BoardRect, CellLabel

logger = logging.getLogger(__name__)


DEFAULT_BOARD_RECT = BoardRect(
    left=Defaults.BOARD_LEFT.value,
    top=Defaults.BOARD_TOP.value,
    right=Defaults.BOARD_RIGHT.value,
    bottom=Defaults.BOARD_BOTTOM.value
)

# Training order of the bundled classifier
DEFAULT_CLASS_NAMES: Tuple[str, ...] = ("white", "black", "empty")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class CaptureConfig:
    """Screen capture configuration."""
    monitor_index: int = 1  # Primary monitor
    board_rect: BoardRect = DEFAULT_BOARD_RECT
    cell_size: int = Defaults.CELL_INPUT_SIZE.value


@dataclass
class VisionConfig:
    """Cell classifier configuration."""
    model_path: Optional[str] = None  # None = color heuristic
    device: str = "cpu"  # "cpu" or "cuda"
    class_names: Tuple[str, ...] = DEFAULT_CLASS_NAMES
    pool_workers: int = Defaults.POOL_WORKERS.value
    batch_size: int = Defaults.POOL_BATCH_SIZE.value

    def label_map(self) -> Dict[str, CellLabel]:
        """Map class names, in training order, onto cell labels."""
        labels = (CellLabel.A, CellLabel.B, CellLabel.EMPTY)
        return {name.lower(): label for name, label in zip(self.class_names, labels)}


@dataclass
class SyncConfig:
    """Remote decision service configuration."""
    base_url: str = "http://localhost:5000"
    timeout: float = 30.0
    max_retries: int = 1
    retry_delay: float = 1.0


@dataclass
class PerceptionConfig:
    """Perception loop timings and move delivery mode."""
    warmup_delay: float = Timings.PERCEPTION_WARMUP.value
    cycle_interval: float = Timings.PERCEPTION_INTERVAL.value
    error_backoff: float = Timings.PERCEPTION_ERROR_BACKOFF.value
    move_delivery: str = "push"  # "push" or "pull"


@dataclass
class ActuationConfig:
    """Actuation loop timings and tap behavior."""
    poll_interval: float = Timings.ACTUATION_POLL.value
    idle_interval: float = Timings.ACTUATION_IDLE.value
    error_backoff: float = Timings.ACTUATION_ERROR_BACKOFF.value
    inter_tap_delay: float = Timings.INTER_TAP_DELAY.value
    tap_attempts: int = Defaults.TAP_ATTEMPTS.value
    tap_retry_delay: float = Timings.TAP_RETRY_DELAY.value
    move_duration: float = 0.0  # Seconds to glide to the target before tapping
    tap_jitter: float = 0.0  # Max random pixel offset per tap


@dataclass
class StoreConfig:
    """Shared state store location."""
    path: Optional[str] = None  # None = in-memory (single process only)


@dataclass
class AutopilotConfig:
    """Main configuration for both loops."""
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    vision: VisionConfig = field(default_factory=VisionConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    perception: PerceptionConfig = field(default_factory=PerceptionConfig)
    actuation: ActuationConfig = field(default_factory=ActuationConfig)
    store: StoreConfig = field(default_factory=StoreConfig)

    # Debug settings
    debug_mode: bool = False
    debug_log_file: Optional[str] = None

    @property
    def pull_mode(self) -> bool:
        """Whether the actuation loop fetches moves itself."""
        return self.perception.move_delivery == "pull"

    @classmethod
    def from_env(cls) -> "AutopilotConfig":
        """Load configuration from environment variables and an optional board profile."""
        profile = load_board_profile(os.getenv("BOARD_PROFILE"))

        board_rect = DEFAULT_BOARD_RECT
        if "board" in profile:
            board_rect = BoardRect.from_dict(profile["board"])

        class_names = tuple(profile.get("class_names", DEFAULT_CLASS_NAMES))

        move_delivery = os.getenv("MOVE_DELIVERY", "push").lower()
        if move_delivery not in ("push", "pull"):
            raise ValueError(f"MOVE_DELIVERY must be 'push' or 'pull', got {move_delivery!r}")

        return cls(
            capture=CaptureConfig(
                monitor_index=int(os.getenv("CAPTURE_MONITOR_INDEX", "1")),
                board_rect=board_rect,
                cell_size=int(os.getenv("CAPTURE_CELL_SIZE", str(Defaults.CELL_INPUT_SIZE.value)))
            ),
            vision=VisionConfig(
                model_path=os.getenv("VISION_MODEL_PATH") or profile.get("model_path"),
                device=os.getenv("VISION_DEVICE", "cpu"),
                class_names=class_names,
                pool_workers=int(os.getenv("VISION_POOL_WORKERS", str(Defaults.POOL_WORKERS.value))),
                batch_size=int(os.getenv("VISION_BATCH_SIZE", str(Defaults.POOL_BATCH_SIZE.value)))
            ),
            sync=SyncConfig(
                base_url=os.getenv("SYNC_BASE_URL", "http://localhost:5000").rstrip("/"),
                timeout=float(os.getenv("SYNC_TIMEOUT", "30.0")),
                max_retries=int(os.getenv("SYNC_MAX_RETRIES", "1")),
                retry_delay=float(os.getenv("SYNC_RETRY_DELAY", "1.0"))
            ),
            perception=PerceptionConfig(
                warmup_delay=float(os.getenv("PERCEPTION_WARMUP", str(Timings.PERCEPTION_WARMUP.value))),
                cycle_interval=float(os.getenv("PERCEPTION_INTERVAL", str(Timings.PERCEPTION_INTERVAL.value))),
                error_backoff=float(os.getenv("PERCEPTION_ERROR_BACKOFF", str(Timings.PERCEPTION_ERROR_BACKOFF.value))),
                move_delivery=move_delivery
            ),
            actuation=ActuationConfig(
                poll_interval=float(os.getenv("ACTUATION_POLL", str(Timings.ACTUATION_POLL.value))),
                idle_interval=float(os.getenv("ACTUATION_IDLE", str(Timings.ACTUATION_IDLE.value))),
                error_backoff=float(os.getenv("ACTUATION_ERROR_BACKOFF", str(Timings.ACTUATION_ERROR_BACKOFF.value))),
                inter_tap_delay=float(os.getenv("ACTUATION_INTER_TAP_DELAY", str(Timings.INTER_TAP_DELAY.value))),
                tap_attempts=int(os.getenv("ACTUATION_TAP_ATTEMPTS", str(Defaults.TAP_ATTEMPTS.value))),
                tap_retry_delay=float(os.getenv("ACTUATION_TAP_RETRY_DELAY", str(Timings.TAP_RETRY_DELAY.value))),
                move_duration=float(os.getenv("ACTUATION_MOVE_DURATION", "0.0")),
                tap_jitter=float(os.getenv("ACTUATION_TAP_JITTER", "0.0"))
            ),
            store=StoreConfig(
                path=os.getenv("STORE_PATH") or None
            ),
            debug_mode=_env_bool("DEBUG_MODE", "false"),
            debug_log_file=os.getenv("DEBUG_LOG_FILE") or None
        )


def load_board_profile(profile_path: Optional[str]) -> Dict[str, Any]:
    """
    Load a YAML board profile.

    Args:
        profile_path: Path to the profile file. None or a missing file yields {}.

    Returns:
        Profile dictionary with optional "board", "class_names" and "model_path".
    """
    if not profile_path:
        return {}

    path = Path(profile_path)
    if not path.exists():
        logger.warning(f"[CONFIG] Board profile not found: {profile_path}")
        return {}

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    logger.info(f"[CONFIG] Loaded board profile: {data.get('name', path.stem)}")
    return data


def get_config() -> AutopilotConfig:
    """Get configuration (from env if valid, else defaults)."""
    try:
        return AutopilotConfig.from_env()
    except (ValueError, KeyError, yaml.YAMLError) as e:
        logger.error(f"[CONFIG] Invalid configuration, using defaults: {e}")
        return AutopilotConfig()
