#!/usr/bin/env python
"""
Main entry point for board_autopilot.
Run with: python -m board_autopilot [command]
"""
import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from board_autopilot import __version__

logger = logging.getLogger("board_autopilot")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="board_autopilot",
        description="board_autopilot - plays a board game through screen capture and taps",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m board_autopilot run          # Both loops in one process
  python -m board_autopilot perception   # Perception loop only (resets the session)
  python -m board_autopilot actuation    # Actuation loop only
  python -m board_autopilot reset        # Clear the shared store
  python -m board_autopilot state        # Show the shared store
  python -m board_autopilot calibrate    # Save a frame with the cell grid drawn

Two-process setups must share STORE_PATH.
        """
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"board_autopilot {__version__}"
    )

    parser.add_argument(
        "command",
        choices=["run", "perception", "actuation", "reset", "state", "calibrate"],
        nargs="?",
        help="Command to run"
    )

    parser.add_argument(
        "--store-path",
        default=None,
        help="Shared state sqlite file (overrides STORE_PATH)"
    )

    parser.add_argument(
        "--base-url",
        default=None,
        help="Decision service base URL (overrides SYNC_BASE_URL)"
    )

    parser.add_argument(
        "--resume",
        action="store_true",
        help="Keep the existing session state instead of resetting it"
    )

    parser.add_argument(
        "--output",
        default="calibration.png",
        help="Output image for the calibrate command"
    )

    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (DEBUG, INFO, WARNING, ...)"
    )

    return parser


def setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s"
    )


async def run_loops(config, enable_perception: bool, enable_actuation: bool, reset: bool):
    from board_autopilot.local.coordinator import AutopilotCoordinator

    coordinator = AutopilotCoordinator(config)
    try:
        await coordinator.initialize(
            enable_perception=enable_perception,
            enable_actuation=enable_actuation,
            reset=reset
        )
        await coordinator.start()
    finally:
        await coordinator.stop()


def calibrate(config, output: str) -> int:
    import cv2
    from board_autopilot.local.capture import CellExtractor, ScreenCapture

    frame = ScreenCapture(monitor_index=config.capture.monitor_index).grab()
    if frame is None:
        logger.error("[CALIBRATE] No frame available")
        return 1

    extractor = CellExtractor(config.capture.board_rect, config.capture.cell_size)
    cv2.imwrite(output, extractor.draw_grid(frame))
    logger.info(f"[CALIBRATE] Grid overlay written to {output}")
    return 0


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Load environment variables from .env if exists
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    setup_logging(args.log_level)

    from board_autopilot.local.config import get_config
    from board_autopilot.local.coordinator import build_store

    config = get_config()

    # Flags win over the environment, even when it fell back to defaults
    if args.store_path:
        config.store.path = args.store_path
    if args.base_url:
        config.sync.base_url = args.base_url.rstrip("/")

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "reset":
        build_store(config).reset()
        return 0

    if args.command == "state":
        print(json.dumps(build_store(config).snapshot(), indent=2, sort_keys=True))
        return 0

    if args.command == "calibrate":
        return calibrate(config, args.output)

    enable_perception = args.command in ("run", "perception")
    enable_actuation = args.command in ("run", "actuation")
    # Only the process that owns perception starts a new session
    reset = enable_perception and not args.resume

    try:
        asyncio.run(run_loops(config, enable_perception, enable_actuation, reset))
    except KeyboardInterrupt:
        logger.info("[SYSTEM] Shutting down...")

    return 0


if __name__ == "__main__":
    sys.exit(main())
