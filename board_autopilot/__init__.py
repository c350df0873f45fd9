"""
board_autopilot

Plays a turn-based board game inside a third-party application:
- Perception loop: screen capture + per-cell classification -> board occupancy
- Decision service: remote HTTP endpoint that answers with the move to play
- Actuation loop: replays the move as two screen taps

The loops never call each other; they hand off through a shared, persisted
key/value store.
"""

__version__ = "1.0.0"
