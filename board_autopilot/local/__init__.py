"""
Local autopilot package: perception, actuation and their collaborators.
"""
from .capture import ScreenCapture, CellExtractor, FrameSource
from .vision import ClassifierPool, ClassifierOracle, YOLOCellClassifier, ColorHeuristicClassifier
from .orientation import OrientationResolver
from .actuator import Actuator, TapInjector, PyAutoGuiTapInjector
from .client import SyncClient
from .perception import PerceptionLoop
from .actuation import ActuationLoop
from .coordinator import AutopilotCoordinator

__all__ = [
    'ScreenCapture',
    'CellExtractor',
    'FrameSource',
    'ClassifierPool',
    'ClassifierOracle',
    'YOLOCellClassifier',
    'ColorHeuristicClassifier',
    'OrientationResolver',
    'Actuator',
    'TapInjector',
    'PyAutoGuiTapInjector',
    'SyncClient',
    'PerceptionLoop',
    'ActuationLoop',
    'AutopilotCoordinator'
]
