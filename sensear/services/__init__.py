"""Services layer for SenseEar application logic."""

from .capture_pipeline import CapturePipeline
from .session_controller import SessionController

__all__ = [
    "CapturePipeline",
    "SessionController",
]
