"""Data models for the SenseEar application."""

from .audio import AudioStats
from .events import AudioEvent
from .recognition import RecognitionResult
from .session import (
    SessionState,
    SessionStatus,
    STATUS_RECORDING,
    STATUS_NOT_RECORDING,
)

__all__ = [
    "AudioStats",
    "AudioEvent",
    "RecognitionResult",
    "SessionState",
    "SessionStatus",
    "STATUS_RECORDING",
    "STATUS_NOT_RECORDING",
]
