"""Audio capture and microphone access module."""

from .capture import AudioCapture
from .audio_pub import AudioPublisher
from .permission import (
    MicrophonePermission,
    StaticPermission,
    DeviceProbePermission,
    create_permission,
)

__all__ = [
    'AudioCapture',
    'AudioPublisher',
    'MicrophonePermission',
    'StaticPermission',
    'DeviceProbePermission',
    'create_permission',
]
