"""Microphone permission checks that gate every capture attempt."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import pyaudio

from ..errors import PermissionDeniedError

logger = logging.getLogger(__name__)


class MicrophonePermission(ABC):
    """Query/request interface for microphone access."""

    @abstractmethod
    def request(self) -> bool:
        """Request microphone access.

        Returns:
            True if access is granted, False otherwise
        """
        pass

    def require(self) -> None:
        """Request access and raise if it is refused.

        Raises:
            PermissionDeniedError: If microphone access is not granted
        """
        if not self.request():
            raise PermissionDeniedError("Microphone permission is required")


class StaticPermission(MicrophonePermission):
    """Fixed grant/deny policy, e.g. from configuration."""

    def __init__(self, granted: bool = True):
        self.granted = granted

    def request(self) -> bool:
        logger.debug(f"Static microphone permission: granted={self.granted}")
        return self.granted


class DeviceProbePermission(MicrophonePermission):
    """Grants access when PyAudio reports a usable input device.

    Desktop platforms have no permission prompt for PyAudio, but a missing,
    disabled or sandbox-blocked microphone shows up as an input device that
    cannot be queried.
    """

    def __init__(self, input_device_index: Optional[int] = None):
        self.input_device_index = input_device_index

    def request(self) -> bool:
        try:
            audio = pyaudio.PyAudio()
        except Exception as e:
            logger.warning(f"Audio subsystem not available: {e}")
            return False

        try:
            if self.input_device_index is None:
                info = audio.get_default_input_device_info()
            else:
                info = audio.get_device_info_by_index(self.input_device_index)
        except (IOError, OSError, ValueError) as e:
            logger.warning(f"No usable microphone: {e}")
            return False
        finally:
            audio.terminate()

        if int(info.get('maxInputChannels', 0)) < 1:
            logger.warning(f"Device '{info.get('name')}' has no input channels")
            return False

        logger.debug(f"Microphone available: {info.get('name')}")
        return True


def create_permission(policy: str, input_device_index: Optional[int] = None) -> MicrophonePermission:
    """Build the permission gate named by ``permissions.microphone`` in the config."""
    policy = (policy or "probe").lower()
    if policy == "probe":
        return DeviceProbePermission(input_device_index)
    if policy == "granted":
        return StaticPermission(True)
    if policy == "denied":
        return StaticPermission(False)
    raise ValueError(f"Unknown microphone permission policy: {policy}")
