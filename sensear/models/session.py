"""Session-related data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .recognition import RecognitionResult


STATUS_RECORDING = "Recording..."
STATUS_NOT_RECORDING = "Not Recording"


class SessionState(Enum):
    """Listening state of a session."""
    IDLE = "idle"
    RECORDING = "recording"


@dataclass(frozen=True)
class SessionStatus:
    """Snapshot of everything the presentation layer may observe."""
    state: SessionState = SessionState.IDLE
    status_text: str = STATUS_NOT_RECORDING
    result: Optional[RecognitionResult] = None
    last_error: Optional[str] = None  # Diagnostics only, never rendered as status

    @property
    def is_listening(self) -> bool:
        return self.state is SessionState.RECORDING

    @property
    def result_text(self) -> str:
        return self.result.display_text if self.result else ""
