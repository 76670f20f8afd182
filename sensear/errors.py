"""Error kinds raised by the recognition pipeline."""


class SensearError(Exception):
    """Base class for all SenseEar errors."""


class PermissionDeniedError(SensearError):
    """Microphone access was refused."""


class DeviceUnavailableError(SensearError):
    """The audio input device could not be opened."""


class ModelLoadError(SensearError):
    """The classification model is missing, malformed or could not be loaded."""


class InferenceError(SensearError):
    """Inference could not run for a chunk. Recoverable: the chunk is skipped."""


class AudioStreamError(SensearError):
    """The audio stream failed while recording. Forces the session to stop."""
