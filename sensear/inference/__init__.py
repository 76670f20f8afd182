"""Sound classification module for SenseEar."""

from .engine import InferenceEngine, tflite_interpreter_factory
from .consumer import RecognitionAudioConsumer
from .publisher import RecognitionPublisher

__all__ = [
    "InferenceEngine",
    "tflite_interpreter_factory",
    "RecognitionAudioConsumer",
    "RecognitionPublisher",
]
