"""SenseEar: live microphone sound classification."""

__version__ = "0.1.0"
