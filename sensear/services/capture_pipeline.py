"""Capture pipeline: microphone stream -> chunk queue -> inference -> result topic."""

import logging
import threading
from typing import Callable, Optional

from pubsub import pub

from ..audio.audio_pub import AudioPublisher
from ..audio.capture import AudioCapture
from ..config import SensearConfig
from ..errors import AudioStreamError
from ..inference.consumer import RecognitionAudioConsumer
from ..inference.engine import InferenceEngine
from ..inference.publisher import RecognitionPublisher
from ..models.audio import AudioStats

logger = logging.getLogger(__name__)


class CapturePipeline:
    """Owns the audio stream and forwards every chunk to the inference engine.

    Captured chunks are published on ``audio_topic``; the recognition consumer
    is subscribed to that topic only while the pipeline is started. Results
    are published on ``result_topic``.
    """

    def __init__(self,
                 engine: InferenceEngine,
                 audio_topic: str = "audio.chunk",
                 result_topic: str = "recognition.result",
                 error_callback: Optional[Callable[[AudioStreamError], None]] = None,
                 sample_rate: int = 16000,
                 chunk_duration_ms: int = 200,
                 channels: int = 1,
                 input_device_index: Optional[int] = None):
        self.engine = engine
        self.audio_topic = audio_topic
        self.result_topic = result_topic
        self.error_callback = error_callback

        self.audio_publisher = AudioPublisher(audio_topic)
        self.result_publisher = RecognitionPublisher(result_topic)
        self.audio_capture = AudioCapture(
            callback=self.audio_publisher.publish_audio_event,
            error_callback=self._on_stream_error,
            sample_rate=sample_rate,
            chunk_duration_ms=chunk_duration_ms,
            channels=channels,
            input_device_index=input_device_index,
        )
        self.consumer = RecognitionAudioConsumer(
            engine=engine,
            result_callback=self.result_publisher.get_callback(),
        )

        self._lock = threading.RLock()
        self._sub_lock = threading.Lock()
        self._subscribed = False
        self._closed = False

    @classmethod
    def from_config(cls, config: SensearConfig, engine: InferenceEngine, **kwargs) -> "CapturePipeline":
        """Build a pipeline from the ``audio`` section of the configuration.

        Raises:
            ValueError: If the sample rate or chunk duration is not positive
        """
        chunk_size = config.get_chunk_size()
        logger.info(f"Capture chunk size from config: {chunk_size} frames")
        return cls(
            engine=engine,
            sample_rate=config.get('audio.sample_rate', 16000),
            chunk_duration_ms=config.get('audio.chunk_duration_ms', 200),
            channels=config.get('audio.channels', 1),
            input_device_index=config.get('audio.input_device_index'),
            **kwargs
        )

    @property
    def is_recording(self) -> bool:
        return self.audio_capture.is_recording

    @property
    def is_open(self) -> bool:
        return self.audio_capture.pyaudio_instance is not None

    def open(self) -> None:
        """Acquire the audio subsystem.

        Raises:
            DeviceUnavailableError: If the audio subsystem cannot be opened
        """
        self.audio_capture.open()

    def start(self) -> None:
        """Start delivering chunks to the inference engine.

        Raises:
            DeviceUnavailableError: If the input device cannot be opened
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Capture pipeline is closed")
            if self.is_recording:
                logger.warning("Capture pipeline already started")
                return

            self._subscribe()
            try:
                self.audio_capture.start_recording()
            except Exception:
                self._unsubscribe()
                raise
            logger.info("Capture pipeline started")

    def stop(self) -> None:
        """Stop capture and drop chunks not yet classified. No-op when stopped."""
        with self._lock:
            self._unsubscribe()
            self.audio_capture.stop_recording()
            self.consumer.discard_pending()
            logger.info("Capture pipeline stopped")

    def close(self) -> None:
        """Stop capture, stop the inference worker and release the audio subsystem."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self.stop()
            finally:
                try:
                    self.consumer.shutdown()
                finally:
                    self.audio_capture.close()
            logger.info("Capture pipeline closed")

    def get_recording_stats(self) -> AudioStats:
        return self.audio_capture.get_recording_stats()

    def _subscribe(self) -> None:
        with self._sub_lock:
            if not self._subscribed:
                pub.subscribe(self.consumer.on_audio_chunk, self.audio_topic)
                self._subscribed = True

    def _unsubscribe(self) -> None:
        with self._sub_lock:
            if self._subscribed:
                pub.unsubscribe(self.consumer.on_audio_chunk, self.audio_topic)
                self._subscribed = False

    def _on_stream_error(self, error: AudioStreamError) -> None:
        """Called on the capture thread once capture has stopped itself."""
        logger.error(f"Capture pipeline stopping after stream error: {error}")
        # Not under self._lock: stop() may be joining this thread while holding it
        self._unsubscribe()
        self.consumer.discard_pending()
        if self.error_callback:
            self.error_callback(error)
