"""Audio capture module with continuous chunked recording and event publishing."""

import pyaudio
import time
import logging
import threading
from threading import Thread, Event
from typing import Optional, Callable
from ..errors import AudioStreamError, DeviceUnavailableError
from ..models.audio import AudioStats
from ..models.events import AudioEvent
from datetime import datetime


logger = logging.getLogger(__name__)


class AudioCapture:
    """Continuous audio capture that publishes one event per fixed-duration chunk."""

    def __init__(
        self,
        callback: Callable[[AudioEvent], None],
        error_callback: Optional[Callable[[AudioStreamError], None]] = None,
        sample_rate: int = 16000,
        chunk_duration_ms: int = 200,
        channels: int = 1,
        format: int = pyaudio.paInt16,
        input_device_index: Optional[int] = None,
    ):
        """Initialize audio capture with specified parameters.

        Args:
            callback: Receives every captured chunk on the capture thread
            error_callback: Receives stream-level failures after capture has stopped itself
            sample_rate: Audio sample rate in Hz
            chunk_duration_ms: Length of each delivered chunk in milliseconds
            channels: Number of audio channels (1 for mono)
            format: Audio format (16-bit signed int)
            input_device_index: PyAudio device index, None for the default input
        """
        self.audio_event_callback = callback
        self.error_callback = error_callback
        self.sample_rate = sample_rate
        self.chunk_duration_ms = chunk_duration_ms
        self.chunk_size = sample_rate * chunk_duration_ms // 1000
        self.channels = channels
        self.format = format
        self.input_device_index = input_device_index

        # Recording thread management
        self.recording_thread: Optional[Thread] = None
        self.stop_event = Event()
        self.is_recording = False
        self._state_lock = threading.Lock()

        # Statistics tracking
        self.start_time: Optional[datetime] = None
        self.total_chunks = 0

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None

    def open(self) -> None:
        """Acquire the PyAudio subsystem. Safe to call more than once."""
        if self.pyaudio_instance is not None:
            return
        try:
            self.pyaudio_instance = pyaudio.PyAudio()
        except Exception as e:
            raise DeviceUnavailableError(f"Audio subsystem unavailable: {e}") from e
        logger.info("Audio subsystem opened")

    def close(self) -> None:
        """Stop recording and release the PyAudio subsystem."""
        self.stop_recording()
        if self.pyaudio_instance is not None:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None
            logger.info("Audio subsystem closed")

    def start_recording(self) -> None:
        """Open the input stream and start continuous recording in a background thread.

        Raises:
            DeviceUnavailableError: If the input device cannot be opened
        """
        with self._state_lock:
            if self.is_recording:
                logger.warning("Recording already in progress")
                return

            self.open()
            self.stream = self.__open_audio_stream()

            logger.info("Starting audio recording")
            # Each session owns its stop event
            self.stop_event = Event()
            self.start_time = datetime.now()
            self.total_chunks = 0

            self.recording_thread = Thread(target=self._record_continuously,
                                           args=(self.stream, self.stop_event),
                                           daemon=True)
            self.recording_thread.name = "AudioCaptureThread"
            self.is_recording = True
            self.recording_thread.start()

    def stop_recording(self) -> None:
        """Stop recording and close the stream. No-op when not recording."""
        with self._state_lock:
            if not self.is_recording:
                logger.debug("No recording in progress")
                return

            logger.info("Stopping audio recording")
            self.stop_event.set()
            self.is_recording = False
            thread = self.recording_thread

        # The capture thread itself may stop the session after a stream error
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=2.0)
            if thread.is_alive():
                logger.warning("Recording thread did not stop cleanly")

        logger.info(f"Recording stopped. Total chunks: {self.total_chunks}")

    def __open_audio_stream(self):
        try:
            stream = self.pyaudio_instance.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                input_device_index=self.input_device_index,
                frames_per_buffer=self.chunk_size,
                stream_callback=None
            )
        except Exception as e:
            raise DeviceUnavailableError(f"Cannot open audio input device: {e}") from e
        logger.info(f"Audio stream opened: {self.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk ({self.chunk_duration_ms}ms)")
        return stream

    def __read_audio_chunk(self, stream) -> bytes:
        audio_chunk = stream.read(self.chunk_size, exception_on_overflow=False)
        self.total_chunks += 1
        return audio_chunk

    def __publish_audio_event(self, audio_chunk: bytes) -> None:
        audio_event = AudioEvent(
            chunk_id=f"chunk_{self.total_chunks}",
            audio_data=audio_chunk,
            timestamp=time.time(),
            sequence_number=self.total_chunks,
            sample_rate=self.sample_rate,
            channels=self.channels,
            chunk_duration_ms=self.chunk_duration_ms,
        )
        self.audio_event_callback(audio_event)

    def _record_continuously(self, stream, stop_event: Event) -> None:
        """Internal method: continuous recording loop in background thread.

        ``stream`` and ``stop_event`` belong to the session that started this
        thread; a later session is never touched from here.
        """
        failure: Optional[AudioStreamError] = None
        try:
            while not stop_event.is_set():
                audio_chunk = self.__read_audio_chunk(stream)
                if stop_event.is_set():
                    break
                self.__publish_audio_event(audio_chunk)
        except Exception as e:
            logger.error(f"Audio stream failed after {self.total_chunks} chunks: {e}", exc_info=True)
            with self._state_lock:
                if stop_event is self.stop_event and not stop_event.is_set():
                    failure = AudioStreamError(str(e))
                    self.is_recording = False
                stop_event.set()
        finally:
            with self._state_lock:
                if self.stream is stream:
                    self.stream = None
            try:
                if stream:
                    stream.stop_stream()
                    stream.close()
            except Exception as e:
                logger.warning(f"Error closing audio stream: {e}")

        if failure is not None and self.error_callback:
            self.error_callback(failure)

    def get_recording_stats(self) -> AudioStats:
        """Get current recording statistics."""
        duration = 0.0
        if self.start_time:
            duration = (datetime.now() - self.start_time).total_seconds()

        return AudioStats(
            is_recording=self.is_recording,
            duration_seconds=duration,
            sample_rate=self.sample_rate,
            chunk_size=self.chunk_size,
            total_chunks=self.total_chunks,
        )

    def __del__(self):
        """Ensure resources are cleaned up on deletion."""
        if getattr(self, "is_recording", False):
            self.stop_recording()
