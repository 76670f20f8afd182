"""Unit tests for AudioCapture class."""

import pytest
import time
import pyaudio
from unittest.mock import Mock, patch

from sensear.audio.capture import AudioCapture
from sensear.errors import AudioStreamError, DeviceUnavailableError
from sensear.models.audio import AudioStats


@pytest.fixture
def events():
    return []


@pytest.fixture
def capture(events):
    capture = AudioCapture(callback=events.append)
    yield capture
    capture.close()


@pytest.mark.unit
class TestAudioCapture:
    """Test cases for AudioCapture class."""

    def test_initialization(self, capture):
        """200 ms chunks at 16 kHz mono by default."""
        assert capture.sample_rate == 16000
        assert capture.chunk_duration_ms == 200
        assert capture.chunk_size == 3200
        assert capture.channels == 1
        assert capture.format == pyaudio.paInt16
        assert capture.is_recording is False
        assert capture.total_chunks == 0

    def test_initialization_custom_parameters(self, events):
        capture = AudioCapture(callback=events.append, sample_rate=44100,
                               chunk_duration_ms=100, channels=2, input_device_index=3)

        assert capture.chunk_size == 4410
        assert capture.channels == 2
        assert capture.input_device_index == 3

    def test_start_recording_opens_configured_stream(self, capture, mock_pyaudio):
        capture.start_recording()

        assert capture.is_recording is True
        assert capture.start_time is not None
        assert capture.recording_thread.daemon is True
        mock_pyaudio['instance'].open.assert_called_once_with(
            format=pyaudio.paInt16,
            channels=1,
            rate=16000,
            input=True,
            input_device_index=None,
            frames_per_buffer=3200,
            stream_callback=None,
        )
        capture.stop_recording()

    def test_start_recording_already_recording(self, capture, mock_pyaudio):
        capture.start_recording()
        capture.start_recording()

        mock_pyaudio['instance'].open.assert_called_once()
        capture.stop_recording()

    def test_chunks_are_published_in_sequence(self, capture, events, mock_pyaudio):
        capture.start_recording()
        time.sleep(0.1)
        capture.stop_recording()

        assert len(events) > 0
        assert [e.sequence_number for e in events] == list(range(1, len(events) + 1))
        assert events[0].chunk_id == "chunk_1"
        assert len(events[0].audio_data) == 6400
        assert events[0].chunk_duration_ms == 200
        mock_pyaudio['stream'].read.assert_called_with(3200, exception_on_overflow=False)

    def test_stop_recording_closes_stream(self, capture, mock_pyaudio):
        capture.start_recording()
        time.sleep(0.02)
        capture.stop_recording()

        assert capture.is_recording is False
        assert capture.stop_event.is_set()
        assert not capture.recording_thread.is_alive()
        mock_pyaudio['stream'].stop_stream.assert_called_once()
        mock_pyaudio['stream'].close.assert_called_once()

    def test_stop_recording_not_recording(self, capture, mock_pyaudio):
        capture.stop_recording()
        capture.stop_recording()

        assert capture.is_recording is False

    def test_no_events_after_stop(self, capture, events, mock_pyaudio):
        capture.start_recording()
        time.sleep(0.05)
        capture.stop_recording()
        published = len(events)
        time.sleep(0.05)

        assert len(events) == published

    def test_device_open_failure(self, capture, mock_pyaudio):
        mock_pyaudio['instance'].open.side_effect = OSError("[Errno -9996] Invalid input device")

        with pytest.raises(DeviceUnavailableError, match="Invalid input device"):
            capture.start_recording()

        assert capture.is_recording is False
        assert capture.recording_thread is None

    def test_audio_subsystem_failure(self, capture):
        with patch('pyaudio.PyAudio', side_effect=OSError("no backend")):
            with pytest.raises(DeviceUnavailableError):
                capture.open()

    def test_stream_error_stops_capture_and_reports(self, mock_pyaudio):
        errors = []
        capture = AudioCapture(callback=Mock(), error_callback=errors.append)
        reads = {'count': 0}

        def failing_read(frames, exception_on_overflow=True):
            reads['count'] += 1
            if reads['count'] > 2:
                raise OSError("[Errno -9981] Input overflowed / device unplugged")
            time.sleep(0.005)
            return b'\x80' * (frames * 2)

        mock_pyaudio['stream'].read.side_effect = failing_read
        capture.start_recording()
        capture.recording_thread.join(timeout=2.0)

        assert len(errors) == 1
        assert isinstance(errors[0], AudioStreamError)
        assert capture.is_recording is False
        mock_pyaudio['stream'].close.assert_called_once()
        assert capture.audio_event_callback.call_count == 2

        # A later stop is a no-op
        capture.stop_recording()
        capture.close()

    def test_lingering_thread_leaves_new_session_alone(self, mock_pyaudio):
        errors = []
        capture = AudioCapture(callback=Mock(), error_callback=errors.append)
        old_stream = mock_pyaudio['stream']
        new_stream = Mock()
        new_stream.read.side_effect = lambda frames, exception_on_overflow=True: (
            time.sleep(0.005) or b'\x80' * (frames * 2))

        capture.start_recording()
        old_stop_event = capture.stop_event
        capture.stop_recording()
        mock_pyaudio['instance'].open.return_value = new_stream
        capture.start_recording()

        # A thread from the first session that only now fails on its stream
        old_stream.read.side_effect = OSError("[Errno -9988] Stream closed")
        old_stop_event.clear()
        capture._record_continuously(old_stream, old_stop_event)

        assert capture.stream is new_stream
        assert capture.is_recording is True
        assert capture.recording_thread.is_alive()
        assert errors == []

        capture.stop_recording()
        new_stream.close.assert_called_once()
        capture.close()

    def test_lingering_thread_exit_keeps_new_stream(self, mock_pyaudio):
        capture = AudioCapture(callback=Mock())
        old_stream = mock_pyaudio['stream']
        new_stream = Mock()
        new_stream.read.side_effect = lambda frames, exception_on_overflow=True: (
            time.sleep(0.005) or b'\x80' * (frames * 2))

        capture.start_recording()
        old_stop_event = capture.stop_event
        capture.stop_recording()
        mock_pyaudio['instance'].open.return_value = new_stream
        capture.start_recording()

        capture._record_continuously(old_stream, old_stop_event)

        assert capture.stream is new_stream
        capture.stop_recording()
        capture.close()

    def test_close_terminates_pyaudio(self, capture, mock_pyaudio):
        capture.open()
        capture.open()
        capture.close()
        capture.close()

        mock_pyaudio['class'].assert_called_once()
        mock_pyaudio['instance'].terminate.assert_called_once()

    def test_get_recording_stats(self, capture, mock_pyaudio):
        stats = capture.get_recording_stats()

        assert isinstance(stats, AudioStats)
        assert stats.is_recording is False
        assert stats.duration_seconds == 0.0
        assert stats.sample_rate == 16000
        assert stats.chunk_size == 3200
        assert stats.total_chunks == 0

    def test_get_recording_stats_while_recording(self, capture, mock_pyaudio):
        capture.start_recording()
        time.sleep(0.05)

        stats = capture.get_recording_stats()
        assert stats.is_recording is True
        assert stats.duration_seconds > 0
        assert stats.total_chunks > 0

        capture.stop_recording()

    def test_destructor_cleanup(self, capture, mock_pyaudio):
        """Test that destructor properly cleans up resources."""
        with patch.object(AudioCapture, 'stop_recording') as mock_stop:
            capture.is_recording = True

            capture.__del__()

            mock_stop.assert_called_once()
        capture.is_recording = False
