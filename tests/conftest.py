"""Pytest configuration and fixtures for SenseEar tests."""

import pytest
import time
import uuid
import logging
from pathlib import Path
from unittest.mock import Mock, patch
import numpy as np


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


MODEL_INPUT_WIDTH = 3200
CHUNK_BYTES = 6400  # 200 ms of 16-bit mono audio at 16 kHz


def pytest_addoption(parser):
    parser.addoption(
        "--run-hardware",
        action="store_true",
        default=False,
        help="Run tests that need a real microphone",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line("markers", "integration: tests spanning several components")
    config.addinivalue_line("markers", "hardware: tests that need a real microphone")


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-hardware"):
        return
    skip_hardware = pytest.mark.skip(reason="needs --run-hardware")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hardware)


class LinearInterpreter:
    """In-memory stand-in for a TFLite interpreter: scores = features @ weights + bias."""

    def __init__(self, weights, bias, input_shape=None):
        self.weights = np.asarray(weights, dtype=np.float32)
        self.bias = np.asarray(bias, dtype=np.float32)
        self.input_shape = list(input_shape or [1, self.weights.shape[0]])
        self.output_shape = [1, self.weights.shape[1]]
        self.allocated = False
        self.closed = False
        self.invocations = 0
        self.fail_next_invoke = False
        self._input = None
        self._output = None

    def allocate_tensors(self):
        self.allocated = True

    def get_input_details(self):
        return [{'index': 0, 'shape': np.array(self.input_shape, dtype=np.int32), 'dtype': np.float32}]

    def get_output_details(self):
        return [{'index': 1, 'shape': np.array(self.output_shape, dtype=np.int32), 'dtype': np.float32}]

    def set_tensor(self, index, value):
        assert index == 0
        assert list(value.shape) == self.input_shape
        self._input = value

    def invoke(self):
        if self.fail_next_invoke:
            self.fail_next_invoke = False
            raise RuntimeError("simulated kernel failure")
        self.invocations += 1
        flat = self._input.reshape(-1)
        self._output = (flat @ self.weights + self.bias).reshape(self.output_shape)

    def get_tensor(self, index):
        assert index == 1
        return self._output

    def close(self):
        self.closed = True


def make_linear_interpreter(bias=(0.1, 0.3), width=MODEL_INPUT_WIDTH):
    """Two-class linear model: class 0 rises with loudness, class 1 falls."""
    weights = np.zeros((width, 2), dtype=np.float32)
    weights[:, 0] = 1.0 / width
    weights[:, 1] = -1.0 / width
    return LinearInterpreter(weights, bias)


@pytest.fixture
def model_file(tmp_path):
    """A model asset on disk; its content is read by the injected interpreter factory."""
    path = tmp_path / "model.tflite"
    path.write_bytes(b"TFL3")
    return str(path)


@pytest.fixture
def linear_interpreter():
    return make_linear_interpreter()


@pytest.fixture
def interpreter_factory(linear_interpreter):
    factory = Mock(return_value=linear_interpreter)
    return factory


@pytest.fixture
def engine(model_file, interpreter_factory):
    """Inference engine backed by the linear interpreter, not yet loaded."""
    from sensear.inference.engine import InferenceEngine

    return InferenceEngine(
        model_path=model_file,
        labels=["doorbell", "vehicle horn"],
        num_threads=4,
        interpreter_factory=interpreter_factory,
    )


@pytest.fixture
def loaded_engine(engine):
    engine.load()
    yield engine
    engine.close()


@pytest.fixture
def topics():
    """Unique pub/sub topic names so tests never share listeners."""
    root = f"test_{uuid.uuid4().hex}"
    return {
        "audio": f"{root}.audio",
        "result": f"{root}.result",
        "status": f"{root}.status",
    }


@pytest.fixture
def mid_value_chunk():
    """3,200 bytes at the 8-bit mid point: every feature maps to 0.0."""
    return bytes([128]) * 3200


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        def read_chunk(frames, exception_on_overflow=True):
            time.sleep(0.005)
            return bytes([128]) * (frames * 2)

        # Configure mock stream
        mock_stream.read.side_effect = read_chunk
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        # Configure mock PyAudio instance
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_sample_size.return_value = 2
        mock_pyaudio_instance.get_default_input_device_info.return_value = {
            'name': 'Mock Microphone',
            'maxInputChannels': 1,
        }

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def config_file(tmp_path):
    """Write a YAML config into a temp dir and return its path."""
    def write(text: str) -> str:
        path = Path(tmp_path) / "sensear.yaml"
        path.write_text(text, encoding="utf-8")
        return str(path)
    return write


class StatusRecorder:
    """Collects SessionStatus snapshots published by a controller."""

    def __init__(self):
        self.statuses = []

    def on_status(self, status):
        self.statuses.append(status)

    @property
    def last(self):
        return self.statuses[-1] if self.statuses else None


@pytest.fixture
def status_recorder():
    return StatusRecorder()


def wait_for(predicate, timeout: float = 3.0, interval: float = 0.01) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` expires."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def wait():
    return wait_for


@pytest.fixture
def build_interpreter():
    return make_linear_interpreter
