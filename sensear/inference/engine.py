"""Sound classification engine backed by a TensorFlow Lite interpreter."""

import logging
import threading
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np

from ..errors import InferenceError, ModelLoadError
from ..models.recognition import RecognitionResult

logger = logging.getLogger(__name__)


InterpreterFactory = Callable[[str, int], Any]


def tflite_interpreter_factory(model_path: str, num_threads: int) -> Any:
    """Create a TFLite interpreter for ``model_path``."""
    try:
        from tflite_runtime.interpreter import Interpreter
    except ImportError as e:
        raise ModelLoadError(
            "tflite-runtime is not installed; install sensear[tflite]"
        ) from e
    return Interpreter(model_path=model_path, num_threads=num_threads)


class InferenceEngine:
    """Owns one loaded classification model.

    The model's input and output shapes are read from the interpreter at load
    time. Raw bytes are normalized as unsigned 8-bit samples centered on 128,
    padded or truncated to the input width, and classified by arg-max over the
    raw output scores (no softmax is applied).
    """

    def __init__(self,
                 model_path: str,
                 labels: Optional[Sequence[str]] = None,
                 num_threads: int = 4,
                 interpreter_factory: Optional[InterpreterFactory] = None):
        """Initialize inference engine.

        Args:
            model_path: Path to the serialized model asset
            labels: Class labels in model output order
            num_threads: Interpreter worker threads
            interpreter_factory: Builds an interpreter from (model_path, num_threads)
        """
        self.model_path = model_path
        self.labels: List[str] = list(labels or [])
        self.num_threads = num_threads
        self.interpreter_factory = interpreter_factory or tflite_interpreter_factory

        self._interpreter = None
        self._input_detail: Optional[dict] = None
        self._output_detail: Optional[dict] = None
        # The interpreter is not reentrant
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._interpreter is not None

    @property
    def input_shape(self) -> Tuple[int, ...]:
        self._require_loaded()
        return tuple(int(d) for d in self._input_detail['shape'])

    @property
    def output_shape(self) -> Tuple[int, ...]:
        self._require_loaded()
        return tuple(int(d) for d in self._output_detail['shape'])

    @property
    def input_width(self) -> int:
        return int(np.prod(self.input_shape[1:]))

    @property
    def output_width(self) -> int:
        return int(np.prod(self.output_shape[1:]))

    def load(self) -> None:
        """Load the model and read its tensor metadata.

        Raises:
            ModelLoadError: If the asset is missing, malformed or cannot be interpreted
        """
        with self._lock:
            if self._interpreter is not None:
                logger.debug("Model already loaded")
                return

            if not Path(self.model_path).is_file():
                raise ModelLoadError(f"Model asset not found: {self.model_path}")

            try:
                interpreter = self.interpreter_factory(self.model_path, self.num_threads)
                interpreter.allocate_tensors()
                input_detail = interpreter.get_input_details()[0]
                output_detail = interpreter.get_output_details()[0]
            except ModelLoadError:
                raise
            except Exception as e:
                raise ModelLoadError(f"Failed to load model {self.model_path}: {e}") from e

            for name, detail in (("input", input_detail), ("output", output_detail)):
                shape = [int(d) for d in detail['shape']]
                if len(shape) < 2 or any(d <= 0 for d in shape):
                    raise ModelLoadError(f"Unsupported model {name} shape: {shape}")

            self._interpreter = interpreter
            self._input_detail = input_detail
            self._output_detail = output_detail

        logger.info(f"Model input shape: {list(self.input_shape)}")
        logger.info(f"Model output shape: {list(self.output_shape)}")
        if self.labels and len(self.labels) != self.output_width:
            logger.warning(f"{len(self.labels)} labels configured for "
                           f"{self.output_width} model outputs")
        logger.info(f"Model loaded successfully from {self.model_path}")

    def preprocess(self, chunk: bytes) -> np.ndarray:
        """Convert raw sample bytes into a feature vector of the model's input width.

        Each byte maps to ``(byte - 128) / 128.0``; the result is zero-padded
        or truncated to the required length.
        """
        required_length = self.input_width
        samples = np.frombuffer(bytes(chunk), dtype=np.uint8)[:required_length]
        features = np.zeros(required_length, dtype=np.float32)
        features[:samples.size] = (samples.astype(np.float32) - 128.0) / 128.0
        return features

    def infer(self, features: np.ndarray) -> Optional[np.ndarray]:
        """Run the model synchronously on ``features``.

        Returns:
            The score vector, or None if the model raised during computation

        Raises:
            InferenceError: If the model was never loaded
        """
        with self._lock:
            if self._interpreter is None:
                raise InferenceError("Interpreter is not loaded")
            try:
                input_tensor = np.asarray(features, dtype=self._input_detail.get('dtype', np.float32))
                input_tensor = input_tensor.reshape(self._input_detail['shape'])
                self._interpreter.set_tensor(self._input_detail['index'], input_tensor)
                self._interpreter.invoke()
                output = self._interpreter.get_tensor(self._output_detail['index'])
                # Only one batch is ever submitted
                return np.array(output, dtype=np.float32).reshape(-1)[:self.output_width]
            except Exception as e:
                logger.error(f"Error during inference: {e}")
                return None

    def format_result(self, scores: Sequence[float]) -> RecognitionResult:
        """Pick the highest score; the first index wins ties.

        Raises:
            InferenceError: If ``scores`` is empty
        """
        values = np.asarray(scores, dtype=np.float64).reshape(-1)
        if values.size == 0:
            raise InferenceError("Cannot format an empty score vector")

        max_index = int(np.argmax(values))
        return RecognitionResult(
            category_index=max_index,
            category=self.label_for(max_index),
            confidence=round(float(values[max_index]) * 100, 2),
            scores=[float(v) for v in values],
        )

    def label_for(self, index: int) -> str:
        if 0 <= index < len(self.labels):
            return self.labels[index]
        return f"Class {index}"

    def recognize(self, chunk: bytes, chunk_id: Optional[str] = None) -> Optional[RecognitionResult]:
        """Preprocess, infer and format one chunk. None means skip this chunk."""
        started = time.time()
        scores = self.infer(self.preprocess(chunk))
        if scores is None:
            return None
        return replace(self.format_result(scores),
                       chunk_id=chunk_id,
                       processing_time=time.time() - started)

    def close(self) -> None:
        """Release the interpreter. Safe to call repeatedly or before load()."""
        with self._lock:
            if self._interpreter is None:
                return
            close = getattr(self._interpreter, 'close', None)
            if callable(close):
                close()
            self._interpreter = None
            self._input_detail = None
            self._output_detail = None
        logger.info("Model closed")

    def _require_loaded(self) -> None:
        if self._interpreter is None:
            raise InferenceError("Interpreter is not loaded")
