"""Single-worker consumer that runs recognition on captured audio chunks."""

import logging
import queue
import threading
import time
from typing import Callable, Optional

from ..errors import InferenceError
from ..models.events import AudioEvent
from ..models.recognition import RecognitionResult
from .engine import InferenceEngine

logger = logging.getLogger(__name__)


class RecognitionAudioConsumer:
    """Queues audio chunks and classifies them one at a time on a worker thread.

    Chunks are processed strictly in arrival order. A chunk that arrives
    while the previous one is still being classified waits in the queue;
    nothing is dropped except empty chunks.
    """

    def __init__(self,
                 engine: InferenceEngine,
                 result_callback: Optional[Callable[[RecognitionResult], None]] = None,
                 name: str = "recognition"):
        self.name = name
        self.engine = engine
        self.result_callback = result_callback

        self.task_queue: "queue.Queue[Optional[AudioEvent]]" = queue.Queue()
        self.shutdown_event = threading.Event()
        self.worker_thread: Optional[threading.Thread] = None

        # Statistics
        self.chunks_received = 0
        self.empty_chunks = 0
        self.chunks_recognized = 0
        self.chunks_skipped = 0

        self._start_worker()

    def _start_worker(self) -> None:
        thread = threading.Thread(target=self._worker_loop, daemon=True)
        thread.name = f"worker_{self.name}"
        thread.start()
        self.worker_thread = thread
        logger.info(f"Started {self.name} consumer worker")

    def _worker_loop(self) -> None:
        """Take chunks off the queue until a sentinel arrives."""
        thread_name = threading.current_thread().name
        logger.debug(f"Worker thread {thread_name} starting")
        while True:
            event = self.task_queue.get()
            try:
                if event is None:
                    logger.debug(f"Worker {thread_name} received sentinel, exiting.")
                    break
                self._recognize(event)
            except Exception as e:
                logger.error(f"Unhandled exception in recognition task for {thread_name}: {e}",
                             exc_info=True)
            finally:
                self.task_queue.task_done()
        logger.debug(f"Worker thread {thread_name} exiting.")

    def on_audio_chunk(self, event: AudioEvent) -> None:
        """Queue a captured chunk. Empty chunks are dropped."""
        if self.shutdown_event.is_set():
            return

        self.chunks_received += 1
        if event.is_empty:
            self.empty_chunks += 1
            logger.debug(f"Dropping empty chunk {event.chunk_id}")
            return

        self.task_queue.put(event)

    def _recognize(self, event: AudioEvent) -> None:
        try:
            result = self.engine.recognize(event.audio_data, chunk_id=event.chunk_id)
        except InferenceError as e:
            self.chunks_skipped += 1
            logger.warning(f"Skipping {event.chunk_id}: {e}")
            return

        if result is None:
            self.chunks_skipped += 1
            logger.debug(f"No result for {event.chunk_id}, skipping")
            return

        self.chunks_recognized += 1
        logger.debug(f"{event.chunk_id}: {result.display_text} "
                     f"in {result.processing_time * 1000:.1f}ms")
        if self.result_callback:
            self.result_callback(result)

    def discard_pending(self) -> int:
        """Drop every queued chunk that has not started processing yet."""
        discarded = 0
        while True:
            try:
                event = self.task_queue.get_nowait()
            except queue.Empty:
                break
            if event is None:
                # Keep the shutdown sentinel for the worker
                self.task_queue.task_done()
                self.task_queue.put(None)
                break
            discarded += 1
            self.task_queue.task_done()
        if discarded:
            logger.debug(f"Discarded {discarded} pending chunks")
        return discarded

    def wait_until_idle(self, timeout: float = 5.0) -> bool:
        """Wait until every queued chunk has been processed."""
        deadline = time.time() + timeout
        while time.time() < deadline:
            if self.task_queue.unfinished_tasks == 0:
                return True
            time.sleep(0.01)
        return self.task_queue.unfinished_tasks == 0

    def shutdown(self, timeout: float = 5.0) -> bool:
        """Stop accepting chunks, let the current one finish and stop the worker."""
        if self.shutdown_event.is_set():
            return True
        logger.info(f"Shutting down {self.name} consumer...")
        self.shutdown_event.set()
        self.discard_pending()
        self.task_queue.put(None)

        if self.worker_thread and self.worker_thread is not threading.current_thread():
            self.worker_thread.join(timeout)
            if self.worker_thread.is_alive():
                logger.warning(f"Worker thread {self.worker_thread.name} did not terminate cleanly.")
                return False

        logger.info(f"{self.name} consumer shutdown complete.")
        return True

    def get_pending_task_count(self) -> int:
        """Get the number of chunks waiting for recognition."""
        return self.task_queue.qsize()
