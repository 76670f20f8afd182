"""Session controller: the listening state machine exposed to the presentation layer."""

import logging
import threading
from dataclasses import replace
from typing import Callable, Optional

from pubsub import pub

from ..audio.permission import MicrophonePermission
from ..errors import AudioStreamError
from ..inference.engine import InferenceEngine
from ..models.recognition import RecognitionResult
from ..models.session import (
    SessionState,
    SessionStatus,
    STATUS_NOT_RECORDING,
    STATUS_RECORDING,
)
from .capture_pipeline import CapturePipeline

logger = logging.getLogger(__name__)


def _status_listener_spec(status: SessionStatus) -> None:
    """Observers receive every new snapshot as ``status``."""


class SessionController:
    """Owns the Idle/Recording state and the lifecycle of the recognition pipeline.

    Observers read ``status`` (or its ``status_text``, ``is_listening`` and
    ``result_text`` shortcuts) and may subscribe to ``status_topic``, which
    receives a fresh immutable ``SessionStatus`` on every change. Only the
    controller writes that state.
    """

    def __init__(self,
                 permission: MicrophonePermission,
                 pipeline: CapturePipeline,
                 engine: InferenceEngine,
                 status_topic: str = "session.status"):
        """Initialize session controller.

        Args:
            permission: Microphone permission gate
            pipeline: Capture pipeline feeding the engine
            engine: Inference engine used by the pipeline
            status_topic: Pub/sub topic receiving SessionStatus snapshots
        """
        self.permission = permission
        self.pipeline = pipeline
        self.engine = engine
        self.status_topic = status_topic

        # Chunk results and stream errors arrive on worker threads
        self._lock = threading.RLock()
        self._status = SessionStatus()
        # Bumped on every successful start; stream errors carry the value they belong to
        self._generation = 0
        pub.getDefaultTopicMgr().getOrCreateTopic(status_topic, _status_listener_spec)

        self.pipeline.error_callback = self._on_stream_error
        pub.subscribe(self._on_result, self.pipeline.result_topic)

    # Observer interface

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def state(self) -> SessionState:
        return self._status.state

    @property
    def is_listening(self) -> bool:
        return self._status.is_listening

    @property
    def status_text(self) -> str:
        return self._status.status_text

    @property
    def result(self) -> Optional[RecognitionResult]:
        return self._status.result

    @property
    def result_text(self) -> str:
        return self._status.result_text

    def subscribe(self, listener: Callable[[SessionStatus], None]) -> None:
        """Register ``listener(status=...)`` for status changes.

        pubsub holds listeners weakly; the caller must keep ``listener`` alive.
        """
        pub.subscribe(listener, self.status_topic)

    def unsubscribe(self, listener: Callable[[SessionStatus], None]) -> None:
        pub.unsubscribe(listener, self.status_topic)

    # Lifecycle

    def init(self) -> bool:
        """Check permission, open the audio device and load the model.

        Failures are logged and swallowed; the controller stays usable and the
        failing step is retried (and reported) on the next start attempt.

        Returns:
            True if every step succeeded
        """
        logger.info("Initializing session services...")
        steps = (
            ("microphone permission", self.permission.require),
            ("audio device", self.pipeline.open),
            ("model", self.engine.load),
        )
        for name, step in steps:
            try:
                step()
            except Exception as e:
                logger.error(f"Initialization error ({name}): {e}")
                self._update(last_error=str(e))
                return False
        logger.info("Session services ready")
        return True

    def toggle(self) -> SessionState:
        """Switch between Idle and Recording.

        Returns:
            The state after the transition (Idle if starting failed)
        """
        with self._lock:
            if self._status.state is SessionState.IDLE:
                return self.start()
            return self.stop()

    def start(self) -> SessionState:
        """Transition Idle -> Recording. Any failure leaves the session Idle."""
        with self._lock:
            if self._status.state is SessionState.RECORDING:
                return self._status.state

            logger.info("Starting listening session")
            try:
                self.permission.require()
                if not self.pipeline.is_open:
                    self.pipeline.open()
                if not self.engine.is_loaded:
                    self.engine.load()
                self.pipeline.start()
            except Exception as e:
                logger.error(f"Error starting recording: {e}")
                self._rollback()
                self._update(state=SessionState.IDLE,
                             status_text=STATUS_NOT_RECORDING,
                             last_error=str(e))
                return self._status.state

            self._generation += 1
            self._update(state=SessionState.RECORDING,
                         status_text=STATUS_RECORDING,
                         last_error=None)
            return self._status.state

    def stop(self) -> SessionState:
        """Transition Recording -> Idle. Calling it while Idle is a no-op."""
        with self._lock:
            if self._status.state is SessionState.IDLE:
                logger.debug("Stop requested while idle")
                return self._status.state

            logger.info("Stopping listening session")
            try:
                self.pipeline.stop()
            except Exception as e:
                logger.error(f"Error stopping recording: {e}")
                self._update(last_error=str(e))
            self._update(state=SessionState.IDLE, status_text=STATUS_NOT_RECORDING)
            return self._status.state

    def close(self) -> None:
        """Stop listening and release the pipeline and the model.

        Every step runs even if an earlier one fails.
        """
        logger.info("Closing session controller")
        steps = (
            ("stop recording", self.stop),
            ("close capture pipeline", self.pipeline.close),
            ("close model", self.engine.close),
        )
        for name, step in steps:
            try:
                step()
            except Exception as e:
                logger.error(f"Cleanup error ({name}): {e}")

        try:
            pub.unsubscribe(self._on_result, self.pipeline.result_topic)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")

    # Pipeline callbacks

    def _on_result(self, result: RecognitionResult) -> None:
        with self._lock:
            if self._status.state is not SessionState.RECORDING:
                logger.debug(f"Discarding result for {result.chunk_id}: session is idle")
                return
            logger.info(result.display_text)
            self._update(result=result)

    def _on_stream_error(self, error: AudioStreamError) -> None:
        # Runs on the capture thread, which stop() would otherwise join
        generation = self._generation
        thread = threading.Thread(target=self._auto_stop, args=(error, generation), daemon=True)
        thread.name = "SessionAutoStop"
        thread.start()

    def _auto_stop(self, error: AudioStreamError, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._status.state is not SessionState.RECORDING:
                logger.debug(f"Ignoring error from an earlier recording: {error}")
                return
            logger.error(f"Recording error, stopping session: {error}")
            self.stop()
            self._update(last_error=str(error))

    def _rollback(self) -> None:
        try:
            self.pipeline.stop()
        except Exception as e:
            logger.warning(f"Error rolling back capture start: {e}")

    def _update(self, **changes) -> None:
        with self._lock:
            status = replace(self._status, **changes)
            if status == self._status:
                return
            self._status = status
        pub.sendMessage(self.status_topic, status=status)
