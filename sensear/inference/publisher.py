"""Recognition publisher module for pub/sub event publishing."""

import logging
from typing import Callable
from pubsub import pub
from ..models.recognition import RecognitionResult

logger = logging.getLogger(__name__)


def _result_listener_spec(result: RecognitionResult) -> None:
    """Listeners receive each recognition as ``result``."""


class RecognitionPublisher:
    """Publishes recognition results using pubsub.pub."""

    def __init__(self, topic: str = "recognition.result"):
        """Initialize recognition publisher.

        Args:
            topic: Pub/sub topic name for recognition results
        """
        self.topic = topic
        pub.getDefaultTopicMgr().getOrCreateTopic(topic, _result_listener_spec)
        logger.info(f"RecognitionPublisher initialized with topic: {topic}")

    def publish_recognition_result(self, result: RecognitionResult) -> None:
        """Publish a recognition result to the pub/sub topic."""
        pub.sendMessage(self.topic, result=result)
        logger.debug(f"Published recognition result: {result.chunk_id} ({result.category})")

    def get_callback(self) -> Callable[[RecognitionResult], None]:
        """Get callback function for RecognitionAudioConsumer to use."""
        return self.publish_recognition_result
