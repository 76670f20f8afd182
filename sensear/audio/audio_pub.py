"""Audio publisher module for pub/sub event publishing."""

import logging
from pubsub import pub
from ..models.events import AudioEvent

logger = logging.getLogger(__name__)


def _audio_listener_spec(event: AudioEvent) -> None:
    """Listeners receive the captured chunk as ``event``."""


class AudioPublisher:
    """Publishes captured audio chunks using pubsub.pub."""

    def __init__(self, topic: str = "audio.chunk"):
        """Initialize audio publisher.

        Args:
            topic: Pub/sub topic name for audio events
        """
        self.topic = topic
        pub.getDefaultTopicMgr().getOrCreateTopic(topic, _audio_listener_spec)
        logger.info(f"AudioPublisher initialized with topic: {topic}")

    def publish_audio_event(self, audio_event: AudioEvent) -> None:
        """Publish an audio event to the pub/sub topic.

        Args:
            audio_event: AudioEvent to publish
        """
        pub.sendMessage(self.topic, event=audio_event)
