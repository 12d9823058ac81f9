"""Broadcast session state changes over pubsub."""

import logging
from typing import Optional

from pubsub import pub

from ..models.events import SESSION_STATE_TOPIC, RecordingStateEvent
from ..models.session import Session, SessionStatus

logger = logging.getLogger(__name__)


def state_event_for(session: Optional[Session]) -> RecordingStateEvent:
    """Build the ``{recording, transcribing}`` event describing ``session``."""
    if session is None:
        return RecordingStateEvent(recording=False, transcribing=False)
    return RecordingStateEvent(
        recording=session.status == SessionStatus.RECORDING,
        transcribing=session.status == SessionStatus.TRANSCRIBING,
        session_id=session.session_id,
        status=session.status,
    )


class StatePublisher:
    """Publishes RecordingStateEvents using pubsub.pub.

    ``pub.sendMessage`` delivers synchronously, so listeners see events in
    exactly the order the state machine emits them.
    """

    def __init__(self, topic: str = SESSION_STATE_TOPIC):
        """Initialize state publisher.

        Args:
            topic: Pub/sub topic name for session state events
        """
        self.topic = topic
        self.last_event: Optional[RecordingStateEvent] = None
        logger.info(f"StatePublisher initialized with topic: {topic}")

    def publish(self, session: Optional[Session]) -> RecordingStateEvent:
        event = state_event_for(session)
        self.last_event = event
        logger.debug(f"Session state: recording={event.recording}, "
                     f"transcribing={event.transcribing}, status={event.status}")
        pub.sendMessage(self.topic, event=event)
        return event
