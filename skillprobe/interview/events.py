"""
Event plumbing for the interview session.

Two kinds of events live here:
- ChannelEvent: what the live dialogue channel reports. All four channel
  callbacks (open, message, error, close) are funnelled into one queue of
  tagged events so the session handles them in a single place.
- SessionEvent: what the session reports to the UI through InterviewEventBus.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, List, Callable, Optional

from .models import Turn, SessionSnapshot

logger = logging.getLogger("events")


# =============================================================================
# CHANNEL EVENTS (live dialogue channel -> session)
# =============================================================================

class ChannelEventKind(str, Enum):
    OPEN = "open"
    TURN = "turn"
    ERROR = "error"
    CLOSE = "close"


@dataclass(frozen=True)
class ChannelEvent:
    """One tagged event from the live dialogue channel."""
    kind: ChannelEventKind
    turn: Optional[Turn] = None
    reason: Optional[str] = None

    @classmethod
    def opened(cls) -> "ChannelEvent":
        return cls(ChannelEventKind.OPEN)

    @classmethod
    def received(cls, turn: Turn) -> "ChannelEvent":
        return cls(ChannelEventKind.TURN, turn=turn)

    @classmethod
    def failed(cls, reason: str) -> "ChannelEvent":
        return cls(ChannelEventKind.ERROR, reason=reason)

    @classmethod
    def closed(cls, reason: str = "") -> "ChannelEvent":
        return cls(ChannelEventKind.CLOSE, reason=reason)


# =============================================================================
# SESSION EVENTS (session -> UI)
# =============================================================================

class SessionEventType(str, Enum):
    """Types of session events."""
    SESSION_STARTED = "session_started"
    STATE_CHANGED = "state_changed"
    RECORDING_TOGGLED = "recording_toggled"
    TURN_RECEIVED = "turn_received"
    SESSION_ENDED = "session_ended"
    SESSION_ERRORED = "session_errored"
    NOTICE = "notice"


@dataclass
class SessionEvent:
    """Base class for all session events."""
    event_type: SessionEventType
    timestamp: float
    data: Dict[str, Any]


class SessionStartedEvent(SessionEvent):
    """Fired when the channel opens and the interview room becomes active."""
    def __init__(self, timestamp: float, job_role: str):
        super().__init__(
            event_type=SessionEventType.SESSION_STARTED,
            timestamp=timestamp,
            data={"job_role": job_role}
        )


class StateChangedEvent(SessionEvent):
    """Fired whenever the visible session state changes."""
    def __init__(self, timestamp: float, snapshot: SessionSnapshot):
        super().__init__(
            event_type=SessionEventType.STATE_CHANGED,
            timestamp=timestamp,
            data={"snapshot": snapshot}
        )


class RecordingToggledEvent(SessionEvent):
    """Fired when the local microphone gate is flipped."""
    def __init__(self, timestamp: float, is_recording: bool):
        super().__init__(
            event_type=SessionEventType.RECORDING_TOGGLED,
            timestamp=timestamp,
            data={"is_recording": is_recording}
        )


class TurnReceivedEvent(SessionEvent):
    """Fired for every inbound turn appended to the log."""
    def __init__(self, timestamp: float, turn: Turn, index: int):
        super().__init__(
            event_type=SessionEventType.TURN_RECEIVED,
            timestamp=timestamp,
            data={"turn": turn, "index": index}
        )


class SessionEndedEvent(SessionEvent):
    """Fired when the user ends the interview and feedback is synthesized."""
    def __init__(self, timestamp: float, duration: int, message_count: int, persisted: bool):
        super().__init__(
            event_type=SessionEventType.SESSION_ENDED,
            timestamp=timestamp,
            data={
                "duration": duration,
                "message_count": message_count,
                "persisted": persisted
            }
        )


class SessionErroredEvent(SessionEvent):
    """Fired when setup fails or the channel dies mid-session."""
    def __init__(self, timestamp: float, error_type: str, message: str):
        super().__init__(
            event_type=SessionEventType.SESSION_ERRORED,
            timestamp=timestamp,
            data={"error_type": error_type, "message": message}
        )


class NoticeEvent(SessionEvent):
    """Short user-facing notice (the toasts of the interview room)."""
    def __init__(self, timestamp: float, level: str, message: str):
        super().__init__(
            event_type=SessionEventType.NOTICE,
            timestamp=timestamp,
            data={"level": level, "message": message}
        )


EventHandler = Callable[[SessionEvent], None]


class InterviewEventBus:
    """Event bus carrying session events to the UI and other observers."""

    def __init__(self):
        self._handlers: Dict[SessionEventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []

    def subscribe(self, event_type: SessionEventType, handler: EventHandler) -> None:
        """
        Subscribe to specific event type.

        Args:
            event_type: Type of event to listen for
            handler: Function to call when event occurs
        """
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type}")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to all events."""
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def unsubscribe(self, event_type: SessionEventType, handler: EventHandler) -> None:
        """Unsubscribe from specific event type."""
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(f"Unsubscribed handler from {event_type}")
            except ValueError:
                logger.warning(f"Handler not found for {event_type}")

    def emit(self, event: SessionEvent) -> None:
        """
        Emit an event to all subscribers. Handler failures are logged and
        never reach the session.
        """
        logger.debug(f"Emitting event: {event.event_type}")

        for handler in self._handlers.get(event.event_type, []):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type}: {e}")

        for handler in self._global_handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in global event handler: {e}")

    def clear_handlers(self) -> None:
        """Clear all event handlers."""
        self._handlers.clear()
        self._global_handlers.clear()
        logger.debug("Cleared all event handlers")


class EventLogger:
    """Logs session events for debugging."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger("event_logger")
        self.logger.setLevel(log_level)

    def handle_event(self, event: SessionEvent) -> None:
        # Snapshots arrive on every state change; keep them at debug
        if event.event_type == SessionEventType.STATE_CHANGED:
            self.logger.debug(f"Event: {event.event_type} | Data: {event.data}")
        else:
            self.logger.info(f"Event: {event.event_type} | Data: {event.data}")


class SessionMetrics:
    """Collects counters from session events."""

    def __init__(self):
        self.sessions_started = 0
        self.sessions_ended = 0
        self.sessions_errored = 0
        self.turns_received = 0
        self.recording_toggles = 0

    def handle_event(self, event: SessionEvent) -> None:
        """Update metrics based on event."""
        if event.event_type == SessionEventType.SESSION_STARTED:
            self.sessions_started += 1
        elif event.event_type == SessionEventType.SESSION_ENDED:
            self.sessions_ended += 1
        elif event.event_type == SessionEventType.SESSION_ERRORED:
            self.sessions_errored += 1
        elif event.event_type == SessionEventType.TURN_RECEIVED:
            self.turns_received += 1
        elif event.event_type == SessionEventType.RECORDING_TOGGLED:
            self.recording_toggles += 1

    def get_metrics(self) -> Dict[str, int]:
        """Get current metrics snapshot."""
        return {
            "sessions_started": self.sessions_started,
            "sessions_ended": self.sessions_ended,
            "sessions_errored": self.sessions_errored,
            "turns_received": self.turns_received,
            "recording_toggles": self.recording_toggles
        }

    def reset(self) -> None:
        """Reset all metrics to zero."""
        self.sessions_started = 0
        self.sessions_ended = 0
        self.sessions_errored = 0
        self.turns_received = 0
        self.recording_toggles = 0
