"""Interview session components.

This module contains the session state machine for live voice interviews,
together with its data models, events, feedback synthesis and the services
it talks to.
"""

# Session controller
from .session import InterviewSession, format_duration
from .lifecycle import SessionResources

# Data models
from .models import Settings, Turn, TurnKind, TurnOrigin, SessionSnapshot

# Structured schemas and state
from .schemas import (
    SessionPhase, ConnectionStatus, Rating,
    SkillRatings, FeedbackInsights, InterviewFeedback
)

# Errors
from .errors import (
    SessionError, MediaUnavailable, ChannelOpenFailed,
    ChannelRuntimeError, EncodingFault
)

# Feedback and prompts
from .feedback import FeedbackPolicy, PlaceholderFeedbackPolicy
from .prompts import InterviewPrompts, build_system_prompt

# Collaborator services
from .services import SessionGrant, InterviewRecordService, LocalInterviewRecords

# Event system
from .events import (
    ChannelEvent, ChannelEventKind,
    InterviewEventBus, EventLogger, SessionMetrics,
    SessionEventType, SessionEvent, SessionStartedEvent,
    StateChangedEvent, RecordingToggledEvent, TurnReceivedEvent,
    SessionEndedEvent, SessionErroredEvent, NoticeEvent
)

__all__ = [
    # Session
    "InterviewSession", "format_duration", "SessionResources",

    # Data models
    "Settings", "Turn", "TurnKind", "TurnOrigin", "SessionSnapshot",

    # Schemas and state
    "SessionPhase", "ConnectionStatus", "Rating",
    "SkillRatings", "FeedbackInsights", "InterviewFeedback",

    # Errors
    "SessionError", "MediaUnavailable", "ChannelOpenFailed",
    "ChannelRuntimeError", "EncodingFault",

    # Feedback and prompts
    "FeedbackPolicy", "PlaceholderFeedbackPolicy",
    "InterviewPrompts", "build_system_prompt",

    # Services
    "SessionGrant", "InterviewRecordService", "LocalInterviewRecords",

    # Events
    "ChannelEvent", "ChannelEventKind",
    "InterviewEventBus", "EventLogger", "SessionMetrics",
    "SessionEventType", "SessionEvent", "SessionStartedEvent",
    "StateChangedEvent", "RecordingToggledEvent", "TurnReceivedEvent",
    "SessionEndedEvent", "SessionErroredEvent", "NoticeEvent",
]
