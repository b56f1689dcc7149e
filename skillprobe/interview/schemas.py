"""
State enums and structured feedback schemas for the interview session.
"""
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class SessionPhase(str, Enum):
    """Lifecycle phase of an interview session."""
    IDLE = "idle"
    INITIALIZING = "initializing"
    ACTIVE = "active"
    ENDING = "ending"
    ERRORED = "errored"


class ConnectionStatus(str, Enum):
    """Status of the live dialogue channel as seen by the session."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


class Rating(str, Enum):
    """Rating scale shared by the overall and per-skill ratings."""
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    NEEDS_IMPROVEMENT = "needs_improvement"


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, use_enum_values=False)


class SkillRatings(_CamelModel):
    communication: Rating
    technical: Rating
    behavioral: Rating


class FeedbackInsights(_CamelModel):
    """Facts about the session itself, independent of any rating policy."""
    session_duration: int = Field(ge=0, alias="sessionDuration")
    messages_count: int = Field(ge=0, alias="messagesCount")
    job_role: str = Field(alias="jobRole")


class InterviewFeedback(_CamelModel):
    """Feedback handed to the persistence collaborator when an interview ends."""
    overall_rating: Rating = Field(alias="overallRating")
    strengths: str
    improvements: str
    summary: str
    skill_ratings: SkillRatings = Field(alias="skillRatings")
    insights: FeedbackInsights = Field(alias="geminiInsights")

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the camelCase shape stored by the backend."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "InterviewFeedback":
        """
        Validate a stored feedback payload.

        Raises:
            pydantic.ValidationError: If the payload does not match the schema
        """
        return cls.model_validate(payload)
