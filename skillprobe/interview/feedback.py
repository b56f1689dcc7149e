"""
Feedback synthesis at the end of an interview.

The rating itself is a policy. The default policy does not look at the
conversation at all; it only records the session facts and fills in a fixed
"good" assessment, so a real assessment can be swapped in without touching
the session.
"""
import logging
from typing import Protocol, Sequence

from .models import Settings, Turn
from .schemas import FeedbackInsights, InterviewFeedback, Rating, SkillRatings

logger = logging.getLogger("feedback")


class FeedbackPolicy(Protocol):
    """Turns a finished session into feedback for the persistence collaborator."""

    def synthesize(self, settings: Settings, turns: Sequence[Turn], duration: int) -> InterviewFeedback:
        ...


def build_insights(settings: Settings, turns: Sequence[Turn], duration: int) -> FeedbackInsights:
    """Session facts shared by every policy."""
    return FeedbackInsights(
        session_duration=duration,
        messages_count=len(turns),
        job_role=settings.job_role,
    )


class PlaceholderFeedbackPolicy:
    """Fixed "good" feedback regardless of what was said."""

    def synthesize(self, settings: Settings, turns: Sequence[Turn], duration: int) -> InterviewFeedback:
        logger.info(f"Synthesizing placeholder feedback for {settings.job_role} "
                    f"({duration}s, {len(turns)} messages)")
        return InterviewFeedback(
            overall_rating=Rating.GOOD,
            strengths="Good communication and technical knowledge demonstrated.",
            improvements="Consider providing more specific examples in responses.",
            summary="Interview completed successfully with good engagement.",
            skill_ratings=SkillRatings(
                communication=Rating.GOOD,
                technical=Rating.GOOD,
                behavioral=Rating.GOOD,
            ),
            insights=build_insights(settings, turns, duration),
        )
