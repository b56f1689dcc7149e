"""
Interview prompt templates.

Kept apart from the session logic so the wording can be edited without
touching the state machine.
"""
from .models import Settings


class InterviewPrompts:
    """Collection of prompts sent to the live interviewer."""

    @staticmethod
    def system_prompt(job_role: str) -> str:
        """Context turn sent as soon as the live channel opens."""
        return f"""
You are an AI interviewer conducting a professional interview for a {job_role.strip()} position.
Be professional, ask relevant questions, and provide constructive feedback.
Keep responses concise and natural.
        """.strip()


def build_system_prompt(settings: Settings) -> str:
    return InterviewPrompts.system_prompt(settings.job_role)
