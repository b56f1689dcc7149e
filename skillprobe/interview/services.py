"""
Collaborator services for the interview session: session grants and
feedback delivery.
"""
import asyncio
import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import requests

from ..config import API_TIMEOUT, LOG_FILE
from .models import Settings
from .schemas import InterviewFeedback

logger = logging.getLogger("services")


@dataclass(frozen=True)
class SessionGrant:
    """Interview record id plus the ephemeral token that may open its live session."""
    interview_id: int
    token: str


class InterviewRecordService:
    """
    REST client for the backend that owns interview records.

    Calls are blocking `requests` calls run in a worker thread. Nothing is
    retried; a failed call raises and the caller decides what to tell the user.
    """

    def __init__(self,
                 base_url: str,
                 auth_token: Optional[str] = None,
                 timeout: int = API_TIMEOUT,
                 http: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self.http = http or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    def _post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        resp = self.http.post(url, headers=self._headers(), json=body, timeout=self.timeout)
        if resp.status_code >= 400:
            raise RuntimeError(f"Interview API error {resp.status_code}: {resp.text}")
        if not resp.content:
            return {}
        return resp.json()

    def create_session_sync(self, settings: Settings, resume_analysis_id: Optional[int] = None) -> SessionGrant:
        """
        Create an interview record and obtain a live session token for it.

        Raises:
            RuntimeError: On HTTP errors or when the response has no token
        """
        body = {
            "jobRole": settings.job_role,
            "resumeAnalysisId": resume_analysis_id,
            "settings": settings.to_payload(),
        }
        data = self._post("/interviews", body)
        token = data.get("token")
        if not token or "interviewId" not in data:
            raise RuntimeError(f"Interview API returned no session token: {data}")
        logger.info(f"Created interview {data['interviewId']} for {settings.job_role}")
        return SessionGrant(interview_id=int(data["interviewId"]), token=token)

    def complete_interview_sync(self, interview_id: int, feedback: InterviewFeedback) -> None:
        """Store the end-of-interview feedback on the record."""
        self._post(f"/interviews/{interview_id}/complete", {"feedback": feedback.to_payload()})
        logger.info(f"Stored feedback for interview {interview_id}")

    async def create_session(self, settings: Settings, resume_analysis_id: Optional[int] = None) -> SessionGrant:
        return await asyncio.to_thread(self.create_session_sync, settings, resume_analysis_id)

    async def complete_interview(self, interview_id: int, feedback: InterviewFeedback) -> None:
        await asyncio.to_thread(self.complete_interview_sync, interview_id, feedback)


class LocalInterviewRecords:
    """
    Stand-in for the backend when running from the console: tokens are minted
    directly with the API key and feedback is written as JSON to the workdir.
    """

    def __init__(self, api_key: str, workdir: Optional[str] = None):
        self.api_key = api_key
        self.workdir = workdir or os.path.dirname(LOG_FILE) or "."

    async def create_session(self, settings: Settings, resume_analysis_id: Optional[int] = None) -> SessionGrant:
        from ..infrastructure.llm import mint_ephemeral_token

        token = await asyncio.to_thread(mint_ephemeral_token, self.api_key, settings)
        return SessionGrant(interview_id=int(datetime.now().timestamp()), token=token)

    async def complete_interview(self, interview_id: int, feedback: InterviewFeedback) -> None:
        os.makedirs(self.workdir, exist_ok=True)
        path = os.path.join(self.workdir, f"interview_{interview_id}.json")
        payload = json.dumps(feedback.to_payload(), indent=2)
        await asyncio.to_thread(_write_text, path, payload)
        logger.info(f"Wrote feedback for interview {interview_id} to {path}")


def _write_text(path: str, text: str) -> None:
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
