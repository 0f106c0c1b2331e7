"""
Survey Session Registry - open survey sessions held in memory

A survey stays open between requests so edits accumulate in one session
and the autosave task flushes them in the background. Sessions idle longer
than SESSION_IDLE_TTL_SECONDS are evicted once they have been saved.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from ohsurvey.core.logging_config import logger
from ohsurvey.services.survey_session import SurveySession


@dataclass
class RegisteredSession:
    session: SurveySession
    owner_id: str
    last_access: datetime = field(default_factory=datetime.utcnow)


class SurveySessionRegistry:
    """Open sessions by survey id"""

    def __init__(self):
        self._sessions: Dict[str, RegisteredSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, survey_id: str) -> bool:
        return survey_id in self._sessions

    def get(self, survey_id: str, owner_id: str) -> Optional[SurveySession]:
        """Open session for ``survey_id`` if ``owner_id`` owns it"""
        entry = self._sessions.get(survey_id)
        if entry is None or entry.owner_id != owner_id:
            return None
        entry.last_access = datetime.utcnow()
        return entry.session

    def open(self, session: SurveySession, owner_id: str) -> SurveySession:
        """Register ``session``; an already open session for the survey wins"""
        existing = self._sessions.get(session.survey_id)
        if existing is not None:
            existing.last_access = datetime.utcnow()
            return existing.session
        self._sessions[session.survey_id] = RegisteredSession(session=session, owner_id=owner_id)
        logger.debug(f"[Sessions] Opened {session.survey_id} (read_only={session.read_only})")
        return session

    def discard(self, survey_id: str) -> Optional[SurveySession]:
        entry = self._sessions.pop(survey_id, None)
        return entry.session if entry else None

    def owner_of(self, survey_id: str) -> Optional[str]:
        entry = self._sessions.get(survey_id)
        return entry.owner_id if entry else None

    def dirty_sessions(self) -> List[SurveySession]:
        return [entry.session for entry in self._sessions.values() if entry.session.dirty]

    def evict_idle(self, ttl_seconds: int) -> List[str]:
        """Drop clean sessions idle longer than ``ttl_seconds``; dirty ones stay until saved"""
        cutoff = datetime.utcnow() - timedelta(seconds=ttl_seconds)
        evicted = [
            survey_id for survey_id, entry in self._sessions.items()
            if entry.last_access < cutoff and not entry.session.dirty
        ]
        for survey_id in evicted:
            del self._sessions[survey_id]
        if evicted:
            logger.info(f"[Sessions] Evicted {len(evicted)} idle session(s)")
        return evicted

    def clear(self) -> None:
        self._sessions.clear()


session_registry = SurveySessionRegistry()
