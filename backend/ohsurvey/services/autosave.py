"""
Autosave Service - periodic background flush of open survey sessions

Every AUTOSAVE_INTERVAL_SECONDS the service saves each dirty session
through a fresh database session, then evicts clean sessions that have been
idle past SESSION_IDLE_TTL_SECONDS. A failed save is logged and the session
stays dirty, so the next tick writes whatever state is current by then.
Read-only sessions are never dirty and are never written.
"""

import asyncio
from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ohsurvey.core.config import settings
from ohsurvey.core.database import AsyncSessionLocal
from ohsurvey.core.exceptions import SurveyAppError
from ohsurvey.core.logging_config import logger
from ohsurvey.services.session_registry import SurveySessionRegistry, session_registry
from ohsurvey.services.survey_service import SurveyService
from ohsurvey.services.survey_session import SurveySession


async def persist_session(session: SurveySession, db: AsyncSession) -> int:
    """Save the session's current aggregate with ``db`` and mark that revision saved"""
    revision = session.revision
    await SurveyService(db).save_aggregate(session.aggregate, revision)
    session.mark_saved(revision)
    return revision


async def save_session(session: SurveySession, session_factory: Callable = AsyncSessionLocal) -> int:
    """persist_session() through a fresh database session"""
    async with session_factory() as db:
        return await persist_session(session, db)


class AutosaveService:
    """Background task owned by the application lifespan"""

    def __init__(
        self,
        registry: SurveySessionRegistry = session_registry,
        interval_seconds: float = None,
        idle_ttl_seconds: int = None,
        session_factory: Callable = AsyncSessionLocal,
    ):
        self.registry = registry
        self.interval_seconds = interval_seconds if interval_seconds is not None else settings.AUTOSAVE_INTERVAL_SECONDS
        self.idle_ttl_seconds = idle_ttl_seconds if idle_ttl_seconds is not None else settings.SESSION_IDLE_TTL_SECONDS
        self.session_factory = session_factory

        self.running = False
        self._task: Optional[asyncio.Task] = None

        self.stats = {
            "saved": 0,
            "failed": 0,
            "evicted": 0,
            "last_flush": None,
        }

    async def start(self):
        """Start the background autosave loop"""
        if self.running:
            logger.warning("[Autosave] Service already running")
            return

        self.running = True
        self._task = asyncio.create_task(self._autosave_loop())
        logger.info(f"[Autosave] Started - Interval: {self.interval_seconds}s, Idle TTL: {self.idle_ttl_seconds}s")

    async def stop(self):
        """Stop the loop and write any remaining changes"""
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self.flush()
        logger.info("[Autosave] Stopped")

    async def _autosave_loop(self):
        while self.running:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.flush()
                evicted = self.registry.evict_idle(self.idle_ttl_seconds)
                self.stats["evicted"] += len(evicted)
            except Exception as e:
                logger.error(f"[Autosave] Error in autosave loop: {e}", exc_info=True)

    async def flush(self) -> Dict[str, int]:
        """Save every dirty session once"""
        results = {"saved": 0, "failed": 0}
        for session in self.registry.dirty_sessions():
            try:
                await save_session(session, self.session_factory)
                results["saved"] += 1
            except SurveyAppError as e:
                results["failed"] += 1
                logger.warning(
                    f"[Autosave] Save failed for {session.survey_id}, will retry next tick: {e.message}",
                    extra={"event_type": "autosave_failed", "error_code": e.code},
                )

        self.stats["saved"] += results["saved"]
        self.stats["failed"] += results["failed"]
        self.stats["last_flush"] = datetime.utcnow().isoformat()
        if results["saved"] or results["failed"]:
            logger.info(f"[Autosave] Flush complete: {results['saved']} saved, {results['failed']} failed")
        return results


autosave_service = AutosaveService()
