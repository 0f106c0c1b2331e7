from fastapi import Depends, HTTPException, status, Path, Query, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional
import uuid

from ohsurvey.core.database import get_db
from ohsurvey.core.logging_config import set_user_id
from ohsurvey.core.security import decode_token
from ohsurvey.domain.aggregate import is_read_only
from ohsurvey.domain.area_path import AreaPath, path_from_query
from ohsurvey.models.user import User
from ohsurvey.services.session_registry import session_registry
from ohsurvey.services.survey_service import SurveyService
from ohsurvey.services.survey_session import SurveySession

security = HTTPBearer()


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user"""

    token = credentials.credentials
    payload = decode_token(token)

    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type"
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload"
        )

    try:
        uuid.UUID(user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID format"
        )

    result = await db.execute(
        select(User).where(User.id == user_id)
    )
    user = result.scalar_one_or_none()

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive"
        )

    # Rate limiter keys and log context
    request.state.user_id = str(user.id)
    set_user_id(str(user.id))

    return user


# ==================== Survey Session Dependencies ====================

async def get_survey_session(
    survey_id: str = Path(..., description="Survey ID"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> SurveySession:
    """
    Open (or reuse) the caller's session for a survey.
    Raises SurveyNotFoundError if the survey is missing or owned by someone else.

    Completed and submitted surveys open read-only; writable sessions
    reconcile their stores once on open.

    Usage:
        @router.get("/{survey_id}")
        async def get_survey(session: SurveySession = Depends(get_survey_session)):
            return session.aggregate
    """
    user_id_str = str(current_user.id)

    session = session_registry.get(survey_id, user_id_str)
    if session is not None:
        return session

    aggregate = await SurveyService(db).load_aggregate(survey_id, user_id_str)
    session = SurveySession(aggregate, read_only=is_read_only(aggregate))
    return session_registry.open(session, user_id_str)


def get_area_path(
    main: int = Query(..., ge=0, description="Main area index"),
    sub: Optional[int] = Query(None, ge=0, description="Sub area index"),
    ss: Optional[int] = Query(None, ge=0, description="Sub-sub area index (requires sub)"),
) -> AreaPath:
    """Area path from the main/sub/ss query parameters"""
    return path_from_query(main, sub, ss)


def get_optional_area_path(
    main: Optional[int] = Query(None, ge=0, description="Main area index"),
    sub: Optional[int] = Query(None, ge=0, description="Sub area index"),
    ss: Optional[int] = Query(None, ge=0, description="Sub-sub area index (requires sub)"),
) -> Optional[AreaPath]:
    """Like get_area_path, but no parameters means no path"""
    if main is None and sub is None and ss is None:
        return None
    return path_from_query(main, sub, ss)
