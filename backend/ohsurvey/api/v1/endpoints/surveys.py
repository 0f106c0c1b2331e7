from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ohsurvey.core.database import get_db
from ohsurvey.core.logging_config import logger
from ohsurvey.domain.aggregate import aggregate_to_dict
from ohsurvey.domain.tracker import completion_summary
from ohsurvey.models.user import User
from ohsurvey.modules.auth.dependencies import get_current_user, get_survey_session
from ohsurvey.schemas.survey import (
    SurveyCreate,
    SurveyUpdate,
    SurveySummary,
    SurveyListResponse,
    SurveyDetailResponse,
    SaveResponse,
    MetricsResponse,
)
from ohsurvey.services.area_metrics import compute_area_metrics
from ohsurvey.services.autosave import persist_session
from ohsurvey.services.session_registry import session_registry
from ohsurvey.services.survey_service import SurveyService
from ohsurvey.services.survey_session import SurveySession

router = APIRouter()


def survey_detail(session: SurveySession) -> dict:
    """Response body shared by every endpoint that returns the whole survey"""
    return {
        "survey": aggregate_to_dict(session.aggregate),
        "read_only": session.read_only,
        "dirty": session.dirty,
        "revision": session.revision,
        "completion": completion_summary(session.aggregate.areas),
    }


@router.post("", response_model=SurveyDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_survey(
    survey_data: SurveyCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Start a new survey"""
    aggregate = await SurveyService(db).create_survey(str(current_user.id), **survey_data.model_dump())
    await db.commit()

    session = session_registry.open(SurveySession(aggregate), str(current_user.id))
    return survey_detail(session)


@router.get("", response_model=SurveyListResponse)
async def list_surveys(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List the caller's surveys, newest first"""
    surveys, total = await SurveyService(db).list_surveys(str(current_user.id), page, page_size)
    return {
        "surveys": [SurveySummary.model_validate(s) for s in surveys],
        "total": total,
        "page": page,
        "page_size": page_size
    }


@router.get("/{survey_id}", response_model=SurveyDetailResponse)
async def get_survey(session: SurveySession = Depends(get_survey_session)):
    """Full survey, including whether it is open read-only"""
    return survey_detail(session)


@router.patch("/{survey_id}", response_model=SurveyDetailResponse)
async def update_survey(
    update: SurveyUpdate,
    session: SurveySession = Depends(get_survey_session)
):
    """Patch survey metadata"""
    fields = {name: value for name, value in update.model_dump(exclude_unset=True).items() if value is not None}
    session.patch(fields)
    return survey_detail(session)


@router.delete("/{survey_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_survey(
    survey_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Delete a survey and drop any open session for it"""
    await SurveyService(db).delete_survey(survey_id, str(current_user.id))
    await db.commit()
    session_registry.discard(survey_id)


@router.post("/{survey_id}/save", response_model=SaveResponse)
async def save_survey(
    session: SurveySession = Depends(get_survey_session),
    db: AsyncSession = Depends(get_db)
):
    """Write pending changes now instead of waiting for autosave"""
    if not session.dirty:
        return {"survey_id": session.survey_id, "revision": session.revision, "saved": False}

    revision = await persist_session(session, db)
    logger.log_survey_event(session.survey_id, "saved", revision=revision)
    return {"survey_id": session.survey_id, "revision": revision, "saved": True}


@router.post("/{survey_id}/complete", response_model=SurveyDetailResponse)
async def complete_survey(
    session: SurveySession = Depends(get_survey_session),
    db: AsyncSession = Depends(get_db)
):
    """Mark the survey completed and save it; it is view-only afterwards"""
    session.complete()
    await persist_session(session, db)
    return survey_detail(session)


@router.get("/{survey_id}/metrics", response_model=MetricsResponse)
async def get_survey_metrics(session: SurveySession = Depends(get_survey_session)):
    """Noise exposure and hearing protection figures per area"""
    return {"survey_id": session.survey_id, "areas": compute_area_metrics(session.aggregate)}
