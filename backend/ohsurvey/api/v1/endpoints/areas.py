from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from ohsurvey.domain.area_path import AreaPath, canonicalize
from ohsurvey.domain.area_tree import AreaNode, clamp_sibling_index
from ohsurvey.modules.auth.dependencies import get_area_path, get_optional_area_path, get_survey_session
from ohsurvey.schemas.survey import AreaCreate, AreaUpdate, AreaResponse, SurveyDetailResponse
from ohsurvey.services.survey_session import SurveySession
from ohsurvey.api.v1.endpoints.surveys import survey_detail

router = APIRouter()


def area_response(session: SurveySession, path: AreaPath) -> dict:
    return {
        "path": path.to_dict(),
        "key": canonicalize(path),
        "label": session.area_label(path),
        "survey": survey_detail(session),
    }


@router.post("/{survey_id}/areas", response_model=AreaResponse, status_code=status.HTTP_201_CREATED)
async def add_area(
    area_data: AreaCreate,
    parent: Optional[AreaPath] = Depends(get_optional_area_path),
    session: SurveySession = Depends(get_survey_session)
):
    """
    Add an area. Without path parameters it becomes a main area; with
    main (and sub) it is added under that area.
    """
    path = session.add_area(AreaNode(**area_data.model_dump()), parent)
    return area_response(session, path)


@router.patch("/{survey_id}/areas", response_model=AreaResponse)
async def update_area(
    area_data: AreaUpdate,
    path: AreaPath = Depends(get_area_path),
    session: SurveySession = Depends(get_survey_session)
):
    changes = {name: value for name, value in area_data.model_dump(exclude_unset=True).items() if value is not None}
    session.update_area(path, **changes)
    return area_response(session, path)


@router.delete("/{survey_id}/areas", response_model=SurveyDetailResponse)
async def remove_area(
    path: AreaPath = Depends(get_area_path),
    session: SurveySession = Depends(get_survey_session)
):
    """Delete an area, its sub-areas and all their per-area data"""
    session.remove_area(path)
    return survey_detail(session)


@router.post("/{survey_id}/areas/move", response_model=AreaResponse)
async def move_area(
    to: int = Query(..., ge=0, description="New index among siblings"),
    path: AreaPath = Depends(get_area_path),
    session: SurveySession = Depends(get_survey_session)
):
    """Reorder an area among its siblings; its data moves with it"""
    session.move_area(path, to)
    new_path = path.with_index(path.depth, clamp_sibling_index(session.aggregate.areas, path, to))
    return area_response(session, new_path)


@router.post("/{survey_id}/areas/complete", response_model=SurveyDetailResponse)
async def complete_area(
    completed: bool = Query(True),
    path: AreaPath = Depends(get_area_path),
    session: SurveySession = Depends(get_survey_session)
):
    """Mark an area's details completed (a no-op when the area is gone)"""
    session.mark_completed(path, completed)
    return survey_detail(session)


@router.post("/{survey_id}/areas/select", response_model=SurveyDetailResponse)
async def select_area(
    path: AreaPath = Depends(get_area_path),
    session: SurveySession = Depends(get_survey_session)
):
    """Remember the area to resume at"""
    session.select_area(path)
    return survey_detail(session)
