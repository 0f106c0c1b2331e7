from fastapi import APIRouter, Depends

from ohsurvey.domain.area_path import AreaPath, canonicalize
from ohsurvey.domain.store import get_category
from ohsurvey.modules.auth.dependencies import get_area_path, get_survey_session
from ohsurvey.schemas.survey import StoreEntryRequest, StoreEntryResponse, validate_store_payload
from ohsurvey.services.survey_session import SurveySession

router = APIRouter()


def entry_response(session: SurveySession, category: str, path: AreaPath) -> dict:
    return {
        "category": category,
        "path": path.to_dict(),
        "key": canonicalize(path),
        "label": session.area_label(path),
        "value": session.get_entry(category, path),
    }


@router.get("/{survey_id}/stores/{category}", response_model=StoreEntryResponse)
async def get_store_entry(
    category: str,
    path: AreaPath = Depends(get_area_path),
    session: SurveySession = Depends(get_survey_session)
):
    """
    Per-area data for one category. Areas without data (or that no longer
    exist) return the category's empty value.
    """
    get_category(category)
    return entry_response(session, category, path)


@router.put("/{survey_id}/stores/{category}", response_model=StoreEntryResponse)
async def put_store_entry(
    category: str,
    entry: StoreEntryRequest,
    path: AreaPath = Depends(get_area_path),
    session: SurveySession = Depends(get_survey_session)
):
    """
    Replace the data stored for an area. Setting hearing_issued_status to
    "No" also clears the area's hearing protection devices.
    """
    get_category(category)
    value = validate_store_payload(category, entry.value)
    session.set_entry(category, path, value)
    return entry_response(session, category, path)


@router.delete("/{survey_id}/stores/{category}", response_model=StoreEntryResponse)
async def delete_store_entry(
    category: str,
    path: AreaPath = Depends(get_area_path),
    session: SurveySession = Depends(get_survey_session)
):
    get_category(category)
    session.delete_entry(category, path)
    return entry_response(session, category, path)
