from fastapi import APIRouter, Depends, status

from ohsurvey.domain.aggregate import Equipment, EquipmentType
from ohsurvey.modules.auth.dependencies import get_survey_session
from ohsurvey.schemas.survey import EquipmentCreate, EquipmentUpdate, SurveyDetailResponse
from ohsurvey.services.survey_session import SurveySession
from ohsurvey.api.v1.endpoints.surveys import survey_detail

router = APIRouter()


@router.post("/{survey_id}/equipment", response_model=SurveyDetailResponse, status_code=status.HTTP_201_CREATED)
async def add_equipment(
    equipment_data: EquipmentCreate,
    session: SurveySession = Depends(get_survey_session)
):
    """Register a sound level meter or calibrator on the survey"""
    fields = equipment_data.model_dump()
    fields["type"] = EquipmentType(fields["type"])
    session.add_equipment(Equipment(**fields))
    return survey_detail(session)


@router.put("/{survey_id}/equipment/{equipment_id}", response_model=SurveyDetailResponse)
async def update_equipment(
    equipment_id: str,
    equipment_data: EquipmentUpdate,
    session: SurveySession = Depends(get_survey_session)
):
    changes = {name: value for name, value in equipment_data.model_dump(exclude_unset=True).items() if value is not None}
    session.update_equipment(equipment_id, **changes)
    return survey_detail(session)


@router.delete("/{survey_id}/equipment/{equipment_id}", response_model=SurveyDetailResponse)
async def remove_equipment(
    equipment_id: str,
    session: SurveySession = Depends(get_survey_session)
):
    """Remove equipment; measurements that referenced it are unlinked"""
    session.remove_equipment(equipment_id)
    return survey_detail(session)
