from pydantic import BaseModel, Field, ConfigDict, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError
from typing import Optional, Dict, List, Any, Literal
from datetime import datetime

from ohsurvey.core.exceptions import ValidationError
from ohsurvey.domain.aggregate import SurveyStatus


# ========== Survey ==========

class SurveyCreate(BaseModel):
    client: str = ""
    project: str = ""
    site: str = ""
    survey_type: str = ""
    start_date: str = ""
    end_date: str = ""
    description: str = ""


class SurveyUpdate(BaseModel):
    """Metadata patch; only fields sent are applied"""
    client: Optional[str] = None
    project: Optional[str] = None
    site: Optional[str] = None
    survey_type: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    description: Optional[str] = None
    normal_conditions: Optional[Literal["Yes", "No"]] = None
    comments: Optional[str] = None
    verification_comment: Optional[str] = None
    verification_signature: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class SurveySummary(BaseModel):
    id: str
    client: str
    project: str
    site: str
    status: SurveyStatus
    created_at: datetime
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SurveyListResponse(BaseModel):
    surveys: List[SurveySummary]
    total: int
    page: int
    page_size: int


class SurveyDetailResponse(BaseModel):
    survey: Dict[str, Any]
    read_only: bool
    dirty: bool
    revision: int
    completion: Dict[str, int]


class SaveResponse(BaseModel):
    survey_id: str
    revision: int
    saved: bool


# ========== Equipment ==========

class EquipmentCreate(BaseModel):
    type: Literal["SLM", "Calibrator"]
    name: str = Field(..., min_length=1, max_length=255)
    serial: str = ""
    calibration_date: str = ""
    weighting: str = ""
    response_impulse: str = ""
    response_leq: str = ""
    pre: str = ""
    during: str = ""
    post: str = ""
    paired_calibrator_id: str = ""
    start_date: str = ""
    end_date: str = ""


class EquipmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    serial: Optional[str] = None
    calibration_date: Optional[str] = None
    weighting: Optional[str] = None
    response_impulse: Optional[str] = None
    response_leq: Optional[str] = None
    pre: Optional[str] = None
    during: Optional[str] = None
    post: Optional[str] = None
    paired_calibrator_id: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


# ========== Areas ==========

class AreaCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    process: str = ""
    noise_level_db: Optional[float] = Field(None, ge=0, le=200)
    noise_type: str = ""
    shift_duration: Optional[float] = Field(None, gt=0, le=24)
    exposure_time: Optional[float] = Field(None, gt=0, le=24)
    notes: str = ""


class AreaUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    process: Optional[str] = None
    noise_level_db: Optional[float] = Field(None, ge=0, le=200)
    noise_type: Optional[str] = None
    shift_duration: Optional[float] = Field(None, gt=0, le=24)
    exposure_time: Optional[float] = Field(None, gt=0, le=24)
    notes: Optional[str] = None
    details_completed: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")


class AreaResponse(BaseModel):
    path: Dict[str, int]
    key: str
    label: str
    survey: Dict[str, Any]


# ========== Per-area records ==========

class NoiseSourceRecord(BaseModel):
    source: str = ""
    description: str = ""
    mit: str = ""
    type: str = ""


class MeasurementRecord(BaseModel):
    shift_duration: Optional[float] = Field(None, gt=0, le=24)
    exposure_time: Optional[float] = Field(None, gt=0, le=24)
    slm_id: str = ""
    calibrator_id: str = ""
    readings: List[float] = Field(default_factory=list)

    @field_validator("readings")
    @classmethod
    def readings_in_range(cls, v: List[float]) -> List[float]:
        for reading in v:
            if not 0 <= reading <= 200:
                raise ValueError("readings must be between 0 and 200 dB(A)")
        return v


class ControlsRecord(BaseModel):
    engineering: str = ""
    admin_controls: List[str] = Field(default_factory=list)
    custom_admin: str = ""


class HearingProtectionDeviceRecord(BaseModel):
    type: str = ""
    manufacturer: str = ""
    snr_or_nrr: Literal["", "SNR", "NRR"] = ""
    snr_value: Optional[float] = Field(None, ge=0, le=60)
    condition: Literal["", "Good", "Poor"] = ""
    condition_comment: str = ""
    training: Literal["Yes", "No"] = "No"
    fitting: Literal["Yes", "No"] = "No"
    maintenance: Literal["Yes", "No"] = "No"


class ExposureRecord(BaseModel):
    exposure: str = ""
    exposure_detail: str = ""
    prohibited: str = ""
    prohibited_detail: str = ""


CATEGORY_PAYLOADS: Dict[str, TypeAdapter] = {
    "noise_sources": TypeAdapter(List[NoiseSourceRecord]),
    "measurements": TypeAdapter(List[MeasurementRecord]),
    "controls": TypeAdapter(ControlsRecord),
    "hearing_protection_devices": TypeAdapter(List[HearingProtectionDeviceRecord]),
    "hearing_issued_status": TypeAdapter(Literal["Yes", "No"]),
    "exposures": TypeAdapter(ExposureRecord),
    "comments": TypeAdapter(str),
}


def validate_store_payload(category: str, payload: Any) -> Any:
    """Validate a payload for ``category`` and return its JSON-compatible form"""
    adapter = CATEGORY_PAYLOADS[category]
    try:
        value = adapter.validate_python(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"Invalid {category} payload: {first.get('msg')}", field=location or "value")
    return adapter.dump_python(value, mode="json")


class StoreEntryRequest(BaseModel):
    value: Any


class StoreEntryResponse(BaseModel):
    category: str
    path: Dict[str, int]
    key: str
    label: str
    value: Any


class MetricsResponse(BaseModel):
    survey_id: str
    areas: List[Dict[str, Any]]
