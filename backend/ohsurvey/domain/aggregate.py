"""
Survey Aggregate - survey metadata, equipment, area tree and per-area stores

The aggregate is the unit of persistence. It is a frozen dataclass and
``apply_patch`` (a shallow merge of top-level fields) is the only way to
produce a changed copy. Nested values are themselves treated as immutable:
tuples for the tree and equipment, dicts that are replaced rather than
edited for the stores.
"""

import copy
import enum
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from ohsurvey.core.exceptions import InvalidPatchError
from ohsurvey.core.types import generate_uuid
from ohsurvey.domain.area_path import AreaPath, canonicalize, try_parse
from ohsurvey.domain.area_tree import AreaTree, areas_from_list, areas_to_list
from ohsurvey.domain.store import CATEGORIES, Store


class SurveyStatus(str, enum.Enum):
    """Survey lifecycle"""
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    SUBMITTED = "Submitted"


class EquipmentType(str, enum.Enum):
    SLM = "SLM"
    CALIBRATOR = "Calibrator"


READ_ONLY_STATUSES = frozenset({SurveyStatus.COMPLETED, SurveyStatus.SUBMITTED})


@dataclass(frozen=True)
class Equipment:
    """Sound level meter or acoustic calibrator used during the survey"""

    type: EquipmentType
    name: str = ""
    serial: str = ""
    id: str = field(default_factory=generate_uuid)
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


def _utc_iso() -> str:
    return datetime.utcnow().isoformat() + "Z"


@dataclass(frozen=True)
class SurveyAggregate:
    id: str
    client: str = ""
    project: str = ""
    site: str = ""
    survey_type: str = ""
    start_date: str = ""
    end_date: str = ""
    description: str = ""
    status: SurveyStatus = SurveyStatus.IN_PROGRESS
    normal_conditions: str = "Yes"
    comments: str = ""
    current_area_path: Optional[AreaPath] = None
    created_at: str = field(default_factory=_utc_iso)
    completed_at: Optional[str] = None
    verification_comment: str = ""
    verification_signature: str = ""

    equipment: Tuple[Equipment, ...] = ()
    areas: AreaTree = ()

    noise_sources_by_area: Store = field(default_factory=dict)
    measurements_by_area: Store = field(default_factory=dict)
    controls_by_area: Store = field(default_factory=dict)
    hearing_protection_devices: Store = field(default_factory=dict)
    hearing_issued_status: Store = field(default_factory=dict)
    exposures_by_area: Store = field(default_factory=dict)
    comments_by_area: Store = field(default_factory=dict)

    def store(self, category_name: str) -> Store:
        return getattr(self, CATEGORIES[category_name].field)


PATCHABLE_FIELDS = frozenset(f.name for f in fields(SurveyAggregate)) - {"id"}

METADATA_FIELDS = (
    "client",
    "project",
    "site",
    "survey_type",
    "start_date",
    "end_date",
    "description",
    "normal_conditions",
    "comments",
    "verification_comment",
    "verification_signature",
)


def new_survey(survey_id: Optional[str] = None, **fields_) -> SurveyAggregate:
    """Fresh survey with a new id and creation timestamp"""
    return SurveyAggregate(id=survey_id or generate_uuid(), **fields_)


def apply_patch(aggregate: SurveyAggregate, patch: Mapping[str, Any]) -> SurveyAggregate:
    """
    Shallow merge of top-level fields.

    Fields absent from ``patch`` are untouched. When every patched value is
    the very object already held, the aggregate itself is returned.
    """
    unknown = [name for name in patch if name not in PATCHABLE_FIELDS]
    if unknown:
        raise InvalidPatchError(unknown)

    changes = {name: value for name, value in patch.items() if getattr(aggregate, name) is not value}
    if not changes:
        return aggregate

    if "status" in changes and not isinstance(changes["status"], SurveyStatus):
        changes["status"] = SurveyStatus(changes["status"])
    return replace(aggregate, **changes)


def is_read_only(aggregate: SurveyAggregate) -> bool:
    """Completed and submitted surveys are view-only"""
    return aggregate.status in READ_ONLY_STATUSES


# ==========================================
# Plain encoding
# ==========================================

def equipment_to_dict(item: Equipment) -> Dict[str, Any]:
    return {
        "id": item.id,
        "type": item.type.value,
        "name": item.name,
        "serial": item.serial,
        "calibration_date": item.calibration_date,
        "weighting": item.weighting,
        "response_impulse": item.response_impulse,
        "response_leq": item.response_leq,
        "pre": item.pre,
        "during": item.during,
        "post": item.post,
        "paired_calibrator_id": item.paired_calibrator_id,
        "start_date": item.start_date,
        "end_date": item.end_date,
    }


_EQUIPMENT_TEXT_FIELDS = (
    "name", "serial", "calibration_date", "weighting", "response_impulse", "response_leq",
    "pre", "during", "post", "paired_calibrator_id", "start_date", "end_date",
)


def equipment_from_dict(data: Mapping[str, Any]) -> Equipment:
    return Equipment(
        id=str(data.get("id") or generate_uuid()),
        type=EquipmentType(data.get("type") or EquipmentType.SLM.value),
        **{name: str(data.get(name) or "") for name in _EQUIPMENT_TEXT_FIELDS},
    )


def aggregate_to_dict(aggregate: SurveyAggregate) -> Dict[str, Any]:
    """JSON-compatible, acyclic encoding of the whole survey"""
    data: Dict[str, Any] = {
        "id": aggregate.id,
        "status": aggregate.status.value,
        "current_area_path": canonicalize(aggregate.current_area_path) if aggregate.current_area_path else None,
        "created_at": aggregate.created_at,
        "completed_at": aggregate.completed_at,
        "equipment": [equipment_to_dict(item) for item in aggregate.equipment],
        "areas": areas_to_list(aggregate.areas),
    }
    for name in METADATA_FIELDS:
        data[name] = getattr(aggregate, name)
    for category in CATEGORIES.values():
        data[category.field] = copy.deepcopy(getattr(aggregate, category.field))
    return data


def aggregate_from_dict(data: Mapping[str, Any]) -> SurveyAggregate:
    """Decode ``aggregate_to_dict`` output, tolerating missing or mistyped fields"""
    status = data.get("status") or SurveyStatus.IN_PROGRESS.value
    try:
        status = SurveyStatus(status)
    except ValueError:
        status = SurveyStatus.IN_PROGRESS

    equipment = []
    for item in data.get("equipment") or []:
        if not isinstance(item, dict):
            continue
        try:
            equipment.append(equipment_from_dict(item))
        except ValueError:
            # unknown equipment type
            continue

    kwargs: Dict[str, Any] = {
        name: str(data.get(name) or "") for name in METADATA_FIELDS
    }
    kwargs["normal_conditions"] = kwargs["normal_conditions"] or "Yes"

    for category in CATEGORIES.values():
        store = data.get(category.field)
        kwargs[category.field] = copy.deepcopy(store) if isinstance(store, dict) else {}

    return SurveyAggregate(
        id=str(data.get("id") or generate_uuid()),
        status=status,
        current_area_path=try_parse(data.get("current_area_path")),
        created_at=str(data.get("created_at") or _utc_iso()),
        completed_at=data.get("completed_at") or None,
        equipment=tuple(equipment),
        areas=areas_from_list(data.get("areas")),
        **kwargs,
    )
