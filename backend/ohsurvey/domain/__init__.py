"""
Survey core: area paths, the area tree, path-keyed stores, reconciliation,
completion tracking and the survey aggregate.

Everything in this package is pure and synchronous.
"""

from ohsurvey.domain.area_path import AreaPath, canonicalize, parse
from ohsurvey.domain.area_tree import AreaNode, resolve, replace_at
from ohsurvey.domain.store import CATEGORIES, StoreCategory, get_category, get_entry, set_entry, delete_entry
from ohsurvey.domain.reconciler import reconcile, reconcile_aggregate, valid_keys
from ohsurvey.domain.tracker import mark_completed
from ohsurvey.domain.aggregate import (
    SurveyAggregate,
    SurveyStatus,
    Equipment,
    EquipmentType,
    new_survey,
    apply_patch,
    aggregate_to_dict,
    aggregate_from_dict,
)

__all__ = [
    "AreaPath",
    "canonicalize",
    "parse",
    "AreaNode",
    "resolve",
    "replace_at",
    "CATEGORIES",
    "StoreCategory",
    "get_category",
    "get_entry",
    "set_entry",
    "delete_entry",
    "reconcile",
    "reconcile_aggregate",
    "valid_keys",
    "mark_completed",
    "SurveyAggregate",
    "SurveyStatus",
    "Equipment",
    "EquipmentType",
    "new_survey",
    "apply_patch",
    "aggregate_to_dict",
    "aggregate_from_dict",
]
