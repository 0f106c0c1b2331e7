"""
Path-Keyed Store - per-area data for one category, keyed by canonical area path

A store is a plain ``dict`` from canonical path string to a JSON-compatible
payload. Stores are never mutated in place: ``set_entry`` and
``delete_entry`` return new dicts. Nothing here checks a path against the
area tree; dangling keys are cleaned up by the reconciler.
"""

import copy
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from ohsurvey.core.exceptions import UnknownCategoryError
from ohsurvey.domain.area_path import AreaPath, canonicalize


Store = Dict[str, Any]


def _default_controls() -> Dict[str, Any]:
    return {"engineering": "", "admin_controls": [], "custom_admin": ""}


def _default_exposure() -> Dict[str, Any]:
    return {"exposure": "", "exposure_detail": "", "prohibited": "", "prohibited_detail": ""}


@dataclass(frozen=True)
class StoreCategory:
    """A named per-area data category and the aggregate field that holds it"""

    name: str
    field: str
    empty_factory: Callable[[], Any]

    def empty(self) -> Any:
        return self.empty_factory()


NOISE_SOURCES = StoreCategory("noise_sources", "noise_sources_by_area", list)
MEASUREMENTS = StoreCategory("measurements", "measurements_by_area", list)
CONTROLS = StoreCategory("controls", "controls_by_area", _default_controls)
HEARING_PROTECTION_DEVICES = StoreCategory("hearing_protection_devices", "hearing_protection_devices", list)
HEARING_ISSUED_STATUS = StoreCategory("hearing_issued_status", "hearing_issued_status", lambda: "Yes")
EXPOSURES = StoreCategory("exposures", "exposures_by_area", _default_exposure)
COMMENTS = StoreCategory("comments", "comments_by_area", str)

CATEGORIES: Dict[str, StoreCategory] = {
    category.name: category
    for category in (
        NOISE_SOURCES,
        MEASUREMENTS,
        CONTROLS,
        HEARING_PROTECTION_DEVICES,
        HEARING_ISSUED_STATUS,
        EXPOSURES,
        COMMENTS,
    )
}


def get_category(name: str) -> StoreCategory:
    category = CATEGORIES.get(name)
    if category is None:
        raise UnknownCategoryError(name, list(CATEGORIES))
    return category


def store_key(path) -> str:
    """Canonical key for an AreaPath, or a key string passed through"""
    if isinstance(path, AreaPath):
        return canonicalize(path)
    return path


def get_entry(store: Optional[Store], path, empty: Any = None) -> Any:
    """
    Payload stored for ``path``, deep-copied so callers cannot alias it.

    A missing key (or a missing store) yields ``empty``; pass a
    StoreCategory's ``empty()`` to get the category default.
    """
    if store:
        key = store_key(path)
        if key in store:
            return copy.deepcopy(store[key])
    return copy.deepcopy(empty)


def has_entry(store: Optional[Store], path) -> bool:
    return bool(store) and store_key(path) in store


def set_entry(store: Optional[Store], path, payload: Any) -> Store:
    """New store with the entry for ``path`` replaced"""
    updated = dict(store or {})
    updated[store_key(path)] = payload
    return updated


def delete_entry(store: Optional[Store], path) -> Store:
    """New store without ``path``; the same store when the key is absent"""
    if store is None:
        return {}
    key = store_key(path)
    if key not in store:
        return store
    return {k: v for k, v in store.items() if k != key}
