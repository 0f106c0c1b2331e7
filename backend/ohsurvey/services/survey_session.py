"""
Survey Session - the unit of work the HTTP layer edits a survey through

A session wraps one SurveyAggregate and a read-only capability flag. Reads
are always allowed. Every write checks the flag first, so a completed survey
can be viewed but never changed, reconciled or autosaved.

Structural tree edits follow one sequence: edit the tree, carry store keys
along (shift on delete, remap on move), install the new tree, then
reconcile every store against it. Reconciliation never sees a stale tree.
"""

from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Optional

from ohsurvey.core.exceptions import (
    AreaNotFoundError,
    EquipmentNotFoundError,
    ReadOnlySurveyError,
)
from ohsurvey.core.logging_config import logger
from ohsurvey.domain import area_tree, tracker
from ohsurvey.domain.aggregate import (
    Equipment,
    SurveyAggregate,
    SurveyStatus,
    apply_patch,
)
from ohsurvey.domain.area_path import AreaPath, canonicalize, try_parse
from ohsurvey.domain.area_tree import AreaNode
from ohsurvey.domain.reconciler import reconcile_aggregate, remap_after_move, shift_after_removal
from ohsurvey.domain.store import (
    CATEGORIES,
    HEARING_ISSUED_STATUS,
    HEARING_PROTECTION_DEVICES,
    get_category,
)
from ohsurvey.domain import store as store_ops


class SurveySession:
    """Capability-flagged editor for one open survey"""

    def __init__(self, aggregate: SurveyAggregate, read_only: bool = False):
        self.read_only = read_only
        self.revision = 0
        self._saved_revision = 0

        if read_only:
            self._aggregate = aggregate
        else:
            # Self-heal stale store entries left by older saves
            self._aggregate = reconcile_aggregate(aggregate)
            if self._aggregate is not aggregate:
                self.revision = 1
                logger.info(f"Survey {aggregate.id}: reconciled stale area data on open")

    # ==========================================
    # State
    # ==========================================

    @property
    def aggregate(self) -> SurveyAggregate:
        return self._aggregate

    @property
    def survey_id(self) -> str:
        return self._aggregate.id

    @property
    def dirty(self) -> bool:
        return self.revision != self._saved_revision

    def mark_saved(self, revision: int) -> None:
        """Record that ``revision`` reached durable storage"""
        if revision > self._saved_revision:
            self._saved_revision = revision

    def _ensure_writable(self) -> None:
        if self.read_only:
            raise ReadOnlySurveyError(self.survey_id)

    def _commit(self, aggregate: SurveyAggregate) -> SurveyAggregate:
        if aggregate is not self._aggregate:
            self._aggregate = aggregate
            self.revision += 1
        return self._aggregate

    def _commit_structural(self, patch: Dict[str, Any]) -> SurveyAggregate:
        """Install a tree change (plus any rekeyed stores), then reconcile"""
        updated = apply_patch(self._aggregate, patch)
        return self._commit(reconcile_aggregate(updated))

    def _resolves(self, path: Optional[AreaPath]) -> bool:
        return path is not None and area_tree.resolve(self._aggregate.areas, path) is not None

    # ==========================================
    # Reads
    # ==========================================

    def get_entry(self, category_name: str, path: AreaPath) -> Any:
        category = get_category(category_name)
        if not self._resolves(path):
            return category.empty()
        return store_ops.get_entry(getattr(self._aggregate, category.field), path, category.empty())

    def area_label(self, path: Optional[AreaPath]) -> str:
        return area_tree.area_label(self._aggregate.areas, path)

    # ==========================================
    # Metadata
    # ==========================================

    def patch(self, fields: Dict[str, Any]) -> SurveyAggregate:
        """Shallow merge of top-level fields; reconciles when ``areas`` is replaced"""
        self._ensure_writable()
        updated = apply_patch(self._aggregate, fields)
        if "areas" in fields:
            updated = reconcile_aggregate(updated)
        return self._commit(updated)

    def complete(self) -> SurveyAggregate:
        """Mark the survey completed; the session becomes read-only"""
        self._ensure_writable()
        aggregate = self._commit(apply_patch(self._aggregate, {
            "status": SurveyStatus.COMPLETED,
            "completed_at": datetime.utcnow().isoformat() + "Z",
        }))
        self.read_only = True
        logger.log_survey_event(self.survey_id, "completed")
        return aggregate

    # ==========================================
    # Per-area stores
    # ==========================================

    def set_entry(self, category_name: str, path: AreaPath, payload: Any) -> SurveyAggregate:
        self._ensure_writable()
        category = get_category(category_name)
        if category is HEARING_ISSUED_STATUS:
            return self.set_hearing_issued(path, payload)
        if not self._resolves(path):
            return self._aggregate
        store = getattr(self._aggregate, category.field)
        return self._commit(apply_patch(self._aggregate, {
            category.field: store_ops.set_entry(store, path, payload),
        }))

    def delete_entry(self, category_name: str, path: AreaPath) -> SurveyAggregate:
        self._ensure_writable()
        category = get_category(category_name)
        if not self._resolves(path):
            return self._aggregate
        store = getattr(self._aggregate, category.field)
        return self._commit(apply_patch(self._aggregate, {
            category.field: store_ops.delete_entry(store, path),
        }))

    def set_hearing_issued(self, path: AreaPath, issued: str) -> SurveyAggregate:
        """Record whether hearing protection is issued; "No" also clears the area's devices"""
        self._ensure_writable()
        if not self._resolves(path):
            return self._aggregate
        patch = {
            HEARING_ISSUED_STATUS.field: store_ops.set_entry(self._aggregate.hearing_issued_status, path, issued),
        }
        if issued == "No":
            patch[HEARING_PROTECTION_DEVICES.field] = store_ops.set_entry(
                self._aggregate.hearing_protection_devices, path, []
            )
        return self._commit(apply_patch(self._aggregate, patch))

    # ==========================================
    # Area tree
    # ==========================================

    def add_area(self, node: AreaNode, parent: Optional[AreaPath] = None) -> AreaPath:
        """Add ``node`` under ``parent`` and return its path"""
        self._ensure_writable()
        areas = area_tree.add_area(self._aggregate.areas, node, parent)
        self._commit_structural({"areas": areas})
        siblings = areas if parent is None else area_tree.resolve(areas, parent).sub_areas
        index = len(siblings) - 1
        return AreaPath(index) if parent is None else parent.child(index)

    def update_area(self, path: AreaPath, **changes) -> SurveyAggregate:
        self._ensure_writable()
        areas = area_tree.update_area(self._aggregate.areas, path, **changes)
        if areas is self._aggregate.areas:
            return self._aggregate
        return self._commit(apply_patch(self._aggregate, {"areas": areas}))

    def remove_area(self, path: AreaPath) -> SurveyAggregate:
        """Delete an area and its descendants; later siblings keep their data"""
        self._ensure_writable()
        if not self._resolves(path):
            raise AreaNotFoundError(canonicalize(path))

        patch: Dict[str, Any] = {"areas": area_tree.remove_area(self._aggregate.areas, path)}
        for category in CATEGORIES.values():
            store = getattr(self._aggregate, category.field)
            shifted = shift_after_removal(store, path)
            if shifted is not store:
                patch[category.field] = shifted
        patch["current_area_path"] = self._follow_current(lambda s: shift_after_removal(s, path))

        logger.log_survey_event(self.survey_id, "area_removed", area=canonicalize(path))
        return self._commit_structural(patch)

    def move_area(self, path: AreaPath, new_index: int) -> SurveyAggregate:
        """Reorder an area among its siblings; its data moves with it"""
        self._ensure_writable()
        if not self._resolves(path):
            raise AreaNotFoundError(canonicalize(path))

        target = area_tree.clamp_sibling_index(self._aggregate.areas, path, new_index)
        areas = area_tree.move_area(self._aggregate.areas, path, target)
        if areas is self._aggregate.areas:
            return self._aggregate

        patch: Dict[str, Any] = {"areas": areas}
        for category in CATEGORIES.values():
            store = getattr(self._aggregate, category.field)
            remapped = remap_after_move(store, path, target)
            if remapped is not store:
                patch[category.field] = remapped
        patch["current_area_path"] = self._follow_current(lambda s: remap_after_move(s, path, target))
        return self._commit_structural(patch)

    def _follow_current(self, rekey) -> Optional[AreaPath]:
        """Carry the selected area through the same renumbering as the stores"""
        current = self._aggregate.current_area_path
        if current is None:
            return None
        moved = rekey({canonicalize(current): True})
        if not moved:
            return None
        return try_parse(next(iter(moved)))

    def mark_completed(self, path: AreaPath, completed: bool = True) -> SurveyAggregate:
        self._ensure_writable()
        areas = tracker.mark_completed(self._aggregate.areas, path, completed)
        if areas is self._aggregate.areas:
            return self._aggregate
        return self._commit(apply_patch(self._aggregate, {"areas": areas}))

    def select_area(self, path: AreaPath) -> SurveyAggregate:
        """Remember ``path`` as the area to resume at"""
        self._ensure_writable()
        if not self._resolves(path) or path == self._aggregate.current_area_path:
            return self._aggregate
        return self._commit(apply_patch(self._aggregate, {"current_area_path": path}))

    # ==========================================
    # Equipment
    # ==========================================

    def _equipment_index(self, equipment_id: str) -> int:
        for index, item in enumerate(self._aggregate.equipment):
            if item.id == equipment_id:
                return index
        raise EquipmentNotFoundError(equipment_id)

    def add_equipment(self, item: Equipment) -> SurveyAggregate:
        self._ensure_writable()
        return self._commit(apply_patch(self._aggregate, {"equipment": self._aggregate.equipment + (item,)}))

    def update_equipment(self, equipment_id: str, **changes) -> SurveyAggregate:
        self._ensure_writable()
        index = self._equipment_index(equipment_id)
        changes.pop("id", None)
        equipment = self._aggregate.equipment
        updated = replace(equipment[index], **changes)
        return self._commit(apply_patch(self._aggregate, {
            "equipment": equipment[:index] + (updated,) + equipment[index + 1:],
        }))

    def remove_equipment(self, equipment_id: str) -> SurveyAggregate:
        """Remove equipment and clear every reference to its id"""
        self._ensure_writable()
        index = self._equipment_index(equipment_id)
        remaining = self._aggregate.equipment[:index] + self._aggregate.equipment[index + 1:]
        remaining = tuple(
            replace(item, paired_calibrator_id="") if item.paired_calibrator_id == equipment_id else item
            for item in remaining
        )

        measurements = {}
        for key, records in self._aggregate.measurements_by_area.items():
            if isinstance(records, list) and any(
                isinstance(r, dict) and equipment_id in (r.get("slm_id"), r.get("calibrator_id")) for r in records
            ):
                records = [self._drop_equipment_ref(r, equipment_id) for r in records]
            measurements[key] = records

        return self._commit(apply_patch(self._aggregate, {
            "equipment": remaining,
            "measurements_by_area": measurements,
        }))

    @staticmethod
    def _drop_equipment_ref(record: Any, equipment_id: str) -> Any:
        if not isinstance(record, dict):
            return record
        cleaned = dict(record)
        for name in ("slm_id", "calibrator_id"):
            if cleaned.get(name) == equipment_id:
                cleaned[name] = ""
        return cleaned
