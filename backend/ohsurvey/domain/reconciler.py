"""
Reconciler - purge per-area store entries that no longer address a live area

Runs after every structural change to the area tree, once per store
category, against the tree that already includes the change. Malformed and
dangling keys are stale internal state, so they are dropped quietly and only
counted in debug logs.

Also holds the index-shifting helpers used when an area is deleted or
reordered, so data recorded for later siblings follows them to their new
index instead of being purged.
"""

from typing import Callable, FrozenSet, Optional

from ohsurvey.core.exceptions import AreaPathParseError
from ohsurvey.core.logging_config import logger
from ohsurvey.domain.area_path import AreaPath, canonicalize, parse
from ohsurvey.domain.area_tree import AreaTree, iter_area_paths, resolve
from ohsurvey.domain.store import CATEGORIES, Store


def valid_keys(areas: AreaTree) -> FrozenSet[str]:
    """Canonical keys of every node in the tree"""
    return frozenset(canonicalize(path) for path, _ in iter_area_paths(areas))


def reconcile(areas: AreaTree, store: Optional[Store], valid: Optional[FrozenSet[str]] = None) -> Store:
    """
    Store without malformed or dangling keys.

    Keys are compared after re-canonicalizing the parsed path, so a
    differently spelled key for a live area is kept (under its own key).
    Returns ``store`` itself when nothing is dropped.
    """
    if not store:
        return store if store is not None else {}
    if valid is None:
        valid = valid_keys(areas)

    kept = {}
    for key, payload in store.items():
        try:
            path = parse(key)
        except AreaPathParseError:
            continue
        if canonicalize(path) in valid:
            kept[key] = payload

    if len(kept) == len(store):
        return store
    return kept


def reconcile_aggregate(aggregate, read_only: bool = False):
    """
    Reconcile every category store of a survey aggregate.

    One valid-key set is computed for all categories. A selected area path
    that no longer resolves is cleared. Changes are merged back through
    ``apply_patch``; when nothing changed, or the survey is open read-only,
    the aggregate is returned unchanged.
    """
    if read_only:
        return aggregate

    from ohsurvey.domain.aggregate import apply_patch

    valid = valid_keys(aggregate.areas)
    patch = {}
    for category in CATEGORIES.values():
        store = getattr(aggregate, category.field)
        cleaned = reconcile(aggregate.areas, store, valid)
        if cleaned is not store:
            patch[category.field] = cleaned
            logger.debug(
                f"Reconciled {category.name}: dropped {len(store) - len(cleaned)} stale entries",
                extra={"event_type": "reconcile", "category": category.name, "dropped": len(store) - len(cleaned)},
            )

    current = aggregate.current_area_path
    if current is not None and resolve(aggregate.areas, current) is None:
        patch["current_area_path"] = None
        logger.debug(
            f"Cleared dangling selection {canonicalize(current)}",
            extra={"event_type": "reconcile", "category": "current_area_path", "dropped": 1},
        )

    if not patch:
        return aggregate
    return apply_patch(aggregate, patch)


# ==========================================
# Index shifting
# ==========================================

def _rekey(store: Optional[Store], level_path: AreaPath, remap: Callable[[int], Optional[int]]) -> Store:
    """
    Rewrite the sibling index at ``level_path``'s depth for every key under
    the same parent. ``remap`` returns the new index or None to drop.
    Malformed keys are kept for reconcile() to deal with.

    Every rewritten key is written in canonical form. When two spellings of
    one path land on the same key, the entry that was already canonical
    wins; between two non-canonical spellings the first one seen wins.
    """
    if not store:
        return store if store is not None else {}

    depth = level_path.depth
    prefix = level_path.indices()[:-1]
    changed = False
    result = {}
    from_canonical = set()
    for key, payload in store.items():
        try:
            path = parse(key)
        except AreaPathParseError:
            result[key] = payload
            continue

        indices = path.indices()
        if len(indices) < depth or indices[:depth - 1] != prefix:
            result[key] = payload
            continue

        new_index = remap(indices[depth - 1])
        if new_index is None:
            changed = True
            continue

        new_key = canonicalize(path.with_index(depth, new_index))
        was_canonical = key == canonicalize(path)
        if new_key != key:
            changed = True
        if new_key in result and (new_key in from_canonical or not was_canonical):
            changed = True
            logger.debug(
                f"Dropped duplicate spelling {key} for {new_key}",
                extra={"event_type": "reconcile", "dropped": 1},
            )
            continue

        result[new_key] = payload
        if was_canonical:
            from_canonical.add(new_key)

    return result if changed else store


def shift_after_removal(store: Optional[Store], removed: AreaPath) -> Store:
    """
    Drop entries of the removed area and its descendants, and move entries
    of its later siblings (and their descendants) down one index.
    """
    removed_index = removed.indices()[-1]

    def remap(index: int) -> Optional[int]:
        if index == removed_index:
            return None
        if index > removed_index:
            return index - 1
        return index

    return _rekey(store, removed, remap)


def remap_after_move(store: Optional[Store], path: AreaPath, new_index: int) -> Store:
    """Renumber entries after the area at ``path`` moved to ``new_index`` among its siblings"""
    old_index = path.indices()[-1]
    if new_index == old_index:
        return store if store is not None else {}

    def remap(index: int) -> int:
        if index == old_index:
            return new_index
        if old_index < index <= new_index:
            return index - 1
        if new_index <= index < old_index:
            return index + 1
        return index

    return _rekey(store, path, remap)
