"""
Area Tree - the three-level hierarchy (main, sub, sub-sub) of surveyed areas

The tree is a tuple of frozen AreaNode values. Every edit returns a new
tuple that rebuilds only the ancestor chain of the edited node; all other
subtrees are carried over by identity, so callers can compare with ``is``
to see what changed.
"""

import time
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from ohsurvey.core.exceptions import AreaNotFoundError, InvalidAreaOperationError
from ohsurvey.domain.area_path import AreaPath, MAX_AREA_DEPTH, canonicalize
from ohsurvey.core.types import generate_uuid


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class AreaNode:
    """One surveyed area. ``sub_areas`` is empty for sub-sub areas."""

    name: str
    id: str = field(default_factory=generate_uuid)
    process: str = ""
    noise_level_db: Optional[float] = None
    noise_type: str = ""
    shift_duration: Optional[float] = None
    exposure_time: Optional[float] = None
    notes: str = ""
    details_completed: bool = False
    sub_areas: Tuple["AreaNode", ...] = ()
    created_at: int = field(default_factory=_now_ms)


AreaTree = Tuple[AreaNode, ...]

# Fields update_area may touch
DESCRIPTIVE_FIELDS = (
    "name",
    "process",
    "noise_level_db",
    "noise_type",
    "shift_duration",
    "exposure_time",
    "notes",
    "details_completed",
)

_LEVEL_LABELS = {1: "Main Area", 2: "Sub Area", 3: "Sub Sub Area"}


# ==========================================
# Lookup
# ==========================================

def resolve(areas: AreaTree, path: AreaPath) -> Optional[AreaNode]:
    """Node at ``path``, or None when any index is out of range"""
    level = areas
    node = None
    for index in path.indices():
        if index >= len(level):
            return None
        node = level[index]
        level = node.sub_areas
    return node


def iter_area_paths(areas: AreaTree) -> Iterator[Tuple[AreaPath, AreaNode]]:
    """Depth-first (path, node) pairs for every addressable node"""
    def walk(level, prefix):
        for index, node in enumerate(level):
            indices = prefix + (index,)
            yield AreaPath.from_indices(indices), node
            if len(indices) < MAX_AREA_DEPTH:
                yield from walk(node.sub_areas, indices)

    yield from walk(areas, ())


def leaf_paths(areas: AreaTree) -> List[AreaPath]:
    """Paths of nodes that have no sub-areas (or sit at the depth limit)"""
    return [
        path for path, node in iter_area_paths(areas)
        if path.depth == MAX_AREA_DEPTH or not node.sub_areas
    ]


def area_label(areas: AreaTree, path: Optional[AreaPath]) -> str:
    """Human label such as 'Sub Area: Boiler Room'"""
    node = resolve(areas, path) if path is not None else None
    if node is None:
        return "Unknown Area"
    return f"{_LEVEL_LABELS[path.depth]}: {node.name}"


def area_trail(areas: AreaTree, path: AreaPath) -> str:
    """Breadcrumb of names from the main area down, e.g. 'Plant > Boilers > Feed'"""
    names = []
    for step in list(path.ancestors()) + [path]:
        node = resolve(areas, step)
        if node is None:
            return ""
        names.append(node.name)
    return " > ".join(names)


# ==========================================
# Structural edits
# ==========================================

def replace_at(areas: AreaTree, path: AreaPath, fn: Callable[[AreaNode], AreaNode]) -> AreaTree:
    """
    Replace the node at ``path`` with ``fn(node)``.

    Only the ancestors of ``path`` are rebuilt. When the path does not
    resolve, or ``fn`` returns the node it was given, the input tuple is
    returned as-is.
    """
    def rebuild(level: AreaTree, indices: Tuple[int, ...]) -> AreaTree:
        index = indices[0]
        if index >= len(level):
            return level
        current = level[index]
        if len(indices) == 1:
            updated = fn(current)
        else:
            children = rebuild(current.sub_areas, indices[1:])
            updated = current if children is current.sub_areas else replace(current, sub_areas=children)
        if updated is current:
            return level
        return level[:index] + (updated,) + level[index + 1:]

    return rebuild(areas, path.indices())


def _replace_children(areas: AreaTree, parent: Optional[AreaPath], fn: Callable[[AreaTree], AreaTree]) -> AreaTree:
    if parent is None:
        return fn(areas)

    def apply(node: AreaNode) -> AreaNode:
        children = fn(node.sub_areas)
        if children is node.sub_areas:
            return node
        return replace(node, sub_areas=children)

    return replace_at(areas, parent, apply)


def add_area(areas: AreaTree, node: AreaNode, parent: Optional[AreaPath] = None) -> AreaTree:
    """Append ``node`` under ``parent`` (top level when None)"""
    if parent is not None:
        if resolve(areas, parent) is None:
            raise AreaNotFoundError(canonicalize(parent))
        if parent.depth >= MAX_AREA_DEPTH:
            raise InvalidAreaOperationError("Sub sub areas cannot contain further areas")
        if node.sub_areas and parent.depth + 1 >= MAX_AREA_DEPTH:
            raise InvalidAreaOperationError("Sub sub areas cannot contain further areas")
    return _replace_children(areas, parent, lambda children: children + (node,))


def update_area(areas: AreaTree, path: AreaPath, **changes) -> AreaTree:
    """Replace descriptive fields of the node at ``path``"""
    unknown = set(changes) - set(DESCRIPTIVE_FIELDS)
    if unknown:
        raise InvalidAreaOperationError(f"Cannot update area field(s): {', '.join(sorted(unknown))}")
    if resolve(areas, path) is None:
        raise AreaNotFoundError(canonicalize(path))

    def apply(node: AreaNode) -> AreaNode:
        if all(getattr(node, name) == value for name, value in changes.items()):
            return node
        return replace(node, **changes)

    return replace_at(areas, path, apply)


def remove_area(areas: AreaTree, path: AreaPath) -> AreaTree:
    """Drop the node at ``path`` together with its descendants"""
    if resolve(areas, path) is None:
        return areas
    index = path.indices()[-1]
    return _replace_children(areas, path.parent(), lambda children: children[:index] + children[index + 1:])


def move_area(areas: AreaTree, path: AreaPath, new_index: int) -> AreaTree:
    """Move the node at ``path`` to ``new_index`` among its siblings (clamped)"""
    node = resolve(areas, path)
    if node is None:
        raise AreaNotFoundError(canonicalize(path))
    old_index = path.indices()[-1]

    def reorder(children: AreaTree) -> AreaTree:
        target = max(0, min(new_index, len(children) - 1))
        if target == old_index:
            return children
        remaining = children[:old_index] + children[old_index + 1:]
        return remaining[:target] + (node,) + remaining[target:]

    return _replace_children(areas, path.parent(), reorder)


def clamp_sibling_index(areas: AreaTree, path: AreaPath, new_index: int) -> int:
    """Index ``move_area`` will actually use for ``new_index``"""
    parent = path.parent()
    siblings = areas if parent is None else resolve(areas, parent).sub_areas
    return max(0, min(new_index, len(siblings) - 1))


# ==========================================
# Plain encoding
# ==========================================

def node_to_dict(node: AreaNode) -> Dict[str, Any]:
    return {
        "id": node.id,
        "name": node.name,
        "process": node.process,
        "noise_level_db": node.noise_level_db,
        "noise_type": node.noise_type,
        "shift_duration": node.shift_duration,
        "exposure_time": node.exposure_time,
        "notes": node.notes,
        "details_completed": node.details_completed,
        "sub_areas": [node_to_dict(child) for child in node.sub_areas],
        "created_at": node.created_at,
    }


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def node_from_dict(data: Dict[str, Any], depth: int = 1) -> AreaNode:
    """Decode one node; anything nested below sub-sub level is dropped"""
    children = data.get("sub_areas") or []
    if depth >= MAX_AREA_DEPTH or not isinstance(children, list):
        children = []
    created_at = data.get("created_at")
    return AreaNode(
        id=str(data.get("id") or generate_uuid()),
        name=str(data.get("name") or ""),
        process=str(data.get("process") or ""),
        noise_level_db=_optional_float(data.get("noise_level_db")),
        noise_type=str(data.get("noise_type") or ""),
        shift_duration=_optional_float(data.get("shift_duration")),
        exposure_time=_optional_float(data.get("exposure_time")),
        notes=str(data.get("notes") or ""),
        details_completed=bool(data.get("details_completed", False)),
        sub_areas=tuple(node_from_dict(child, depth + 1) for child in children if isinstance(child, dict)),
        created_at=created_at if isinstance(created_at, int) and not isinstance(created_at, bool) else _now_ms(),
    )


def areas_to_list(areas: AreaTree) -> List[Dict[str, Any]]:
    return [node_to_dict(node) for node in areas]


def areas_from_list(data: Any) -> AreaTree:
    if not isinstance(data, list):
        return ()
    return tuple(node_from_dict(item) for item in data if isinstance(item, dict))
