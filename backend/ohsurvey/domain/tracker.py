"""Area completion tracking"""

from dataclasses import replace
from typing import Dict

from ohsurvey.domain.area_path import AreaPath
from ohsurvey.domain.area_tree import AreaTree, iter_area_paths, replace_at, resolve


def mark_completed(areas: AreaTree, path: AreaPath, completed: bool = True) -> AreaTree:
    """
    Set ``details_completed`` on the node at ``path``.

    Only that node and its ancestors are rebuilt. An unresolvable path, or a
    node already carrying the requested flag, returns ``areas`` itself.
    """
    def apply(node):
        if node.details_completed == completed:
            return node
        return replace(node, details_completed=completed)

    return replace_at(areas, path, apply)


def is_completed(areas: AreaTree, path: AreaPath) -> bool:
    node = resolve(areas, path)
    return bool(node and node.details_completed)


def completion_summary(areas: AreaTree) -> Dict[str, int]:
    total = 0
    completed = 0
    for _, node in iter_area_paths(areas):
        total += 1
        if node.details_completed:
            completed += 1
    return {"total": total, "completed": completed}
