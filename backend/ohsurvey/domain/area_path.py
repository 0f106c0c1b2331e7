"""
Area Path - index address of one node in the survey area tree

A path is a pure value: main index, optional sub index, optional sub-sub
index. It is never a live reference into the tree and must be resolved
against the current tree each time it is used.

Canonical string form (used as the key of every per-area store):

    {"main":0}
    {"main":0,"sub":1}
    {"main":0,"sub":1,"ss":2}

Keys appear in that fixed order, only when set, with no whitespace.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple

from ohsurvey.core.exceptions import InvalidAreaPathError, AreaPathParseError


MAX_AREA_DEPTH = 3

_FIELDS = ("main", "sub", "ss")


def _is_index(value: Any) -> bool:
    # bool is an int subclass; True must not address area 1
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


@dataclass(frozen=True)
class AreaPath:
    """Immutable (main, sub, ss) address with structural equality"""

    main: int
    sub: Optional[int] = None
    ss: Optional[int] = None

    def __post_init__(self):
        if not _is_index(self.main):
            raise InvalidAreaPathError(f"main index must be a non-negative int, got {self.main!r}")
        if self.sub is not None and not _is_index(self.sub):
            raise InvalidAreaPathError(f"sub index must be a non-negative int, got {self.sub!r}")
        if self.ss is not None:
            if self.sub is None:
                raise InvalidAreaPathError("ss index requires a sub index")
            if not _is_index(self.ss):
                raise InvalidAreaPathError(f"ss index must be a non-negative int, got {self.ss!r}")

    @property
    def depth(self) -> int:
        if self.ss is not None:
            return 3
        if self.sub is not None:
            return 2
        return 1

    def indices(self) -> Tuple[int, ...]:
        return tuple(i for i in (self.main, self.sub, self.ss) if i is not None)

    @classmethod
    def from_indices(cls, indices) -> "AreaPath":
        indices = tuple(indices)
        if not 1 <= len(indices) <= MAX_AREA_DEPTH:
            raise InvalidAreaPathError(f"an area path has 1 to {MAX_AREA_DEPTH} indices, got {len(indices)}")
        return cls(*indices)

    def parent(self) -> Optional["AreaPath"]:
        """Path of the enclosing area, None for a main area"""
        if self.depth == 1:
            return None
        return AreaPath.from_indices(self.indices()[:-1])

    def child(self, index: int) -> "AreaPath":
        if self.depth >= MAX_AREA_DEPTH:
            raise InvalidAreaPathError("sub-sub areas cannot have children")
        return AreaPath.from_indices(self.indices() + (index,))

    def ancestors(self) -> Iterator["AreaPath"]:
        """Yield enclosing paths, outermost first"""
        indices = self.indices()
        for length in range(1, len(indices)):
            yield AreaPath.from_indices(indices[:length])

    def is_ancestor_of(self, other: "AreaPath") -> bool:
        mine = self.indices()
        theirs = other.indices()
        return len(mine) < len(theirs) and theirs[:len(mine)] == mine

    def with_index(self, depth: int, index: int) -> "AreaPath":
        """Copy with the index at ``depth`` (1-based) replaced"""
        indices = list(self.indices())
        indices[depth - 1] = index
        return AreaPath.from_indices(indices)

    def to_dict(self) -> Dict[str, int]:
        return {name: value for name, value in zip(_FIELDS, (self.main, self.sub, self.ss)) if value is not None}

    def __str__(self) -> str:
        return canonicalize(self)


def canonicalize(path: AreaPath) -> str:
    """Canonical store key for ``path``"""
    return json.dumps(path.to_dict(), separators=(",", ":"))


def parse(text: Any) -> AreaPath:
    """
    Parse a store key back into an AreaPath.

    Accepts any JSON spelling of the object (whitespace, key order) but
    nothing beyond the three known keys. Raises AreaPathParseError for
    every failure.
    """
    if not isinstance(text, str):
        raise AreaPathParseError(text, "key is not a string")

    try:
        raw = json.loads(text)
    except (ValueError, TypeError, RecursionError):
        raise AreaPathParseError(text, "not valid JSON")

    if not isinstance(raw, dict):
        raise AreaPathParseError(text, "not a JSON object")

    extra = set(raw) - set(_FIELDS)
    if extra:
        raise AreaPathParseError(text, f"unexpected keys {sorted(extra)}")
    if "main" not in raw:
        raise AreaPathParseError(text, "missing main index")

    for name in _FIELDS:
        if name in raw and not _is_index(raw[name]):
            raise AreaPathParseError(text, f"{name} is not a non-negative integer")
    if "ss" in raw and "sub" not in raw:
        raise AreaPathParseError(text, "ss without sub")

    return AreaPath(raw["main"], raw.get("sub"), raw.get("ss"))


def try_parse(text: Any) -> Optional[AreaPath]:
    """parse() that returns None instead of raising"""
    try:
        return parse(text)
    except AreaPathParseError:
        return None


def path_from_query(main: Optional[int], sub: Optional[int] = None, ss: Optional[int] = None) -> AreaPath:
    """Build a path from loose query values, rejecting impossible shapes"""
    if main is None:
        raise InvalidAreaPathError("main index is required")
    return AreaPath(main, sub, ss)
