from __future__ import annotations

from enum import Enum


class PermissionLevel(str, Enum):
    """Access grant on a canvas. Higher levels imply every lower one."""

    VIEW = "VIEW"
    EDIT = "EDIT"
    ADMIN = "ADMIN"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def satisfies(self, required: "PermissionLevel") -> bool:
        return self.rank >= required.rank


_RANKS = {
    PermissionLevel.VIEW: 1,
    PermissionLevel.EDIT: 2,
    PermissionLevel.ADMIN: 3,
}


def max_level(*levels: PermissionLevel | None) -> PermissionLevel | None:
    present = [level for level in levels if level is not None]
    if not present:
        return None
    return max(present, key=lambda level: level.rank)
