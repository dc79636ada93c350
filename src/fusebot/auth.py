"""
Authorizer — decides who may delete the posted message.
"""

from __future__ import annotations

from typing import Iterable


class AllowList:
    """Immutable set of user identifiers allowed to act on the message."""

    __slots__ = ("_ids",)

    def __init__(self, user_ids: Iterable[str] = ()) -> None:
        self._ids: frozenset[str] = frozenset(user_ids)

    @classmethod
    def from_csv(cls, text: str) -> "AllowList":
        """Build from a comma-separated list, dropping empty entries."""
        return cls(part for part in text.split(",") if part)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._ids

    def __iter__(self):
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __repr__(self) -> str:
        return f"AllowList({sorted(self._ids)!r})"


def is_authorized(actor_id: str, allow_list: AllowList) -> bool:
    """Exact-match membership test. Empty or unknown ids are never allowed."""
    if not actor_id:
        return False
    return actor_id in allow_list
