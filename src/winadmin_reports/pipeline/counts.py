from __future__ import annotations

from dataclasses import dataclass

from winadmin_reports.sources.base import DirectorySource


@dataclass(frozen=True)
class UserCounts:
    total: int
    enabled: int
    disabled: int


def count_users(source: DirectorySource) -> UserCounts:
    """Count all users of a directory, split by account state."""

    entities = source.list_entities(enabled_only=False)
    enabled = sum(1 for e in entities if e.enabled)
    return UserCounts(total=len(entities), enabled=enabled, disabled=len(entities) - enabled)
