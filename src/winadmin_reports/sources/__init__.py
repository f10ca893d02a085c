"""Data source adapters (Microsoft Graph, MSOnline export, registry)."""

from winadmin_reports.sources.base import DirectorySource, EntityDetail, EntitySummary
from winadmin_reports.sources.graph import GraphSource
from winadmin_reports.sources.msol_snapshot import MsolSnapshotSource
from winadmin_reports.sources.registry import (
    MISSING,
    RegistryReader,
    SnapshotRegistryReader,
    WinRegReader,
)

__all__ = [
    "DirectorySource",
    "EntityDetail",
    "EntitySummary",
    "GraphSource",
    "MsolSnapshotSource",
    "MISSING",
    "RegistryReader",
    "SnapshotRegistryReader",
    "WinRegReader",
]
