"""Report pipeline (resolve → fetch → normalize → write)."""

from winadmin_reports.pipeline.counts import UserCounts, count_users
from winadmin_reports.pipeline.export import EntityFailure, ExportResult, export_mfa_status
from winadmin_reports.pipeline.query import QuerySpec

__all__ = [
    "EntityFailure",
    "ExportResult",
    "QuerySpec",
    "UserCounts",
    "count_users",
    "export_mfa_status",
]
