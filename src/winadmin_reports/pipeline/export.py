from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from winadmin_reports.errors import ConfigError, EntityError
from winadmin_reports.pipeline.normalize import MFA_COLUMNS, MfaReportRow, error_row, normalize_mfa_row
from winadmin_reports.pipeline.query import QuerySpec
from winadmin_reports.report.csv_writer import write_report
from winadmin_reports.sources.base import DirectorySource

logger = logging.getLogger(__name__)

OUTPUT_SUFFIX = ".csv"


@dataclass(frozen=True)
class EntityFailure:
    identifier: str
    reason: str
    error_type: str


@dataclass(frozen=True)
class ExportResult:
    output_path: Path
    rows_written: int
    succeeded: int
    failed: int
    failures: List[EntityFailure] = field(default_factory=list)

    def summary_line(self) -> str:
        return (
            f"Processed {self.succeeded + self.failed} user(s): {self.succeeded} ok, "
            f"{self.failed} failed; {self.rows_written} row(s) written to {self.output_path}"
        )


def validate_output_path(output_path: Path) -> None:
    if output_path.suffix.lower() != OUTPUT_SUFFIX:
        raise ConfigError(f"output path must end in {OUTPUT_SUFFIX}: {output_path}")
    if output_path.exists() and output_path.is_dir():
        raise ConfigError(f"output path is a directory: {output_path}")
    parent = output_path.parent
    if not parent.is_dir():
        raise ConfigError(f"output directory does not exist: {parent}")


def export_mfa_status(
    source: DirectorySource,
    spec: QuerySpec,
    output_path: Path,
    include_disabled: bool = False,
    *,
    as_of: Optional[datetime] = None,
    emit_error_rows: bool = True,
    on_failure: Optional[Callable[[EntityFailure], None]] = None,
) -> ExportResult:
    """Resolve `spec`, fetch every user from `source` and write the MFA report.

    Phases: pre-flight (no source calls) -> resolve -> fetch-all -> write.

    - ConfigError is raised before the source is touched.
    - SourceUnavailable propagates and no file is written.
    - EntityNotFound / EntityFetchError are recorded per user; with
      emit_error_rows the user appears as an "Error" row, otherwise it is
      dropped from the file. Either way it counts in `failed`.
    - Rows keep the order of the resolved identifiers.

    as_of fixes the CheckedAt timestamp (default: UTC now) so repeated runs
    produce identical files.
    """

    # pre-flight
    validate_output_path(output_path)
    spec.validate()
    static_ids = None if spec.mode == "all" else spec.load_identifiers()

    checked_at = as_of if as_of else datetime.now(timezone.utc)
    if checked_at.tzinfo is None:
        checked_at = checked_at.replace(tzinfo=timezone.utc)

    # resolve
    identifiers = static_ids if static_ids is not None else _resolve_all(source, include_disabled)
    logger.info("Resolved %d user(s) from %s", len(identifiers), source.name)

    # fetch-all
    rows: List[MfaReportRow] = []
    failures: List[EntityFailure] = []

    for identifier in identifiers:
        try:
            detail = source.get_entity_detail(identifier)
            rows.append(normalize_mfa_row(detail, checked_at=checked_at))
        except EntityError as exc:
            failure = EntityFailure(identifier=identifier, reason=exc.reason, error_type=type(exc).__name__)
            failures.append(failure)
            logger.info("Lookup failed for %s: %s", identifier, exc.reason)
            if on_failure is not None:
                on_failure(failure)
            if emit_error_rows:
                rows.append(error_row(identifier, exc.reason, checked_at=checked_at))

    # write
    rows_written = write_report((r.as_record() for r in rows), MFA_COLUMNS, output_path)

    return ExportResult(
        output_path=output_path,
        rows_written=rows_written,
        succeeded=len(identifiers) - len(failures),
        failed=len(failures),
        failures=failures,
    )


def _resolve_all(source: DirectorySource, include_disabled: bool) -> List[str]:
    if include_disabled:
        entities = source.list_entities(enabled_only=False)
    elif source.supports_enabled_filter:
        entities = source.list_entities(enabled_only=True)
    else:
        entities = [e for e in source.list_entities(enabled_only=False) if e.enabled]

    return [e.id for e in entities if e.id]
