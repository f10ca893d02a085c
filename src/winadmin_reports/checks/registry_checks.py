from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List

from winadmin_reports.errors import SourceUnavailable
from winadmin_reports.pipeline.normalize import UNKNOWN
from winadmin_reports.report.nagios import NagiosResult, NagiosState
from winadmin_reports.sources.registry import DEFAULT_VALUE, MISSING, RegistryReader

CBS_REBOOT_PENDING = r"HKLM\SOFTWARE\Microsoft\Windows\CurrentVersion\Component Based Servicing\RebootPending"
WU_REBOOT_REQUIRED = r"HKLM\SOFTWARE\Microsoft\Windows\CurrentVersion\WindowsUpdate\Auto Update\RebootRequired"
SESSION_MANAGER = r"HKLM\SYSTEM\CurrentControlSet\Control\Session Manager"
CURRENT_VERSION = r"HKLM\SOFTWARE\Microsoft\Windows NT\CurrentVersion"


@dataclass(frozen=True)
class RebootStatus:
    pending: bool
    reasons: List[str]


@dataclass(frozen=True)
class BuildInfo:
    product_name: str
    display_version: str
    build: str
    ubr: str

    @property
    def full_build(self) -> str:
        if self.build == UNKNOWN:
            return UNKNOWN
        if self.ubr == UNKNOWN:
            return self.build
        return f"{self.build}.{self.ubr}"


def check_pending_reboot(reader: RegistryReader) -> RebootStatus:
    reasons: List[str] = []

    if reader.read_value(CBS_REBOOT_PENDING, DEFAULT_VALUE) is not MISSING:
        reasons.append("Component Based Servicing")
    if reader.read_value(WU_REBOOT_REQUIRED, DEFAULT_VALUE) is not MISSING:
        reasons.append("Windows Update")

    renames = reader.read_value(SESSION_MANAGER, "PendingFileRenameOperations")
    if renames is not MISSING and _has_entries(renames):
        reasons.append("Pending file rename operations")

    return RebootStatus(pending=bool(reasons), reasons=reasons)


def reboot_nagios_result(reader: RegistryReader) -> NagiosResult:
    """Reboot check as a Nagios plugin result. Unreadable registry -> UNKNOWN."""

    try:
        status = check_pending_reboot(reader)
    except SourceUnavailable as exc:
        return NagiosResult(service="reboot", state=NagiosState.UNKNOWN, message=str(exc))

    if status.pending:
        return NagiosResult(
            service="reboot",
            state=NagiosState.WARNING,
            message="reboot pending: " + ", ".join(status.reasons),
            perfdata={"pending": 1},
        )
    return NagiosResult(service="reboot", state=NagiosState.OK, message="no reboot pending", perfdata={"pending": 0})


def read_build_info(reader: RegistryReader) -> BuildInfo:
    display_version = _first_text(reader, CURRENT_VERSION, "DisplayVersion", "ReleaseId")
    build = _first_text(reader, CURRENT_VERSION, "CurrentBuild", "CurrentBuildNumber")

    return BuildInfo(
        product_name=_first_text(reader, CURRENT_VERSION, "ProductName"),
        display_version=display_version,
        build=build,
        ubr=_first_text(reader, CURRENT_VERSION, "UBR"),
    )


def _first_text(reader: RegistryReader, path: str, *names: str) -> str:
    for name in names:
        value = reader.read_value(path, name)
        if value is MISSING or value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return UNKNOWN


def _has_entries(value: Any) -> bool:
    # REG_MULTI_SZ comes back as a list, snapshots may store a plain string
    if isinstance(value, (list, tuple)):
        return any(str(v).strip() for v in value)
    return bool(str(value).strip()) if value is not None else False
