"""Local system status checks backed by the registry."""

from winadmin_reports.checks.registry_checks import (
    BuildInfo,
    RebootStatus,
    check_pending_reboot,
    read_build_info,
    reboot_nagios_result,
)

__all__ = ["BuildInfo", "RebootStatus", "check_pending_reboot", "read_build_info", "reboot_nagios_result"]
