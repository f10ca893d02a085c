from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from winadmin_reports.checks import read_build_info, reboot_nagios_result
from winadmin_reports.config import Settings, load_settings
from winadmin_reports.errors import ConfigError, SourceUnavailable
from winadmin_reports.logging_utils import (
    JsonlLogger,
    configure_logging,
    default_log_path,
    new_run_context,
)
from winadmin_reports.pipeline import EntityFailure, QuerySpec, count_users, export_mfa_status
from winadmin_reports.report import NagiosResult, NagiosState, format_nagios
from winadmin_reports.sources import (
    DirectorySource,
    GraphSource,
    MsolSnapshotSource,
    RegistryReader,
    SnapshotRegistryReader,
    WinRegReader,
)

EXIT_CONFIG_ERROR = 2
EXIT_SOURCE_UNAVAILABLE = 3

app = typer.Typer(add_completion=False, help="Windows / AD / Entra ID reporting tools")


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        exists=True,
        dir_okay=False,
        file_okay=True,
        readable=True,
        help="Path to YAML config (optional)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging to stderr"),
) -> None:
    """Load settings and store them in Typer context."""

    configure_logging(verbose)
    try:
        settings = load_settings(config)
    except ConfigError as exc:
        typer.echo(f"ERROR: {exc}", err=True)
        raise typer.Exit(code=EXIT_CONFIG_ERROR)

    settings.paths.logs_dir.mkdir(parents=True, exist_ok=True)
    ctx.obj = {"settings": settings}


def _open_log(settings: Settings, command: str) -> JsonlLogger:
    run_ctx = new_run_context(command)
    return JsonlLogger(default_log_path(settings.paths.logs_dir, now_utc=run_ctx.started_at_utc), run_ctx)


def build_directory_source(settings: Settings, backend: Optional[str] = None) -> DirectorySource:
    """Pick the backend before the core runs; the core stays backend-agnostic."""

    chosen = backend or settings.backend
    if chosen == "graph":
        if not settings.graph.access_token:
            raise ConfigError("GRAPH_ACCESS_TOKEN missing (checked env and config)")
        return GraphSource.from_token(settings.graph.access_token, settings.graph)
    if chosen == "msol_snapshot":
        if settings.msol_snapshot_path is None:
            raise ConfigError("msol_snapshot_path missing (set MSOL_SNAPSHOT_PATH or config)")
        return MsolSnapshotSource(settings.msol_snapshot_path)
    raise ConfigError(f"unsupported backend: {chosen}")


def build_registry_reader(settings: Settings) -> RegistryReader:
    if settings.registry_snapshot_path is not None:
        return SnapshotRegistryReader.from_yaml(settings.registry_snapshot_path)
    return WinRegReader()


def _fail(logger: JsonlLogger, exc: Exception, code: int) -> typer.Exit:
    typer.echo(f"ERROR: {exc}", err=True)
    logger.log("command_failed", error_type=type(exc).__name__, error_message=str(exc), exit_code=code)
    return typer.Exit(code=code)


@app.command("export-mfa")
def export_mfa(
    ctx: typer.Context,
    all_: bool = typer.Option(False, "--all", help="Report on every user in the directory"),
    ids: Optional[str] = typer.Option(None, "--ids", help="Comma-separated user principal names"),
    csv_path: Optional[Path] = typer.Option(None, "--csv", help="CSV file with a UserPrincipalName column"),
    output: Path = typer.Option(..., "--output", help="Report path (.csv, directory must exist)"),
    include_disabled: bool = typer.Option(False, "--include-disabled", help="Include disabled accounts with --all"),
    backend: Optional[str] = typer.Option(None, "--backend", help="graph | msol_snapshot (overrides config)"),
    as_of: Optional[datetime] = typer.Option(None, "--as-of", help="Fixed CheckedAt timestamp"),
) -> None:
    """Export per-user MFA registration status to CSV."""

    settings: Settings = ctx.obj["settings"]
    logger = _open_log(settings, "export-mfa")

    logger.log(
        "command_start",
        mode="all" if all_ else ("ids" if ids is not None else "file"),
        output=output,
        include_disabled=include_disabled,
        backend=backend or settings.backend,
    )

    def _report_failure(failure: EntityFailure) -> None:
        typer.echo(f"WARN: {failure.identifier}: {failure.reason}", err=True)
        logger.log(
            "entity_failed",
            identifier=failure.identifier,
            error_type=failure.error_type,
            error_message=failure.reason,
        )

    try:
        spec = QuerySpec.from_cli(all_=all_, ids=ids, csv_path=csv_path)
        source = build_directory_source(settings, backend)
        result = export_mfa_status(
            source,
            spec,
            output,
            include_disabled,
            as_of=as_of,
            emit_error_rows=settings.export.emit_error_rows,
            on_failure=_report_failure,
        )
    except ConfigError as exc:
        raise _fail(logger, exc, EXIT_CONFIG_ERROR)
    except SourceUnavailable as exc:
        raise _fail(logger, exc, EXIT_SOURCE_UNAVAILABLE)

    logger.log("export_written", path=result.output_path, rows_written=result.rows_written)
    logger.summary(
        status_counts={"ok": result.succeeded, "error": result.failed},
        output_path=result.output_path,
    )
    typer.echo(result.summary_line())


@app.command("count-users")
def count_users_cmd(
    ctx: typer.Context,
    backend: Optional[str] = typer.Option(None, "--backend", help="graph | msol_snapshot (overrides config)"),
) -> None:
    """Count directory users (total / enabled / disabled)."""

    settings: Settings = ctx.obj["settings"]
    logger = _open_log(settings, "count-users")
    logger.log("command_start", backend=backend or settings.backend)

    try:
        counts = count_users(build_directory_source(settings, backend))
    except ConfigError as exc:
        raise _fail(logger, exc, EXIT_CONFIG_ERROR)
    except SourceUnavailable as exc:
        raise _fail(logger, exc, EXIT_SOURCE_UNAVAILABLE)

    logger.summary(
        status_counts={"ok": 1},
        total=counts.total,
        enabled=counts.enabled,
        disabled=counts.disabled,
    )
    typer.echo(f"Total users: {counts.total} (enabled: {counts.enabled}, disabled: {counts.disabled})")


@app.command("reboot-check")
def reboot_check(
    ctx: typer.Context,
    nagios: bool = typer.Option(False, "--nagios", help="Nagios plugin output and exit codes"),
) -> None:
    """Check the registry for a pending reboot."""

    settings: Settings = ctx.obj["settings"]
    logger = _open_log(settings, "reboot-check")
    logger.log("command_start", nagios=nagios)

    try:
        result = reboot_nagios_result(build_registry_reader(settings))
    except ConfigError as exc:
        # plugins must stay within the 0-3 state codes
        if not nagios:
            raise _fail(logger, exc, EXIT_CONFIG_ERROR)
        result = NagiosResult(service="reboot", state=NagiosState.UNKNOWN, message=str(exc))
    except SourceUnavailable as exc:
        result = NagiosResult(service="reboot", state=NagiosState.UNKNOWN, message=str(exc))

    logger.summary(status_counts={result.state.name.lower(): 1}, message=result.message)

    if nagios:
        typer.echo(format_nagios(result))
        raise typer.Exit(code=result.exit_code)

    if result.state is NagiosState.UNKNOWN:
        raise _fail(logger, SourceUnavailable(result.message), EXIT_SOURCE_UNAVAILABLE)
    typer.echo(result.message)


@app.command("build-info")
def build_info(ctx: typer.Context) -> None:
    """Print Windows product name, version and build (build.UBR)."""

    settings: Settings = ctx.obj["settings"]
    logger = _open_log(settings, "build-info")
    logger.log("command_start")

    try:
        info = read_build_info(build_registry_reader(settings))
    except ConfigError as exc:
        raise _fail(logger, exc, EXIT_CONFIG_ERROR)
    except SourceUnavailable as exc:
        raise _fail(logger, exc, EXIT_SOURCE_UNAVAILABLE)

    logger.summary(status_counts={"ok": 1}, build=info.full_build)
    typer.echo(f"Product: {info.product_name}")
    typer.echo(f"Version: {info.display_version}")
    typer.echo(f"Build:   {info.full_build}")


if __name__ == "__main__":
    app()
