from __future__ import annotations

import json
import logging
from pathlib import Path

import typer

from outreach import __version__
from outreach.adapters.backend.client import BackendClient
from outreach.config import (
    WorkspaceConfig,
    WorkspaceError,
    ensure_workspaces_dir,
    load_workspace,
    set_current_workspace,
    workspace_config_path,
    write_workspace_config,
)
from outreach.domain import funnels, periods, rules
from outreach.domain.funnels import SCHEME_CHANNELS, FunnelStageCounts
from outreach.domain.roster import ProspectRow, activity_date
from outreach.domain.rules import ValidationError
from outreach.domain.stages import DEFAULT_SCHEMES, Channel, FunnelScheme, Granularity
from outreach.services import analytics, exports
from outreach.services.analytics import ProjectSnapshot, ProjectView
from outreach.services.cache import TTLCache

app = typer.Typer(help="Outreach funnel analytics CLI")
workspace_app = typer.Typer(help="Workspace management")
funnel_app = typer.Typer(help="Funnel stage counts")
export_app = typer.Typer(help="Exports")

app.add_typer(workspace_app, name="workspace")
app.add_typer(funnel_app, name="funnel")
app.add_typer(export_app, name="export")

LOAD_FAILED_MESSAGE = "Couldn't load data from the backend; retry."


@app.callback()
def main_callback(
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    if version:
        typer.echo(__version__)
        raise typer.Exit()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("init")
def init() -> None:
    """Initialize directories for workspaces and exports."""
    ensure_workspaces_dir()
    Path("exports").mkdir(exist_ok=True)
    typer.echo("Initialized outreach directories.")


@workspace_app.command("add")
def workspace_add(
    name: str = typer.Argument(...),
    base_url: str | None = typer.Option(None, "--base-url", help="Backend URL (http://host:port)."),
    use: bool = typer.Option(True, "--use/--no-use", help="Set as current workspace."),
    force: bool = typer.Option(
        False, "--force", help="Overwrite existing workspace config if it exists."
    ),
) -> None:
    config_path = workspace_config_path(name)
    if config_path.exists() and not force:
        raise typer.BadParameter(
            f"Workspace already exists: {config_path}. Use --force to overwrite."
        )
    config_path = write_workspace_config(name, base_url)
    if use:
        set_current_workspace(name)
    typer.echo(f"Workspace created: {config_path}")


@workspace_app.command("use")
def workspace_use(name: str = typer.Argument(...)) -> None:
    if not workspace_config_path(name).exists():
        raise typer.BadParameter(f"Workspace config not found: {workspace_config_path(name)}")
    set_current_workspace(name)
    typer.echo(f"Active workspace: {name}")


@app.command("projects")
def projects() -> None:
    """List the projects available on the backend."""
    ws = _load_workspace()
    found = analytics.list_projects(_client(ws))
    if found is None:
        _exit_with_error(LOAD_FAILED_MESSAGE)
    if not found:
        typer.echo("No projects found.")
        return
    for project in found:
        typer.echo(f"{project.project_id} | {project.name or ''}")


@funnel_app.command("show")
def funnel_show(
    project_id: str = typer.Argument(..., help="Project ID"),
    channel: str = typer.Option("call", "--channel", help="call, email or linkedin"),
    scheme: str | None = typer.Option(None, "--scheme", help="Stage scheme, e.g. call-legacy."),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
) -> None:
    """Unique-contact counts for every stage of a channel funnel."""
    ws = _load_workspace()
    selected = _resolve_scheme(channel, scheme)
    view = _load_view(ws, project_id)
    counts = view.funnel(selected)
    if json_output:
        typer.echo(json.dumps(counts.as_dict(), indent=2))
        return
    title = view.snapshot.project.name if view.snapshot.project else project_id
    typer.echo(f"{title} | {selected.value} funnel")
    for line in _funnel_lines(counts):
        typer.echo(line)


@funnel_app.command("breakdown")
def funnel_breakdown(
    project_id: str = typer.Argument(..., help="Project ID"),
    channel: str = typer.Option("call", "--channel", help="call, email or linkedin"),
    scheme: str | None = typer.Option(None, "--scheme"),
    by: str = typer.Option("month", "--by", help="day or month"),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
) -> None:
    """Stage counts per day or month of activity."""
    ws = _load_workspace()
    selected = _resolve_scheme(channel, scheme)
    try:
        rules.validate_enum(by, [g.value for g in Granularity], "by")
    except ValidationError as exc:
        _exit_with_error(str(exc))
    view = _load_view(ws, project_id)
    table = periods.breakdown_by_period(
        view.snapshot.contacts,
        view.snapshot.activities,
        selected,
        by,
        ws.funnel.rules(),
    )
    if json_output:
        payload = {period: counts.as_dict() for period, counts in table.items()}
        typer.echo(json.dumps(payload, indent=2))
        return
    if not table:
        typer.echo("No dated activity for this funnel.")
        return
    keys = funnels.stage_keys(selected)
    typer.echo(" | ".join(["period", *keys]))
    for period, counts in table.items():
        typer.echo(" | ".join([period, *(str(counts.get(key)) for key in keys)]))


@funnel_app.command("stage")
def funnel_stage(
    project_id: str = typer.Argument(..., help="Project ID"),
    stage: str = typer.Argument(..., help="Stage key, e.g. callsConnected"),
    channel: str = typer.Option("call", "--channel", help="call, email or linkedin"),
    scheme: str | None = typer.Option(None, "--scheme"),
) -> None:
    """List the activities (or prospects) behind one funnel stage."""
    ws = _load_workspace()
    selected = _resolve_scheme(channel, scheme)
    try:
        funnels.get_stage(selected, stage)
    except ValidationError as exc:
        _exit_with_error(str(exc))
    view = _load_view(ws, project_id)
    if stage == "prospectData":
        _echo_roster(view.roster())
        return
    matched = view.stage_activities(selected, stage)
    if not matched:
        typer.echo("No activities in this stage.")
        return
    for activity in matched:
        when = activity_date(activity)
        status = activity.call_status or activity.status or ""
        typer.echo(
            f"{activity.contact_id} | {activity.type} | {when.isoformat() if when else ''} | {status}"
        )


@app.command("prospects")
def prospects(project_id: str = typer.Argument(..., help="Project ID")) -> None:
    """Prospects with the status of their most recent activity."""
    ws = _load_workspace()
    view = _load_view(ws, project_id)
    _echo_roster(view.roster())


@app.command("analytics")
def prospect_analytics(
    project_id: str | None = typer.Option(None, "--project", help="Limit to one project."),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
) -> None:
    """Pre-aggregated prospect analytics from the backend."""
    ws = _load_workspace()
    summary = analytics.prospect_analytics(_client(ws), project_id)
    if summary is None:
        _exit_with_error(LOAD_FAILED_MESSAGE)
    if json_output:
        payload = {
            "funnels": {name: counts.as_dict() for name, counts in summary.funnels.items()},
            **summary.sections,
        }
        typer.echo(json.dumps(payload, indent=2, default=str))
        return
    overview = summary.sections.get("overview")
    if isinstance(overview, dict):
        for key, value in overview.items():
            typer.echo(f"{key}: {value}")
    for name, counts in summary.funnels.items():
        typer.echo(f"{name} ({counts.scheme.value})")
        for line in _funnel_lines(counts):
            typer.echo(f"  {line}")


@app.command("master")
def master(json_output: bool = typer.Option(False, "--json", help="Emit JSON output.")) -> None:
    """Executive KPIs from the master dashboard."""
    ws = _load_workspace()
    payload = analytics.master_dashboard(_client(ws))
    if payload is None:
        _exit_with_error(LOAD_FAILED_MESSAGE)
    if json_output:
        typer.echo(json.dumps(payload, indent=2, default=str))
        return
    for label, value in analytics.master_kpis(payload):
        typer.echo(f"{label:<28} {value:6.1f}%")


@app.command("performance")
def performance(
    time_filter: list[str] = typer.Option(
        ["today"], "--time-filter", help="today, last7days or lastMonth (repeatable)."
    ),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON output."),
) -> None:
    """Employee activity totals per time filter.

    The response cache lives for this invocation only, so it serves repeated
    --time-filter values without a second request.
    """
    ws = _load_workspace()
    try:
        for value in time_filter:
            rules.validate_enum(value, analytics.TIME_FILTERS, "time-filter")
    except ValidationError as exc:
        _exit_with_error(str(exc))
    client = _client(ws)
    cache = TTLCache(ttl_seconds=ws.cache.ttl_seconds)
    results = {value: analytics.employee_performance(client, value, cache) for value in time_filter}
    if all(result is None for result in results.values()):
        _exit_with_error(LOAD_FAILED_MESSAGE)
    if json_output:
        typer.echo(json.dumps(results, indent=2, default=str))
        return
    for value, result in results.items():
        typer.echo(f"[{value}]")
        employees = (result or {}).get("employees") or []
        if not employees:
            typer.echo("No employee data available")
            continue
        for employee in employees:
            by_channel = employee.get("byChannel") or {}
            totals = [
                f"{channel.value}={(by_channel.get(channel.value) or {}).get('total', 0)}"
                for channel in Channel
            ]
            typer.echo(f"{employee.get('name', employee.get('userId'))} | {' '.join(totals)}")


@export_app.command("funnel")
def export_funnel(
    project_id: str = typer.Argument(..., help="Project ID"),
    out: str = typer.Option(..., "--out", help="Excel file (.xlsx) or directory for CSV files."),
    legacy: bool = typer.Option(False, "--legacy", help="Include the legacy call funnel."),
) -> None:
    """Export every channel funnel plus the prospect roster."""
    ws = _load_workspace()
    view = _load_view(ws, project_id)
    schemes = [FunnelScheme.CALL, FunnelScheme.EMAIL, FunnelScheme.LINKEDIN]
    if legacy:
        schemes.insert(1, FunnelScheme.CALL_LEGACY)
    counts = {scheme.value: view.funnel(scheme) for scheme in schemes}
    out_path = Path(out)
    if out_path.suffix.lower() == ".xlsx":
        exports.export_excel(counts, view.roster(), out_path)
        typer.echo(f"Exported Excel to {out_path}")
    else:
        exports.export_csv_tables(counts, view.roster(), out_path)
        typer.echo(f"Exported CSV files to {out_path}")


def _resolve_scheme(channel: str, scheme: str | None) -> FunnelScheme:
    try:
        rules.validate_enum(channel, [c.value for c in Channel], "channel")
        if scheme is None:
            return DEFAULT_SCHEMES[Channel(channel)]
        rules.validate_enum(scheme, [s.value for s in FunnelScheme], "scheme")
    except ValidationError as exc:
        _exit_with_error(str(exc))
    selected = FunnelScheme(scheme)
    if SCHEME_CHANNELS[selected] != Channel(channel):
        _exit_with_error(f"scheme {scheme} does not belong to the {channel} channel.")
    return selected


def _funnel_lines(counts: FunnelStageCounts) -> list[str]:
    conversion = funnels.stage_conversion(counts)
    lines = []
    for stage, value in counts.rows():
        share = conversion.get(stage.key)
        suffix = f" {rules.format_percentage(share)}" if share is not None else ""
        lines.append(f"{stage.label:<24} {value:>6}{suffix}")
    return lines


def _echo_roster(rows: list[ProspectRow]) -> None:
    if not rows:
        typer.echo("No prospects in this project.")
        return
    for row in rows:
        contact = row.contact
        typer.echo(
            f"{contact.contact_id} | {contact.name or ''} | {contact.company or ''} | {row.display_status}"
        )


def _client(ws: WorkspaceConfig) -> BackendClient:
    return BackendClient(ws.api.base_url, token=ws.api.token(), timeout=ws.api.timeout)


def _load_view(ws: WorkspaceConfig, project_id: str) -> ProjectView:
    try:
        rules.require(project_id, "project")
    except ValidationError as exc:
        _exit_with_error(str(exc))
    view = ProjectView(
        _client(ws), activity_limit=ws.api.activity_limit, funnel_rules=ws.funnel.rules()
    )
    snapshot: ProjectSnapshot | None = view.load(project_id)
    if snapshot is None or snapshot.failed:
        _exit_with_error(LOAD_FAILED_MESSAGE)
    return view


def _load_workspace() -> WorkspaceConfig:
    try:
        return load_workspace()
    except WorkspaceError as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1) from exc


def _exit_with_error(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
