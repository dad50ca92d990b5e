"""CLI for the timesheet assistant.

Developer CLI to run the preview/commit flow against a local or tenant
database, plus the overlap diagnostics used when existing entries block
validation.
"""

import json
import uuid
from datetime import date
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.table import Table
from sqlalchemy import select

from timesheet_ai.config.settings import settings
from timesheet_ai.core.logger import setup_logger
from timesheet_ai.db.models import Base, Timesheet, User
from timesheet_ai.db.session import get_engine, get_session
from timesheet_ai.timesheets.intent_service import TimesheetIntentService
from timesheet_ai.timesheets.plan_validator import overlap_debug_reason
from timesheet_ai.timesheets.service import CommitResult, PreviewResult, TimesheetAssistant
from timesheet_ai.timesheets.types import NormalizedPlan

# Initialize Rich console for output
console = Console()

# Initialize Typer app
app = typer.Typer(
    name="timesheet-ai",
    help="Timesheet AI CLI - preview and commit natural-language timesheet plans",
    add_completion=False,
)


@app.callback()
def main(debug: bool = typer.Option(False, "--debug", help="Enable debug logging")) -> None:
    setup_logger(level="DEBUG" if debug else settings.log_level, log_file=settings.log_file)


def _load_actor(session, actor_id: int) -> User:
    actor = session.get(User, actor_id)
    if actor is None:
        console.print(f"[red]Error:[/red] User {actor_id} not found")
        raise typer.Exit(1)
    return actor


def _print_issues(title: str, found: list, style: str) -> None:
    for issue in found:
        console.print(f"[{style}]{title}:[/{style}] {issue.message}")


def _print_plan(plan: NormalizedPlan) -> None:
    table = Table(title=f"Plan ({plan.timezone or 'UTC'})")
    table.add_column("Date")
    table.add_column("Time")
    table.add_column("Project")
    table.add_column("Task")
    table.add_column("Location")
    table.add_column("Minutes", justify="right")

    for day in plan.days:
        for entry in day.entries:
            table.add_row(
                day.date.isoformat(),
                f"{entry.start_time}-{entry.end_time}",
                entry.project_name,
                entry.task_name,
                entry.location_name,
                str(entry.minutes),
            )
        for slot in day.breaks:
            table.add_row(day.date.isoformat(), f"{slot.start_time}-{slot.end_time}", "[dim]break[/dim]", "", "", "")

    console.print(table)


def _render_preview(result: PreviewResult) -> None:
    if not result.ok:
        console.print(Panel(result.message or "Preview failed", title="Preview", style="red"))
        _print_issues("Error", result.errors, "red")
        if result.missing_fields:
            console.print(f"[yellow]Missing fields:[/yellow] {', '.join(result.missing_fields)}")
        _print_issues("Warning", result.warnings, "yellow")
        return

    _print_plan(result.plan)
    if result.totals is not None:
        console.print(
            f"[green]Total:[/green] {result.totals.overall_hours:.2f}h "
            f"({result.totals.overall_minutes} min over {len(result.totals.per_day)} days)"
        )
    _print_issues("Warning", result.warnings, "yellow")


def _render_commit(result: CommitResult) -> None:
    if not result.ok:
        console.print(Panel(result.message or "Commit failed", title="Commit", style="red"))
        _print_issues("Error", result.errors, "red")
        return

    label = "Replayed" if result.replayed else "Created"
    console.print(f"[green]{label} {result.created_count} draft timesheets:[/green] {result.created_ids}")


@app.command()
def init_db() -> None:
    """Create all database tables."""
    Base.metadata.create_all(bind=get_engine())
    console.print("[green]Database tables created successfully.[/green]")


@app.command()
def preview(
    prompt: str = typer.Argument(..., help="Timesheet request, free text or form-style"),
    actor_id: int = typer.Option(..., "--actor-id", help="Acting user id"),
    technician_id: int | None = typer.Option(None, "--technician-id", help="Book for another technician (Owner/Admin)"),
    timezone: str | None = typer.Option(None, "--timezone", help="IANA timezone (default: APP_TIMEZONE)"),
    week_start: str | None = typer.Option(None, "--week-start", help="First day of the week"),
    start_date: str | None = typer.Option(None, "--start-date", help="Explicit first date (YYYY-MM-DD)"),
    end_date: str | None = typer.Option(None, "--end-date", help="Explicit last date (YYYY-MM-DD)"),
    output_file: str | None = typer.Option(None, "--output", "-o", help="Write the previewed plan JSON to file"),
) -> None:
    """Preview the timesheets a prompt would create. Nothing is written."""
    with get_session() as session:
        actor = _load_actor(session, actor_id)
        assistant = TimesheetAssistant(session, TimesheetIntentService())
        result = assistant.preview(
            actor,
            prompt,
            technician_id=technician_id,
            timezone=timezone,
            week_start=week_start,
            start_date=start_date,
            end_date=end_date,
        )

    _render_preview(result)

    if not result.ok:
        raise typer.Exit(1)

    if output_file:
        Path(output_file).write_text(result.plan.model_dump_json(indent=2), encoding="utf-8")
        console.print(f"[dim]Plan written to {output_file}[/dim]")


@app.command()
def commit(
    plan_file: str = typer.Argument(..., help="Plan JSON written by `preview --output`"),
    actor_id: int = typer.Option(..., "--actor-id", help="Acting user id"),
    request_id: str | None = typer.Option(None, "--request-id", help="Idempotency key (default: random)"),
    technician_id: int | None = typer.Option(None, "--technician-id", help="Book for another technician (Owner/Admin)"),
    confirm: bool = typer.Option(False, "--confirm", help="Confirm creation (required)"),
) -> None:
    """Validate a previewed plan again and create draft timesheets."""
    try:
        plan = NormalizedPlan.model_validate_json(Path(plan_file).read_text(encoding="utf-8")).to_plan()
    except (OSError, ValueError) as e:
        console.print(f"[red]Error:[/red] Could not read plan file: {e}", style="bold red")
        raise typer.Exit(1) from e

    request_id = request_id or str(uuid.uuid4())
    logger.info(f"Committing plan from {plan_file}", request_id=request_id)

    with get_session() as session:
        actor = _load_actor(session, actor_id)
        assistant = TimesheetAssistant(session, TimesheetIntentService())
        result = assistant.commit(
            actor,
            request_id,
            plan,
            confirmed=confirm,
            technician_id=technician_id,
        )

    _render_commit(result)
    if not result.ok:
        raise typer.Exit(1)


@app.command()
def overlap_debug(
    target_date: str = typer.Argument(..., help="Date to inspect (YYYY-MM-DD)"),
    technician_id: int | None = typer.Option(None, "--technician-id", help="Only this technician"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """List stored entries for a date and why each one would block overlap checks."""
    if not settings.ai_timesheet_debug:
        console.print("[yellow]Set AI_TIMESHEET_DEBUG=true to enable overlap diagnostics.[/yellow]")
        raise typer.Exit(1)

    try:
        day = date.fromisoformat(target_date)
    except ValueError as e:
        console.print(f"[red]Error:[/red] Invalid date: {target_date}")
        raise typer.Exit(1) from e

    with get_session() as session:
        query = select(Timesheet).where(Timesheet.date == day).order_by(Timesheet.technician_id, Timesheet.id)
        if technician_id is not None:
            query = query.where(Timesheet.technician_id == technician_id)
        rows = [
            {
                "id": row.id,
                "technician_id": row.technician_id,
                "start_time": row.start_time,
                "end_time": row.end_time,
                "status": row.status,
                "reason": overlap_debug_reason(row),
            }
            for row in session.execute(query).scalars().all()
        ]

    if as_json:
        console.print(JSON(json.dumps(rows)))
        return

    if not rows:
        console.print(f"[yellow]No entries on {day.isoformat()}[/yellow]")
        return

    table = Table(title=f"Entries on {day.isoformat()}")
    for column in ("id", "technician_id", "start_time", "end_time", "status", "reason"):
        table.add_column(column)
    for row in rows:
        style = "green" if row["reason"] == "ok" else "red"
        table.add_row(*(str(row[key]) if row[key] is not None else "" for key in row), style=style)
    console.print(table)


if __name__ == "__main__":
    app()
