"""[Layer: Presentation] Typer CLI Commands."""

from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from importlib.metadata import PackageNotFoundError, version as get_package_version
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.table import Table

from flowgate.core.engine import Engine, NowView
from flowgate.core.errors import FlowGateError
from flowgate.core.rules import Disposition
from flowgate.models import (
    DeadlineEntry,
    ProjectPatch,
    RankFilters,
    TransitionPayload,
    TransitionResult,
)

_DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M"]


def _get_version() -> str:
    """Get version from package metadata (single source of truth: pyproject.toml)."""
    try:
        return get_package_version("flowgate")
    except PackageNotFoundError:
        return "0.0.0-dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"flowgate {_get_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="flowgate",
    help="Gated GTD: every state change is checked, audited and ranked.",
    no_args_is_help=True,
)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """flowgate command line."""


@contextmanager
def _errors_exit() -> Iterator[None]:
    """Turn caller and storage errors into a message and exit code 1."""
    try:
        yield
    except (FlowGateError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _echo_rejection(result: TransitionResult) -> None:
    typer.echo(f"Rejected: {result.reason}")
    for failure in result.failures:
        typer.echo(f"  - [{failure.code}] {failure.message}")
    for question in result.suggested_questions:
        typer.echo(f"  ? {question}")


@app.command()
def capture(
    title: str = typer.Argument(..., help="What's on your mind"),
    body: str = typer.Option("", "--body", "-b", help="Optional notes"),
) -> None:
    """Capture a thought to the inbox."""
    with _errors_exit():
        item = Engine().items.capture(title, body=body)
    typer.echo(f"Captured: {item.title[:60]}{'...' if len(item.title) > 60 else ''}")
    typer.echo(f"id: {item.id}")


@app.command()
def transition(
    item_id: str = typer.Argument(..., help="Item id"),
    target: str = typer.Argument(..., help="Target state (e.g. actionable, done)"),
    action: Optional[str] = typer.Option(None, "--action", "-a", help="Next action text"),
    context: Optional[str] = typer.Option(None, "--context", help="calls, errands, computer, deep_work"),
    energy: Optional[str] = typer.Option(None, "--energy", help="low, medium, high"),
    minutes: Optional[int] = typer.Option(None, "--minutes", "-m", help="Estimated minutes"),
    due: Optional[datetime] = typer.Option(None, "--due", formats=_DATE_FORMATS),
    until: Optional[datetime] = typer.Option(None, "--until", formats=_DATE_FORMATS, help="Snooze wake time"),
    waiting_on: Optional[str] = typer.Option(None, "--waiting-on", help="Who you are waiting on"),
    follow_up: Optional[datetime] = typer.Option(None, "--follow-up", formats=_DATE_FORMATS),
    force: bool = typer.Option(False, "--force", help="Skip gate checks (requires --reason)"),
    reason: Optional[str] = typer.Option(None, "--reason", help="Override reason"),
) -> None:
    """Move an item to a new state through its gate."""
    with _errors_exit():
        payload = TransitionPayload(
            action_text=action,
            context=context,
            energy=energy,
            estimated_minutes=minutes,
            due_date=due,
            snoozed_until=until,
            waiting_on=waiting_on,
            follow_up_at=follow_up,
        )
        result = Engine().transitions.execute_transition(
            item_id, target, payload, force=force, override_reason=reason
        )
    if not result.success:
        _echo_rejection(result)
        raise typer.Exit(1)
    typer.echo(f"{result.item.title}: now {result.item.state}")
    if result.next_action_required:
        typer.echo(f"Project {result.project_id} needs a new next action.")


@app.command()
def clarify(
    item_id: str = typer.Argument(..., help="Item id"),
    disposition: Disposition = typer.Argument(..., help="How to classify the item"),
    action: Optional[str] = typer.Option(None, "--action", "-a", help="Next action text"),
    outcome: Optional[str] = typer.Option(None, "--outcome", "-o", help="Project outcome"),
    waiting_on: Optional[str] = typer.Option(None, "--waiting-on"),
    follow_up: Optional[datetime] = typer.Option(None, "--follow-up", formats=_DATE_FORMATS),
) -> None:
    """Classify an inbox item (next_action, project, waiting, someday, reference, trash)."""
    with _errors_exit():
        payload = TransitionPayload(action_text=action, waiting_on=waiting_on, follow_up_at=follow_up)
        result = Engine().items.apply_disposition(
            item_id, disposition, payload, outcome_statement=outcome
        )
    if not result.success:
        _echo_rejection(result)
        raise typer.Exit(1)
    typer.echo(f"{result.item.title}: now {result.item.state}")
    if result.project_id:
        typer.echo(f"project id: {result.project_id}")


@app.command()
def artifact(
    item_id: str = typer.Argument(..., help="Item id"),
    content: Optional[str] = typer.Option(None, "--content", "-c", help="Draft or note text"),
    file: Optional[str] = typer.Option(None, "--file", "-f", help="Pointer to a file"),
    kind: str = typer.Option("note", "--type", "-t", help="draft, email, decision, note, file"),
) -> None:
    """Attach evidence to an item."""
    with _errors_exit():
        added = Engine().items.add_artifact(item_id, kind, content=content, file_pointer=file)
    typer.echo(f"Artifact {added.id} ({added.artifact_type}) attached.")
    if not added.is_evidence:
        typer.echo("Note: empty artifacts do not count as evidence.")


@app.command()
def remind(
    item_id: str = typer.Argument(..., help="Item id"),
    due: datetime = typer.Argument(..., formats=_DATE_FORMATS, help="When to follow up"),
) -> None:
    """Add a follow-up reminder to an item."""
    with _errors_exit():
        reminder = Engine().items.add_reminder(item_id, due)
    typer.echo(f"Reminder set for {reminder.due_at:%Y-%m-%d %H:%M} UTC.")


def _render_now(view: NowView) -> None:
    console = Console()
    table = Table(title="Now")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Next action")
    table.add_column("Score", justify="right")
    table.add_column("Why")
    table.add_column("Task id", style="dim")
    for n, entry in enumerate(view.ranked, start=1):
        table.add_row(
            str(n),
            entry.task.action_text,
            f"{entry.score:.1f}",
            ", ".join(entry.reason_tags),
            entry.task.id,
        )
    console.print(table)
    for excluded in view.excluded:
        console.print(f"[dim]hidden: {excluded.task.action_text} ({excluded.reason})[/dim]")
    for item in view.follow_ups_due:
        who = f" on {item.waiting_on}" if item.waiting_on else ""
        console.print(f"[yellow]follow up:[/yellow] {item.title} (waiting{who})")


@app.command()
def now(
    minutes: Optional[int] = typer.Option(None, "--minutes", "-m", help="Time available"),
    energy: Optional[str] = typer.Option(None, "--energy", help="low, medium, high"),
    context: Optional[str] = typer.Option(None, "--context", help="Where you are"),
    strict: bool = typer.Option(False, "--strict", help="Hide tasks that don't fit"),
) -> None:
    """Show the ranked Now list."""
    with _errors_exit():
        filters = RankFilters(time_available=minutes, energy=energy, context=context)
        view = Engine().now(filters, "strict" if strict else None)
    if not view.ranked and not view.excluded:
        typer.echo("Nothing actionable. Capture or clarify something first.")
    else:
        _render_now(view)


@app.command()
def audit(
    item_id: Optional[str] = typer.Argument(None, help="Limit to one item"),
    limit: int = typer.Option(50, "--limit", "-n"),
) -> None:
    """Show the transition audit trail, oldest first."""
    with _errors_exit():
        rows = Engine().audit_trail(item_id, limit)
    for row in rows:
        flag = " [override]" if row.override else ""
        typer.echo(
            f"{row.created_at:%Y-%m-%d %H:%M:%S} {row.item_id[:8]} "
            f"{row.from_state} -> {row.to_state_attempted} {row.decision} "
            f"by {row.actor}{flag}"
        )


@app.command("project-create")
def project_create(
    outcome: Optional[str] = typer.Option(None, "--outcome", "-o", help="What done looks like"),
    action: Optional[str] = typer.Option(None, "--action", "-a", help="Next action text"),
    active: bool = typer.Option(False, "--active", help="Create as active (needs outcome and action)"),
    priority: int = typer.Option(0, "--priority", "-p"),
) -> None:
    """Create a project."""
    with _errors_exit():
        result = Engine().projects.create_project(
            outcome_statement=outcome,
            next_action_text=action,
            status="active" if active else "clarifying",
            priority=priority,
        )
    if not result.success:
        typer.echo(f"Rejected: {result.reason}")
        raise typer.Exit(1)
    typer.echo(f"Project {result.project.id} ({result.project.status})")


@app.command("project-status")
def project_status(
    project_id: str = typer.Argument(..., help="Project id"),
    status: str = typer.Argument(..., help="New status"),
    confirm: bool = typer.Option(False, "--confirm", help="Confirm the outcome when marking done"),
) -> None:
    """Change a project's status through Gate A."""
    with _errors_exit():
        engine = Engine()
        if status == "done":
            result = engine.projects.complete_project(project_id, confirm_outcome=confirm)
        elif status == "active":
            result = engine.projects.activate_project(project_id)
        else:
            result = engine.projects.patch_project(project_id, ProjectPatch(status=status))
    if not result.success:
        typer.echo(f"Rejected: {result.reason}")
        for failure in result.verifier_failures:
            typer.echo(f"  - [{failure.code}] {failure.message}")
        raise typer.Exit(1)
    typer.echo(f"Project {project_id}: now {result.project.status}")


@app.command("project-assign")
def project_assign(
    project_id: str = typer.Argument(..., help="Project id"),
    item_id: str = typer.Argument(..., help="Item to attach to the project"),
) -> None:
    """Attach an existing item to a project that has none."""
    with _errors_exit():
        result = Engine().projects.assign_item(project_id, item_id)
    if not result.success:
        typer.echo(f"Rejected: {result.reason}")
        raise typer.Exit(1)
    typer.echo(f"Project {project_id}: item {item_id} ({result.project.status})")


@app.command()
def focus(
    project_ids: Optional[list[str]] = typer.Argument(None, help="Projects to focus on this week"),
    clear: bool = typer.Option(False, "--clear", help="Clear this week's focus"),
) -> None:
    """Pick this week's focus projects (replaces the previous pick)."""
    if not project_ids and not clear:
        typer.echo("Give project ids, or --clear to drop the focus.", err=True)
        raise typer.Exit(1)
    with _errors_exit():
        focused = Engine().reviews.set_focus_projects([] if clear else project_ids)
    if not focused:
        typer.echo("Focus cleared.")
    for project in focused:
        typer.echo(f"focus: {project.id} {project.outcome_statement or ''}".rstrip())


def _deadline_rows(title: str, entries: list[DeadlineEntry]) -> Table:
    table = Table(title=title)
    table.add_column("Due")
    table.add_column("Kind", style="dim")
    table.add_column("Title")
    table.add_column("Id", style="dim")
    for entry in entries:
        table.add_row(f"{entry.due_date:%Y-%m-%d %H:%M}", entry.kind, entry.title, entry.id)
    return table


@app.command()
def deadlines() -> None:
    """Show what is due today, this week and this month."""
    with _errors_exit():
        view = Engine().deadlines()
    if not (view.today or view.next_7_days or view.next_30_days):
        typer.echo("No deadlines in the next 30 days.")
        return
    console = Console()
    for title, entries in (
        ("Today", view.today),
        ("Next 7 days", view.next_7_days),
        ("Next 30 days", view.next_30_days),
    ):
        if entries:
            console.print(_deadline_rows(title, entries))


class ReviewKind(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


@app.command()
def review(
    kind: ReviewKind = typer.Argument(ReviewKind.DAILY, help="daily or weekly"),
) -> None:
    """Show the daily or weekly review counts."""
    with _errors_exit():
        engine = Engine()
        snapshot = engine.daily_review() if kind == ReviewKind.DAILY else engine.weekly_review()
    table = Table(title=f"{kind.value.capitalize()} review")
    table.add_column("Check")
    table.add_column("Count", justify="right")
    for name, count in snapshot.model_dump().items():
        label = name.removesuffix("_count").replace("_", " ")
        table.add_row(label, str(count))
    Console().print(table)


@app.command()
def wake() -> None:
    """Move snoozed items whose wake time has passed back to actionable."""
    with _errors_exit():
        woken = Engine().tasks.wake_snoozed()
    typer.echo(f"Woke {len(woken)} task(s).")


@app.command()
def version() -> None:
    """Show version."""
    typer.echo(f"flowgate {_get_version()}")
