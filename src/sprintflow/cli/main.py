import typer
from uuid import UUID
from typing import List, Optional
from datetime import datetime

from sprintflow.core.logging import setup_logging, get_logger
from sprintflow.schema import CompletionAction, SprintRead
from sprintflow.services.exceptions import SprintLifecycleError

# Initialize logging before anything else
setup_logging()
logger = get_logger(__name__)

app = typer.Typer()


def _controller():
    from sprintflow.services.lifecycle import SprintLifecycleController
    return SprintLifecycleController()


def _fail(error: SprintLifecycleError):
    logger.error("cli_operation_rejected", error=type(error).__name__, detail=str(error))
    typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(code=1)


def _print_sprint(sprint):
    view = SprintRead.model_validate(sprint)
    end = view.end_date.isoformat() if view.end_date else "-"
    line = f"{view.id}  {view.status.value:<10} {view.name}  (ends {end}"
    if view.is_expired:
        line += ", expired"
    elif view.days_remaining is not None:
        line += f", {view.days_remaining} days left"
    line += ")"
    if view.progress is not None:
        line += f"  {view.progress}% done"
    typer.echo(line)


@app.command()
def serve(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """Start the API server."""
    import uvicorn
    logger.info("starting_api_server", host=host, port=port)
    uvicorn.run("sprintflow.api.app:app", host=host, port=port, reload=reload)


@app.command()
def version():
    """Show version."""
    from sprintflow import __version__
    print(f"SprintFlow v{__version__}")


@app.command("init-db")
def init_db():
    """Create tables and indexes in DATABASE_URL."""
    from sprintflow.utils.db import init_db as _init_db
    _init_db()
    typer.echo("Database initialized.")


@app.command("list")
def list_sprints(project_id: UUID = typer.Argument(..., help="Project UUID")):
    """List a project's sprints: active, then planning, then completed."""
    for sprint in _controller().list_sprints(project_id):
        _print_sprint(sprint)


@app.command()
def update(
    project_id: UUID,
    sprint_id: UUID,
    user_id: UUID = typer.Option(..., "--user", help="Acting user UUID"),
    name: Optional[str] = typer.Option(None),
    goal: Optional[str] = typer.Option(None),
    start_date: Optional[datetime] = typer.Option(None, "--start"),
    end_date: Optional[datetime] = typer.Option(None, "--end"),
    budget: Optional[int] = typer.Option(None, min=0),
):
    """Edit a sprint's name, goal, dates or budget."""
    changes = {
        field: value
        for field, value in [
            ("name", name), ("goal", goal), ("start_date", start_date), ("end_date", end_date), ("budget", budget)
        ]
        if value is not None
    }
    if not changes:
        typer.echo("Nothing to update.", err=True)
        raise typer.Exit(code=2)
    try:
        sprint = _controller().update_sprint(project_id, sprint_id, user_id, **changes)
    except SprintLifecycleError as e:
        _fail(e)
    _print_sprint(sprint)


@app.command()
def delete(
    project_id: UUID,
    sprint_id: UUID,
    user_id: UUID = typer.Option(..., "--user", help="Acting user UUID"),
):
    """Delete a planning sprint; its tickets go back to the backlog."""
    try:
        unassigned = _controller().delete_sprint(project_id, sprint_id, user_id)
    except SprintLifecycleError as e:
        _fail(e)
    typer.echo(f"Deleted sprint {sprint_id}; {len(unassigned)} tickets moved to backlog.")


@app.command()
def start(
    project_id: UUID,
    sprint_id: UUID,
    user_id: UUID = typer.Option(..., "--user", help="Acting user UUID"),
    start_date: Optional[datetime] = typer.Option(None, help="Defaults to the sprint's date or now"),
    end_date: Optional[datetime] = typer.Option(None),
):
    """Start a planning sprint."""
    try:
        sprint = _controller().start(project_id, sprint_id, user_id, start_date, end_date)
    except SprintLifecycleError as e:
        _fail(e)
    _print_sprint(sprint)


@app.command()
def complete(
    project_id: UUID,
    sprint_id: UUID,
    user_id: UUID = typer.Option(..., "--user", help="Acting user UUID"),
    action: CompletionAction = typer.Option(CompletionAction.CLOSE_TO_NEXT, case_sensitive=False),
    target_sprint_id: Optional[UUID] = typer.Option(None, "--target", help="Planning sprint to carry over into"),
    create_next_sprint: bool = typer.Option(False, "--create-next", help="Always create a new sprint for carry-over"),
    done_column_ids: Optional[List[UUID]] = typer.Option(None, "--done-column", help="Repeat for each done column"),
):
    """Complete the active sprint and route its incomplete tickets."""
    try:
        result = _controller().complete(
            project_id,
            sprint_id,
            user_id,
            action=action,
            target_sprint_id=target_sprint_id,
            create_next_sprint=create_next_sprint,
            done_column_ids=done_column_ids or None,
        )
    except SprintLifecycleError as e:
        _fail(e)

    _print_sprint(result.sprint)
    typer.echo(f"  completed:        {len(result.disposition.completed)}")
    typer.echo(f"  moved to backlog: {len(result.disposition.moved_to_backlog)}")
    typer.echo(f"  carried over:     {len(result.disposition.carried_over)}")
    if result.next_sprint:
        typer.echo("  next sprint:")
        _print_sprint(result.next_sprint)


@app.command()
def reopen(
    project_id: UUID,
    sprint_id: UUID,
    user_id: UUID = typer.Option(..., "--user", help="Acting user UUID"),
):
    """Reopen a completed sprint."""
    try:
        sprint = _controller().reopen(project_id, sprint_id, user_id)
    except SprintLifecycleError as e:
        _fail(e)
    _print_sprint(sprint)


@app.command()
def extend(
    project_id: UUID,
    sprint_id: UUID,
    user_id: UUID = typer.Option(..., "--user", help="Acting user UUID"),
    days: Optional[int] = typer.Option(None, min=1, max=90),
    new_end_date: Optional[datetime] = typer.Option(None, "--until"),
):
    """Push back the end date of the active sprint."""
    try:
        sprint = _controller().extend(project_id, sprint_id, user_id, days, new_end_date)
    except SprintLifecycleError as e:
        _fail(e)
    _print_sprint(sprint)


if __name__ == "__main__":
    app()
