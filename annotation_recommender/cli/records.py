"""CLI commands for inspecting learning records."""

import json
from pathlib import Path

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from ..config import PipelineSettings
from ..recommendation.models import LearningRecord, LearningRecordType
from ..recommendation.suggestion import RelationPosition, SpanPosition
from ..storage.learning_records import LearningRecordStore

console = Console()
app = typer.Typer(
    help="Inspect user decisions on suggestions. Use 'list' to view records, "
    "'summary' for statistics and 'clear-skipped' to bring skipped suggestions "
    "back.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _store(data_dir: str | None) -> LearningRecordStore:
    if data_dir is None:
        return LearningRecordStore(PipelineSettings.from_env().learning_record_dir)
    return LearningRecordStore(Path(data_dir) / "learning_records")


def _format_position(record: LearningRecord) -> str:
    match record.position:
        case SpanPosition(begin=begin, end=end):
            return f"{begin}-{end}"
        case RelationPosition(
            source_begin=sb, source_end=se, target_begin=tb, target_end=te
        ):
            return f"{sb}-{se} -> {tb}-{te}"
    return str(record.position)


@app.command(name="list")
def list_records(
    project: int = typer.Option(..., help="Project id"),
    user: str = typer.Option(..., help="User who made the decisions"),
    data_owner: str | None = typer.Option(
        None, help="User whose annotations were affected (default: same as --user)"
    ),
    layer: int | None = typer.Option(None, help="Filter by layer id"),
    action: list[str] | None = typer.Option(
        None, help="Filter by action (accepted, rejected, skipped, corrected, shown)"
    ),
    limit: int | None = typer.Option(20, help="Maximum number of results"),
    format: str = typer.Option("table", help="Output format: table, json"),
    data_dir: str | None = typer.Option(None, help="Data directory path"),
) -> None:
    """List learning records, newest first."""
    store = _store(data_dir)

    action_filter = None
    if action:
        try:
            action_filter = {LearningRecordType(a) for a in action}
        except ValueError as e:
            console.print(f"[red]Invalid action value: {e}[/red]")
            raise typer.Exit(1)

    found = store.list_records(user, data_owner or user, project, layer)
    if action_filter:
        found = [r for r in found if r.action in action_filter]
    if limit:
        found = found[:limit]

    if format == "json":
        rprint(json.dumps([r.model_dump(mode="json") for r in found], indent=2))
        return

    if not found:
        console.print("[yellow]No learning records found[/yellow]")
        return

    table = Table(title=f"Learning Records (project {project})")
    table.add_column("Changed", style="dim")
    table.add_column("Document", style="cyan")
    table.add_column("Layer", style="cyan")
    table.add_column("Position")
    table.add_column("Label", style="white")
    table.add_column("Action", style="bold")

    for record in found:
        table.add_row(
            record.changed_at.strftime("%Y-%m-%d %H:%M:%S"),
            str(record.document_id),
            str(record.layer_id),
            _format_position(record),
            record.annotation or "",
            record.action.value,
        )

    console.print(table)


@app.command()
def summary(
    project: int | None = typer.Option(None, help="Limit to one project id"),
    data_dir: str | None = typer.Option(None, help="Data directory path"),
) -> None:
    """Show record counts per action and per data owner."""
    stats = _store(data_dir).get_storage_stats(project)

    stats_table = Table(title="Learning Record Statistics")
    stats_table.add_column("Metric", style="cyan")
    stats_table.add_column("Count", style="white")
    stats_table.add_row("Total Records", str(stats["total_records"]))
    console.print(stats_table)

    if stats["actions"]:
        action_table = Table(title="By Action")
        action_table.add_column("Action", style="cyan")
        action_table.add_column("Count", style="white")
        for action, count in sorted(stats["actions"].items()):
            action_table.add_row(action.title(), str(count))
        console.print(action_table)

    if stats["data_owners"]:
        owner_table = Table(title="By Data Owner")
        owner_table.add_column("Data Owner", style="cyan")
        owner_table.add_column("Count", style="white")
        for owner, count in sorted(
            stats["data_owners"].items(), key=lambda x: x[1], reverse=True
        ):
            owner_table.add_row(owner, str(count))
        console.print(owner_table)


@app.command(name="clear-skipped")
def clear_skipped(
    project: int = typer.Option(..., help="Project id"),
    user: str = typer.Option(..., help="User who skipped the suggestions"),
    data_owner: str | None = typer.Option(
        None, help="User whose annotations were affected (default: same as --user)"
    ),
    layer: int | None = typer.Option(None, help="Limit to one layer id"),
    data_dir: str | None = typer.Option(None, help="Data directory path"),
) -> None:
    """Delete skip decisions so skipped suggestions are shown again.

    Suggestions reappear after the next prediction run.
    """
    deleted = _store(data_dir).delete_skipped_records(
        user, data_owner or user, project, layer
    )
    if deleted:
        console.print(f"[green]✓[/green] Deleted {deleted} skipped records")
    else:
        console.print("[yellow]No skipped records found[/yellow]")
