"""CLI commands previewing how evaluation data is split."""

import typer
from rich.console import Console
from rich.table import Table

from ..config import PipelineSettings
from ..recommendation.splitter import IncrementalSplitter, PercentageBasedSplitter

console = Console()
app = typer.Typer(
    help="Preview the training and test set sizes the evaluation splitters "
    "produce for a dataset size.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.command()
def percentage(
    size: int = typer.Option(..., "--size", "-n", min=0, help="Number of documents"),
    train_fraction: float | None = typer.Option(
        None, help="Share used for training (default: from settings)"
    ),
    min_test_size: int | None = typer.Option(
        None, help="Minimum test set size (default: from settings)"
    ),
) -> None:
    """Show the single split used to select recommenders."""
    settings = PipelineSettings.from_env()
    try:
        splitter = PercentageBasedSplitter(
            train_fraction if train_fraction is not None else settings.train_fraction,
            min_test_size if min_test_size is not None else settings.min_test_size,
        )
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    split = splitter.split(range(size))

    table = Table(title=f"Percentage Split of {size} Documents")
    table.add_column("Set", style="cyan")
    table.add_column("Size", style="white")
    table.add_row("Training", str(len(split.training_set)))
    table.add_row("Test", str(len(split.test_set)))
    console.print(table)

    if split.skipped:
        console.print(f"[yellow]Evaluation skipped: {split.skip_reason}[/yellow]")


@app.command()
def incremental(
    size: int = typer.Option(
        ..., "--size", "-n", min=0, help="Estimated number of annotations"
    ),
    step_size: int = typer.Option(10, "--step", min=1, help="Growth per step"),
    low_sample_threshold: int = typer.Option(
        0, help="Skip steps with fewer training instances"
    ),
    train_fraction: float | None = typer.Option(
        None, help="Share used for training (default: from settings)"
    ),
) -> None:
    """Show the steps of a learning curve."""
    settings = PipelineSettings.from_env()
    try:
        splitter = IncrementalSplitter(
            train_fraction if train_fraction is not None else settings.train_fraction,
            step_size,
            low_sample_threshold,
        )
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Incremental Split of {size} Annotations")
    table.add_column("Step", style="cyan")
    table.add_column("Training", style="white")
    table.add_column("Test", style="white")

    steps = 0
    for steps, split in enumerate(splitter.splits(range(size)), start=1):
        table.add_row(
            str(steps), str(len(split.training_set)), str(len(split.test_set))
        )

    if steps == 0:
        console.print("[yellow]No steps for this dataset size[/yellow]")
        return

    console.print(table)
