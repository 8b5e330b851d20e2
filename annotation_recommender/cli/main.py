"""Main CLI entry point."""

import typer
from dotenv import load_dotenv
from rich.console import Console

from ..config import PipelineSettings
from ..utils.log_setup import setup_logging
from . import records, splits

# Load RECOMMENDER_* variables from a .env file
load_dotenv()

app = typer.Typer(
    name="annotation-recommender",
    help="Inspect learning records and evaluation splits of the recommendation "
    "pipeline",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)
console = Console()

app.add_typer(records.app, name="records")
app.add_typer(splits.app, name="splits")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logs"),
) -> None:
    """Annotation recommender tools."""
    settings = PipelineSettings.from_env()
    setup_logging("DEBUG" if verbose else settings.log_level)


@app.command(context_settings={"help_option_names": ["-h", "--help"]})
def version() -> None:
    """Show version information."""
    from annotation_recommender import __version__

    console.print(f"Annotation Recommender v{__version__}")


if __name__ == "__main__":
    app()
