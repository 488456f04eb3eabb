"""lineage CLI - map every variable use to the declaration that binds it."""
from pathlib import Path
from typing import List, Optional

import typer
from rich.markup import escape

from lineage.analyzer.errors import MalformedTree
from lineage.analyzer.parser import LanguageParser
from lineage.analyzer.tracker import DataLineageTracker
from lineage.config import __version__, get_config
from lineage.report.formatter import LineageReport
from lineage.utils.logger import configure_logging
from lineage.utils.safe_console import SafeConsole

app = typer.Typer(
    name="lineage",
    help="Scope-aware data lineage for JavaScript and TypeScript sources",
    add_completion=False
)
console = SafeConsole()


def _tracker_for(file_path: Path, language: Optional[str]) -> DataLineageTracker:
    """Pick the language: explicit option, then file extension, then config default."""
    if language:
        return DataLineageTracker(language)
    if LanguageParser.from_file_extension(file_path) is not None:
        return DataLineageTracker.for_file(file_path)
    return DataLineageTracker(get_config().default_language)


@app.command()
def analyze(
    files: List[Path] = typer.Argument(..., help="Source files to analyze"),
    language: Optional[str] = typer.Option(None, "--language", "-l", help="Force language (javascript, typescript, tsx)"),
    as_json: bool = typer.Option(False, "--json", help="Emit the lineage graph as JSON"),
    variable: Optional[str] = typer.Option(None, "--variable", "-v", help="Only show declarations with this name"),
    show_unresolved: Optional[bool] = typer.Option(None, "--show-unresolved/--hide-unresolved", help="List references with no declaration"),
):
    """Analyze files and print declarations with their references."""
    try:
        config = get_config()
    except ValueError as e:
        console.print(f"[red]✗ Configuration error: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    configure_logging(config.log_level)
    if show_unresolved is None:
        show_unresolved = config.show_unresolved

    failed = False
    for file_path in files:
        try:
            tracker = _tracker_for(file_path, language)
            graph = tracker.analyze_file(file_path)
        except (FileNotFoundError, ValueError, OSError) as e:
            console.print(f"[red]✗ {escape(str(file_path))}: {escape(str(e))}[/red]")
            failed = True
            continue
        except MalformedTree as e:
            console.print(f"[red]✗ Malformed syntax tree in {escape(str(file_path))}: {escape(str(e))}[/red]")
            failed = True
            continue

        report = LineageReport(graph, title=str(file_path))
        if as_json:
            typer.echo(report.to_json())
        else:
            report.render(console, variable=variable, show_unresolved=show_unresolved)

    if failed:
        raise typer.Exit(1)


@app.command()
def version():
    """Print the installed version."""
    console.print(f"lineage {__version__}")


if __name__ == "__main__":
    app()
