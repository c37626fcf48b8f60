"""pkgscout CLI - find declarations that can be narrowed to package-private."""
from pathlib import Path
from typing import List, Optional
import typer
from rich.table import Table
from rich.markup import escape

from pkgscout.utils.safe_console import SafeConsole
from pkgscout.config import Config, ConfigurationError, __version__, get_config, validate_options
from pkgscout.analyzer.dialects import DIALECTS, get_dialect
from pkgscout.analyzer.source_analyzer import collect_source_files, discover_source_roots, run_analysis

app = typer.Typer(
    name="pkgscout",
    help="Find declarations only used inside their own package",
    add_completion=False
)
console = SafeConsole()


def _version_callback(value: bool):
    if value:
        console.print(f"pkgscout {__version__}")
        raise typer.Exit()


@app.command()
def analyze(
    project_path: str = typer.Argument(".", help="Project root path to analyze"),
    dialect: Optional[str] = typer.Option(None, "--dialect", "-d", help="Source dialect (kotlin, python)"),
    source_dir: List[str] = typer.Option(None, "--source-dir", "-s", help="Source root relative to the project (repeatable)"),
    include_public: Optional[bool] = typer.Option(None, "--include-public/--no-include-public", help="Consider public declarations"),
    include_internal: Optional[bool] = typer.Option(None, "--include-internal/--no-include-internal", help="Consider internal declarations"),
    marker: Optional[str] = typer.Option(None, "--marker", help="Short name of the package-private marker annotation"),
    default_visibility: Optional[str] = typer.Option(None, "--default-visibility", help="Visibility of declarations without modifiers"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Report file (relative to the project root)"),
    workers: Optional[int] = typer.Option(None, "--workers", help="Files analyzed concurrently"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not print the report"),
):
    """Report declarations referenced only from their own package."""
    project_root = Path(project_path).resolve()

    if not project_root.exists():
        console.print(f"[bold red]Error:[/bold red] Project path does not exist: {escape(str(project_root))}")
        raise typer.Exit(1)

    config = Config(project_root)
    try:
        options = validate_options(
            dialect=dialect or config.dialect,
            include_public=config.include_public if include_public is None else include_public,
            include_internal=config.include_internal if include_internal is None else include_internal,
            marker=marker or config.marker,
            default_visibility=default_visibility or config.default_visibility,
            workers=config.workers if workers is None else workers,
        )
    except ConfigurationError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1)

    source_dialect = get_dialect(options.dialect)
    if source_dir:
        roots = [project_root / directory for directory in source_dir]
        missing = [root for root in roots if not root.is_dir()]
        if missing:
            console.print(f"[bold red]Error:[/bold red] Source directory does not exist: {escape(str(missing[0]))}")
            raise typer.Exit(1)
    else:
        roots = discover_source_roots(project_root, source_dialect)

    files = collect_source_files(roots, source_dialect, project_root)
    if not quiet:
        console.print(f"[bold blue]Analyzing project:[/bold blue] {escape(str(project_root))} "
                      f"[dim]({len(files)} {source_dialect.name} files)[/dim]\n")

    with console.status("Resolving references..."):
        report = run_analysis(files, options)

    for failure in report.result.failures:
        console.print(f"[yellow]Warning:[/yellow] skipped {escape(failure.file_path)}: {escape(failure.reason)}", soft_wrap=True)
    for recovered in report.result.recovered:
        console.print(f"[yellow]Warning:[/yellow] {escape(recovered.file_path)}: {escape(recovered.reason)}, "
                      "analyzed the rest of the file", soft_wrap=True)

    if not quiet:
        console.print(report.text, markup=False, highlight=False, soft_wrap=True, end="")

    output_path = Path(output or config.output_path)
    if not output_path.is_absolute():
        output_path = project_root / output_path
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(report.text, encoding="utf-8")

    console.print(f"\n[bold green]{len(report.candidates)} candidates[/bold green] "
                  f"[dim]report written to {escape(str(output_path))}[/dim]")


@app.command()
def dialects():
    """List supported source dialects."""
    configured = get_config().dialect
    table = Table(title="Source Dialects")
    table.add_column("Dialect", style="cyan")
    table.add_column("Extensions")
    table.add_column("Marker", style="magenta")
    table.add_column("Default")
    table.add_column("Entry", style="dim")

    for name, dialect in sorted(DIALECTS.items()):
        label = f"{name} *" if name == configured else name
        table.add_row(
            label,
            ", ".join(dialect.extensions),
            dialect.marker,
            dialect.default_visibility.value,
            ", ".join(sorted(dialect.entry_points)),
        )

    console.print(table)


@app.callback()
def main(
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True,
                                 help="Show the version and exit"),
):
    """pkgscout - package-private candidate analysis."""
    pass


if __name__ == "__main__":
    app()
