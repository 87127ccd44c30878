"""liftdiag CLI - run the correlation engine over local record files.

Commands:
- correlate: Collect a unit's records from a directory, correlate and validate them
- keywords: Show the active component keyword catalog
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import replace
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from liftdiag.config import get_config
from liftdiag.core.logging import configure_logging
from liftdiag.engine import CorrelationEngine
from liftdiag.ingestion.lookback import parse_days_from_context
from liftdiag.ingestion.sources import JsonDirectorySource, collect_unit_records
from liftdiag.linking.keywords import ConfigurationError, KeywordCatalog
from liftdiag.models import CorrelationResult
from liftdiag.validation.validator import EvidenceIntegrityViolation

app = typer.Typer(
    name="liftdiag",
    help="liftdiag - Evidence correlation for elevator maintenance history",
    no_args_is_help=True,
)

console = Console()


@app.command()
def correlate(
    records_dir: Path | None = typer.Argument(
        None, help="Directory with visits/breakdowns/maintenance_issues/part_requests JSON"
    ),
    unit_id: str = typer.Option("unit", "--unit", help="Unit identifier"),
    days: int | None = typer.Option(None, "--days", help="Lookback window in days"),
    context: str | None = typer.Option(
        None, "--context", help='Free-text window, e.g. "last 2 weeks"'
    ),
    strict: bool | None = typer.Option(
        None, "--strict/--lenient", help="Fail on evidence integrity violations"
    ),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write JSON result to file"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON result instead of tables"),
):
    """Correlate one unit's maintenance history and validate the evidence graph.

    Example:
        liftdiag correlate data/records --unit LIFT-42 --context "last 3 months" -o result.json
    """
    config = get_config()
    configure_logging(config.log_level, config.json_logs)

    records_dir = records_dir or config.retrieval.records_dir
    if records_dir is None or not records_dir.is_dir():
        console.print(f"[red]Error: Records directory not found: {records_dir}[/red]")
        raise typer.Exit(1)

    if days is None:
        days = parse_days_from_context(context, default=config.retrieval.default_days_back)

    engine_config = config.engine
    if strict is not None:
        engine_config = replace(engine_config, strict_validation=strict)

    try:
        engine = CorrelationEngine(engine_config)
    except ConfigurationError as e:
        console.print(f"[bold red]✗ Keyword configuration invalid:[/bold red] {e}")
        raise typer.Exit(1)

    collection = asyncio.run(
        collect_unit_records(JsonDirectorySource(records_dir), unit_id, days_back=days)
    )
    for error in collection.errors:
        console.print(f"[yellow]⚠[/yellow] {error['kind']}: {error['error']}")

    try:
        result = engine.run(**collection.engine_input())
    except EvidenceIntegrityViolation as e:
        console.print(f"[bold red]✗ Evidence validation failed:[/bold red] {e}")
        raise typer.Exit(1)

    payload = json.dumps(result.to_output(), indent=2, ensure_ascii=False)
    if output:
        output.write_text(payload, encoding="utf-8")
        if not as_json:
            console.print(f"[green]✓[/green] Result written to {output}")

    if as_json:
        typer.echo(payload)
        return

    console.print(f"[bold]Unit {unit_id}[/bold] - last {days} days")
    _print_summary(result)


def _print_summary(result: CorrelationResult) -> None:
    table = Table(title="Linked Parts")
    table.add_column("Request", style="cyan")
    table.add_column("Part")
    table.add_column("Component", style="green")
    table.add_column("Replaced", justify="right")
    table.add_column("Visit")
    table.add_column("Breakdown")
    table.add_column("Confidence", style="yellow")

    for part in result.linked_parts:
        table.add_row(
            part.repair_request_number,
            part.part_name,
            part.component,
            part.replacement_date.isoformat(),
            part.linked_visit_event_id or "-",
            part.linked_breakdown_event_id or "-",
            part.confidence.value,
        )
    console.print(table)

    if result.patterns:
        patterns = Table(title="Patterns")
        patterns.add_column("ID", style="cyan")
        patterns.add_column("Description")
        patterns.add_column("Frequency", justify="right")
        patterns.add_column("Evidence", style="dim")
        for pattern in result.patterns:
            patterns.add_row(
                pattern.pattern_id,
                pattern.description,
                str(pattern.frequency),
                ", ".join(pattern.evidence_event_ids),
            )
        console.print(patterns)

    stats = Table(title="Statistics")
    stats.add_column("Metric", style="cyan")
    stats.add_column("Value", justify="right")
    stats.add_row("Timeline events", str(len(result.timeline)))
    stats.add_row("Linked parts", str(len(result.linked_parts)))
    stats.add_row("Patterns", str(len(result.patterns)))
    stats.add_row("Event links", str(len(result.event_links)))
    stats.add_row("Rejected records", str(len(result.rejected_records)))
    stats.add_row("Duplicates removed", str(result.duplicates_removed))
    console.print(stats)

    if result.validation.valid:
        console.print("[bold green]✓[/bold green] Evidence validation passed")
    else:
        console.print(
            f"[yellow]⚠[/yellow] Evidence validation: {len(result.validation.violations)} violation(s)"
        )
        for violation in result.validation.violations[:10]:
            console.print(f"  {violation}", style="dim")


@app.command()
def keywords(
    config_path: Path | None = typer.Option(None, "--config", help="Keywords YAML file"),
):
    """Show the component keyword catalog in use."""
    config = get_config()
    path = config_path or config.engine.keywords_path

    try:
        catalog = KeywordCatalog(path)
    except ConfigurationError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    source = str(path) if path and path.exists() else "built-in defaults"
    table = Table(title=f"Component Keywords ({source})")
    table.add_column("Component", style="cyan")
    table.add_column("Keywords")
    for component, words in catalog.components.items():
        table.add_row(component, ", ".join(words))
    console.print(table)

    console.print(f"[bold]Action terms:[/bold] {', '.join(catalog.action_terms)}")


if __name__ == "__main__":
    app()
