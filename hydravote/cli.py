"""Command-line interface for HydraVote."""

import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from hydravote.benchmarks.job import CalibrationJob
from hydravote.benchmarks.weights import DynamicWeightResolver
from hydravote.config import get_settings
from hydravote.database.db import get_db
from hydravote.database.ledger import LedgerWriter, SQLiteLedgerStore
from hydravote.database.repositories import (
    AnalysisRepository,
    ProviderRepository,
    ScorecardRepository,
)
from hydravote.engine.models import ConsensusOutcome
from hydravote.engine.orchestrator import run_consensus
from hydravote.exceptions import AnalysisNotFoundError, ConfigurationError
from hydravote.providers.catalog import load_provider_configs
from hydravote.providers.factory import has_credentials
from hydravote.utils.helpers import format_percentage, format_price
from hydravote.utils.logger import setup_logger

console = Console()

DEFAULT_PROMPT = "Identify this item and estimate its resale value."

QUALITY_STYLES = {"OPTIMAL": "green", "DEGRADED": "yellow", "FALLBACK": "red"}


@click.group()
@click.option("--verbose", is_flag=True, help="Enable verbose logging")
def cli(verbose: bool):
    """HydraVote - Multi-provider AI consensus for item valuation."""
    setup_logger(log_level="DEBUG" if verbose else None)
    if verbose:
        console.print("[dim]Verbose mode enabled[/dim]")


async def _run_analysis(
    images: List[bytes], prompt: str, provider_ids: Tuple[str, ...], static_weights: bool
) -> ConsensusOutcome:
    settings = get_settings()
    db = get_db()

    configs = load_provider_configs(ProviderRepository(db), settings)
    if provider_ids:
        configs = [c for c in configs if c.id in provider_ids]

    weights = None
    if not static_weights:
        weights = DynamicWeightResolver(ScorecardRepository(db), settings).resolve()

    ledger = LedgerWriter(SQLiteLedgerStore(db), max_pending=settings.ledger_queue_size)
    try:
        return await run_consensus(
            images,
            prompt,
            configs,
            weights,
            ledger=ledger,
            settings=settings,
            tiebreaker_id=settings.tiebreaker_provider if settings.tiebreaker_enabled else None,
        )
    finally:
        await ledger.close()


@cli.command("analyze")
@click.argument("images", nargs=-1, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--prompt", default=DEFAULT_PROMPT, show_default=True, help="Description or question")
@click.option("--provider", "provider_ids", multiple=True, help="Only use these provider IDs")
@click.option("--static-weights", is_flag=True, help="Ignore calibrated weights")
def analyze(images: Tuple[Path, ...], prompt: str, provider_ids: Tuple[str, ...], static_weights: bool):
    """Run the consensus pipeline on item images and store the result.

    Vision providers identify the item, text providers reason over the
    identification and search providers look up recent sold prices.
    """
    try:
        image_bytes = [path.read_bytes() for path in images]
        console.print(
            f"[bold]Analyzing {len(image_bytes)} image(s) with multiple providers...[/bold]"
        )

        outcome = asyncio.run(_run_analysis(image_bytes, prompt, provider_ids, static_weights))
        _display_outcome(outcome)

        console.print(f"\n[green]✓[/green] Analysis {outcome.analysis_id} stored in database")

    except ConfigurationError as e:
        console.print(f"[red]✗ Configuration error: {str(e)}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]✗ Error: {str(e)}[/red]")
        sys.exit(1)


def _display_outcome(outcome: ConsensusOutcome):
    """Display votes and consensus in formatted tables."""
    console.print("\n[bold cyan]Provider Votes[/bold cyan]")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Provider", style="cyan")
    table.add_column("Stage", style="white")
    table.add_column("Item", style="white")
    table.add_column("Value", style="green")
    table.add_column("Decision", style="yellow")
    table.add_column("Confidence", style="white")
    table.add_column("Weight", style="white")
    table.add_column("Latency", style="dim")

    for vote in outcome.votes:
        table.add_row(
            vote.provider_name,
            vote.stage.value,
            vote.item_name or "-",
            format_price(vote.estimated_value),
            vote.decision,
            format_percentage(vote.confidence),
            f"{vote.weight:.3f}",
            f"{vote.latency_ms}ms",
        )

    console.print(table)

    consensus = outcome.consensus
    style = QUALITY_STYLES.get(consensus.quality.value, "white")

    console.print("\n[bold cyan]Consensus[/bold cyan]")
    summary = Table(show_header=False)
    summary.add_column("Field", style="cyan")
    summary.add_column("Value", style="white")

    summary.add_row("Item", consensus.item_name)
    summary.add_row("Category", consensus.category)
    summary.add_row("Estimated Value", format_price(consensus.estimated_value))
    summary.add_row("Decision", f"[bold]{consensus.decision}[/bold]")
    summary.add_row("Confidence", f"{consensus.confidence}/100")
    summary.add_row("Quality", f"[{style}]{consensus.quality.value}[/{style}]")
    summary.add_row("Votes", str(consensus.total_votes))
    summary.add_row("Tiebreaker", "triggered" if outcome.tiebreaker_triggered else "not needed")
    summary.add_row("Decision Agreement", format_percentage(consensus.metrics.decision_agreement))
    summary.add_row("Value Agreement", format_percentage(consensus.metrics.value_agreement))
    summary.add_row("Processing Time", f"{outcome.processing_time_ms}ms")

    console.print(summary)


@cli.command("providers")
def providers():
    """List configured providers and whether their API keys are set."""
    try:
        settings = get_settings()
        configs = load_provider_configs(ProviderRepository(), settings)

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("ID", style="cyan")
        table.add_column("Name", style="white")
        table.add_column("Stage", style="white")
        table.add_column("Base Weight", style="white")
        table.add_column("Specialty", style="white")
        table.add_column("Model", style="dim")
        table.add_column("API Key", style="white")

        for config in configs:
            key_status = "[green]✓[/green]" if has_credentials(config, settings) else "[red]missing[/red]"
            table.add_row(
                config.id,
                config.name,
                config.capability.value,
                f"{config.base_weight:.2f}",
                config.specialty or "-",
                config.model or "default",
                key_status,
            )

        console.print(table)

    except Exception as e:
        console.print(f"[red]✗ Error: {str(e)}[/red]")
        sys.exit(1)


@cli.command("ground-truth")
@click.argument("analysis_id")
@click.argument("price", type=float)
@click.option("--source", default="manual", show_default=True, help="Where the price came from")
def ground_truth(analysis_id: str, price: float, source: str):
    """Attach a resolved market PRICE to an analysis for benchmarking."""
    try:
        AnalysisRepository().attach_ground_truth(analysis_id, price, source)
        console.print(
            f"[green]✓[/green] Ground truth {format_price(price)} recorded for {analysis_id}"
        )

    except AnalysisNotFoundError as e:
        console.print(f"[red]✗ {str(e)}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]✗ Error: {str(e)}[/red]")
        sys.exit(1)


@cli.command("benchmark")
@click.option(
    "--week",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Any day of the week to score (default: last completed week)",
)
def benchmark(week: Optional[datetime]):
    """Score providers against ground truth and store weekly scorecards."""
    try:
        report = CalibrationJob().run(week.date() if week else None)

        console.print(
            f"[bold]Week {report.week_start} ({report.records} votes scored)[/bold]"
        )

        if not report.scorecards:
            console.print("[yellow]No votes with ground truth in this week[/yellow]")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Rank", style="white")
        table.add_column("Provider", style="cyan")
        table.add_column("Composite", style="green")
        table.add_column("MAPE", style="white")
        table.add_column("Within 10%", style="white")
        table.add_column("Decisions", style="white")
        table.add_column("p50 / p95", style="dim")
        table.add_column("Δ", style="yellow")

        scorecards = {s.provider_id: s for s in report.scorecards}
        for entry in report.ranking.overall:
            scorecard = scorecards[entry.provider_id]
            delta = "new" if entry.delta is None else f"{entry.delta:+d}"
            table.add_row(
                str(entry.rank),
                entry.provider_name,
                f"{scorecard.composite_score:.1f}",
                f"{scorecard.mean_absolute_percent_error:.1f}%",
                format_percentage(scorecard.accuracy_rate_10),
                format_percentage(scorecard.decision_accuracy),
                f"{scorecard.p50_response_ms}ms / {scorecard.p95_response_ms}ms",
                delta,
            )

        console.print(table)

        if report.skipped_providers:
            console.print(f"[dim]Skipped: {', '.join(report.skipped_providers)}[/dim]")

        console.print("\n[green]✓[/green] Scorecards and rankings stored in database")

    except Exception as e:
        console.print(f"[red]✗ Error: {str(e)}[/red]")
        sys.exit(1)


@cli.command("weights")
def weights():
    """Show the dynamic weight multipliers the next analysis would use."""
    try:
        weight_set = DynamicWeightResolver().resolve(use_cache=False)

        if weight_set.is_empty:
            console.print("[yellow]No calibration history yet; all providers use static weights[/yellow]")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Provider", style="cyan")
        table.add_column("Multiplier", style="white")

        for provider_id, multiplier in sorted(weight_set.multipliers.items()):
            color = "green" if multiplier > 1 else "red" if multiplier < 1 else "white"
            table.add_row(provider_id, f"[{color}]{multiplier:.3f}[/{color}]")

        console.print(table)
        weeks = ", ".join(str(w) for w in weight_set.weeks)
        console.print(f"[dim]Based on weeks: {weeks}[/dim]")

    except Exception as e:
        console.print(f"[red]✗ Error: {str(e)}[/red]")
        sys.exit(1)


@cli.command("history")
@click.option("--limit", default=20, show_default=True, help="Number of analyses to show")
def history(limit: int):
    """Show recent analyses."""
    try:
        analyses = AnalysisRepository().get_recent(limit)

        if not analyses:
            console.print("[yellow]No analyses in database[/yellow]")
            return

        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Created", style="dim")
        table.add_column("Analysis ID", style="cyan")
        table.add_column("Item", style="white")
        table.add_column("Value", style="green")
        table.add_column("Decision", style="yellow")
        table.add_column("Quality", style="white")
        table.add_column("Ground Truth", style="white")

        for analysis in analyses:
            table.add_row(
                analysis["created_at"],
                analysis["analysis_id"],
                analysis["item_name"],
                format_price(analysis["estimated_value"]),
                analysis["decision"],
                analysis["quality"],
                format_price(analysis["ground_truth_price"]),
            )

        console.print(table)

    except Exception as e:
        console.print(f"[red]✗ Error: {str(e)}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    cli()
