"""chunklens CLI - chunked structural analysis for source trees.

Usage:
    chunklens analyze <path> [options]
    chunklens analyze . --json-only > analysis.json
    chunklens chunks src/big_module.js --chunk-size 4000
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .chunker import chunk
from .config import DEFAULT_EXCLUDE
from .engine import analyze_project
from .lexical import rules_for_language
from .model import DEFAULT_MODEL, ModelError, OllamaClient
from .models import ProjectAnalysis
from .summarizer import ModuleSummarizer, SummaryResult
from .walker import detect_language

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(version=__version__)
def cli():
    """chunklens - structural analysis of source trees, chunk by chunk.

    Walks a project, splits oversized files at safe seams, extracts
    functions, classes and imports per chunk and merges them per module.
    """
    pass


@cli.command()
@click.argument("target", default=".")
@click.option("--chunk-size", type=int, default=None, help="Characters per chunk (default 8000)")
@click.option("--exclude", "-x", multiple=True, help="Extra name or glob to exclude (repeatable)")
@click.option("--concurrency", "-j", type=int, default=None, help="Files analysed concurrently")
@click.option("--timeout", "file_timeout", type=float, default=None, help="Per-file timeout in seconds")
@click.option("--no-adaptive", is_flag=True, help="Do not tune settings to project size")
@click.option("--quality", is_flag=True, help="Always collect quality findings and technical debt")
@click.option("--output", "-O", default=None, help="Write the JSON result to this file")
@click.option("--json-only", is_flag=True, help="Output raw JSON to stdout (for piping)")
@click.option("--summarize", is_flag=True, help="Summarize key modules with a local Ollama model")
@click.option("--model", "-m", default=DEFAULT_MODEL, help="Ollama model name for --summarize")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
def analyze(
    target: str,
    chunk_size: int | None,
    exclude: tuple[str, ...],
    concurrency: int | None,
    file_timeout: float | None,
    no_adaptive: bool,
    quality: bool,
    output: str | None,
    json_only: bool,
    summarize: bool,
    model: str,
    verbose: bool,
):
    """Analyze a project directory.

    Examples:

        chunklens analyze .

        chunklens analyze ./service --chunk-size 4000 -x generated

        chunklens analyze . --json-only | jq .chunking_stats
    """
    _configure_logging(verbose)
    overrides: dict[str, object] = {
        "chunk_size": chunk_size,
        "concurrency": concurrency,
        "file_timeout": file_timeout,
        "adaptive": False if no_adaptive else None,
        "quality_analysis": True if quality else None,
        "technical_debt": True if quality else None,
        "exclude": DEFAULT_EXCLUDE + exclude if exclude else None,
    }

    if not json_only:
        console.print()
        console.print(Panel.fit(
            f"[bold cyan]chunklens v{__version__}[/] - Chunked Source Analysis",
            border_style="cyan",
        ))

    try:
        analysis = analyze_project(Path(target), **overrides)
    except ValueError as e:
        raise click.ClickException(str(e))

    summaries = _summarize(analysis, model, json_only) if summarize else None

    payload = analysis.to_dict()
    if summaries is not None:
        payload["summaries"] = summaries.to_dict()

    if output:
        out_path = Path(output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(payload, indent=2))

    if json_only:
        click.echo(json.dumps(payload, indent=2))
        return

    _print_analysis_summary(analysis)
    _print_modules(analysis)
    _print_skipped(analysis)
    if summaries is not None:
        _print_summaries(summaries)
    if output:
        console.print(f"\n[green]Analysis written to {output}[/]")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--chunk-size", type=int, default=8000, show_default=True, help="Characters per chunk")
def chunks(file: str, chunk_size: int):
    """Show how FILE would be split into chunks."""
    path = Path(file)
    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        raise click.ClickException(f"Not a UTF-8 text file: {file}")
    try:
        parts = chunk(content, chunk_size, rules=rules_for_language(detect_language(path.suffix.lower())))
    except ValueError as e:
        raise click.ClickException(str(e))

    table = Table(title=f"{path.name}: {len(parts)} chunk(s)", border_style="dim")
    table.add_column("#", justify="right")
    table.add_column("Lines")
    table.add_column("Bytes", justify="right")
    table.add_column("Boundary")
    table.add_column("Kind")
    for part in parts:
        style = "yellow" if part.boundary_type.startswith("forced") else None
        table.add_row(
            str(part.index),
            f"{part.start_line}-{part.end_line}",
            f"{part.size_bytes:,}",
            part.boundary_type,
            part.kind,
            style=style,
        )
    console.print(table)


@cli.command()
def version():
    """Show version information."""
    console.print(f"chunklens v{__version__}")
    console.print("Chunked structural analysis for source trees")


def _summarize(analysis: ProjectAnalysis, model: str, json_only: bool) -> SummaryResult:
    client = OllamaClient(model=model)
    quiet = Console(file=open(os.devnull, "w"))
    try:
        try:
            client.ensure_ready()
        except ModelError as e:
            raise click.ClickException(str(e))

        summarizer = ModuleSummarizer(client, pacing_delay=analysis.config["engine"]["runtime"]["pacing_delay"])
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.completed}/{task.total}"),
            console=quiet if json_only else console,
        ) as progress:
            task = progress.add_task("Summarizing...", total=None)

            def on_progress(status, current, total):
                progress.update(task, description=status, completed=current, total=total)

            return summarizer.summarize(analysis, progress_callback=on_progress)
    finally:
        client.close()
        quiet.file.close()


def _print_analysis_summary(analysis: ProjectAnalysis) -> None:
    """Print a compact summary of the project analysis."""
    table = Table(title="Project Analysis", show_header=False, border_style="dim")
    table.add_column("Key", style="bold")
    table.add_column("Value")

    metrics = analysis.metrics
    table.add_row("Name", analysis.name)
    table.add_row("Primary language", analysis.primary_language)
    table.add_row("Files", f"{analysis.analyzed_count:,} analysed / {metrics.total_files:,} found")
    table.add_row("Lines", f"{analysis.total_lines:,}")
    table.add_row("Project size", f"{metrics.project_size} (complexity {metrics.estimated_complexity:.2f})")

    stats = analysis.chunking_stats
    table.add_row(
        "Chunking",
        f"{stats.get('total_chunks', 0)} chunks, {stats.get('chunked_modules', 0)} chunked, "
        f"{stats.get('shallow_modules', 0)} shallow",
    )
    dist = analysis.complexity_distribution
    table.add_row("Complexity", ", ".join(f"{k} {v}" for k, v in dist.items()))
    if analysis.skipped:
        table.add_row("Skipped", f"{analysis.skipped_count} ({analysis.failed_count} failed)")
    if analysis.cache_hits:
        table.add_row("Cache hits", str(analysis.cache_hits))
    if analysis.cancelled:
        table.add_row("Status", "[yellow]cancelled, results are partial[/]")
    table.add_row("Time", f"{analysis.duration_seconds:.2f}s")

    console.print(table)


def _print_modules(analysis: ProjectAnalysis, limit: int = 25) -> None:
    if not analysis.modules:
        return
    table = Table(title="Architecture Files", border_style="dim")
    table.add_column("File", style="cyan")
    table.add_column("Role")
    table.add_column("Strategy")
    table.add_column("Fn", justify="right")
    table.add_column("Cls", justify="right")
    table.add_column("Complexity", justify="right")

    paths = list(analysis.architecture_files) or [m.file.relative_path for m in analysis.modules]
    for path in paths[:limit]:
        module = analysis.module(path)
        if module is None:
            continue
        table.add_row(
            path,
            module.file.role,
            f"{module.strategy} ({module.chunk_count})" if module.chunk_count > 1 else module.strategy,
            str(module.total_functions),
            str(module.total_classes),
            str(module.complexity),
        )
    console.print(table)


def _print_skipped(analysis: ProjectAnalysis) -> None:
    if not analysis.skipped:
        return
    console.print()
    console.print("[bold yellow]Skipped:[/]")
    for item in analysis.skipped[:20]:
        detail = f" - {item.detail}" if item.detail else ""
        console.print(f"  [yellow]{item.path}[/] ({item.reason}){detail}")
    if analysis.skipped_count > 20:
        console.print(f"  ... and {analysis.skipped_count - 20} more")


def _print_summaries(result: SummaryResult) -> None:
    console.print()
    console.print(Panel.fit(
        f"[bold green]Summarized {len(result.summaries)} modules[/]\n"
        f"Model: {result.model_used} | Time: {result.generation_time_seconds:.1f}s",
        border_style="green",
    ))
    for item in result.summaries:
        console.print(f"\n[cyan]{item.path}[/] [dim]({item.role})[/]")
        console.print(item.summary)
    if result.errors:
        console.print()
        console.print("[bold red]Errors:[/]")
        for e in result.errors:
            console.print(f"  [red]{e}[/]")


if __name__ == "__main__":
    cli()
