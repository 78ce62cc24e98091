"""CLI entry point for gogdiff."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from gogdiff.logging import configure_logging
from gogdiff_core.config import ArchiveConfig, GogdiffConfig, load_config
from gogdiff_core.config.loader import DEFAULT_CONFIG_TEMPLATE
from gogdiff_core.errors import ExitCode, GogdiffError, PolicyAbort
from gogdiff_core.index import TreeIndexer
from gogdiff_core.index.models import TreeScan
from gogdiff_core.patches.models import load_candidates
from gogdiff_core.pipeline import BuildReport, Pipeline, RunContext, Stage
from gogdiff_core.pipeline.context import PATCHES, RECONCILIATION, SOURCE_SCAN, STATE_DIR, TARGET_SCAN
from gogdiff_core.reconcile.models import ReconciliationResult

app = typer.Typer(
    name="gogdiff",
    help="Build a self-extracting delta script that turns one game tree into another.",
)

config_app = typer.Typer(help="Manage gogdiff configuration.")
app.add_typer(config_app, name="config")

# Global state
_config: GogdiffConfig | None = None


def _get_config() -> GogdiffConfig:
    if _config is None:
        return load_config()
    return _config


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to gogdiff.yaml")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(ExitCode.BAD_INVOCATION)
    configure_logging("debug" if verbose else _config.log_level, _config.log_format)


def _format_size(size: int) -> str:
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def _display_report(report: BuildReport) -> None:
    table = Table(title="Delta Build")
    table.add_column("Item", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Source files", str(report.source_files))
    table.add_row("Target files", str(report.target_files))
    table.add_row("Common digests", str(report.common_digests))
    table.add_row("Source-only files", str(report.source_only))
    table.add_row("Target-only files", str(report.target_only))
    table.add_row("Patches", str(report.patches))
    table.add_row("Operations", str(report.operations))
    table.add_row("Payload members", str(report.payload_members))
    rprint(table)
    if report.artifact is not None:
        rprint(
            Panel(
                f"{report.artifact}\n[dim]Size:[/dim] {_format_size(report.artifact_size)}\n\n"
                "Run it from a copy of the source tree to turn it into the target tree.",
                title="Artifact",
                border_style="green",
            )
        )


@app.command()
def build(
    source: Annotated[Path, typer.Option("--source", "-s", help="Source tree or Windows installer")],
    target: Annotated[Path, typer.Option("--target", "-t", help="Target tree or Linux installer")],
    output: Annotated[Path, typer.Option("--output", "-o", help="Output folder")],
    from_step: Annotated[
        Stage, typer.Option("--from-step", help="Resume from this stage")
    ] = Stage.POPULATE,
    compression: Annotated[
        str | None, typer.Option("--compression", help="gz | bz2 | xz | none")
    ] = None,
) -> None:
    """Build the delta script for SOURCE -> TARGET into OUTPUT."""
    cfg = _get_config()
    if compression is not None:
        try:
            cfg = cfg.model_copy(update={"archive": ArchiveConfig(compression=compression)})
        except ValueError as e:
            rprint(f"[red]Error:[/red] invalid compression {compression!r}: {e}")
            raise typer.Exit(ExitCode.BAD_INVOCATION)

    ctx = RunContext.create(source, target, output, cfg)
    try:
        report = Pipeline(ctx).run(from_step)
    except PolicyAbort as e:
        rprint(f"[yellow]Nothing to do:[/yellow] {e}")
        raise typer.Exit(e.exit_code)
    except GogdiffError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(e.exit_code)

    _display_report(report)


@app.command()
def index(
    root: Annotated[Path, typer.Argument(help="Tree to fingerprint")],
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write the scan as JSON")
    ] = None,
) -> None:
    """Fingerprint one tree and print a summary."""
    cfg = _get_config()
    try:
        scan = TreeIndexer(cfg.index).scan(root)
    except GogdiffError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(e.exit_code)

    if output is not None:
        scan.save(output)
        rprint(f"[green]Wrote[/green] {output}")

    digests = scan.index.digests()
    rprint(
        Panel(
            f"[dim]Root:[/dim]          {scan.root}\n"
            f"[dim]Algorithm:[/dim]     {scan.index.algorithm}\n"
            f"[dim]Files:[/dim]         {len(scan.index)}\n"
            f"[dim]Distinct:[/dim]      {len(digests)}\n"
            f"[dim]Directories:[/dim]   {len(scan.layout.directories)}\n"
            f"[dim]Empty dirs:[/dim]    {len(scan.layout.empty_directories)}\n"
            f"[dim]Symlinks:[/dim]      {len(scan.layout.symlinks)}",
            title="Tree Index",
            border_style="blue",
        )
    )


@app.command()
def inspect(
    outdir: Annotated[Path, typer.Argument(help="Output folder of a previous build")],
    ci: Annotated[bool, typer.Option("--ci", help="Machine-readable output")] = False,
) -> None:
    """Summarize the persisted state of a build."""
    state = outdir / STATE_DIR
    if not state.is_dir():
        rprint(f"[red]Error:[/red] no build state under {outdir}")
        raise typer.Exit(ExitCode.BAD_INVOCATION)

    summary: dict[str, object] = {}
    for side, name in (("source", SOURCE_SCAN), ("target", TARGET_SCAN)):
        path = state / name
        if path.is_file():
            scan = TreeScan.load(path)
            summary[f"{side}_files"] = len(scan.index)
            summary[f"{side}_root"] = scan.root
    if (state / RECONCILIATION).is_file():
        result = ReconciliationResult.load(state / RECONCILIATION)
        summary["common_digests"] = len(result.common_digests)
        summary["source_only"] = len(result.source_only)
        summary["target_only"] = len(result.target_only)
    if (state / PATCHES).is_file():
        summary["patches"] = len(load_candidates(state / PATCHES))

    if ci:
        typer.echo(json.dumps(summary, indent=2, sort_keys=True))
        return

    table = Table(title=f"Build State ({outdir})")
    table.add_column("Key", style="cyan")
    table.add_column("Value", justify="right")
    for key in sorted(summary):
        table.add_row(key, str(summary[key]))
    rprint(table)
    if not summary:
        rprint("[yellow]No stage has completed yet.[/yellow]")


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(Syntax(yaml.dump(cfg.model_dump(), default_flow_style=False), "yaml"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default gogdiff.yaml in current directory."""
    target = Path("gogdiff.yaml")
    if target.exists() and not force:
        rprint("[yellow]gogdiff.yaml already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")
