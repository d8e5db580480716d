"""
covrelay CLI - Command-line interface for per-component coverage runs.

Provides commands for running coverage, listing components, emitting
badges and initialising configuration.
"""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from covrelay.badges import BadgeTemplate, BadgeWriter
from covrelay.config import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader, RunConfig
from covrelay.discovery import DiscoveryError
from covrelay.logging import configure_logging
from covrelay.models import ComponentOutcome, RunResult
from covrelay.runner import RunController

app = typer.Typer(
    name="covrelay",
    help="Per-component coverage collection, upload and badges",
    add_completion=False,
)

console = Console()

_OUTCOME_STYLES = {
    ComponentOutcome.COLLECTED_UPLOADED: "green",
    ComponentOutcome.COLLECTED_NOT_UPLOADED: "cyan",
    ComponentOutcome.COLLECTED_NO_REPORT: "yellow",
    ComponentOutcome.COLLECTED_UPLOAD_FAILED: "red",
    ComponentOutcome.COLLECTOR_FAILED: "red",
    ComponentOutcome.SKIPPED: "dim",
}


def version_callback(value: bool) -> None:
    """Display version information."""
    if value:
        from covrelay import __version__

        console.print(f"[bold blue]covrelay[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """covrelay - Per-component coverage reporting."""
    pass


@app.command()
def run(
    root: Path = typer.Option(None, "--root", "-r", help="Component root directory"),
    config: Path = typer.Option(None, "--config", "-c", help="Path to covrelay.yaml"),
    exclude: str = typer.Option(None, "--exclude", "-e", help="Component to skip"),
    repository: str = typer.Option(None, "--repository", help="Repository as owner/name"),
    badge_dir: Path = typer.Option(None, "--badge-dir", help="Directory for badge files"),
    uploader: str = typer.Option(None, "--uploader", help="Upload backend: cli, http"),
    no_upload: bool = typer.Option(False, "--no-upload", help="Collect without uploading"),
    max_concurrent: int = typer.Option(
        None, "--max-concurrent", "-j", help="Components processed in parallel"
    ),
    strict: bool = typer.Option(
        False, "--strict", help="Exit non-zero when any component fails"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Verbose output"),
    log_file: Path = typer.Option(None, "--log-file", help="Also write logs to this file"),
    format_: str = typer.Option("console", "--format", "-f", help="Output format: console, json"),
    output: Path = typer.Option(None, "--output", "-o", help="Write the JSON run summary here"),
) -> None:
    """
    Collect, upload and badge coverage for every component.

    One component's failure never stops the others. The run aborts only
    when the component root cannot be read.
    """
    configure_logging(verbose=verbose, log_file=log_file)

    overrides: dict[str, Any] = {
        "root": root,
        "exclude_component": exclude,
        "repository": repository,
        "badge_dir": badge_dir,
        "uploader": uploader,
        "max_concurrent": max_concurrent,
    }
    if no_upload:
        overrides["upload_enabled"] = False
    if strict:
        overrides["fail_on_component_error"] = True

    run_config = _load_config(config, overrides)

    try:
        controller = RunController(run_config)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    if format_ != "json":
        uploader_name = controller.uploader.name if run_config.upload_enabled else "disabled"
        skip = run_config.exclude_component
        console.print(
            Panel(
                f"[bold]Root:[/bold] {escape(str(run_config.root))}\n"
                f"[dim]Collector: {escape(controller.collector.name)} | "
                f"Uploader: {escape(uploader_name)}"
                + (f" | Skip: {escape(skip)}" if skip else "")
                + "[/dim]",
                title="📊 covrelay",
                border_style="blue",
            )
        )
        if not controller.collector.is_available:
            console.print(
                f"[yellow]⚠️  {escape(controller.collector.name)} not found on PATH; "
                "components will record collector_failed[/yellow]"
            )
        if run_config.upload_enabled and not run_config.has_token:
            console.print(
                "[yellow]⚠️  No COVERALLS_REPO_TOKEN set; uploads will fail[/yellow]"
            )

    try:
        result = asyncio.run(controller.run())
    except DiscoveryError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(result.to_dict(), indent=2))

    if format_ == "json":
        console.print_json(json.dumps(result.to_dict()))
    else:
        _display_run_result(result)
        if output:
            console.print(f"[green]✓[/green] Run summary written to {escape(str(output))}")

    code = controller.exit_code(result)
    if code:
        raise typer.Exit(code)


@app.command()
def discover(
    root: Path = typer.Option(None, "--root", "-r", help="Component root directory"),
    config: Path = typer.Option(None, "--config", "-c", help="Path to covrelay.yaml"),
    format_: str = typer.Option("console", "--format", "-f", help="Output format: console, json"),
) -> None:
    """List the components a run would process."""
    from covrelay.discovery import discover_components, duplicate_identifiers

    run_config = _load_config(config, {"root": root})
    try:
        components = discover_components(
            run_config.root,
            manifest_name=run_config.manifest_name,
            ignore_dirs=run_config.ignore_dirs,
        )
    except DiscoveryError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from e

    shared = duplicate_identifiers(components)

    if format_ == "json":
        console.print_json(
            json.dumps(
                [
                    {
                        "identifier": c.identifier,
                        "manifest_path": str(c.manifest_path),
                        "excluded": c.identifier == run_config.exclude_component,
                        "duplicate": c.identifier in shared,
                    }
                    for c in components
                ]
            )
        )
        return

    if not components:
        console.print(
            f"[yellow]No {escape(run_config.manifest_name)} found under "
            f"{escape(str(run_config.root))}[/yellow]"
        )
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Component", style="cyan")
    table.add_column("Manifest")
    table.add_column("Status")
    for component in components:
        if component.identifier == run_config.exclude_component:
            status = "[dim]excluded[/dim]"
        elif component.identifier in shared:
            status = "[red]duplicate name[/red]"
        else:
            status = "[green]included[/green]"
        table.add_row(
            escape(component.identifier),
            escape(str(component.manifest_path)),
            status,
        )
    console.print(table)


@app.command()
def badge(
    component: str = typer.Argument(..., help="Component identifier"),
    config: Path = typer.Option(None, "--config", "-c", help="Path to covrelay.yaml"),
    repository: str = typer.Option(None, "--repository", help="Repository as owner/name"),
    badge_dir: Path = typer.Option(None, "--badge-dir", help="Directory for badge files"),
    print_only: bool = typer.Option(False, "--print-only", help="Print without writing"),
) -> None:
    """Write (or print) the coverage badge for one component."""
    run_config = _load_config(config, {"repository": repository, "badge_dir": badge_dir})
    if run_config.repository is None:
        console.print("[red]Error:[/red] repository is required (--repository owner/name)")
        raise typer.Exit(1)

    writer = BadgeWriter(
        BadgeTemplate(
            repository=run_config.repository,
            service_host=run_config.service_host,
            branch=run_config.branch,
        ),
        output_dir=run_config.badge_dir,
    )
    if print_only:
        console.print(writer.build(component).markdown, soft_wrap=True, markup=False)
        return

    written = writer.emit(component)
    console.print(
        f"[green]✓[/green] Badge for {escape(component)} saved in "
        f"{escape(str(written.artifact_path))}"
    )


@app.command()
def init(
    path: str = typer.Argument(".", help="Directory to write covrelay.yaml into"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing config"),
) -> None:
    """Write a sample covrelay.yaml."""
    target_path = Path(path)
    config_file = target_path / DEFAULT_CONFIG_FILE

    if config_file.exists() and not force:
        console.print(f"[yellow]⚠️  Config file already exists:[/yellow] {config_file}")
        console.print("[dim]Use --force to overwrite[/dim]")
        raise typer.Exit(1)

    target_path.mkdir(parents=True, exist_ok=True)
    config_file.write_text(ConfigLoader.generate_sample_config())

    console.print(f"[green]✓[/green] Created configuration: {config_file}")
    console.print("\n[bold]Next steps:[/bold]")
    console.print("  1. Set [cyan]repository[/cyan] in covrelay.yaml")
    console.print("  2. Export [cyan]COVERALLS_REPO_TOKEN[/cyan] in CI")
    console.print("  3. Run [cyan]covrelay discover[/cyan] to check the component list")
    console.print("  4. Run [cyan]covrelay run[/cyan]")


# =============================================================================
# Helper Functions
# =============================================================================


def _load_config(path: Path | None, overrides: dict[str, Any]) -> RunConfig:
    """Load configuration or exit with a readable error."""
    try:
        return ConfigLoader.load(path, environ=os.environ, overrides=overrides)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None
    except ConfigError as e:
        console.print(f"[red]Error:[/red] Invalid configuration: {escape(str(e))}")
        raise typer.Exit(1) from e


def _display_run_result(result: RunResult) -> None:
    """Display per-component outcomes as a table."""
    if not result.results:
        console.print(f"\n[yellow]No components found under {escape(str(result.root))}[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Component", style="cyan")
    table.add_column("Outcome")
    table.add_column("Upload")
    table.add_column("Lines", justify="right")
    table.add_column("Branches", justify="right")
    table.add_column("Badge")
    table.add_column("Notes")

    for item in result.results:
        style = _OUTCOME_STYLES.get(item.outcome, "white")
        table.add_row(
            escape(item.identifier),
            f"[{style}]{item.outcome.value}[/{style}]",
            item.upload_status.value,
            _percent(item.line_coverage),
            _percent(item.branch_coverage),
            escape(str(item.badge.artifact_path)) if item.badge else "-",
            escape("; ".join(item.errors)) or "-",
        )

    console.print(table)

    failed = sum(1 for r in result.results if r.is_failure)
    if failed:
        console.print(f"\n[red]⚠ {failed} component(s) failed[/red]")
    else:
        console.print("\n[green]✓ Coverage run completed[/green]")


def _percent(value: float | None) -> str:
    return f"{value:.1f}%" if value is not None else "-"


if __name__ == "__main__":
    app()
