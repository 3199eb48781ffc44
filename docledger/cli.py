"""CLI entry point for docledger."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich import print as rprint
from rich.table import Table

from docledger.config import LedgerConfig, load_config
from docledger.config.loader import CONFIG_FILENAME, DEFAULT_CONFIG_TEMPLATE
from docledger.errors import IOFailure, LockContention, StalePriorRun
from docledger.llm import SummaryProcessor, create_llm_provider
from docledger.lock import ProcessLock
from docledger.log import configure_logging
from docledger.manifest import create_manifest, load_manifest, save_manifest
from docledger.pipeline import Bundler, RunReport
from docledger.staging import StagingLog, StagingStore

app = typer.Typer(
    name="docledger",
    help="Incremental, crash-safe documentation summaries for a source tree.",
)

# Global state
_config: LedgerConfig | None = None
_project: Path = Path(".")


def _get_config() -> LedgerConfig:
    if _config is None:
        return load_config(project_path=_project)
    return _config


def _state_dir(cfg: LedgerConfig) -> Path:
    return _project / cfg.state.dir


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to docledger.yaml")
    ] = None,
    path: Annotated[
        str, typer.Option("--path", "-p", help="Project root")
    ] = ".",
) -> None:
    """Global options."""
    global _config, _project
    _project = Path(path).resolve()
    try:
        _config = load_config(config, project_path=_project)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    configure_logging(_config.log_level, _config.log_format)


@app.command()
def init(
    force: bool = typer.Option(False, "--force", help="Reinitialize an existing manifest"),
) -> None:
    """Create the state directory, an empty manifest and a config template."""
    cfg = _get_config()
    manifest_path = _state_dir(cfg) / cfg.state.manifest

    if manifest_path.exists() and not force:
        rprint("[yellow]Already initialized.[/yellow] Use --force to reinitialize.")
        return

    try:
        save_manifest(manifest_path, create_manifest())
    except IOFailure as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    rprint(f"[green]✓[/green] Created {manifest_path.relative_to(_project)}")

    config_path = _project / CONFIG_FILENAME
    if not config_path.exists():
        config_path.write_text(DEFAULT_CONFIG_TEMPLATE)
        rprint(f"[green]✓[/green] Created {CONFIG_FILENAME}")

    gitignore = _project / ".gitignore"
    entry = f"{cfg.state.dir}/"
    if gitignore.exists() and entry not in gitignore.read_text().splitlines():
        with open(gitignore, "a") as f:
            f.write(f"\n# docledger state\n{entry}\n")
        rprint("[green]✓[/green] Updated .gitignore")


def _confirm_discard(log: StagingLog) -> bool:
    rprint(
        f"[yellow]An interrupted run from {log.started_at:%Y-%m-%d %H:%M} no longer matches "
        f"the source tree[/yellow] ({len(log.completed)} completed, {len(log.failed)} failed)."
    )
    return typer.confirm("Discard it and start over?", default=False)


def _display_report(report: RunReport) -> None:
    table = Table(title="Update")
    table.add_column("", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("New", str(len(report.new)))
    table.add_row("Changed", str(len(report.changed)))
    table.add_row("Unchanged", str(report.unchanged))
    table.add_row("Deleted", str(len(report.deleted)))
    table.add_row("Processed", str(len(report.processed)))
    table.add_row("Skipped", str(len(report.skipped)))
    table.add_row("Deferred", str(len(report.deferred)))
    table.add_row("Failed", str(len(report.failed)))
    table.add_row("Cost", f"{report.cost:,.0f}")
    rprint(table)
    for entry in report.failed:
        rprint(f"  [red]✗[/red] {entry.path} ({entry.retry_count} attempts): {entry.reason}")


@app.command()
def update(
    force: bool = typer.Option(False, "--force", help="Reprocess every node"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Discard a stale interrupted run without asking"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="One-line summary only"),
) -> None:
    """Process new and changed files, then their directories."""
    cfg = _get_config()
    if not (_state_dir(cfg) / cfg.state.manifest).exists():
        rprint("[yellow]Not initialized.[/yellow] Run `docledger init` first.")
        raise typer.Exit(1)

    try:
        provider = create_llm_provider(cfg.llm)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    bundler = Bundler(
        _project,
        SummaryProcessor(
            provider,
            max_tokens=cfg.llm.max_tokens,
            audiences=cfg.audiences.enabled(),
        ),
        cfg,
        confirm_discard=(lambda _log: True) if yes else _confirm_discard,
    )

    try:
        report = asyncio.run(bundler.run(force=force))
    except LockContention as e:
        rprint(f"[red]Locked:[/red] {e}")
        raise typer.Exit(1)
    except StalePriorRun as e:
        rprint(f"[red]Error:[/red] {e}. Re-run with --yes to discard it.")
        raise typer.Exit(1)
    except IOFailure as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if quiet:
        rprint(
            f"Docs updated: {len(report.processed)} processed, "
            f"{len(report.failed)} failed, {report.cost:,.0f} cost"
        )
    elif report.up_to_date and not report.failed:
        rprint("[green]Documentation is already up to date.[/green]")
    else:
        _display_report(report)

    if report.aborted:
        rprint("[yellow]Stopped early: rate limited. Run update again later to continue.[/yellow]")
    if not report.ok:
        raise typer.Exit(2)


@app.command()
def status() -> None:
    """Show manifest stats, outstanding failures and the lock holder."""
    cfg = _get_config()
    state_dir = _state_dir(cfg)

    manifest = load_manifest(state_dir / cfg.state.manifest)
    if manifest is None:
        rprint("[yellow]Not initialized.[/yellow] Run `docledger init` first.")
        raise typer.Exit(1)

    table = Table(title="Manifest")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Root hash", manifest.root_hash[:12] or "-")
    table.add_row("Generated", manifest.generated_at.isoformat())
    table.add_row("Nodes", str(len(manifest.nodes)))
    table.add_row("Files", str(manifest.stats.total_files))
    table.add_row("Total cost", f"{manifest.stats.total_cost:,.0f}")
    rprint(table)

    log = StagingStore(state_dir / cfg.state.staging).load()
    if log is not None:
        rprint(
            f"[yellow]Interrupted run[/yellow] from {log.started_at.isoformat()}: "
            f"{len(log.completed)} completed, {len(log.failed)} failed"
        )
        for entry in log.failed:
            flag = " [magenta](rate limited)[/magenta]" if entry.rate_limited else ""
            rprint(f"  [red]✗[/red] {entry.path} ({entry.retry_count} attempts){flag}: {entry.reason}")

    lock = ProcessLock(state_dir / cfg.state.lock)
    holder = lock.info()
    if holder is not None:
        state = "stale" if lock.is_stale() else "active"
        rprint(f"Lock {state}: PID {holder.pid} on {holder.hostname} since {holder.started_at}")


@app.command()
def unlock() -> None:
    """Remove a lock left behind by a dead process."""
    cfg = _get_config()
    lock = ProcessLock(_state_dir(cfg) / cfg.state.lock)
    holder = lock.info()
    if holder is None and not lock.path.exists():
        rprint("No lock present.")
        return
    if lock.break_stale():
        rprint("[green]Removed stale lock.[/green]")
        return
    rprint(f"[red]Lock is held by a live process[/red] (PID {holder.pid if holder else '?'}).")
    raise typer.Exit(1)


if __name__ == "__main__":
    app()
