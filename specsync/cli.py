"""specsync CLI: Typer + Rich terminal interface.

Commands: reverse, status, tests, baseline, config.
All output is Rich-powered with color-coded tables.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from specsync import __version__
from specsync.loader import load_sync_config, resolve_config_path
from specsync.schemas.changes import ChangeRecord, ChangeSet
from specsync.schemas.sync import ConflictStrategyName, SyncConfig, SyncResult
from specsync.sync.baseline import BaselineManager
from specsync.sync.engine import ReverseSyncEngine
from specsync.sync.extensions import TestExtensionStore
from specsync.sync.merge import SpecMerge
from specsync.sync.source import FileCollectionSource, unwrap_collection

console = Console()

# ── App and sub-apps ─────────────────────────────────────────────

app = typer.Typer(
    name="specsync",
    help="Reconcile an OpenAPI spec with changes made in its request collection.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

baseline_app = typer.Typer(
    name="baseline",
    help="Inspect and manage baseline snapshots.",
    no_args_is_help=True,
)
app.add_typer(baseline_app, name="baseline")

config_app = typer.Typer(
    name="config",
    help="Show reverse sync configuration.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


# ── Version callback ───────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"specsync {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log detection and merge details.",
    ),
) -> None:
    """specsync: keep an OpenAPI spec and its collection in step."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


# ── Helpers ──────────────────────────────────────────────────────


def _load_config(
    config_path: Path | None = None,
    strategy: str | None = None,
) -> SyncConfig:
    """Load sync config and apply CLI overrides, exit on error."""
    try:
        config = load_sync_config(resolve_config_path(config_path))
        if strategy:
            config = config.model_copy(
                update={"conflict_strategy": ConflictStrategyName(strategy)}
            )
        return config
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading config:[/red] {e}")
        raise typer.Exit(1) from None


def _read_spec(spec: Path) -> dict:
    try:
        return SpecMerge.read_spec(spec)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


def _format_value(value) -> str:
    if value is None:
        return "-"
    if isinstance(value, (dict, list)):
        text = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    else:
        text = str(value)
    return text if len(text) <= 60 else text[:57] + "..."


def _display_summary(changes: ChangeSet) -> None:
    """Print bucket counts for a change set."""
    summary = changes.summary()
    table = Table(title="Change Summary", show_header=False)
    table.add_column("Bucket", style="bold")
    table.add_column("Count", justify="right")
    table.add_row("Safe to sync", f"[green]{summary.safe_to_sync}[/green]")
    table.add_row("Needs review", f"[yellow]{summary.needs_review}[/yellow]")
    table.add_row("Blocked", f"[red]{summary.blocked}[/red]")
    table.add_row("Tests", f"[cyan]{summary.tests}[/cyan]")
    console.print(table)

    if summary.has_conflicts:
        console.print("  [yellow](!) Conflicts detected[/yellow]")
    if summary.degraded:
        console.print(
            "  [yellow]Collection fallback:[/yellow] remote spec unavailable, "
            "only descriptions and tests were extracted"
        )


def _display_records(title: str, records: list[ChangeRecord], style: str) -> None:
    if not records:
        return
    table = Table(title=title)
    table.add_column("Kind", width=9)
    table.add_column("Path", style="cyan")
    table.add_column("Local")
    table.add_column("Remote")
    table.add_column("Reason", style="dim")
    for r in records:
        table.add_row(
            Text(r.kind.value, style=style),
            r.path,
            _format_value(r.old_value),
            _format_value(r.new_value),
            r.reason,
        )
    console.print(table)


def _display_sync_result(result: SyncResult) -> None:
    """Display the outcome of a reverse sync run."""
    changes = result.changes
    _display_summary(changes)
    _display_records("Safe to Sync", changes.safe_to_sync, "bold green")
    _display_records("Needs Review", changes.needs_review, "bold yellow")
    _display_records("Blocked", changes.blocked, "bold red")

    if result.status == "dry-run":
        console.print(
            f"\n  [dim]Dry run:[/dim] would apply {result.would_apply}, "
            f"skip {result.would_skip}, leave {result.would_review} for review"
        )
        return

    if result.status == "no-changes":
        console.print("\n  [dim]No changes to apply.[/dim]")
        return

    console.print(
        f"\n  [green]Applied:[/green] {len(result.applied)}  "
        f"[yellow]Skipped:[/yellow] {len(result.skipped)}"
    )
    for r in result.skipped:
        console.print(f"    [dim]- {r.path}: {r.reason}[/dim]")


def _result_payload(result: SyncResult) -> dict:
    return {
        "status": result.status.value,
        "summary": result.changes.summary().model_dump(by_alias=True),
        "changes": result.changes.model_dump(mode="json", by_alias=True),
        "applied": [r.model_dump(mode="json", by_alias=True) for r in result.applied],
        "skipped": [r.model_dump(mode="json", by_alias=True) for r in result.skipped],
        "testsApplied": result.tests_applied,
        "outputPath": result.output_path,
        "backupPath": result.backup_path,
    }


def _run_sync(
    spec: Path,
    collection: Path,
    remote: Path | None,
    config: SyncConfig,
    dry_run: bool,
    output: Path | None = None,
    no_backup: bool = False,
    as_json: bool = False,
) -> None:
    source = FileCollectionSource(collection, remote)
    # Keep stdout clean for JSON
    progress = Console(quiet=True) if as_json else console
    engine = ReverseSyncEngine(source, config, progress)

    progress.print(f"\n[bold]Reverse Sync:[/bold] {collection.name} -> {spec.name}")
    try:
        result = engine.run(spec, collection.stem, dry_run=dry_run,
                            output_path=output, no_backup=no_backup)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    if as_json:
        typer.echo(json.dumps(_result_payload(result), indent=2, ensure_ascii=False))
    else:
        _display_sync_result(result)


# ── specsync reverse / status ────────────────────────────────────


@app.command()
def reverse(
    spec: Path = typer.Argument(..., help="Local OpenAPI spec (JSON or YAML)"),
    collection: Path = typer.Option(..., "--collection", "-c", help="Exported collection JSON"),
    remote: Path = typer.Option(
        None, "--remote", "-r", help="Spec derived from the collection (JSON or YAML)",
    ),
    strategy: str = typer.Option(
        None, "--strategy", "-s", help="Conflict strategy: spec-wins or collection-wins",
    ),
    output: Path = typer.Option(None, "--output", "-o", help="Write merged spec here"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report without writing"),
    no_backup: bool = typer.Option(False, "--no-backup", help="Skip the spec backup"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    config_file: Path = typer.Option(None, "--config", help="TOML config file"),
) -> None:
    """Sync collection changes back into the spec."""
    config = _load_config(config_file, strategy)
    _run_sync(spec, collection, remote, config, dry_run, output, no_backup, as_json)


@app.command()
def status(
    spec: Path = typer.Argument(..., help="Local OpenAPI spec (JSON or YAML)"),
    collection: Path = typer.Option(..., "--collection", "-c", help="Exported collection JSON"),
    remote: Path = typer.Option(
        None, "--remote", "-r", help="Spec derived from the collection (JSON or YAML)",
    ),
    strategy: str = typer.Option(
        None, "--strategy", "-s", help="Conflict strategy: spec-wins or collection-wins",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    config_file: Path = typer.Option(None, "--config", help="TOML config file"),
) -> None:
    """Show what a reverse sync would do, without writing anything."""
    config = _load_config(config_file, strategy)
    _run_sync(spec, collection, remote, config, dry_run=True, as_json=as_json)


# ── specsync tests ───────────────────────────────────────────────


@app.command()
def tests(
    spec: Path = typer.Argument(..., help="Local OpenAPI spec (JSON or YAML)"),
    collection: Path = typer.Option(..., "--collection", "-c", help="Exported collection JSON"),
    output: Path = typer.Option(None, "--output", "-o", help="Write updated spec here"),
    config_file: Path = typer.Option(None, "--config", help="TOML config file"),
) -> None:
    """Store collection test scripts on the spec's operations."""
    config = _load_config(config_file)
    document = _read_spec(spec)
    try:
        raw = FileCollectionSource(collection).get_collection(collection.stem)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None

    store = TestExtensionStore(config.tests_extension_field, config.match_policy)
    count = store.apply_tests_as_extensions(document, unwrap_collection(raw))
    if count == 0:
        console.print("[dim]No test scripts matched any operation.[/dim]")
        return

    target = output or spec
    SpecMerge.write_spec(document, target)
    console.print(
        f"[green]Stored test scripts on {count} operation(s)[/green] "
        f"as {config.tests_extension_field} in {target}"
    )


# ── specsync baseline ────────────────────────────────────────────


@baseline_app.command("show")
def baseline_show(
    spec: Path = typer.Argument(..., help="Local OpenAPI spec (JSON or YAML)"),
    config_file: Path = typer.Option(None, "--config", help="TOML config file"),
) -> None:
    """Show the baseline snapshot for a spec."""
    config = _load_config(config_file)
    manager = BaselineManager(config.baseline_dir)
    path = manager.path_for(spec)

    table = Table(title="Baseline", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Spec", str(spec))
    table.add_row("Path", str(path))

    snapshot = manager.load(spec)
    if snapshot is None:
        status_text = "[red]missing or unreadable[/red]" if path.exists() else "[dim]none[/dim]"
        table.add_row("Status", status_text)
    else:
        info = snapshot.get("info") if isinstance(snapshot.get("info"), dict) else {}
        paths = snapshot.get("paths") if isinstance(snapshot.get("paths"), dict) else {}
        table.add_row("Status", "[green]found[/green]")
        table.add_row("Title", str(info.get("title", "-")))
        table.add_row("Version", str(info.get("version", "-")))
        table.add_row("Paths", str(len(paths)))
    console.print(table)


@baseline_app.command("save")
def baseline_save(
    spec: Path = typer.Argument(..., help="Local OpenAPI spec (JSON or YAML)"),
    config_file: Path = typer.Option(None, "--config", help="TOML config file"),
) -> None:
    """Record the spec as it is now as the agreed baseline."""
    config = _load_config(config_file)
    document = _read_spec(spec)
    path = BaselineManager(config.baseline_dir).save(spec, document)
    console.print(f"[green]Baseline saved:[/green] {path}")


# ── specsync config ──────────────────────────────────────────────


@config_app.command("show")
def config_show(
    config_file: Path = typer.Option(None, "--config", help="TOML config file"),
) -> None:
    """Show current reverse sync configuration."""
    config = _load_config(config_file)

    table = Table(title="Sync Configuration", show_header=False, show_lines=True)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    table.add_row("Conflict Strategy", config.conflict_strategy.value)
    table.add_row("Auto-merge Descriptions", str(config.auto_merge_descriptions))
    table.add_row("Auto-merge Examples", str(config.auto_merge_examples))
    table.add_row("Store Tests as Extension", str(config.store_tests_as_extension))
    table.add_row("Tests Extension Field", config.tests_extension_field)
    table.add_row("Baseline Dir", config.baseline_dir)
    table.add_row("Match Policy", config.match_policy.value)
    table.add_row("Backup", str(config.backup))
    table.add_row("Max Depth", str(config.max_depth))
    if config.ignored_keys:
        table.add_row("Ignored Keys", ", ".join(config.ignored_keys))

    console.print(table)


@config_app.command("path")
def config_path(
    config_file: Path = typer.Option(None, "--config", help="TOML config file"),
) -> None:
    """Show which configuration file is in effect."""
    path = resolve_config_path(config_file)
    exists = path.exists()
    state = "[green]found[/green]" if exists else "[red]missing[/red]"
    console.print(f"{path} {state}")
