"""
Sitesnap CLI - track page structure snapshots of websites.

Command Structure: sitesnap <command> [args] [options]

Examples:
    sitesnap add acme https://acme.com
    sitesnap ingest acme
    sitesnap show acme --all
    sitesnap export acme -o acme.csv
    sitesnap classify https://acme.com/blog/launch
"""

import json
import logging
import signal
from contextlib import contextmanager
from typing import Optional

import click
from rich.table import Table

from sitesnap import __version__
from sitesnap.classify import UrlClassifier
from sitesnap.cli.progress import RichProgressSink, console
from sitesnap.config import SitesnapConfig
from sitesnap.core.errors import SitesnapError
from sitesnap.pipeline import CancelToken, build_pipeline
from sitesnap.snapshot.store import SnapshotStore

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class CliState:
    """Settings and lazily opened store shared by commands."""

    def __init__(self, config: SitesnapConfig):
        self.config = config
        self._store: Optional[SnapshotStore] = None

    @property
    def store(self) -> SnapshotStore:
        if self._store is None:
            self._store = SnapshotStore(self.config.db_path)
        return self._store

    def close(self):
        if self._store is not None:
            self._store.close()


pass_state = click.make_pass_decorator(CliState)


@contextmanager
def _cli_errors():
    """Turn Sitesnap errors into clean CLI failures."""
    try:
        yield
    except SitesnapError as e:
        raise click.ClickException(e.message) from e


@contextmanager
def _cancel_on_interrupt(token: CancelToken):
    """First Ctrl+C requests a stop at the next sub-batch boundary."""

    def handler(signum, frame):
        console.print("[yellow]Stopping after the current batch...[/yellow]")
        token.cancel()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


@click.group()
@click.version_option(version=__version__, prog_name="sitesnap")
@click.option("--db", "db_path", type=click.Path(dir_okay=False), help="Snapshot database path")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, db_path: Optional[str], verbose: bool):
    """
    Sitesnap - versioned page structure snapshots for websites.
    """
    try:
        config = SitesnapConfig.from_env(db_path=db_path)
    except (SitesnapError, ValueError) as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e

    level = logging.DEBUG if verbose else getattr(logging, config.log_level)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    state = CliState(config)
    ctx.obj = state
    ctx.call_on_close(state.close)


@cli.command()
@click.argument("name")
@click.argument("base_url")
@pass_state
def add(state: CliState, name: str, base_url: str):
    """Track a new property.

    Examples:
        sitesnap add acme https://acme.com
    """
    with _cli_errors():
        entry = state.store.index.add(name, base_url)
    click.echo(f"Tracking {entry.name} at {entry.base_url}")


@cli.command(name="list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@pass_state
def list_properties(state: CliState, as_json: bool):
    """List tracked properties."""
    entries = state.store.index.list()
    if as_json:
        click.echo(json.dumps([entry.to_dict() for entry in entries], indent=2))
        return

    if not entries:
        click.echo("No properties tracked yet. Add one with: sitesnap add NAME BASE_URL")
        return

    table = Table("Property", "Base URL", "Pages", "Last updated")
    for entry in entries:
        updated = entry.last_updated.strftime("%Y-%m-%d %H:%M") if entry.last_updated else "never"
        table.add_row(entry.name, entry.base_url, str(len(state.store.groups(entry.name))), updated)
    console.print(table)


@cli.command()
@click.argument("name")
@click.option("--base-url", help="Base URL (required the first time a property is ingested)")
@click.option("--batch-size", type=click.IntRange(min=1), help="URLs per merge batch")
@click.option("--workers", type=click.IntRange(min=1, max=5), help="Concurrent metadata fetches")
@click.option("--json", "as_json", is_flag=True, help="Output the ingest report as JSON")
@pass_state
def ingest(state: CliState, name: str, base_url: Optional[str], batch_size: Optional[int],
           workers: Optional[int], as_json: bool):
    """Discover, classify and snapshot every page of a property.

    Examples:
        sitesnap ingest acme
        sitesnap ingest acme --base-url https://acme.com --workers 3
    """
    config = state.config.model_copy(
        update={k: v for k, v in {"batch_size": batch_size, "max_workers": workers}.items() if v is not None}
    )
    token = CancelToken()

    with _cli_errors(), RichProgressSink(f"Ingesting {name}") as sink, _cancel_on_interrupt(token):
        pipeline = build_pipeline(config=config, store=state.store, sink=sink)
        report = pipeline.ingest(name, base_url=base_url, cancel=token)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    elif report.success:
        status = "stopped early" if report.cancelled else "done"
        click.echo(
            f"{name}: {status} - {report.discovered} discovered, {report.merged} merged, "
            f"{len(report.failed)} failed"
        )
        for url, reason in report.failed.items():
            click.echo(f"  skipped {url}: {reason}")

    if not report.success:
        raise click.ClickException(report.error)


@cli.command()
@click.argument("name")
@click.option("--all", "show_all", is_flag=True, help="Include collapsed history versions")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@pass_state
def show(state: CliState, name: str, show_all: bool, as_json: bool):
    """Show the snapshot of a property."""
    if state.store.index.get(name) is None:
        raise click.ClickException(f"Unknown property '{name}'")

    rows = state.store.rows(name, include_history=show_all)
    if as_json:
        click.echo(json.dumps(
            [dict(row.record.to_dict(), collapsed=row.collapsed) for row in rows], indent=2, ensure_ascii=False
        ))
        return

    table = Table("URL", "Level", "Title", "Version", "Likes", "Target")
    for row in rows:
        record = row.record
        url = f"  [dim]↳ {record.url}[/dim]" if row.collapsed else record.url
        table.add_row(url, str(record.level), record.title, record.version,
                      str(record.like_count), str(record.target_likes))
    console.print(table)
    console.print(f"Top-level pages: {state.store.top_level_count(name)}")


@cli.command()
@click.argument("name")
@click.option("--output", "-o", type=click.File("w", encoding="utf-8"), default="-", help="CSV file (default stdout)")
@click.option("--latest-only", is_flag=True, help="Export only the newest version of each URL")
@pass_state
def export(state: CliState, name: str, output, latest_only: bool):
    """Export a property's snapshot rows as CSV."""
    if state.store.index.get(name) is None:
        raise click.ClickException(f"Unknown property '{name}'")
    written = state.store.export_csv(name, output, include_history=not latest_only)
    if getattr(output, "name", "<stdout>") not in ("<stdout>", "-"):
        click.echo(f"Exported {written} rows", err=True)


@cli.command()
@click.argument("url")
@click.option("--source", help="Sitemap document the URL was listed in")
def classify(url: str, source: Optional[str]):
    """Print the hierarchy level of a URL."""
    with _cli_errors():
        level = UrlClassifier().classify(url, source)
    click.echo(str(level))


@cli.command()
@click.argument("name")
@click.confirmation_option(prompt="This deletes the property and all of its history. Continue?")
@pass_state
def reset(state: CliState, name: str):
    """Stop tracking a property and delete its snapshot."""
    if state.store.index.remove(name):
        click.echo(f"Removed {name}")
    else:
        raise click.ClickException(f"Unknown property '{name}'")


def main():
    """Entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
