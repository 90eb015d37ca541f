"""CLI entry point for abacus."""

import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from . import config
from .identity import resolve_identity
from .reports import print_devices, print_history, print_today, status_text
from .storage import LocalFileStorage, LocalStore
from .tracker import WordTracker
from .watch import DocumentWatcher

console = Console()


def setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def make_tracker(ctx, **kwargs) -> WordTracker:
    """Build a tracker for this device from the CLI context."""
    local_store = LocalStore(ctx.obj["local_dir"] / config.LOCAL_STORE_FILE)
    return WordTracker(
        LocalFileStorage(ctx.obj["vault"]),
        resolve_identity(local_store),
        local_store=local_store,
        **kwargs,
    )


async def _open(tracker: WordTracker) -> WordTracker:
    await tracker.load()
    await tracker.refresh()
    return tracker


@click.group()
@click.option(
    "--vault",
    type=click.Path(file_okay=False, path_type=Path),
    default=str(config.DEFAULT_VAULT_DIR),
    envvar="ABACUS_VAULT",
    show_default=True,
    help="Shared (synced) folder holding the word-count data",
)
@click.option(
    "--local-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=str(config.DEFAULT_LOCAL_DIR),
    envvar="ABACUS_LOCAL_DIR",
    show_default=True,
    help="Device-local folder for this device's identity (not synced)",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, vault, local_dir, verbose):
    """Track daily word counts across devices sharing a synced folder."""
    ctx.ensure_object(dict)
    ctx.obj["vault"] = vault
    ctx.obj["local_dir"] = local_dir
    setup_logging(verbose)


@cli.command()
@click.option("--days", default=14, help="Number of days of history to show")
@click.pass_context
def stats(ctx, days):
    """Show today's progress and recent history."""
    tracker = asyncio.run(_open(make_tracker(ctx)))
    records = tracker.daily_records()
    goal = tracker.settings.daily_goal

    print_today(records, tracker.today().isoformat(), goal, tracker.streak())
    console.print()
    print_history(records, goal, days)


@cli.command()
@click.pass_context
def status(ctx):
    """Print the one-line status for today."""
    tracker = asyncio.run(_open(make_tracker(ctx)))
    console.print(status_text(tracker.today_record(), tracker.settings.daily_goal))


@cli.command()
@click.option("--added", default=0, type=click.IntRange(min=0), help="Words added")
@click.option("--deleted", default=0, type=click.IntRange(min=0), help="Words deleted")
@click.pass_context
def record(ctx, added, deleted):
    """Record a word delta for today by hand."""
    if added == 0 and deleted == 0:
        console.print("[yellow]Nothing to record.[/yellow]")
        return

    async def _record():
        tracker = await _open(make_tracker(ctx))
        tracker.record_change(added, deleted)
        await tracker.close()
        return tracker

    tracker = asyncio.run(_record())
    console.print(status_text(tracker.today_record(), tracker.settings.daily_goal))


@cli.command("reset-today")
@click.confirmation_option(prompt="Reset today's word count to zero?")
@click.pass_context
def reset_today(ctx):
    """Reset today's word count."""

    async def _reset():
        tracker = await _open(make_tracker(ctx))
        return await tracker.reset_today()

    removed = asyncio.run(_reset())
    console.print(f"[green]Today's count reset[/green] ({removed} increment{'s' if removed != 1 else ''} removed)")


@cli.command()
@click.option("--now", "everything", is_flag=True, help="Compact everything not dated today")
@click.pass_context
def compact(ctx, everything):
    """Fold old increments on this device into daily summaries."""

    async def _compact():
        tracker = await _open(make_tracker(ctx))
        if everything:
            return await tracker.compact_now()
        return await tracker.compact()

    count = asyncio.run(_compact())
    console.print(f"[green]Compacted {count} increment{'s' if count != 1 else ''}[/green]")


@cli.command()
@click.argument("words", type=int)
@click.pass_context
def goal(ctx, words):
    """Set the daily word goal (0 disables goal tracking)."""
    if words < 0:
        raise click.BadParameter("must be 0 or more", param_hint="WORDS")

    async def _set():
        tracker = await _open(make_tracker(ctx))
        await tracker.set_daily_goal(words)

    asyncio.run(_set())
    console.print(f"Daily goal set to [green]{words}[/green]" if words else "Goal tracking disabled")


@cli.command("compact-after")
@click.argument("days", type=int)
@click.pass_context
def compact_after(ctx, days):
    """Set how many days of increments to keep before compacting."""
    if days < 1:
        raise click.BadParameter("must be at least 1", param_hint="DAYS")

    async def _set():
        tracker = await _open(make_tracker(ctx))
        await tracker.set_compact_after_days(days)

    asyncio.run(_set())
    console.print(f"Increments older than [green]{days}[/green] days will be compacted")


@cli.command("device-name")
@click.argument("name", required=False)
@click.option("--clear", is_flag=True, help="Remove the device name")
@click.pass_context
def device_name(ctx, name, clear):
    """Show or set this device's display name (stored locally)."""
    if name is None and not clear:
        identity = resolve_identity(LocalStore(ctx.obj["local_dir"] / config.LOCAL_STORE_FILE))
        console.print(f"Name: [cyan]{identity.device_name or '(none)'}[/cyan]")
        console.print(f"ID:   [dim]{identity.device_id}[/dim]")
        return

    async def _rename():
        tracker = await _open(make_tracker(ctx))
        identity = await tracker.set_device_name(None if clear else name)
        return identity, tracker.log_store.path

    identity, path = asyncio.run(_rename())
    console.print(f"Device name: [cyan]{identity.device_name or '(none)'}[/cyan]")
    console.print(f"[dim]Log file: {path}[/dim]")


@cli.command()
@click.pass_context
def devices(ctx):
    """List the device logs found in the shared folder."""
    tracker = make_tracker(ctx)
    logs = asyncio.run(tracker.device_logs())
    print_devices(logs, tracker.identity.device_id)


@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--interval", default=config.POLL_INTERVAL_SECONDS, help="Seconds between checks")
@click.pass_context
def track(ctx, files, interval):
    """Watch documents and count the words you write in them."""

    def show_status():
        console.print(status_text(tracker.today_record(), tracker.settings.daily_goal))

    tracker = make_tracker(ctx, on_refresh=show_status)

    async def _track():
        await tracker.start()
        watcher = DocumentWatcher(tracker, list(files), interval=interval)
        try:
            await watcher.run()
        finally:
            await tracker.close()

    console.print(f"[cyan]Tracking {len(files)} file{'s' if len(files) != 1 else ''}... (Ctrl-C to stop)[/cyan]")
    try:
        asyncio.run(_track())
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")


if __name__ == "__main__":
    cli()
