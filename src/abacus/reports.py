"""Report generation for CLI output."""

from rich.console import Console
from rich.table import Table

from .aggregate import goal_percent, record_for, sorted_records
from .models import DailySummary, DeviceLog

console = Console()


def status_text(today: DailySummary, daily_goal: int) -> str:
    """One-line progress text, as shown in a status bar."""
    net = today.net_words
    if daily_goal > 0:
        pct = goal_percent(net, daily_goal)
        icon = "✓" if net >= daily_goal else "✏️"
        return f"{icon} {net} / {daily_goal} words ({pct}%)"
    return f"✏️ {net} words today"


def print_today(records: dict[str, DailySummary], today: str, daily_goal: int, streak: int):
    """Print today's card with goal progress and streak."""
    record = record_for(records, today)

    table = Table(title=f"Today ({today})")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")

    table.add_row("Net Words", f"{record.net_words:,}")
    table.add_row("Added", f"+{record.words_added:,}")
    table.add_row("Deleted", f"-{record.words_deleted:,}")
    if daily_goal > 0:
        pct = goal_percent(record.net_words, daily_goal)
        style = "bold green" if pct >= 100 else "yellow"
        table.add_row("Goal", f"[{style}]{record.net_words:,} / {daily_goal:,} ({pct}%)[/{style}]")
        table.add_row("Streak", f"{streak} day{'s' if streak != 1 else ''}")

    console.print(table)


def print_history(records: dict[str, DailySummary], daily_goal: int, limit: int = 14):
    """Print the most recent days, newest first."""
    history = sorted_records(records)[:limit]

    if not history:
        console.print("[yellow]No word count data yet. Start typing![/yellow]")
        return

    table = Table(title="History")
    table.add_column("Date", style="cyan")
    table.add_column("Added", justify="right")
    table.add_column("Deleted", justify="right")
    table.add_column("Net", style="green", justify="right")
    if daily_goal > 0:
        table.add_column("Goal %", justify="right")

    for day in history:
        row = [day.date, f"+{day.words_added:,}", f"-{day.words_deleted:,}", f"{day.net_words:,}"]
        if daily_goal > 0:
            pct = goal_percent(day.net_words, daily_goal, capped=False)
            row.append(f"[green]{pct}%[/green]" if pct >= 100 else f"{pct}%")
        table.add_row(*row)

    console.print(table)


def print_devices(logs: dict[str, DeviceLog], own_device_id: str):
    """Print every device log found in the shared folder."""
    if not logs:
        console.print("[yellow]No device logs found.[/yellow]")
        return

    table = Table(title="Devices")
    table.add_column("File", style="dim")
    table.add_column("Device", style="cyan")
    table.add_column("ID")
    table.add_column("Increments", justify="right")
    table.add_column("Latest Day")

    for path, log in sorted(logs.items()):
        name = log.device_name or "-"
        if log.device_id == own_device_id:
            name = f"{name} [green](this device)[/green]"
        latest = max((inc.date for inc in log.increments), default="-")
        table.add_row(path, name, log.device_id, str(len(log.increments)), latest)

    console.print(table)
