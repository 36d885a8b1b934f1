"""CLI command for inspecting the publication-aware refresh schedule."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from presscache.container import container

console = Console()


def _format_duration(seconds: int) -> str:
    """Render a duration as ``1h 30m`` style text."""
    if seconds <= 0:
        return "-"
    hours, remainder = divmod(seconds, 3600)
    minutes = remainder // 60
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    return f"{minutes}m"


_DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def schedule() -> None:
    """
    Show the scheduling context and per-tier refresh timing.

    Examples:
        presscache schedule
    """
    context = container.scheduler.describe()

    hours = context["business_hours"]
    days = ", ".join(_DAY_NAMES[day] for day in context["business_days"]) or "none"
    state = (
        "[green]business hours[/green]"
        if context["is_business_hours"]
        else "[yellow]off hours[/yellow]"
    )

    console.print()
    console.print(f"  Timezone:       {context['timezone']}")
    console.print(f"  Local time:     {context['local_time']}")
    console.print(f"  Business hours: {hours['start']:02d}:00-{hours['end']:02d}:00 ({days})")
    console.print(f"  Now:            {state}")
    if context["is_business_hours"]:
        console.print(
            "  Window closes:  in "
            f"{_format_duration(context['seconds_until_business_hours_end'])}"
        )
    else:
        console.print(
            "  Window opens:   in "
            f"{_format_duration(context['seconds_until_business_hours'])}"
        )
    console.print()

    table = Table(title="Content Tiers")
    table.add_column("Tier", style="cyan")
    table.add_column("Name")
    table.add_column("Refresh Interval", style="green", justify="right")
    table.add_column("Cache Expiry", style="blue", justify="right")
    for key, tier in context["tiers"].items():
        table.add_row(
            key,
            tier["name"],
            _format_duration(tier["refresh_interval_seconds"]),
            _format_duration(tier["cache_expiry_seconds"]),
        )
    console.print(table)
