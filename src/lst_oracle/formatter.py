"""Rich console formatter for oracle state."""

from __future__ import annotations

from datetime import datetime, timezone

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table

from .control import EmergencyState
from .oracle import PriceOracle
from .registry import build_registry


def _format_time(ts: int) -> str:
    if ts == 0:
        return "[dim]never[/]"
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _truncate(identity: str) -> str:
    """Truncate an identity for display."""
    if len(identity) <= 16:
        return identity
    return f"{identity[:8]}...{identity[-4:]}"


def build_status_panel(oracle: PriceOracle) -> Panel:
    header = oracle.header
    state = oracle.emergency_state()
    state_style = "red" if state is EmergencyState.STOPPED else "green"

    header_table = Table(show_header=False, box=None, padding=(0, 1))
    header_table.add_column("Key", style="dim")
    header_table.add_column("Value", style="cyan")
    header_table.add_row("Authority", _truncate(header.authority))
    header_table.add_row("Feed Authority", _truncate(header.feed_authority))
    header_table.add_row("State", f"[bold {state_style}]{state.value.upper()}[/]")
    header_table.add_row("Last Update", _format_time(header.last_global_update))
    header_table.add_row(
        "Registry",
        f"{header.registry_strategy.value} ({header.asset_count}/{oracle.ledger.capacity} slots)",
    )

    asset_table = Table(expand=True, show_lines=False)
    asset_table.add_column("Slot", justify="right", style="dim")
    asset_table.add_column("Asset", style="cyan", no_wrap=True)
    asset_table.add_column("Price", justify="right", style="yellow")
    asset_table.add_column("Previous", justify="right", style="dim")
    asset_table.add_column("APY", justify="right", style="green")
    asset_table.add_column("Updated", justify="right")

    registry = build_registry(header)
    for asset in registry.assets:
        slot = registry.slot_for(asset)
        record = oracle.ledger.records[slot]
        if not record.initialized:
            asset_table.add_row(
                str(slot), asset.value, "[dim]<N/A>[/]", "", "", _format_time(0)
            )
            continue
        asset_table.add_row(
            str(slot),
            asset.value,
            f"{record.price:.6f}",
            f"{record.previous_price:.6f}",
            f"{record.apy:.6f}",
            _format_time(record.last_update_time),
        )

    return Panel(
        Group(header_table, "", asset_table),
        title="[bold white]LST Oracle[/]",
        border_style=state_style,
        padding=(1, 2),
    )


def print_status(oracle: PriceOracle, console: Console | None = None) -> None:
    """Print the oracle header and every registered asset's record."""
    console = console or Console()
    console.print()
    console.print(build_status_panel(oracle))
    console.print()
