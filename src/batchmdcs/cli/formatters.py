"""Rich output formatters for the batchmdcs CLI."""

from __future__ import annotations

from typing import Any, Dict, List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

console = Console()

# Color mapping for pool allocation states and MATLAB job states
STATE_COLORS: Dict[str, str] = {
    "steady": "green",
    "resizing": "yellow",
    "stopping": "magenta",
    "active": "green",
    "deleting": "red",
    "running": "yellow",
    "finished": "blue",
}


def _get_state_color(state: str) -> str:
    return STATE_COLORS.get((state or "").lower(), "white")


def print_pools_table(pools: List[Dict[str, Any]]) -> None:
    """Display pools as a Rich table.

    Args:
        pools: List of pool dictionaries from cluster.list_pools().
    """
    if not pools:
        console.print("[dim]No pools in this Batch account.[/dim]")
        return

    table = Table(title="Pools")
    table.add_column("Pool ID", style="cyan", no_wrap=True)
    table.add_column("VM Size", style="white")
    table.add_column("State", style="white")
    table.add_column("Allocation", style="white")
    table.add_column("Nodes", justify="right", style="dim")

    for pool in pools:
        state = str(pool.get("state") or "")
        allocation = str(pool.get("allocation_state") or "")
        nodes = "{}/{}".format(
            pool.get("current_dedicated_nodes", 0), pool.get("target_dedicated_nodes", 0)
        )
        table.add_row(
            str(pool.get("id", "")),
            str(pool.get("vm_size") or ""),
            f"[{_get_state_color(state)}]{state}[/{_get_state_color(state)}]",
            f"[{_get_state_color(allocation)}]{allocation}[/{_get_state_color(allocation)}]",
            nodes,
        )

    console.print(table)


def print_job_status(job_id: str, status: List[str]) -> None:
    """Display a job status, as returned by cluster.poll_job_status(), in a panel."""
    state = status[0] if status else "unknown"
    color = _get_state_color(state)

    details = [f"[bold]State:[/bold] [{color}]{state}[/{color}]"]
    if len(status) > 1:
        details.append(f"[bold]Result:[/bold] {status[1]}")

    console.print(Panel("\n".join(details), title=f"Job {job_id}", border_style=color))
