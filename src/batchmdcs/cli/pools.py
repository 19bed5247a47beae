"""Pools subcommand for the batchmdcs CLI."""

from __future__ import annotations

from typing import Annotated

import cyclopts
from rich.console import Console

from .formatters import print_pools_table
from .utils import BatchfileOption, EnvOption, get_cluster

pools_app = cyclopts.App(
    name="pools",
    help="Manage Batch pools.",
)

console = Console(stderr=True)


@pools_app.command(name="list")
def list_pools(
    env: EnvOption = None,
    batchfile: BatchfileOption = None,
) -> None:
    """List the pools of the Batch account."""
    cluster = get_cluster(env=env, batchfile=batchfile)
    print_pools_table(cluster.list_pools())


@pools_app.command(name="create")
def create_pool(
    pool_id: Annotated[str, cyclopts.Parameter(help="Id of the pool to create.")],
    vm_size: Annotated[str, cyclopts.Parameter(help="Azure VM size of the nodes.")],
    nodes: Annotated[int, cyclopts.Parameter(help="Target number of dedicated nodes.")],
    inter_node_communication: Annotated[
        bool,
        cyclopts.Parameter(
            name=["--inter-node-communication", "-c"],
            help="Enable communication between nodes (communicating jobs).",
        ),
    ] = False,
    max_tasks_per_node: Annotated[
        int,
        cyclopts.Parameter(
            name=["--max-tasks-per-node", "-t"],
            help="Maximum number of tasks run at once on a node.",
        ),
    ] = 1,
    env: EnvOption = None,
    batchfile: BatchfileOption = None,
) -> None:
    """Create a pool with MDCS installed on every node."""
    cluster = get_cluster(env=env, batchfile=batchfile)
    cluster.create_pool(
        pool_id, vm_size, nodes, inter_node_communication, max_tasks_per_node
    )
    console.print(f"[green]Created pool {pool_id}.[/green]")


@pools_app.command(name="resize")
def resize_pool(
    pool_id: Annotated[str, cyclopts.Parameter(help="Id of the pool to resize.")],
    nodes: Annotated[int, cyclopts.Parameter(help="New target number of dedicated nodes.")],
    env: EnvOption = None,
    batchfile: BatchfileOption = None,
) -> None:
    """Resize a pool."""
    cluster = get_cluster(env=env, batchfile=batchfile)
    cluster.resize_pool(pool_id, nodes)
    console.print(f"[green]Resizing pool {pool_id} to {nodes} nodes.[/green]")


@pools_app.command(name="delete")
def delete_pool(
    pool_id: Annotated[str, cyclopts.Parameter(help="Id of the pool to delete.")],
    env: EnvOption = None,
    batchfile: BatchfileOption = None,
) -> None:
    """Delete a pool."""
    cluster = get_cluster(env=env, batchfile=batchfile)
    cluster.delete_pool(pool_id)
    console.print(f"[green]Deleting pool {pool_id}.[/green]")
