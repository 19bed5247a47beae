"""Credentials subcommand for the batchmdcs CLI."""

from __future__ import annotations

from typing import Annotated, Optional

import cyclopts
from rich.console import Console

credentials_app = cyclopts.App(
    name="credentials",
    help="Manage the locally stored account keys.",
)

console = Console(stderr=True)


@credentials_app.command(name="store")
def store_credential(
    target: Annotated[
        str,
        cyclopts.Parameter(
            help="Batch or Storage account name the key belongs to.",
        ),
    ],
    key: Annotated[
        Optional[str],
        cyclopts.Parameter(
            name=["--key", "-k"],
            help="Account key. Prompted for when omitted.",
        ),
    ] = None,
) -> None:
    """Store an account key in the system keyring."""
    from ..cluster import BatchCluster

    if key is None:
        key = console.input(f"Key for [cyan]{target}[/cyan]: ", password=True)

    BatchCluster.store_credential(target, key)
    console.print(f"[green]Stored credential for {target}.[/green]")
