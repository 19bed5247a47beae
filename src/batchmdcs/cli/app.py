"""Root application for the batchmdcs CLI."""

from __future__ import annotations

import logging
import sys

import cyclopts
from rich.console import Console

from ..logging import configure_logging
from .credentials import credentials_app
from .data import data_app
from .jobs import jobs_app
from .pools import pools_app

console = Console(stderr=True)


def _get_version() -> str:
    """Get SDK version for --version flag."""
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version("batchmdcs-sdk")
    except PackageNotFoundError:
        return "unknown"


app = cyclopts.App(
    name="batchmdcs",
    help="CLI for batchmdcs - run MATLAB jobs on Azure Batch.",
    version=_get_version(),
)

app.command(credentials_app)
app.command(pools_app)
app.command(jobs_app)
app.command(data_app)


def _handle_error(e: Exception) -> None:
    """Handle exceptions with user-friendly messages."""
    from ..errors import (
        BackendCommandError,
        BackendError,
        BackendTimeout,
        BatchfileEnvironmentNotFoundError,
        BatchfileError,
        BatchfileInvalidError,
        BatchfileNotFoundError,
        ConfigurationError,
        CredentialError,
        RendezvousError,
        StagingError,
        SubmissionError,
    )

    if isinstance(e, BatchfileNotFoundError):
        console.print(f"[red]Error:[/red] {e}")
        console.print(
            "\n[dim]Hint: Create a Batchfile in your project directory, "
            "or use --batchfile to specify a path.[/dim]"
        )
    elif isinstance(e, BatchfileEnvironmentNotFoundError):
        console.print(f"[red]Error:[/red] {e}")
        console.print(
            "\n[dim]Hint: Check the environment tables defined in your Batchfile.[/dim]"
        )
    elif isinstance(e, BatchfileInvalidError):
        console.print(f"[red]Error:[/red] {e}")
        console.print("\n[dim]Hint: Check your Batchfile for TOML syntax errors.[/dim]")
    elif isinstance(e, BatchfileError):
        console.print(f"[red]Batchfile Error:[/red] {e}")
    elif isinstance(e, CredentialError):
        console.print(f"[red]Credential Error:[/red] {e}")
        console.print(
            "\n[dim]Hint: Store the account key with "
            "'batchmdcs credentials store <account-name>'.[/dim]"
        )
    elif isinstance(e, ConfigurationError):
        console.print(f"[red]Configuration Error:[/red] {e}")
    elif isinstance(e, RendezvousError):
        console.print(f"[red]Pool Not Ready:[/red] {e}")
    elif isinstance(e, SubmissionError):
        console.print(e)
    elif isinstance(e, StagingError):
        console.print(f"[red]Staging Error:[/red] {e}")
    elif isinstance(e, BackendTimeout):
        console.print(f"[red]Connection Timeout:[/red] {e}")
        console.print(
            "\n[dim]Hint: Check network connectivity and the Batch account endpoint.[/dim]"
        )
    elif isinstance(e, BackendCommandError):
        console.print(f"[red]Command Error:[/red] {e}")
        console.print(
            "\n[dim]Hint: Verify the account keys and the resource names.[/dim]"
        )
    elif isinstance(e, BackendError):
        console.print(f"[red]Backend Error:[/red] {e}")
    else:
        console.print(f"[red]Error:[/red] {e}")

    sys.exit(1)


def main() -> None:
    """Entry point for the batchmdcs CLI."""
    configure_logging(logging.WARNING)
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        sys.exit(130)
    except SystemExit:
        raise
    except Exception as e:
        _handle_error(e)
