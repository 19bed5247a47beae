"""Data subcommand for the batchmdcs CLI."""

from __future__ import annotations

from typing import Annotated

import cyclopts
from rich.console import Console

from .utils import BatchfileOption, EnvOption, get_cluster

data_app = cyclopts.App(
    name="data",
    help="Move MATLAB job data to and from the file share.",
)

console = Console(stderr=True)

UserArg = Annotated[str, cyclopts.Parameter(help="User who owns the job.")]
JobDataDirectoryArg = Annotated[
    str, cyclopts.Parameter(help="Job data directory name (e.g. Job1).")
]


@data_app.command(name="stage")
def stage(
    user: UserArg,
    local_root: Annotated[
        str, cyclopts.Parameter(help="Local job storage location.")
    ],
    job_data_directory: JobDataDirectoryArg,
    env: EnvOption = None,
    batchfile: BatchfileOption = None,
) -> None:
    """Copy a job's input data to the share."""
    cluster = get_cluster(env=env, batchfile=batchfile)
    cluster.stage_job_data(user, local_root, job_data_directory)
    console.print(f"[green]Staged {job_data_directory} for {user}.[/green]")


@data_app.command(name="fetch")
def fetch(
    user: UserArg,
    local_root: Annotated[
        str, cyclopts.Parameter(help="Local job storage location.")
    ],
    job_data_directory: JobDataDirectoryArg,
    env: EnvOption = None,
    batchfile: BatchfileOption = None,
) -> None:
    """Copy a job's results from the share, overwriting local files."""
    cluster = get_cluster(env=env, batchfile=batchfile)
    cluster.fetch_job_results(user, local_root, job_data_directory)
    console.print(f"[green]Fetched {job_data_directory} for {user}.[/green]")


@data_app.command(name="reclaim")
def reclaim(
    user: UserArg,
    job_data_directory: JobDataDirectoryArg,
    env: EnvOption = None,
    batchfile: BatchfileOption = None,
) -> None:
    """Delete a job's data from the share."""
    cluster = get_cluster(env=env, batchfile=batchfile)
    cluster.reclaim_job_data(user, job_data_directory)
    console.print(f"[green]Reclaimed {job_data_directory} for {user}.[/green]")
