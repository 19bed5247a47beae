"""Jobs subcommand for the batchmdcs CLI."""

from __future__ import annotations

from typing import Annotated, List, Optional

import cyclopts
from rich.console import Console

from .formatters import print_job_status
from .utils import BatchfileOption, EnvOption, get_cluster

jobs_app = cyclopts.App(
    name="jobs",
    help="Submit and track MATLAB jobs.",
)

console = Console(stderr=True)

JobIdArg = Annotated[str, cyclopts.Parameter(help="Batch job id returned by submit.")]


@jobs_app.command(name="submit")
def submit_job(
    pool_id: Annotated[str, cyclopts.Parameter(help="Pool to run the job on.")],
    user: Annotated[str, cyclopts.Parameter(help="User who initiated the job.")],
    job_id: Annotated[str, cyclopts.Parameter(help="MATLAB job id.")],
    task_count: Annotated[
        int, cyclopts.Parameter(help="Number of tasks (workers for communicating jobs).")
    ],
    job_data_directory: Annotated[
        str, cyclopts.Parameter(help="Job data directory name (e.g. Job1).")
    ],
    matlab_root: Annotated[
        str,
        cyclopts.Parameter(
            name=["--matlab-root"],
            help="MATLAB root on this machine.",
        ),
    ],
    matlab_exe: Annotated[
        str,
        cyclopts.Parameter(
            name=["--matlab-exe"],
            help="MATLAB executable on this machine.",
        ),
    ],
    matlab_args: Annotated[
        str,
        cyclopts.Parameter(
            name=["--matlab-args"],
            help="Arguments for the MATLAB executable.",
        ),
    ] = "",
    communicating: Annotated[
        bool,
        cyclopts.Parameter(
            name=["--communicating", "-c"],
            help="Run as a communicating (MPI) job.",
        ),
    ] = False,
    task_locations: Annotated[
        Optional[List[str]],
        cyclopts.Parameter(
            name=["--task-location", "-l"],
            help="Data location of each task, in order (independent jobs).",
        ),
    ] = None,
    license_user_token: Annotated[
        str,
        cyclopts.Parameter(
            name=["--license-user-token"],
            env_var="MLM_WEB_USER_CRED",
            help="MATLAB online licensing user token.",
        ),
    ] = "",
    license_web_id: Annotated[
        str,
        cyclopts.Parameter(
            name=["--license-web-id"],
            env_var="MLM_WEB_ID",
            help="MATLAB online licensing web id.",
        ),
    ] = "",
    license_number: Annotated[
        str,
        cyclopts.Parameter(
            name=["--license-number"],
            env_var="MDCE_LICENSE_NUMBER",
            help="MATLAB license number.",
        ),
    ] = "",
    env: EnvOption = None,
    batchfile: BatchfileOption = None,
) -> None:
    """Submit a MATLAB job whose data has already been staged.

    Prints the Batch job id on stdout.
    """
    cluster = get_cluster(env=env, batchfile=batchfile)
    batch_job_id = cluster.submit_job(
        pool_id,
        user,
        job_id,
        task_count,
        license_user_token,
        license_web_id,
        license_number,
        job_data_directory,
        communicating,
        task_locations,
        matlab_root,
        matlab_exe,
        matlab_args,
    )
    print(batch_job_id)


@jobs_app.command(name="status")
def job_status(
    batch_job_id: JobIdArg,
    env: EnvOption = None,
    batchfile: BatchfileOption = None,
) -> None:
    """Poll a job once, terminating it if all of its tasks completed."""
    cluster = get_cluster(env=env, batchfile=batchfile)
    print_job_status(batch_job_id, cluster.poll_job_status(batch_job_id))


@jobs_app.command(name="wait")
def wait_job(
    batch_job_id: JobIdArg,
    poll_interval: Annotated[
        float,
        cyclopts.Parameter(
            name=["--poll-interval", "-i"],
            help="Seconds between polls.",
        ),
    ] = 10.0,
    timeout: Annotated[
        Optional[float],
        cyclopts.Parameter(
            name=["--timeout", "-t"],
            help="Give up after this many seconds.",
        ),
    ] = None,
    env: EnvOption = None,
    batchfile: BatchfileOption = None,
) -> None:
    """Poll a job until it is finished."""
    cluster = get_cluster(env=env, batchfile=batchfile)
    with console.status(f"Waiting for job {batch_job_id}..."):
        status = cluster.wait_for_job(
            batch_job_id, poll_interval=poll_interval, timeout=timeout
        )
    print_job_status(batch_job_id, status)


@jobs_app.command(name="delete")
def delete_job(
    batch_job_id: JobIdArg,
    user: Annotated[str, cyclopts.Parameter(help="User who owns the job.")],
    job_data_directory: Annotated[
        str, cyclopts.Parameter(help="Job data directory name (e.g. Job1).")
    ],
    env: EnvOption = None,
    batchfile: BatchfileOption = None,
) -> None:
    """Delete a job and its data on the share."""
    cluster = get_cluster(env=env, batchfile=batchfile)
    cluster.delete_job(batch_job_id, user, job_data_directory)
    console.print(f"[green]Deleted job {batch_job_id}.[/green]")
