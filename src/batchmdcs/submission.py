"""
Creation of Batch jobs for MATLAB independent and communicating jobs.

An independent job becomes one Batch task per MATLAB task. A communicating
job becomes a single multi-instance Batch task spanning one node per MATLAB
worker; its coordination command starts the MPI daemon on each node and the
primary instance launches MATLAB through ``mpiexec``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from .api.base import ClusterService, ObjectStore
from .errors import BackendError, ConfigurationError, SubmissionError
from .job import JobHandle
from .models import JobSpec, MultiInstanceSpec, PreparationTaskSpec, TaskSpec
from .rendering import (
    NODE_MATLAB_ROOT,
    ShareMount,
    copy_hosts_command,
    mount_and_execute,
    mpi_task_command,
    node_matlab_executable,
    smpd_coordination_command,
    user_share_directory,
)
from .rendezvous import build_hosts, publish_hosts
from .staging import require_non_empty

logger = logging.getLogger(__name__)

COMMUNICATING_DECODE_FUNCTION = "parallel.cluster.generic.communicatingDecodeFcn"
INDEPENDENT_DECODE_FUNCTION = "parallel.cluster.generic.independentDecodeFcn"
PREPARATION_TASK_ID = "copyHostsFile"
COORDINATOR_TASK_ID = "1"


@dataclass(frozen=True)
class LicenseCredentials:
    """MATLAB online licensing details passed to every worker."""

    user_token: str
    web_id: str
    number: str

    def __repr__(self) -> str:
        return f"LicenseCredentials(user_token=***, web_id={self.web_id!r}, number={self.number!r})"


@dataclass(frozen=True)
class MatlabCommand:
    """How the client runs a MATLAB worker.

    Attributes:
        local_root: The MATLAB root on the client machine.
        local_exe: The MATLAB executable on the client machine.
        args: Arguments passed to the executable.
    """

    local_root: str
    local_exe: str
    args: str = ""

    def for_node(self) -> str:
        exe = node_matlab_executable(self.local_exe, self.local_root)
        return f"{exe} {self.args}".rstrip()


def make_batch_job_id(user: str, logical_job_id: str, now: datetime) -> str:
    """Combine user, MATLAB job id and submission time into a Batch job id."""
    return f"{user}-{logical_job_id}-{now:%Y%m%d-%H%M%S}"


class JobSubmitter:
    """Builds and submits Batch jobs."""

    def __init__(
        self,
        cluster_service: ClusterService,
        store: ObjectStore,
        mount: ShareMount,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.cluster_service = cluster_service
        self.store = store
        self.mount = mount
        self.clock = clock

    def build_environment(
        self,
        user: str,
        job_data_directory: str,
        licensing: LicenseCredentials,
        communicating: bool,
        task_count: int,
    ) -> Dict[str, str]:
        """Environment variables MATLAB expects on every worker."""
        env = {
            "MDCE_STORAGE_LOCATION": user_share_directory(user),
            "MDCE_JOB_LOCATION": job_data_directory,
            "MLM_WEB_USER_CRED": licensing.user_token,
            "MLM_WEB_ID": licensing.web_id,
            "MDCE_LICENSE_NUMBER": licensing.number,
            "MDCE_STORAGE_CONSTRUCTOR": "makeFileStorageObject",
            "MLM_WEB_LICENSE": "true",
            "MDCE_DEBUG": "true",
        }
        if communicating:
            env["MDCE_DECODE_FUNCTION"] = COMMUNICATING_DECODE_FUNCTION
            env["MDCE_TOTAL_TASKS"] = str(task_count)
            env["MDCE_CMR"] = NODE_MATLAB_ROOT
        else:
            env["MDCE_DECODE_FUNCTION"] = INDEPENDENT_DECODE_FUNCTION
        return env

    def build_preparation_task(
        self, user: str, job_data_directory: str
    ) -> PreparationTaskSpec:
        return PreparationTaskSpec(
            id=PREPARATION_TASK_ID,
            command_line=mount_and_execute(
                self.mount, copy_hosts_command(user, job_data_directory)
            ),
            run_elevated=True,
            wait_for_success=True,
        )

    def build_tasks(
        self,
        task_count: int,
        communicating: bool,
        task_locations: Sequence[str],
        command: MatlabCommand,
    ) -> List[TaskSpec]:
        node_command = command.for_node()

        if communicating:
            return [
                TaskSpec(
                    id=COORDINATOR_TASK_ID,
                    command_line=mpi_task_command(node_command),
                    multi_instance=MultiInstanceSpec(
                        instances=task_count,
                        coordination_command_line=smpd_coordination_command(self.mount),
                    ),
                )
            ]

        task_command = mount_and_execute(self.mount, node_command)
        return [
            TaskSpec(
                id=str(t),
                command_line=task_command,
                environment={"MDCE_TASK_LOCATION": task_locations[t - 1]},
            )
            for t in range(1, task_count + 1)
        ]

    def submit(
        self,
        pool_id: str,
        user: str,
        logical_job_id: str,
        task_count: int,
        licensing: LicenseCredentials,
        job_data_directory: str,
        communicating: bool,
        task_locations: Optional[Sequence[str]],
        command: MatlabCommand,
    ) -> JobHandle:
        """Create the Batch job and its tasks.

        For communicating jobs the hosts file is published before the job is
        created, so a missing node hostname fails the call without leaving a
        job behind. If adding tasks fails, the freshly created job is deleted.

        Raises:
            ConfigurationError: On invalid arguments, before any service call.
            RendezvousError: If a pool node has not finished its start task.
            SubmissionError: If the job or its tasks could not be created.
        """
        task_locations = list(task_locations or [])
        require_non_empty(pool_id, "pool_id")
        require_non_empty(user, "user")
        require_non_empty(logical_job_id, "logical_job_id")
        require_non_empty(job_data_directory, "job_data_directory")
        if task_count < 1:
            raise ConfigurationError(f"task_count must be at least 1, got {task_count}")
        if not communicating and len(task_locations) < task_count:
            raise ConfigurationError(
                f"Expected {task_count} task locations, got {len(task_locations)}"
            )

        batch_job_id = make_batch_job_id(user, logical_job_id, self.clock())
        metadata = {
            "pool": pool_id,
            "job": batch_job_id,
            "tasks": task_count,
            "communicating": communicating,
        }

        spec = JobSpec(
            id=batch_job_id,
            pool_id=pool_id,
            environment=self.build_environment(
                user, job_data_directory, licensing, communicating, task_count
            ),
        )

        if communicating:
            mapping = build_hosts(
                self.cluster_service, pool_id, self.store.max_concurrency
            )
            publish_hosts(self.store, user, job_data_directory, mapping)
            spec.preparation_task = self.build_preparation_task(user, job_data_directory)

        tasks = self.build_tasks(task_count, communicating, task_locations, command)

        try:
            self.cluster_service.create_job(spec)
        except BackendError as e:
            raise SubmissionError(
                f"Failed to create job {batch_job_id}: {e}", metadata=metadata
            ) from e
        logger.debug("Created job %s on pool %s", batch_job_id, pool_id)

        try:
            self.cluster_service.add_tasks(batch_job_id, tasks)
        except BackendError as e:
            self._rollback(batch_job_id)
            raise SubmissionError(
                f"Failed to add tasks to job {batch_job_id}: {e}", metadata=metadata
            ) from e

        logger.info(
            "Submitted %s job %s with %d %s",
            "communicating" if communicating else "independent",
            batch_job_id,
            task_count,
            "instances" if communicating else "tasks",
        )
        return JobHandle(
            batch_job_id=batch_job_id,
            user=user,
            logical_job_id=logical_job_id,
            communicating=communicating,
            task_count=task_count,
        )

    def _rollback(self, batch_job_id: str) -> None:
        try:
            self.cluster_service.delete_job(batch_job_id)
            logger.warning("Deleted job %s after task submission failed", batch_job_id)
        except BackendError as e:
            logger.warning(
                "Failed to delete job %s after task submission failed: %s",
                batch_job_id,
                e,
            )
