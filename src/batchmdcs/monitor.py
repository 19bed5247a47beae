"""
Completion detection for submitted jobs.

Batch jobs stay active after all of their tasks complete, so the monitor
terminates a job itself once it sees every task completed. Each `poll` is a
bounded amount of work; polling cadence is up to the caller.

State machine::

    active --(all tasks completed: terminate job)--> finished
    active --(job completed/terminating)-----------> finished
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from .api.base import ClusterService
from .errors import ResourceConflictError
from .job import (
    ACTIVE,
    ALL_ZERO_EXIT,
    FINISHED,
    SOME_NONZERO_EXIT,
    JobStatusSnapshot,
)
from .models import JOB_FINISHED_STATES, TASK_COMPLETED

logger = logging.getLogger(__name__)


class CompletionMonitor:
    """Polls the cluster service for the state of a job."""

    def __init__(self, cluster_service: ClusterService) -> None:
        self.cluster_service = cluster_service

    def poll(self, batch_job_id: str) -> JobStatusSnapshot:
        """Inspect a job once.

        A job the service already reports as completed or terminating is
        finished and is not queried further. Otherwise its tasks are listed;
        when all of them have completed, the job is terminated and the
        snapshot carries the aggregate exit status.
        """
        job = self.cluster_service.get_job(batch_job_id)
        if job.state in JOB_FINISHED_STATES:
            logger.debug("Job %s is already %s", batch_job_id, job.state)
            return JobStatusSnapshot(state=FINISHED)

        failed_task_ids: List[str] = []
        total_tasks = 0
        completed_tasks = 0
        for task in self.cluster_service.list_tasks(batch_job_id):
            total_tasks += 1
            if task.state == TASK_COMPLETED:
                completed_tasks += 1
                if task.exit_code != 0:
                    failed_task_ids.append(task.id)

        if completed_tasks != total_tasks:
            logger.debug(
                "Job %s: %d of %d tasks completed",
                batch_job_id,
                completed_tasks,
                total_tasks,
            )
            return JobStatusSnapshot(state=ACTIVE)

        self._terminate(batch_job_id)

        if failed_task_ids:
            logger.warning(
                "Job %s finished; tasks with a non-zero exit code: %s",
                batch_job_id,
                ", ".join(failed_task_ids),
            )
            return JobStatusSnapshot(
                state=FINISHED,
                result=SOME_NONZERO_EXIT,
                failed_task_ids=failed_task_ids,
            )

        logger.info("Job %s finished, all %d tasks succeeded", batch_job_id, total_tasks)
        return JobStatusSnapshot(state=FINISHED, result=ALL_ZERO_EXIT)

    def wait(
        self,
        batch_job_id: str,
        poll_interval: float = 10.0,
        timeout: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> JobStatusSnapshot:
        """Poll until the job is finished.

        Args:
            batch_job_id: The id of the Batch job.
            poll_interval: Seconds between polls.
            timeout: Give up after this many seconds; None waits forever.
            sleep: Sleep function, replaceable in tests.

        Returns:
            JobStatusSnapshot: The last snapshot; still active on timeout.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            snapshot = self.poll(batch_job_id)
            if snapshot.is_finished:
                return snapshot
            if deadline is not None and time.monotonic() >= deadline:
                logger.warning("Timed out waiting for job %s", batch_job_id)
                return snapshot
            sleep(poll_interval)

    def _terminate(self, batch_job_id: str) -> None:
        try:
            self.cluster_service.terminate_job(batch_job_id)
            logger.debug("Terminated job %s", batch_job_id)
        except ResourceConflictError as e:
            # Another observer terminated the job first
            logger.debug("Job %s was already terminated: %s", batch_job_id, e)
