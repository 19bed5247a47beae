"""Handles and status snapshots for submitted MATLAB jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

# States reported to MATLAB
ACTIVE = "active"
FINISHED = "finished"

# Aggregate task results of a finished job
ALL_ZERO_EXIT = "all-zero-exit"
SOME_NONZERO_EXIT = "some-nonzero-exit"

# Plain-data state names understood by the MATLAB cluster integration
MATLAB_RUNNING_STATE = "running"
MATLAB_FINISHED_STATE = "finished"


@dataclass(frozen=True)
class JobHandle:
    """A job created in the Batch service.

    Attributes:
        batch_job_id: The id the job was created with in the Batch service.
        user: The user who initiated the MATLAB job.
        logical_job_id: The MATLAB job id.
        communicating: Whether the job runs as one MPI task group.
        task_count: Number of MATLAB tasks (or MPI instances).
    """

    batch_job_id: str
    user: str
    logical_job_id: str
    communicating: bool
    task_count: int

    def __str__(self) -> str:
        return self.batch_job_id


@dataclass(frozen=True)
class JobStatusSnapshot:
    """Result of one status poll.

    ``result`` and ``failed_task_ids`` are only set when the poll observed the
    transition to finished; a job that was already terminated reports
    ``finished`` without them.
    """

    state: str
    result: Optional[str] = None
    failed_task_ids: List[str] = field(default_factory=list)

    @property
    def is_finished(self) -> bool:
        return self.state == FINISHED

    @property
    def message(self) -> Optional[str]:
        if self.result == ALL_ZERO_EXIT:
            return "All tasks completed with an exit code of 0."
        if self.result == SOME_NONZERO_EXIT:
            return (
                "WARNING! The following tasks completed with a non-zero exit code: "
                + ", ".join(self.failed_task_ids)
            )
        return None

    def to_strings(self) -> List[str]:
        """Render as ``[state]`` or ``[state, message]`` for MATLAB."""
        if not self.is_finished:
            return [MATLAB_RUNNING_STATE]
        message = self.message
        if message is None:
            return [MATLAB_FINISHED_STATE]
        return [MATLAB_FINISHED_STATE, message]
