"""Tests for job completion detection."""

import pytest

from batchmdcs.job import (
    ACTIVE,
    ALL_ZERO_EXIT,
    FINISHED,
    SOME_NONZERO_EXIT,
    JobStatusSnapshot,
)
from batchmdcs.models import JobSpec, TaskSpec
from batchmdcs.monitor import CompletionMonitor

JOB_ID = "alice-1-20161103-140509"


@pytest.fixture
def job(cluster_service):
    cluster_service.create_job(JobSpec(id=JOB_ID, pool_id="pool1"))
    cluster_service.add_tasks(
        JOB_ID, [TaskSpec(id=str(i), command_line="cmd") for i in (1, 2, 3)]
    )
    return JOB_ID


def test_all_zero_exit_terminates_once(cluster_service, job):
    for task_id in ("1", "2", "3"):
        cluster_service.complete_task(job, task_id, 0)
    monitor = CompletionMonitor(cluster_service)

    snapshots = [monitor.poll(job) for _ in range(3)]

    assert snapshots[0].state == FINISHED
    assert snapshots[0].result == ALL_ZERO_EXIT
    assert all(s.is_finished for s in snapshots)
    assert cluster_service.terminate_calls == [job]


def test_incomplete_job_is_active_without_terminate(cluster_service, job):
    cluster_service.complete_task(job, "1", 0)
    cluster_service.complete_task(job, "2", 0)
    monitor = CompletionMonitor(cluster_service)

    snapshot = monitor.poll(job)
    monitor.poll(job)

    assert snapshot.state == ACTIVE
    assert snapshot.result is None
    assert snapshot.to_strings() == ["running"]
    assert cluster_service.terminate_calls == []


def test_nonzero_exit_codes_are_reported(cluster_service, job):
    cluster_service.complete_task(job, "1", 0)
    cluster_service.complete_task(job, "2", 1)
    cluster_service.complete_task(job, "3", 0)

    snapshot = CompletionMonitor(cluster_service).poll(job)

    assert snapshot.state == FINISHED
    assert snapshot.result == SOME_NONZERO_EXIT
    assert snapshot.failed_task_ids == ["2"]
    assert snapshot.to_strings() == [
        "finished",
        "WARNING! The following tasks completed with a non-zero exit code: 2",
    ]


def test_missing_exit_code_counts_as_failure(cluster_service, job):
    cluster_service.complete_task(job, "1", 0)
    cluster_service.complete_task(job, "2", 0)
    cluster_service.task_results[(job, "3")] = ("completed", None)

    snapshot = CompletionMonitor(cluster_service).poll(job)

    assert snapshot.failed_task_ids == ["3"]


def test_already_finished_job_is_not_inspected(cluster_service, job, monkeypatch):
    cluster_service.job_states[job] = "terminating"

    def fail(job_id):
        raise AssertionError("tasks must not be listed")

    monkeypatch.setattr(cluster_service, "list_tasks", fail)

    snapshot = CompletionMonitor(cluster_service).poll(job)

    assert snapshot.to_strings() == ["finished"]
    assert cluster_service.terminate_calls == []


def test_concurrent_terminate_is_tolerated(cluster_service, job, monkeypatch):
    for task_id in ("1", "2", "3"):
        cluster_service.complete_task(job, task_id, 0)
    # Another observer finishes the job between our get_job and terminate_job
    original_get_job = cluster_service.get_job

    def get_job_then_finish(job_id):
        info = original_get_job(job_id)
        cluster_service.job_states[job_id] = "completed"
        return info

    monkeypatch.setattr(cluster_service, "get_job", get_job_then_finish)

    snapshot = CompletionMonitor(cluster_service).poll(job)

    assert snapshot.result == ALL_ZERO_EXIT
    assert cluster_service.terminate_calls == [job]


def test_wait_polls_until_finished(cluster_service, job):
    sleeps = []

    def sleep(seconds):
        sleeps.append(seconds)
        cluster_service.complete_task(job, str(len(sleeps)), 0)

    snapshot = CompletionMonitor(cluster_service).wait(
        job, poll_interval=5.0, sleep=sleep
    )

    assert snapshot.result == ALL_ZERO_EXIT
    assert sleeps == [5.0, 5.0, 5.0]


def test_wait_returns_active_snapshot_on_timeout(cluster_service, job):
    snapshot = CompletionMonitor(cluster_service).wait(
        job, poll_interval=0.0, timeout=0.0, sleep=lambda s: None
    )
    assert snapshot.state == ACTIVE


def test_all_zero_message():
    snapshot = JobStatusSnapshot(state=FINISHED, result=ALL_ZERO_EXIT)
    assert snapshot.to_strings() == [
        "finished",
        "All tasks completed with an exit code of 0.",
    ]
