"""Tests for building and submitting Batch jobs."""

from datetime import datetime

import pytest

from batchmdcs.errors import (
    BackendCommandError,
    ConfigurationError,
    RendezvousError,
    SubmissionError,
)
from batchmdcs.rendering import NODE_MATLAB_ROOT
from batchmdcs.rendezvous import HostsMapping
from batchmdcs.submission import (
    JobSubmitter,
    LicenseCredentials,
    MatlabCommand,
    make_batch_job_id,
)

LICENSE = LicenseCredentials(user_token="token", web_id="web-id", number="40000")
COMMAND = MatlabCommand(
    local_root="C:\\Program Files\\MATLAB\\R2016b",
    local_exe="C:\\Program Files\\MATLAB\\R2016b\\bin\\worker.bat",
    args="-parallel",
)
LOCATIONS = ["Job1/Task1", "Job1/Task2", "Job1/Task3", "Job1/Task4"]


def _fixed_clock():
    return datetime(2016, 11, 3, 14, 5, 9)


@pytest.fixture
def submitter(cluster_service, store, mount):
    return JobSubmitter(cluster_service, store, mount, clock=_fixed_clock)


def _submit(
    submitter, communicating=False, task_count=4, task_locations=LOCATIONS, **overrides
):
    arguments = dict(
        pool_id="pool1",
        user="alice",
        logical_job_id="1",
        task_count=task_count,
        licensing=LICENSE,
        job_data_directory="Job1",
        communicating=communicating,
        task_locations=task_locations,
        command=COMMAND,
    )
    arguments.update(overrides)
    return submitter.submit(**arguments)


def test_batch_job_id_format():
    assert make_batch_job_id("alice", "7", _fixed_clock()) == "alice-7-20161103-140509"


def test_node_command_uses_node_matlab_root():
    assert COMMAND.for_node() == NODE_MATLAB_ROOT + "\\bin\\worker.bat -parallel"


def test_independent_job_has_one_task_per_location(submitter, cluster_service):
    handle = _submit(submitter)

    assert handle.batch_job_id == "alice-1-20161103-140509"
    assert not handle.communicating
    tasks = cluster_service.tasks[handle.batch_job_id]
    assert list(tasks) == ["1", "2", "3", "4"]
    assert [t.environment["MDCE_TASK_LOCATION"] for t in tasks.values()] == LOCATIONS
    assert all(t.multi_instance is None for t in tasks.values())
    assert all("mountShareAndExecuteCommand.ps1" in t.command_line for t in tasks.values())


def test_independent_job_environment(submitter, cluster_service):
    handle = _submit(submitter)

    job = cluster_service.jobs[handle.batch_job_id]
    assert job.pool_id == "pool1"
    assert job.preparation_task is None
    env = job.environment
    assert env["MDCE_STORAGE_LOCATION"] == "M:\\alice"
    assert env["MDCE_JOB_LOCATION"] == "Job1"
    assert env["MLM_WEB_USER_CRED"] == "token"
    assert env["MLM_WEB_ID"] == "web-id"
    assert env["MDCE_LICENSE_NUMBER"] == "40000"
    assert env["MDCE_DECODE_FUNCTION"] == "parallel.cluster.generic.independentDecodeFcn"
    assert "MDCE_TOTAL_TASKS" not in env


def test_communicating_job_is_one_multi_instance_task(
    submitter, cluster_service, store
):
    for i in range(4):
        cluster_service.add_node("pool1", f"node-{i}", f"10.0.0.{i}", f"host-{i}")

    handle = _submit(submitter, communicating=True, task_locations=None)

    tasks = list(cluster_service.tasks[handle.batch_job_id].values())
    assert len(tasks) == 1
    task = tasks[0]
    assert task.id == "1"
    assert task.multi_instance.instances == 4
    coordination = task.multi_instance.coordination_command_line
    assert coordination
    assert coordination != task.command_line
    assert "smpd.exe -p 28350 -d" in coordination
    assert "mpiexec.exe -p 28350" in task.command_line

    job = cluster_service.jobs[handle.batch_job_id]
    assert job.environment["MDCE_TOTAL_TASKS"] == "4"
    assert job.environment["MDCE_CMR"] == NODE_MATLAB_ROOT
    assert job.preparation_task.id == "copyHostsFile"
    assert job.preparation_task.run_elevated
    assert job.preparation_task.wait_for_success
    assert "M:\\alice\\Job1\\hosts" in job.preparation_task.command_line

    assert store.files["alice/Job1/hosts"].decode().splitlines() == [
        "10.0.0.0 host-0",
        "10.0.0.1 host-1",
        "10.0.0.2 host-2",
        "10.0.0.3 host-3",
    ]


def test_communicating_job_needs_node_hostnames(submitter, cluster_service):
    cluster_service.add_node("pool1", "node-0", "10.0.0.0", "host-0")
    cluster_service.add_node("pool1", "node-1", "10.0.0.1")

    with pytest.raises(RendezvousError):
        _submit(submitter, communicating=True, task_locations=None)

    assert cluster_service.jobs == {}


@pytest.mark.parametrize(
    "kwargs",
    [
        {"task_count": 0},
        {"task_locations": LOCATIONS[:3]},
        {"task_locations": None},
    ],
)
def test_invalid_arguments_fail_before_any_call(submitter, cluster_service, kwargs):
    with pytest.raises(ConfigurationError):
        _submit(submitter, **kwargs)

    assert cluster_service.jobs == {}


def test_failed_task_add_deletes_job(submitter, cluster_service, monkeypatch):
    def fail(job_id, tasks):
        raise BackendCommandError("task add rejected")

    monkeypatch.setattr(cluster_service, "add_tasks", fail)

    with pytest.raises(SubmissionError) as exc_info:
        _submit(submitter)

    assert cluster_service.jobs == {}
    assert exc_info.value.metadata["job"] == "alice-1-20161103-140509"
    assert isinstance(exc_info.value.__cause__, BackendCommandError)


def test_duplicate_job_is_a_submission_error(submitter, cluster_service):
    _submit(submitter)

    with pytest.raises(SubmissionError):
        _submit(submitter)

    assert len(cluster_service.jobs) == 1


@pytest.mark.parametrize(
    "name", ["pool_id", "user", "logical_job_id", "job_data_directory"]
)
def test_empty_identifiers_fail_before_rendezvous(
    submitter, cluster_service, store, name
):
    cluster_service.add_node("pool1", "node-0", "10.0.0.0", "host-0")

    with pytest.raises(ConfigurationError, match=name):
        _submit(submitter, communicating=True, task_locations=None, **{name: "  "})

    assert cluster_service.jobs == {}
    assert store.files == {}


def test_rendezvous_uses_store_parallelism(submitter, cluster_service, monkeypatch):
    seen = {}

    def fake_build_hosts(service, pool_id, max_workers=None):
        seen["max_workers"] = max_workers
        return HostsMapping([("10.0.0.0", "host-0")])

    monkeypatch.setattr("batchmdcs.submission.build_hosts", fake_build_hosts)

    _submit(submitter, communicating=True, task_count=1, task_locations=None)

    assert seen["max_workers"] == 4
