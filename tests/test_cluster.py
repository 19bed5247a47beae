"""Tests for the BatchCluster facade, run against the in-memory backends."""

import textwrap
from datetime import datetime

import pytest

from batchmdcs.cluster import BatchCluster
from batchmdcs.errors import ConfigurationError, CredentialError
from batchmdcs.api.memory import MemorySecretStore

ACCOUNT_ARGS = (
    "mybatch",
    "https://mybatch.westeurope.batch.azure.com",
    "mystorage",
    "https://mystorage.file.core.windows.net/mdcs",
    "\\\\mystorage.file.core.windows.net\\mdcs",
)


@pytest.fixture
def cluster(cluster_service, store, secret_store):
    cluster = BatchCluster(
        *ACCOUNT_ARGS,
        secret_store=secret_store,
        cluster_service=cluster_service,
        object_store=store,
    )
    cluster.submitter.clock = lambda: datetime(2016, 11, 3, 14, 5, 9)
    return cluster


def _submit(cluster, communicating=False, locations=("Job1/Task1", "Job1/Task2")):
    return cluster.submit_job(
        "pool1",
        "alice",
        "1",
        len(locations) if locations else 2,
        "token",
        "web-id",
        "40000",
        "Job1",
        communicating,
        list(locations) if locations else None,
        "C:\\MATLAB",
        "C:\\MATLAB\\bin\\worker.bat",
    )


@pytest.mark.parametrize("missing", range(5))
def test_empty_parameter_is_a_configuration_error(missing, secret_store):
    args = list(ACCOUNT_ARGS)
    args[missing] = ""
    with pytest.raises(ConfigurationError):
        BatchCluster(*args, secret_store=secret_store, backend_type="memory")


def test_missing_key_is_a_credential_error(cluster_service, store):
    with pytest.raises(CredentialError):
        BatchCluster(
            *ACCOUNT_ARGS,
            secret_store=MemorySecretStore({"mybatch": "batch-key"}),
            cluster_service=cluster_service,
            object_store=store,
        )


def test_share_url_gets_trailing_slash(cluster):
    assert cluster.share_url == "https://mystorage.file.core.windows.net/mdcs/"
    assert cluster.mount.account_key == "storage-key"


def test_store_credential(secret_store):
    BatchCluster.store_credential("newaccount", "secret", secret_store=secret_store)
    assert secret_store.get_secret("newaccount") == "secret"


def test_pool_operations_return_plain_data(cluster):
    cluster.create_pool("pool1", "STANDARD_D2_V2", 2, "true", 1)
    cluster.resize_pool("pool1", 4)

    pools = cluster.list_pools()

    assert pools == [
        {
            "id": "pool1",
            "vm_size": "STANDARD_D2_V2",
            "state": "active",
            "allocation_state": "steady",
            "current_dedicated_nodes": 0,
            "target_dedicated_nodes": 4,
        }
    ]
    assert cluster.cluster_service.pools["pool1"].inter_node_communication

    cluster.delete_pool("pool1")
    assert cluster.list_pools() == []


def test_job_lifecycle(cluster, cluster_service, store, local_job_root, tmp_path):
    cluster.stage_job_data("alice", str(local_job_root), "Job1")

    job_id = _submit(cluster)
    assert job_id == "alice-1-20161103-140509"
    assert cluster.poll_job_status(job_id) == ["running"]

    cluster_service.complete_task(job_id, "1", 0)
    cluster_service.complete_task(job_id, "2", 3)
    store.write_from_node("alice/Job1.out.mat", b"results")

    assert cluster.poll_job_status(job_id) == [
        "finished",
        "WARNING! The following tasks completed with a non-zero exit code: 2",
    ]
    assert cluster.poll_job_status(job_id) == ["finished"]

    output = tmp_path / "out"
    cluster.fetch_job_results("alice", str(output), "Job1")
    assert (output / "Job1.out.mat").read_bytes() == b"results"

    cluster.delete_job(job_id, "alice", "Job1")
    assert job_id not in cluster_service.jobs
    assert not any(path.startswith("alice/Job1") for path in store.files)
    assert "alice/matlab_metadata.mat" in store.files


def test_delete_active_job_does_not_wait(cluster, cluster_service, local_job_root):
    cluster.stage_job_data("alice", str(local_job_root), "Job1")
    job_id = _submit(cluster)

    cluster.delete_job(job_id, "alice", "Job1")

    assert cluster_service.jobs == {}


def test_communicating_flag_accepts_strings(cluster, cluster_service):
    cluster_service.add_node("pool1", "node-0", "10.0.0.1", "host-0")
    cluster_service.add_node("pool1", "node-1", "10.0.0.2", "host-1")

    job_id = _submit(cluster, communicating="True", locations=None)

    [task] = cluster_service.tasks[job_id].values()
    assert task.multi_instance.instances == 2


def test_invalid_boolean(cluster):
    with pytest.raises(ConfigurationError):
        _submit(cluster, communicating="maybe")


def test_wait_for_job(cluster, cluster_service):
    job_id = _submit(cluster)
    cluster_service.complete_task(job_id, "1", 0)
    cluster_service.complete_task(job_id, "2", 0)

    assert cluster.wait_for_job(job_id, poll_interval=0) == [
        "finished",
        "All tasks completed with an exit code of 0.",
    ]


def test_from_env_memory_backend(tmp_path, monkeypatch):
    (tmp_path / "Batchfile").write_text(
        textwrap.dedent(
            """
            [default.cluster]
            backend = "memory"
            batch_account_name = "mybatch"
            batch_service_url = "https://mybatch.westeurope.batch.azure.com"
            storage_account_name = "mystorage"
            share_url = "https://mystorage.file.core.windows.net/mdcs"
            share_path = '\\\\mystorage.file.core.windows.net\\mdcs'
            parallel_operations = 8
            """
        ),
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("BATCHFILE", raising=False)
    monkeypatch.delenv("BATCH_ENV", raising=False)

    cluster = BatchCluster.from_env()

    assert cluster.batch_account_name == "mybatch"
    assert cluster.parallel_operations == 8
    assert cluster.object_store.max_concurrency == 8
    assert cluster.list_pools() == []


def test_from_env_overrides(tmp_path, monkeypatch):
    batchfile = tmp_path / "Batchfile"
    batchfile.write_text(
        textwrap.dedent(
            """
            [default.cluster]
            backend = "memory"
            batch_account_name = "mybatch"
            batch_service_url = "https://mybatch.westeurope.batch.azure.com"
            storage_account_name = "mystorage"
            share_url = "https://mystorage.file.core.windows.net/mdcs"
            """
        ),
        encoding="utf-8",
    )

    cluster = BatchCluster.from_env(
        str(batchfile), overrides={"share_path": "\\\\other\\mdcs"}
    )

    assert cluster.mount.share_path == "\\\\other\\mdcs"
