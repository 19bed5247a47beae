import os
import sys

import pytest


# Ensure 'src' is on sys.path for package imports in tests
TESTS_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(TESTS_DIR, os.pardir))
SRC_DIR = os.path.join(PROJECT_ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)


from batchmdcs.api.memory import (  # noqa: E402
    MemoryClusterService,
    MemoryObjectStore,
    MemorySecretStore,
)
from batchmdcs.rendering import ShareMount  # noqa: E402


@pytest.fixture
def cluster_service():
    return MemoryClusterService()


@pytest.fixture
def store():
    return MemoryObjectStore(max_concurrency=4)


@pytest.fixture
def secret_store():
    return MemorySecretStore({"mybatch": "batch-key", "mystorage": "storage-key"})


@pytest.fixture
def mount():
    return ShareMount(
        share_path="\\\\mystorage.file.core.windows.net\\mdcs",
        account_name="mystorage",
        account_key="storage-key",
    )


@pytest.fixture
def local_job_root(tmp_path):
    """Local job storage for Job1 as MATLAB lays it out."""
    root = tmp_path / "local"
    root.mkdir()
    (root / "matlab_metadata.mat").write_bytes(b"metadata")
    (root / "Job1.in.mat").write_bytes(b"job1 input")
    (root / "Job1.common.mat").write_bytes(b"job1 common")
    (root / "Job10.in.mat").write_bytes(b"job10 input")
    job_dir = root / "Job1"
    job_dir.mkdir()
    (job_dir / "Task1.in.mat").write_bytes(b"task1")
    (job_dir / "Task2.in.mat").write_bytes(b"task2")
    return root
