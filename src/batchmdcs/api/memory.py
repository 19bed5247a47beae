"""
In-memory backends for batchmdcs.

These backends keep pools, jobs, tasks, node files and share contents in
process memory. They are used by the test suite and by the ``memory``
backend type for dry runs; they implement the same error contract as the
Azure adapters (missing resources raise `ResourceNotFoundError`, state
conflicts raise `ResourceConflictError`).
"""

import hashlib
import logging
import os
import posixpath
import threading
from typing import Callable, Dict, List, Optional, Set, Tuple

from .base import ClusterService, ObjectStore, SecretStore
from ..errors import (
    BackendCommandError,
    CredentialError,
    ResourceConflictError,
    ResourceNotFoundError,
)
from ..models import (
    JOB_ACTIVE,
    JOB_COMPLETED,
    JOB_FINISHED_STATES,
    TASK_ACTIVE,
    TASK_COMPLETED,
    JobInfo,
    JobSpec,
    NodeInfo,
    PoolInfo,
    PoolSpec,
    StoreEntry,
    TaskInfo,
    TaskSpec,
)

logger = logging.getLogger(__name__)


class MemoryClusterService(ClusterService):
    """
    Cluster service backed by dictionaries.

    Tasks stay active until `complete_task` is called. Nodes are registered
    with `add_node`; passing a hostname records the ``shared/hostname.txt``
    file the pool start task would normally write.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.pools: Dict[str, PoolSpec] = {}
        self.jobs: Dict[str, JobSpec] = {}
        self.job_states: Dict[str, str] = {}
        self.tasks: Dict[str, Dict[str, TaskSpec]] = {}
        self.task_results: Dict[Tuple[str, str], Tuple[str, Optional[int]]] = {}
        self.nodes: Dict[str, List[NodeInfo]] = {}
        self.node_files: Dict[Tuple[str, str, str], str] = {}
        self.terminate_calls: List[str] = []

    # Test helpers

    def add_node(
        self,
        pool_id: str,
        node_id: str,
        ip_address: str,
        hostname: Optional[str] = None,
    ) -> None:
        with self._lock:
            self.nodes.setdefault(pool_id, []).append(NodeInfo(node_id, ip_address))
            if hostname is not None:
                self.node_files[(pool_id, node_id, "shared/hostname.txt")] = hostname

    def complete_task(self, job_id: str, task_id: str, exit_code: int = 0) -> None:
        with self._lock:
            if task_id not in self.tasks.get(job_id, {}):
                raise ResourceNotFoundError(f"Task {task_id} not found in job {job_id}")
            self.task_results[(job_id, task_id)] = (TASK_COMPLETED, exit_code)

    # ClusterService

    def create_pool(self, spec: PoolSpec) -> None:
        with self._lock:
            if spec.id in self.pools:
                raise ResourceConflictError(f"Pool {spec.id} already exists")
            self.pools[spec.id] = spec
            self.nodes.setdefault(spec.id, [])
        logger.debug("Created in-memory pool %s", spec.id)

    def resize_pool(self, pool_id: str, target_dedicated_nodes: int) -> None:
        with self._lock:
            pool = self._get_pool(pool_id)
            pool.target_dedicated_nodes = target_dedicated_nodes

    def delete_pool(self, pool_id: str) -> None:
        with self._lock:
            self._get_pool(pool_id)
            del self.pools[pool_id]
            self.nodes.pop(pool_id, None)

    def list_pools(self) -> List[PoolInfo]:
        with self._lock:
            return [
                PoolInfo(
                    id=spec.id,
                    vm_size=spec.vm_size,
                    state="active",
                    allocation_state="steady",
                    current_dedicated_nodes=len(self.nodes.get(spec.id, [])),
                    target_dedicated_nodes=spec.target_dedicated_nodes,
                )
                for spec in self.pools.values()
            ]

    def create_job(self, spec: JobSpec) -> None:
        with self._lock:
            if spec.id in self.jobs:
                raise ResourceConflictError(f"Job {spec.id} already exists")
            self.jobs[spec.id] = spec
            self.job_states[spec.id] = JOB_ACTIVE
            self.tasks[spec.id] = {}
        logger.debug("Created in-memory job %s on pool %s", spec.id, spec.pool_id)

    def add_tasks(self, job_id: str, tasks: List[TaskSpec]) -> None:
        with self._lock:
            self._get_job(job_id)
            existing = self.tasks[job_id]
            for task in tasks:
                if task.id in existing:
                    raise ResourceConflictError(
                        f"Task {task.id} already exists in job {job_id}"
                    )
            for task in tasks:
                existing[task.id] = task
                self.task_results[(job_id, task.id)] = (TASK_ACTIVE, None)

    def get_job(self, job_id: str) -> JobInfo:
        with self._lock:
            self._get_job(job_id)
            return JobInfo(id=job_id, state=self.job_states[job_id])

    def list_tasks(self, job_id: str) -> List[TaskInfo]:
        with self._lock:
            self._get_job(job_id)
            result = []
            for task_id in self.tasks[job_id]:
                state, exit_code = self.task_results[(job_id, task_id)]
                result.append(TaskInfo(id=task_id, state=state, exit_code=exit_code))
            return result

    def terminate_job(self, job_id: str) -> None:
        with self._lock:
            self._get_job(job_id)
            self.terminate_calls.append(job_id)
            if self.job_states[job_id] in JOB_FINISHED_STATES:
                raise ResourceConflictError(f"Job {job_id} is already completed")
            self.job_states[job_id] = JOB_COMPLETED

    def delete_job(self, job_id: str) -> None:
        with self._lock:
            self._get_job(job_id)
            del self.jobs[job_id]
            del self.job_states[job_id]
            for task_id in self.tasks.pop(job_id, {}):
                self.task_results.pop((job_id, task_id), None)

    def list_nodes(self, pool_id: str) -> List[NodeInfo]:
        with self._lock:
            return list(self.nodes.get(pool_id, []))

    def read_node_file(self, pool_id: str, node_id: str, file_path: str) -> str:
        with self._lock:
            try:
                return self.node_files[(pool_id, node_id, file_path)]
            except KeyError:
                raise ResourceNotFoundError(
                    f"File {file_path} not found on node {node_id}"
                ) from None

    def _get_pool(self, pool_id: str) -> PoolSpec:
        try:
            return self.pools[pool_id]
        except KeyError:
            raise ResourceNotFoundError(f"Pool {pool_id} not found") from None

    def _get_job(self, job_id: str) -> JobSpec:
        try:
            return self.jobs[job_id]
        except KeyError:
            raise ResourceNotFoundError(f"Job {job_id} not found") from None


def _normalize(path: str) -> str:
    path = path.replace("\\", "/").strip("/")
    if not path:
        return ""
    return posixpath.normpath(path)


class MemoryObjectStore(ObjectStore):
    """
    File share backed by a dictionary of paths.

    Uploads record an MD5 hash of the content. `write_from_node` changes a
    file without refreshing the hash, as compute nodes do on the real share,
    so a download with ``validate_content=True`` of such a file fails.
    """

    def __init__(self, max_concurrency: Optional[int] = None) -> None:
        super().__init__(max_concurrency)
        self._lock = threading.Lock()
        self.share_created = False
        self.files: Dict[str, bytes] = {}
        self.content_md5: Dict[str, bytes] = {}
        self.directories: Set[str] = {""}

    def write_from_node(self, path: str, data: bytes) -> None:
        path = _normalize(path)
        with self._lock:
            self._require_parent(path)
            self.files[path] = data

    def ensure_share(self) -> None:
        self.share_created = True

    def directory_exists(self, path: str) -> bool:
        with self._lock:
            return _normalize(path) in self.directories

    def create_directory(self, path: str) -> None:
        path = _normalize(path)
        with self._lock:
            if path in self.directories:
                return
            self._require_parent(path)
            self.directories.add(path)

    def list_directory(self, path: str) -> List[StoreEntry]:
        path = _normalize(path)
        with self._lock:
            if path not in self.directories:
                raise ResourceNotFoundError(f"Directory {path!r} not found")
            entries = [
                StoreEntry(posixpath.basename(d), True)
                for d in sorted(self.directories)
                if d and posixpath.dirname(d) == path
            ]
            entries.extend(
                StoreEntry(posixpath.basename(f), False)
                for f in sorted(self.files)
                if posixpath.dirname(f) == path
            )
            return entries

    def delete_file(self, path: str) -> None:
        path = _normalize(path)
        with self._lock:
            if path not in self.files:
                raise ResourceNotFoundError(f"File {path!r} not found")
            del self.files[path]
            self.content_md5.pop(path, None)

    def delete_directory(self, path: str) -> None:
        path = _normalize(path)
        with self._lock:
            if path not in self.directories or not path:
                raise ResourceNotFoundError(f"Directory {path!r} not found")
            prefix = path + "/"
            if any(p.startswith(prefix) for p in self.files) or any(
                d.startswith(prefix) for d in self.directories
            ):
                raise ResourceConflictError(f"Directory {path!r} is not empty")
            self.directories.discard(path)

    def upload_file(self, local_path: str, remote_path: str) -> None:
        with self.transfer_slot():
            with open(local_path, "rb") as handle:
                data = handle.read()
            self._put(remote_path, data)

    def upload_text(self, content: str, remote_path: str) -> None:
        with self.transfer_slot():
            self._put(remote_path, content.encode("utf-8"))

    def upload_directory(
        self,
        local_dir: str,
        remote_dir: str,
        include: Optional[Callable[[str], bool]] = None,
        recursive: bool = True,
    ) -> None:
        if not os.path.isdir(local_dir):
            raise FileNotFoundError(f"Local directory not found: {local_dir}")
        remote_dir = _normalize(remote_dir)
        self.create_directory(remote_dir)
        for root, dirs, files in os.walk(local_dir):
            rel = os.path.relpath(root, local_dir)
            remote_root = remote_dir if rel == "." else posixpath.join(
                remote_dir, rel.replace(os.sep, "/")
            )
            self.create_directory(remote_root)
            for name in sorted(files):
                if include is not None and not include(name):
                    continue
                self.upload_file(
                    os.path.join(root, name), posixpath.join(remote_root, name)
                )
            if not recursive:
                break

    def download_file(
        self, remote_path: str, local_path: str, validate_content: bool = False
    ) -> None:
        path = _normalize(remote_path)
        with self.transfer_slot():
            with self._lock:
                if path not in self.files:
                    raise ResourceNotFoundError(f"File {path!r} not found")
                data = self.files[path]
                stored_md5 = self.content_md5.get(path)
            if validate_content and stored_md5 != hashlib.md5(data).digest():
                raise BackendCommandError(f"Content MD5 mismatch for {path!r}")
            local_dir = os.path.dirname(local_path)
            if local_dir:
                os.makedirs(local_dir, exist_ok=True)
            with open(local_path, "wb") as handle:
                handle.write(data)

    def download_directory(
        self, remote_dir: str, local_dir: str, recursive: bool = True
    ) -> None:
        remote_dir = _normalize(remote_dir)
        os.makedirs(local_dir, exist_ok=True)
        for entry in self.list_directory(remote_dir):
            remote_path = posixpath.join(remote_dir, entry.name)
            local_path = os.path.join(local_dir, entry.name)
            if entry.is_directory:
                if recursive:
                    self.download_directory(remote_path, local_path, recursive)
            else:
                self.download_file(remote_path, local_path, validate_content=False)

    def _put(self, remote_path: str, data: bytes) -> None:
        path = _normalize(remote_path)
        with self._lock:
            self._require_parent(path)
            self.files[path] = data
            self.content_md5[path] = hashlib.md5(data).digest()

    def _require_parent(self, path: str) -> None:
        parent = posixpath.dirname(path)
        if parent not in self.directories:
            raise ResourceNotFoundError(f"Parent directory {parent!r} not found")


class MemorySecretStore(SecretStore):
    """Secret store backed by a dictionary."""

    def __init__(self, secrets: Optional[Dict[str, str]] = None) -> None:
        self.secrets: Dict[str, str] = dict(secrets or {})

    def get_secret(self, target: str) -> str:
        try:
            return self.secrets[target]
        except KeyError:
            raise CredentialError(
                f"Failed to retrieve credential for {target}."
            ) from None

    def put_secret(self, target: str, secret: str) -> None:
        self.secrets[target] = secret
