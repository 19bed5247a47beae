"""
Base module for batchmdcs service backends.

This module defines the abstract interfaces the orchestration code talks to:
the Batch control plane (`ClusterService`), the job data file share
(`ObjectStore`), and local credential storage (`SecretStore`).
"""

import abc
import os
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

from ..models import (
    JobInfo,
    JobSpec,
    NodeInfo,
    PoolInfo,
    PoolSpec,
    StoreEntry,
    TaskInfo,
    TaskSpec,
)


def default_parallel_operations() -> int:
    """Default transfer concurrency: eight operations per local CPU."""
    return (os.cpu_count() or 1) * 8


class ClusterService(abc.ABC):
    """
    Abstract base class for compute cluster control planes.

    Implementations raise `ResourceNotFoundError` for missing pools, jobs and
    node files, and `ResourceConflictError` when a request conflicts with the
    current state of a resource.
    """

    @abc.abstractmethod
    def create_pool(self, spec: PoolSpec) -> None:
        """
        Create a pool of compute nodes.

        Args:
            spec: The pool definition, including its start task.
        """
        pass

    @abc.abstractmethod
    def resize_pool(self, pool_id: str, target_dedicated_nodes: int) -> None:
        pass

    @abc.abstractmethod
    def delete_pool(self, pool_id: str) -> None:
        pass

    @abc.abstractmethod
    def list_pools(self) -> List[PoolInfo]:
        pass

    @abc.abstractmethod
    def create_job(self, spec: JobSpec) -> None:
        """
        Create a job bound to a pool.

        The job must exist before tasks can be added to it.

        Args:
            spec: The job definition, including its common environment and
                optional preparation task.
        """
        pass

    @abc.abstractmethod
    def add_tasks(self, job_id: str, tasks: List[TaskSpec]) -> None:
        """
        Add one or more tasks to an existing job.

        Args:
            job_id: The id of the job.
            tasks: The tasks to add.
        """
        pass

    @abc.abstractmethod
    def get_job(self, job_id: str) -> JobInfo:
        pass

    @abc.abstractmethod
    def list_tasks(self, job_id: str) -> List[TaskInfo]:
        """
        List every task of a job with its state and exit code.

        Args:
            job_id: The id of the job.

        Returns:
            List[TaskInfo]: One entry per task; ``exit_code`` is None until the
            task has completed.
        """
        pass

    @abc.abstractmethod
    def terminate_job(self, job_id: str) -> None:
        pass

    @abc.abstractmethod
    def delete_job(self, job_id: str) -> None:
        """
        Delete a job. Safe to call against an active job; does not wait for
        its tasks to finish.
        """
        pass

    @abc.abstractmethod
    def list_nodes(self, pool_id: str) -> List[NodeInfo]:
        pass

    @abc.abstractmethod
    def read_node_file(self, pool_id: str, node_id: str, file_path: str) -> str:
        """
        Read a text file from a compute node.

        Args:
            pool_id: The pool containing the node.
            node_id: The id of the node.
            file_path: Path relative to the node's task root directory.

        Returns:
            str: The file contents.

        Raises:
            ResourceNotFoundError: If the file does not exist on the node.
        """
        pass


class ObjectStore(abc.ABC):
    """
    Abstract base class for the network file share holding job data.

    Paths are POSIX-style and relative to the share root (``"alice/Job1"``).
    Missing files and directories raise `ResourceNotFoundError`.

    Single-file transfers run inside `transfer_slot`, so at most
    ``max_concurrency`` files are in flight per store however the directory
    transfers above them fan out.
    """

    def __init__(self, max_concurrency: Optional[int] = None) -> None:
        self.max_concurrency = max_concurrency or default_parallel_operations()
        self._transfer_slots = threading.BoundedSemaphore(self.max_concurrency)

    @contextmanager
    def transfer_slot(self) -> Iterator[None]:
        """Hold one of the store's ``max_concurrency`` transfer slots."""
        with self._transfer_slots:
            yield

    @abc.abstractmethod
    def ensure_share(self) -> None:
        """Create the share if it does not exist yet."""
        pass

    @abc.abstractmethod
    def directory_exists(self, path: str) -> bool:
        pass

    @abc.abstractmethod
    def create_directory(self, path: str) -> None:
        """Create a directory if it does not exist. The parent must exist."""
        pass

    @abc.abstractmethod
    def list_directory(self, path: str) -> List[StoreEntry]:
        pass

    @abc.abstractmethod
    def delete_file(self, path: str) -> None:
        pass

    @abc.abstractmethod
    def delete_directory(self, path: str) -> None:
        """Delete an empty directory."""
        pass

    @abc.abstractmethod
    def upload_file(self, local_path: str, remote_path: str) -> None:
        pass

    @abc.abstractmethod
    def upload_text(self, content: str, remote_path: str) -> None:
        pass

    @abc.abstractmethod
    def upload_directory(
        self,
        local_dir: str,
        remote_dir: str,
        include: Optional[Callable[[str], bool]] = None,
        recursive: bool = True,
    ) -> None:
        """
        Upload the contents of a local directory.

        Args:
            local_dir: The local directory to read from.
            remote_dir: The share directory to write into; it must exist.
            include: Optional predicate on file names selecting what to upload.
            recursive: Whether subdirectories are uploaded as well.
        """
        pass

    @abc.abstractmethod
    def download_file(
        self, remote_path: str, local_path: str, validate_content: bool = False
    ) -> None:
        """
        Download a file, overwriting any existing local file.

        Args:
            remote_path: The share path of the file.
            local_path: The local destination.
            validate_content: Whether to verify the stored content hash. Worker
                nodes modify shared files without refreshing the hash, so job
                data is always downloaded with validation disabled.
        """
        pass

    @abc.abstractmethod
    def download_directory(
        self, remote_dir: str, local_dir: str, recursive: bool = True
    ) -> None:
        """
        Download a directory tree, always overwriting local files and never
        validating content hashes.
        """
        pass


class SecretStore(abc.ABC):
    """Abstract base class for local credential storage."""

    @abc.abstractmethod
    def get_secret(self, target: str) -> str:
        """
        Get the secret stored for a target.

        Raises:
            CredentialError: If nothing is stored for the target.
        """
        pass

    @abc.abstractmethod
    def put_secret(self, target: str, secret: str) -> None:
        pass
