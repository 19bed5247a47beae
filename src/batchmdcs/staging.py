"""
Staging of MATLAB job data on the shared file share.

Each user owns a directory at the root of the share. A job with data
directory ``Job1`` is made of root files named ``Job1.*`` (``Job1.in.mat``,
``Job1.out.mat``, ``Job1.common.mat``...), the ``Job1/`` subdirectory with
per-task files, and the ``matlab_metadata.mat`` file shared by all jobs of
the user::

    <user>/
        matlab_metadata.mat
        Job1.in.mat
        Job1.common.mat
        Job1/
            Task1.in.mat
            hosts          (communicating jobs only)
"""

from __future__ import annotations

import logging
import os
import posixpath
from typing import Callable, List, Optional

from .api.base import ObjectStore
from .concurrency import run_concurrently
from .errors import (
    BackendError,
    ConfigurationError,
    ResourceNotFoundError,
    StagingError,
)

logger = logging.getLogger(__name__)

METADATA_FILENAME = "matlab_metadata.mat"
OUTPUT_FILE_SUFFIX = ".out.mat"
COMMON_FILE_SUFFIX = ".common.mat"


def is_job_file(name: str, job_data_directory: str) -> bool:
    """Whether a root-level file belongs to the job.

    The separator is part of the prefix so that ``Job10.in.mat`` is not
    mistaken for a file of ``Job1``.
    """
    return name.lower().startswith(job_data_directory.lower() + ".")


def is_job_directory(name: str, job_data_directory: str) -> bool:
    return name.lower() == job_data_directory.lower()


def require_non_empty(value: str, name: str) -> None:
    if not value or not value.strip():
        raise ConfigurationError(f"{name} must be a non-empty string")


class SharedDataStaging:
    """Copies job data between the local machine and the file share."""

    def __init__(self, store: ObjectStore) -> None:
        self.store = store

    def stage(self, user: str, local_root: str, job_data_directory: str) -> None:
        """Copy a job's input data from ``local_root`` to the user's share directory.

        Job data directories are reused by MATLAB, so any files left over from a
        previous job with the same directory are removed first.

        Raises:
            StagingError: If cleaning or any of the uploads fails.
        """
        require_non_empty(user, "user")
        require_non_empty(job_data_directory, "job_data_directory")

        try:
            self.store.ensure_share()
            self.store.create_directory(user)
            self.clean(user, job_data_directory)

            job_remote_dir = posixpath.join(user, job_data_directory)
            self.store.create_directory(job_remote_dir)

            run_concurrently(
                [
                    lambda: self.store.upload_directory(
                        local_root,
                        user,
                        include=lambda name: is_job_file(name, job_data_directory),
                        recursive=False,
                    ),
                    lambda: self.store.upload_file(
                        os.path.join(local_root, METADATA_FILENAME),
                        posixpath.join(user, METADATA_FILENAME),
                    ),
                    lambda: self.store.upload_directory(
                        os.path.join(local_root, job_data_directory),
                        job_remote_dir,
                    ),
                ],
                self.store.max_concurrency,
            )
        except (BackendError, OSError) as e:
            raise StagingError(
                f"Failed to copy job data for {job_data_directory} to the share: {e}",
                user=user,
                job_data_directory=job_data_directory,
            ) from e

        logger.info("Staged job data %s for %s", job_data_directory, user)

    def fetch(self, user: str, local_root: str, job_data_directory: str) -> None:
        """Copy a job's results from the share into ``local_root``.

        The output and common files are fetched by exact name since the share
        has no wildcard downloads. Local files are always overwritten and
        content hashes are never validated: the workers modify these files in
        place without refreshing the stored hash.

        Missing results (a job that never staged data) are skipped.

        Raises:
            StagingError: If the share cannot be reached or a download fails
                for another reason.
        """
        require_non_empty(user, "user")
        require_non_empty(job_data_directory, "job_data_directory")

        operations: List[Callable[[], None]] = []
        for suffix in (OUTPUT_FILE_SUFFIX, COMMON_FILE_SUFFIX):
            name = job_data_directory + suffix
            operations.append(
                self._skip_missing(
                    lambda n=name: self.store.download_file(
                        posixpath.join(user, n),
                        os.path.join(local_root, n),
                        validate_content=False,
                    ),
                    posixpath.join(user, name),
                )
            )
        job_remote_dir = posixpath.join(user, job_data_directory)
        operations.append(
            self._skip_missing(
                lambda: self.store.download_directory(
                    job_remote_dir,
                    os.path.join(local_root, job_data_directory),
                    recursive=True,
                ),
                job_remote_dir,
            )
        )

        try:
            if not self.store.directory_exists(user):
                logger.debug("No share directory for %s, nothing to fetch", user)
                return
            run_concurrently(operations, self.store.max_concurrency)
        except (BackendError, OSError) as e:
            raise StagingError(
                f"Failed to copy job data for {job_data_directory} from the share: {e}",
                user=user,
                job_data_directory=job_data_directory,
            ) from e

        logger.info("Fetched job data %s for %s", job_data_directory, user)

    def reclaim(self, user: str, job_data_directory: str) -> None:
        """Delete a job's files and directory from the share."""
        require_non_empty(user, "user")
        require_non_empty(job_data_directory, "job_data_directory")
        try:
            self.clean(user, job_data_directory)
        except BackendError as e:
            raise StagingError(
                f"Failed to delete job data for {job_data_directory}: {e}",
                user=user,
                job_data_directory=job_data_directory,
            ) from e
        logger.info("Reclaimed job data %s for %s", job_data_directory, user)

    def clean(self, path: str, job_data_directory: Optional[str] = None) -> None:
        """Recursively delete the contents of a share directory.

        Args:
            path: The directory to clean. A missing directory is already clean.
            job_data_directory: If given, only the job's root files and the
                job's subdirectory are deleted; otherwise everything is.
        """
        try:
            entries = self.store.list_directory(path)
        except ResourceNotFoundError:
            return

        file_deletes = []
        for entry in entries:
            child = posixpath.join(path, entry.name)
            if entry.is_directory:
                if job_data_directory is None or is_job_directory(
                    entry.name, job_data_directory
                ):
                    # A directory must be empty before it can be deleted
                    self.clean(child)
                    self._delete_directory(child)
            elif job_data_directory is None or is_job_file(
                entry.name, job_data_directory
            ):
                file_deletes.append(lambda c=child: self._delete_file(c))

        run_concurrently(file_deletes, self.store.max_concurrency)

    def _delete_file(self, path: str) -> None:
        try:
            self.store.delete_file(path)
            logger.debug("Deleted %s", path)
        except ResourceNotFoundError:
            pass

    def _delete_directory(self, path: str) -> None:
        try:
            self.store.delete_directory(path)
            logger.debug("Deleted directory %s", path)
        except ResourceNotFoundError:
            pass

    @staticmethod
    def _skip_missing(operation: Callable[[], None], path: str) -> Callable[[], None]:
        def run() -> None:
            try:
                operation()
            except ResourceNotFoundError:
                logger.debug("%s not found on the share, skipping", path)

        return run
