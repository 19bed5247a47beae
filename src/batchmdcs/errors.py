"""Custom error types for the batchmdcs SDK."""

from __future__ import annotations

from typing import Any, Dict, Optional

from rich.console import Console


class ConfigurationError(ValueError):
    """Raised when a required construction parameter is missing or invalid.

    Configuration errors are detected before any network call is made and are
    never retried.

    Common causes:
        - Empty Batch account name, service URL, storage account, or share URL
        - A Batchfile environment without a ``[cluster]`` table
        - ``task_count`` smaller than one, or fewer task locations than tasks

    Examples:
        >>> BatchCluster("", "https://acct.region.batch.azure.com", ...)
        ConfigurationError: batch_account_name must be a non-empty string
    """


class CredentialError(Exception):
    """Raised when the secret store has no entry for a requested account.

    The message is surfaced verbatim. Credentials are provisioned once per
    machine with ``batchmdcs credentials store <target>`` (or
    ``BatchCluster.store_credential``) and are never created implicitly.

    What to check:
        - The target name matches the account name exactly
        - The keyring backend in use is the one the credential was stored with
    """


class BackendError(Exception):
    """Base class for errors originating from the cluster or storage services."""


class BackendTimeout(BackendError, TimeoutError):
    """Raised when a service call times out or the connection drops.

    The Azure Batch adapter retries these with a bounded linear backoff before
    giving up; storage calls are not retried.
    """


class BackendCommandError(BackendError):
    """Raised when a service rejects a request.

    Common causes:
        - Invalid pool/job/task ids (ids are limited to letters, digits,
          hyphens and underscores)
        - Quota exceeded on the Batch account
        - Authentication failures (stale account key in the secret store)
    """


class ResourceNotFoundError(BackendError):
    """Raised when a pool, job, node file, share file or directory does not exist.

    This is the expected "absent" result. Cleanup paths treat it as success;
    other callers decide for themselves whether absence is an error.
    """


class ResourceConflictError(BackendError):
    """Raised when a request conflicts with the current state of a resource.

    The typical case is terminating a job that another observer already
    terminated, which the completion monitor treats as harmless.
    """


class StagingError(Exception):
    """Raised when copying job data to or from the file share fails.

    Staging uploads the job's root files, the metadata file and the job
    directory concurrently; the first failing transfer fails the whole call.

    Attributes:
        message: Error description
        user: The job user whose staging area was being accessed
        job_data_directory: The job data directory being transferred
    """

    def __init__(
        self,
        message: str,
        *,
        user: Optional[str] = None,
        job_data_directory: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.user = user
        self.job_data_directory = job_data_directory


class RendezvousError(Exception):
    """Raised when the hosts mapping for a communicating job cannot be built.

    Each node writes its own hostname to ``shared/hostname.txt`` during the
    pool start task. If any node has not done so yet, a communicating job
    cannot be scheduled: the MPI processes resolve each other by hostname.

    This is a precondition failure, not a transient error. Wait for every
    node in the pool to reach the idle state (start task succeeded) and
    submit again.
    """


class SubmissionError(Exception):
    """Raised when creating a job or adding its tasks fails.

    If the job was already created when the failure happened, it has been
    deleted again before this error is raised, so no half-built job remains
    on the pool.

    Attributes:
        message: Error description
        metadata: Dictionary with submission context (pool, job id, task count)
    """

    def __init__(
        self,
        message: str,
        *,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.metadata = metadata or {}

    def __str__(self) -> str:  # pragma: no cover - exercised via runtime failures
        parts = [self.message]

        if self.metadata:
            formatted = ", ".join(
                f"{key}={value}" for key, value in self.metadata.items()
            )
            parts.append(f"metadata: {formatted}")

        return "\n\n".join(parts)

    def __rich_console__(self, console: Console, options):  # pragma: no cover
        yield self.message
        if self.metadata:
            formatted = ", ".join(
                f"{key}={value}" for key, value in self.metadata.items()
            )
            yield f"[dim]metadata: {formatted}[/dim]"


class BatchfileError(Exception):
    """Base class for Batchfile configuration errors.

    Batchfiles are TOML configuration files that define the Batch account,
    file share and pool image for one or more environments.
    """


class BatchfileNotFoundError(BatchfileError):
    """Raised when a Batchfile cannot be located.

    The SDK searches for Batchfile, Batchfile.toml, batchfile, or
    batchfile.toml in the current directory and parent directories.

    What to check:
        - Run from within the project directory
        - Set the BATCHFILE environment variable to specify an explicit path
        - Use the ``BatchCluster()`` constructor directly instead
    """


class BatchfileInvalidError(BatchfileError):
    """Raised when a Batchfile contains invalid TOML syntax or schema."""


class BatchfileEnvironmentNotFoundError(BatchfileError):
    """Raised when a requested environment is missing from the Batchfile.

    Examples:
        >>> BatchCluster.from_env(env="producton")  # Typo!
        BatchfileEnvironmentNotFoundError: Environment 'producton' not defined in Batchfile.
    """
