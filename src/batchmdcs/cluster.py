"""
The published entry point of batchmdcs.

`BatchCluster` ties the credential lookup, the job data staging, pool
management, job submission and completion monitoring together behind
methods that take and return plain data only (strings, integers, booleans
and lists of strings), so that they can be called from MATLAB or any other
host environment.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from .api import (
    create_cluster_service,
    create_object_store,
    create_secret_store,
)
from .api.base import ClusterService, ObjectStore, SecretStore, default_parallel_operations
from .config import ClusterSettings, load_environment, settings_from_config
from .credentials import resolve_account_keys
from .credentials import store_credential as _store_credential
from .errors import ConfigurationError
from .models import ImageReference
from .monitor import CompletionMonitor
from .pools import DEFAULT_NODE_AGENT_SKU_ID, PoolManager
from .rendering import ShareMount
from .retry import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_INTERVAL
from .staging import SharedDataStaging
from .submission import JobSubmitter, LicenseCredentials, MatlabCommand

logger = logging.getLogger(__name__)


def _parse_bool(value: Union[bool, str], name: str) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


class BatchCluster:
    """Runs MATLAB jobs on an Azure Batch pool backed by an Azure Files share.

    The Batch and Storage account keys are looked up in the secret store under
    the account names; use `BatchCluster.store_credential` to provision them.

    Example:
        >>> cluster = BatchCluster(
        ...     "mybatch",
        ...     "https://mybatch.westeurope.batch.azure.com",
        ...     "mystorage",
        ...     "https://mystorage.file.core.windows.net/mdcs",
        ...     "\\\\\\\\mystorage.file.core.windows.net\\\\mdcs",
        ... )
        >>> cluster.stage_job_data("alice", "C:/jobs", "Job1")
        >>> job_id = cluster.submit_job("pool1", "alice", "1", 4, ...)
        >>> cluster.poll_job_status(job_id)
        ['running']
    """

    def __init__(
        self,
        batch_account_name: str,
        batch_service_url: str,
        storage_account_name: str,
        share_url: str,
        share_path: str,
        *,
        backend_type: str = "azure",
        secret_store: Optional[SecretStore] = None,
        cluster_service: Optional[ClusterService] = None,
        object_store: Optional[ObjectStore] = None,
        parallel_operations: Optional[int] = None,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        max_retries: int = DEFAULT_MAX_RETRIES,
        image: Optional[ImageReference] = None,
        node_agent_sku_id: str = DEFAULT_NODE_AGENT_SKU_ID,
    ) -> None:
        """Create a cluster and resolve its account keys.

        Args:
            batch_account_name: The name of the Batch account.
            batch_service_url: The url of the Batch account endpoint.
            storage_account_name: The Storage account holding the job data share.
            share_url: The url of the job data file share.
            share_path: The UNC path of the share, as mounted by the nodes.
            backend_type: "azure" or "memory"; ignored for services passed in.
            secret_store: Where account keys are stored. Defaults to the
                system keyring ("memory" backends default to an empty store).
            cluster_service: Prebuilt cluster service, mainly for tests.
            object_store: Prebuilt object store, mainly for tests.
            parallel_operations: Ceiling on concurrent share transfers.
            retry_interval: Seconds between retries of Batch service calls.
            max_retries: Retries of a Batch service call before giving up.
            image: Pool OS image; defaults to Windows Server 2019.
            node_agent_sku_id: Batch node agent matching ``image``.

        Raises:
            ConfigurationError: If a required parameter is empty.
            CredentialError: If an account key has not been stored.
        """
        for name, value in (
            ("batch_account_name", batch_account_name),
            ("batch_service_url", batch_service_url),
            ("storage_account_name", storage_account_name),
            ("share_url", share_url),
            ("share_path", share_path),
        ):
            if not value:
                raise ConfigurationError(f"{name} must be a non-empty string")

        if secret_store is None and backend_type == "memory":
            # In-memory backends need no credentials
            batch_key = storage_key = ""
        else:
            secret_store = secret_store or create_secret_store("keyring")
            keys = resolve_account_keys(
                secret_store, batch_account_name, storage_account_name
            )
            batch_key = keys.batch_account_key
            storage_key = keys.storage_account_key
        self.secret_store = secret_store

        self.batch_account_name = batch_account_name
        self.storage_account_name = storage_account_name
        self.share_url = share_url if share_url.endswith("/") else share_url + "/"
        self.parallel_operations = parallel_operations or default_parallel_operations()

        self.cluster_service = cluster_service or create_cluster_service(
            backend_type,
            account_name=batch_account_name,
            account_key=batch_key,
            service_url=batch_service_url,
            retry_interval=retry_interval,
            max_retries=max_retries,
        )
        self.object_store = object_store or create_object_store(
            backend_type,
            share_url=self.share_url,
            account_name=storage_account_name,
            account_key=storage_key,
            max_concurrency=self.parallel_operations,
        )

        self.mount = ShareMount(
            share_path=share_path,
            account_name=storage_account_name,
            account_key=storage_key,
        )
        self.staging = SharedDataStaging(self.object_store)
        self.pools = PoolManager(
            self.cluster_service, image=image, node_agent_sku_id=node_agent_sku_id
        )
        self.submitter = JobSubmitter(self.cluster_service, self.object_store, self.mount)
        self.monitor = CompletionMonitor(self.cluster_service)

        logger.debug(
            "Initialized BatchCluster for %s (storage %s, %d parallel operations)",
            batch_account_name,
            storage_account_name,
            self.parallel_operations,
        )

    def __repr__(self) -> str:
        return (
            f"BatchCluster(batch_account_name={self.batch_account_name!r}, "
            f"storage_account_name={self.storage_account_name!r})"
        )

    @classmethod
    def from_settings(cls, settings: ClusterSettings, **kwargs: Any) -> "BatchCluster":
        """Construct a cluster from parsed `ClusterSettings`."""
        return cls(
            settings.batch_account_name,
            settings.batch_service_url,
            settings.storage_account_name,
            settings.share_url,
            settings.share_path,
            backend_type=settings.backend,
            parallel_operations=settings.parallel_operations,
            retry_interval=settings.retry_interval,
            max_retries=settings.max_retries,
            image=settings.image,
            node_agent_sku_id=settings.node_agent_sku_id,
            **kwargs,
        )

    @classmethod
    def from_env(
        cls,
        batchfile: Optional[str] = None,
        *,
        env: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> "BatchCluster":
        """Construct a cluster from a Batchfile environment.

        The Batchfile is taken from ``batchfile``, the ``BATCHFILE`` environment
        variable, or discovered upwards from the current directory. The
        environment defaults to ``BATCH_ENV`` or ``default``.

        Args:
            batchfile: Explicit path to a Batchfile (or its directory).
            env: Environment name to load.
            overrides: Values merged over the ``[cluster]`` table.
            **kwargs: Passed to the constructor (e.g. ``secret_store``).

        Raises:
            BatchfileNotFoundError: If no Batchfile can be found.
            BatchfileEnvironmentNotFoundError: If ``env`` is not defined.
            ConfigurationError: If required cluster settings are missing.
        """
        environment = load_environment(batchfile, env=env)
        config = dict(environment.config)
        if overrides:
            cluster_table = dict(config.get("cluster") or {})
            cluster_table.update(overrides)
            config["cluster"] = cluster_table

        settings = settings_from_config(config)
        logger.debug(
            "Loaded environment '%s' from %s", environment.name, environment.path
        )
        return cls.from_settings(settings, **kwargs)

    @staticmethod
    def store_credential(
        target: str, key: str, secret_store: Optional[SecretStore] = None
    ) -> None:
        """Store an account key in the local credential store.

        Args:
            target: The account name the key belongs to.
            key: The account key.
            secret_store: Defaults to the system keyring.
        """
        _store_credential(secret_store or create_secret_store("keyring"), target, key)

    # Job data

    def stage_job_data(self, user: str, local_root: str, job_data_directory: str) -> None:
        """Copy a job's input data to the share."""
        self.staging.stage(user, local_root, job_data_directory)

    def fetch_job_results(
        self, user: str, local_root: str, job_data_directory: str
    ) -> None:
        """Copy a job's results from the share."""
        self.staging.fetch(user, local_root, job_data_directory)

    def reclaim_job_data(self, user: str, job_data_directory: str) -> None:
        """Delete a job's data from the share."""
        self.staging.reclaim(user, job_data_directory)

    # Pools

    def create_pool(
        self,
        pool_id: str,
        vm_size: str,
        target_dedicated: int,
        inter_node_communication: Union[bool, str] = False,
        max_tasks_per_node: int = 1,
    ) -> None:
        self.pools.create(
            pool_id,
            vm_size,
            int(target_dedicated),
            _parse_bool(inter_node_communication, "inter_node_communication"),
            int(max_tasks_per_node),
        )

    def resize_pool(self, pool_id: str, target_dedicated: int) -> None:
        self.pools.resize(pool_id, int(target_dedicated))

    def delete_pool(self, pool_id: str) -> None:
        self.pools.delete(pool_id)

    def list_pools(self) -> List[Dict[str, object]]:
        return [pool.to_dict() for pool in self.pools.list()]

    # Jobs

    def submit_job(
        self,
        pool_id: str,
        user: str,
        job_id: str,
        task_count: int,
        license_user_token: str,
        license_web_id: str,
        license_number: str,
        job_data_directory: str,
        communicating: Union[bool, str],
        task_locations: Optional[Sequence[str]],
        local_matlab_root: str,
        local_matlab_exe: str,
        matlab_args: str = "",
    ) -> str:
        """Submit a MATLAB job and return its Batch job id.

        The job's data must have been staged with `stage_job_data` first.

        Args:
            pool_id: The pool to run on.
            user: The user who initiated the MATLAB job.
            job_id: The MATLAB job id.
            task_count: Number of MATLAB tasks (workers for communicating jobs).
            license_user_token: MATLAB online licensing user token.
            license_web_id: MATLAB online licensing web id.
            license_number: MATLAB license number.
            job_data_directory: The job's data directory name.
            communicating: Whether the job is an MPI communicating job.
            task_locations: Per-task data locations (independent jobs only).
            local_matlab_root: MATLAB root on this machine.
            local_matlab_exe: MATLAB executable on this machine.
            matlab_args: Arguments for the MATLAB executable.

        Raises:
            ConfigurationError: If the arguments are invalid.
            RendezvousError: If a node has not finished its start task.
            SubmissionError: If the job could not be created.
        """
        handle = self.submitter.submit(
            pool_id=pool_id,
            user=user,
            logical_job_id=str(job_id),
            task_count=int(task_count),
            licensing=LicenseCredentials(
                user_token=license_user_token,
                web_id=license_web_id,
                number=license_number,
            ),
            job_data_directory=job_data_directory,
            communicating=_parse_bool(communicating, "communicating"),
            task_locations=task_locations,
            command=MatlabCommand(
                local_root=local_matlab_root,
                local_exe=local_matlab_exe,
                args=matlab_args,
            ),
        )
        return handle.batch_job_id

    def poll_job_status(self, batch_job_id: str) -> List[str]:
        """Poll a job once; see `JobStatusSnapshot.to_strings` for the result."""
        return self.monitor.poll(batch_job_id).to_strings()

    def wait_for_job(
        self,
        batch_job_id: str,
        poll_interval: float = 10.0,
        timeout: Optional[float] = None,
    ) -> List[str]:
        return self.monitor.wait(
            batch_job_id, poll_interval=poll_interval, timeout=timeout
        ).to_strings()

    def delete_job(self, batch_job_id: str, user: str, job_data_directory: str) -> None:
        """Delete a job's share data and then the job itself.

        Safe to call on an active job; running tasks are not waited for.
        """
        self.staging.reclaim(user, job_data_directory)
        self.cluster_service.delete_job(batch_job_id)
        logger.info("Deleted job %s", batch_job_id)
