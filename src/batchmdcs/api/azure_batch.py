"""
Azure Batch backend for batchmdcs.

This module implements `ClusterService` on top of the ``azure-batch`` SDK.
Every service call goes through `_call`, which applies a bounded linear
retry to throttling, server and connection errors and translates the SDK's
exceptions into the batchmdcs error types.
"""

import logging
from typing import Any, Callable, List, Optional, TypeVar

import azure.batch.models as batchmodels
from azure.batch import BatchServiceClient
from azure.batch.batch_auth import SharedKeyCredentials
from msrest.exceptions import ClientRequestError

from .base import ClusterService
from ..errors import (
    BackendCommandError,
    BackendError,
    BackendTimeout,
    ResourceConflictError,
    ResourceNotFoundError,
)
from ..models import (
    JobInfo,
    JobSpec,
    NodeInfo,
    PoolInfo,
    PoolSpec,
    TaskInfo,
    TaskSpec,
)
from ..retry import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_INTERVAL, retry_linear

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


def _status_code(exc: BaseException) -> Optional[int]:
    response = getattr(exc, "response", None)
    return getattr(response, "status_code", None)


def _error_code(exc: BaseException) -> Optional[str]:
    error = getattr(exc, "error", None)
    return getattr(error, "code", None)


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, ClientRequestError):
        return True
    if isinstance(exc, batchmodels.BatchErrorException):
        return _status_code(exc) in TRANSIENT_STATUS_CODES
    return False


def _enum_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "value", value)


def _elevated(scope: batchmodels.AutoUserScope) -> batchmodels.UserIdentity:
    return batchmodels.UserIdentity(
        auto_user=batchmodels.AutoUserSpecification(
            scope=scope,
            elevation_level=batchmodels.ElevationLevel.admin,
        )
    )


def _environment(env) -> Optional[List[batchmodels.EnvironmentSetting]]:
    if not env:
        return None
    return [
        batchmodels.EnvironmentSetting(name=name, value=value)
        for name, value in env.items()
    ]


class AzureBatchService(ClusterService):
    """
    Cluster service backed by an Azure Batch account.

    Authenticates with the account's shared key. Pass ``client`` to reuse an
    existing ``BatchServiceClient``.
    """

    def __init__(
        self,
        account_name: str,
        account_key: str,
        service_url: str,
        retry_interval: float = DEFAULT_RETRY_INTERVAL,
        max_retries: int = DEFAULT_MAX_RETRIES,
        client: Optional[BatchServiceClient] = None,
    ):
        """
        Initialize the Azure Batch backend.

        Args:
            account_name: The name of the Batch account.
            account_key: The shared key of the Batch account.
            service_url: The endpoint of the Batch account.
            retry_interval: Seconds between retries of transient failures.
            max_retries: Retries after the first attempt of each call.
            client: Optional preconfigured SDK client.
        """
        self.account_name = account_name
        self.service_url = service_url
        self.retry_interval = retry_interval
        self.max_retries = max_retries
        if client is None:
            credentials = SharedKeyCredentials(account_name, account_key)
            client = BatchServiceClient(credentials, batch_url=service_url)
        self.client = client
        logger.debug("AzureBatchService using account %s at %s", account_name, service_url)

    def _call(self, description: str, func: Callable[[], T]) -> T:
        try:
            return retry_linear(
                func,
                is_transient=_is_transient,
                interval=self.retry_interval,
                max_retries=self.max_retries,
                description=description,
            )
        except batchmodels.BatchErrorException as e:
            status = _status_code(e)
            code = _error_code(e)
            message = f"{description} failed ({code or status}): {e}"
            if status == 404:
                raise ResourceNotFoundError(message) from e
            if status == 409:
                raise ResourceConflictError(message) from e
            if status in TRANSIENT_STATUS_CODES:
                raise BackendTimeout(message) from e
            raise BackendCommandError(message) from e
        except ClientRequestError as e:
            raise BackendTimeout(f"{description} failed: {e}") from e
        except BackendError:
            raise
        except Exception as e:
            logger.error("Unexpected error during %s: %s", description, e)
            raise BackendError(f"Unexpected error during {description}: {e}") from e

    def _add(self, description: str, func: Callable[[], None], exists_code: str) -> None:
        """Create a resource through `_call`.

        Add requests are not idempotent. When an attempt times out after the
        service committed it, the retry fails with ``exists_code``; that
        resource is ours and the call succeeds.
        """
        attempts = 0

        def attempt() -> None:
            nonlocal attempts
            attempts += 1
            try:
                func()
            except batchmodels.BatchErrorException as e:
                if attempts > 1 and _error_code(e) == exists_code:
                    logger.info("%s was committed by an earlier attempt", description)
                    return
                raise

        self._call(description, attempt)

    def create_pool(self, spec: PoolSpec) -> None:
        image = spec.image
        parameter = batchmodels.PoolAddParameter(
            id=spec.id,
            vm_size=spec.vm_size,
            virtual_machine_configuration=batchmodels.VirtualMachineConfiguration(
                image_reference=batchmodels.ImageReference(
                    publisher=image.publisher,
                    offer=image.offer,
                    sku=image.sku,
                    version=image.version,
                ),
                node_agent_sku_id=spec.node_agent_sku_id,
            ),
            target_dedicated_nodes=spec.target_dedicated_nodes,
            start_task=batchmodels.StartTask(
                command_line=spec.start_task.command_line,
                wait_for_success=spec.start_task.wait_for_success,
                user_identity=(
                    _elevated(batchmodels.AutoUserScope.pool)
                    if spec.start_task.run_elevated
                    else None
                ),
            ),
            application_package_references=[
                batchmodels.ApplicationPackageReference(
                    application_id=app_id, version=version
                )
                for app_id, version in spec.application_packages
            ],
            enable_inter_node_communication=spec.inter_node_communication,
            task_slots_per_node=spec.max_tasks_per_node,
        )
        self._add(
            f"create pool {spec.id}",
            lambda: self.client.pool.add(parameter),
            "PoolExists",
        )

    def resize_pool(self, pool_id: str, target_dedicated_nodes: int) -> None:
        parameter = batchmodels.PoolResizeParameter(
            target_dedicated_nodes=target_dedicated_nodes
        )
        self._call(
            f"resize pool {pool_id}",
            lambda: self.client.pool.resize(pool_id, parameter),
        )

    def delete_pool(self, pool_id: str) -> None:
        self._call(f"delete pool {pool_id}", lambda: self.client.pool.delete(pool_id))

    def list_pools(self) -> List[PoolInfo]:
        pools = self._call("list pools", lambda: list(self.client.pool.list()))
        return [
            PoolInfo(
                id=pool.id,
                vm_size=pool.vm_size,
                state=_enum_value(pool.state),
                allocation_state=_enum_value(pool.allocation_state),
                current_dedicated_nodes=pool.current_dedicated_nodes or 0,
                target_dedicated_nodes=pool.target_dedicated_nodes or 0,
            )
            for pool in pools
        ]

    def create_job(self, spec: JobSpec) -> None:
        preparation = None
        if spec.preparation_task is not None:
            prep = spec.preparation_task
            preparation = batchmodels.JobPreparationTask(
                id=prep.id,
                command_line=prep.command_line,
                wait_for_success=prep.wait_for_success,
                user_identity=(
                    _elevated(batchmodels.AutoUserScope.task)
                    if prep.run_elevated
                    else None
                ),
            )
        parameter = batchmodels.JobAddParameter(
            id=spec.id,
            pool_info=batchmodels.PoolInformation(pool_id=spec.pool_id),
            common_environment_settings=_environment(spec.environment),
            job_preparation_task=preparation,
        )
        self._add(
            f"create job {spec.id}",
            lambda: self.client.job.add(parameter),
            "JobExists",
        )

    def add_tasks(self, job_id: str, tasks: List[TaskSpec]) -> None:
        parameters = []
        for task in tasks:
            multi_instance = None
            if task.multi_instance is not None:
                multi_instance = batchmodels.MultiInstanceSettings(
                    number_of_instances=task.multi_instance.instances,
                    coordination_command_line=task.multi_instance.coordination_command_line,
                )
            parameters.append(
                batchmodels.TaskAddParameter(
                    id=task.id,
                    command_line=task.command_line,
                    environment_settings=_environment(task.environment),
                    multi_instance_settings=multi_instance,
                )
            )

        if len(parameters) == 1:
            self._add(
                f"add task to job {job_id}",
                lambda: self.client.task.add(job_id, parameters[0]),
                "TaskExists",
            )
            return

        result = self._call(
            f"add {len(parameters)} tasks to job {job_id}",
            lambda: self.client.task.add_collection(job_id, parameters),
        )
        failed = [
            item.task_id
            for item in (getattr(result, "value", None) or [])
            if _enum_value(item.status) != "success"
        ]
        if failed:
            raise BackendCommandError(
                f"Failed to add tasks {', '.join(failed)} to job {job_id}"
            )

    def get_job(self, job_id: str) -> JobInfo:
        options = batchmodels.JobGetOptions(select="id,state")
        job = self._call(
            f"get job {job_id}",
            lambda: self.client.job.get(job_id, job_get_options=options),
        )
        return JobInfo(id=job.id, state=_enum_value(job.state))

    def list_tasks(self, job_id: str) -> List[TaskInfo]:
        options = batchmodels.TaskListOptions(select="id,state,executionInfo")
        tasks = self._call(
            f"list tasks of job {job_id}",
            lambda: list(self.client.task.list(job_id, task_list_options=options)),
        )
        result = []
        for task in tasks:
            execution_info = task.execution_info
            exit_code = execution_info.exit_code if execution_info is not None else None
            result.append(
                TaskInfo(id=task.id, state=_enum_value(task.state), exit_code=exit_code)
            )
        return result

    def terminate_job(self, job_id: str) -> None:
        self._call(f"terminate job {job_id}", lambda: self.client.job.terminate(job_id))

    def delete_job(self, job_id: str) -> None:
        self._call(f"delete job {job_id}", lambda: self.client.job.delete(job_id))

    def list_nodes(self, pool_id: str) -> List[NodeInfo]:
        options = batchmodels.ComputeNodeListOptions(select="id,ipAddress")
        nodes = self._call(
            f"list nodes of pool {pool_id}",
            lambda: list(
                self.client.compute_node.list(
                    pool_id, compute_node_list_options=options
                )
            ),
        )
        return [NodeInfo(id=node.id, ip_address=node.ip_address) for node in nodes]

    def read_node_file(self, pool_id: str, node_id: str, file_path: str) -> str:
        def read() -> bytes:
            stream = self.client.file.get_from_compute_node(pool_id, node_id, file_path)
            return b"".join(stream)

        content = self._call(f"read {file_path} from node {node_id}", read)
        return content.decode("utf-8")
