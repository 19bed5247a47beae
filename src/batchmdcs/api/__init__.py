"""
This package provides the interfaces batchmdcs uses to reach the Batch
service, the job data file share and local credential storage, together
with their Azure and in-memory implementations.
"""

from typing import Any, Optional

from .base import ClusterService, ObjectStore, SecretStore
from .memory import MemoryClusterService, MemoryObjectStore, MemorySecretStore

BACKEND_TYPES = ("azure", "memory")


def create_cluster_service(
    backend_type: str,
    *,
    account_name: Optional[str] = None,
    account_key: Optional[str] = None,
    service_url: Optional[str] = None,
    **kwargs: Any,
) -> ClusterService:
    """
    Create a cluster service backend of the specified type.

    Args:
        backend_type: The type of backend to create ("azure" or "memory").
        account_name: The Batch account name (azure only).
        account_key: The Batch account key (azure only).
        service_url: The Batch account endpoint (azure only).
        **kwargs: Additional arguments passed to the backend constructor,
            such as ``retry_interval`` and ``max_retries``.

    Raises:
        ValueError: If the specified backend type is not supported.
    """
    if backend_type == "azure":
        from .azure_batch import AzureBatchService

        # Filter out None values to keep the constructor defaults
        options = {k: v for k, v in kwargs.items() if v is not None}
        return AzureBatchService(account_name, account_key, service_url, **options)
    elif backend_type == "memory":
        return MemoryClusterService()
    else:
        raise ValueError(f"Unsupported backend type: {backend_type}")


def create_object_store(
    backend_type: str,
    *,
    share_url: Optional[str] = None,
    account_name: Optional[str] = None,
    account_key: Optional[str] = None,
    max_concurrency: Optional[int] = None,
) -> ObjectStore:
    """
    Create a file store backend of the specified type.

    Args:
        backend_type: The type of backend to create ("azure" or "memory").
        share_url: The url of the job data file share (azure only).
        account_name: The storage account name (azure only).
        account_key: The storage account key (azure only).
        max_concurrency: Upper bound on parallel transfer operations.

    Raises:
        ValueError: If the specified backend type is not supported.
    """
    if backend_type == "azure":
        from .azure_files import AzureFileShareStore

        return AzureFileShareStore(
            share_url, account_name, account_key, max_concurrency=max_concurrency
        )
    elif backend_type == "memory":
        return MemoryObjectStore(max_concurrency=max_concurrency)
    else:
        raise ValueError(f"Unsupported backend type: {backend_type}")


def create_secret_store(backend_type: str = "keyring") -> SecretStore:
    """Create a secret store ("keyring" or "memory")."""
    if backend_type == "keyring":
        from .keyring_store import KeyringSecretStore

        return KeyringSecretStore()
    elif backend_type == "memory":
        return MemorySecretStore()
    else:
        raise ValueError(f"Unsupported secret store type: {backend_type}")


__all__ = [
    "BACKEND_TYPES",
    "ClusterService",
    "ObjectStore",
    "SecretStore",
    "MemoryClusterService",
    "MemoryObjectStore",
    "MemorySecretStore",
    "create_cluster_service",
    "create_object_store",
    "create_secret_store",
]
