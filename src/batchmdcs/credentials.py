"""Resolution of the Batch and Storage account keys from a secret store."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .api.base import SecretStore
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountKeys:
    """Shared keys for the two accounts a cluster needs."""

    batch_account_key: str
    storage_account_key: str

    def __repr__(self) -> str:
        return "AccountKeys(batch_account_key=***, storage_account_key=***)"


def resolve_account_keys(
    secret_store: SecretStore,
    batch_account_name: str,
    storage_account_name: str,
) -> AccountKeys:
    """Look up both account keys, each stored under its account name.

    Raises:
        CredentialError: If either key has not been stored.
    """
    batch_key = secret_store.get_secret(batch_account_name)
    storage_key = secret_store.get_secret(storage_account_name)
    logger.debug(
        "Resolved credentials for %s and %s", batch_account_name, storage_account_name
    )
    return AccountKeys(batch_account_key=batch_key, storage_account_key=storage_key)


def store_credential(secret_store: SecretStore, target: str, key: str) -> None:
    """Store an account key under its target name."""
    if not target:
        raise ConfigurationError("target must be a non-empty string")
    if not key:
        raise ConfigurationError("key must be a non-empty string")
    secret_store.put_secret(target, key)
    logger.info("Stored credential for %s", target)
