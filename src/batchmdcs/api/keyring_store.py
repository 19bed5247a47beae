"""
Keyring backend for batchmdcs credentials.

Account keys live in the operating system's credential store (Windows
Credential Manager, macOS Keychain, Secret Service) through the ``keyring``
library. Each secret is stored with the account name as both the service
and the user name, so a key stored for ``mybatchaccount`` is found under
that single target name.
"""

import logging

import keyring
from keyring.errors import KeyringError

from .base import SecretStore
from ..errors import CredentialError

logger = logging.getLogger(__name__)


class KeyringSecretStore(SecretStore):
    """Secret store backed by the system keyring."""

    def get_secret(self, target: str) -> str:
        try:
            secret = keyring.get_password(target, target)
        except KeyringError as e:
            raise CredentialError(
                f"Failed to retrieve credential for {target}. Last error: {e}"
            ) from e
        if secret is None:
            raise CredentialError(
                f"Failed to retrieve credential for {target}. "
                f"Store it with: batchmdcs credentials store {target}"
            )
        return secret

    def put_secret(self, target: str, secret: str) -> None:
        try:
            keyring.set_password(target, target, secret)
        except KeyringError as e:
            raise CredentialError(
                f"Failed to store credential for {target}. Last error: {e}"
            ) from e
        logger.debug("Stored credential for %s", target)
