"""
Azure Files backend for batchmdcs.

Implements `ObjectStore` on top of ``azure-storage-file-share``. Directory
transfers are fanned out over a thread pool; the store's transfer slots
keep at most ``max_concurrency`` files in flight.
Store calls are not retried beyond the SDK's own pipeline policy.
"""

import logging
import os
import posixpath
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

from azure.core.credentials import AzureNamedKeyCredential
from azure.core.exceptions import (
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError as AzureResourceNotFoundError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.storage.fileshare import ShareClient

from .base import ObjectStore
from ..concurrency import run_concurrently
from ..errors import (
    BackendCommandError,
    BackendTimeout,
    ResourceConflictError,
    ResourceNotFoundError,
)
from ..models import StoreEntry

logger = logging.getLogger(__name__)


@contextmanager
def _translate_errors(description: str) -> Iterator[None]:
    try:
        yield
    except AzureResourceNotFoundError as e:
        raise ResourceNotFoundError(f"{description}: {e.message}") from e
    except ResourceExistsError as e:
        raise ResourceConflictError(f"{description}: {e.message}") from e
    except (ServiceRequestError, ServiceResponseError) as e:
        raise BackendTimeout(f"{description}: {e}") from e
    except HttpResponseError as e:
        if e.status_code == 409:
            raise ResourceConflictError(f"{description}: {e.message}") from e
        raise BackendCommandError(f"{description}: {e.message}") from e


class AzureFileShareStore(ObjectStore):
    """
    Object store backed by an Azure Storage file share.

    Pass ``share_client`` to reuse an existing ``ShareClient``.
    """

    def __init__(
        self,
        share_url: str,
        account_name: str,
        account_key: str,
        max_concurrency: Optional[int] = None,
        share_client: Optional[ShareClient] = None,
    ):
        """
        Initialize the Azure Files backend.

        Args:
            share_url: The url of the file share holding job data.
            account_name: The storage account name.
            account_key: The storage account key.
            max_concurrency: Upper bound on parallel transfer operations.
            share_client: Optional preconfigured SDK client.
        """
        super().__init__(max_concurrency)
        if share_client is None:
            share_client = ShareClient.from_share_url(
                share_url,
                credential=AzureNamedKeyCredential(account_name, account_key),
            )
        self.share = share_client
        logger.debug(
            "AzureFileShareStore using %s with %d parallel operations",
            share_url,
            self.max_concurrency,
        )

    def _directory(self, path: str):
        path = path.strip("/")
        return self.share.get_directory_client(path or None)

    def ensure_share(self) -> None:
        try:
            self.share.create_share()
            logger.info("Created file share %s", self.share.share_name)
        except ResourceExistsError:
            pass

    def directory_exists(self, path: str) -> bool:
        try:
            with _translate_errors(f"get directory {path!r}"):
                self._directory(path).get_directory_properties()
        except ResourceNotFoundError:
            return False
        return True

    def create_directory(self, path: str) -> None:
        try:
            with _translate_errors(f"create directory {path!r}"):
                self._directory(path).create_directory()
        except ResourceConflictError:
            pass

    def list_directory(self, path: str) -> List[StoreEntry]:
        with _translate_errors(f"list directory {path!r}"):
            items = list(self._directory(path).list_directories_and_files())
        return [StoreEntry(name=item.name, is_directory=bool(item.is_directory)) for item in items]

    def delete_file(self, path: str) -> None:
        with _translate_errors(f"delete file {path!r}"):
            self.share.get_file_client(path.strip("/")).delete_file()

    def delete_directory(self, path: str) -> None:
        with _translate_errors(f"delete directory {path!r}"):
            self._directory(path).delete_directory()

    def upload_file(self, local_path: str, remote_path: str) -> None:
        logger.debug("Uploading %s to %s", local_path, remote_path)
        file_client = self.share.get_file_client(remote_path.strip("/"))
        with self.transfer_slot(), open(local_path, "rb") as handle:
            with _translate_errors(f"upload {local_path} to {remote_path!r}"):
                file_client.upload_file(handle)

    def upload_text(self, content: str, remote_path: str) -> None:
        file_client = self.share.get_file_client(remote_path.strip("/"))
        with self.transfer_slot(), _translate_errors(f"upload text to {remote_path!r}"):
            file_client.upload_file(content.encode("utf-8"))

    def upload_directory(
        self,
        local_dir: str,
        remote_dir: str,
        include: Optional[Callable[[str], bool]] = None,
        recursive: bool = True,
    ) -> None:
        if not os.path.isdir(local_dir):
            raise FileNotFoundError(f"Local directory not found: {local_dir}")

        self.create_directory(remote_dir)
        uploads = []
        for root, dirs, files in os.walk(local_dir):
            rel = os.path.relpath(root, local_dir)
            remote_root = remote_dir
            if rel != ".":
                remote_root = posixpath.join(remote_dir, rel.replace(os.sep, "/"))
                self.create_directory(remote_root)
            for name in files:
                if include is not None and not include(name):
                    continue
                local_path = os.path.join(root, name)
                remote_path = posixpath.join(remote_root, name)
                uploads.append(
                    lambda src=local_path, dst=remote_path: self.upload_file(src, dst)
                )
            if not recursive:
                break

        run_concurrently(uploads, self.max_concurrency)

    def download_file(
        self, remote_path: str, local_path: str, validate_content: bool = False
    ) -> None:
        logger.debug("Downloading %s to %s", remote_path, local_path)
        local_dir = os.path.dirname(local_path)
        if local_dir:
            os.makedirs(local_dir, exist_ok=True)
        file_client = self.share.get_file_client(remote_path.strip("/"))
        with self.transfer_slot(), _translate_errors(f"download {remote_path!r}"):
            downloader = file_client.download_file(validate_content=validate_content)
            with open(local_path, "wb") as handle:
                downloader.readinto(handle)

    def download_directory(
        self, remote_dir: str, local_dir: str, recursive: bool = True
    ) -> None:
        os.makedirs(local_dir, exist_ok=True)
        downloads = []
        subdirectories = []
        for entry in self.list_directory(remote_dir):
            remote_path = posixpath.join(remote_dir, entry.name)
            local_path = os.path.join(local_dir, entry.name)
            if entry.is_directory:
                subdirectories.append((remote_path, local_path))
            else:
                downloads.append(
                    lambda src=remote_path, dst=local_path: self.download_file(
                        src, dst, validate_content=False
                    )
                )

        run_concurrently(downloads, self.max_concurrency)

        if recursive:
            for remote_path, local_path in subdirectories:
                self.download_directory(remote_path, local_path, recursive)
