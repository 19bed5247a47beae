"""
Hostname rendezvous for communicating jobs.

MATLAB communicating jobs reach each other by hostname, and hostname
resolution does not work out of the box between Batch nodes. Each node
writes its own hostname to ``shared/hostname.txt`` from the pool start
task; before a communicating job is created those files are collected
into a hosts file that the job preparation task copies onto every node.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .api.base import ClusterService, ObjectStore, default_parallel_operations
from .concurrency import run_concurrently
from .errors import RendezvousError, ResourceNotFoundError
from .rendering import HOSTS_FILENAME, NODE_HOSTNAME_FILE

logger = logging.getLogger(__name__)

START_TASK_REQUIRED_MESSAGE = (
    "Each Batch node must successfully complete its start task before a "
    "communicating job can be scheduled."
)


@dataclass
class HostsMapping:
    """Ordered ``(ip_address, hostname)`` pairs, one per pool node."""

    entries: List[Tuple[str, str]] = field(default_factory=list)

    def render(self) -> str:
        return "".join(f"{ip} {hostname}\n" for ip, hostname in self.entries)

    def __len__(self) -> int:
        return len(self.entries)


def build_hosts(
    cluster_service: ClusterService,
    pool_id: str,
    max_workers: Optional[int] = None,
) -> HostsMapping:
    """Collect the IP address and self-reported hostname of every pool node.

    Node files are read in parallel, at most ``max_workers`` at a time
    (defaults to eight per local CPU).

    Raises:
        RendezvousError: If any node has not written its hostname file yet.
    """
    nodes = cluster_service.list_nodes(pool_id)

    def read_hostname(node_id: str) -> str:
        try:
            content = cluster_service.read_node_file(
                pool_id, node_id, NODE_HOSTNAME_FILE
            )
        except ResourceNotFoundError as e:
            logger.debug("Node %s has no %s: %s", node_id, NODE_HOSTNAME_FILE, e)
            raise RendezvousError(START_TASK_REQUIRED_MESSAGE) from e
        return content.strip()

    hostnames = run_concurrently(
        [lambda n=node.id: read_hostname(n) for node in nodes],
        max_workers or default_parallel_operations(),
    )
    mapping = HostsMapping(
        [(node.ip_address, hostname) for node, hostname in zip(nodes, hostnames)]
    )
    logger.debug("Built hosts mapping for %d nodes of pool %s", len(mapping), pool_id)
    return mapping


def publish_hosts(
    store: ObjectStore,
    user: str,
    job_data_directory: str,
    mapping: HostsMapping,
) -> str:
    """Upload the hosts file into the job's share directory.

    Returns:
        str: The share path of the uploaded file.
    """
    job_dir = posixpath.join(user, job_data_directory)
    store.create_directory(user)
    store.create_directory(job_dir)
    remote_path = posixpath.join(job_dir, HOSTS_FILENAME)
    store.upload_text(mapping.render(), remote_path)
    logger.debug("Published hosts file %s", remote_path)
    return remote_path
