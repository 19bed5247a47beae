"""Creation and management of MDCS worker pools."""

from __future__ import annotations

import logging
from typing import List, Optional

from .api.base import ClusterService
from .errors import ConfigurationError
from .models import ImageReference, PoolInfo, PoolSpec, StartTaskSpec
from .rendering import POOL_SETUP_COMMAND

logger = logging.getLogger(__name__)

MDCS_APP_PACKAGE = ("mdcs", "1")
BATCH_MDCS_APP_PACKAGE = ("batchmdcs", "1")

DEFAULT_IMAGE = ImageReference(
    publisher="MicrosoftWindowsServer",
    offer="WindowsServer",
    sku="2019-datacenter",
)
DEFAULT_NODE_AGENT_SKU_ID = "batch.node.windows amd64"


class PoolManager:
    """Thin pass-through to the cluster service for pool operations.

    Every pool gets the MDCS and batchmdcs application packages and a start
    task that installs MDCS and records the node's hostname.
    """

    def __init__(
        self,
        cluster_service: ClusterService,
        image: Optional[ImageReference] = None,
        node_agent_sku_id: str = DEFAULT_NODE_AGENT_SKU_ID,
    ) -> None:
        self.cluster_service = cluster_service
        self.image = image or DEFAULT_IMAGE
        self.node_agent_sku_id = node_agent_sku_id

    def build_spec(
        self,
        pool_id: str,
        vm_size: str,
        target_dedicated: int,
        inter_node_communication: bool,
        max_tasks_per_node: int,
    ) -> PoolSpec:
        if not pool_id:
            raise ConfigurationError("pool_id must be a non-empty string")
        if not vm_size:
            raise ConfigurationError("vm_size must be a non-empty string")
        return PoolSpec(
            id=pool_id,
            vm_size=vm_size,
            target_dedicated_nodes=target_dedicated,
            image=self.image,
            node_agent_sku_id=self.node_agent_sku_id,
            start_task=StartTaskSpec(
                command_line=POOL_SETUP_COMMAND,
                run_elevated=True,
                wait_for_success=True,
            ),
            application_packages=[MDCS_APP_PACKAGE, BATCH_MDCS_APP_PACKAGE],
            inter_node_communication=inter_node_communication,
            max_tasks_per_node=max_tasks_per_node,
        )

    def create(
        self,
        pool_id: str,
        vm_size: str,
        target_dedicated: int,
        inter_node_communication: bool = False,
        max_tasks_per_node: int = 1,
    ) -> PoolSpec:
        spec = self.build_spec(
            pool_id, vm_size, target_dedicated, inter_node_communication, max_tasks_per_node
        )
        self.cluster_service.create_pool(spec)
        logger.info(
            "Created pool %s (%d x %s)", pool_id, target_dedicated, vm_size
        )
        return spec

    def resize(self, pool_id: str, target_dedicated: int) -> None:
        self.cluster_service.resize_pool(pool_id, target_dedicated)
        logger.info("Resizing pool %s to %d nodes", pool_id, target_dedicated)

    def delete(self, pool_id: str) -> None:
        self.cluster_service.delete_pool(pool_id)
        logger.info("Deleting pool %s", pool_id)

    def list(self) -> List[PoolInfo]:
        return self.cluster_service.list_pools()
