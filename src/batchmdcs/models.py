"""Plain records exchanged with the cluster service and the file store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


# Job states reported by the cluster service
JOB_ACTIVE = "active"
JOB_TERMINATING = "terminating"
JOB_COMPLETED = "completed"
JOB_FINISHED_STATES = frozenset({JOB_TERMINATING, JOB_COMPLETED})

# Task states reported by the cluster service
TASK_ACTIVE = "active"
TASK_COMPLETED = "completed"


@dataclass(frozen=True)
class ImageReference:
    """Marketplace image the pool nodes boot from."""

    publisher: str
    offer: str
    sku: str
    version: str = "latest"


@dataclass(frozen=True)
class StartTaskSpec:
    """Command run once on every node when it joins the pool."""

    command_line: str
    run_elevated: bool = True
    wait_for_success: bool = True


@dataclass
class PoolSpec:
    id: str
    vm_size: str
    target_dedicated_nodes: int
    image: ImageReference
    node_agent_sku_id: str
    start_task: StartTaskSpec
    application_packages: List[Tuple[str, str]] = field(default_factory=list)
    inter_node_communication: bool = False
    max_tasks_per_node: int = 1


@dataclass
class PoolInfo:
    id: str
    vm_size: Optional[str] = None
    state: Optional[str] = None
    allocation_state: Optional[str] = None
    current_dedicated_nodes: int = 0
    target_dedicated_nodes: int = 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "vm_size": self.vm_size,
            "state": self.state,
            "allocation_state": self.allocation_state,
            "current_dedicated_nodes": self.current_dedicated_nodes,
            "target_dedicated_nodes": self.target_dedicated_nodes,
        }


@dataclass(frozen=True)
class PreparationTaskSpec:
    """One-shot setup command run on each node before any task of the job."""

    id: str
    command_line: str
    run_elevated: bool = True
    wait_for_success: bool = True


@dataclass
class JobSpec:
    id: str
    pool_id: str
    environment: Dict[str, str] = field(default_factory=dict)
    preparation_task: Optional[PreparationTaskSpec] = None


@dataclass(frozen=True)
class MultiInstanceSpec:
    """Spreads one task over several nodes for message-passing jobs.

    The coordination command runs once on every allocated node before the
    primary instance runs the task's own command line.
    """

    instances: int
    coordination_command_line: str


@dataclass
class TaskSpec:
    id: str
    command_line: str
    environment: Dict[str, str] = field(default_factory=dict)
    multi_instance: Optional[MultiInstanceSpec] = None


@dataclass(frozen=True)
class JobInfo:
    id: str
    state: str


@dataclass(frozen=True)
class TaskInfo:
    id: str
    state: str
    exit_code: Optional[int] = None


@dataclass(frozen=True)
class NodeInfo:
    id: str
    ip_address: str


@dataclass(frozen=True)
class StoreEntry:
    """A single item listed from a file share directory."""

    name: str
    is_directory: bool
