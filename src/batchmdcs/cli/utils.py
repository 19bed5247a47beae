"""Shared utilities for the batchmdcs CLI."""

from __future__ import annotations

from typing import Annotated, Optional

import cyclopts

EnvOption = Annotated[
    Optional[str],
    cyclopts.Parameter(
        name=["--env", "-e"],
        help="Environment name from Batchfile.",
    ),
]

BatchfileOption = Annotated[
    Optional[str],
    cyclopts.Parameter(
        name=["--batchfile", "-f"],
        help="Path to Batchfile.",
    ),
]


def get_cluster(
    env: Optional[str] = None,
    batchfile: Optional[str] = None,
) -> "BatchCluster":  # noqa: F821
    """Create a BatchCluster from CLI args.

    Args:
        env: Environment name to load from Batchfile.
        batchfile: Path to Batchfile.

    Returns:
        Configured BatchCluster instance.
    """
    from ..cluster import BatchCluster

    return BatchCluster.from_env(batchfile, env=env)
