"""Utilities for loading and resolving project Batchfile configuration.

A Batchfile is a TOML file describing one or more environments::

    [default.cluster]
    backend = "azure"
    batch_account_name = "mybatch"
    batch_service_url = "https://mybatch.westeurope.batch.azure.com"
    storage_account_name = "mystorage"
    share_url = "https://mystorage.file.core.windows.net/mdcs"
    share_path = "\\\\\\\\mystorage.file.core.windows.net\\\\mdcs"

    [default.cluster.retry]
    interval = 10
    max_retries = 5

    [default.pool]
    image_sku = "2019-datacenter"

    [dev.cluster]
    batch_account_name = "mybatchdev"

The ``dev`` environment is merged on top of ``default``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

try:  # pragma: no cover - import guard
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - python <3.11 fallback
    import tomli as tomllib  # type: ignore[assignment]

from .api import BACKEND_TYPES
from .errors import (
    BatchfileEnvironmentNotFoundError,
    BatchfileInvalidError,
    BatchfileNotFoundError,
    ConfigurationError,
)
from .models import ImageReference
from .pools import DEFAULT_IMAGE, DEFAULT_NODE_AGENT_SKU_ID
from .retry import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_INTERVAL

TOMLDecodeError = getattr(tomllib, "TOMLDecodeError", ValueError)


BATCH_ENV_VAR = "BATCH_ENV"
BATCHFILE_ENV_VAR = "BATCHFILE"
DEFAULT_BATCHFILE_NAMES = (
    "Batchfile",
    "Batchfile.toml",
    "batchfile",
    "batchfile.toml",
)
REQUIRED_CLUSTER_KEYS = (
    "batch_account_name",
    "batch_service_url",
    "storage_account_name",
    "share_url",
    "share_path",
)


@dataclass
class BatchfileEnvironment:
    """Resolved configuration for a specific Batchfile environment."""

    name: str
    path: Path
    config: Dict[str, Any]


@dataclass
class ClusterSettings:
    """Connection settings for a `BatchCluster`."""

    batch_account_name: str
    batch_service_url: str
    storage_account_name: str
    share_url: str
    share_path: str
    backend: str = "azure"
    parallel_operations: Optional[int] = None
    retry_interval: float = DEFAULT_RETRY_INTERVAL
    max_retries: int = DEFAULT_MAX_RETRIES
    image: ImageReference = field(default_factory=lambda: DEFAULT_IMAGE)
    node_agent_sku_id: str = DEFAULT_NODE_AGENT_SKU_ID


PathLike = Union[str, os.PathLike]


def load_environment(
    batchfile: Optional[PathLike] = None,
    *,
    env: Optional[str] = None,
    start_dir: Optional[PathLike] = None,
) -> BatchfileEnvironment:
    """Load a Batchfile environment, merging defaults."""

    resolved_path = resolve_batchfile_path(batchfile, start_dir=start_dir)
    raw_data = _read_toml(resolved_path)
    root_table = _extract_root_table(raw_data)
    env_table = _extract_environment_table(root_table)

    env_name = (env or os.getenv(BATCH_ENV_VAR) or "default").strip() or "default"
    resolved_config = _resolve_environment_config(root_table, env_table, env_name)

    return BatchfileEnvironment(
        name=env_name,
        path=resolved_path,
        config=resolved_config,
    )


def settings_from_config(config: Dict[str, Any]) -> ClusterSettings:
    """Build `ClusterSettings` from a resolved environment table.

    Raises:
        ConfigurationError: If the cluster table or a required key is missing.
    """
    cluster = config.get("cluster")
    if not isinstance(cluster, dict):
        raise ConfigurationError("Batchfile environment must define a [cluster] table.")

    missing = [key for key in REQUIRED_CLUSTER_KEYS if not cluster.get(key)]
    if missing:
        raise ConfigurationError(
            f"Batchfile [cluster] table is missing: {', '.join(missing)}"
        )

    backend = cluster.get("backend", "azure")
    if backend not in BACKEND_TYPES:
        raise ConfigurationError(
            f"Unsupported backend '{backend}'. Expected one of {BACKEND_TYPES}."
        )

    retry = cluster.get("retry", {})
    if not isinstance(retry, dict):
        raise ConfigurationError("[cluster.retry] must be a table.")

    pool = config.get("pool", {})
    if not isinstance(pool, dict):
        raise ConfigurationError("[pool] must be a table.")

    image = ImageReference(
        publisher=pool.get("image_publisher", DEFAULT_IMAGE.publisher),
        offer=pool.get("image_offer", DEFAULT_IMAGE.offer),
        sku=pool.get("image_sku", DEFAULT_IMAGE.sku),
        version=pool.get("image_version", DEFAULT_IMAGE.version),
    )

    return ClusterSettings(
        batch_account_name=cluster["batch_account_name"],
        batch_service_url=cluster["batch_service_url"],
        storage_account_name=cluster["storage_account_name"],
        share_url=cluster["share_url"],
        share_path=cluster["share_path"],
        backend=backend,
        parallel_operations=cluster.get("parallel_operations"),
        retry_interval=float(retry.get("interval", DEFAULT_RETRY_INTERVAL)),
        max_retries=int(retry.get("max_retries", DEFAULT_MAX_RETRIES)),
        image=image,
        node_agent_sku_id=pool.get("node_agent_sku_id", DEFAULT_NODE_AGENT_SKU_ID),
    )


def resolve_batchfile_path(
    batchfile: Optional[PathLike] = None,
    *,
    start_dir: Optional[PathLike] = None,
) -> Path:
    """Determine which Batchfile to use, respecting explicit hints and discovery."""

    if batchfile is not None:
        return _normalize_batchfile_path(Path(batchfile))

    env_path = os.getenv(BATCHFILE_ENV_VAR)
    if env_path:
        return _normalize_batchfile_path(Path(env_path))

    return discover_batchfile(start_dir=start_dir)


def discover_batchfile(start_dir: Optional[PathLike] = None) -> Path:
    """Search upwards from ``start_dir`` (or ``cwd``) for a Batchfile."""

    start_candidate = Path(start_dir) if start_dir is not None else Path.cwd()
    start_candidate = start_candidate.expanduser()
    try:
        start_candidate = start_candidate.resolve()
    except FileNotFoundError:
        start_candidate = start_candidate.absolute()

    for directory in (start_candidate,) + tuple(start_candidate.parents):
        for name in DEFAULT_BATCHFILE_NAMES:
            candidate = directory / name
            if candidate.is_file():
                return candidate

    raise BatchfileNotFoundError(
        f"No Batchfile found starting from '{start_candidate}'. Checked {DEFAULT_BATCHFILE_NAMES}."
    )


def _normalize_batchfile_path(path: Path) -> Path:
    expanded = path.expanduser()
    if expanded.is_dir():
        for name in DEFAULT_BATCHFILE_NAMES:
            candidate = expanded / name
            if candidate.is_file():
                return candidate
        raise BatchfileNotFoundError(
            f"Batchfile not found inside directory '{expanded}'. Checked {DEFAULT_BATCHFILE_NAMES}."
        )
    if expanded.is_file():
        return expanded
    raise BatchfileNotFoundError(f"Batchfile path '{expanded}' does not exist.")


def _read_toml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except TOMLDecodeError as exc:  # pragma: no cover - toml parser variations
        raise BatchfileInvalidError(f"Invalid TOML in Batchfile '{path}'.") from exc

    if not isinstance(data, dict):
        raise BatchfileInvalidError(
            f"Batchfile '{path}' must contain a top-level table."
        )
    return data


def _extract_root_table(data: Dict[str, Any]) -> Dict[str, Any]:
    tool_section = data.get("tool")
    if isinstance(tool_section, dict):
        batch_section = tool_section.get("batchmdcs")
        if isinstance(batch_section, dict):
            return batch_section
    return data


def _extract_environment_table(root: Dict[str, Any]) -> Dict[str, Any]:
    environments = root.get("environments")
    if isinstance(environments, dict):
        return environments
    return root


def _resolve_environment_config(
    root_table: Dict[str, Any],
    env_table: Dict[str, Any],
    env_name: str,
) -> Dict[str, Any]:
    result: Dict[str, Any] = {}

    root_default = root_table.get("default")
    if root_default:
        if not isinstance(root_default, dict):
            raise BatchfileInvalidError("[default] section must be a table.")
        result = _deep_merge(result, root_default)

    env_default = env_table.get("default")
    if env_default and env_default is not root_default:
        if not isinstance(env_default, dict):
            raise BatchfileInvalidError("[default] environment must be a table.")
        result = _deep_merge(result, env_default)

    if env_name != "default":
        env_config = env_table.get(env_name)
        if env_config is None:
            raise BatchfileEnvironmentNotFoundError(
                f"Environment '{env_name}' not defined in Batchfile."
            )
        if not isinstance(env_config, dict):
            raise BatchfileInvalidError(
                f"Environment '{env_name}' section must be a table."
            )
        result = _deep_merge(result, env_config)

    return result


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
