# batchmdcs/__init__.py

"""
This package runs MATLAB distributed computing jobs on Azure Batch pools,
exchanging job data through an Azure Files share.
"""

__version__ = "0.1.0"

from .cluster import BatchCluster
from .job import JobHandle, JobStatusSnapshot
from .monitor import CompletionMonitor
from .pools import PoolManager
from .staging import SharedDataStaging
from .submission import JobSubmitter, LicenseCredentials, MatlabCommand

__all__ = [
    "BatchCluster",
    "CompletionMonitor",
    "JobHandle",
    "JobStatusSnapshot",
    "JobSubmitter",
    "LicenseCredentials",
    "MatlabCommand",
    "PoolManager",
    "SharedDataStaging",
]
