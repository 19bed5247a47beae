"""Command-line interface for batchmdcs.

This module provides the `batchmdcs` CLI command for managing pools, jobs
and job data.

Usage:
    batchmdcs credentials store <account-name> [--key KEY]
    batchmdcs pools list [--env ENV] [--batchfile PATH]
    batchmdcs jobs submit <pool> <user> <job-id> <tasks> <jdd> ...
    batchmdcs jobs status <batch-job-id> [--env ENV] [--batchfile PATH]
    batchmdcs data fetch <user> <local-root> <jdd> [--env ENV]
"""

from .app import app, main

__all__ = ["app", "main"]
